from __future__ import annotations

import logging
import threading
import time
from dataclasses import asdict, dataclass, field
from typing import List, Optional

from .common.exceptions import IssueNotFoundError
from .config import AppConfig
from .github.client import GitHubIssuesService
from .github.documents import IssueDocumentBuilder
from .graph.connector import GraphConnectorService
from .models.documents import IndexableDocument
from .models.work_item import WorkItem

logger = logging.getLogger(__name__)


@dataclass
class CrawlResult:
    """Outcome of a full crawl."""

    total: int = 0
    succeeded: int = 0
    failed: int = 0
    failed_issues: List[int] = field(default_factory=list)
    elapsed_seconds: float = 0.0
    stopped: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


class IssueSyncService:
    """Fetches issues from GitHub and upserts their documents into the connector."""

    def __init__(self, issues: GitHubIssuesService, connector: GraphConnectorService,
                 builder: IssueDocumentBuilder | None = None) -> None:
        self.issues = issues
        self.connector = connector
        self.builder = builder or IssueDocumentBuilder(issues)

    @classmethod
    def from_config(cls, cfg: AppConfig) -> "IssueSyncService":
        issues = GitHubIssuesService(cfg.github)
        connector = GraphConnectorService(cfg.graph, cfg.github)
        return cls(issues, connector)

    def ingest_issue(self, issue) -> IndexableDocument:
        """Build the document for an already fetched issue and upsert it."""
        document = self.builder.build(issue)
        self.connector.add_or_update_item(document)
        return document

    def sync_issue(self, issue_number: int) -> IndexableDocument:
        """Re-fetch an issue and upsert its current state."""
        issue = self.issues.get_issue(issue_number)
        if issue is None:
            raise IssueNotFoundError(issue_number)
        return self.ingest_issue(issue)

    def sync_work_item(self, work_item: WorkItem) -> IndexableDocument:
        configured = self.issues.config
        if (work_item.owner.lower(), work_item.repo.lower()) != (
            configured.repo_owner.lower(), configured.repo_name.lower()
        ):
            logger.warning(
                f"Work item for {work_item.owner}/{work_item.repo} does not match configured "
                f"repository {configured.full_name}; syncing issue #{work_item.issue_number} "
                f"from {configured.full_name}"
            )
        logger.info(f"Processing queue item for issue #{work_item.issue_number}")
        return self.sync_issue(work_item.issue_number)

    def crawl(self, stop: Optional[threading.Event] = None) -> CrawlResult:
        """Ingest every issue in the repository.

        Best effort: a failing issue is logged and counted, and the crawl
        moves on to the next one. Setting ``stop`` ends the crawl before the
        next issue.
        """
        logger.info("Beginning crawl of issues")
        started = time.monotonic()
        result = CrawlResult()

        issues = self.issues.get_all_issues()
        result.total = len(issues)
        logger.info(f"Found {result.total} issues in repository")

        for issue in issues:
            if stop is not None and stop.is_set():
                logger.warning(f"Crawl stopped after {result.succeeded + result.failed} of {result.total} issues")
                result.stopped = True
                break
            logger.info(f"Ingesting issue #{issue.number}")
            try:
                self.ingest_issue(issue)
                result.succeeded += 1
            except Exception as e:
                logger.error(f"Failed to ingest issue #{issue.number}: {e}")
                result.failed += 1
                result.failed_issues.append(issue.number)

        result.elapsed_seconds = time.monotonic() - started
        logger.info(
            f"Crawl took {result.elapsed_seconds:.2f} seconds: "
            f"{result.succeeded} ingested, {result.failed} failed"
        )
        return result
