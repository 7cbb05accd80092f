"""Service that manages interactions with the GitHub REST API."""

from __future__ import annotations

import logging
from typing import List, Optional

from github import Auth, Github, UnknownObjectException
from github.Issue import Issue
from github.IssueComment import IssueComment
from github.Repository import Repository
from github.TimelineEvent import TimelineEvent

from ..common.exceptions import IssueNotFoundError
from ..config import GitHubConfig
from .retry import RateLimitPolicy

logger = logging.getLogger(__name__)


class GitHubIssuesService:
    """Issue reads and writes for the configured repository.

    Every call goes through the rate-limit policy, so callers never see a
    rate-limit error until the retry budget is exhausted.
    """

    def __init__(self, config: GitHubConfig, client: Optional[Github] = None,
                 policy: Optional[RateLimitPolicy] = None) -> None:
        self.config = config
        if client is None:
            config.require_source()
            # The rate-limit policy is the only retry layer
            client = Github(auth=Auth.Token(config.token), retry=None)
        self._github = client
        self.policy = policy or RateLimitPolicy(config.rate_limit_retries)
        self._repo: Optional[Repository] = None

    @property
    def repo(self) -> Repository:
        if self._repo is None:
            self._repo = self._github.get_repo(self.config.full_name, lazy=True)
        return self._repo

    def get_all_issues(self) -> List[Issue]:
        """Return every issue in the repository, open and closed.

        The issues endpoint also lists pull requests; those are dropped.
        """
        def fetch() -> List[Issue]:
            return [
                issue for issue in self.repo.get_issues(state="all")
                if issue.pull_request is None
            ]

        return self.policy.call(fetch, "list issues")

    def get_issue(self, issue_number: int) -> Issue:
        """Fetch a single issue by number."""
        try:
            return self.policy.call(
                lambda: self.repo.get_issue(issue_number),
                f"get issue #{issue_number}",
            )
        except UnknownObjectException as e:
            raise IssueNotFoundError(issue_number) from e

    def get_comments(self, issue: Issue) -> List[IssueComment]:
        """Comments on an issue, oldest first."""
        return self.policy.call(
            lambda: list(issue.get_comments()),
            f"get comments for issue #{issue.number}",
        )

    def get_timeline(self, issue: Issue) -> List[TimelineEvent]:
        """Timeline events for an issue, oldest first."""
        return self.policy.call(
            lambda: list(issue.get_timeline()),
            f"get timeline for issue #{issue.number}",
        )

    def add_labels(self, issue_number: int, labels: List[str]) -> None:
        issue = self.get_issue(issue_number)
        self.policy.call(
            lambda: issue.add_to_labels(*labels),
            f"add labels to issue #{issue_number}",
        )
        logger.info(f"Added labels {','.join(labels)} to issue #{issue_number}")

    def remove_labels(self, issue_number: int, labels: List[str]) -> None:
        issue = self.get_issue(issue_number)

        def remove() -> None:
            for label in labels:
                issue.remove_from_labels(label)

        self.policy.call(remove, f"remove labels from issue #{issue_number}")
        logger.info(f"Removed labels {','.join(labels)} from issue #{issue_number}")

    def assign_users(self, issue_number: int, users: List[str]) -> None:
        issue = self.get_issue(issue_number)
        self.policy.call(
            lambda: issue.add_to_assignees(*users),
            f"assign users to issue #{issue_number}",
        )
        logger.info(f"Assigned {','.join(users)} to issue #{issue_number}")

    def unassign_users(self, issue_number: int, users: List[str]) -> None:
        issue = self.get_issue(issue_number)
        self.policy.call(
            lambda: issue.remove_from_assignees(*users),
            f"unassign users from issue #{issue_number}",
        )
        logger.info(f"Unassigned {','.join(users)} from issue #{issue_number}")

    def close_issue(self, issue_number: int) -> None:
        issue = self.get_issue(issue_number)
        self.policy.call(
            lambda: issue.edit(state="closed"),
            f"close issue #{issue_number}",
        )
        logger.info(f"Closed issue #{issue_number}")
