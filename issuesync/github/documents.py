"""Turn a GitHub issue, its timeline and its comments into a connector document."""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable, Optional, Sequence

import markdown
from bs4 import BeautifulSoup

from ..models.documents import MIN_DATETIME, IndexableDocument

logger = logging.getLogger(__name__)

REPO_URL_PATTERN = re.compile(r"/repos/(?P<repo>[^/]+/[^/]+)")

STATUS_ICONS = {
    "open": "https://img.shields.io/badge/Open-brightgreen?logo=github",
    "closed": "https://img.shields.io/badge/Closed-purple?logo=github",
}


def extract_repo_name(url: Optional[str]) -> Optional[str]:
    """``https://api.github.com/repos/acme/widgets/issues/5`` -> ``acme/widgets``."""
    if not url:
        return None
    match = REPO_URL_PATTERN.search(url)
    if match is None:
        return None
    return match.group("repo")


def join_names(names: Iterable[str]) -> str:
    # Commas inside names are not escaped
    names = list(names)
    if not names:
        return "None"
    return ",".join(names)


def markdown_to_text(text: Optional[str]) -> str:
    """Render markdown and keep only the text."""
    if not text:
        return ""
    html = markdown.markdown(text, extensions=["fenced_code", "tables"])
    return BeautifulSoup(html, "html.parser").get_text().strip()


def status_icon(state: str) -> str:
    try:
        return STATUS_ICONS[state.lower()]
    except KeyError:
        raise ValueError(f"Unexpected issue state: {state!r}") from None


def last_modified_by(issue: Any, events: Optional[Sequence[Any]]) -> str:
    """Login of the most recent timeline actor, else the issue author."""
    if events:
        actor = getattr(events[-1], "actor", None)
        if actor is not None and getattr(actor, "login", None):
            return actor.login
    return issue.user.login


def build_document(issue: Any, events: Optional[Sequence[Any]],
                   comments: Sequence[Any]) -> IndexableDocument:
    """Map an issue plus its timeline and comments to an IndexableDocument.

    Works on anything shaped like PyGithub's ``Issue``, ``TimelineEvent`` and
    ``IssueComment``. Comment bodies are appended in the order given.
    """
    body_text = markdown_to_text(issue.body)
    content = "\n".join([body_text] + [markdown_to_text(c.body) for c in comments])

    return IndexableDocument(
        id=str(issue.number),
        title=issue.title,
        issue_number=issue.number,
        repo=extract_repo_name(issue.url) or "",
        body=body_text,
        assignees=join_names(user.login for user in issue.assignees),
        labels=join_names(label.name for label in issue.labels),
        state=issue.state,
        issue_url=issue.html_url,
        icon=issue.user.avatar_url,
        updated_at=issue.updated_at or MIN_DATETIME,
        last_modified_by=last_modified_by(issue, events),
        author=[issue.user.login],
        author_url=issue.user.html_url,
        status_icon=status_icon(issue.state),
        content=content,
    )


class IssueDocumentBuilder:
    """Fetches the timeline and comments for an issue and builds its document."""

    def __init__(self, issues_service) -> None:
        self.issues = issues_service

    def build(self, issue: Any) -> IndexableDocument:
        events = self.issues.get_timeline(issue)
        comments = self.issues.get_comments(issue)
        logger.debug(
            f"Building document for issue #{issue.number} "
            f"({len(events)} timeline events, {len(comments)} comments)"
        )
        return build_document(issue, events, comments)
