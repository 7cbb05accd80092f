from datetime import datetime, timezone
from types import SimpleNamespace
from typing import List, Optional

import pytest

from issuesync.config import AppConfig, GitHubConfig, GraphConfig, QueueConfig


def make_user(login: str):
    return SimpleNamespace(
        login=login,
        avatar_url=f"https://avatars.example.com/{login}",
        html_url=f"https://github.com/{login}",
    )


def make_issue(number: int = 7, state: str = "open", body: Optional[str] = "Issue **body**",
               assignees: Optional[List[str]] = None, labels: Optional[List[str]] = None,
               author: str = "octocat", updated_at: Optional[datetime] = None):
    return SimpleNamespace(
        number=number,
        title=f"Issue {number}",
        body=body,
        state=state,
        url=f"https://api.github.com/repos/octo-org/octo-repo/issues/{number}",
        html_url=f"https://github.com/octo-org/octo-repo/issues/{number}",
        user=make_user(author),
        assignees=[make_user(name) for name in (assignees or [])],
        labels=[SimpleNamespace(name=name) for name in (labels or [])],
        updated_at=updated_at or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        pull_request=None,
    )


def make_event(actor: Optional[str]):
    return SimpleNamespace(actor=make_user(actor) if actor else None)


def make_comment(body: str):
    return SimpleNamespace(body=body)


@pytest.fixture
def app_config(tmp_path):
    return AppConfig(
        github=GitHubConfig(
            repo_owner="octo-org",
            repo_name="octo-repo",
            token="ghp_token",
            webhook_secret="It's a Secret to Everybody",
        ),
        graph=GraphConfig(
            client_id="client",
            client_secret="secret",
            tenant_id="tenant",
            connector_id="githubissues",
            schema_poll_interval=0,
        ),
        queue=QueueConfig(),
        log_dir=str(tmp_path / "logs"),
    )
