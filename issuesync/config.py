from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv

from .common.exceptions import ConfigurationError

# Load environment variables from .env file
load_dotenv()

DEFAULT_RESULT_TEMPLATE = str(Path(__file__).parent / "templates" / "search-result-issues.json")

# Set by `issuesync serve` so the app factory reads the same YAML file
CONFIG_PATH_ENV = "ISSUESYNC_CONFIG"


def _load_file(path: str | Path) -> dict:
    with open(path, "r", encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class GitHubConfig:
    """Settings for the source repository and its webhook."""

    repo_owner: str = ""
    repo_name: str = ""
    token: str = ""
    webhook_secret: str = ""
    log_webhook_payloads: bool = False
    rate_limit_retries: int = 3

    @property
    def full_name(self) -> str:
        return f"{self.repo_owner}/{self.repo_name}"

    def require_source(self) -> None:
        """Raise if the settings needed to call the GitHub API are missing."""
        for name in ("token", "repo_owner", "repo_name"):
            if not getattr(self, name):
                raise ConfigurationError(f"GitHub setting '{name}' is not configured")


@dataclass
class GraphConfig:
    """Settings for the Microsoft Graph connector."""

    client_id: str = ""
    client_secret: str = ""
    tenant_id: str = ""
    connector_id: str = ""
    result_template_path: str = DEFAULT_RESULT_TEMPLATE
    schema_poll_interval: float = 60.0

    def require_destination(self) -> None:
        """Raise if the settings needed to call Microsoft Graph are missing."""
        for name in ("client_id", "client_secret", "tenant_id", "connector_id"):
            if not getattr(self, name):
                raise ConfigurationError(f"Graph setting '{name}' is not configured")


@dataclass
class QueueConfig:
    """Settings for the Redis work-item stream."""

    redis_url: str = "redis://localhost:6379"
    stream_name: str = "github-issues"
    group_name: str = "issuesync-workers"
    max_deliveries: int = 5
    block_ms: int = 5000
    min_idle_ms: int = 60000

    @property
    def poison_stream_name(self) -> str:
        return f"{self.stream_name}-poison"


@dataclass
class AppConfig:
    """Top level application configuration."""

    github: GitHubConfig = field(default_factory=GitHubConfig)
    graph: GraphConfig = field(default_factory=GraphConfig)
    queue: QueueConfig = field(default_factory=QueueConfig)
    log_dir: Optional[str] = None

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create configuration from environment variables."""
        return cls(
            github=_github_from_env({}),
            graph=_graph_from_env({}),
            queue=_queue_from_env({}),
            log_dir=os.getenv("ISSUESYNC_LOG_DIR", "logs"),
        )

    @staticmethod
    def load(path: str | Path) -> "AppConfig":
        """Load configuration from a YAML file.

        Only non-secret settings are read from the file; tokens, client
        secrets and the webhook secret always come from the environment.
        Environment variables override values from the file.
        """
        data = _load_file(path)
        return AppConfig(
            github=_github_from_env(data.get("github", {})),
            graph=_graph_from_env(data.get("graph", {})),
            queue=_queue_from_env(data.get("queue", {})),
            log_dir=os.getenv("ISSUESYNC_LOG_DIR", data.get("log_dir", "logs")),
        )


def load_config(config_path: str) -> AppConfig:
    """Load the YAML file when it exists, otherwise use the environment only."""
    if config_path and Path(config_path).exists():
        return AppConfig.load(config_path)
    return AppConfig.from_env()


def _github_from_env(data: dict) -> GitHubConfig:
    return GitHubConfig(
        repo_owner=os.getenv("GITHUB_REPO_OWNER", data.get("repo_owner", "")),
        repo_name=os.getenv("GITHUB_REPO_NAME", data.get("repo_name", "")),
        token=os.getenv("GITHUB_TOKEN", ""),
        webhook_secret=os.getenv("GITHUB_WEBHOOK_SECRET", ""),
        log_webhook_payloads=_env_flag(
            "GITHUB_LOG_WEBHOOK_PAYLOADS", str(data.get("log_webhook_payloads", "false"))
        ),
        rate_limit_retries=int(os.getenv("GITHUB_RATE_LIMIT_RETRIES", data.get("rate_limit_retries", 3))),
    )


def _graph_from_env(data: dict) -> GraphConfig:
    return GraphConfig(
        client_id=os.getenv("GRAPH_CLIENT_ID", data.get("client_id", "")),
        client_secret=os.getenv("GRAPH_CLIENT_SECRET", ""),
        tenant_id=os.getenv("GRAPH_TENANT_ID", data.get("tenant_id", "")),
        connector_id=os.getenv("GRAPH_CONNECTOR_ID", data.get("connector_id", "")),
        result_template_path=os.getenv(
            "GRAPH_RESULT_TEMPLATE", data.get("result_template_path", DEFAULT_RESULT_TEMPLATE)
        ),
        schema_poll_interval=float(
            os.getenv("GRAPH_SCHEMA_POLL_INTERVAL_SECONDS", data.get("schema_poll_interval", 60))
        ),
    )


def _queue_from_env(data: dict) -> QueueConfig:
    return QueueConfig(
        redis_url=os.getenv("REDIS_URL", data.get("redis_url", "redis://localhost:6379")),
        stream_name=os.getenv("ISSUESYNC_QUEUE_STREAM", data.get("stream_name", "github-issues")),
        group_name=os.getenv("ISSUESYNC_QUEUE_GROUP", data.get("group_name", "issuesync-workers")),
        max_deliveries=int(os.getenv("ISSUESYNC_MAX_DELIVERIES", data.get("max_deliveries", 5))),
        block_ms=int(os.getenv("ISSUESYNC_BLOCK_MS", data.get("block_ms", 5000))),
        min_idle_ms=int(os.getenv("ISSUESYNC_MIN_IDLE_MS", data.get("min_idle_ms", 60000))),
    )
