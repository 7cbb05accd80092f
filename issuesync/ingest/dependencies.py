"""Lazily constructed services shared by the HTTP routes."""

from functools import cached_property
from typing import Optional

from ..config import AppConfig
from ..github.client import GitHubIssuesService
from ..graph.connector import GraphConnectorService
from ..models.queue import WorkItemQueue
from ..orchestration import (
    BootstrapActivities,
    DurableEngine,
    RedisHistoryStore,
    register_bootstrap,
)
from ..service import IssueSyncService


class Services:
    """Holds the clients the app talks to.

    Each one is built on first use from the configuration, so a server whose
    Graph settings are incomplete can still accept webhooks. Tests pass
    fakes for any of them.
    """

    def __init__(self, config: AppConfig,
                 issues: Optional[GitHubIssuesService] = None,
                 connector: Optional[GraphConnectorService] = None,
                 sync: Optional[IssueSyncService] = None,
                 queue: Optional[WorkItemQueue] = None,
                 engine: Optional[DurableEngine] = None) -> None:
        self.config = config
        for name, value in (("issues", issues), ("connector", connector), ("sync", sync),
                            ("queue", queue), ("engine", engine)):
            if value is not None:
                self.__dict__[name] = value

    @cached_property
    def issues(self) -> GitHubIssuesService:
        return GitHubIssuesService(self.config.github)

    @cached_property
    def connector(self) -> GraphConnectorService:
        return GraphConnectorService(self.config.graph, self.config.github)

    @cached_property
    def sync(self) -> IssueSyncService:
        return IssueSyncService(self.issues, self.connector)

    @cached_property
    def queue(self) -> WorkItemQueue:
        return WorkItemQueue(self.config.queue)

    @cached_property
    def engine(self) -> DurableEngine:
        engine = DurableEngine(RedisHistoryStore.from_url(self.config.queue.redis_url))
        register_bootstrap(engine, BootstrapActivities(self.connector, self.sync))
        return engine
