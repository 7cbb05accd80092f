"""Durable orchestration of the connector bootstrap."""

from .history import (
    HistoryStore,
    InMemoryHistoryStore,
    OrchestrationState,
    OrchestrationStatus,
    RedisHistoryStore,
)
from .engine import (
    ActivityFailedError,
    DurableEngine,
    OrchestrationContext,
    RetryOptions,
)
from .bootstrap import (
    ORCHESTRATOR_NAME,
    BootstrapActivities,
    initialize_new_connection,
    register_bootstrap,
)

__all__ = [
    "HistoryStore",
    "InMemoryHistoryStore",
    "OrchestrationState",
    "OrchestrationStatus",
    "RedisHistoryStore",
    "ActivityFailedError",
    "DurableEngine",
    "OrchestrationContext",
    "RetryOptions",
    "ORCHESTRATOR_NAME",
    "BootstrapActivities",
    "initialize_new_connection",
    "register_bootstrap",
]
