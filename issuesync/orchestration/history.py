"""Durable storage for orchestration state and step history."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

import redis

logger = logging.getLogger(__name__)


class OrchestrationStatus(str, Enum):
    PENDING = "Pending"
    RUNNING = "Running"
    COMPLETED = "Completed"
    FAILED = "Failed"
    TERMINATED = "Terminated"


TERMINAL_STATUSES = (
    OrchestrationStatus.COMPLETED,
    OrchestrationStatus.FAILED,
    OrchestrationStatus.TERMINATED,
)


@dataclass
class OrchestrationState:
    """Runtime status of one orchestration instance."""

    instance_id: str
    name: str
    status: OrchestrationStatus
    input: Any = None
    output: Any = None
    failure: Optional[str] = None
    created_at: float = 0.0
    updated_at: float = 0.0

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrchestrationState":
        data = dict(data)
        data["status"] = OrchestrationStatus(data["status"])
        return cls(**data)


class HistoryStore:
    """Interface for orchestration persistence.

    Values must round-trip through JSON, so activity results and workflow
    inputs and outputs are limited to JSON types.
    """

    def save_state(self, state: OrchestrationState) -> None:
        raise NotImplementedError

    def load_state(self, instance_id: str) -> Optional[OrchestrationState]:
        raise NotImplementedError

    def list_states(self) -> List[OrchestrationState]:
        raise NotImplementedError

    def append_event(self, instance_id: str, event: Dict[str, Any]) -> None:
        raise NotImplementedError

    def load_history(self, instance_id: str) -> List[Dict[str, Any]]:
        raise NotImplementedError


class InMemoryHistoryStore(HistoryStore):
    """Process-local store; history is lost when the process exits."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._states: Dict[str, str] = {}
        self._history: Dict[str, List[str]] = {}

    def save_state(self, state: OrchestrationState) -> None:
        with self._lock:
            self._states[state.instance_id] = json.dumps(state.to_dict())

    def load_state(self, instance_id: str) -> Optional[OrchestrationState]:
        with self._lock:
            raw = self._states.get(instance_id)
        return OrchestrationState.from_dict(json.loads(raw)) if raw else None

    def list_states(self) -> List[OrchestrationState]:
        with self._lock:
            raws = list(self._states.values())
        return [OrchestrationState.from_dict(json.loads(raw)) for raw in raws]

    def append_event(self, instance_id: str, event: Dict[str, Any]) -> None:
        with self._lock:
            self._history.setdefault(instance_id, []).append(json.dumps(event))

    def load_history(self, instance_id: str) -> List[Dict[str, Any]]:
        with self._lock:
            raws = list(self._history.get(instance_id, []))
        return [json.loads(raw) for raw in raws]


class RedisHistoryStore(HistoryStore):
    """Store orchestration state and history in Redis.

    Keys: ``<prefix>:instances`` (set of ids), ``<prefix>:<id>:state``
    (JSON string) and ``<prefix>:<id>:history`` (list of JSON events).
    """

    def __init__(self, client: redis.Redis, prefix: str = "issuesync:orchestrations") -> None:
        self.redis = client
        self.prefix = prefix

    @classmethod
    def from_url(cls, redis_url: str, prefix: str = "issuesync:orchestrations") -> "RedisHistoryStore":
        return cls(redis.from_url(redis_url, decode_responses=True), prefix)

    def _key(self, instance_id: str, kind: str) -> str:
        return f"{self.prefix}:{instance_id}:{kind}"

    def save_state(self, state: OrchestrationState) -> None:
        pipe = self.redis.pipeline()
        pipe.set(self._key(state.instance_id, "state"), json.dumps(state.to_dict()))
        pipe.sadd(f"{self.prefix}:instances", state.instance_id)
        pipe.execute()

    def load_state(self, instance_id: str) -> Optional[OrchestrationState]:
        raw = self.redis.get(self._key(instance_id, "state"))
        return OrchestrationState.from_dict(json.loads(raw)) if raw else None

    def list_states(self) -> List[OrchestrationState]:
        states = []
        for instance_id in self.redis.smembers(f"{self.prefix}:instances"):
            state = self.load_state(instance_id)
            if state is not None:
                states.append(state)
        return states

    def append_event(self, instance_id: str, event: Dict[str, Any]) -> None:
        self.redis.rpush(self._key(instance_id, "history"), json.dumps(event))

    def load_history(self, instance_id: str) -> List[Dict[str, Any]]:
        return [json.loads(raw) for raw in self.redis.lrange(self._key(instance_id, "history"), 0, -1)]
