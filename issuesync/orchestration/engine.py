"""Replay-based durable workflow engine.

An orchestrator is a generator function ``fn(ctx, input)`` that yields tasks
created through its context (``ctx.call_activity`` and ``ctx.create_timer``)
and returns the workflow output. The engine records the outcome of every
step in a history store. Running an instance again replays the generator
from the start: steps already in the history are answered from the record
instead of being executed, so side effects happen once even across process
restarts. Orchestrator bodies must therefore be deterministic and perform
side effects only through activities.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generator, List, Optional, Tuple

from ..common.exceptions import WorkflowError
from .history import HistoryStore, InMemoryHistoryStore, OrchestrationState, OrchestrationStatus

logger = logging.getLogger(__name__)

Orchestrator = Callable[["OrchestrationContext", Any], Generator[Any, Any, Any]]
Activity = Callable[[Any], Any]

ACTIVITY_COMPLETED = "ActivityCompleted"
ACTIVITY_FAILED = "ActivityFailed"
TIMER_CREATED = "TimerCreated"
TIMER_FIRED = "TimerFired"


@dataclass(frozen=True)
class RetryOptions:
    """Retry schedule for a single activity call."""

    max_attempts: int = 1
    first_retry_interval: float = 5.0
    backoff_coefficient: float = 2.0
    # Exception types that fail the activity on the first attempt
    non_retryable: Tuple[type, ...] = ()


@dataclass(frozen=True)
class ActivityTask:
    name: str
    input: Any = None
    retry: Optional[RetryOptions] = None


@dataclass(frozen=True)
class TimerTask:
    seconds: float


class ActivityFailedError(WorkflowError):
    """Raised inside an orchestrator when an activity failed after its retries."""

    def __init__(self, activity: str, detail: str, error_type: str = "", message: str = ""):
        self.activity = activity
        self.detail = detail
        self.error_type = error_type
        self.message = message or detail
        super().__init__(f"Activity '{activity}' failed: {detail}")


class ReplaySafeLogger:
    """Logger wrapper that stays silent while the orchestrator is replaying."""

    def __init__(self, context: "OrchestrationContext", wrapped: logging.Logger) -> None:
        self._context = context
        self._logger = wrapped

    def _log(self, level: int, message: str, *args: Any, **kwargs: Any) -> None:
        if not self._context.is_replaying:
            self._logger.log(level, message, *args, **kwargs)

    def debug(self, message: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.DEBUG, message, *args, **kwargs)

    def info(self, message: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.INFO, message, *args, **kwargs)

    def warning(self, message: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.WARNING, message, *args, **kwargs)

    def error(self, message: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.ERROR, message, *args, **kwargs)


class OrchestrationContext:
    """Handed to orchestrator functions; creates the tasks they yield."""

    def __init__(self, instance_id: str, name: str) -> None:
        self.instance_id = instance_id
        self.name = name
        self.is_replaying = False

    def call_activity(self, name: str, input: Any = None,
                      retry: Optional[RetryOptions] = None) -> ActivityTask:
        return ActivityTask(name, input, retry)

    def create_timer(self, seconds: float) -> TimerTask:
        return TimerTask(seconds)

    def create_replay_safe_logger(self, wrapped: logging.Logger) -> ReplaySafeLogger:
        return ReplaySafeLogger(self, wrapped)


class DurableEngine:
    """Runs orchestrator instances against a history store."""

    def __init__(self, store: Optional[HistoryStore] = None,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
                 clock: Callable[[], float] = time.time) -> None:
        self.store = store or InMemoryHistoryStore()
        self._sleep = sleep
        self._clock = clock
        self._orchestrators: Dict[str, Orchestrator] = {}
        self._activities: Dict[str, Activity] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._terminate_listeners: List[Callable[[str], None]] = []

    def register_orchestrator(self, name: str, fn: Orchestrator) -> None:
        self._orchestrators[name] = fn

    def register_activity(self, name: str, fn: Activity) -> None:
        self._activities[name] = fn

    def add_terminate_listener(self, listener: Callable[[str], None]) -> None:
        """Call ``listener(instance_id)`` when an instance is terminated.

        Cancelling the instance task does not stop an activity already running
        in a worker thread; listeners let such activities stop cooperatively.
        """
        self._terminate_listeners.append(listener)

    # Instance management

    def start_new(self, name: str, input: Any = None, instance_id: Optional[str] = None) -> str:
        """Record a new pending instance and return its id."""
        if name not in self._orchestrators:
            raise WorkflowError(f"Unknown orchestrator '{name}'")
        instance_id = instance_id or uuid.uuid4().hex
        if self.store.load_state(instance_id) is not None:
            raise WorkflowError(f"Instance {instance_id} already exists")
        now = self._clock()
        self.store.save_state(OrchestrationState(
            instance_id=instance_id,
            name=name,
            status=OrchestrationStatus.PENDING,
            input=input,
            created_at=now,
            updated_at=now,
        ))
        logger.info(f"Started orchestration '{name}' with ID: {instance_id}")
        return instance_id

    def schedule(self, name: str, input: Any = None, instance_id: Optional[str] = None) -> str:
        """Start a new instance and run it in the background of the running loop."""
        instance_id = self.start_new(name, input, instance_id)
        self._spawn(instance_id)
        return instance_id

    def _spawn(self, instance_id: str) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self.run(instance_id))
        self._tasks[instance_id] = task
        task.add_done_callback(lambda _t: self._tasks.pop(instance_id, None))
        return task

    def resume_unfinished(self) -> List[str]:
        """Replay every pending or running instance, e.g. after a restart."""
        resumed = []
        for state in self.store.list_states():
            if state.status in (OrchestrationStatus.PENDING, OrchestrationStatus.RUNNING) \
                    and state.instance_id not in self._tasks \
                    and state.name in self._orchestrators:
                self._spawn(state.instance_id)
                resumed.append(state.instance_id)
        if resumed:
            logger.info(f"Resuming {len(resumed)} unfinished orchestration(s)")
        return resumed

    def get_status(self, instance_id: str) -> Optional[OrchestrationState]:
        return self.store.load_state(instance_id)

    async def terminate(self, instance_id: str, reason: str = "Terminated") -> OrchestrationState:
        state = self.store.load_state(instance_id)
        if state is None:
            raise WorkflowError(f"Unknown orchestration instance {instance_id}")
        if state.is_terminal:
            return state

        for listener in self._terminate_listeners:
            listener(instance_id)

        task = self._tasks.get(instance_id)
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            state = self.store.load_state(instance_id)

        if not state.is_terminal:
            self._finish(state, OrchestrationStatus.TERMINATED, failure=reason)
        logger.info(f"Terminated orchestration {instance_id}: {reason}")
        return state

    # Execution

    async def run(self, instance_id: str) -> OrchestrationState:
        """Run or resume an instance until it completes, fails or is cancelled."""
        state = self.store.load_state(instance_id)
        if state is None:
            raise WorkflowError(f"Unknown orchestration instance {instance_id}")
        if state.is_terminal:
            return state
        orchestrator = self._orchestrators.get(state.name)
        if orchestrator is None:
            raise WorkflowError(f"Unknown orchestrator '{state.name}'")

        state.status = OrchestrationStatus.RUNNING
        state.updated_at = self._clock()
        self.store.save_state(state)

        history = self.store.load_history(instance_id)
        context = OrchestrationContext(instance_id, state.name)

        try:
            output = await self._drive(context, orchestrator, state.input, history)
        except asyncio.CancelledError:
            # Status stays Running; terminate() records Terminated
            logger.info(f"Orchestration {instance_id} interrupted, will resume from history")
            raise
        except Exception as e:
            logger.error(f"Orchestration {instance_id} failed: {e}")
            self._finish(state, OrchestrationStatus.FAILED, failure=str(e))
            return state

        self._finish(state, OrchestrationStatus.COMPLETED, output=output)
        return state

    def _finish(self, state: OrchestrationState, status: OrchestrationStatus,
                output: Any = None, failure: Optional[str] = None) -> None:
        state.status = status
        state.output = output
        state.failure = failure
        state.updated_at = self._clock()
        self.store.save_state(state)

    def _record(self, context: OrchestrationContext, history: List[Dict[str, Any]],
                event: Dict[str, Any]) -> None:
        self.store.append_event(context.instance_id, event)
        history.append(event)

    async def _drive(self, context: OrchestrationContext, orchestrator: Orchestrator,
                     input: Any, history: List[Dict[str, Any]]) -> Any:
        cursor = 0
        context.is_replaying = len(history) > 0
        generator = orchestrator(context, input)
        if not inspect.isgenerator(generator):
            return generator

        send_value: Any = None
        to_throw: Optional[BaseException] = None

        while True:
            context.is_replaying = cursor < len(history)
            try:
                if to_throw is not None:
                    task = generator.throw(to_throw)
                else:
                    task = generator.send(send_value)
            except StopIteration as stop:
                return stop.value
            send_value, to_throw = None, None

            if isinstance(task, ActivityTask):
                if cursor < len(history):
                    event = self._expect(history[cursor], (ACTIVITY_COMPLETED, ACTIVITY_FAILED), task.name)
                else:
                    event = await self._execute_activity(task)
                    self._record(context, history, event)
                cursor += 1
                if event["type"] == ACTIVITY_COMPLETED:
                    send_value = event["result"]
                else:
                    to_throw = ActivityFailedError(
                        task.name, event["error"], event.get("error_type", ""), event.get("message", "")
                    )

            elif isinstance(task, TimerTask):
                if cursor < len(history):
                    fire_at = self._expect(history[cursor], (TIMER_CREATED,))["fire_at"]
                else:
                    fire_at = self._clock() + task.seconds
                    self._record(context, history, {"type": TIMER_CREATED, "fire_at": fire_at})
                cursor += 1

                if cursor < len(history):
                    self._expect(history[cursor], (TIMER_FIRED,))
                else:
                    await self._sleep(max(0.0, fire_at - self._clock()))
                    self._record(context, history, {"type": TIMER_FIRED, "fire_at": fire_at})
                cursor += 1

            else:
                raise WorkflowError(f"Orchestrator yielded unsupported value {task!r}")

    @staticmethod
    def _expect(event: Dict[str, Any], types: tuple, name: Optional[str] = None) -> Dict[str, Any]:
        if event.get("type") not in types or (name is not None and event.get("name") != name):
            raise WorkflowError(
                f"Non-deterministic orchestration: history has {event.get('type')} "
                f"{event.get('name', '')!s} where {'/'.join(types)} {name or ''} was expected"
            )
        return event

    async def _execute_activity(self, task: ActivityTask) -> Dict[str, Any]:
        fn = self._activities.get(task.name)
        if fn is None:
            raise WorkflowError(f"Unknown activity '{task.name}'")

        retry = task.retry or RetryOptions()
        delay = retry.first_retry_interval
        attempt = 1
        while True:
            try:
                if inspect.iscoroutinefunction(fn):
                    result = await fn(task.input)
                else:
                    result = await asyncio.to_thread(fn, task.input)
                return {"type": ACTIVITY_COMPLETED, "name": task.name, "result": result}
            except Exception as e:
                if attempt >= retry.max_attempts or isinstance(e, retry.non_retryable):
                    logger.error(f"Activity '{task.name}' failed after {attempt} attempt(s): {e}")
                    return {
                        "type": ACTIVITY_FAILED,
                        "name": task.name,
                        "error": f"{type(e).__name__}: {e}",
                        "error_type": type(e).__name__,
                        "message": str(e),
                    }
                logger.warning(
                    f"Activity '{task.name}' failed (attempt {attempt}/{retry.max_attempts}), "
                    f"retrying in {delay} seconds: {e}"
                )
                await self._sleep(delay)
                delay *= retry.backoff_coefficient
                attempt += 1
