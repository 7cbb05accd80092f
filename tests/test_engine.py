import asyncio

import pytest

from issuesync.orchestration import (
    ActivityFailedError,
    DurableEngine,
    InMemoryHistoryStore,
    OrchestrationStatus,
    RetryOptions,
)
from issuesync.common import WorkflowError


class FakeTime:
    def __init__(self, now=1000.0):
        self.now = now
        self.sleeps = []

    def clock(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def two_step_flow(ctx, input):
    first = yield ctx.call_activity("Add", input)
    second = yield ctx.call_activity("Add", first)
    return second


def make_engine(store=None, fake=None, calls=None):
    fake = fake or FakeTime()
    engine = DurableEngine(store or InMemoryHistoryStore(), sleep=fake.sleep, clock=fake.clock)
    engine.register_orchestrator("TwoStep", two_step_flow)

    def add(value):
        if calls is not None:
            calls.append(value)
        return value + 1

    engine.register_activity("Add", add)
    return engine


def test_runs_to_completion():
    calls = []
    engine = make_engine(calls=calls)
    instance_id = engine.start_new("TwoStep", 1)

    state = asyncio.run(engine.run(instance_id))

    assert state.status == OrchestrationStatus.COMPLETED
    assert state.output == 3
    assert calls == [1, 2]
    history = engine.store.load_history(instance_id)
    assert [event["type"] for event in history] == ["ActivityCompleted", "ActivityCompleted"]


def test_replay_skips_completed_activities():
    store = InMemoryHistoryStore()
    store_engine = make_engine(store)
    instance_id = store_engine.start_new("TwoStep", 1)
    # A previous process finished the first step before stopping
    store.append_event(instance_id, {"type": "ActivityCompleted", "name": "Add", "result": 2})

    calls = []
    state = asyncio.run(make_engine(store, calls=calls).run(instance_id))

    assert state.output == 3
    assert calls == [2]


def test_completed_instance_is_not_rerun():
    calls = []
    engine = make_engine(calls=calls)
    instance_id = engine.start_new("TwoStep", 1)
    asyncio.run(engine.run(instance_id))
    asyncio.run(engine.run(instance_id))
    assert calls == [1, 2]


def test_mismatched_history_fails_instance():
    store = InMemoryHistoryStore()
    engine = make_engine(store)
    instance_id = engine.start_new("TwoStep", 1)
    store.append_event(instance_id, {"type": "ActivityCompleted", "name": "Other", "result": 2})

    state = asyncio.run(engine.run(instance_id))

    assert state.status == OrchestrationStatus.FAILED
    assert "Non-deterministic" in state.failure


def test_timer_sleeps_until_fire_time_and_replays():
    fake = FakeTime()
    store = InMemoryHistoryStore()

    def waiting_flow(ctx, input):
        yield ctx.create_timer(30)
        return "done"

    engine = DurableEngine(store, sleep=fake.sleep, clock=fake.clock)
    engine.register_orchestrator("Wait", waiting_flow)
    instance_id = engine.start_new("Wait")

    assert asyncio.run(engine.run(instance_id)).output == "done"
    assert fake.sleeps == [30]
    assert [e["type"] for e in store.load_history(instance_id)] == ["TimerCreated", "TimerFired"]

    # Replaying a fired timer does not sleep again
    state = store.load_state(instance_id)
    state.status = OrchestrationStatus.RUNNING
    store.save_state(state)
    asyncio.run(engine.run(instance_id))
    assert fake.sleeps == [30]


def test_activity_retries_with_backoff():
    fake = FakeTime()
    attempts = []

    def flaky(_input):
        attempts.append(1)
        if len(attempts) < 3:
            raise RuntimeError("transient")
        return "ok"

    def flow(ctx, input):
        result = yield ctx.call_activity("Flaky", retry=RetryOptions(max_attempts=3, first_retry_interval=1))
        return result

    engine = DurableEngine(sleep=fake.sleep, clock=fake.clock)
    engine.register_orchestrator("Flow", flow)
    engine.register_activity("Flaky", flaky)

    state = asyncio.run(engine.run(engine.start_new("Flow")))

    assert state.output == "ok"
    assert fake.sleeps == [1, 2.0]


def test_activity_failure_is_raised_in_orchestrator():
    def broken(_input):
        raise RuntimeError("boom")

    def flow(ctx, input):
        try:
            yield ctx.call_activity("Broken")
        except ActivityFailedError as e:
            return e.detail
        return "unreachable"

    engine = DurableEngine(sleep=FakeTime().sleep)
    engine.register_orchestrator("Flow", flow)
    engine.register_activity("Broken", broken)

    state = asyncio.run(engine.run(engine.start_new("Flow")))

    assert state.status == OrchestrationStatus.COMPLETED
    assert state.output == "RuntimeError: boom"


def test_unknown_orchestrator_is_rejected():
    with pytest.raises(WorkflowError):
        DurableEngine().start_new("Missing")


def test_terminate_cancels_running_instance():
    def forever(ctx, input):
        yield ctx.create_timer(3600)
        return "late"

    async def main():
        engine = DurableEngine()
        engine.register_orchestrator("Forever", forever)
        instance_id = engine.schedule("Forever")
        for _ in range(5):
            await asyncio.sleep(0)
        assert engine.get_status(instance_id).status == OrchestrationStatus.RUNNING
        state = await engine.terminate(instance_id, "stop")
        return state

    state = asyncio.run(main())
    assert state.status == OrchestrationStatus.TERMINATED


def test_resume_unfinished_runs_pending_instances():
    async def main():
        engine = make_engine()
        instance_id = engine.start_new("TwoStep", 5)
        assert engine.resume_unfinished() == [instance_id]
        for _ in range(200):
            if engine.get_status(instance_id).is_terminal:
                break
            await asyncio.sleep(0.01)
        return engine.get_status(instance_id)

    state = asyncio.run(main())
    assert state.status == OrchestrationStatus.COMPLETED
    assert state.output == 7


def test_non_retryable_error_fails_on_first_attempt():
    fake = FakeTime()
    attempts = []

    class Fatal(Exception):
        pass

    def fatal(_input):
        attempts.append(1)
        raise Fatal("no access")

    def flow(ctx, input):
        retry = RetryOptions(max_attempts=3, first_retry_interval=1, non_retryable=(Fatal,))
        try:
            yield ctx.call_activity("Fatal", retry=retry)
        except ActivityFailedError as e:
            return [e.error_type, e.message]
        return "unreachable"

    engine = DurableEngine(sleep=fake.sleep, clock=fake.clock)
    engine.register_orchestrator("Flow", flow)
    engine.register_activity("Fatal", fatal)

    state = asyncio.run(engine.run(engine.start_new("Flow")))

    assert state.output == ["Fatal", "no access"]
    assert attempts == [1]
    assert fake.sleeps == []


def test_cancelled_run_stays_running_and_resumes():
    store = InMemoryHistoryStore()
    fake = FakeTime()

    def waiting_flow(ctx, input):
        yield ctx.create_timer(3600)
        return "done"

    async def park(_seconds):
        await asyncio.Event().wait()

    async def shutdown_mid_timer():
        engine = DurableEngine(store, sleep=park, clock=fake.clock)
        engine.register_orchestrator("Wait", waiting_flow)
        instance_id = engine.start_new("Wait")
        task = asyncio.get_running_loop().create_task(engine.run(instance_id))
        for _ in range(5):
            await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        return instance_id

    instance_id = asyncio.run(shutdown_mid_timer())
    assert store.load_state(instance_id).status == OrchestrationStatus.RUNNING

    async def restart():
        engine = DurableEngine(store, sleep=fake.sleep, clock=fake.clock)
        engine.register_orchestrator("Wait", waiting_flow)
        assert engine.resume_unfinished() == [instance_id]
        for _ in range(200):
            if engine.get_status(instance_id).is_terminal:
                break
            await asyncio.sleep(0.01)
        return engine.get_status(instance_id)

    state = asyncio.run(restart())
    assert state.status == OrchestrationStatus.COMPLETED
    assert state.output == "done"
    assert fake.sleeps == [3600]
    assert [e["type"] for e in store.load_history(instance_id)] == ["TimerCreated", "TimerFired"]


def test_terminate_notifies_listeners():
    def forever(ctx, input):
        yield ctx.create_timer(3600)
        return "late"

    notified = []

    async def main():
        engine = DurableEngine()
        engine.register_orchestrator("Forever", forever)
        engine.add_terminate_listener(notified.append)
        instance_id = engine.schedule("Forever")
        for _ in range(5):
            await asyncio.sleep(0)
        await engine.terminate(instance_id, "stop")
        return instance_id

    instance_id = asyncio.run(main())
    assert notified == [instance_id]
