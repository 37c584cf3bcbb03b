from __future__ import annotations

import pytest

from webscout.errors import CapacityError, NotFoundError
from webscout.models.memory import CURRENT_STEP, GOAL
from webscout.services.task_store import AgentTaskStore


class FakeClock:
    def __init__(self):
        self.now = 1_700_000_000.0

    def __call__(self) -> float:
        return self.now


def _store(**kwargs) -> tuple[AgentTaskStore, FakeClock]:
    clock = FakeClock()
    kwargs.setdefault("max_tasks", 3)
    kwargs.setdefault("task_timeout_seconds", 1800)
    return AgentTaskStore(clock=clock, **kwargs), clock


def test_new_task_memory_holds_goal_and_initial_step():
    store, _ = _store()
    task_id = store.start_agent_task("latest acme news", {"max_urls": 3})

    assert store.read_from_memory(task_id, GOAL) == "latest acme news"
    assert store.read_from_memory(task_id, CURRENT_STEP) == "initialized"
    assert store.get_options(task_id) == {"max_urls": 3}


def test_write_then_read_round_trip():
    store, _ = _store()
    task_id = store.start_agent_task("goal")
    value = {"nested": [1, 2]}
    store.write_to_memory(task_id, "notes", value)

    assert store.read_from_memory(task_id, "notes") is value
    assert store.read_from_memory(task_id, "missing") is None


def test_full_read_returns_a_shallow_copy():
    store, _ = _store()
    task_id = store.start_agent_task("goal")
    snapshot = store.read_from_memory(task_id)
    snapshot["extra"] = 1

    assert "extra" not in store.read_from_memory(task_id)


def test_unknown_and_ended_tasks_raise_not_found():
    store, _ = _store()
    with pytest.raises(NotFoundError):
        store.read_from_memory("nope")

    task_id = store.start_agent_task("goal")
    store.end_agent_task(task_id)
    with pytest.raises(NotFoundError):
        store.write_to_memory(task_id, "k", "v")
    with pytest.raises(NotFoundError):
        store.end_agent_task(task_id)
    assert store.get_task_status(task_id) is None


def test_capacity_is_enforced_without_eviction():
    store, _ = _store(max_tasks=2)
    first = store.start_agent_task("one")
    store.start_agent_task("two")

    with pytest.raises(CapacityError):
        store.start_agent_task("three")
    assert store.read_from_memory(first, GOAL) == "one"


def test_idle_tasks_expire_and_free_capacity():
    store, clock = _store(max_tasks=1, task_timeout_seconds=60)
    task_id = store.start_agent_task("one")

    clock.now += 61
    assert store.get_task_status(task_id) is None
    with pytest.raises(NotFoundError):
        store.read_from_memory(task_id)

    replacement = store.start_agent_task("two")
    assert store.read_from_memory(replacement, GOAL) == "two"
    assert len(store) == 1


def test_access_keeps_a_task_alive():
    store, clock = _store(task_timeout_seconds=60)
    task_id = store.start_agent_task("goal")

    for _ in range(3):
        clock.now += 50
        store.write_to_memory(task_id, "tick", clock.now)

    assert store.get_task_status(task_id) is not None


def test_sweep_removes_only_expired_tasks():
    store, clock = _store(task_timeout_seconds=60)
    old = store.start_agent_task("old")
    clock.now += 40
    fresh = store.start_agent_task("fresh")
    clock.now += 30

    assert store.sweep_expired() == 1
    assert store.get_task_status(old) is None
    assert store.get_task_status(fresh) is not None


def test_status_reports_step_and_keys():
    store, _ = _store()
    task_id = store.start_agent_task("goal")
    store.write_to_memory(task_id, CURRENT_STEP, "searching")

    status = store.get_task_status(task_id)
    assert status.task_id == task_id
    assert status.current_step == "searching"
    assert set(status.memory_keys) == {GOAL, CURRENT_STEP}
    assert status.created_at <= status.last_accessed
