"""In-memory registry of agent research tasks.

Tasks are capacity bounded (creation past the limit fails, nothing is
evicted) and expire after a period without reads or writes. A background
sweep removes expired tasks; expired tasks are invisible to callers even
before the sweep reaches them.
"""

from __future__ import annotations

import asyncio
import contextlib
import threading
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable

from loguru import logger

from webscout.config import settings
from webscout.errors import CapacityError, NotFoundError
from webscout.models.memory import CURRENT_STEP, GOAL, AgentTask, TaskStatus, WorkflowStep

Clock = Callable[[], float]


def _new_task_id() -> str:
    return uuid.uuid4().hex


def _to_datetime(ts: float) -> datetime:
    return datetime.fromtimestamp(ts, tz=timezone.utc)


class AgentTaskStore:
    def __init__(
        self,
        *,
        max_tasks: int | None = None,
        task_timeout_seconds: float | None = None,
        sweep_interval_seconds: float | None = None,
        clock: Clock | None = None,
        id_factory: Callable[[], str] | None = None,
    ):
        self.max_tasks = max_tasks or settings.task_max_tasks
        self.task_timeout_seconds = task_timeout_seconds or settings.task_timeout_seconds
        self.sweep_interval_seconds = sweep_interval_seconds or settings.task_sweep_interval_seconds
        self._clock = clock or time.time
        self._id_factory = id_factory or _new_task_id
        self._tasks: dict[str, AgentTask] = {}
        self._lock = threading.Lock()
        self._sweep_task: asyncio.Task | None = None

    def start_agent_task(self, goal: str, options: dict[str, Any] | None = None) -> str:
        now = self._clock()
        with self._lock:
            self._purge_expired(now)
            if len(self._tasks) >= self.max_tasks:
                raise CapacityError(self.max_tasks)
            task_id = self._id_factory()
            self._tasks[task_id] = AgentTask(
                task_id=task_id,
                created=now,
                last_accessed=now,
                options=dict(options or {}),
                memory={GOAL: goal, CURRENT_STEP: WorkflowStep.INITIALIZED.value},
            )
        logger.info(f"Started agent task {task_id}: {goal[:80]}")
        return task_id

    def write_to_memory(self, task_id: str, key: str, value: Any) -> None:
        with self._lock:
            task = self._live_task(task_id)
            task.memory[key] = value

    def read_from_memory(self, task_id: str, key: str | None = None) -> Any:
        """Value under ``key`` (None when unset) or a shallow copy of the whole memory."""
        with self._lock:
            task = self._live_task(task_id)
            if key is None:
                return dict(task.memory)
            return task.memory.get(key)

    def get_options(self, task_id: str) -> dict[str, Any]:
        with self._lock:
            return dict(self._live_task(task_id).options)

    def end_agent_task(self, task_id: str) -> None:
        with self._lock:
            if self._tasks.pop(task_id, None) is None:
                raise NotFoundError(task_id)
        logger.info(f"Ended agent task {task_id}")

    def get_task_status(self, task_id: str) -> TaskStatus | None:
        now = self._clock()
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None or self._is_expired(task, now):
                return None
            return TaskStatus(
                task_id=task_id,
                current_step=str(task.memory.get(CURRENT_STEP, WorkflowStep.INITIALIZED.value)),
                memory_keys=tuple(task.memory.keys()),
                created_at=_to_datetime(task.created),
                last_accessed=_to_datetime(task.last_accessed),
            )

    def sweep_expired(self) -> int:
        with self._lock:
            removed = self._purge_expired(self._clock())
        if removed:
            logger.info(f"Swept {removed} expired agent tasks")
        return removed

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)

    def start(self) -> None:
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.create_task(self._sweep_loop())

    async def stop(self) -> None:
        if self._sweep_task is None:
            return
        self._sweep_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._sweep_task
        self._sweep_task = None

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_seconds)
            self.sweep_expired()

    def _is_expired(self, task: AgentTask, now: float) -> bool:
        return now - task.last_accessed > self.task_timeout_seconds

    def _live_task(self, task_id: str) -> AgentTask:
        # Caller holds the lock.
        now = self._clock()
        task = self._tasks.get(task_id)
        if task is None or self._is_expired(task, now):
            raise NotFoundError(task_id)
        task.last_accessed = now
        return task

    def _purge_expired(self, now: float) -> int:
        # Caller holds the lock.
        expired = [tid for tid, task in self._tasks.items() if self._is_expired(task, now)]
        for tid in expired:
            del self._tasks[tid]
        return len(expired)
