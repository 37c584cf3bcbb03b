from __future__ import annotations

from typing import Any

from loguru import logger

from webscout.agents.orchestrator import WorkflowEngine
from webscout.llm_client import OpenRouterReasoner, ReasoningClient
from webscout.models.memory import TaskStatus, WorkflowResult
from webscout.models.schemas import TaskOptions
from webscout.research_core.coordinator import ExtractionCoordinator
from webscout.services.task_store import AgentTaskStore
from webscout.tools.search_provider import SearchProvider, WebSearchProvider


class ResearchService:
    """Caller-facing operations over one task store, coordinator and engine."""

    def __init__(
        self,
        *,
        store: AgentTaskStore | None = None,
        coordinator: ExtractionCoordinator | None = None,
        reasoner: ReasoningClient | None = None,
        search_provider: SearchProvider | None = None,
        engine: WorkflowEngine | None = None,
    ):
        self.store = store or AgentTaskStore()
        self.coordinator = coordinator or ExtractionCoordinator()
        self.engine = engine or WorkflowEngine(
            store=self.store,
            coordinator=self.coordinator,
            reasoner=reasoner or OpenRouterReasoner(),
            search_provider=search_provider or WebSearchProvider(),
        )

    def start_agent_task(self, goal: str, options: TaskOptions | dict[str, Any] | None = None) -> str:
        if not goal or not goal.strip():
            raise ValueError("goal must be a non-empty string")
        if isinstance(options, TaskOptions):
            parsed = options
        else:
            parsed = TaskOptions.model_validate(options or {})
        return self.store.start_agent_task(goal.strip(), parsed.model_dump())

    def write_to_memory(self, task_id: str, key: str, value: Any) -> None:
        self.store.write_to_memory(task_id, key, value)

    def read_from_memory(self, task_id: str, key: str | None = None) -> Any:
        return self.store.read_from_memory(task_id, key)

    def end_agent_task(self, task_id: str) -> None:
        self.store.end_agent_task(task_id)

    def get_task_status(self, task_id: str) -> TaskStatus | None:
        return self.store.get_task_status(task_id)

    async def execute_agent_workflow(
        self,
        task_id: str,
        options: TaskOptions | dict[str, Any] | None = None,
    ) -> WorkflowResult:
        if options is not None and not isinstance(options, TaskOptions):
            options = TaskOptions.model_validate(options)
        result = await self.engine.execute(task_id, options)
        logger.info(
            f"Workflow for task {task_id} finished with status {result.status.value}: "
            f"{len(result.sources)} sources, {len(result.failed_urls)} failed"
        )
        return result

    async def start(self) -> None:
        self.store.start()
        self.coordinator.start()

    async def aclose(self) -> None:
        await self.store.stop()
        await self.coordinator.aclose()

    async def __aenter__(self) -> "ResearchService":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
