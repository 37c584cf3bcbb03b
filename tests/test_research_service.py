from __future__ import annotations

import pytest
from pydantic import ValidationError

from webscout.agents.research_service import ResearchService
from webscout.errors import NotFoundError
from webscout.models.memory import WorkflowStep
from webscout.research_core.coordinator import ExtractionCoordinator
from webscout.research_core.models.interfaces import ExtractedDocument, ExtractionMethod, SearchResult
from webscout.services.task_store import AgentTaskStore

BODY = (
    "Independent reviewers measured the battery life of the new laptop at just over fourteen hours of video "
    "playback, well ahead of the previous model and most competitors in its price range."
)


class StubReasoner:
    async def complete(self, prompt, *, temperature=0.3, max_tokens=1000):
        if "Write one web search query" in prompt:
            return "laptop battery review"
        if "Rank the candidates" in prompt:
            return "[]"
        return "Battery life is about fourteen hours [1]."


class StubSearch:
    async def search(self, query, *, limit=10, time_filter=None):
        return [SearchResult(title="Review", url="https://reviews.example/laptop")]


class StubExtractor:
    def __init__(self, method):
        self.method = method

    async def extract(self, url, options):
        return ExtractedDocument(url=url, title="Laptop review", content=BODY, extraction_method=self.method)


def _service() -> ResearchService:
    coordinator = ExtractionCoordinator(
        static=StubExtractor(ExtractionMethod.STATIC),
        dynamic=StubExtractor(ExtractionMethod.DYNAMIC),
    )
    return ResearchService(
        store=AgentTaskStore(max_tasks=5),
        coordinator=coordinator,
        reasoner=StubReasoner(),
        search_provider=StubSearch(),
    )


def test_start_validates_goal_and_options():
    service = _service()

    with pytest.raises(ValueError):
        service.start_agent_task("   ")
    with pytest.raises(ValidationError):
        service.start_agent_task("laptop battery", {"max_urls": 0})

    task_id = service.start_agent_task("  laptop battery  ", {"time_filter": "month"})
    assert service.read_from_memory(task_id, "goal") == "laptop battery"
    assert service.store.get_options(task_id)["time_filter"] == "month"


def test_memory_operations_pass_through_to_store():
    service = _service()
    task_id = service.start_agent_task("goal")

    service.write_to_memory(task_id, "notes", ["a"])
    assert service.read_from_memory(task_id, "notes") == ["a"]
    assert "notes" in service.read_from_memory(task_id)

    service.end_agent_task(task_id)
    assert service.get_task_status(task_id) is None
    with pytest.raises(NotFoundError):
        service.read_from_memory(task_id)


@pytest.mark.asyncio
async def test_execute_agent_workflow_end_to_end():
    async with _service() as service:
        task_id = service.start_agent_task("How long does the new laptop battery last?")
        result = await service.execute_agent_workflow(task_id, {"max_urls": 2})

        assert result.status is WorkflowStep.COMPLETED
        assert result.final_synthesis == "Battery life is about fourteen hours [1]."
        assert [s.document.url for s in result.sources] == ["https://reviews.example/laptop"]
        assert service.get_task_status(task_id).current_step == "completed"
        service.end_agent_task(task_id)
