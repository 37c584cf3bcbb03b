"""Four-phase research workflow: search, analyze, extract, synthesize."""

from __future__ import annotations

import re
from datetime import date
from typing import Any, Callable

from loguru import logger

from webscout.agents.url_selector import URLSelector
from webscout.config import settings
from webscout.errors import BlockedSiteError, ExtractionError, LLMError, NotFoundError, describe_failure
from webscout.llm_client import ReasoningClient
from webscout.models import memory as keys
from webscout.models.memory import ExtractedSource, WorkflowResult, WorkflowStep
from webscout.models.schemas import TaskOptions, UrlAnalysis
from webscout.research_core.coordinator import ExtractionCoordinator
from webscout.research_core.extract.quality import QualityThresholds, assess
from webscout.research_core.models.interfaces import ExtractionOptions
from webscout.research_core.routing import MethodClassifier, workflow_classifier
from webscout.services.logger import log_research_step
from webscout.services.prompt_store import render_prompt
from webscout.services.task_store import AgentTaskStore
from webscout.tools.content_cleaner import cap_length, clean_for_synthesis
from webscout.tools.search_provider import SearchProvider

_QUERY_LABEL_RE = re.compile(r"^\s*(?:search\s+)?query\s*:\s*", re.IGNORECASE)
_QUOTE_CHARS = "\"'`“”‘’"


def clean_search_query(raw: str) -> str:
    """First non-empty line of the model output without quoting or a ``Query:`` label."""
    for line in raw.strip().splitlines():
        line = line.strip().strip(_QUOTE_CHARS).strip()
        line = _QUERY_LABEL_RE.sub("", line)
        line = line.strip().strip(_QUOTE_CHARS).strip()
        if line:
            return line
    return ""


class WorkflowEngine:
    """Drives one task through its phases, reading and writing only via the store."""

    def __init__(
        self,
        *,
        store: AgentTaskStore,
        coordinator: ExtractionCoordinator,
        reasoner: ReasoningClient,
        search_provider: SearchProvider,
        url_selector: URLSelector | None = None,
        method_classifier: MethodClassifier | None = None,
        thresholds: QualityThresholds | None = None,
        today: Callable[[], date] = date.today,
    ):
        self.store = store
        self.coordinator = coordinator
        self.reasoner = reasoner
        self.search_provider = search_provider
        self.url_selector = url_selector or URLSelector(settings.blocked_domain_set)
        self.method_classifier = method_classifier or workflow_classifier()
        self.thresholds = thresholds or coordinator.thresholds
        self._today = today

    async def execute(self, task_id: str, options: TaskOptions | None = None) -> WorkflowResult:
        if options is None:
            options = TaskOptions.model_validate(self.store.get_options(task_id))
        try:
            await self._search(task_id, options)
            await self._analyze(task_id)
            await self._extract(task_id, options)
            await self._synthesize(task_id)
            self._set_step(task_id, WorkflowStep.COMPLETED)
        except NotFoundError:
            logger.warning(f"Task {task_id} disappeared while its workflow was running")
            raise
        except Exception as exc:
            logger.exception(f"Workflow failed for task {task_id}")
            self._record_failure(task_id, exc)
        return self._result(task_id)

    async def _search(self, task_id: str, options: TaskOptions) -> None:
        self._set_step(task_id, WorkflowStep.SEARCHING)
        goal = str(self.store.read_from_memory(task_id, keys.GOAL) or "")

        prompt = render_prompt(
            "workflow.search_query",
            goal=goal,
            today_iso=self._today().isoformat(),
            time_filter=options.time_filter or "none",
        )
        try:
            query = clean_search_query(await self.reasoner.complete(prompt, temperature=0.3, max_tokens=100))
        except LLMError as exc:
            logger.warning(f"Query generation failed for task {task_id} ({exc}); searching with the goal")
            query = ""
        query = query or goal
        self.store.write_to_memory(task_id, keys.SEARCH_QUERY, query)

        results = await self.search_provider.search(
            query,
            limit=options.search_limit,
            time_filter=options.time_filter,
        )
        self.store.write_to_memory(
            task_id,
            keys.SEARCH_RESULTS,
            [
                {"title": r.title, "url": r.url, "description": r.description, "published": r.published}
                for r in results
            ],
        )
        urls = self.url_selector.select_candidates(results, options.max_urls)
        self.store.write_to_memory(task_id, keys.URLS_TO_VISIT, urls)
        log_research_step(
            task_id,
            WorkflowStep.SEARCHING.value,
            "completed",
            {"query": query, "results": len(results), "urls": len(urls)},
        )

    async def _analyze(self, task_id: str) -> None:
        self._set_step(task_id, WorkflowStep.ANALYZING)
        candidates: list[str] = list(self.store.read_from_memory(task_id, keys.URLS_TO_VISIT) or [])
        if not candidates:
            ranking: list[UrlAnalysis] = []
        else:
            ranking = await self._rank(task_id, candidates)
        self.store.write_to_memory(task_id, keys.URL_ANALYSIS, [item.model_dump() for item in ranking])
        log_research_step(task_id, WorkflowStep.ANALYZING.value, "completed", {"ranked": len(ranking)})

    async def _rank(self, task_id: str, candidates: list[str]) -> list[UrlAnalysis]:
        goal = str(self.store.read_from_memory(task_id, keys.GOAL) or "")
        results = self.store.read_from_memory(task_id, keys.SEARCH_RESULTS) or []
        described = {r.get("url"): r for r in results if isinstance(r, dict)}
        lines = []
        for url in candidates:
            info = described.get(url, {})
            lines.append(f"- {url}\n  title: {info.get('title', '')}\n  snippet: {info.get('description', '')}")
        prompt = render_prompt("workflow.url_analysis", goal=goal, candidates="\n".join(lines))
        try:
            raw = await self.reasoner.complete(prompt, temperature=0.2, max_tokens=1200)
        except LLMError as exc:
            logger.warning(f"URL ranking failed for task {task_id} ({exc}); using discovery order")
            return self.url_selector.fallback_ranking(candidates)
        return self.url_selector.parse_ranking(raw, candidates)

    async def _extract(self, task_id: str, options: TaskOptions) -> None:
        self._set_step(task_id, WorkflowStep.EXTRACTING)
        ranking = [
            UrlAnalysis.model_validate(item)
            for item in self.store.read_from_memory(task_id, keys.URL_ANALYSIS) or []
        ]
        ranking.sort(key=lambda item: item.priority)
        extract_options = ExtractionOptions.for_summarization(options.extract_max_length)

        extracted: dict[str, ExtractedSource] = {}
        failed: list[str] = []
        errors: dict[str, str] = {}
        for analysis in ranking:
            url = analysis.url
            if url in extracted or url in failed:
                continue
            outcome = await self._extract_one(url, analysis, extract_options)
            if isinstance(outcome, ExtractedSource):
                extracted[url] = outcome
            else:
                failed.append(url)
                errors[url] = outcome

        self.store.write_to_memory(task_id, keys.EXTRACTED_CONTENT, extracted)
        self.store.write_to_memory(task_id, keys.FAILED_URLS, failed)
        self.store.write_to_memory(task_id, keys.EXTRACTION_ERRORS, errors)
        log_research_step(
            task_id,
            WorkflowStep.EXTRACTING.value,
            "completed",
            {"extracted": len(extracted), "failed": len(failed)},
        )

    async def _extract_one(
        self,
        url: str,
        analysis: UrlAnalysis,
        extract_options: ExtractionOptions,
    ) -> ExtractedSource | str:
        """An ExtractedSource on success, otherwise the caller-visible failure message."""
        if self.url_selector.is_blocked(url):
            return describe_failure(BlockedSiteError(url, "domain is on the blocklist"))
        method = self.method_classifier.classify(url)
        try:
            document = await self.coordinator.extract(url, extract_options, method=method)
        except ExtractionError as exc:
            return exc.user_message
        except Exception as exc:
            logger.opt(exception=exc).error(f"Unexpected extraction error for {url}")
            return describe_failure(exc, url)

        verdict = assess(document.content, self.thresholds)
        if not verdict.acceptable and not (verdict.paywalled and document.content.strip()):
            return f"no content found: {url} returned unusable content ({verdict.reason})"
        return ExtractedSource(
            document=document,
            priority=analysis.priority,
            relevance_score=analysis.relevance_score,
            limited=verdict.paywalled,
        )

    async def _synthesize(self, task_id: str) -> None:
        self._set_step(task_id, WorkflowStep.SYNTHESIZING)
        goal = str(self.store.read_from_memory(task_id, keys.GOAL) or "")
        extracted: dict[str, ExtractedSource] = self.store.read_from_memory(task_id, keys.EXTRACTED_CONTENT) or {}

        blocks: list[str] = []
        for source in sorted(extracted.values(), key=lambda s: s.priority):
            text = cap_length(clean_for_synthesis(source.document.content), settings.synthesis_source_char_budget)
            if not text:
                continue
            marker = " [LIMITED: preview only]" if source.limited else ""
            blocks.append(
                f"[{len(blocks) + 1}] {source.document.title}{marker}\nURL: {source.document.url}\n{text}"
            )

        if not blocks:
            synthesis = self._no_content_message(task_id, goal)
            status = "no_content"
        else:
            prompt = render_prompt(
                "workflow.synthesis",
                goal=goal,
                today_iso=self._today().isoformat(),
                sources="\n\n---\n\n".join(blocks),
            )
            synthesis = await self.reasoner.complete(
                prompt,
                temperature=0.3,
                max_tokens=settings.synthesis_max_tokens,
            )
            status = "completed"
        self.store.write_to_memory(task_id, keys.FINAL_SYNTHESIS, synthesis)
        log_research_step(task_id, WorkflowStep.SYNTHESIZING.value, status, {"sources": len(blocks)})

    def _no_content_message(self, task_id: str, goal: str) -> str:
        errors: dict[str, str] = self.store.read_from_memory(task_id, keys.EXTRACTION_ERRORS) or {}
        failure_lines = "".join(f"\n- {message}" for message in errors.values())
        return render_prompt(
            "messages.no_content",
            goal=goal,
            failed_count=len(errors),
            failure_lines=failure_lines,
        )

    def _set_step(self, task_id: str, step: WorkflowStep) -> None:
        self.store.write_to_memory(task_id, keys.CURRENT_STEP, step.value)
        log_research_step(task_id, step.value, "started")

    def _record_failure(self, task_id: str, exc: BaseException) -> None:
        message = f"{type(exc).__name__}: {exc}"
        try:
            self.store.write_to_memory(task_id, keys.ERROR, message)
            self.store.write_to_memory(task_id, keys.CURRENT_STEP, WorkflowStep.FAILED.value)
        except NotFoundError:
            logger.warning(f"Could not record failure for task {task_id}: task no longer exists")
            return
        log_research_step(task_id, WorkflowStep.FAILED.value, "failed", {"error": message})

    def _result(self, task_id: str) -> WorkflowResult:
        memory: dict[str, Any] = self.store.read_from_memory(task_id)
        extracted: dict[str, ExtractedSource] = memory.get(keys.EXTRACTED_CONTENT) or {}
        return WorkflowResult(
            task_id=task_id,
            status=WorkflowStep(memory.get(keys.CURRENT_STEP, WorkflowStep.FAILED.value)),
            final_synthesis=memory.get(keys.FINAL_SYNTHESIS),
            sources=sorted(extracted.values(), key=lambda s: s.priority),
            failed_urls=list(memory.get(keys.FAILED_URLS) or []),
            error=memory.get(keys.ERROR),
        )
