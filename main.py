"""webscout - adaptive web extraction and research workflow

Simple CLI for running a research goal or extracting a single page.
"""

import argparse
import asyncio
import json

from webscout.agents.research_service import ResearchService
from webscout.errors import ExtractionError
from webscout.llm_client import OpenRouterReasoner
from webscout.models.schemas import TaskOptions
from webscout.research_core.coordinator import ExtractionCoordinator
from webscout.research_core.models.interfaces import ExtractionOptions
from webscout.services.logger import configure_logging, logger


async def run_research(goal: str, options: TaskOptions, model: str | None = None):
    """Run one research task end to end."""
    print(f"Research goal: {goal}")
    print("-" * 50)

    reasoner = OpenRouterReasoner(model=model) if model else None
    async with ResearchService(reasoner=reasoner) as service:
        task_id = service.start_agent_task(goal, options)
        print(f"[*] Task {task_id}")
        try:
            result = await service.execute_agent_workflow(task_id)
            print(f"\n[*] Status: {result.status.value}")
            print(f"   Sources: {len(result.sources)}")
            for i, source in enumerate(result.sources, 1):
                flag = " (limited)" if source.limited else ""
                print(f"  {i}. {source.document.title[:70]}{flag}")
                print(f"     {source.document.url} [{source.document.extraction_method.value}]")
            errors = service.read_from_memory(task_id, "extraction_errors") or {}
            for message in errors.values():
                print(f"  [!] {message}")
            if result.error:
                print(f"\n[!] Error: {result.error}")
            print(f"\n{'='*50}")
            print("ANSWER:")
            print(f"{'='*50}")
            print(result.final_synthesis or "")
        finally:
            service.end_agent_task(task_id)


async def run_extract(url: str, max_length: int | None, as_json: bool = False):
    """Extract one URL and print the document."""
    coordinator = ExtractionCoordinator()
    try:
        document = await coordinator.extract(url, ExtractionOptions(max_length=max_length, include_images=True))
    except ExtractionError as exc:
        print(f"[!] {exc.user_message}")
        return
    finally:
        await coordinator.aclose()

    if as_json:
        print(json.dumps(document.to_dict(), indent=2, ensure_ascii=False))
        return

    print(f"Title: {document.title}")
    print(f"Method: {document.extraction_method.value} ({document.site_rule or 'parser'})")
    if document.author:
        print(f"Author: {document.author}")
    if document.publish_date:
        print(f"Published: {document.publish_date}")
    print(f"Length: {len(document.content)} chars{' (truncated)' if document.truncated else ''}")
    print("-" * 50)
    print(document.content)


def main():
    parser = argparse.ArgumentParser(description="webscout research and extraction tool")
    mode = parser.add_mutually_exclusive_group(required=True)
    mode.add_argument("--goal", "-g", help="Research goal to run through the workflow")
    mode.add_argument("--extract", "-e", metavar="URL", help="Extract a single URL")
    parser.add_argument("--time-filter", choices=["day", "week", "month", "year"], help="Search recency filter")
    parser.add_argument("--max-urls", type=int, default=5, help="Maximum pages to visit")
    parser.add_argument("--max-length", type=int, help="Truncate extracted content to this many characters")
    parser.add_argument("--model", "-m", help="Model to use (default: from config)")
    parser.add_argument("--json", action="store_true", help="Print the extracted document as JSON (with --extract)")

    args = parser.parse_args()
    configure_logging()

    if args.extract:
        asyncio.run(run_extract(args.extract, args.max_length, args.json))
        return

    options = TaskOptions(time_filter=args.time_filter, max_urls=args.max_urls)
    try:
        asyncio.run(run_research(args.goal, options, args.model))
    except KeyboardInterrupt:
        logger.warning("Interrupted")


if __name__ == "__main__":
    main()
