"""Loguru setup plus structured event helpers.

Sinks are installed by ``configure_logging`` (the CLI calls it once). The
``log_*`` helpers emit one line per event with a dict payload so the file
log can be grepped by event name.
"""

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from webscout.config import settings

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"

NOISY_LOGGERS = ("httpx", "httpcore", "hpack", "openai._base_client", "asyncio", "trafilatura")

_configured = False


def configure_logging(level: Optional[str] = None, log_dir: Optional[str] = None) -> None:
    """Replace loguru's default sink with ours. Safe to call more than once."""
    global _configured
    if _configured:
        return

    logger.remove()
    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=(level or settings.app_log_level).upper(), colorize=True)

    if settings.log_to_file:
        directory = Path(log_dir or settings.log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        logger.add(
            directory / "webscout_{time:YYYY-MM-DD}.log",
            format=FILE_FORMAT,
            level="DEBUG",
            rotation="00:00",
            retention="7 days",
            compression="zip",
        )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(settings.noisy_log_level.upper())
    _configured = True


def _emit(event: str, payload: dict[str, Any], *, failed: bool = False, failure_level: str = "ERROR") -> None:
    record = {"timestamp": datetime.now(timezone.utc).isoformat(), **payload}
    if failed:
        logger.log(failure_level, f"{event}_FAILED: {record}")
    else:
        logger.info(f"{event}: {record}")


def log_llm_call(
    model: str,
    caller: str,
    input_tokens: int = 0,
    output_tokens: int = 0,
    duration_ms: int = 0,
    status: str = "success",
    error: Optional[str] = None,
) -> None:
    _emit(
        "LLM_CALL",
        {
            "model": model,
            "caller": caller,
            "tokens": {"input": input_tokens, "output": output_tokens, "total": input_tokens + output_tokens},
            "duration_ms": duration_ms,
            "status": status,
            "error": error,
        },
        failed=bool(error),
    )


def log_research_step(task_id: str, step_type: str, status: str, data: Optional[dict] = None) -> None:
    """One workflow phase transition (started, completed, failed...)."""
    _emit("RESEARCH_STEP", {"task_id": task_id, "step": step_type, "status": status, "data": data})


def log_extraction(
    url: str,
    method: str,
    status: str,
    duration_ms: int = 0,
    content_length: int = 0,
    fallback_used: bool = False,
    error: Optional[str] = None,
) -> None:
    _emit(
        "EXTRACTION",
        {
            "url": url,
            "method": method,
            "status": status,
            "duration_ms": duration_ms,
            "chars": content_length,
            "fallback_used": fallback_used,
            "error": error,
        },
        failed=bool(error),
        failure_level="WARNING",
    )
