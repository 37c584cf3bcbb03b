"""Prompt templates for the research workflow.

Templates live in a nested JSON catalog and are addressed by dotted keys
such as ``workflow.synthesis``. Placeholders use ``string.Template`` syntax.
The catalog is reloaded when the file changes on disk.
"""

from __future__ import annotations

import json
from pathlib import Path
from string import Template
from typing import Any, Iterator

from loguru import logger

from webscout.config import settings

BUNDLED_PROMPTS = Path(__file__).resolve().parents[1] / "prompts" / "prompts.json"


class PromptCatalog:
    def __init__(self, path: Path | str):
        self.path = Path(path)
        self._entries: dict[str, str] | None = None
        self._mtime_ns: int | None = None

    def _entries_for_current_file(self) -> dict[str, str]:
        mtime_ns = self.path.stat().st_mtime_ns
        if self._entries is not None and self._mtime_ns == mtime_ns:
            return self._entries

        payload = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(payload, dict):
            raise ValueError(f"Prompt catalog {self.path} must be a JSON object")
        self._entries = dict(_flatten(payload))
        self._mtime_ns = mtime_ns
        logger.debug(f"Loaded {len(self._entries)} prompts from {self.path}")
        return self._entries

    def keys(self) -> list[str]:
        return sorted(self._entries_for_current_file())

    def template(self, key: str) -> Template:
        entries = self._entries_for_current_file()
        if key not in entries:
            raise KeyError(f"Unknown prompt '{key}' in {self.path.name}")
        return Template(entries[key])

    def placeholders(self, key: str) -> set[str]:
        template = self.template(key)
        names = set()
        for match in template.pattern.finditer(template.template):
            name = match.group("named") or match.group("braced")
            if name:
                names.add(name)
        return names

    def render(self, key: str, **values: Any) -> str:
        missing = sorted(self.placeholders(key) - set(values))
        if missing:
            raise KeyError(f"Prompt '{key}' is missing values for: {', '.join(missing)}")
        return self.template(key).substitute({name: str(value) for name, value in values.items()})


def _flatten(node: dict[str, Any], prefix: str = "") -> Iterator[tuple[str, str]]:
    for name, value in node.items():
        key = f"{prefix}{name}"
        if isinstance(value, dict):
            yield from _flatten(value, f"{key}.")
        elif isinstance(value, str):
            yield key, value
        else:
            raise ValueError(f"Prompt '{key}' must be a string or a nested object")


_catalog: PromptCatalog | None = None


def get_catalog() -> PromptCatalog:
    """Catalog at ``settings.prompts_path``, or the bundled one."""
    global _catalog
    path = Path(settings.prompts_path) if settings.prompts_path else BUNDLED_PROMPTS
    if _catalog is None or _catalog.path != path:
        _catalog = PromptCatalog(path)
    return _catalog


def render_prompt(key: str, **values: Any) -> str:
    return get_catalog().render(key, **values)


def prompt_keys() -> list[str]:
    return get_catalog().keys()


def clear_prompt_cache() -> None:
    global _catalog
    _catalog = None
