"""Benchmark dataset loading and prompt construction."""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import TypeAdapter

from scheduled_agent.benchmark.models import DatasetItem

_ITEMS = TypeAdapter(list[DatasetItem])


def load_dataset(path: str | Path) -> list[DatasetItem]:
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    return _ITEMS.validate_python(raw)


def build_prompt(item: DatasetItem) -> str:
    """Question text sent to the agent, with reference links appended if any."""
    if not item.wiki_links:
        return item.prompt
    links = "\n".join(f"- {link}" for link in item.wiki_links)
    return f"{item.prompt}\n\nRelevant Wikipedia articles:\n{links}"
