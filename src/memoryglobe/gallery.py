"""Gallery queries over a memory snapshot, and Markdown export.

Everything here is read-only: functions take a snapshot and return new
sequences, never touching the store.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from pathlib import Path

import frontmatter

from memoryglobe.geodesy import format_coordinates
from memoryglobe.memory.models import Memory

logger = logging.getLogger(__name__)

RECENT_LIMIT = 5


def all_tags(memories: Iterable[Memory]) -> list[str]:
    """Every tag in use, in first-seen order."""
    tags: list[str] = []
    for memory in memories:
        for tag in memory.tags:
            if tag not in tags:
                tags.append(tag)
    return tags


def filter_memories(
    memories: Iterable[Memory],
    search: str = "",
    tag: str | None = None,
) -> list[Memory]:
    """Gallery filter: case-insensitive text in title/description, plus an exact tag."""
    needle = search.lower()
    result = []
    for memory in memories:
        matches_search = (
            not needle
            or needle in memory.title.lower()
            or needle in memory.description.lower()
        )
        matches_tag = tag is None or tag in memory.tags
        if matches_search and matches_tag:
            result.append(memory)
    return result


def search_memories(memories: Iterable[Memory], term: str) -> list[Memory]:
    """Sidebar search: title, description or any tag contains ``term``."""
    needle = term.lower()
    return [
        m
        for m in memories
        if needle in m.title.lower()
        or needle in m.description.lower()
        or any(needle in t.lower() for t in m.tags)
    ]


def recent_memories(memories: Iterable[Memory], limit: int = RECENT_LIMIT) -> list[Memory]:
    """Newest ``limit`` memories by date; equal dates keep collection order."""
    return sorted(memories, key=lambda m: m.date, reverse=True)[:limit]


# ── Markdown export ───────────────────────────────────────────


def _slugify(name: str) -> str:
    """Minimal slug: strip illegal chars, spaces to hyphens, keep unicode."""
    slug = re.sub(r'[<>:"/\\|?*\n\r\t]', "", name)
    slug = slug.strip().replace(" ", "-")
    return slug or "untitled"


def render_markdown(memory: Memory) -> str:
    """One memory as Markdown with YAML frontmatter."""
    body = f"# {memory.title}\n\n"
    body += f"*{format_coordinates(memory.latitude, memory.longitude)}*\n"
    if memory.description:
        body += f"\n{memory.description}\n"
    if memory.image_reference and not memory.image_reference.startswith("data:"):
        body += f"\n![{memory.title}]({memory.image_reference})\n"

    post = frontmatter.Post(
        body,
        id=memory.identifier,
        title=memory.title,
        date=memory.date.isoformat(),
        latitude=memory.latitude,
        longitude=memory.longitude,
        tags=list(memory.tags),
    )
    return frontmatter.dumps(post) + "\n"


def export_markdown(memories: Sequence[Memory], directory: Path) -> list[Path]:
    """Write one ``<date>-<title>.md`` file per memory. Returns the paths written."""
    directory.mkdir(parents=True, exist_ok=True)
    written: list[Path] = []
    for memory in memories:
        stem = f"{memory.date.isoformat()}-{_slugify(memory.title)}"
        path = directory / f"{stem}.md"
        counter = 2
        while path in written:
            path = directory / f"{stem}-{counter}.md"
            counter += 1
        path.write_text(render_markdown(memory), encoding="utf-8")
        written.append(path)
    logger.info("Exported %d memories to %s", len(written), directory)
    return written
