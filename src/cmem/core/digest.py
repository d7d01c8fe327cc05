from __future__ import annotations

from typing import TYPE_CHECKING

from cmem.core.memory import Memory

if TYPE_CHECKING:
    from cmem.core.service import SearchResult

PREVIEW_CHARS = 100
MAX_RESULTS = 10


def preview(content: str, max_chars: int = PREVIEW_CHARS) -> str:
    if len(content) > max_chars:
        return content[:max_chars] + "..."
    return content


def format_confirmation(memory: Memory, preview_chars: int = PREVIEW_CHARS) -> str:
    return (
        f"Memory added successfully for user {memory.user_id}: "
        f'"{preview(memory.content, preview_chars)}"'
    )


def format_entry(n: int, memory: Memory) -> str:
    return f"{n}. [{memory.timestamp.date().isoformat()}] {memory.content}"


def format_digest(result: "SearchResult", limit: int = MAX_RESULTS) -> str:
    if not result.matches:
        return f'No memories found for query: "{result.query}"'

    lines = [format_entry(i + 1, m) for i, m in enumerate(result.matches[:limit])]
    header = f'Found {result.total} matching memories for "{result.query}":'
    return header + "\n\n" + "\n\n".join(lines)
