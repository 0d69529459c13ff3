# zyra/services/context_service.py
import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

logger = logging.getLogger(__name__)

CONTEXT_SEPARATOR = "\n\n"

ContentLookup = Callable[[str], str]


def _field(item: Any, *names: str) -> Any:
    # Accepts ORM rows, pydantic models and raw camelCase JSON dicts alike.
    for name in names:
        value = item.get(name) if isinstance(item, Mapping) else getattr(item, name, None)
        if value is not None:
            return value
    return None


def upstream_source_ids(chat_node_id: str, edges: Iterable[Any]) -> list[str]:
    """Source ids of edges targeting the chat node, in edge order, without repeats."""
    seen: set[str] = set()
    sources: list[str] = []
    for edge in edges:
        if _field(edge, "target") != chat_node_id:
            continue
        source_id = _field(edge, "source")
        if not source_id or source_id in seen:
            continue
        seen.add(source_id)
        sources.append(source_id)
    return sources


def assemble_context(chat_node_id: str, edges: Iterable[Any], lookup: ContentLookup) -> str:
    pieces = []
    for source_id in upstream_source_ids(chat_node_id, edges):
        content = lookup(source_id) or ""
        if content.strip():
            pieces.append(content)
    return CONTEXT_SEPARATOR.join(pieces)


class ContentIndex:
    """Resolves a block id to its text: note content first, then PDF extracted text."""

    def __init__(self, notes: Iterable[Any] = (), pdfs: Iterable[Any] = ()):
        self._notes = {_field(note, "id"): _field(note, "content") or "" for note in notes}
        self._pdfs = {
            _field(pdf, "block_id", "blockId"): _field(pdf, "extracted_text", "extractedText") or ""
            for pdf in pdfs
        }

    def __call__(self, block_id: str) -> str:
        if block_id in self._notes:
            return self._notes[block_id]
        if block_id in self._pdfs:
            return self._pdfs[block_id]
        # Dangling edge or a block with nothing saved yet.
        logger.debug("No content found for block %s", block_id)
        return ""
