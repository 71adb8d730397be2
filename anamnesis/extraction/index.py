from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Tuple

logger = logging.getLogger("anamnesis.extraction.index")


def _top_level_items(schema: Any) -> List[Any]:
    # properties.item.items; any missing or mistyped hop means "no questions".
    if not isinstance(schema, dict):
        return []
    properties = schema.get("properties")
    if not isinstance(properties, dict):
        return []
    item = properties.get("item")
    if not isinstance(item, dict):
        return []
    items = item.get("items")
    return items if isinstance(items, list) else []


def _walk(items: Iterable[Any]) -> Iterator[Tuple[str, str]]:
    """Yield (linkId, text) depth-first, parent before children, in array order."""
    for item in items:
        if not isinstance(item, dict) or "linkId" not in item or "text" not in item:
            continue
        yield str(item["linkId"]), str(item["text"])
        children = item.get("item")
        if isinstance(children, list):
            yield from _walk(children)


def build_index(schema: Any) -> Mapping[str, str]:
    """
    Flatten a questionnaire definition into a read-only linkId -> text mapping.

    Never raises on malformed input: absent or mistyped paths yield an empty index.
    Duplicate linkIds resolve last-write-wins (the later item in traversal order).
    """
    index: Dict[str, str] = {}
    for link_id, text in _walk(_top_level_items(schema)):
        if link_id in index:
            logger.warning("questionnaire.duplicate_link_id link_id=%s", link_id)
        index[link_id] = text
    return MappingProxyType(index)
