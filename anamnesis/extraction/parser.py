from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from ..errors import ExtractionFormatError
from ..models import AnswerEntry, ListAnswerEntry, ScalarAnswerEntry

logger = logging.getLogger("anamnesis.extraction.parser")

_DECODER = json.JSONDecoder()


def _strip_code_fences(text: str) -> str:
    s = (text or "").strip()
    if s.startswith("```"):
        first_nl = s.find("\n")
        if first_nl != -1:
            s = s[first_nl + 1:]
        if s.endswith("```"):
            s = s[:-3]
    return s.strip()


def _bracket_positions(text: str, start: int = 0) -> List[int]:
    return [i for i in range(start, len(text)) if text[i] in "[{"]


def _decode_at(text: str, pos: int) -> Optional[Tuple[Any, int]]:
    try:
        return _DECODER.raw_decode(text, pos)
    except json.JSONDecodeError:
        return None


def _is_answer_document(value: Any) -> bool:
    if isinstance(value, list):
        return all(isinstance(item, dict) for item in value)
    return isinstance(value, dict) and isinstance(value.get("answers"), list)


def _decode(raw: str) -> Any:
    candidate = _strip_code_fences(raw)
    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        pass
    # Stray prose around the document. Only prose may be skipped: the first JSON value
    # found must be the answer document, and no further JSON may follow it.
    for start in _bracket_positions(candidate):
        decoded = _decode_at(candidate, start)
        if decoded is None:
            continue
        value, end = decoded
        if not _is_answer_document(value):
            raise ExtractionFormatError("Unexpected response format", raw)
        for later in _bracket_positions(candidate, end):
            if _decode_at(candidate, later) is not None:
                raise ExtractionFormatError("Response holds more than one JSON document", raw)
        logger.info("parser.recovered_json leading_chars=%s trailing_chars=%s", start, len(candidate) - end)
        return value
    raise ExtractionFormatError("Response is not valid JSON", raw)


def _answer_list(decoded: Any, raw: str) -> List[Any]:
    if isinstance(decoded, list):
        return decoded
    if isinstance(decoded, dict) and isinstance(decoded.get("answers"), list):
        return decoded["answers"]
    raise ExtractionFormatError("Unexpected response format", raw)


_ENTRY_KEYS = {"linkId", "answer"}


def _to_entry(item: Dict[str, Any]) -> AnswerEntry:
    dropped = sorted(str(k) for k in item if k not in _ENTRY_KEYS)
    if dropped:
        logger.debug("parser.dropped_keys link_id=%s keys=%s", item.get("linkId"), ",".join(dropped))
    link_id = item.get("linkId")
    if link_id is not None:
        link_id = str(link_id)
    answer = item.get("answer")
    if isinstance(answer, list):
        return ListAnswerEntry(link_id=link_id, answer=answer)
    return ScalarAnswerEntry(link_id=link_id, answer=answer)


def parse_response(raw: str) -> List[AnswerEntry]:
    """
    Turn the model's raw reply into answer entries.

    Accepts a JSON array of {linkId, answer} objects, or an object whose "answers"
    key holds that array. Anything else raises ExtractionFormatError carrying the raw text.
    """
    decoded = _decode(raw)
    items = _answer_list(decoded, raw)
    entries: List[AnswerEntry] = []
    for pos, item in enumerate(items):
        if not isinstance(item, dict):
            raise ExtractionFormatError(f"Answer entry {pos} is not an object", raw)
        entries.append(_to_entry(item))
    return entries
