from __future__ import annotations

import json
from typing import Any, List, Sequence

from ..errors import ValidationError
from ..models import AnswerEntry, ListAnswerEntry


def display_value(value: Any) -> str:
    """String form used for comparison, selection and export (JSON rendering for non-strings)."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


def candidate_options(entry: AnswerEntry) -> List[str]:
    if not isinstance(entry, ListAnswerEntry):
        return []
    return [display_value(v) for v in entry.answer]


def normalize(entries: Sequence[AnswerEntry]) -> List[AnswerEntry]:
    """
    Default every non-empty list answer to its first candidate.

    An entry whose selected_answer is already set keeps it, so re-normalizing is a no-op.
    """
    out: List[AnswerEntry] = []
    for entry in entries:
        if isinstance(entry, ListAnswerEntry) and entry.answer and entry.selected_answer is None:
            entry = entry.model_copy(update={"selected_answer": display_value(entry.answer[0])})
        out.append(entry)
    return out


def select_answer(result_set: Sequence[AnswerEntry], position: int, value: str) -> List[AnswerEntry]:
    """
    Return a new ResultSet where the entry at `position` has `value` as its selected answer.

    The candidate list itself is left untouched. Raises ValidationError if the position
    is out of range, the entry is not a list answer, or value is not one of its candidates.
    """
    if position < 0 or position >= len(result_set):
        raise ValidationError(f"No answer at position {position}")
    entry = result_set[position]
    if not isinstance(entry, ListAnswerEntry):
        raise ValidationError(f"Answer at position {position} has no candidates to choose from")
    if value not in candidate_options(entry):
        raise ValidationError(f"{value!r} is not a candidate for {entry.link_id or 'this question'}")

    out = list(result_set)
    out[position] = entry.model_copy(update={"selected_answer": value})
    return out
