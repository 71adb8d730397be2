from __future__ import annotations

import csv
import io
from typing import List, Mapping, Sequence

from ..models import AnswerEntry, ListAnswerEntry
from .reconciler import display_value

CSV_HEADER = ["Question", "Answer"]


def question_text(entry: AnswerEntry, index: Mapping[str, str]) -> str:
    if entry.link_id is not None and entry.link_id in index:
        return index[entry.link_id]
    return entry.link_id if entry.link_id is not None else ""


def answer_text(entry: AnswerEntry) -> str:
    if isinstance(entry, ListAnswerEntry):
        if entry.selected_answer is not None:
            return entry.selected_answer
        return ", ".join(display_value(v) for v in entry.answer)
    return display_value(entry.answer)


def csv_rows(result_set: Sequence[AnswerEntry], index: Mapping[str, str]) -> List[List[str]]:
    rows = [list(CSV_HEADER)]
    for entry in result_set:
        rows.append([question_text(entry, index), answer_text(entry)])
    return rows


def to_csv(result_set: Sequence[AnswerEntry], index: Mapping[str, str]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerows(csv_rows(result_set, index))
    return buf.getvalue()
