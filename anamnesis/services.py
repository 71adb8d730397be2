from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timezone
from threading import Lock as ThreadLock
from typing import Any, Dict, List, Optional

from anamnesis.assets import load_api_key, load_questionnaire
from anamnesis.errors import BusyError
from anamnesis.extraction.client import request_extraction
from anamnesis.extraction.exporter import question_text, to_csv
from anamnesis.extraction.index import build_index
from anamnesis.extraction.parser import parse_response
from anamnesis.extraction.prompts import build_prompt
from anamnesis.extraction.reconciler import candidate_options, normalize, select_answer
from anamnesis.models import AnswerEntry, ListAnswerEntry, SessionContext


# =========================
# Logging
# =========================
logger = logging.getLogger("anamnesis.services")

# Guards the check-and-set of SessionContext.analysis.in_flight across request threads.
_ANALYSIS_LOCK = ThreadLock()


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _touch(context: SessionContext) -> None:
    context.session_meta.last_updated_at = _now_utc()


def _hash12(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:12]


# =========================
# Analysis pipeline
# =========================

def _begin_analysis(context: SessionContext) -> None:
    with _ANALYSIS_LOCK:
        if context.analysis.in_flight:
            raise BusyError("An analysis is already running for this session.")
        context.analysis.in_flight = True
        context.analysis.started_at = _now_utc()
        context.analysis.completed_at = None
        context.analysis.last_error = None
        context.analysis.last_error_kind = None
        context.results = []


def run_analysis(context: SessionContext, transcript: Optional[str] = None) -> List[AnswerEntry]:
    """
    Extract answers for the session's transcript and replace its ResultSet.

    Sequence: index build -> prompt build -> extraction call -> parse -> normalize.
    Any failure leaves the ResultSet empty, records the error on the session and re-raises.
    A second call while one is pending raises BusyError without touching the running one.
    """
    _begin_analysis(context)
    session_id = context.session_meta.session_id
    try:
        if transcript is not None:
            context.transcript = transcript
        transcript_text = context.transcript.strip()
        logger.info(
            "analysis.start session_id=%s transcript_hash=%s transcript_chars=%s",
            session_id,
            _hash12(transcript_text),
            len(transcript_text),
        )

        schema_text, schema = load_questionnaire()
        index = build_index(schema)
        context.question_index = dict(index)

        credential = load_api_key()
        prompt = build_prompt(schema_text, transcript_text)
        raw = request_extraction(prompt, credential)

        results = normalize(parse_response(raw))
        context.results = results
        context.analysis.completed_at = _now_utc()
        logger.info(
            "analysis.done session_id=%s questions=%s answers=%s",
            session_id,
            len(index),
            len(results),
        )
        return results
    except Exception as exc:
        context.results = []
        context.analysis.last_error = str(exc)
        context.analysis.last_error_kind = type(exc).__name__
        logger.warning("analysis.failed session_id=%s kind=%s", session_id, type(exc).__name__)
        raise
    finally:
        context.analysis.in_flight = False
        _touch(context)


# =========================
# Overrides / export
# =========================

def select_answer_for_session(context: SessionContext, position: int, value: str) -> AnswerEntry:
    context.results = select_answer(context.results, position, value)
    _touch(context)
    return context.results[position]


def export_csv(context: SessionContext) -> str:
    return to_csv(context.results, context.question_index)


def question_text_for(context: SessionContext, entry: AnswerEntry) -> str:
    return question_text(entry, context.question_index)


def results_view(context: SessionContext) -> List[Dict[str, Any]]:
    """Results shaped for display: resolved question text plus the options to choose from."""
    out: List[Dict[str, Any]] = []
    for position, entry in enumerate(context.results):
        is_list = isinstance(entry, ListAnswerEntry)
        out.append({
            "position": position,
            "linkId": entry.link_id,
            "question": question_text_for(context, entry),
            "answer": entry.answer,
            "selectedAnswer": entry.selected_answer if is_list else None,
            "options": candidate_options(entry) if is_list else None,
        })
    return out
