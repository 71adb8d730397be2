from __future__ import annotations

import io
import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from fastapi import APIRouter, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from anamnesis.assets import load_sample_transcript
from anamnesis.errors import (
    AnamnesisError,
    BusyError,
    ConfigurationError,
    ExtractionFormatError,
    ExtractionTransportError,
    QuestionnaireError,
    ValidationError,
)
from anamnesis.models import SessionContext, SessionMeta
from anamnesis.services import (
    export_csv,
    results_view,
    run_analysis,
    select_answer_for_session,
)
from anamnesis.usage_log import usage_logger

# -------------------------
# TEMPORARY in-memory store
# -------------------------
SESSION_STORE: dict[str, SessionContext] = {}

# NOTE: keep router prefixing handled in main.py (include_router(router, prefix="/api"))
router = APIRouter()
logger = logging.getLogger("anamnesis.api")

CSV_FILENAME = "anamnesis_results.csv"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _get_context_or_404(session_id: str) -> SessionContext:
    sid = (session_id or "").strip()
    if not sid or sid not in SESSION_STORE:
        raise HTTPException(status_code=404, detail="Session not found")
    return SESSION_STORE[sid]


def _session_view(context: SessionContext) -> dict:
    return {
        "session_id": context.session_meta.session_id,
        "transcript": context.transcript,
        "loading": context.analysis.in_flight,
        "error": context.analysis.last_error,
        "error_kind": context.analysis.last_error_kind,
        "results": results_view(context),
    }


def _http_error(exc: AnamnesisError) -> HTTPException:
    if isinstance(exc, BusyError):
        return HTTPException(status_code=409, detail={"code": "BUSY", "message": str(exc)})
    if isinstance(exc, ExtractionTransportError):
        return HTTPException(
            status_code=502,
            detail={
                "code": "EXTRACTION_TRANSPORT",
                "message": str(exc),
                "upstream_status": exc.status_code,
            },
        )
    if isinstance(exc, ExtractionFormatError):
        return HTTPException(
            status_code=502,
            detail={"code": "EXTRACTION_FORMAT", "message": exc.reason, "raw": exc.raw_text},
        )
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=400, detail={"code": "INVALID_SELECTION", "message": str(exc)})
    if isinstance(exc, (ConfigurationError, QuestionnaireError)):
        return HTTPException(status_code=500, detail={"code": "SERVER_CONFIG", "message": str(exc)})
    return HTTPException(status_code=500, detail={"code": "ANALYSIS_FAILED", "message": str(exc)})


# =========================
# Payloads
# =========================

class TranscriptPayload(BaseModel):
    transcript: str


class AnalyzePayload(BaseModel):
    transcript: Optional[str] = None


class SelectAnswerPayload(BaseModel):
    value: str


# =========================
# Sessions
# =========================

@router.get("/ping")
def ping():
    return {"status": "ok"}


@router.post("/session/create")
def create_session():
    now = _utcnow()
    session_id = str(uuid4())

    context = SessionContext(
        session_meta=SessionMeta(
            session_id=session_id,
            created_at=now,
            last_updated_at=now,
        ),
        transcript=load_sample_transcript(),
    )

    SESSION_STORE[session_id] = context
    usage_logger.log_event("session_created")
    return {"session_id": session_id}


@router.get("/session/{session_id}")
def get_session(session_id: str):
    context = _get_context_or_404(session_id)
    return _session_view(context)


@router.put("/session/{session_id}/transcript")
def update_transcript(session_id: str, payload: TranscriptPayload):
    context = _get_context_or_404(session_id)
    if context.analysis.in_flight:
        raise _http_error(BusyError("An analysis is already running for this session."))
    context.transcript = payload.transcript
    context.session_meta.last_updated_at = _utcnow()
    return {"ok": True, "transcript_chars": len(context.transcript)}


# =========================
# Analysis
# =========================

@router.post("/session/{session_id}/analyze")
def analyze_endpoint(session_id: str, payload: Optional[AnalyzePayload] = None):
    context = _get_context_or_404(session_id)
    transcript = payload.transcript if payload else None
    try:
        run_analysis(context, transcript=transcript)
        usage_logger.log_event("analysis", status=200, meta={"answers": len(context.results)})
    except AnamnesisError as exc:
        http_exc = _http_error(exc)
        usage_logger.log_event(
            "analysis_error",
            status=http_exc.status_code,
            meta={"kind": type(exc).__name__},
        )
        raise http_exc from exc

    return _session_view(context)


@router.post("/session/{session_id}/results/{position}/select")
def select_answer_endpoint(session_id: str, position: int, payload: SelectAnswerPayload):
    context = _get_context_or_404(session_id)
    if position < 0 or position >= len(context.results):
        raise HTTPException(status_code=404, detail="Result not found")
    try:
        entry = select_answer_for_session(context, position, payload.value)
    except ValidationError as exc:
        raise _http_error(exc) from exc
    usage_logger.log_event("answer_selected")
    return {
        "position": position,
        "linkId": entry.link_id,
        "selectedAnswer": entry.selected_answer,
    }


# =========================
# Export
# =========================

@router.get("/session/{session_id}/export.csv")
def export_csv_endpoint(session_id: str):
    context = _get_context_or_404(session_id)
    if not context.results:
        raise HTTPException(status_code=409, detail="No results to export")
    payload = export_csv(context)
    usage_logger.log_event("csv_export", meta={"rows": len(context.results)})
    return StreamingResponse(
        io.BytesIO(payload.encode("utf-8")),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{CSV_FILENAME}"'},
    )


# =========================
# Usage
# =========================

@router.get("/usage/summary")
def usage_summary(day: Optional[str] = None):
    target = (day or "").strip() or datetime.now().strftime("%Y-%m-%d")
    try:
        datetime.strptime(target, "%Y-%m-%d")
    except ValueError:
        raise HTTPException(status_code=400, detail="day must be YYYY-MM-DD")
    summary = usage_logger.summarize_day(target)
    return {
        "day": target,
        "sessions_created": summary.get("events_session_created", 0),
        "analyses": summary.get("events_analysis", 0),
        "analysis_errors": summary.get("events_analysis_error", 0),
        "answers_selected": summary.get("events_answer_selected", 0),
        "csv_exports": summary.get("events_csv_export", 0),
        "counts": summary,
    }
