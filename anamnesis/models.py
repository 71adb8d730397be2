from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


def _now_utc() -> datetime:
    # Use timezone-aware UTC to avoid subtle comparisons/serialization issues.
    return datetime.now(timezone.utc)


# =========================
# Shared strict base model (Pydantic v2)
# =========================

class StrictBaseModel(BaseModel):
    """
    Strict, assignment-validating base model (Pydantic v2).
    - extra fields are forbidden (schema discipline)
    - assignment is validated (catches subtle runtime drift)
    - fields may be populated by name or by their wire alias (linkId, selectedAnswer)
    """
    model_config = ConfigDict(extra="forbid", validate_assignment=True, populate_by_name=True)


# =========================
# Answer entries (tagged union)
# =========================

class ScalarAnswerEntry(StrictBaseModel):
    """
    One extracted answer holding a single value (string, number, bool, object or null).
    Scalar entries never carry a selected answer.
    """
    kind: Literal["scalar"] = "scalar"
    link_id: Optional[str] = Field(default=None, alias="linkId")
    answer: Any = None


class ListAnswerEntry(StrictBaseModel):
    """
    One extracted answer holding an ordered list of candidate values.
    - answer: the candidates exactly as returned by the model (never rewritten)
    - selected_answer: the chosen candidate's display string (auto or user override)
    """
    kind: Literal["list"] = "list"
    link_id: Optional[str] = Field(default=None, alias="linkId")
    answer: List[Any] = Field(default_factory=list)
    selected_answer: Optional[str] = Field(default=None, alias="selectedAnswer")


AnswerEntry = Annotated[Union[ScalarAnswerEntry, ListAnswerEntry], Field(discriminator="kind")]


# =========================
# Session metadata
# =========================

class SessionMeta(StrictBaseModel):
    session_id: str

    created_at: datetime = Field(default_factory=_now_utc)
    last_updated_at: datetime = Field(default_factory=_now_utc)

    context_version: Literal["v1"] = "v1"


# =========================
# Analysis state
# =========================

class AnalysisState(StrictBaseModel):
    """
    Progress of the most recent analysis run.
    in_flight is the re-entrancy guard: at most one outstanding extraction per session.
    """
    in_flight: bool = False
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    last_error: Optional[str] = None
    last_error_kind: Optional[str] = None


# =========================
# Session Context (ROOT)
# =========================

class SessionContext(StrictBaseModel):
    session_meta: SessionMeta

    transcript: str = ""

    # linkId -> question text, rebuilt on every analysis
    question_index: Dict[str, str] = Field(default_factory=dict)

    # ResultSet: replaced wholesale on success, cleared on start and on failure
    results: List[AnswerEntry] = Field(default_factory=list)

    analysis: AnalysisState = Field(default_factory=AnalysisState)
