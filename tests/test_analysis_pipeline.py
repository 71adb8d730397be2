import json

import pytest

from anamnesis import services
from anamnesis.errors import (
    BusyError,
    ConfigurationError,
    ExtractionFormatError,
    ExtractionTransportError,
    QuestionnaireError,
)
from anamnesis.models import ListAnswerEntry, ScalarAnswerEntry, SessionContext, SessionMeta

QUESTIONNAIRE = {
    "properties": {
        "item": {
            "items": [
                {"linkId": "1", "text": "Pain", "item": [
                    {"linkId": "1.1", "text": "Are you in pain?",
                     "answerOption": [{"valueString": "yes"}, {"valueString": "no"}]},
                ]},
                {"linkId": "2", "text": "Who do you live with?"},
            ]
        }
    }
}


@pytest.fixture
def questionnaire_path(tmp_path, monkeypatch):
    path = tmp_path / "questionnaire.json"
    path.write_text(json.dumps(QUESTIONNAIRE, indent=2), encoding="utf-8")
    monkeypatch.setenv("ANAMNESIS_QUESTIONNAIRE_PATH", str(path))
    monkeypatch.setattr(services, "load_api_key", lambda: "sk-test")
    return path


def _context(transcript="Patient: yes it hurts, I live with my wife."):
    return SessionContext(session_meta=SessionMeta(session_id="sid-1"), transcript=transcript)


def test_successful_analysis_replaces_results(questionnaire_path, monkeypatch):
    seen = {}

    def fake_extraction(prompt, credential):
        seen["prompt"] = prompt
        seen["credential"] = credential
        return json.dumps([
            {"linkId": "1.1", "answer": ["yes", "no"]},
            {"linkId": "2", "answer": "wife"},
        ])

    monkeypatch.setattr(services, "request_extraction", fake_extraction)
    context = _context("  Patient: yes it hurts.  \n")
    results = services.run_analysis(context)

    assert seen["credential"] == "sk-test"
    assert questionnaire_path.read_text(encoding="utf-8") in seen["prompt"]
    assert "Transcript:\nPatient: yes it hurts." in seen["prompt"]
    assert isinstance(results[0], ListAnswerEntry)
    assert results[0].selected_answer == "yes"
    assert isinstance(results[1], ScalarAnswerEntry)
    assert context.results == results
    assert context.question_index["1.1"] == "Are you in pain?"
    assert context.analysis.in_flight is False
    assert context.analysis.last_error is None
    assert context.analysis.completed_at is not None


def test_transcript_argument_replaces_session_transcript(questionnaire_path, monkeypatch):
    monkeypatch.setattr(services, "request_extraction", lambda prompt, credential: "[]")
    context = _context("old")
    services.run_analysis(context, transcript="new transcript")
    assert context.transcript == "new transcript"
    assert context.results == []


def test_format_error_clears_results(questionnaire_path, monkeypatch):
    context = _context()
    context.results = [ScalarAnswerEntry(link_id="old", answer="stale")]
    monkeypatch.setattr(services, "request_extraction", lambda prompt, credential: "Sorry, I cannot help.")

    with pytest.raises(ExtractionFormatError):
        services.run_analysis(context)
    assert context.results == []
    assert context.analysis.last_error_kind == "ExtractionFormatError"
    assert "Sorry, I cannot help." in context.analysis.last_error
    assert context.analysis.in_flight is False


def test_transport_error_is_recorded(questionnaire_path, monkeypatch):
    def failing(prompt, credential):
        raise ExtractionTransportError("Extraction backend error: 503 busy", status_code=503, body="busy")

    monkeypatch.setattr(services, "request_extraction", failing)
    context = _context()
    with pytest.raises(ExtractionTransportError):
        services.run_analysis(context)
    assert context.analysis.last_error_kind == "ExtractionTransportError"
    assert context.results == []


def test_second_analysis_while_pending_is_busy(questionnaire_path, monkeypatch):
    context = _context()
    inner = {}

    def reentrant(prompt, credential):
        with pytest.raises(BusyError):
            services.run_analysis(context)
        inner["still_in_flight"] = context.analysis.in_flight
        return '[{"linkId":"2","answer":"partner"}]'

    monkeypatch.setattr(services, "request_extraction", reentrant)
    results = services.run_analysis(context)

    assert inner["still_in_flight"] is True
    assert results[0].answer == "partner"
    assert context.analysis.last_error is None
    assert context.analysis.in_flight is False


def test_missing_questionnaire(tmp_path, monkeypatch):
    monkeypatch.setenv("ANAMNESIS_QUESTIONNAIRE_PATH", str(tmp_path / "missing.json"))
    context = _context()
    with pytest.raises(QuestionnaireError):
        services.run_analysis(context)
    assert context.analysis.in_flight is False


def test_missing_credential(questionnaire_path, monkeypatch):
    def no_key():
        raise ConfigurationError("OPENAI_API_KEY not set")

    monkeypatch.setattr(services, "load_api_key", no_key)
    context = _context()
    with pytest.raises(ConfigurationError):
        services.run_analysis(context)
    assert context.analysis.last_error_kind == "ConfigurationError"


def test_select_and_export(questionnaire_path, monkeypatch):
    monkeypatch.setattr(
        services,
        "request_extraction",
        lambda prompt, credential: '{"answers":[{"linkId":"1.1","answer":["yes","no"]},{"linkId":"9","answer":"x"}]}',
    )
    context = _context()
    services.run_analysis(context)

    entry = services.select_answer_for_session(context, 0, "no")
    assert entry.selected_answer == "no"
    assert context.results[0].answer == ["yes", "no"]

    csv_text = services.export_csv(context)
    assert csv_text.splitlines() == ["Question,Answer", "Are you in pain?,no", "9,x"]

    view = services.results_view(context)
    assert view[0]["options"] == ["yes", "no"]
    assert view[0]["question"] == "Are you in pain?"
    assert view[1]["options"] is None
    assert view[1]["selectedAnswer"] is None
