import json

from anamnesis import usage_log


def test_events_written_and_summarized(tmp_path, monkeypatch):
    monkeypatch.setattr(usage_log, "USAGE_LOG_DIR", str(tmp_path / "logs"))
    logger = usage_log.UsageLogger()

    logger.log_event("analysis", status=200, meta={"answers": 3})
    logger.log_event("analysis_error", status=502, meta={"kind": "ExtractionFormatError"})
    logger.log_event("analysis", status=200)

    files = list((tmp_path / "logs").glob("usage_*.jsonl"))
    assert len(files) == 1
    lines = [json.loads(x) for x in files[0].read_text(encoding="utf-8").splitlines()]
    assert [x["type"] for x in lines] == ["analysis", "analysis_error", "analysis"]
    assert lines[0]["meta"] == {"answers": 3}

    summary = logger.summarize_day()
    assert summary["events_analysis"] == 2
    assert summary["events_analysis_error"] == 1
    assert summary["errors_analysis_error"] == 1
    assert "errors_analysis" not in summary


def test_summary_for_day_without_events(tmp_path, monkeypatch):
    monkeypatch.setattr(usage_log, "USAGE_LOG_DIR", str(tmp_path))
    assert usage_log.UsageLogger().summarize_day("2000-01-01") == {}
