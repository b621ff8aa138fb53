"""Tests for the main.py CLI (no API keys, in-memory store)."""

from __future__ import annotations

import json

import pytest


@pytest.fixture(autouse=True)
def _no_secrets(monkeypatch):
    monkeypatch.setattr("hrv_report.secrets_loader.load_secrets", lambda: {})
    monkeypatch.delenv("LLM_PROVIDER", raising=False)
    monkeypatch.delenv("LLM_MODEL", raising=False)


def _run(monkeypatch, *argv):
    import main
    monkeypatch.setattr("sys.argv", ["main.py", *argv])
    return main.main()


class TestMain:
    def test_walk_in_fallback_no_save(self, monkeypatch, tmp_path, capsys):
        fb = tmp_path / "walk_in.json"
        fb.write_text(json.dumps({"beforeRMSSD": 20, "afterRMSSD": 35, "stress": 8}))

        assert _run(monkeypatch, "--fallback-json", str(fb), "--no-save", "--seed", "1") == 0
        result = json.loads(capsys.readouterr().out)
        assert result["used_fallback"] is True
        assert result["generation_calls"] == 0
        assert result["saved"] is False
        assert "20 → 35" in result["report"]

    def test_generate_then_view(self, monkeypatch, tmp_path, capsys):
        visits = tmp_path / "visits.json"
        visits.write_text(json.dumps([{
            "id": "v-1", "customer_id": "c-1", "visit_date": "2026-05-01",
            "created_at": 1, "menu": "ヘッドスパ",
            "hrv_measurements": [
                {"phase": "before", "rmssd": 20}, {"phase": "after", "rmssd": 30},
            ],
        }]))
        out = tmp_path / "out" / "result.json"

        assert _run(
            monkeypatch, "--customer-id", "c-1", "--visits-json", str(visits),
            "--store", "memory", "--output", str(out),
        ) == 0
        result = json.loads(out.read_text(encoding="utf-8"))
        assert result["saved"] is True
        capsys.readouterr()

        # The in-memory store is rebuilt per run, so the view has no report.
        assert _run(
            monkeypatch, "--visit-id", "v-1", "--visits-json", str(visits),
            "--store", "memory", "--view",
        ) == 0
        view = json.loads(capsys.readouterr().out)
        assert view["improvement_rate"] == 50
        assert view["report_text"] is None

    def test_requires_a_target(self, monkeypatch):
        assert _run(monkeypatch, "--store", "memory") == 1

    def test_view_needs_visit_id(self, monkeypatch):
        assert _run(monkeypatch, "--store", "memory", "--view") == 1

    def test_rest_without_credentials(self, monkeypatch):
        assert _run(monkeypatch, "--store", "rest", "--customer-id", "c-1") == 1
