from __future__ import annotations

import json

import pytest

from cmem.cli.main import main

# nothing listens on port 1: connections are refused immediately
DEAD_URL = "redis://127.0.0.1:1/0"


@pytest.fixture(autouse=True)
def _fast_timeouts(monkeypatch):
    monkeypatch.setenv("CMEM_CONNECT_TIMEOUT_S", "0.5")
    monkeypatch.setenv("CMEM_COMMAND_TIMEOUT_S", "0.5")


def test_doctor_degraded_mode_passes_unless_strict(tmp_path):
    out = tmp_path / "report.json"
    assert main(["--redis-url", DEAD_URL, "doctor", "--report-out", str(out)]) == 0

    report = json.loads(out.read_text(encoding="utf-8"))
    checks = {c["name"]: c for c in report["checks"]}
    assert checks["backend_available"]["details"]["ping"] is False
    assert checks["fallback_round_trip"]["ok"] is True
    assert "primary_round_trip" not in checks
    assert len(report["summary"]["report_signature"]) == 16

    assert main(["--redis-url", DEAD_URL, "doctor", "--report-out", str(out), "--strict"]) == 1


def test_add_and_search_commands_survive_outage(capsys):
    assert main(["--redis-url", DEAD_URL, "add", "--content", "likes tea", "--user-id", "u1"]) == 0
    assert capsys.readouterr().out.strip() == 'Memory added successfully for user u1: "likes tea"'

    # a new process-local fallback store: the previous note is gone
    assert main(["--redis-url", DEAD_URL, "search", "--query", "tea", "--user-id", "u1"]) == 0
    assert capsys.readouterr().out.strip() == 'No memories found for query: "tea"'
