"""Tests for the usage report script."""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.db.session import build_session_factory
from app.services import SqlUsageLedger
from scripts.report_usage import build_report, main, parse_args


@pytest.fixture
def ledger() -> SqlUsageLedger:
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(engine)
    ledger = SqlUsageLedger(build_session_factory(engine))
    day = date(2026, 1, 5)
    ledger.increment("alice", "openrouter", day, 150, 0.00225)
    ledger.increment("alice", "gemini", day, 100, 0.0007)
    ledger.increment("bob", "zai", day, 40, 0.0012)
    return ledger


def test_parse_args_reads_day() -> None:
    args = parse_args(["--day", "2026-01-05", "--user", "alice"])
    assert args.day == date(2026, 1, 5)
    assert args.user == "alice"
    assert args.output is None


def test_build_report_filters_by_user(ledger) -> None:
    report = build_report(ledger.day_report(date(2026, 1, 5)), user="alice")

    assert list(report) == ["alice"]
    assert report["alice"]["total_requests"] == 2
    assert report["alice"]["total_tokens"] == 250
    assert report["alice"]["providers"]["gemini"]["cost"] == pytest.approx(0.0007)


def test_main_prints_and_writes_json(ledger, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    output = tmp_path / "usage.json"

    main(["--day", "2026-01-05", "--output", str(output)], ledger=ledger)

    printed = capsys.readouterr().out
    assert "Usage for 2026-01-05" in printed
    assert "bob: 1 requests" in printed
    payload = json.loads(output.read_text(encoding="utf-8"))
    assert payload["day"] == "2026-01-05"
    assert set(payload["users"]) == {"alice", "bob"}


def test_main_reports_empty_day(ledger, capsys: pytest.CaptureFixture[str]) -> None:
    main(["--day", "2025-12-31"], ledger=ledger)
    assert "No usage recorded." in capsys.readouterr().out
