"""Tests for the `python -m strive` entrypoint."""
import asyncio
from datetime import datetime, timezone

import pytest

import strive.__main__ as cli
from strive.tracking.models import ActivityType, SessionRecord
from strive.tracking.store import SessionStore

SQUARE_CSV = (
    "timestamp,latitude,longitude,altitude,accuracy,speed\n"
    "2025-06-01T07:00:00Z,48.8566000,2.3522000,,5,\n"
    "2025-06-01T07:00:30Z,48.8574993,2.3522000,,5,\n"
    "2025-06-01T07:01:00Z,48.8574993,2.3535673,,5,\n"
    "2025-06-01T07:01:30Z,48.8566000,2.3535673,,5,\n"
)


@pytest.fixture(autouse=True)
def memory_store(monkeypatch, kv):
    monkeypatch.setattr(cli, "_open_store", lambda: SessionStore(kv))
    return kv


def test_status_without_session(capsys):
    assert cli.main(["status"]) == 0
    assert "No recording in progress." in capsys.readouterr().out


def test_status_with_paused_session(kv, capsys, make_fix):
    store = SessionStore(kv)
    record = SessionRecord(
        is_active=True,
        is_paused=True,
        activity_type=ActivityType.CYCLING,
        start_time=datetime(2025, 6, 1, 7, 0, tzinfo=timezone.utc),
        paused_duration=42,
    )
    asyncio.run(store.write_session(record))
    asyncio.run(store.append_points([make_fix(), make_fix(20, 0, seconds=5)]))

    assert cli.main(["status"]) == 0
    out = capsys.readouterr().out
    assert "cycling (paused)" in out
    assert "42s" in out
    assert "Points:    2" in out


def test_discard_wipes_store(kv, make_fix):
    asyncio.run(SessionStore(kv).append_points([make_fix()]))
    assert cli.main(["discard"]) == 0
    assert kv.data == {}


def test_replay_prints_summary(tmp_path, kv, capsys):
    track = tmp_path / "square.csv"
    track.write_text(SQUARE_CSV, encoding="utf-8")

    assert cli.main(["replay", str(track)]) == 0

    out = capsys.readouterr().out
    assert "Course (dry-run)" in out
    assert "Points:    4 of 4 fixes" in out
    assert "0.30 km" in out
    assert "1:30" in out
    assert "12.0 km/h" in out
    assert kv.data == {}


def test_replay_single_fix_is_insufficient(tmp_path, kv):
    track = tmp_path / "short.csv"
    track.write_text(SQUARE_CSV.splitlines(keepends=True)[0] + SQUARE_CSV.splitlines(keepends=True)[1])

    assert cli.main(["replay", str(track), "--activity", "hiking"]) == 1
    assert kv.data == {}


def test_replay_empty_track(tmp_path):
    track = tmp_path / "empty.csv"
    track.write_text("timestamp,latitude,longitude\n")
    assert cli.main(["replay", str(track)]) == 1


def test_unknown_activity_rejected(tmp_path):
    with pytest.raises(SystemExit):
        cli.main(["replay", str(tmp_path / "x.csv"), "--activity", "swimming"])
