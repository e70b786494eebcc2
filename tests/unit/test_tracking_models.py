"""Tests for recording-core data types and derived metrics."""
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from strive.tracking.models import (
    ActivitySummary,
    ActivityType,
    GPSFix,
    Idle,
    Paused,
    Recording,
    SessionRecord,
    SessionStatus,
    TrackingSession,
    average_speed_kmh,
    elapsed_seconds,
    pause_length_seconds,
)

T0 = datetime(2025, 6, 1, 7, 0, tzinfo=timezone.utc)


class TestGPSFix:
    def test_is_immutable(self):
        fix = GPSFix(latitude=1.0, longitude=2.0, timestamp=T0)
        with pytest.raises(ValidationError):
            fix.latitude = 3.0

    def test_optional_fields_default_to_none(self):
        fix = GPSFix(latitude=1.0, longitude=2.0, timestamp=T0)
        assert fix.altitude is None
        assert fix.accuracy is None
        assert fix.speed is None

    @pytest.mark.parametrize("lat,lon", [(90.1, 0.0), (-91.0, 0.0), (0.0, 180.5), (0.0, -181.0)])
    def test_rejects_out_of_range_coordinates(self, lat, lon):
        with pytest.raises(ValidationError):
            GPSFix(latitude=lat, longitude=lon, timestamp=T0)

    def test_parses_iso_timestamp(self):
        fix = GPSFix.model_validate(
            {"latitude": 1.0, "longitude": 2.0, "timestamp": "2025-06-01T07:00:00Z"}
        )
        assert fix.timestamp == T0


class TestActivityType:
    def test_labels(self):
        assert ActivityType.RUNNING.label == "Course"
        assert ActivityType.CYCLING.label == "Vélo"
        assert ActivityType.HIKING.label == "Randonnée"

    def test_unknown_value_rejected(self):
        with pytest.raises(ValueError):
            ActivityType("swimming")


class TestStates:
    def test_status_per_state(self):
        session = TrackingSession(activity_type=ActivityType.RUNNING, start_time=T0)
        assert Idle().status == SessionStatus.IDLE
        assert Recording(session).status == SessionStatus.RECORDING
        assert Paused(session, paused_at=T0).status == SessionStatus.PAUSED

    def test_new_session_is_empty(self):
        session = TrackingSession(activity_type=ActivityType.WALKING, start_time=T0)
        assert session.points == []
        assert session.last_point is None
        assert session.distance_meters == 0.0

    def test_record_defaults_inactive(self):
        record = SessionRecord()
        assert not record.is_active
        assert record.paused_duration == 0
        assert record.last_pause_time is None


class TestActivitySummaryPayload:
    def test_uses_api_field_names(self):
        fix = GPSFix(latitude=1.0, longitude=2.0, accuracy=4.0, timestamp=T0)
        summary = ActivitySummary(
            activity_type=ActivityType.CYCLING,
            points=[fix],
            distance_meters=1234.5,
            duration_seconds=600,
            avg_speed_kmh=7.4,
            start_time=T0,
            end_time=T0 + timedelta(minutes=10),
        )
        payload = summary.to_payload()
        assert payload["activity_type"] == "cycling"
        assert payload["distance"] == 1234.5
        assert payload["duration"] == 600
        assert payload["avg_speed"] == 7.4
        assert payload["gps_points"][0]["latitude"] == 1.0
        assert payload["gps_points"][0]["accuracy"] == 4.0
        assert payload["start_time"].startswith("2025-06-01T07:00:00")
        assert "distance_meters" not in payload


class TestDerivedMetrics:
    def test_elapsed_floors_to_whole_seconds(self):
        assert elapsed_seconds(T0, T0 + timedelta(seconds=59.9), 0) == 59

    def test_elapsed_subtracts_paused_time(self):
        assert elapsed_seconds(T0, T0 + timedelta(seconds=600), 120) == 480

    def test_elapsed_never_negative(self):
        assert elapsed_seconds(T0, T0 + timedelta(seconds=10), 30) == 0

    def test_pause_length(self):
        assert pause_length_seconds(T0, T0 + timedelta(seconds=42.7)) == 42
        assert pause_length_seconds(T0, T0) == 0

    def test_average_speed(self):
        # 10 km in 1 hour
        assert average_speed_kmh(10_000.0, 3600) == pytest.approx(10.0)

    def test_average_speed_zero_duration(self):
        assert average_speed_kmh(500.0, 0) == 0.0
