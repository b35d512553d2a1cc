"""
Tests for server-side telemetry ingestion and aggregate queries.

Runs against a temporary SQLite database file.
"""

from datetime import datetime, timedelta, timezone

import pytest

from core.clock import MockClock
from database import (
    create_all_tables,
    create_database_engine,
    create_session_factory,
    transaction_scope,
)
from telemetry.repository import (
    MetricsIngestionService,
    TelemetryEventRepository,
    build_record,
    classify_event,
)
from telemetry.types import EventType, InvalidBatchError


# ============================================================
# FIXTURES
# ============================================================

NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)
NOW_MS = int(NOW.timestamp() * 1000)


@pytest.fixture
def engine(tmp_path):
    engine = create_database_engine(f"sqlite:///{tmp_path / 'telemetry.db'}")
    create_all_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def service(session_factory, engine):
    return MetricsIngestionService(session_factory, engine, clock=MockClock(NOW))


def upload(success, size, duration_ms, user_id="u1", minutes_ago=0):
    start = NOW_MS - minutes_ago * 60_000
    return {
        "upload_start_time": start,
        "upload_end_time": start + duration_ms,
        "file_size": size,
        "success": success,
        "video_format": "mp4",
        "user_id": user_id,
        "timestamp": start + duration_ms,
    }


def api_call(status_code):
    return {
        "endpoint": "/api/videos",
        "response_time": 120,
        "status_code": status_code,
        "timestamp": NOW_MS,
    }


# ============================================================
# CLASSIFICATION TESTS
# ============================================================

class TestClassification:
    """Tests for classify_event and build_record."""

    @pytest.mark.parametrize("event,expected", [
        ({"type": "business_kpi", "metric": "m"}, EventType.BUSINESS_KPI),
        ({"upload_start_time": 1}, EventType.UPLOAD),
        ({"endpoint": "/x"}, EventType.PERFORMANCE),
        ({"task_type": "first_upload"}, EventType.USER_EXPERIENCE),
        ({"anything": 1}, EventType.GENERIC),
    ])
    def test_classify(self, event, expected):
        assert classify_event(event) == expected

    def test_upload_duration_derived(self):
        record = build_record(upload(True, 1000, 2500), NOW)

        assert record.event_type == "upload"
        assert record.duration_ms == 2500
        assert record.success is True
        assert record.payload["video_format"] == "mp4"

    @pytest.mark.parametrize("timestamp", [None, "yesterday", True])
    def test_bad_timestamp_rejected(self, timestamp):
        with pytest.raises(ValueError):
            build_record({"metric": "m", "timestamp": timestamp}, NOW)

    def test_non_boolean_success_rejected(self):
        event = upload(True, 1000, 10)
        event["success"] = "yes"

        with pytest.raises(ValueError):
            build_record(event, NOW)


# ============================================================
# INGESTION TESTS
# ============================================================

class TestMetricsIngestionService:
    """Tests for MetricsIngestionService."""

    @pytest.mark.asyncio
    async def test_ingest_counts(self, service, session_factory):
        body = {"metrics": [
            upload(True, 1000, 100),
            api_call(200),
            {"type": "business_kpi", "metric": "score", "value": 74.8, "timestamp": NOW_MS},
            "not an event",
            {"metric": "no timestamp"},
        ]}

        result = await service.ingest(body)

        assert (result.processed, result.failed, result.total) == (3, 2, 5)
        assert len(result.errors) == 2
        assert result.to_dict()["success"] is True

        with transaction_scope(session_factory) as session:
            repository = TelemetryEventRepository(session)
            assert repository.count_events(EventType.UPLOAD) == 1
            assert repository.count_events(EventType.BUSINESS_KPI) == 1

    @pytest.mark.asyncio
    async def test_empty_batch(self, service):
        result = await service.ingest({"metrics": []})

        assert (result.processed, result.failed, result.total) == (0, 0, 0)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [None, [], {"events": []}, {"metrics": "x"}])
    async def test_invalid_body_rejected(self, service, body):
        with pytest.raises(InvalidBatchError):
            await service.ingest(body)

    @pytest.mark.asyncio
    async def test_health_check(self, service):
        health = await service.health_check()

        assert health["status"] == "healthy"
        assert health["database"] == "connected"
        assert health["timestamp"] == NOW.isoformat()


# ============================================================
# AGGREGATE QUERY TESTS
# ============================================================

class TestTelemetryEventRepository:
    """Tests for the aggregate queries used by the samplers."""

    @pytest.mark.asyncio
    async def test_upload_stats_and_error_rate(self, service, session_factory):
        await service.ingest({"metrics": [
            upload(True, 1000, 100, user_id="a"),
            upload(True, 3000, 300, user_id="b"),
            upload(False, 500, 50, user_id="a"),
            upload(True, 9999, 10, user_id="c", minutes_ago=120),
            api_call(200),
            api_call(200),
            api_call(500),
            api_call(404),
        ]})
        since = NOW - timedelta(hours=1)

        with transaction_scope(session_factory) as session:
            repository = TelemetryEventRepository(session)
            stats = repository.upload_stats(since)
            error_rate = repository.api_error_rate(since)
            uploaders = repository.distinct_uploaders(since)

        assert (stats.total, stats.succeeded, stats.failed) == (3, 2, 1)
        assert stats.total_bytes == 4000
        assert stats.average_duration_ms == pytest.approx(200)
        assert error_rate == pytest.approx(50.0)
        assert uploaders == 2

    def test_error_rate_without_data(self, session_factory):
        with transaction_scope(session_factory) as session:
            assert TelemetryEventRepository(session).api_error_rate(NOW) is None
