from datetime import datetime, timedelta

import pytest
from sqlmodel import select

from baas.models.usage_log import UsageLog
from baas.services.retention import purge_expired_usage
from baas.services.usage_aggregator import (
    UsageAggregator,
    UsagePeriod,
    error_rate,
    round_half_up,
)

NOW = datetime(2024, 5, 10, 15, 30)
PROJECT = "a" * 24
KEY = "b" * 24
OTHER_KEY = "c" * 24


def _log(session, endpoint="/api/v1/db/query", status=200, ms=10, at=None, key=KEY, project=PROJECT):
    record = UsageLog(
        api_key_id=key,
        project_id=project,
        endpoint=endpoint,
        method="GET",
        status_code=status,
        response_time=ms,
        timestamp=at or NOW - timedelta(minutes=5),
    )
    session.add(record)
    session.commit()
    return record


@pytest.fixture
def aggregator(test_session):
    return UsageAggregator(test_session, now=NOW, retention_days=90)


class TestHelpers:

    def test_error_rate(self):
        assert error_rate(1, 3) == "33.33"
        assert error_rate(0, 5) == "0.00"
        assert error_rate(0, 0) == 0

    def test_round_half_up(self):
        assert round_half_up(12.5) == 13
        assert round_half_up(12.49) == 12
        assert round_half_up(None) == 0

    def test_period_days(self):
        assert [p.days for p in UsagePeriod] == [1, 7, 30, 90]


class TestProjectStats:

    def test_mixed_statuses(self, test_session, aggregator):
        _log(test_session, status=200, ms=10)
        _log(test_session, status=200, ms=20)
        _log(test_session, endpoint="/api/v1/storage/upload", status=403, ms=31)

        stats = aggregator.project_stats(PROJECT, UsagePeriod.ONE_DAY)

        assert stats.total_calls == 3
        assert stats.today_calls == 3
        assert stats.error_rate == "33.33"
        assert stats.avg_response_time == 20
        assert [(e.endpoint, e.count, e.error_count) for e in stats.top_endpoints] == [
            ("/api/v1/db/query", 2, 0),
            ("/api/v1/storage/upload", 1, 1),
        ]
        assert stats.top_endpoints[0].avg_response_time == 15.0
        assert [(s.status_code, s.count) for s in stats.status_code_stats] == [(200, 2), (403, 1)]

    def test_empty_window(self, aggregator):
        stats = aggregator.project_stats(PROJECT, UsagePeriod.SEVEN_DAYS)

        assert stats.total_calls == 0
        assert stats.today_calls == 0
        assert stats.error_rate == 0
        assert stats.avg_response_time == 0
        assert stats.top_endpoints == []
        assert stats.status_code_stats == []
        assert stats.recent_activity == []

    def test_window_bounds(self, test_session, aggregator):
        _log(test_session, at=NOW - timedelta(days=1, minutes=1))
        _log(test_session, at=NOW)  # end of the window is exclusive
        inside = _log(test_session, at=NOW - timedelta(hours=23))

        stats = aggregator.project_stats(PROJECT, UsagePeriod.ONE_DAY)

        assert stats.total_calls == 1
        assert stats.recent_activity[0].id == inside.id

    def test_today_counts_from_midnight(self, test_session, aggregator):
        _log(test_session, at=datetime(2024, 5, 9, 23, 59))
        _log(test_session, at=datetime(2024, 5, 10, 0, 1))

        stats = aggregator.project_stats(PROJECT, UsagePeriod.SEVEN_DAYS)

        assert stats.total_calls == 2
        assert stats.today_calls == 1

    def test_other_projects_excluded(self, test_session, aggregator):
        _log(test_session)
        _log(test_session, project="d" * 24)

        assert aggregator.project_stats(PROJECT, UsagePeriod.ONE_DAY).total_calls == 1

    def test_recent_activity_newest_first_and_capped(self, test_session, aggregator):
        for minute in range(12):
            _log(test_session, at=NOW - timedelta(minutes=minute + 1))

        recent = aggregator.project_stats(PROJECT, UsagePeriod.ONE_DAY).recent_activity

        assert len(recent) == 10
        assert recent[0].timestamp == NOW - timedelta(minutes=1)
        assert recent[0].timestamp > recent[-1].timestamp

    def test_top_endpoint_limit(self, test_session, aggregator):
        for i in range(5):
            _log(test_session, endpoint=f"/api/v1/e{i}")

        stats = aggregator.project_stats(PROJECT, UsagePeriod.ONE_DAY, limit=3)

        assert len(stats.top_endpoints) == 3

    def test_retention_horizon_clamps_window(self, test_session):
        _log(test_session, at=NOW - timedelta(days=20))
        aggregator = UsageAggregator(test_session, now=NOW, retention_days=10)

        assert aggregator.project_stats(PROJECT, UsagePeriod.NINETY_DAYS).total_calls == 0


class TestKeyStats:

    def test_key_totals_and_breakdown(self, test_session, aggregator):
        _log(test_session, ms=10, at=NOW - timedelta(hours=3))
        _log(test_session, ms=20, status=500, at=NOW - timedelta(hours=1))
        _log(test_session, endpoint="/api/v1/info", ms=5, at=NOW - timedelta(hours=2))
        _log(test_session, key=OTHER_KEY)

        stats, breakdown = aggregator.key_stats(KEY, UsagePeriod.THIRTY_DAYS)

        assert stats.total_calls == 3
        assert stats.avg_response_time == 12  # 35 / 3 = 11.67
        assert stats.error_count == 1
        assert stats.error_rate == "33.33"
        assert stats.last_used == NOW - timedelta(hours=1)
        assert [(b.endpoint, b.calls) for b in breakdown] == [
            ("/api/v1/db/query", 2),
            ("/api/v1/info", 1),
        ]

    def test_key_without_usage(self, aggregator):
        stats, breakdown = aggregator.key_stats(KEY, UsagePeriod.ONE_DAY)

        assert stats.total_calls == 0
        assert stats.error_rate == 0
        assert stats.last_used is None
        assert breakdown == []


class TestAnalytics:

    def test_daily_and_hourly_buckets(self, test_session, aggregator):
        _log(test_session, at=datetime(2024, 5, 8, 9, 0), ms=10)
        _log(test_session, at=datetime(2024, 5, 10, 9, 15), ms=20, status=404)
        _log(test_session, at=datetime(2024, 5, 10, 9, 45), ms=30)
        _log(test_session, at=datetime(2024, 5, 10, 14, 0), ms=40)

        analytics = aggregator.analytics(PROJECT, days=7)

        assert [(d.date, d.calls, d.errors) for d in analytics.daily_usage] == [
            ("2024-05-08", 1, 0),
            ("2024-05-10", 3, 1),
        ]
        assert analytics.daily_usage[1].avg_response_time == 30.0
        assert [(h.hour, h.calls) for h in analytics.hourly_usage] == [(9, 2), (14, 1)]

        performance = analytics.endpoint_performance[0]
        assert performance.calls == 4
        assert performance.min_response_time == 10
        assert performance.max_response_time == 40
        assert performance.errors == 1

    def test_empty_project(self, aggregator):
        analytics = aggregator.analytics(PROJECT, days=30)

        assert analytics.daily_usage == []
        assert analytics.hourly_usage == []
        assert analytics.endpoint_performance == []


class TestRetention:

    def test_purge_removes_only_expired(self, test_session):
        _log(test_session, at=NOW - timedelta(days=91))
        kept = _log(test_session, at=NOW - timedelta(days=89))

        removed = purge_expired_usage(test_session, retention_days=90, now=NOW)

        assert removed == 1
        assert [r.id for r in test_session.exec(select(UsageLog)).all()] == [kept.id]
