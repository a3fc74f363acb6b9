"""Read-only analytics over stored usage records."""
import enum
import math
from datetime import datetime, timedelta
from typing import List, Optional, Tuple, Union

from sqlalchemy import case, extract, func
from sqlmodel import Session, select

from baas.core.config import get_settings
from baas.core.logging import get_logger
from baas.models.base import utcnow
from baas.models.usage_log import UsageLog
from baas.schemas.usage import (
    DailyUsage,
    EndpointBreakdown,
    EndpointPerformance,
    EndpointStat,
    HourlyUsage,
    KeyUsageStats,
    StatusCodeStat,
    UsageAnalytics,
    UsageRecordResponse,
    UsageStats,
)

logger = get_logger(__name__)

RECENT_ACTIVITY_LIMIT = 10
ENDPOINT_PERFORMANCE_LIMIT = 20
KEY_BREAKDOWN_LIMIT = 10


class UsagePeriod(str, enum.Enum):
    ONE_DAY = "1d"
    SEVEN_DAYS = "7d"
    THIRTY_DAYS = "30d"
    NINETY_DAYS = "90d"

    @property
    def days(self) -> int:
        return int(self.value[:-1])


def error_rate(errors: int, total: int) -> Union[str, int]:
    """Percentage of failed calls with two decimals, or 0 when there were no calls."""
    if total <= 0:
        return 0
    return f"{errors / total * 100:.2f}"


def round_half_up(value: Optional[float]) -> int:
    if value is None:
        return 0
    return int(math.floor(float(value) + 0.5))


def _mean(value) -> float:
    return round(float(value), 2) if value is not None else 0.0


_error_count = func.coalesce(func.sum(case((UsageLog.status_code >= 400, 1), else_=0)), 0)


class UsageAggregator:
    """
    Windowed aggregates for one project or one key.

    Every query is bounded to ``[now - window, now)`` and never reaches further back
    than the retention horizon, so expired records stay invisible even before the
    sweep has physically removed them.
    """

    def __init__(self, session: Session, now: Optional[datetime] = None, retention_days: Optional[int] = None):
        self.session = session
        self.now = now or utcnow()
        self.retention_days = retention_days or get_settings().USAGE_RETENTION_DAYS

    @property
    def start_of_today(self) -> datetime:
        return self.now.replace(hour=0, minute=0, second=0, microsecond=0)

    def window(self, days: int) -> Tuple[datetime, datetime]:
        horizon = self.now - timedelta(days=self.retention_days)
        return max(self.now - timedelta(days=days), horizon), self.now

    def _conditions(self, days: int, project_id: Optional[str] = None, key_id: Optional[str] = None) -> list:
        start, end = self.window(days)
        conditions = [UsageLog.timestamp >= start, UsageLog.timestamp < end]
        if project_id is not None:
            conditions.append(UsageLog.project_id == project_id)
        if key_id is not None:
            conditions.append(UsageLog.api_key_id == key_id)
        return conditions

    def project_stats(
        self,
        project_id: str,
        period: UsagePeriod = UsagePeriod.THIRTY_DAYS,
        limit: int = 10,
    ) -> UsageStats:
        """Totals, error rate, mean latency, top endpoints, status histogram and recent calls."""
        conditions = self._conditions(period.days, project_id=project_id)

        total, errors, avg_time = self.session.exec(
            select(func.count(UsageLog.id), _error_count, func.avg(UsageLog.response_time))
            .where(*conditions)
        ).one()

        today_calls = self.session.exec(
            select(func.count(UsageLog.id))
            .where(*conditions, UsageLog.timestamp >= self.start_of_today)
        ).one()

        calls = func.count(UsageLog.id).label("calls")
        top_rows = self.session.exec(
            select(UsageLog.endpoint, calls, func.avg(UsageLog.response_time), _error_count)
            .where(*conditions)
            .group_by(UsageLog.endpoint)
            .order_by(calls.desc(), UsageLog.endpoint)
            .limit(limit)
        ).all()

        status_rows = self.session.exec(
            select(UsageLog.status_code, func.count(UsageLog.id))
            .where(*conditions)
            .group_by(UsageLog.status_code)
            .order_by(UsageLog.status_code)
        ).all()

        recent = self.session.exec(
            select(UsageLog)
            .where(*conditions)
            .order_by(UsageLog.timestamp.desc())
            .limit(RECENT_ACTIVITY_LIMIT)
        ).all()

        total = int(total or 0)
        return UsageStats(
            total_calls=total,
            today_calls=int(today_calls or 0),
            error_rate=error_rate(int(errors or 0), total),
            avg_response_time=round_half_up(avg_time) if total else 0,
            top_endpoints=[
                EndpointStat(
                    endpoint=endpoint,
                    count=int(count),
                    avg_response_time=_mean(avg),
                    error_count=int(endpoint_errors or 0),
                )
                for endpoint, count, avg, endpoint_errors in top_rows
            ],
            status_code_stats=[
                StatusCodeStat(status_code=int(code), count=int(count))
                for code, count in status_rows
            ],
            recent_activity=[UsageRecordResponse.from_record(record) for record in recent],
        )

    def key_stats(
        self,
        key_id: str,
        period: UsagePeriod = UsagePeriod.THIRTY_DAYS,
    ) -> Tuple[KeyUsageStats, List[EndpointBreakdown]]:
        """Totals for a single key plus its busiest endpoints."""
        conditions = self._conditions(period.days, key_id=key_id)

        total, avg_time, errors, last_used = self.session.exec(
            select(
                func.count(UsageLog.id),
                func.avg(UsageLog.response_time),
                _error_count,
                func.max(UsageLog.timestamp),
            ).where(*conditions)
        ).one()

        calls = func.count(UsageLog.id).label("calls")
        breakdown_rows = self.session.exec(
            select(UsageLog.endpoint, calls, func.avg(UsageLog.response_time))
            .where(*conditions)
            .group_by(UsageLog.endpoint)
            .order_by(calls.desc(), UsageLog.endpoint)
            .limit(KEY_BREAKDOWN_LIMIT)
        ).all()

        total = int(total or 0)
        stats = KeyUsageStats(
            total_calls=total,
            avg_response_time=round_half_up(avg_time) if total else 0,
            error_count=int(errors or 0),
            error_rate=error_rate(int(errors or 0), total),
            last_used=last_used if total else None,
        )
        breakdown = [
            EndpointBreakdown(endpoint=endpoint, calls=int(count), avg_response_time=_mean(avg))
            for endpoint, count, avg in breakdown_rows
        ]
        return stats, breakdown

    def analytics(self, project_id: str, days: int = 30) -> UsageAnalytics:
        """Chart series: per-day totals, today's per-hour counts and per-endpoint latency spread."""
        conditions = self._conditions(days, project_id=project_id)

        day = func.date(UsageLog.timestamp)
        daily_rows = self.session.exec(
            select(day, func.count(UsageLog.id), func.avg(UsageLog.response_time), _error_count)
            .where(*conditions)
            .group_by(day)
            .order_by(day)
        ).all()

        hour = extract("hour", UsageLog.timestamp)
        hourly_rows = self.session.exec(
            select(hour, func.count(UsageLog.id))
            .where(
                UsageLog.project_id == project_id,
                UsageLog.timestamp >= self.start_of_today,
                UsageLog.timestamp < self.now,
            )
            .group_by(hour)
            .order_by(hour)
        ).all()

        calls = func.count(UsageLog.id).label("calls")
        performance_rows = self.session.exec(
            select(
                UsageLog.endpoint,
                calls,
                func.avg(UsageLog.response_time),
                func.min(UsageLog.response_time),
                func.max(UsageLog.response_time),
                _error_count,
            )
            .where(*conditions)
            .group_by(UsageLog.endpoint)
            .order_by(calls.desc(), UsageLog.endpoint)
            .limit(ENDPOINT_PERFORMANCE_LIMIT)
        ).all()

        return UsageAnalytics(
            daily_usage=[
                DailyUsage(date=str(date), calls=int(count), avg_response_time=_mean(avg), errors=int(errors or 0))
                for date, count, avg, errors in daily_rows
            ],
            hourly_usage=[
                HourlyUsage(hour=int(hour_of_day), calls=int(count))
                for hour_of_day, count in hourly_rows
            ],
            endpoint_performance=[
                EndpointPerformance(
                    endpoint=endpoint,
                    calls=int(count),
                    avg_response_time=_mean(avg),
                    min_response_time=int(fastest),
                    max_response_time=int(slowest),
                    errors=int(errors or 0),
                )
                for endpoint, count, avg, fastest, slowest, errors in performance_rows
            ],
        )
