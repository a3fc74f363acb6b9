from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import Field

from baas.models.usage_log import UsageLog
from baas.schemas.common import CamelModel
from baas.schemas.project import ProjectSummary


class EndpointStat(CamelModel):
    endpoint: str
    count: int
    avg_response_time: float
    error_count: int


class StatusCodeStat(CamelModel):
    status_code: int
    count: int


class UsageRecordResponse(CamelModel):
    """A usage record exactly as stored."""
    id: str
    api_key_id: str
    project_id: str
    endpoint: str
    method: str
    status_code: int
    response_time: int
    timestamp: datetime
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_record(cls, record: UsageLog) -> "UsageRecordResponse":
        return cls(
            id=record.id,
            api_key_id=record.api_key_id,
            project_id=record.project_id,
            endpoint=record.endpoint,
            method=record.method,
            status_code=record.status_code,
            response_time=record.response_time,
            timestamp=record.timestamp,
            metadata=dict(record.request_metadata or {}),
        )


class UsageStats(CamelModel):
    total_calls: int = 0
    today_calls: int = 0
    error_rate: Union[str, int] = 0
    avg_response_time: int = 0
    top_endpoints: List[EndpointStat] = Field(default_factory=list)
    status_code_stats: List[StatusCodeStat] = Field(default_factory=list)
    recent_activity: List[UsageRecordResponse] = Field(default_factory=list)


class UsageStatsResponse(CamelModel):
    message: str
    period: str
    project: ProjectSummary
    stats: UsageStats


class DailyUsage(CamelModel):
    date: str
    calls: int
    avg_response_time: float
    errors: int


class HourlyUsage(CamelModel):
    hour: int
    calls: int


class EndpointPerformance(CamelModel):
    endpoint: str
    calls: int
    avg_response_time: float
    min_response_time: int
    max_response_time: int
    errors: int


class UsageAnalytics(CamelModel):
    daily_usage: List[DailyUsage] = Field(default_factory=list)
    hourly_usage: List[HourlyUsage] = Field(default_factory=list)
    endpoint_performance: List[EndpointPerformance] = Field(default_factory=list)


class UsageAnalyticsResponse(CamelModel):
    message: str
    period: str
    project: ProjectSummary
    analytics: UsageAnalytics


class EndpointBreakdown(CamelModel):
    endpoint: str
    calls: int
    avg_response_time: float


class KeyUsageStats(CamelModel):
    total_calls: int = 0
    avg_response_time: int = 0
    error_count: int = 0
    error_rate: Union[str, int] = 0
    last_used: Optional[datetime] = None


class KeyUsageSummary(CamelModel):
    id: str
    display_name: str
    project: str


class KeyUsageResponse(CamelModel):
    message: str
    period: str
    api_key: KeyUsageSummary
    stats: KeyUsageStats
    endpoint_breakdown: List[EndpointBreakdown]
