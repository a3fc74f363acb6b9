from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from baas.api.deps import get_current_user, get_owned_key, get_owned_project
from baas.db.session import get_session
from baas.models.user import User
from baas.schemas.project import ProjectSummary
from baas.schemas.usage import (
    KeyUsageResponse,
    KeyUsageSummary,
    UsageAnalyticsResponse,
    UsageStatsResponse,
)
from baas.services.usage_aggregator import UsageAggregator, UsagePeriod

router = APIRouter()


@router.get("/stats/{project_id}", response_model=UsageStatsResponse)
async def get_project_stats(
    project_id: str,
    period: UsagePeriod = Query(UsagePeriod.THIRTY_DAYS),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    """
    Project usage over a trailing window.

    Returns total and today's call counts, error rate, mean latency, the busiest
    endpoints, a status code histogram and the most recent calls.
    """
    project = get_owned_project(session, project_id, current_user)
    stats = UsageAggregator(session).project_stats(project.id, period=period, limit=limit)

    return UsageStatsResponse(
        message="Usage statistics retrieved successfully",
        period=period.value,
        project=ProjectSummary(id=project.id, name=project.name),
        stats=stats,
    )


@router.get("/analytics/{project_id}", response_model=UsageAnalyticsResponse)
async def get_project_analytics(
    project_id: str,
    days: int = Query(30, ge=1, le=90),
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    """Chart series for the dashboard."""
    project = get_owned_project(session, project_id, current_user)
    analytics = UsageAggregator(session).analytics(project.id, days=days)

    return UsageAnalyticsResponse(
        message="Analytics retrieved successfully",
        period=f"{days} days",
        project=ProjectSummary(id=project.id, name=project.name),
        analytics=analytics,
    )


@router.get("/keys/{key_id}", response_model=KeyUsageResponse)
async def get_key_usage(
    key_id: str,
    period: UsagePeriod = Query(UsagePeriod.THIRTY_DAYS),
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    record = get_owned_key(session, key_id, current_user, action="view")
    stats, breakdown = UsageAggregator(session).key_stats(record.id, period=period)

    return KeyUsageResponse(
        message="API key usage retrieved successfully",
        period=period.value,
        api_key=KeyUsageSummary(id=record.id, display_name=record.name, project=record.project_id),
        stats=stats,
        endpoint_breakdown=breakdown,
    )
