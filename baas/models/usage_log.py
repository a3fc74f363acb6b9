from typing import Any, Dict

from pydantic import NaiveDatetime
from sqlalchemy import Column, DateTime, Index, JSON
from sqlmodel import Field, SQLModel

from baas.models.base import new_object_id, utcnow


class UsageLog(SQLModel, table=True):
    """One immutable record per completed key-authenticated request.

    ``api_key_id`` and ``project_id`` are plain references: deleting a key leaves its
    records in place until retention removes them.
    """
    __tablename__ = "usage_log"
    __table_args__ = (
        Index("ix_usage_log_project_ts", "project_id", "timestamp"),
        Index("ix_usage_log_key_ts", "api_key_id", "timestamp"),
        Index("ix_usage_log_project_endpoint_ts", "project_id", "endpoint", "timestamp"),
        Index("ix_usage_log_project_status_ts", "project_id", "status_code", "timestamp"),
    )

    id: str = Field(default_factory=new_object_id, primary_key=True, max_length=24)
    api_key_id: str = Field(index=True, max_length=24)
    project_id: str = Field(index=True, max_length=24)
    endpoint: str = Field(max_length=500)
    method: str = Field(max_length=8)
    status_code: int
    response_time: int  # milliseconds
    timestamp: NaiveDatetime = Field(default_factory=utcnow, index=True, sa_type=DateTime)
    request_metadata: Dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column("metadata", JSON, nullable=False),
    )
