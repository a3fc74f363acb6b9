import enum
from typing import Iterable, List, Optional

from pydantic import NaiveDatetime
from sqlalchemy import Column, DateTime, Index, JSON
from sqlmodel import Field

from baas.models.base import BaseModel


class Capability(str, enum.Enum):
    AUTH = "auth"
    DATABASE = "database"
    STORAGE = "storage"


DEFAULT_CAPABILITIES = [Capability.AUTH.value, Capability.DATABASE.value]


def normalize_capabilities(capabilities: Iterable) -> List[str]:
    """Validate against the enumeration and collapse duplicates, keeping first-seen order."""
    normalized: List[str] = []
    for capability in capabilities:
        value = Capability(getattr(capability, "value", capability)).value
        if value not in normalized:
            normalized.append(value)
    return normalized


class APIKey(BaseModel, table=True):
    """API key issued against a project.

    Only the SHA-256 digest of the secret is stored; ``masked_key`` is the display form
    computed once at issuance. ``project_id`` is a plain reference so a key can outlive
    its project (it is then rejected as orphaned).
    """
    __tablename__ = "api_key"
    __table_args__ = (
        Index("ix_api_key_project_active", "project_id", "is_active"),
    )

    project_id: str = Field(index=True, max_length=24)
    hashed_key: str = Field(unique=True, index=True, max_length=64)
    masked_key: str = Field(max_length=32)
    env_tag: str = Field(default="live", max_length=8)
    name: str = Field(default="API Key", max_length=100)
    description: str = Field(default="", max_length=500)
    capabilities: List[str] = Field(
        default_factory=lambda: list(DEFAULT_CAPABILITIES),
        sa_column=Column(JSON, nullable=False),
    )
    is_active: bool = Field(default=True)
    last_used_at: Optional[NaiveDatetime] = Field(default=None, index=True, sa_type=DateTime)

    def has_capabilities(self, required: Iterable[str]) -> bool:
        granted = set(self.capabilities or [])
        return all(capability in granted for capability in required)
