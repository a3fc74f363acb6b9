from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, ConfigDict, Field

from baas.core.security import mask_api_key
from baas.models.api_key import APIKey, Capability
from baas.schemas.common import CamelModel
from baas.schemas.project import ProjectSummary


class APIKeyCreate(CamelModel):
    """API key creation request."""
    model_config = ConfigDict(str_strip_whitespace=True)

    project_id: str = Field(validation_alias=AliasChoices("projectId", "project_id"))
    display_name: Optional[str] = Field(
        default=None,
        min_length=1,
        max_length=100,
        validation_alias=AliasChoices("displayName", "name", "display_name"),
    )
    description: Optional[str] = Field(default=None, max_length=500)
    capabilities: Optional[List[Capability]] = Field(
        default=None,
        validation_alias=AliasChoices("capabilities", "permissions"),
    )


class APIKeyUpdate(CamelModel):
    """API key update request; omitted fields are left untouched."""
    model_config = ConfigDict(str_strip_whitespace=True)

    display_name: Optional[str] = Field(
        default=None,
        min_length=1,
        max_length=100,
        validation_alias=AliasChoices("displayName", "name", "display_name"),
    )
    description: Optional[str] = Field(default=None, max_length=500)
    capabilities: Optional[List[Capability]] = Field(
        default=None,
        validation_alias=AliasChoices("capabilities", "permissions"),
    )
    active: Optional[bool] = Field(
        default=None,
        validation_alias=AliasChoices("active", "isActive", "is_active"),
    )


class APIKeyResponse(CamelModel):
    """API key as shown to its owner. ``key`` is masked except in the creation response."""
    id: str
    project_id: str
    key: str
    env_tag: str
    display_name: str
    description: str
    capabilities: List[str]
    active: bool
    last_used_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record: APIKey, secret: Optional[str] = None) -> "APIKeyResponse":
        return cls(
            id=record.id,
            project_id=record.project_id,
            key=secret if secret is not None else record.masked_key,
            env_tag=record.env_tag,
            display_name=record.name,
            description=record.description,
            capabilities=list(record.capabilities or []),
            active=record.is_active,
            last_used_at=record.last_used_at,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class APIKeyCreateResponse(CamelModel):
    message: str
    api_key: APIKeyResponse
    warning: str


class APIKeyDetailResponse(CamelModel):
    message: str
    api_key: APIKeyResponse


class APIKeyListResponse(CamelModel):
    message: str
    api_keys: List[APIKeyResponse]
    project: ProjectSummary


class KeySummary(CamelModel):
    id: Optional[str]
    display_name: Optional[str]
    key: str
    capabilities: List[str]

    @classmethod
    def masked(cls, secret: str, record: Optional[APIKey] = None) -> "KeySummary":
        return cls(
            id=record.id if record else None,
            display_name=record.name if record else None,
            key=record.masked_key if record else mask_api_key(secret),
            capabilities=list(record.capabilities or []) if record else [],
        )


class KeyValidationResponse(CamelModel):
    """Result of validating a key against the store."""
    success: bool
    message: str
    project: ProjectSummary
    api_key: KeySummary
