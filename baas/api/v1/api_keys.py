import logging

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from baas.api.deps import get_current_user, get_owned_key, get_owned_project
from baas.db.session import get_session
from baas.models.user import User
from baas.schemas.api_key import (
    APIKeyCreate,
    APIKeyCreateResponse,
    APIKeyDetailResponse,
    APIKeyListResponse,
    APIKeyResponse,
    APIKeyUpdate,
)
from baas.schemas.common import MessageResponse
from baas.schemas.project import ProjectSummary
from baas.services.key_store import KeyStore

router = APIRouter()
logger = logging.getLogger(__name__)

SECRET_WARNING = "Save this API key securely. You won't be able to see it again."


@router.post("/generate", response_model=APIKeyCreateResponse, status_code=status.HTTP_201_CREATED)
async def generate_api_key(
    key_data: APIKeyCreate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    """
    Issue a new API key for a project the caller owns.

    The full secret is returned in this response only.
    """
    project = get_owned_project(session, key_data.project_id, current_user)

    record, secret = KeyStore(session).create(
        project_id=project.id,
        capabilities=[c.value for c in key_data.capabilities] if key_data.capabilities is not None else None,
        name=key_data.display_name,
        description=key_data.description,
    )

    return APIKeyCreateResponse(
        message="API key generated successfully",
        api_key=APIKeyResponse.from_record(record, secret=secret),
        warning=SECRET_WARNING,
    )


@router.get("/project/{project_id}", response_model=APIKeyListResponse)
async def list_project_keys(
    project_id: str,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    """List a project's keys, masked, newest first."""
    project = get_owned_project(session, project_id, current_user)
    records = KeyStore(session).list_by_project(project.id)

    return APIKeyListResponse(
        message="API keys retrieved successfully",
        api_keys=[APIKeyResponse.from_record(r) for r in records],
        project=ProjectSummary(id=project.id, name=project.name),
    )


@router.get("/{key_id}", response_model=APIKeyDetailResponse)
async def get_api_key(
    key_id: str,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    record = get_owned_key(session, key_id, current_user, action="view")
    return APIKeyDetailResponse(
        message="API key retrieved successfully",
        api_key=APIKeyResponse.from_record(record),
    )


@router.put("/{key_id}", response_model=APIKeyDetailResponse)
async def update_api_key(
    key_id: str,
    key_data: APIKeyUpdate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    """Rename, re-describe, re-scope or (de)activate a key."""
    record = get_owned_key(session, key_id, current_user, action="update")

    record = KeyStore(session).update(
        record,
        name=key_data.display_name,
        description=key_data.description,
        capabilities=[c.value for c in key_data.capabilities] if key_data.capabilities is not None else None,
        active=key_data.active,
    )

    return APIKeyDetailResponse(
        message="API key updated successfully",
        api_key=APIKeyResponse.from_record(record),
    )


@router.delete("/{key_id}", response_model=MessageResponse)
async def delete_api_key(
    key_id: str,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    record = get_owned_key(session, key_id, current_user, action="delete")
    KeyStore(session).delete(record)

    logger.info(f"API key {key_id} deleted by {current_user.email}")

    return MessageResponse(message="API key deleted successfully")
