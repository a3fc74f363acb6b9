"""
Simulated auth, database and storage APIs consumed with a project API key.

The same routes are mounted once per authentication gate; see ``create_services_router``.
"""
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlmodel import Session

from baas.api.deps import ApiKeyGate, check_rate_limits, require_capabilities, usage_metadata
from baas.core.config import get_settings
from baas.core.logging import get_logger
from baas.core.security import mask_api_key
from baas.db.session import get_session
from baas.models.base import new_object_id
from baas.schemas.api_key import KeySummary, KeyValidationResponse
from baas.schemas.project import ProjectSummary
from baas.schemas.services import InsertRequest, LoginRequest, SignupRequest, UploadRequest
from baas.services.key_store import KeyContext, KeyStore

logger = get_logger(__name__)

API_VERSION = "1.0.0"
STORAGE_BASE_URL = "https://storage.example.com/files"

AVAILABLE_ENDPOINTS = [
    "POST /auth/signup - Create user account",
    "POST /auth/login - Authenticate user",
    "GET /auth/users - List users",
    "GET /db/query - Query database records",
    "POST /db/insert - Insert new record",
    "POST /storage/upload - Upload file",
    "GET /info - API information",
    "POST /validate-key - Validate an API key",
]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def create_services_router(gate: ApiKeyGate) -> APIRouter:
    """Build the key-authenticated API behind ``gate``."""
    router = APIRouter(dependencies=[Depends(check_rate_limits)])

    @router.post("/auth/signup", status_code=status.HTTP_201_CREATED)
    async def signup(
        body: SignupRequest,
        context: Optional[KeyContext] = Depends(require_capabilities("auth", gate=gate)),
    ):
        return {
            "message": "User created successfully",
            "user": {
                "id": f"user_{new_object_id()}",
                "email": body.email,
                "createdAt": _now_iso(),
            },
        }

    @router.post("/auth/login")
    async def login(
        body: LoginRequest,
        context: Optional[KeyContext] = Depends(require_capabilities("auth", gate=gate)),
    ):
        return {
            "message": "Login successful",
            "user": {"id": f"user_{new_object_id()}", "email": body.email},
            "token": f"jwt_token_{new_object_id()}",
            "expiresIn": "7d",
        }

    @router.get("/auth/users")
    async def list_users(
        limit: int = Query(10, ge=1, le=100),
        context: Optional[KeyContext] = Depends(require_capabilities("auth", "database", gate=gate)),
    ):
        users = [
            {"id": f"user_{i + 1}", "email": f"user{i + 1}@example.com"}
            for i in range(min(limit, 10))
        ]
        return {"message": "Users retrieved successfully", "users": users, "count": len(users)}

    @router.get("/db/query", dependencies=[Depends(usage_metadata(service="database"))])
    async def query_records(
        table: Optional[str] = None,
        limit: int = Query(10, ge=1, le=100),
        context: Optional[KeyContext] = Depends(require_capabilities("database", gate=gate)),
    ):
        results = [
            {"id": i + 1, "name": f"Record {i + 1}", "createdAt": _now_iso()}
            for i in range(min(limit, 10))
        ]
        return {
            "message": "Query executed successfully",
            "table": table or "default",
            "results": results,
            "count": len(results),
        }

    @router.post(
        "/db/insert",
        status_code=status.HTTP_201_CREATED,
        dependencies=[Depends(usage_metadata(service="database"))],
    )
    async def insert_record(
        body: InsertRequest,
        context: Optional[KeyContext] = Depends(require_capabilities("database", gate=gate)),
    ):
        return {
            "message": "Record inserted successfully",
            "id": f"record_{new_object_id()}",
            "data": body.data,
            "createdAt": _now_iso(),
        }

    @router.post(
        "/storage/upload",
        status_code=status.HTTP_201_CREATED,
        dependencies=[Depends(usage_metadata(service="storage"))],
    )
    async def upload_file(
        body: UploadRequest,
        context: Optional[KeyContext] = Depends(require_capabilities("storage", gate=gate)),
    ):
        file_id = f"file_{new_object_id()}"
        return {
            "message": "File uploaded successfully",
            "file": {
                "id": file_id,
                "filename": body.filename,
                "url": f"{STORAGE_BASE_URL}/{file_id}",
                "size": len(body.content),
                "uploadedAt": _now_iso(),
            },
        }

    @router.get("/info")
    async def api_info(context: Optional[KeyContext] = Depends(gate)):
        """Service banner; describes the calling key when one was resolved."""
        response = {
            "message": "BaaS API is running",
            "version": API_VERSION,
            "timestamp": _now_iso(),
        }

        if context is not None and context.key is not None:
            response["project"] = {"id": context.project.id, "name": context.project.name}
            response["apiKey"] = {
                "id": context.key_id,
                "displayName": context.key.name,
                "capabilities": context.capabilities,
            }
        elif context is not None:
            response["project"] = {"id": context.project_id}
            response["note"] = "Key format accepted without verification"
        else:
            response["note"] = "Testing mode - no API key provided"
            response["availableEndpoints"] = AVAILABLE_ENDPOINTS

        return response

    @router.post("/validate-key", response_model=KeyValidationResponse)
    async def validate_key(
        request: Request,
        context: Optional[KeyContext] = Depends(gate),
        session: Session = Depends(get_session),
    ):
        """
        Confirm that the presented key resolves to a live project.

        Behind the optional gate a missing or rejected key is still reported as an error here.
        """
        secret = request.headers.get(get_settings().API_KEY_HEADER)
        if context is None:
            # raises the precise authentication error
            context = KeyStore(session).authenticate(secret)

        if context.key is None:
            return KeyValidationResponse(
                success=True,
                message="API key format is valid; the key was not checked against the store",
                project=ProjectSummary(id=context.project_id, name=""),
                api_key=KeySummary.masked(secret),
            )

        logger.info(f"Validated API key {mask_api_key(secret)} for project {context.project_id}")
        return KeyValidationResponse(
            success=True,
            message="API key and project ID validated successfully",
            project=ProjectSummary(id=context.project.id, name=context.project.name),
            api_key=KeySummary.masked(secret, context.key),
        )

    return router
