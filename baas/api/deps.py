import enum
from typing import Any, Callable, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlmodel import Session, select

from baas.core.config import get_settings
from baas.core.exceptions import (
    AuthenticationError,
    Forbidden,
    InsufficientPermissions,
    MalformedIdentifier,
    NotFound,
)
from baas.core.logging import get_logger
from baas.core.rate_limit import RateLimiter
from baas.core.security import mask_api_key, verify_token
from baas.db.session import get_session
from baas.models.api_key import APIKey, normalize_capabilities
from baas.models.base import is_valid_object_id
from baas.models.project import Project
from baas.models.user import User
from baas.services.key_store import KeyContext, KeyStore
from baas.services.usage_recorder import add_usage_metadata, attach_key_context

logger = get_logger(__name__)

security = HTTPBearer(auto_error=False)
rate_limiter = RateLimiter()


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    session: Session = Depends(get_session)
) -> User:
    """Get the dashboard user from a bearer JWT."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = verify_token(credentials.credentials)
    user_id = payload.get("sub")
    user = session.get(User, user_id) if user_id else None
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or inactive user",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user


async def check_rate_limits(request: Request) -> bool:
    """Per-IP limit for the key-authenticated API."""
    return await rate_limiter.check_ip_rate_limit(request)


class VerificationLevel(str, enum.Enum):
    STRICT = "strict"
    OPTIONAL = "optional"
    FORMAT_ONLY = "format_only"


class ApiKeyGate:
    """
    Authentication gate for the key-authenticated API.

    - ``STRICT``: a live key is required; failures raise 401.
    - ``OPTIONAL``: same resolution, but a missing or rejected key yields ``None``
      so the route can run in sandbox mode.
    - ``FORMAT_ONLY``: degraded mode that checks header shapes without touching the
      store; the returned context is unverified and never produces usage records.

    A verified context is handed to the usage middleware, which records the call
    and bumps ``last_used_at`` once the response has completed, whatever its status.
    """

    def __init__(self, level: VerificationLevel, limiter: Optional[RateLimiter] = None):
        self.level = level
        self.limiter = limiter

    async def __call__(
        self,
        request: Request,
        session: Session = Depends(get_session),
    ) -> Optional[KeyContext]:
        settings = get_settings()
        secret = request.headers.get(settings.API_KEY_HEADER)
        store = KeyStore(session)

        try:
            if self.level == VerificationLevel.FORMAT_ONLY:
                return store.check_format(secret, request.headers.get(settings.PROJECT_ID_HEADER))
            context = store.authenticate(secret)
        except AuthenticationError as e:
            if self.level == VerificationLevel.OPTIONAL:
                logger.debug(f"Continuing without API key: {e.message}")
                return None
            logger.warning(f"API key rejected ({e.error}) for {mask_api_key(secret)} on {request.url.path}")
            raise

        attach_key_context(request, context)

        if self.limiter is not None:
            await self.limiter.check_api_key_rate_limit(context.key_id, request)

        return context


strict_api_key = ApiKeyGate(VerificationLevel.STRICT, limiter=rate_limiter)
optional_api_key = ApiKeyGate(VerificationLevel.OPTIONAL, limiter=rate_limiter)
format_only_api_key = ApiKeyGate(VerificationLevel.FORMAT_ONLY)


def require_capabilities(*required: str, gate: ApiKeyGate = optional_api_key) -> Callable:
    """
    Dependency factory enforcing that the resolved key holds every listed capability.

    Requests without a resolved key (sandbox or format-only mode) pass through.
    """
    needed = normalize_capabilities(required)

    async def capability_checker(
        context: Optional[KeyContext] = Depends(gate),
    ) -> Optional[KeyContext]:
        if context is None or context.key is None or not needed:
            return context

        if not context.key.has_capabilities(needed):
            logger.warning(
                f"API key {context.key_id} denied: need={needed} has={context.capabilities}"
            )
            raise InsufficientPermissions(required=needed, current=context.capabilities)

        return context

    return capability_checker


def usage_metadata(**metadata: Any) -> Callable:
    """Dependency factory adding fields to this request's usage record."""

    async def attach(request: Request) -> None:
        add_usage_metadata(request, metadata)

    return attach


def ensure_object_id(value: str, label: str) -> str:
    if not is_valid_object_id(value):
        raise MalformedIdentifier(f"The provided {label} ID is not valid")
    return value


def get_owned_project(session: Session, project_id: str, user: User) -> Project:
    """Load a project owned by ``user``; foreign projects look absent."""
    ensure_object_id(project_id, "project")
    project = session.exec(
        select(Project).where(Project.id == project_id, Project.owner_id == user.id)
    ).first()
    if not project:
        raise NotFound("The specified project does not exist or you don't have access to it")
    return project


def get_owned_key(session: Session, key_id: str, user: User, action: str = "access") -> APIKey:
    """Load an API key whose project is owned by ``user``."""
    ensure_object_id(key_id, "API key")
    record = KeyStore(session).get(key_id)
    if not record:
        raise NotFound("The specified API key does not exist")

    project = session.get(Project, record.project_id)
    if not project or project.owner_id != user.id:
        raise Forbidden(f"You don't have permission to {action} this API key")
    return record
