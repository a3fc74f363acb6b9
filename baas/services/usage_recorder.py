"""Builds and persists one usage record per completed key-authenticated request."""
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from fastapi import Request
from sqlmodel import Session

from baas.core.logging import get_logger
from baas.db.session import engine
from baas.models.usage_log import UsageLog
from baas.services.key_store import KeyContext

logger = get_logger(__name__)

KEY_CONTEXT_STATE = "key_context"
USAGE_METADATA_STATE = "usage_metadata"


def attach_key_context(request: Request, context: KeyContext) -> None:
    """Hand the resolved identity to the completion hook for this request."""
    setattr(request.state, KEY_CONTEXT_STATE, context)


def add_usage_metadata(request: Request, metadata: Dict[str, Any]) -> None:
    current = dict(getattr(request.state, USAGE_METADATA_STATE, None) or {})
    current.update(metadata)
    setattr(request.state, USAGE_METADATA_STATE, current)


@dataclass(frozen=True)
class CompletedRequest:
    """What the completion hook observed about a finished request."""
    method: str
    path: str
    status_code: int
    elapsed_ms: int
    user_agent: str = ""
    client_ip: str = ""
    request_size: int = 0
    response_size: int = 0


class UsageRecorder:
    """Persists usage records; never raises into the request path."""

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        self.session_factory = session_factory or (lambda: Session(engine, expire_on_commit=False))

    def build_record(
        self,
        context: Optional[KeyContext],
        completed: CompletedRequest,
        extra_metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[UsageLog]:
        """Return the record to store, or None when no key was resolved."""
        if context is None or context.key is None:
            return None

        metadata: Dict[str, Any] = {
            "userAgent": completed.user_agent,
            "ip": completed.client_ip,
            "errorMessage": f"HTTP {completed.status_code}" if completed.status_code >= 400 else None,
            "requestSize": completed.request_size,
            "responseSize": completed.response_size,
        }
        if extra_metadata:
            metadata.update(extra_metadata)

        return UsageLog(
            api_key_id=context.key.id,
            project_id=context.project_id,
            endpoint=completed.path,
            method=completed.method.upper(),
            status_code=completed.status_code,
            response_time=completed.elapsed_ms,
            request_metadata=metadata,
        )

    def persist(self, record: UsageLog) -> bool:
        try:
            with self.session_factory() as session:
                session.add(record)
                session.commit()
            return True
        except Exception as e:
            logger.error(f"Usage logging error for {record.method} {record.endpoint}: {e}")
            return False

    def record(
        self,
        context: Optional[KeyContext],
        completed: CompletedRequest,
        extra_metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[UsageLog]:
        """Build and persist in one step. Returns the stored record, if any."""
        usage = self.build_record(context, completed, extra_metadata)
        if usage is None:
            return None
        return usage if self.persist(usage) else None
