import time
from typing import Optional

from starlette.concurrency import run_in_threadpool
from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from baas.core.logging import get_logger
from baas.services.key_store import touch_last_used
from baas.services.usage_recorder import (
    KEY_CONTEXT_STATE,
    USAGE_METADATA_STATE,
    CompletedRequest,
    UsageRecorder,
)

logger = get_logger(__name__)


def _int_header(headers: Headers, name: str) -> int:
    try:
        return int(headers.get(name, 0))
    except ValueError:
        return 0


class UsageTrackingMiddleware:
    """
    ASGI middleware that writes a usage record once a response has been sent.

    The record is persisted and the key's ``last_used_at`` is bumped after the final
    body chunk has gone out, on both the success and the error path. Failures are
    logged and dropped.
    """

    def __init__(self, app: ASGIApp, recorder: Optional[UsageRecorder] = None):
        self.app = app
        self.recorder = recorder or UsageRecorder()

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        scope.setdefault("state", {})
        start = time.perf_counter()
        observed = {"status": 500, "response_size": 0}

        async def wrapped_send(message: Message) -> None:
            if message["type"] == "http.response.start":
                observed["status"] = message.get("status", 200)
            elif message["type"] == "http.response.body":
                observed["response_size"] += len(message.get("body", b""))
            await send(message)

        try:
            await self.app(scope, receive, wrapped_send)
        finally:
            elapsed_ms = int(round((time.perf_counter() - start) * 1000))
            await self._finalize(scope, observed["status"], elapsed_ms, observed["response_size"])

    async def _finalize(self, scope: Scope, status_code: int, elapsed_ms: int, response_size: int) -> None:
        state = scope.get("state") or {}
        context = state.get(KEY_CONTEXT_STATE)
        if context is None:
            return

        headers = Headers(scope=scope)
        forwarded = headers.get("x-forwarded-for", "")
        client = scope.get("client")
        completed = CompletedRequest(
            method=scope.get("method", "GET"),
            path=scope.get("path", "/"),
            status_code=status_code,
            elapsed_ms=elapsed_ms,
            user_agent=headers.get("user-agent", ""),
            client_ip=(client[0] if client else "") or forwarded.split(",")[0].strip(),
            request_size=_int_header(headers, "content-length"),
            response_size=response_size,
        )

        try:
            await run_in_threadpool(
                self.recorder.record, context, completed, state.get(USAGE_METADATA_STATE)
            )
        except Exception as e:
            logger.error(f"Usage recorder failed for {completed.method} {completed.path}: {e}")

        if context.verified and context.key_id is not None:
            await run_in_threadpool(touch_last_used, context.key_id)
