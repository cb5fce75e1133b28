"""
Streamable HTTP session router.

Dispatches ``/mcp`` requests to per-session transport handles:

- POST without ``mcp-session-id`` and with an initialize body opens a session
- POST/GET with a known ``mcp-session-id`` reuses that session's handle
- DELETE with a known ``mcp-session-id`` closes the session

Every other combination is rejected before any handle sees the request.
"""

import contextlib
import json
import logging
from typing import Any, AsyncIterator, Callable, List, Optional
from uuid import uuid4

import anyio
from anyio.abc import TaskGroup
from fastapi import status
from starlette.requests import Request
from starlette.responses import PlainTextResponse
from starlette.types import Message, Receive, Scope, Send

from error_handling import BadRequestError, ErrorCode, jsonrpc_error_response, log_error, trace_span
from .session_store import SessionStore
from .transport import is_initialize_request

logger = logging.getLogger("mcp_servers.session_manager")

MCP_SESSION_ID_HEADER = "mcp-session-id"
NO_VALID_SESSION_MESSAGE = "Bad Request: No valid session ID provided"
INVALID_SESSION_MESSAGE = "Invalid or missing session ID"


class ResponseTracker:
    """Wraps an ASGI ``send`` and records whether the response has started."""

    def __init__(self, send: Send):
        self._send = send
        self.started = False
        self.status: Optional[int] = None

    async def __call__(self, message: Message) -> None:
        if message["type"] == "http.response.start":
            self.started = True
            self.status = message["status"]
        await self._send(message)


def _replay_body(body: bytes, receive: Receive) -> Receive:
    """Hand an already-read request body to a downstream ASGI consumer."""
    replayed = False

    async def replay() -> Message:
        nonlocal replayed
        if not replayed:
            replayed = True
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return replay


def _parse_json(body: bytes) -> Any:
    try:
        return json.loads(body)
    except ValueError:
        return None


class StreamableHTTPSessionRouter:
    """
    ASGI handler for the ``/mcp`` endpoint.

    The router owns a task group (entered through ``run()``) in which every
    session's MCP server task and the idle-session sweeper execute.

    Args:
        store: Session store shared with the rest of the application
        transport_factory: Builds an unstarted transport handle for a session id
        idle_timeout: Seconds of inactivity before a session is closed (0 disables)
        sweep_interval: Seconds between idle-session sweeps
        session_id_factory: Source of new session ids
    """

    def __init__(
        self,
        store: SessionStore,
        transport_factory: Callable[[str], Any],
        idle_timeout: float = 0,
        sweep_interval: float = 60.0,
        session_id_factory: Callable[[], str] = lambda: uuid4().hex,
    ):
        self.store = store
        self.transport_factory = transport_factory
        self.idle_timeout = idle_timeout
        self.sweep_interval = sweep_interval
        self.session_id_factory = session_id_factory
        self._task_group: Optional[TaskGroup] = None

    @contextlib.asynccontextmanager
    async def run(self) -> AsyncIterator[None]:
        """Own the task group for the lifetime of the application."""
        if self._task_group is not None:
            raise RuntimeError("Session router is already running")

        async with anyio.create_task_group() as tg:
            self._task_group = tg
            if self.idle_timeout > 0:
                tg.start_soon(self._sweep_idle_sessions)
            logger.info("Session router started (idle timeout: %ss)", self.idle_timeout or "disabled")
            try:
                yield
            finally:
                logger.info("Session router shutting down, closing %d sessions", len(self.store))
                for session in self.store.clear():
                    with anyio.CancelScope(shield=True):
                        await session.transport.close()
                tg.cancel_scope.cancel()
                self._task_group = None

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive)
        if request.method == "POST":
            await self._handle_post(request, scope, receive, send)
        elif request.method == "GET":
            await self._handle_get(request, scope, receive, send)
        elif request.method == "DELETE":
            await self._handle_delete(request, scope, receive, send)
        else:
            response = PlainTextResponse(
                "Method Not Allowed",
                status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
                headers={"Allow": "GET, POST, DELETE"},
            )
            await response(scope, receive, send)

    async def _handle_post(self, request: Request, scope: Scope, receive: Receive, send: Send) -> None:
        session_id = request.headers.get(MCP_SESSION_ID_HEADER)
        body = await request.body()
        replay = _replay_body(body, receive)

        if session_id:
            transport = self.store.get(session_id)
            if transport is None:
                logger.debug("POST for unknown session %s rejected", session_id)
                await self._reject_post(scope, replay, send)
                return
            logger.debug("POST routed to session %s", session_id)
            await self._dispatch(transport, scope, replay, send)
            return

        if not is_initialize_request(_parse_json(body)):
            logger.debug("POST without session id and without initialize body rejected")
            await self._reject_post(scope, replay, send)
            return

        transport = await self._open_session()
        tracker = await self._dispatch(transport, scope, replay, send)
        if tracker.status is None or tracker.status >= 400:
            logger.warning(
                "Initialization of session %s failed (status %s), discarding it",
                transport.session_id, tracker.status,
            )
            await self.close_session(transport.session_id)

    async def _handle_get(self, request: Request, scope: Scope, receive: Receive, send: Send) -> None:
        transport = self._lookup(request)
        if transport is None:
            await self._reject_plain(scope, receive, send)
            return
        await self._dispatch(transport, scope, receive, send)

    async def _handle_delete(self, request: Request, scope: Scope, receive: Receive, send: Send) -> None:
        transport = self._lookup(request)
        if transport is None:
            await self._reject_plain(scope, receive, send)
            return
        await self.close_session(transport.session_id)
        response = PlainTextResponse("Session closed", status_code=status.HTTP_200_OK)
        await response(scope, receive, send)

    def _lookup(self, request: Request) -> Optional[Any]:
        session_id = request.headers.get(MCP_SESSION_ID_HEADER)
        if not session_id:
            return None
        return self.store.get(session_id)

    @trace_span("mcp.session.open")
    async def _open_session(self) -> Any:
        if self._task_group is None:
            raise RuntimeError("Session router is not running. Use run() in the application lifespan.")

        session_id = self.session_id_factory()
        while session_id in self.store:
            session_id = self.session_id_factory()

        transport = self.transport_factory(session_id)
        transport.on_close(self._on_transport_closed)
        await transport.start(self._task_group)
        self.store.put(session_id, transport)
        logger.info("Created session %s", session_id)
        return transport

    async def _dispatch(self, transport: Any, scope: Scope, receive: Receive, send: Send) -> ResponseTracker:
        """Hand one request to a transport, converting failures to -32603 when possible."""
        tracker = ResponseTracker(send)
        try:
            with self.store.track_request(transport.session_id):
                await transport.handle_request(scope, receive, tracker)
        except Exception as exc:
            log_error(
                exc,
                logger,
                extra={"session_id": transport.session_id, "response_started": tracker.started},
            )
            if not tracker.started:
                response = jsonrpc_error_response(
                    ErrorCode.INTERNAL_ERROR,
                    "Internal server error",
                    status.HTTP_500_INTERNAL_SERVER_ERROR,
                )
                await response(scope, receive, tracker)
        return tracker

    async def close_session(self, session_id: str) -> bool:
        """Close and forget a session. Returns False if it was not active."""
        session = self.store.remove(session_id)
        if session is None:
            return False
        await session.transport.close()
        logger.info("Closed session %s", session_id)
        return True

    async def expire_idle_sessions(self) -> List[str]:
        """Close every session idle for longer than the configured timeout."""
        expired = [session.session_id for session in self.store.expired(self.idle_timeout)]
        for session_id in expired:
            logger.info("Session %s expired after %ss idle", session_id, self.idle_timeout)
            await self.close_session(session_id)
        return expired

    async def _sweep_idle_sessions(self) -> None:
        while True:
            await anyio.sleep(self.sweep_interval)
            try:
                await self.expire_idle_sessions()
            except Exception as e:
                logger.error("Error in session cleanup: %s", e, exc_info=True)

    def _on_transport_closed(self, session_id: str) -> None:
        if self.store.remove(session_id) is not None:
            logger.info("Session %s closed by transport", session_id)

    async def _reject_post(self, scope: Scope, receive: Receive, send: Send) -> None:
        response = BadRequestError(NO_VALID_SESSION_MESSAGE).to_response()
        await response(scope, receive, send)

    async def _reject_plain(self, scope: Scope, receive: Receive, send: Send) -> None:
        response = PlainTextResponse(INVALID_SESSION_MESSAGE, status_code=status.HTTP_400_BAD_REQUEST)
        await response(scope, receive, send)
