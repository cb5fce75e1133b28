"""
Pytest configuration and fixtures for MCP HTTP server testing

Provides fixtures to:
1. Build the PoshCare and Kleenito ASGI applications with test settings
2. Run them in-process with FastAPI's TestClient (lifespan included)
3. Drive the MCP handshake (initialize + notifications/initialized)
"""
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from mcp_servers import kleenito_server, poshcare_server
from mcp_servers.config import ServerSettings
from mcp_servers.http_app import create_mcp_http_app


PROTOCOL_VERSION = "2025-03-26"

MCP_HEADERS = {
    "Accept": "application/json, text/event-stream",
    "Content-Type": "application/json",
}


def initialize_payload(request_id: int = 1) -> Dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "method": "initialize",
        "params": {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {},
            "clientInfo": {"name": "pytest-client", "version": "1.0.0"},
        },
    }


def decode_mcp_response(response) -> Dict[str, Any]:
    """JSON body, or the last ``data:`` event when the server answered with SSE."""
    if response.headers.get("content-type", "").startswith("text/event-stream"):
        events = [line[len("data:"):].strip() for line in response.text.splitlines() if line.startswith("data:")]
        return json.loads(events[-1])
    return response.json()


def asgi_scope(method: str, session_id: Optional[str] = None,
               accept: bytes = b"application/json, text/event-stream") -> Dict[str, Any]:
    headers = [(b"content-type", b"application/json"), (b"accept", accept)]
    if session_id:
        headers.append((b"mcp-session-id", session_id.encode()))
    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "scheme": "http",
        "path": "/mcp",
        "raw_path": b"/mcp",
        "root_path": "",
        "query_string": b"",
        "headers": headers,
        "client": ("testclient", 50000),
        "server": ("testserver", 80),
    }


class ASGIResult:
    def __init__(self, messages: List[dict]):
        self.messages = messages
        starts = [m for m in messages if m["type"] == "http.response.start"]
        self.starts = starts
        self.status = starts[0]["status"] if starts else None
        self.headers = {k.decode().lower(): v.decode() for k, v in starts[0]["headers"]} if starts else {}
        self.body = b"".join(m.get("body", b"") for m in messages if m["type"] == "http.response.body")

    def json(self):
        return json.loads(self.body)


async def call_router(router, method: str, body: bytes = b"", session_id: Optional[str] = None) -> ASGIResult:
    """Send one complete request straight to an ASGI ``/mcp`` handler."""
    pending = [{"type": "http.request", "body": body, "more_body": False}]

    async def receive():
        if pending:
            return pending.pop(0)
        return {"type": "http.disconnect"}

    sent: List[dict] = []

    async def send(message):
        sent.append(message)

    await router(asgi_scope(method, session_id), receive, send)
    return ASGIResult(sent)


class MCPTestSession:
    """Minimal MCP client speaking Streamable HTTP (JSON or SSE replies) through a TestClient."""

    def __init__(self, client: TestClient):
        self.client = client
        self.session_id: Optional[str] = None
        self._next_id = 1

    def _headers(self, session_id: Optional[str] = None) -> Dict[str, str]:
        headers = dict(MCP_HEADERS)
        session_id = session_id or self.session_id
        if session_id:
            headers["mcp-session-id"] = session_id
        return headers

    def post(self, payload: Any, session_id: Optional[str] = None):
        return self.client.post("/mcp", json=payload, headers=self._headers(session_id))

    def initialize(self) -> str:
        response = self.post(initialize_payload(self._take_id()))
        assert response.status_code == 200, response.text
        self.session_id = response.headers["mcp-session-id"]

        notified = self.post({"jsonrpc": "2.0", "method": "notifications/initialized"})
        assert notified.status_code == 202, notified.text
        return self.session_id

    def request(self, method: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        payload = {"jsonrpc": "2.0", "id": self._take_id(), "method": method, "params": params or {}}
        response = self.post(payload)
        assert response.status_code == 200, response.text
        return decode_mcp_response(response)

    def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self.request("tools/call", {"name": name, "arguments": arguments or {}})

    def delete(self, session_id: Optional[str] = None):
        return self.client.delete("/mcp", headers=self._headers(session_id))

    def _take_id(self) -> int:
        request_id = self._next_id
        self._next_id += 1
        return request_id


def _test_settings(name: str, port: int, **overrides) -> ServerSettings:
    return ServerSettings(
        name=name,
        port=port,
        session_idle_timeout=0,
        enable_tracing=False,
        log_level="DEBUG",
        **overrides,
    )


@pytest.fixture
def poshcare_app():
    return create_mcp_http_app(
        poshcare_server.create_registry(),
        _test_settings(poshcare_server.SERVER_NAME, poshcare_server.DEFAULT_PORT),
    )


@pytest.fixture
def kleenito_app():
    return create_mcp_http_app(
        kleenito_server.create_registry(),
        _test_settings(kleenito_server.SERVER_NAME, kleenito_server.DEFAULT_PORT),
    )


@pytest.fixture
def poshcare_client(poshcare_app):
    """TestClient for the PoshCare app with lifespan context."""
    with TestClient(poshcare_app) as c:
        yield c


@pytest.fixture
def kleenito_client(kleenito_app):
    """TestClient for the Kleenito app with lifespan context."""
    with TestClient(kleenito_app) as c:
        yield c


@pytest.fixture
def poshcare_session(poshcare_client):
    """An initialized MCP session against the PoshCare server."""
    session = MCPTestSession(poshcare_client)
    session.initialize()
    return session


@pytest.fixture
def kleenito_session(kleenito_client):
    """An initialized MCP session against the Kleenito server."""
    session = MCPTestSession(kleenito_client)
    session.initialize()
    return session
