"""
Kleenito MCP HTTP Server

Exposes the "getLastMonthSale" tool over MCP Streamable HTTP with per-session
transports. No authentication.
Run: python -m mcp_http_servers.kleenito_http_server

Server listens on http://0.0.0.0:3001/mcp (override with PORT)
"""
from dotenv import load_dotenv

from mcp_servers.config import ServerSettings
from mcp_servers.http_app import create_mcp_http_app
from mcp_servers.kleenito_server import SERVER_NAME, DEFAULT_PORT, create_registry

# Load environment variables
load_dotenv()

settings = ServerSettings.from_env(SERVER_NAME, default_port=DEFAULT_PORT)
app = create_mcp_http_app(create_registry(), settings)


def main() -> None:
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
