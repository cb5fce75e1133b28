"""
HTTP MCP Servers

This package contains the runnable MCP servers. Each exposes an ASGI ``app``
and a ``main()`` that serves it with uvicorn on its own port:
- PoshCare Server ("how-was-day"): Port 3000
- Kleenito Server ("getLastMonthSale"): Port 3001

Both honour the PORT environment variable.
"""
