"""stdio JSON-RPC tool server."""

from reposcope.mcp.server import McpServer, run_stdio

__all__ = ["McpServer", "run_stdio"]
