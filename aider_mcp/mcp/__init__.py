"""
MCP stdio transport for the Aider relay.
"""

from .handlers import McpDispatcher
from .server import McpServer, create_server

__all__ = ["McpDispatcher", "McpServer", "create_server"]
