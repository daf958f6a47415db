"""
Neon MCP Gateway

Exposes the Neon tool and resource catalog to remote MCP clients over an
SSE streaming binding and a plain JSON request/response binding.
"""

__version__ = "0.1.0"

SERVER_NAME = "neon-mcp-gateway"
