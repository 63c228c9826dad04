"""
reposync - Safe synchronization of git working copies.

This package updates, inspects and stages changes in local git working
copies without losing uncommitted work, and exposes those operations
through the Model Context Protocol (MCP).
"""

__version__ = "1.0.0"
__description__ = "Safe git working-copy synchronization with an MCP server"

from .server import main

__all__ = ["main"]
