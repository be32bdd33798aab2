"""
browsy-cli: browser automation tools as a CLI, a line-oriented session and an MCP server.

Drives Chrome over the DevTools Protocol directly. No extensions required.
"""

__version__ = "0.1.0"

from .browser import Browser, BrowserManager
from .cdp import CDPClient
from .config import BrowsyConfig
from .session import Session, run_tool_once
from .tools import TOOLS

__all__ = [
    "Browser",
    "BrowserManager",
    "BrowsyConfig",
    "CDPClient",
    "Session",
    "TOOLS",
    "run_tool_once",
]
