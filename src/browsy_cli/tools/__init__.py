"""
Browser automation tools for browsy-cli.

``TOOLS`` is the fixed, ordered catalogue every surface (CLI, session,
MCP server) exposes.
"""

from typing import Optional

from . import inspection, input, pages, snapshot
from .base import (
    ToolCategory,
    ToolDefinition,
    define_tool,
    tool_is_enabled,
)

TOOLS: list[ToolDefinition] = [
    *pages.TOOLS,
    *input.TOOLS,
    *snapshot.TOOLS,
    *inspection.TOOLS,
]


def get_tool(name: str) -> Optional[ToolDefinition]:
    """Look a tool up by its wire name."""
    return next((tool for tool in TOOLS if tool.name == name), None)


__all__ = [
    "TOOLS",
    "ToolCategory",
    "ToolDefinition",
    "define_tool",
    "get_tool",
    "tool_is_enabled",
]
