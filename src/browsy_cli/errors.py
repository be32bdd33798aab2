"""
Error taxonomy for browsy-cli.

Per-command errors (decode, validation, gating, handler) are reported
inline by the session and never end it. FatalError and its subclasses
escape the command loop and force teardown.
"""

from typing import Optional


class BrowsyError(Exception):
    """Base class for all browsy-cli errors."""
    pass


class DecodeError(BrowsyError):
    """An input line could not be turned into a command."""
    pass


class ValidationError(BrowsyError):
    """Tool params failed schema validation."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class ToolDisabledError(BrowsyError):
    """Tool is switched off by category or feature flags."""

    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(
            f"Tool {tool_name} is disabled by category or experimental flags."
        )


class HandlerError(BrowsyError):
    """A tool's own logic failed."""
    pass


class ElementNotFoundError(HandlerError):
    """Element could not be found."""
    pass


class ElementNotVisibleError(HandlerError):
    """Element exists but has no visible bounds."""
    pass


class WaitTimeoutError(HandlerError):
    """A bounded wait expired."""
    pass


class ScriptError(HandlerError):
    """JavaScript evaluation threw in the page."""
    pass


class FatalError(BrowsyError):
    """Unrecoverable failure; terminates the session."""
    pass


class BackendDisconnectedError(FatalError):
    """The browser connection is gone."""
    pass


class BrowserLaunchError(FatalError):
    """Chrome could not be launched or reached."""
    pass
