"""
Session runtime.

A Session owns one browser connection for its whole life and executes
tool commands one at a time:

    Starting -> Ready -> (Executing <-> Ready) -> Draining -> Closed

Every tool invocation runs under a single execution guard, so handlers
(and the baselines and snapshot they share through the context) never
interleave, even when callers submit commands concurrently. Per-command
failures are reported and the session keeps going; FatalError ends it.
Teardown runs exactly once: a launched browser is closed, an attached
one is only disconnected.
"""

import asyncio
import json
import logging
import sys
import threading
from collections.abc import AsyncIterator, Sequence
from enum import Enum
from typing import Any, Optional, TextIO

from .browser import BrowserManager
from .config import BrowsyConfig
from .context import SessionContext
from .decoder import decode_line
from .errors import FatalError, ToolDisabledError
from .params import validate_params
from .response import ToolResponse
from .tools import TOOLS, ToolDefinition, tool_is_enabled

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ("json", "text")


class SessionState(str, Enum):
    STARTING = "starting"
    READY = "ready"
    EXECUTING = "executing"
    DRAINING = "draining"
    CLOSED = "closed"


def error_text(error: BaseException) -> str:
    return str(error) or type(error).__name__


class Session:
    """
    Stateful tool runner over one browser connection.

    Args:
        config: Process configuration (launch/attach, gating, timeouts)
        manager: Browser manager to use; one is built from ``config`` if omitted
        output_format: "json" (one object per line) or "text"
        stdout: Stream for results
        stderr: Stream for text-mode errors
        tools: Tool catalogue, defaults to the built-in ``TOOLS``
    """

    def __init__(
        self,
        config: BrowsyConfig,
        manager: Optional[BrowserManager] = None,
        output_format: str = "json",
        stdout: Optional[TextIO] = None,
        stderr: Optional[TextIO] = None,
        tools: Optional[Sequence[ToolDefinition]] = None,
    ):
        if output_format not in OUTPUT_FORMATS:
            raise ValueError(f"Unknown output format: {output_format}")
        self.config = config
        self.manager = manager if manager is not None else BrowserManager(config)
        self.output_format = output_format
        self.stdout = stdout if stdout is not None else sys.stdout
        self.stderr = stderr if stderr is not None else sys.stderr
        self.tools = list(TOOLS if tools is None else tools)
        self.context: Optional[SessionContext] = None
        self.state = SessionState.STARTING
        self._guard = asyncio.Lock()
        self._closed = False

    def _set_state(self, state: SessionState) -> None:
        if state is not self.state:
            logger.debug(f"Session {self.state.value} -> {state.value}")
            self.state = state

    @property
    def is_executing(self) -> bool:
        return self._guard.locked()

    async def start(self) -> SessionContext:
        """Connect to the browser and detect the environment (once)."""
        if self.context is not None:
            return self.context
        if self._closed:
            raise FatalError("Session is closed")
        self.context = await SessionContext.create(self.manager, self.config)
        self._set_state(SessionState.READY)
        return self.context

    async def execute(self, tool: ToolDefinition, raw_params: dict[str, Any]) -> list[dict[str, Any]]:
        """
        Run one tool to completion under the execution guard.

        Returns:
            Content items produced by the tool's response

        Raises:
            ToolDisabledError: If gating rejects the tool
            ValidationError: If params don't match the schema
            FatalError: If the session is closed or the backend is gone
            Exception: Whatever the handler raised
        """
        if not tool_is_enabled(tool, self.config):
            raise ToolDisabledError(tool.name)
        if self.state in (SessionState.DRAINING, SessionState.CLOSED):
            raise FatalError("Session is shutting down")

        async with self._guard:
            if self.state is SessionState.CLOSED:
                raise FatalError("Session is closed")
            context = await self.start()
            if self.state is SessionState.READY:
                self._set_state(SessionState.EXECUTING)
            logger.debug(f"Executing {tool.name} with {raw_params}")
            try:
                params = validate_params(tool.schema, raw_params)
                response = ToolResponse()
                await tool.handler(params, response, context)
                return await response.handle(tool.name, context)
            finally:
                if self.state is SessionState.EXECUTING:
                    self._set_state(SessionState.READY)

    async def handle_line(self, line: str) -> bool:
        """
        Decode and run one input line, writing its result or error.

        Returns:
            False when the line asks the session to exit
        """
        decoded = decode_line(line, self.tools)
        if decoded.exit:
            return False
        if decoded.skip:
            return True
        if decoded.error is not None:
            self.write_error(decoded.label, error_text(decoded.error))
            return True

        command = decoded.command
        try:
            content = await self.execute(command.tool, command.raw_params)
        except FatalError:
            raise
        except Exception as e:
            logger.debug(f"{command.tool_name} failed: {e!r}")
            self.write_error(command.tool_name, error_text(e))
            return True
        self.write_success(command.tool_name, content)
        return True

    async def run(self, lines: AsyncIterator[str]) -> None:
        """Process lines until end of input or an exit command, then tear down."""
        try:
            await self.start()
            async for line in lines:
                if not await self.handle_line(line):
                    logger.info("Exit requested")
                    break
            else:
                logger.info("End of input")
        finally:
            await self.close()

    async def close(self) -> None:
        """Drain and tear down. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._set_state(SessionState.DRAINING)
        # wait for an in-flight tool before pulling the browser away
        async with self._guard:
            try:
                if self.context is not None:
                    self.context.dispose()
                await self.manager.teardown()
            finally:
                self._set_state(SessionState.CLOSED)
                logger.info("Session closed")

    # Output

    def _write(self, stream: TextIO, text: str) -> None:
        stream.write(text)
        stream.flush()

    def write_success(self, tool_name: str, content: list[dict[str, Any]], indent: Optional[int] = None) -> None:
        if self.output_format == "json":
            self._write(self.stdout, json.dumps({"tool": tool_name, "content": content}, indent=indent) + "\n")
            return
        for item in content:
            if item.get("type") == "text":
                self._write(self.stdout, f"{item['text']}\n")
            else:
                self._write(self.stdout, f"[image {item.get('mimeType')} {len(item.get('data', ''))}b base64]\n")

    def write_error(self, tool_name: str, message: str) -> None:
        if self.output_format == "json":
            self._write(self.stdout, json.dumps({"tool": tool_name, "isError": True, "error": message}) + "\n")
            return
        self._write(self.stderr, f"{tool_name}: {message}\n")


async def run_tool_once(
    config: BrowsyConfig,
    tool: ToolDefinition,
    raw_params: dict[str, Any],
    output_format: str = "text",
    manager: Optional[BrowserManager] = None,
    stdout: Optional[TextIO] = None,
) -> list[dict[str, Any]]:
    """
    Launch or attach, run one tool, print its result, tear down.

    Errors propagate to the caller (the CLI turns them into exit code 1).
    """
    if not tool_is_enabled(tool, config):
        raise ToolDisabledError(tool.name)

    session = Session(config, manager=manager, output_format=output_format, stdout=stdout)
    try:
        await session.start()
        content = await session.execute(tool, raw_params)
        session.write_success(tool.name, content, indent=2)
        return content
    finally:
        await session.close()


async def stream_lines(stream: TextIO) -> AsyncIterator[str]:
    """
    Yield lines from a blocking text stream without blocking the loop.

    A daemon thread keeps reading while tools execute, so a pending
    ``readline`` never holds up process exit.
    """
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[Optional[str]] = asyncio.Queue()

    def pump() -> None:
        try:
            for line in stream:
                loop.call_soon_threadsafe(queue.put_nowait, line)
            loop.call_soon_threadsafe(queue.put_nowait, None)
        except RuntimeError:
            # event loop already closed
            return

    threading.Thread(target=pump, name="browsy-stdin", daemon=True).start()
    while True:
        line = await queue.get()
        if line is None:
            return
        yield line
