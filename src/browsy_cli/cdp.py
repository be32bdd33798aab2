"""
Chrome DevTools Protocol (CDP) client.

Async WebSocket transport for one CDP target:
- Command/response matching via message IDs
- Event subscriptions and dispatch
- Connection-loss detection (pending commands fail fatally)
"""

import asyncio
import json
import logging
from collections.abc import Awaitable
from typing import Any, Callable, Optional

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

from .errors import BackendDisconnectedError, HandlerError

logger = logging.getLogger(__name__)

EventHandler = Callable[[dict], Awaitable[None]]


class CDPError(HandlerError):
    """CDP command error."""

    def __init__(self, code: int, message: str):
        self.code = code
        self.message = message
        super().__init__(f"CDP Error {code}: {message}")


class CDPClient:
    """
    Async CDP client using WebSockets.

    A lost connection is terminal for the client: every pending and
    future ``send`` raises BackendDisconnectedError.
    """

    def __init__(self):
        self.ws: Optional[ClientConnection] = None
        self._callbacks: dict[int, asyncio.Future] = {}
        self._event_handlers: dict[str, list[EventHandler]] = {}
        self._handler_tasks: set[asyncio.Task] = set()
        self._id_counter = 0
        self._listen_task: Optional[asyncio.Task] = None
        self._connected = False
        self._ws_url: Optional[str] = None

    @property
    def connected(self) -> bool:
        """Check if connected to the target."""
        return self._connected and self.ws is not None and self.ws.state is State.OPEN

    @property
    def ws_url(self) -> Optional[str]:
        return self._ws_url

    async def connect(self, ws_url: str) -> None:
        """Connect to a CDP target via WebSocket."""
        if self.connected:
            logger.warning("Already connected, closing existing connection")
            await self.close()

        logger.info(f"Connecting to CDP at {ws_url}")
        self._ws_url = ws_url

        try:
            self.ws = await connect(
                ws_url,
                max_size=None,  # screenshots can be large
                ping_interval=30,
                ping_timeout=10,
            )
        except (OSError, ConnectionClosed) as e:
            logger.error(f"Failed to connect to CDP: {e}")
            raise BackendDisconnectedError(f"Failed to connect to {ws_url}: {e}") from e

        self._connected = True
        self._listen_task = asyncio.create_task(self._listen_loop())
        logger.info("CDP connection established")

    async def _listen_loop(self) -> None:
        """Read messages until the socket closes."""
        try:
            async for message in self.ws:
                self._handle_message(message)
        except ConnectionClosed as e:
            logger.warning(f"CDP connection closed: {e}")
        finally:
            self._connected = False
            self._fail_pending(BackendDisconnectedError("Browser connection lost"))

    def _fail_pending(self, error: Exception) -> None:
        for future in self._callbacks.values():
            if not future.done():
                future.set_exception(error)
        self._callbacks.clear()

    def _handle_message(self, message: str) -> None:
        """Resolve a command future or dispatch an event."""
        try:
            data = json.loads(message)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse CDP message: {e}")
            return

        if "id" in data:
            future = self._callbacks.pop(data["id"], None)
            if future is not None and not future.done():
                if "error" in data:
                    error = data["error"]
                    future.set_exception(
                        CDPError(error.get("code", -1), error.get("message", "Unknown error"))
                    )
                else:
                    future.set_result(data.get("result", {}))

        if "method" in data:
            method = data["method"]
            params = data.get("params", {})
            for handler in list(self._event_handlers.get(method, [])):
                task = asyncio.create_task(handler(params))
                self._handler_tasks.add(task)
                task.add_done_callback(self._handler_done)

    def _handler_done(self, task: asyncio.Task) -> None:
        self._handler_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"CDP event handler failed: {task.exception()}")

    async def send(
        self,
        method: str,
        params: Optional[dict] = None,
        timeout: float = 30.0,
    ) -> dict[str, Any]:
        """
        Send a CDP command and wait for the result.

        Args:
            method: CDP method name (e.g., "Page.navigate")
            params: Optional parameters dict
            timeout: Timeout in seconds

        Returns:
            The result dict from the CDP response

        Raises:
            CDPError: If the command fails
            BackendDisconnectedError: If the connection is gone
            asyncio.TimeoutError: If timeout exceeded
        """
        if not self.connected:
            raise BackendDisconnectedError("CDP client not connected")

        self._id_counter += 1
        msg_id = self._id_counter
        message = {"id": msg_id, "method": method, "params": params or {}}

        future: asyncio.Future[dict] = asyncio.get_running_loop().create_future()
        self._callbacks[msg_id] = future

        try:
            await self.ws.send(json.dumps(message))
        except ConnectionClosed as e:
            self._callbacks.pop(msg_id, None)
            self._connected = False
            raise BackendDisconnectedError(f"Browser connection lost while sending {method}") from e

        try:
            return await asyncio.wait_for(future, timeout=timeout)
        except asyncio.TimeoutError:
            self._callbacks.pop(msg_id, None)
            raise asyncio.TimeoutError(f"CDP command {method} timed out after {timeout}s")

    def on(self, event: str, handler: EventHandler) -> None:
        """Register an async handler for a CDP event."""
        self._event_handlers.setdefault(event, []).append(handler)

    def off(self, event: str, handler: Optional[EventHandler] = None) -> None:
        """Remove one handler, or all handlers when ``handler`` is None."""
        if event not in self._event_handlers:
            return
        if handler is None:
            del self._event_handlers[event]
        else:
            self._event_handlers[event] = [h for h in self._event_handlers[event] if h != handler]

    async def wait_for_event(
        self,
        event: str,
        predicate: Optional[Callable[[dict], bool]] = None,
        timeout: float = 30.0,
    ) -> dict:
        """
        Wait for a specific event to occur.

        Args:
            event: CDP event name to wait for
            predicate: Optional function to filter events
            timeout: Timeout in seconds

        Returns:
            The event params when the event fires
        """
        future: asyncio.Future[dict] = asyncio.get_running_loop().create_future()

        async def handler(params: dict) -> None:
            if (predicate is None or predicate(params)) and not future.done():
                future.set_result(params)

        self.on(event, handler)
        try:
            return await asyncio.wait_for(future, timeout=timeout)
        finally:
            self.off(event, handler)

    async def close(self) -> None:
        """Close the WebSocket. Does not touch the browser process."""
        self._connected = False

        if self._listen_task:
            self._listen_task.cancel()
            try:
                await self._listen_task
            except asyncio.CancelledError:
                pass
            self._listen_task = None

        if self.ws:
            try:
                await self.ws.close()
            except ConnectionClosed:
                pass
            self.ws = None

        for task in list(self._handler_tasks):
            task.cancel()
        self._handler_tasks.clear()
        for future in self._callbacks.values():
            if not future.done():
                future.cancel()
        self._callbacks.clear()

        logger.info("CDP connection closed")
