"""
Execution context handed to every tool handler.

A SessionContext belongs to exactly one session. It borrows the session's
BrowserManager and owns the per-session state handlers share: the latest
text snapshot, the accessibility baselines and the network log. Handlers
only run under the session's execution guard, so none of this state is
locked.
"""

import asyncio
import logging
from typing import Optional

from .ax_tree import TextSnapshot, assign_uids, build_ax_tree
from .accessibility import NormalizedAXNode
from .baseline import BaselineStore
from .browser import Browser, BrowserManager
from .config import BrowsyConfig
from .errors import BackendDisconnectedError, ElementNotFoundError, HandlerError, WaitTimeoutError

logger = logging.getLogger(__name__)

WAIT_POLL_INTERVAL = 0.1


class NetworkCollector:
    """Records requests made by the selected page."""

    def __init__(self):
        self.requests: list[dict] = []
        self._by_id: dict[str, dict] = {}
        self._browser: Optional[Browser] = None

    async def _on_request(self, params: dict) -> None:
        request = {
            "requestId": params.get("requestId"),
            "url": params.get("request", {}).get("url", ""),
            "method": params.get("request", {}).get("method", "GET"),
            "resourceType": (params.get("type") or "other").lower(),
            "status": None,
        }
        self._by_id[request["requestId"]] = request
        self.requests.append(request)

    async def _on_response(self, params: dict) -> None:
        request = self._by_id.get(params.get("requestId"))
        if request is not None:
            request["status"] = params.get("response", {}).get("status")

    async def _on_failed(self, params: dict) -> None:
        request = self._by_id.get(params.get("requestId"))
        if request is not None:
            request["status"] = f"failed ({params.get('errorText', 'unknown')})"

    async def attach(self, browser: Browser) -> None:
        self.detach()
        self.clear()
        self._browser = browser
        browser.cdp.on("Network.requestWillBeSent", self._on_request)
        browser.cdp.on("Network.responseReceived", self._on_response)
        browser.cdp.on("Network.loadingFailed", self._on_failed)
        await browser.enable_domain("Network")

    def detach(self) -> None:
        if self._browser is None:
            return
        self._browser.cdp.off("Network.requestWillBeSent", self._on_request)
        self._browser.cdp.off("Network.responseReceived", self._on_response)
        self._browser.cdp.off("Network.loadingFailed", self._on_failed)
        self._browser = None

    def clear(self) -> None:
        self.requests.clear()
        self._by_id.clear()


class SessionContext:
    """
    Shared state and environment operations for tool handlers.

    Provides:
    - Page selection and listing
    - Text snapshot capture and uid lookup
    - Accessibility baseline get/set
    - Bounded wait for page text
    """

    def __init__(self, manager: BrowserManager, config: BrowsyConfig):
        self.manager = manager
        self.config = config
        self.baselines = BaselineStore()
        self.network = NetworkCollector()
        self._text_snapshot: Optional[TextSnapshot] = None
        self._snapshot_counter = 0
        self._detected = False

    @classmethod
    async def create(cls, manager: BrowserManager, config: BrowsyConfig) -> "SessionContext":
        context = cls(manager, config)
        await context.detect_environment()
        return context

    async def detect_environment(self) -> None:
        """Connect to the browser and hook up page observers. Runs once."""
        if self._detected:
            return
        browser = await self.manager.start()
        await self._on_page_selected(browser)
        self._detected = True
        logger.info(
            f"Browser ready ({'attached' if self.config.attaches else 'launched'}), "
            f"{len(await self.manager.get_pages())} page(s) open"
        )

    async def _on_page_selected(self, browser: Browser) -> None:
        self._text_snapshot = None
        if self.config.category_network:
            await self.network.attach(browser)

    # Pages

    def get_selected_page(self) -> Browser:
        browser = self.manager.browser
        if browser is None or not browser.cdp.connected:
            raise BackendDisconnectedError("No page is connected")
        return browser

    async def list_pages(self) -> list[dict]:
        return await self.manager.get_pages()

    async def _page_at(self, page_idx: int) -> dict:
        pages = await self.list_pages()
        if page_idx < 0 or page_idx >= len(pages):
            raise HandlerError(f"No page found for index {page_idx}")
        return pages[page_idx]

    async def select_page(self, page_idx: int) -> Browser:
        page = await self._page_at(page_idx)
        browser = await self.manager.select_page(page["id"])
        await self._on_page_selected(browser)
        return browser

    async def new_page(self, url: str, timeout_ms: Optional[int] = None) -> Browser:
        target = await self.manager.new_page()
        browser = await self.manager.select_page(target["id"])
        await self._on_page_selected(browser)
        await browser.navigate(url, timeout=self.timeout_seconds(timeout_ms))
        return browser

    async def close_page(self, page_idx: int) -> None:
        pages = await self.list_pages()
        if len(pages) <= 1:
            raise HandlerError("The last open page can not be closed.")
        page = await self._page_at(page_idx)
        was_selected = page["selected"]
        if not await self.manager.close_page(page["id"]):
            raise HandlerError(f"Failed to close page {page_idx}")
        if was_selected:
            remaining = [p for p in pages if p["id"] != page["id"]]
            browser = await self.manager.select_page(remaining[0]["id"])
            await self._on_page_selected(browser)

    # Snapshots

    async def create_text_snapshot(self, verbose: bool = False) -> Optional[TextSnapshot]:
        """Capture the selected page's accessibility tree and make it current."""
        browser = self.get_selected_page()
        root = build_ax_tree(await browser.get_accessibility_nodes(), verbose=verbose)
        if root is None:
            self._text_snapshot = None
            return None
        self._snapshot_counter += 1
        self._text_snapshot = assign_uids(root, self._snapshot_counter)
        return self._text_snapshot

    def get_text_snapshot(self) -> Optional[TextSnapshot]:
        return self._text_snapshot

    def get_backend_node_id(self, uid: str) -> int:
        """
        Resolve a uid from the latest snapshot.

        Raises:
            ElementNotFoundError: If there is no snapshot, the uid is stale,
                or the node has no DOM counterpart
        """
        snapshot = self._text_snapshot
        if snapshot is None:
            raise ElementNotFoundError("No snapshot found. Use take_snapshot to capture one.")
        if not snapshot.has_uid(uid):
            raise ElementNotFoundError(
                f"Element with uid {uid} not found in the latest snapshot. Take a new snapshot."
            )
        backend_id = snapshot.backend_node_id(uid)
        if backend_id is None:
            raise ElementNotFoundError(f"Element with uid {uid} has no DOM node")
        return backend_id

    def get_accessibility_baseline(self, key: str) -> Optional[list[NormalizedAXNode]]:
        return self.baselines.get(key)

    def set_accessibility_baseline(self, key: str, snapshot: list[NormalizedAXNode]) -> None:
        self.baselines.set(key, snapshot)

    # Waiting

    def timeout_seconds(self, timeout_ms: Optional[int]) -> float:
        """Milliseconds to seconds; None or 0 means the configured default."""
        if not timeout_ms:
            timeout_ms = self.config.default_timeout_ms
        return timeout_ms / 1000

    async def wait_for_text(self, text: str, timeout_ms: Optional[int] = None) -> None:
        """
        Poll the selected page until ``text`` appears.

        Raises:
            WaitTimeoutError: If the text doesn't show up in time
        """
        timeout = self.timeout_seconds(timeout_ms)
        browser = self.get_selected_page()

        async def poll() -> None:
            while text not in await browser.page_text():
                await asyncio.sleep(WAIT_POLL_INTERVAL)

        try:
            await asyncio.wait_for(poll(), timeout=timeout)
        except asyncio.TimeoutError:
            raise WaitTimeoutError(f'Timed out after {timeout * 1000:.0f}ms waiting for text "{text}"')

    def dispose(self) -> None:
        """Drop per-session state. Does not touch the browser."""
        self.network.detach()
        self.network.clear()
        self.baselines.clear()
        self._text_snapshot = None
