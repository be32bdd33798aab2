"""
Browser Manager - Launch or attach to Chrome.

Handles:
- Launching Chrome with CDP enabled (the session then owns the process)
- Attaching to an existing Chrome via its DevTools HTTP endpoint
- Page (tab) listing, selection, creation and closing
- Teardown: full close when owned, disconnect when attached
"""

import asyncio
import json
import logging
import subprocess
from typing import Any, Optional
from urllib.parse import quote, urlparse

import httpx

from .cdp import CDPClient
from .config import BrowsyConfig
from .errors import BackendDisconnectedError, BrowserLaunchError, ScriptError
from .utils.platform import (
    find_chrome_executable,
    find_default_profile_dir,
    get_temp_profile_dir,
    is_profile_locked,
)

logger = logging.getLogger(__name__)

# Common key codes
KEY_CODES = {
    "Enter": {"key": "Enter", "code": "Enter", "keyCode": 13, "text": "\r"},
    "Tab": {"key": "Tab", "code": "Tab", "keyCode": 9},
    "Escape": {"key": "Escape", "code": "Escape", "keyCode": 27},
    "Backspace": {"key": "Backspace", "code": "Backspace", "keyCode": 8},
    "Delete": {"key": "Delete", "code": "Delete", "keyCode": 46},
    "ArrowUp": {"key": "ArrowUp", "code": "ArrowUp", "keyCode": 38},
    "ArrowDown": {"key": "ArrowDown", "code": "ArrowDown", "keyCode": 40},
    "ArrowLeft": {"key": "ArrowLeft", "code": "ArrowLeft", "keyCode": 37},
    "ArrowRight": {"key": "ArrowRight", "code": "ArrowRight", "keyCode": 39},
    "Home": {"key": "Home", "code": "Home", "keyCode": 36},
    "End": {"key": "End", "code": "End", "keyCode": 35},
    "PageUp": {"key": "PageUp", "code": "PageUp", "keyCode": 33},
    "PageDown": {"key": "PageDown", "code": "PageDown", "keyCode": 34},
    "Space": {"key": " ", "code": "Space", "keyCode": 32, "text": " "},
}

MODIFIER_FLAGS = {"Alt": 1, "Control": 2, "Meta": 4, "Shift": 8}

PAGE_TEXT_SCRIPT = """
(() => {
    const parts = [document.body ? document.body.innerText : ''];
    for (const frame of document.querySelectorAll('iframe')) {
        try {
            const body = frame.contentDocument && frame.contentDocument.body;
            if (body) parts.push(body.innerText);
        } catch (e) {}
    }
    return parts.join('\\n');
})()
"""


class Browser:
    """
    One connected page target.

    Wraps the CDP connection with the page-level operations tools need.
    """

    def __init__(self, cdp: CDPClient, target_id: str):
        self.cdp = cdp
        self.target_id = target_id
        self._enabled_domains: set[str] = set()

    async def enable_domain(self, domain: str) -> None:
        """Enable a CDP domain if not already enabled."""
        if domain not in self._enabled_domains:
            await self.cdp.send(f"{domain}.enable")
            self._enabled_domains.add(domain)

    async def _wait_for_load(self, timeout: float) -> None:
        try:
            await self.cdp.wait_for_event("Page.loadEventFired", timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Timeout waiting for Page.loadEventFired, continuing anyway")

    async def navigate(self, url: str, timeout: float = 30.0) -> dict:
        """
        Navigate to a URL and wait for the load event.

        Returns:
            Navigation result with frameId
        """
        await self.enable_domain("Page")
        load = asyncio.create_task(self._wait_for_load(timeout))
        try:
            result = await self.cdp.send("Page.navigate", {"url": url})
        except BaseException:
            load.cancel()
            raise
        if result.get("errorText"):
            load.cancel()
            raise ScriptError(f"Navigation to {url} failed: {result['errorText']}")
        await load
        return result

    async def reload(self, timeout: float = 30.0) -> None:
        await self.enable_domain("Page")
        load = asyncio.create_task(self._wait_for_load(timeout))
        await self.cdp.send("Page.reload")
        await load

    async def go_history(self, delta: int) -> bool:
        """Move ``delta`` entries through history. False if there's nowhere to go."""
        await self.enable_domain("Page")
        history = await self.cdp.send("Page.getNavigationHistory")
        entries = history.get("entries", [])
        index = history.get("currentIndex", 0) + delta
        if index < 0 or index >= len(entries):
            return False
        await self.cdp.send("Page.navigateToHistoryEntry", {"entryId": entries[index]["id"]})
        return True

    async def get_url(self) -> str:
        """Get the current page URL."""
        return await self.evaluate("window.location.href") or ""

    async def get_title(self) -> str:
        """Get the current page title."""
        return await self.evaluate("document.title") or ""

    async def evaluate(self, expression: str) -> Any:
        """
        Evaluate a JavaScript expression and return its JSON value.

        Raises:
            ScriptError: If the expression throws
        """
        await self.enable_domain("Runtime")
        result = await self.cdp.send("Runtime.evaluate", {
            "expression": expression,
            "returnByValue": True,
            "awaitPromise": True,
        })
        if "exceptionDetails" in result:
            raise ScriptError(_exception_text(result["exceptionDetails"]))
        return result.get("result", {}).get("value")

    async def call_function(self, declaration: str, backend_node_ids: list[int]) -> Any:
        """
        Call a function declaration with resolved DOM elements as arguments.

        Raises:
            ScriptError: If the function throws
        """
        await self.enable_domain("Runtime")
        global_object = await self.cdp.send("Runtime.evaluate", {"expression": "globalThis"})
        arguments = []
        for backend_id in backend_node_ids:
            resolved = await self.cdp.send("DOM.resolveNode", {"backendNodeId": backend_id})
            arguments.append({"objectId": resolved["object"]["objectId"]})

        result = await self.cdp.send("Runtime.callFunctionOn", {
            "functionDeclaration": declaration,
            "objectId": global_object["result"]["objectId"],
            "arguments": arguments,
            "returnByValue": True,
            "awaitPromise": True,
        })
        if "exceptionDetails" in result:
            raise ScriptError(_exception_text(result["exceptionDetails"]))
        return result.get("result", {}).get("value")

    async def set_content(self, html: str) -> None:
        """Replace the main frame's document."""
        await self.enable_domain("Page")
        tree = await self.cdp.send("Page.getFrameTree")
        frame_id = tree["frameTree"]["frame"]["id"]
        await self.cdp.send("Page.setDocumentContent", {"frameId": frame_id, "html": html})

    async def page_text(self) -> str:
        """Visible text of the page, including same-origin iframes."""
        return await self.evaluate(PAGE_TEXT_SCRIPT) or ""

    async def get_accessibility_nodes(self) -> list[dict]:
        """Flat node list from ``Accessibility.getFullAXTree``."""
        await self.enable_domain("Accessibility")
        result = await self.cdp.send("Accessibility.getFullAXTree")
        return result.get("nodes", [])

    async def screenshot(
        self,
        format: str = "png",
        quality: Optional[int] = None,
        full_page: bool = False,
        clip: Optional[dict] = None,
    ) -> str:
        """
        Capture the page as base64 image data.

        Args:
            format: "png", "jpeg" or "webp"
            quality: 0-100, jpeg/webp only
            full_page: Capture the whole scrollable page
            clip: Optional region {x, y, width, height}
        """
        await self.enable_domain("Page")
        params: dict[str, Any] = {"format": format}
        if format in ("jpeg", "webp") and quality is not None:
            params["quality"] = quality

        if full_page:
            dims = json.loads(await self.evaluate(
                "JSON.stringify({width: document.documentElement.scrollWidth, "
                "height: document.documentElement.scrollHeight})"
            ))
            await self.cdp.send("Emulation.setDeviceMetricsOverride", {
                "width": dims["width"],
                "height": dims["height"],
                "deviceScaleFactor": 1,
                "mobile": False,
            })
            params["captureBeyondViewport"] = True

        if clip:
            params["clip"] = {**clip, "scale": 1}

        try:
            result = await self.cdp.send("Page.captureScreenshot", params)
        finally:
            if full_page:
                await self.cdp.send("Emulation.clearDeviceMetricsOverride")
        return result["data"]

    async def set_viewport(self, width: int, height: int) -> None:
        await self.cdp.send("Emulation.setDeviceMetricsOverride", {
            "width": width,
            "height": height,
            "deviceScaleFactor": 0,
            "mobile": False,
        })

    async def mouse_move(self, x: float, y: float) -> None:
        await self.cdp.send("Input.dispatchMouseEvent", {"type": "mouseMoved", "x": x, "y": y})

    async def mouse_click(self, x: float, y: float, click_count: int = 1) -> None:
        """Press and release the left button ``click_count`` times."""
        await self.mouse_move(x, y)
        for count in range(1, click_count + 1):
            for event_type in ("mousePressed", "mouseReleased"):
                await self.cdp.send("Input.dispatchMouseEvent", {
                    "type": event_type,
                    "x": x,
                    "y": y,
                    "button": "left",
                    "clickCount": count,
                })

    async def insert_text(self, text: str) -> None:
        await self.cdp.send("Input.insertText", {"text": text})

    async def press_key(self, key: str, modifiers: Optional[list[str]] = None) -> None:
        """Dispatch keyDown/char/keyUp for one key with modifiers held."""
        flags = 0
        for modifier in modifiers or []:
            flags |= MODIFIER_FLAGS.get(modifier, 0)

        if key in KEY_CODES:
            key_def = dict(KEY_CODES[key])
        else:
            key_def = {
                "key": key,
                "code": f"Key{key.upper()}" if len(key) == 1 and key.isalpha() else key,
                "keyCode": ord(key.upper()) if len(key) == 1 else 0,
            }
            if len(key) == 1 and not flags & ~MODIFIER_FLAGS["Shift"]:
                key_def["text"] = key

        await self.cdp.send("Input.dispatchKeyEvent", {"type": "keyDown", "modifiers": flags, **key_def})
        key_def.pop("text", None)
        await self.cdp.send("Input.dispatchKeyEvent", {"type": "keyUp", "modifiers": flags, **key_def})

    async def close(self) -> None:
        """Close the page connection (the tab stays open)."""
        await self.cdp.close()


def _exception_text(details: dict) -> str:
    exception = details.get("exception") or {}
    return exception.get("description") or details.get("text", "Unknown error")


class BrowserManager:
    """
    Owns the browser for one session.

    Either launches Chrome (``owns_process`` is True, teardown terminates
    it) or attaches to an existing one (teardown only disconnects).
    """

    def __init__(self, config: Optional[BrowsyConfig] = None):
        self.config = config or BrowsyConfig()
        self.port = self.config.port
        self.process: Optional[subprocess.Popen] = None
        self.browser: Optional[Browser] = None
        self.owns_process = False
        self._http_client: Optional[httpx.AsyncClient] = None

    @property
    def base_url(self) -> str:
        """DevTools HTTP endpoint."""
        if self.config.browser_url:
            return self.config.browser_url.rstrip("/")
        if self.config.ws_endpoint:
            parsed = urlparse(self.config.ws_endpoint)
            scheme = "https" if parsed.scheme == "wss" else "http"
            return f"{scheme}://{parsed.netloc}"
        return f"http://127.0.0.1:{self.port}"

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=5.0)
        return self._http_client

    async def _get_targets(self) -> list[dict]:
        """Get list of available CDP targets."""
        client = await self._get_http_client()
        try:
            response = await client.get(f"{self.base_url}/json/list")
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            logger.debug(f"Failed to get targets: {e}")
            return []

    async def _attach(self, target: dict) -> Browser:
        cdp = CDPClient()
        await cdp.connect(target["webSocketDebuggerUrl"])
        if self.browser:
            await self.browser.close()
        self.browser = Browser(cdp, target["id"])
        return self.browser

    async def _try_connect(self) -> bool:
        """Attach to the first page target, if any."""
        targets = await self._get_targets()
        target = next(
            (t for t in targets if t.get("type") == "page" and t.get("webSocketDebuggerUrl")),
            None,
        )
        if target is None:
            return False
        try:
            await self._attach(target)
        except BackendDisconnectedError as e:
            logger.debug(f"Failed to connect to existing browser: {e}")
            return False
        logger.info(f"Connected to browser page: {target.get('title', 'Unknown')}")
        return True

    async def start(self) -> Browser:
        """Attach or launch according to the config. Idempotent."""
        if self.browser and self.browser.cdp.connected:
            return self.browser
        if self.config.attaches:
            return await self.connect()
        return await self.launch()

    async def connect(self) -> Browser:
        """
        Attach to an externally owned browser.

        Raises:
            BrowserLaunchError: If no page target is reachable
        """
        self.owns_process = False
        if await self._try_connect():
            return self.browser
        raise BrowserLaunchError(f"No page target reachable at {self.base_url}")

    def _profile_args(self) -> list[str]:
        if self.config.user_data_dir:
            return [f"--user-data-dir={self.config.user_data_dir}"]
        if self.config.isolated:
            return [f"--user-data-dir={get_temp_profile_dir()}"]

        profile_dir = find_default_profile_dir()
        if profile_dir is None:
            logger.info("No default profile found, using temporary profile")
            return [f"--user-data-dir={get_temp_profile_dir()}"]
        if is_profile_locked(profile_dir):
            logger.warning(
                "Default profile is locked (Chrome is running). "
                "Using temporary profile. For logged-in sessions, "
                "close Chrome or attach with --browser-url."
            )
            return [f"--user-data-dir={get_temp_profile_dir()}"]
        return [f"--user-data-dir={profile_dir}"]

    async def launch(self, timeout: float = 30.0) -> Browser:
        """
        Launch Chrome, or reuse one already listening on the port.

        Raises:
            BrowserLaunchError: If Chrome cannot be found or reached
        """
        if await self._try_connect():
            logger.info(f"Reusing Chrome already listening on port {self.port}")
            self.owns_process = False
            return self.browser

        chrome_path = self.config.executable_path or find_chrome_executable()
        if not chrome_path:
            raise BrowserLaunchError(
                "Chrome executable not found. Please install Chrome or Chromium."
            )

        args = [
            chrome_path,
            f"--remote-debugging-port={self.port}",
            "--no-first-run",
            "--no-default-browser-check",
            "--disable-background-networking",
            "--disable-default-apps",
            "--disable-sync",
            "--disable-translate",
            "--metrics-recording-only",
            "--mute-audio",
            *self._profile_args(),
            *self.config.launch_args(),
        ]
        if self.config.headless:
            args.extend(["--headless=new", "--disable-gpu"])

        logger.info(f"Launching Chrome: {chrome_path}")
        logger.debug(f"Chrome args: {' '.join(args)}")

        try:
            self.process = subprocess.Popen(
                args,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            raise BrowserLaunchError(f"Failed to launch Chrome: {e}") from e
        self.owns_process = True

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while loop.time() < deadline:
            if await self._try_connect():
                logger.info("Chrome launched and connected successfully")
                return self.browser
            await asyncio.sleep(0.5)

        self._terminate_process()
        raise BrowserLaunchError(
            f"Failed to connect to Chrome after {timeout}s. "
            "Check if the port is available or Chrome can start."
        )

    async def get_pages(self) -> list[dict]:
        """Open page targets as {id, url, title, selected}."""
        selected = self.browser.target_id if self.browser else None
        return [
            {
                "id": target["id"],
                "url": target.get("url", ""),
                "title": target.get("title", ""),
                "selected": target["id"] == selected,
            }
            for target in await self._get_targets()
            if target.get("type") == "page"
        ]

    async def select_page(self, page_id: str) -> Browser:
        """Attach to a different page and bring it to front."""
        targets = await self._get_targets()
        target = next((t for t in targets if t["id"] == page_id), None)
        if not target or "webSocketDebuggerUrl" not in target:
            raise BackendDisconnectedError(f"Page {page_id} is not reachable")
        browser = await self._attach(target)
        await browser.cdp.send("Page.bringToFront")
        return browser

    async def new_page(self, url: Optional[str] = None) -> dict:
        """Open a new tab; returns its target description."""
        client = await self._get_http_client()
        create_url = f"{self.base_url}/json/new"
        if url:
            create_url += f"?{quote(url, safe=':/?&=#%')}"
        response = await client.put(create_url)
        response.raise_for_status()
        return response.json()

    async def close_page(self, page_id: str) -> bool:
        """Close a tab by ID."""
        client = await self._get_http_client()
        try:
            response = await client.get(f"{self.base_url}/json/close/{page_id}")
        except httpx.HTTPError as e:
            logger.warning(f"Failed to close page {page_id}: {e}")
            return False
        return response.status_code == 200

    def _terminate_process(self) -> None:
        if self.process:
            self.process.terminate()
            try:
                self.process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                self.process.kill()
            self.process = None

    async def disconnect(self) -> None:
        """Drop connections, leave the browser running."""
        if self.browser:
            await self.browser.close()
            self.browser = None
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
        logger.info("Disconnected from browser")

    async def close(self) -> None:
        """Drop connections and terminate the browser process."""
        await self.disconnect()
        self._terminate_process()
        logger.info("Browser closed")

    async def teardown(self) -> None:
        """Close when we launched the browser, disconnect otherwise."""
        if self.owns_process:
            await self.close()
        else:
            await self.disconnect()
