"""Unit tests for browsy-cli components.

Tests the CDP client, Browser/BrowserManager, configuration, the error
taxonomy and MCP server registration without requiring Chrome.
"""

import asyncio
import json

import pytest

from browsy_cli.browser import Browser, BrowserManager
from browsy_cli.cdp import CDPClient, CDPError
from browsy_cli.config import BrowsyConfig, parse_viewport
from browsy_cli.errors import (
    BackendDisconnectedError,
    BrowserLaunchError,
    BrowsyError,
    ElementNotFoundError,
    ElementNotVisibleError,
    FatalError,
    HandlerError,
    ToolDisabledError,
    WaitTimeoutError,
)
from browsy_cli.server import build_signature, create_server, to_mcp_content
from browsy_cli.session import Session
from browsy_cli.tools import TOOLS, get_tool
from fakes import FakeBrowserManager


class TestCDPClient:
    """Test CDP client state and message handling."""

    def test_init(self):
        client = CDPClient()
        assert client.ws is None
        assert not client.connected

    @pytest.mark.asyncio
    async def test_send_when_disconnected(self):
        with pytest.raises(BackendDisconnectedError):
            await CDPClient().send("Page.enable")

    @pytest.mark.asyncio
    async def test_result_resolves_pending_command(self):
        client = CDPClient()
        future = asyncio.get_running_loop().create_future()
        client._callbacks[1] = future
        client._handle_message(json.dumps({"id": 1, "result": {"frameId": "f"}}))
        assert await future == {"frameId": "f"}
        assert client._callbacks == {}

    @pytest.mark.asyncio
    async def test_error_becomes_cdp_error(self):
        client = CDPClient()
        future = asyncio.get_running_loop().create_future()
        client._callbacks[2] = future
        client._handle_message(json.dumps({"id": 2, "error": {"code": -32000, "message": "No node"}}))
        with pytest.raises(CDPError, match="No node") as exc_info:
            await future
        assert exc_info.value.code == -32000
        assert isinstance(exc_info.value, HandlerError)

    @pytest.mark.asyncio
    async def test_events_dispatched(self):
        client = CDPClient()
        received = []

        async def handler(params):
            received.append(params)

        client.on("Page.loadEventFired", handler)
        client._handle_message(json.dumps({"method": "Page.loadEventFired", "params": {"timestamp": 1}}))
        await asyncio.sleep(0)
        assert received == [{"timestamp": 1}]

        client.off("Page.loadEventFired", handler)
        client._handle_message(json.dumps({"method": "Page.loadEventFired", "params": {}}))
        await asyncio.sleep(0)
        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_lost_connection_fails_pending(self):
        client = CDPClient()
        future = asyncio.get_running_loop().create_future()
        client._callbacks[3] = future
        client._fail_pending(BackendDisconnectedError("Browser connection lost"))
        with pytest.raises(BackendDisconnectedError):
            await future

    def test_bad_json_ignored(self):
        CDPClient()._handle_message("not json")


class TestBrowser:
    def test_init(self):
        cdp = CDPClient()
        browser = Browser(cdp, "test-target-id")
        assert browser.cdp is cdp
        assert browser.target_id == "test-target-id"
        assert len(browser._enabled_domains) == 0


class TestBrowserManager:
    """Test endpoint selection and teardown policy."""

    def test_init(self):
        manager = BrowserManager()
        assert manager.browser is None
        assert manager.owns_process is False
        assert manager.base_url == "http://127.0.0.1:9222"

    def test_browser_url(self):
        manager = BrowserManager(BrowsyConfig(browser_url="http://localhost:9333/"))
        assert manager.base_url == "http://localhost:9333"

    def test_ws_endpoint(self):
        config = BrowsyConfig(ws_endpoint="ws://10.0.0.5:9229/devtools/browser/abc")
        assert BrowserManager(config).base_url == "http://10.0.0.5:9229"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("owns_process, expected", [(True, "close"), (False, "disconnect")])
    async def test_teardown(self, monkeypatch, owns_process, expected):
        manager = BrowserManager()
        manager.owns_process = owns_process
        calls = []

        async def close():
            calls.append("close")

        async def disconnect():
            calls.append("disconnect")

        monkeypatch.setattr(manager, "close", close)
        monkeypatch.setattr(manager, "disconnect", disconnect)
        await manager.teardown()
        assert calls == [expected]

    @pytest.mark.asyncio
    async def test_connect_without_targets(self, monkeypatch):
        manager = BrowserManager(BrowsyConfig(browser_url="http://127.0.0.1:1"))

        async def no_targets():
            return []

        monkeypatch.setattr(manager, "_get_targets", no_targets)
        with pytest.raises(BrowserLaunchError, match="No page target reachable"):
            await manager.start()
        assert manager.owns_process is False


class TestConfig:
    """Test configuration defaults and environment parsing."""

    def test_defaults(self):
        config = BrowsyConfig()
        assert config.port == 9222
        assert config.default_timeout_ms == 5000
        assert not config.attaches
        assert not config.experimental_vision

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("BROWSY_HEADLESS", "1")
        monkeypatch.setenv("BROWSY_BROWSER_URL", "http://127.0.0.1:9333")
        monkeypatch.setenv("BROWSY_CATEGORY_NETWORK", "false")
        monkeypatch.setenv("BROWSY_VIEWPORT", "1280x720")
        monkeypatch.setenv("BROWSY_CHROME_ARGS", "--lang=de --mute-audio")
        monkeypatch.setenv("BROWSY_TIMEOUT_MS", "2500")
        monkeypatch.setenv("BROWSY_LOG_LEVEL", "debug")
        config = BrowsyConfig.from_env()
        assert config.headless
        assert config.attaches
        assert not config.category_network
        assert config.viewport == (1280, 720)
        assert config.chrome_args == ["--lang=de", "--mute-audio"]
        assert config.default_timeout_ms == 2500
        assert config.log_level == "DEBUG"

    def test_bad_int(self, monkeypatch):
        monkeypatch.setenv("BROWSY_PORT", "ninety")
        with pytest.raises(ValueError, match="BROWSY_PORT"):
            BrowsyConfig.from_env()

    def test_parse_viewport(self):
        assert parse_viewport("800X600") == (800, 600)
        with pytest.raises(ValueError):
            parse_viewport("800")

    def test_launch_args(self):
        config = BrowsyConfig(
            chrome_args=["--lang=de"],
            proxy_server="http://proxy:3128",
            accept_insecure_certs=True,
            viewport=(1024, 768),
        )
        assert config.launch_args() == [
            "--lang=de",
            "--proxy-server=http://proxy:3128",
            "--ignore-certificate-errors",
            "--window-size=1024,768",
        ]


class TestErrors:
    """Test the error taxonomy."""

    def test_per_command_errors_are_not_fatal(self):
        for error_class in (ElementNotFoundError, ElementNotVisibleError, WaitTimeoutError, CDPError):
            assert issubclass(error_class, HandlerError)
            assert not issubclass(error_class, FatalError)

    def test_fatal_errors(self):
        assert issubclass(BackendDisconnectedError, FatalError)
        assert issubclass(BrowserLaunchError, FatalError)
        assert issubclass(FatalError, BrowsyError)

    def test_tool_disabled_message(self):
        assert str(ToolDisabledError("click_at")) == (
            "Tool click_at is disabled by category or experimental flags."
        )


class TestMCPServer:
    """Test MCP server registration."""

    def test_signature_mirrors_schema(self):
        signature = build_signature(get_tool("navigate_page"))
        assert list(signature.parameters) == ["type", "url", "timeout"]
        assert signature.parameters["type"].default == "url"
        assert signature.parameters["url"].default is None

    def test_required_params_have_no_default(self):
        signature = build_signature(get_tool("fill"))
        assert all(p.default is p.empty for p in signature.parameters.values())

    def test_content_conversion(self):
        text = to_mcp_content({"type": "text", "text": "hi"})
        image = to_mcp_content({"type": "image", "mimeType": "image/png", "data": "aGVsbG8="})
        assert text.text == "hi"
        assert image.mimeType == "image/png"

    @pytest.mark.asyncio
    async def test_tools_registered(self):
        session = Session(BrowsyConfig(), manager=FakeBrowserManager())
        mcp = create_server(session)
        assert mcp.name == "browsy-cli"

        tools = await mcp.get_tools()
        expected = {tool.name for tool in TOOLS} - {"click_at"}
        assert set(tools) == expected

    @pytest.mark.asyncio
    async def test_gated_tools_not_registered(self):
        config = BrowsyConfig(category_emulation=False, experimental_vision=True)
        tools = await create_server(Session(config, manager=FakeBrowserManager())).get_tools()
        assert "resize_page" not in tools
        assert "click_at" in tools

    @pytest.mark.asyncio
    async def test_input_schema(self):
        tools = await create_server(Session(BrowsyConfig(), manager=FakeBrowserManager())).get_tools()
        schema = tools["fill"].parameters
        assert set(schema["required"]) == {"uid", "value"}
        assert schema["properties"]["uid"]["description"].startswith("The uid of an element")
