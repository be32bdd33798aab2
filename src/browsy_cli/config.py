"""
Process configuration.

Defaults come from ``BROWSY_*`` environment variables; CLI options on the
root command override them.
"""

import os
from dataclasses import dataclass, field
from typing import Optional

DEFAULT_PORT = 9222
DEFAULT_TIMEOUT_MS = 5000


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


def parse_viewport(value: str) -> tuple[int, int]:
    """Parse ``WIDTHxHEIGHT`` (e.g. ``1280x720``)."""
    width, sep, height = value.lower().partition("x")
    if not sep:
        raise ValueError(f"Viewport must look like 1280x720, got {value!r}")
    try:
        return int(width), int(height)
    except ValueError:
        raise ValueError(f"Viewport must look like 1280x720, got {value!r}")


@dataclass
class BrowsyConfig:
    # launch
    headless: bool = False
    executable_path: Optional[str] = None
    user_data_dir: Optional[str] = None
    isolated: bool = False
    chrome_args: list[str] = field(default_factory=list)
    proxy_server: Optional[str] = None
    viewport: Optional[tuple[int, int]] = None
    accept_insecure_certs: bool = False
    port: int = DEFAULT_PORT

    # attach
    browser_url: Optional[str] = None
    ws_endpoint: Optional[str] = None

    # tool gating
    category_emulation: bool = True
    category_network: bool = True
    experimental_vision: bool = False

    default_timeout_ms: int = DEFAULT_TIMEOUT_MS
    log_file: Optional[str] = None
    log_level: str = "WARNING"

    @property
    def attaches(self) -> bool:
        """True when connecting to a browser someone else owns."""
        return bool(self.browser_url or self.ws_endpoint)

    def launch_args(self) -> list[str]:
        args = list(self.chrome_args)
        if self.proxy_server:
            args.append(f"--proxy-server={self.proxy_server}")
        if self.accept_insecure_certs:
            args.append("--ignore-certificate-errors")
        if self.viewport:
            args.append(f"--window-size={self.viewport[0]},{self.viewport[1]}")
        return args

    @classmethod
    def from_env(cls) -> "BrowsyConfig":
        viewport = os.environ.get("BROWSY_VIEWPORT")
        chrome_args = os.environ.get("BROWSY_CHROME_ARGS", "")
        return cls(
            headless=_env_bool("BROWSY_HEADLESS", False),
            executable_path=os.environ.get("BROWSY_CHROME_PATH") or None,
            user_data_dir=os.environ.get("BROWSY_USER_DATA_DIR") or None,
            isolated=_env_bool("BROWSY_ISOLATED", False),
            chrome_args=chrome_args.split() if chrome_args else [],
            proxy_server=os.environ.get("BROWSY_PROXY_SERVER") or None,
            viewport=parse_viewport(viewport) if viewport else None,
            accept_insecure_certs=_env_bool("BROWSY_ACCEPT_INSECURE_CERTS", False),
            port=_env_int("BROWSY_PORT", DEFAULT_PORT),
            browser_url=os.environ.get("BROWSY_BROWSER_URL") or None,
            ws_endpoint=os.environ.get("BROWSY_WS_ENDPOINT") or None,
            category_emulation=_env_bool("BROWSY_CATEGORY_EMULATION", True),
            category_network=_env_bool("BROWSY_CATEGORY_NETWORK", True),
            experimental_vision=_env_bool("BROWSY_EXPERIMENTAL_VISION", False),
            default_timeout_ms=_env_int("BROWSY_TIMEOUT_MS", DEFAULT_TIMEOUT_MS),
            log_file=os.environ.get("BROWSY_LOG_FILE") or None,
            log_level=os.environ.get("BROWSY_LOG_LEVEL", "WARNING").upper(),
        )
