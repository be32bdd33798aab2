"""
Platform helpers for locating Chrome.

Provides tools for:
- Finding a Chrome/Chromium executable
- Finding the default user data directory
- Detecting a profile that a running Chrome holds locked
- Creating throwaway profiles for isolated sessions
"""

import os
import shutil
import sys
import tempfile
from pathlib import Path
from typing import Optional

CHROME_COMMANDS = ("google-chrome", "google-chrome-stable", "chrome", "chromium", "chromium-browser")
LOCK_FILES = ("SingletonLock", "SingletonSocket", "lockfile")
TEMP_PROFILE_PREFIX = "browsy-cli-profile-"


def get_platform() -> str:
    """Return 'mac', 'linux' or 'windows'."""
    if sys.platform.startswith("darwin"):
        return "mac"
    if sys.platform.startswith("win"):
        return "windows"
    return "linux"


def _chrome_candidates(plat: str) -> list[str]:
    if plat == "mac":
        return [
            "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
            "/Applications/Google Chrome Canary.app/Contents/MacOS/Google Chrome Canary",
            "/Applications/Chromium.app/Contents/MacOS/Chromium",
            "/Applications/Brave Browser.app/Contents/MacOS/Brave Browser",
            "/Applications/Microsoft Edge.app/Contents/MacOS/Microsoft Edge",
        ]
    if plat == "windows":
        return [
            os.path.expandvars(r"%ProgramFiles%\Google\Chrome\Application\chrome.exe"),
            os.path.expandvars(r"%ProgramFiles(x86)%\Google\Chrome\Application\chrome.exe"),
            os.path.expandvars(r"%LocalAppData%\Google\Chrome\Application\chrome.exe"),
            os.path.expandvars(r"%ProgramFiles%\BraveSoftware\Brave-Browser\Application\brave.exe"),
            os.path.expandvars(r"%ProgramFiles%\Microsoft\Edge\Application\msedge.exe"),
        ]
    return [
        "/usr/bin/google-chrome",
        "/usr/bin/google-chrome-stable",
        "/usr/bin/chromium",
        "/usr/bin/chromium-browser",
        "/snap/bin/chromium",
        "/usr/bin/brave-browser",
        "/usr/bin/microsoft-edge",
    ]


def find_chrome_executable() -> Optional[str]:
    """
    Find a Chrome/Chromium executable.

    Well-known install locations are checked before ``PATH``.

    Returns:
        Path to the executable, or None if nothing was found
    """
    for path in _chrome_candidates(get_platform()):
        if os.path.exists(path) and os.access(path, os.X_OK):
            return path
    for name in CHROME_COMMANDS:
        path = shutil.which(name)
        if path:
            return path
    return None


def find_default_profile_dir() -> Optional[str]:
    """Default Chrome user data directory, or None if it doesn't exist."""
    plat = get_platform()
    home = Path.home()

    if plat == "mac":
        candidates = [
            home / "Library/Application Support/Google/Chrome",
            home / "Library/Application Support/Chromium",
        ]
    elif plat == "windows":
        local_app_data = os.environ.get("LOCALAPPDATA")
        if not local_app_data:
            return None
        candidates = [
            Path(local_app_data) / "Google" / "Chrome" / "User Data",
            Path(local_app_data) / "Chromium" / "User Data",
        ]
    else:
        candidates = [
            home / ".config" / "google-chrome",
            home / ".config" / "chromium",
        ]

    for path in candidates:
        if path.exists():
            return str(path)
    return None


def is_profile_locked(profile_dir: str) -> bool:
    """True if a running Chrome holds ``profile_dir``."""
    profile_path = Path(profile_dir)
    return any((profile_path / name).exists() for name in LOCK_FILES)


def get_temp_profile_dir() -> str:
    """Create a fresh temporary profile directory."""
    return tempfile.mkdtemp(prefix=TEMP_PROFILE_PREFIX)
