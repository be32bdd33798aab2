"""Tests for platform utilities - Chrome detection and profile management.

These run without Chrome; lookups are steered with monkeypatch where the
result would otherwise depend on the machine.
"""

import os
import shutil

import pytest

from browsy_cli.utils import platform
from browsy_cli.utils.platform import (
    LOCK_FILES,
    TEMP_PROFILE_PREFIX,
    find_chrome_executable,
    find_default_profile_dir,
    get_platform,
    get_temp_profile_dir,
    is_profile_locked,
)


class TestGetPlatform:
    @pytest.mark.parametrize(
        "sys_platform, expected",
        [("darwin", "mac"), ("win32", "windows"), ("linux", "linux"), ("freebsd13", "linux")],
    )
    def test_maps_sys_platform(self, monkeypatch, sys_platform, expected):
        monkeypatch.setattr(platform.sys, "platform", sys_platform)
        assert get_platform() == expected


class TestFindChromeExecutable:
    """Test Chrome executable detection."""

    def test_returns_string_or_none(self):
        result = find_chrome_executable()
        assert result is None or isinstance(result, str)

    def test_executable_exists_if_found(self):
        result = find_chrome_executable()
        if result:
            assert os.path.exists(result), f"Chrome path doesn't exist: {result}"

    def test_falls_back_to_path_lookup(self, monkeypatch):
        monkeypatch.setattr(platform, "_chrome_candidates", lambda plat: [])
        monkeypatch.setattr(shutil, "which", lambda name: "/opt/bin/chromium" if name == "chromium" else None)
        assert find_chrome_executable() == "/opt/bin/chromium"

    def test_none_when_nothing_found(self, monkeypatch):
        monkeypatch.setattr(platform, "_chrome_candidates", lambda plat: [])
        monkeypatch.setattr(shutil, "which", lambda name: None)
        assert find_chrome_executable() is None

    def test_prefers_known_locations(self, monkeypatch, tmp_path):
        chrome = tmp_path / "chrome"
        chrome.write_text("#!/bin/sh\n")
        chrome.chmod(0o755)
        monkeypatch.setattr(platform, "_chrome_candidates", lambda plat: [str(chrome)])
        monkeypatch.setattr(shutil, "which", lambda name: "/usr/bin/other")
        assert find_chrome_executable() == str(chrome)


class TestFindDefaultProfileDir:
    """Test Chrome profile directory detection."""

    def test_returns_string_or_none(self):
        result = find_default_profile_dir()
        assert result is None or isinstance(result, str)

    def test_linux_profile(self, monkeypatch, tmp_path):
        (tmp_path / ".config" / "chromium").mkdir(parents=True)
        monkeypatch.setattr(platform, "get_platform", lambda: "linux")
        monkeypatch.setattr(platform.Path, "home", classmethod(lambda cls: tmp_path))
        assert find_default_profile_dir() == str(tmp_path / ".config" / "chromium")

    def test_missing_profile(self, monkeypatch, tmp_path):
        monkeypatch.setattr(platform, "get_platform", lambda: "linux")
        monkeypatch.setattr(platform.Path, "home", classmethod(lambda cls: tmp_path))
        assert find_default_profile_dir() is None


class TestIsProfileLocked:
    """Test Chrome profile lock detection."""

    def test_nonexistent_dir_not_locked(self):
        assert is_profile_locked("/nonexistent/path/that/does/not/exist") is False

    def test_empty_dir_not_locked(self, tmp_path):
        assert is_profile_locked(str(tmp_path)) is False

    @pytest.mark.parametrize("lock_name", LOCK_FILES)
    def test_dir_with_lock_file_is_locked(self, tmp_path, lock_name):
        (tmp_path / lock_name).touch()
        assert is_profile_locked(str(tmp_path)) is True


class TestGetTempProfileDir:
    """Test temporary profile directory creation."""

    def test_creates_directory(self):
        result = get_temp_profile_dir()
        assert os.path.isdir(result)
        assert TEMP_PROFILE_PREFIX in os.path.basename(result)
        os.rmdir(result)

    def test_returns_different_paths(self):
        first, second = get_temp_profile_dir(), get_temp_profile_dir()
        assert first != second
        os.rmdir(first)
        os.rmdir(second)
