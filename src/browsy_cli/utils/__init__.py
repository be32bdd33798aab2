"""
Utility modules for browsy-cli.
"""

from .platform import (
    find_chrome_executable,
    find_default_profile_dir,
    get_platform,
    get_temp_profile_dir,
    is_profile_locked,
)

__all__ = [
    "find_chrome_executable",
    "find_default_profile_dir",
    "get_platform",
    "get_temp_profile_dir",
    "is_profile_locked",
]
