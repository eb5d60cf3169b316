"""Platform detection.

Copying and deleting installed addons differs on Windows (robocopy,
read-only git objects, directory links), so callers branch on `is_windows`.
"""

import os
import platform
from typing import Literal

PlatformOS = Literal["windows", "linux", "macos"]


def get_os() -> PlatformOS:
    """Get the current operating system; anything unrecognized counts as linux."""
    system = platform.system().lower()
    if system == "darwin":
        return "macos"
    if system == "windows":
        return "windows"
    return "linux"


def is_windows() -> bool:
    return get_os() == "windows"


def get_home_directory() -> str:
    """Get the user's home directory, used to expand ``~`` in addon paths."""
    return os.path.expanduser("~")
