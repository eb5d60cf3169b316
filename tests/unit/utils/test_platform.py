"""Tests for addonkit.utils.platform module."""

import os
from unittest.mock import patch

from addonkit.utils.platform import get_home_directory, get_os, is_windows


class TestGetOS:
    """Tests for get_os function."""

    def test_returns_valid_os(self):
        assert get_os() in ("windows", "linux", "macos")

    @patch("platform.system")
    def test_darwin_returns_macos(self, mock_system):
        mock_system.return_value = "Darwin"
        assert get_os() == "macos"

    @patch("platform.system")
    def test_windows_returns_windows(self, mock_system):
        mock_system.return_value = "Windows"
        assert get_os() == "windows"
        assert is_windows()

    @patch("platform.system")
    def test_unknown_returns_linux(self, mock_system):
        """Unknown platforms are treated as linux."""
        mock_system.return_value = "FreeBSD"
        assert get_os() == "linux"
        assert not is_windows()


class TestGetHomeDirectory:
    """Tests for get_home_directory function."""

    def test_matches_expanduser(self):
        assert get_home_directory() == os.path.expanduser("~")
