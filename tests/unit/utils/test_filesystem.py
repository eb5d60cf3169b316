"""Tests for addonkit.utils.filesystem module."""

import io
import os
import stat
import tarfile
import zipfile
from pathlib import Path
from unittest.mock import patch

import pytest

from addonkit.utils.filesystem import (
    ArchiveError,
    FileCopyError,
    copy_bulk,
    create_symlink,
    directory_symlink_target,
    ensure_directory,
    expand_user,
    extract_archive,
    get_rooted_path,
    is_directory_symlink,
    remove_directory,
    remove_symlink,
)


class TestEnsureDirectory:
    """Tests for ensure_directory function."""

    def test_creates_nested_directories(self, temp_dir: Path):
        nested_dir = temp_dir / "a" / "b" / "c"

        result = ensure_directory(nested_dir)

        assert nested_dir.is_dir()
        assert result == nested_dir

    def test_handles_existing_directory(self, temp_dir: Path):
        assert ensure_directory(temp_dir) == temp_dir


class TestRemoveDirectory:
    """Tests for remove_directory function."""

    def test_removes_directory(self, temp_dir: Path):
        target = temp_dir / "target"
        (target / "sub").mkdir(parents=True)
        (target / "sub" / "file.txt").write_text("content")

        assert remove_directory(target) is True
        assert not target.exists()

    def test_returns_false_for_nonexistent(self, temp_dir: Path):
        assert remove_directory(temp_dir / "missing") is False

    def test_clears_read_only_files_on_windows(self, temp_dir: Path):
        """Read-only entries (like git objects) are made writable first."""
        target = temp_dir / "target"
        target.mkdir()
        read_only = target / "object"
        read_only.write_text("data")
        os.chmod(read_only, stat.S_IREAD)

        with patch("addonkit.utils.filesystem.is_windows", return_value=True):
            remove_directory(target)

        assert not target.exists()


class TestPaths:
    """Tests for path helpers."""

    def test_expand_user_replaces_leading_tilde(self):
        with patch("addonkit.utils.filesystem.get_home_directory", return_value="/home/me"):
            assert expand_user("~/addons") == "/home/me/addons"
            assert expand_user("~") == "/home/me"

    def test_expand_user_ignores_inner_tilde(self):
        assert expand_user("addons/~backup") == "addons/~backup"
        assert expand_user("~other/addons") == "~other/addons"

    def test_get_rooted_path_roots_relative_paths(self, temp_dir: Path):
        assert Path(get_rooted_path("../a", temp_dir / "b")) == temp_dir / "a"

    def test_get_rooted_path_keeps_absolute_paths(self, temp_dir: Path):
        assert Path(get_rooted_path(str(temp_dir / "x" / ".." / "a"), Path("/other"))) == (
            temp_dir / "a"
        )


class TestSymlinks:
    """Tests for symlink helpers."""

    def test_create_and_remove(self, temp_dir: Path):
        target = temp_dir / "target"
        target.mkdir()
        (target / "file.txt").write_text("content")
        link = temp_dir / "links" / "link"

        create_symlink(link, target)

        assert is_directory_symlink(link)
        assert directory_symlink_target(link) == target.resolve()

        remove_symlink(link)

        assert not link.is_symlink()
        assert (target / "file.txt").exists()

    def test_plain_directory_is_not_symlink(self, temp_dir: Path):
        assert not is_directory_symlink(temp_dir)


class TestCopyBulk:
    """Tests for copy_bulk function."""

    def test_rsync_copies_contents_excluding_git(self, temp_dir: Path, shell_recorder):
        shell = shell_recorder.factory(temp_dir)

        with patch("addonkit.utils.filesystem.is_windows", return_value=False):
            copy_bulk(shell, Path("/cache/a/"), Path("/addons/a"))

        assert shell_recorder.commands == [
            ["rsync", "-av", "/cache/a/", "/addons/a/", "--exclude", ".git"]
        ]

    def test_rsync_failure_raises(self, temp_dir: Path, shell_recorder):
        shell_recorder.respond(
            "rsync", "-av", "/cache/a/", "/addons/a/", "--exclude", ".git",
            returncode=23, stderr="some files could not be transferred",
        )
        shell = shell_recorder.factory(temp_dir)

        with patch("addonkit.utils.filesystem.is_windows", return_value=False):
            with pytest.raises(FileCopyError) as exc_info:
                copy_bulk(shell, Path("/cache/a"), Path("/addons/a"))

        assert exc_info.value.source == Path("/cache/a")
        assert exc_info.value.destination == Path("/addons/a")

    @pytest.mark.parametrize("returncode", [0, 1, 3, 7])
    def test_robocopy_codes_below_eight_succeed(self, temp_dir: Path, shell_recorder, returncode):
        shell_recorder.respond("robocopy", "src", "dst", "/e", "/xd", ".git", returncode=returncode)
        shell = shell_recorder.factory(temp_dir)

        with patch("addonkit.utils.filesystem.is_windows", return_value=True):
            copy_bulk(shell, Path("src"), Path("dst"))

    @pytest.mark.parametrize("returncode", [8, 16])
    def test_robocopy_codes_from_eight_fail(self, temp_dir: Path, shell_recorder, returncode):
        shell_recorder.respond("robocopy", "src", "dst", "/e", "/xd", ".git", returncode=returncode)
        shell = shell_recorder.factory(temp_dir)

        with patch("addonkit.utils.filesystem.is_windows", return_value=True):
            with pytest.raises(FileCopyError):
                copy_bulk(shell, Path("src"), Path("dst"))


class TestExtractArchive:
    """Tests for extract_archive function."""

    def test_extracts_zip_with_progress(self, temp_dir: Path):
        archive = temp_dir / "addon.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            zf.writestr("addon/plugin.cfg", "[plugin]\n" * 100)
            zf.writestr("addon/script.gd", "extends Node\n")
        progress: list[float] = []

        result = extract_archive(archive, temp_dir / "out", on_progress=progress.append)

        assert result == temp_dir / "out"
        assert (result / "addon" / "plugin.cfg").read_text() == "[plugin]\n" * 100
        assert (result / "addon" / "script.gd").exists()
        assert progress == sorted(progress)
        assert progress[-1] == 1.0

    def test_extracts_tarball(self, temp_dir: Path):
        source = temp_dir / "src"
        source.mkdir()
        (source / "plugin.cfg").write_text("[plugin]")
        archive = temp_dir / "addon.tar.gz"
        with tarfile.open(archive, "w:gz") as tar:
            tar.add(source, arcname="addon")

        extract_archive(archive, temp_dir / "out")

        assert (temp_dir / "out" / "addon" / "plugin.cfg").read_text() == "[plugin]"

    def test_rejects_zip_path_traversal(self, temp_dir: Path):
        archive = temp_dir / "evil.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            zf.writestr("../escape.txt", "boom")

        with pytest.raises(ArchiveError, match="Unsafe path"):
            extract_archive(archive, temp_dir / "out")

        assert not (temp_dir / "escape.txt").exists()

    def test_rejects_tar_path_traversal(self, temp_dir: Path):
        archive = temp_dir / "evil.tar"
        with tarfile.open(archive, "w") as tar:
            data = b"boom"
            info = tarfile.TarInfo("../escape.txt")
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))

        with pytest.raises(ArchiveError, match="Unsafe path"):
            extract_archive(archive, temp_dir / "out")

    def test_rejects_unknown_format(self, temp_dir: Path):
        archive = temp_dir / "addon.rar"
        archive.write_bytes(b"not an archive")

        with pytest.raises(ArchiveError, match="Unsupported archive format"):
            extract_archive(archive, temp_dir / "out")
