"""Filesystem utilities for addonkit."""

from __future__ import annotations

import logging
import os
import shutil
import stat
import tarfile
import zipfile
from collections.abc import Callable
from pathlib import Path
from typing import IO

from addonkit.utils.platform import get_home_directory, is_windows
from addonkit.utils.process import Shell

logger = logging.getLogger(__name__)

ExtractProgress = Callable[[float], None]

_CHUNK_SIZE = 64 * 1024


class FileCopyError(Exception):
    """Error copying a directory tree."""

    def __init__(self, message: str, source: Path | None = None, destination: Path | None = None):
        self.source = source
        self.destination = destination
        super().__init__(message)


class ArchiveError(Exception):
    """Error extracting an archive."""

    def __init__(self, message: str, path: Path | None = None):
        self.path = path
        super().__init__(message)


def ensure_directory(path: Path) -> Path:
    """Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path to ensure exists

    Returns:
        The directory path
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def _make_writable(path: Path) -> None:
    for root, dirs, files in os.walk(path):
        for name in dirs + files:
            entry = os.path.join(root, name)
            if not os.path.islink(entry):
                os.chmod(entry, stat.S_IWRITE | stat.S_IREAD | stat.S_IEXEC)


def remove_directory(path: Path) -> bool:
    """Remove a directory and its contents.

    On Windows, git marks object files read-only, so write permission is
    restored on every entry before the tree is removed.

    Args:
        path: Directory path to remove

    Returns:
        True if the directory was removed, False if it didn't exist
    """
    if not path.exists():
        return False
    if is_windows():
        _make_writable(path)
    shutil.rmtree(path)
    return True


def expand_user(url: str) -> str:
    """Replace a leading ``~`` with the user's home directory."""
    if url == "~" or url.startswith(("~/", "~\\")):
        return get_home_directory() + url[1:]
    return url


def get_rooted_path(url: str, base_path: Path) -> str:
    """Root a path against a base directory unless it is already absolute.

    Args:
        url: Absolute or relative filesystem path
        base_path: Directory relative paths are resolved from

    Returns:
        Normalized absolute path
    """
    if os.path.isabs(url):
        return os.path.normpath(url)
    return os.path.normpath(os.path.join(os.path.abspath(base_path), url))


def is_directory_symlink(path: Path) -> bool:
    """Check whether a path is a symlink pointing at a directory."""
    return path.is_symlink() and path.is_dir()


def directory_symlink_target(path: Path) -> Path:
    """Get the real directory a symlink points to."""
    return Path(os.path.realpath(path))


def create_symlink(link_path: Path, target: Path) -> None:
    """Create a directory symlink at ``link_path`` pointing to ``target``."""
    link_path.parent.mkdir(parents=True, exist_ok=True)
    link_path.symlink_to(target, target_is_directory=True)


def remove_symlink(path: Path) -> None:
    """Remove a directory symlink without touching what it points to."""
    if is_windows():
        # Directory links on Windows are removed like empty directories
        os.rmdir(path)
    else:
        path.unlink()


def copy_bulk(shell: Shell, source: Path, destination: Path) -> None:
    """Copy a directory tree, excluding git metadata.

    Uses robocopy on Windows and rsync elsewhere.

    Args:
        shell: Shell used to run the copy tool
        source: Directory whose contents are copied
        destination: Directory receiving the contents

    Raises:
        FileCopyError: If the copy tool reports a failure
    """
    logger.debug("Copying %s to %s", source, destination)
    if is_windows():
        result = shell.run_unchecked(
            "robocopy", str(source), str(destination), "/e", "/xd", ".git"
        )
        # robocopy exit codes below 8 all mean success
        if result.returncode >= 8:
            raise FileCopyError(
                f"Failed to copy `{source}` to `{destination}`",
                source=source,
                destination=destination,
            )
        return

    # Trailing separators make rsync copy the contents, not the directory
    result = shell.run_unchecked(
        "rsync",
        "-av",
        str(source).rstrip(os.sep) + os.sep,
        str(destination).rstrip(os.sep) + os.sep,
        "--exclude",
        ".git",
    )
    if result.returncode != 0:
        raise FileCopyError(
            f"Failed to copy `{source}` to `{destination}`: {result.stderr.strip()}",
            source=source,
            destination=destination,
        )


def _safe_member_path(dest_dir: Path, name: str, archive_path: Path) -> Path:
    member_path = Path(name)
    if member_path.is_absolute() or ".." in member_path.parts:
        raise ArchiveError(f"Unsafe path in archive: {name}", path=archive_path)
    return dest_dir / member_path


def _copy_stream(
    source: IO[bytes],
    target: Path,
    on_chunk: Callable[[int], None],
) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "wb") as out:
        for chunk in iter(lambda: source.read(_CHUNK_SIZE), b""):
            out.write(chunk)
            on_chunk(len(chunk))


def extract_archive(
    archive_path: Path,
    dest_dir: Path,
    on_progress: ExtractProgress | None = None,
) -> Path:
    """Extract a zip or tar archive, reporting progress as a fraction.

    Args:
        archive_path: Path to the .zip, .tar, .tar.gz or .tgz file
        dest_dir: Destination directory
        on_progress: Optional callback receiving values between 0 and 1

    Returns:
        The destination directory

    Raises:
        ArchiveError: If the archive is unreadable or contains unsafe paths
    """
    dest_dir.mkdir(parents=True, exist_ok=True)
    done = 0

    def report(total: int) -> Callable[[int], None]:
        def on_chunk(size: int) -> None:
            nonlocal done
            done += size
            if on_progress is not None and total > 0:
                on_progress(min(done / total, 1.0))

        return on_chunk

    try:
        if zipfile.is_zipfile(archive_path):
            with zipfile.ZipFile(archive_path) as archive:
                infos = archive.infolist()
                for info in infos:
                    _safe_member_path(dest_dir, info.filename, archive_path)
                on_chunk = report(sum(info.file_size for info in infos))
                for info in infos:
                    target = dest_dir / info.filename
                    if info.is_dir():
                        target.mkdir(parents=True, exist_ok=True)
                        continue
                    with archive.open(info) as source:
                        _copy_stream(source, target, on_chunk)
        elif tarfile.is_tarfile(archive_path):
            with tarfile.open(archive_path) as archive:
                members = archive.getmembers()
                for member in members:
                    _safe_member_path(dest_dir, member.name, archive_path)
                on_chunk = report(sum(m.size for m in members if m.isfile()))
                for member in members:
                    target = dest_dir / member.name
                    if member.isdir():
                        target.mkdir(parents=True, exist_ok=True)
                        continue
                    if not member.isfile():
                        logger.debug("Skipping non-regular archive member: %s", member.name)
                        continue
                    source = archive.extractfile(member)
                    if source is None:
                        continue
                    with source:
                        _copy_stream(source, target, on_chunk)
        else:
            raise ArchiveError(f"Unsupported archive format: {archive_path}", path=archive_path)
    except (zipfile.BadZipFile, tarfile.TarError) as e:
        raise ArchiveError(f"Cannot extract {archive_path}: {e}", path=archive_path) from e

    if on_progress is not None:
        on_progress(1.0)
    return dest_dir
