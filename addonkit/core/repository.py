"""Addon cache and installation operations.

Every addon is first cached under the cache path and then copied into the
addons path:

- remote and local addons are cloned with git and checked out at the
  requested ref
- archive addons are downloaded and extracted into a directory keyed by
  the hash of their url
- symlink addons are never cached; the installed addon is a link to the
  source directory

Installed copies get a throwaway git repository so that local edits can be
detected before an addon is deleted.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from pathlib import Path
from urllib.parse import unquote, urlparse

from addonkit.config.schemas import AddonEntry
from addonkit.core.addon import Addon, AddonsConfiguration
from addonkit.utils.filesystem import (
    ExtractProgress,
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
from addonkit.utils.network import DownloadCallback, download_file
from addonkit.utils.process import Shell, create_shell

logger = logging.getLogger(__name__)

TRACKING_REPO_EMAIL = "addonkit@addonkit.dev"
TRACKING_REPO_NAME = "addonkit"

ShellFactory = Callable[[Path], Shell]


class AddonInstallError(Exception):
    """An addon could not be installed or removed."""

    def __init__(self, message: str, addon_name: str | None = None):
        self.addon_name = addon_name
        super().__init__(message)


class ModifiedAddonError(AddonInstallError):
    """An installed addon has local changes and was left in place."""

    def __init__(self, addon_name: str, changes: str):
        self.changes = changes
        super().__init__(
            f'Cannot delete modified addon "{addon_name}". Please backup or '
            "discard your changes and delete the addon manually.\n" + changes,
            addon_name=addon_name,
        )


def _archive_filename(url: str) -> str:
    name = Path(unquote(urlparse(url).path)).name
    return name or "archive"


class AddonsRepository:
    """Caches and installs addons for one project configuration."""

    def __init__(self, config: AddonsConfiguration, shell_factory: ShellFactory = create_shell):
        """Initialize the repository.

        Args:
            config: Where addons are cached and installed
            shell_factory: Creates a shell rooted at a directory
        """
        self.config = config
        self._shell_factory = shell_factory

    def _cache_dir(self, cache_name: str) -> Path:
        return self.config.cache_path / cache_name

    def _install_dir(self, addon: Addon) -> Path:
        return self.config.addons_path / addon.name

    def _cached_content_dir(self, addon: Addon, cache_name: str) -> Path:
        """Directory holding the cached addon content, before the subfolder."""
        cache_dir = self._cache_dir(cache_name)
        if addon.is_archive:
            if not addon.content_hash:
                raise AddonInstallError(
                    f'Archive addon "{addon.name}" has no content hash.', addon_name=addon.name
                )
            return cache_dir / addon.content_hash
        return cache_dir

    def resolve_url(self, entry: AddonEntry, manifest_dir: Path) -> str:
        """Resolve the url of a manifest entry.

        Remote and archive urls are returned unchanged. Paths of local and
        symlink addons are relative to the directory of the manifest that
        declares them; when that directory is itself a symlink (an addon
        installed with a symlink), paths are relative to the link target.

        Args:
            entry: Manifest entry
            manifest_dir: Directory containing the declaring manifest

        Returns:
            Resolved url or absolute path
        """
        if not entry.is_local_path:
            return entry.url

        if is_directory_symlink(manifest_dir):
            manifest_dir = directory_symlink_target(manifest_dir)

        return get_rooted_path(expand_user(entry.url), manifest_dir)

    def ensure_cache_and_addons_directories_exist(self) -> None:
        ensure_directory(self.config.cache_path)
        ensure_directory(self.config.addons_path)

    def cache_addon(
        self,
        addon: Addon,
        cache_name: str,
        on_download: DownloadCallback | None = None,
        on_extract: ExtractProgress | None = None,
        cancel_event: threading.Event | None = None,
    ) -> Path:
        """Make sure the addon's content is in the cache.

        Args:
            addon: Addon to cache
            cache_name: Name of the cache directory to use
            on_download: Optional archive download progress callback
            on_extract: Optional archive extraction progress callback
            cancel_event: Optional event that aborts an archive download

        Returns:
            Path of the addon content (including its subfolder)

        Raises:
            ProcessError: If git fails to clone the addon
            NetworkError: If an archive cannot be downloaded
            ArchiveError: If an archive cannot be extracted
        """
        if addon.is_symlink:
            return Path(addon.url) / addon.subfolder

        if addon.is_archive:
            return self._cache_archive(addon, cache_name, on_download, on_extract, cancel_event)

        cache_dir = self._cache_dir(cache_name)
        if cache_dir.exists():
            logger.debug("Using cached clone of %s at %s", addon.url, cache_dir)
        else:
            logger.info("Cloning %s into %s", addon.url, cache_dir)
            shell = self._shell_factory(self.config.cache_path)
            shell.run("git", "clone", addon.url, "--recurse-submodules", cache_name)
        return cache_dir / addon.subfolder

    def _cache_archive(
        self,
        addon: Addon,
        cache_name: str,
        on_download: DownloadCallback | None,
        on_extract: ExtractProgress | None,
        cancel_event: threading.Event | None,
    ) -> Path:
        content_dir = self._cached_content_dir(addon, cache_name)
        if content_dir.exists():
            logger.debug("Using cached archive of %s at %s", addon.url, content_dir)
            return content_dir / addon.subfolder

        cache_dir = self._cache_dir(cache_name)
        # Content from a previous url is stale
        remove_directory(cache_dir)
        ensure_directory(cache_dir)

        archive_path = cache_dir / _archive_filename(addon.url)
        # The hash directory only appears once extraction has completed
        staging_dir = cache_dir / f"{content_dir.name}.partial"
        download_file(addon.url, archive_path, on_progress=on_download, cancel_event=cancel_event)
        try:
            extract_archive(archive_path, staging_dir, on_progress=on_extract)
            staging_dir.rename(content_dir)
        finally:
            archive_path.unlink(missing_ok=True)
            remove_directory(staging_dir)

        logger.info("Cached archive %s at %s", addon.url, content_dir)
        return content_dir / addon.subfolder

    def prepare_cache(self, addon: Addon, cache_name: str) -> None:
        """Check out the requested ref in a cached clone.

        Raises:
            ProcessError: If the ref cannot be checked out
        """
        if not addon.is_git:
            return
        shell = self._shell_factory(self._cache_dir(cache_name))
        shell.run_unchecked("git", "clean", "-fdx")
        shell.run("git", "checkout", addon.checkout)

    def update_cache(self, addon: Addon, cache_name: str) -> None:
        """Bring a cached clone up to date.

        Failures are tolerated: a detached checkout (tag or commit) cannot be
        pulled, and an offline machine can still install what is cached.
        """
        if not addon.is_git:
            return
        shell = self._shell_factory(self._cache_dir(cache_name))
        shell.run_unchecked("git", "clean", "-fdx")
        result = shell.run_unchecked("git", "pull")
        if result.returncode != 0:
            logger.debug("git pull failed for %s: %s", addon.name, result.stderr.strip())
        shell.run_unchecked(
            "git", "submodule", "update", "--init", "--recursive", "--rebase", "--force"
        )

    def install_addon_from_cache(self, addon: Addon, cache_name: str) -> None:
        """Copy an addon from the cache and start tracking local changes.

        If either step fails, an install directory created by this call is
        removed again.
        """
        install_dir = self._install_dir(addon)
        existed = install_dir.exists()
        try:
            self.copy_addon_from_cache(addon, cache_name)
            self.create_tracking_repo(addon)
        except BaseException:
            if not existed:
                logger.debug("Removing incomplete install %s", install_dir)
                remove_directory(install_dir)
            raise
        logger.info("Installed %s to %s", addon.name, self._install_dir(addon))

    def copy_addon_from_cache(self, addon: Addon, cache_name: str) -> None:
        """Copy the cached content of an addon into the addons path.

        Raises:
            FileCopyError: If the copy fails
        """
        source = self._cached_content_dir(addon, cache_name) / addon.subfolder
        destination = ensure_directory(self._install_dir(addon))
        shell = self._shell_factory(self.config.project_path)
        copy_bulk(shell, source, destination)

    def create_tracking_repo(self, addon: Addon) -> None:
        """Commit the installed addon to a fresh git repository.

        Raises:
            ProcessError: If any git command fails
        """
        shell = self._shell_factory(self._install_dir(addon))
        shell.run("git", "init")
        shell.run("git", "config", "--local", "user.email", TRACKING_REPO_EMAIL)
        shell.run("git", "config", "--local", "user.name", TRACKING_REPO_NAME)
        shell.run("git", "add", "-A")
        shell.run("git", "commit", "-m", "Initial commit")

    def delete_addon(self, addon: Addon) -> None:
        """Delete an installed addon unless it has local changes.

        Symlinked addons are unlinked without checking for changes; their
        source is never touched. A directory without the tracking repository
        addonkit creates on install is never deleted.

        Raises:
            AddonInstallError: If the installed copy is not tracked or its
                status cannot be read
            ModifiedAddonError: If the installed copy has changes
        """
        install_dir = self._install_dir(addon)
        if install_dir.is_symlink():
            logger.debug("Removing symlink %s", install_dir)
            remove_symlink(install_dir)
            return
        if not install_dir.exists():
            return

        if not (install_dir / ".git").exists():
            logger.error("Refusing to delete untracked directory %s", install_dir)
            raise AddonInstallError(
                f'Cannot replace "{addon.name}": `{install_dir}` was not installed by '
                "addonkit. Please move or delete it manually.",
                addon_name=addon.name,
            )

        shell = self._shell_factory(install_dir)
        status = shell.run_unchecked("git", "status", "--porcelain")
        if status.returncode != 0:
            logger.error("git status failed in %s: %s", install_dir, status.stderr.strip())
            raise AddonInstallError(
                f'Cannot check "{addon.name}" for local changes: {status.stderr.strip()}',
                addon_name=addon.name,
            )
        changes = status.stdout.strip()
        if changes:
            logger.error("Refusing to delete modified addon %s", addon.name)
            raise ModifiedAddonError(addon.name, changes)

        logger.debug("Deleting installed addon %s", install_dir)
        remove_directory(install_dir)

    def install_addon_with_symlink(self, addon: Addon) -> None:
        """Install an addon as a symlink to its source directory.

        Raises:
            AddonInstallError: If the addon is not a symlink addon, is already
                installed, its source is missing or the link cannot be created
        """
        if not addon.is_symlink:
            raise AddonInstallError(
                f'Addon "{addon.name}" is not a symlink addon.', addon_name=addon.name
            )

        source = Path(addon.url) / addon.subfolder
        link_path = self._install_dir(addon)

        if link_path.exists() or link_path.is_symlink():
            raise AddonInstallError(
                f'Addon "{addon.name}" already installed. Please delete the '
                "existing addon and try again.",
                addon_name=addon.name,
            )

        if not source.is_dir():
            raise AddonInstallError(
                f'Addon "{addon.name}" cannot be found at `{source}`.', addon_name=addon.name
            )

        try:
            create_symlink(link_path, source)
        except OSError as e:
            logger.error("Failed to link %s to %s: %s", link_path, source, e)
            raise AddonInstallError(
                f'Failed to create symlink for addon "{addon.name}": {e}', addon_name=addon.name
            ) from e
        logger.info("Linked %s to %s", link_path, source)
