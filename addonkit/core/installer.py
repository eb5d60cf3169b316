"""Addon installation orchestrator.

The installer walks manifests breadth first, starting with the project's own
manifest. Every addon is submitted to a flat dependency graph; addons the
graph accepts are cached, installed into the project's addons path, and
their own manifest is queued so its addons are resolved next.

Failures are per addon: a conflicting addon or a failing clone is reported
as an event and the run moves on to the next addon. Only cancellation
aborts a run.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar, Literal, TypeVar

from addonkit.config.parser import ConfigError
from addonkit.core.addon import Addon, ResolvedAddon
from addonkit.core.graph import (
    AddonAlreadyResolved,
    AddonCannotBeResolved,
    AddonGraph,
    AddonResolved,
    AddonResolvedButMightConflict,
    GraphResult,
    ResultLevel,
)
from addonkit.core.lockfile import LockFileManager
from addonkit.core.manifest import AddonsFileRepository
from addonkit.core.repository import AddonsRepository, ShellFactory
from addonkit.utils.network import DownloadCancelledError, DownloadProgress
from addonkit.utils.process import create_shell

logger = logging.getLogger(__name__)

InstallState = Literal["unresolved", "nothing_to_install", "cannot_be_resolved", "succeeded"]

T = TypeVar("T")


class InstallCancelledError(Exception):
    """An install run was cancelled."""


# =============================================================================
# Events
# =============================================================================


@dataclass(frozen=True)
class AddonInstalled:
    """An addon was installed into the addons path."""

    addon: Addon
    cache_name: str

    level: ClassVar[ResultLevel] = "info"

    @property
    def message(self) -> str:
        return f'Installed "{self.addon.name}" from `{self.addon.url}`'


@dataclass(frozen=True)
class AddonInstallFailed:
    """An addon could not be cached or installed."""

    addon: Addon
    error: str

    level: ClassVar[ResultLevel] = "error"

    @property
    def message(self) -> str:
        return f'Failed to install "{self.addon.name}": {self.error}'


@dataclass(frozen=True)
class AddonsFileInvalid:
    """The manifest of an installed addon could not be loaded.

    The addons it declares are skipped; the rest of the run continues.
    """

    path: Path
    error: str

    level: ClassVar[ResultLevel] = "error"

    @property
    def message(self) -> str:
        return f"Skipped addons declared in `{self.path}`: {self.error}"


@dataclass(frozen=True)
class InstallFinished:
    """The run reached a terminal state."""

    state: InstallState

    @property
    def level(self) -> ResultLevel:
        return "error" if self.state == "cannot_be_resolved" else "info"

    @property
    def message(self) -> str:
        if self.state == "cannot_be_resolved":
            return "Could not resolve addons."
        if self.state == "nothing_to_install":
            return "No addons to install!"
        return "Addons installed successfully."


InstallEvent = (
    GraphResult | AddonInstalled | AddonInstallFailed | AddonsFileInvalid | InstallFinished
)

EventCallback = Callable[[InstallEvent], None]
AddonDownloadCallback = Callable[[Addon, DownloadProgress], None]
AddonExtractCallback = Callable[[Addon, float], None]


def can_go_on(num_paths: int, depth: int, max_depth: int | None) -> bool:
    """Check whether another manifest directory should be resolved.

    Args:
        num_paths: Number of queued directories
        depth: Number of manifest directories processed so far
        max_depth: Maximum number of directories to process, None for no limit

    Returns:
        True if the traversal should continue
    """
    return num_paths > 0 and (max_depth is None or depth < max_depth)


class AddonsInstaller:
    """Resolves and installs the addons of a project and of its addons."""

    def __init__(
        self,
        addons_file_repo: AddonsFileRepository,
        repository: AddonsRepository,
        graph: AddonGraph,
        lockfile_manager: LockFileManager | None = None,
    ):
        """Initialize the installer.

        Args:
            addons_file_repo: Loads the manifest of each directory
            repository: Caches and installs addons
            graph: Graph for this run; must be fresh
            lockfile_manager: Records installed addons, if given
        """
        self.addons_file_repo = addons_file_repo
        self.repository = repository
        self.graph = graph
        self.lockfile_manager = lockfile_manager
        self.state: InstallState = "unresolved"

    def install(
        self,
        project_path: Path,
        max_depth: int | None = None,
        on_event: EventCallback | None = None,
        on_download: AddonDownloadCallback | None = None,
        on_extract: AddonExtractCallback | None = None,
        cancel_event: threading.Event | None = None,
        addons_file_name: str | None = None,
    ) -> InstallState:
        """Run the installer.

        Args:
            project_path: Project root directory
            max_depth: Maximum number of manifest directories to resolve
            on_event: Receives graph results and install events
            on_download: Receives archive download progress per addon
            on_extract: Receives archive extraction progress per addon
            cancel_event: Aborts the run when set
            addons_file_name: Explicit manifest filename for the project root

        Returns:
            Terminal install state, also stored on ``state``

        Raises:
            InstallCancelledError: If the run is cancelled
        """

        def emit(event: InstallEvent) -> None:
            # Without a listener, events are only visible through logging
            if on_event is None:
                _log_event(event)
            else:
                logger.debug("%s: %s", type(event).__name__, event.message)
                on_event(event)

        self.repository.ensure_cache_and_addons_directories_exist()
        if self.lockfile_manager is not None:
            self.lockfile_manager.reset()

        search_paths: deque[Path] = deque([Path(project_path)])
        depth = 0
        declared = 0
        cannot_be_resolved = False

        while can_go_on(len(search_paths), depth, max_depth):
            path = search_paths.popleft()
            # Only the project root may use a custom manifest name
            filename = addons_file_name if depth == 0 else None
            try:
                addons_file, manifest_path = self.addons_file_repo.load_addons_file(path, filename)
            except ConfigError as e:
                if depth == 0:
                    raise
                emit(AddonsFileInvalid(e.path or path, str(e)))
                depth += 1
                continue
            manifest_path = manifest_path.absolute()

            for name, entry in addons_file.addons.items():
                declared += 1
                _check_cancelled(cancel_event)

                url = self.repository.resolve_url(entry, manifest_path.parent)
                addon = Addon.from_entry(name, entry, url, manifest_path)

                result = self.graph.add(addon)
                emit(result)

                if isinstance(result, AddonCannotBeResolved):
                    cannot_be_resolved = True
                    continue
                if isinstance(result, AddonAlreadyResolved):
                    continue
                if isinstance(result, AddonResolvedButMightConflict):
                    resolved = ResolvedAddon(addon, result.canonical_addon)
                elif isinstance(result, AddonResolved):
                    resolved = ResolvedAddon(addon)
                else:
                    raise TypeError(f"Unexpected graph result: {result!r}")

                try:
                    install_path = self._install_addon(
                        resolved, on_download, on_extract, cancel_event
                    )
                except DownloadCancelledError as e:
                    raise InstallCancelledError(str(e)) from e
                except Exception as e:
                    logger.debug("Install of %s failed", addon.name, exc_info=True)
                    emit(AddonInstallFailed(addon, str(e)))
                    continue

                emit(AddonInstalled(addon, resolved.cache_name))
                if self.lockfile_manager is not None:
                    self.lockfile_manager.lock_addon(addon, resolved.cache_name)
                search_paths.append(install_path)

            depth += 1

        if cannot_be_resolved:
            self.state = "cannot_be_resolved"
        elif declared == 0:
            self.state = "nothing_to_install"
        else:
            self.state = "succeeded"

        if self.lockfile_manager is not None:
            self.lockfile_manager.save()

        emit(InstallFinished(self.state))
        return self.state

    def _install_addon(
        self,
        resolved: ResolvedAddon,
        on_download: AddonDownloadCallback | None,
        on_extract: AddonExtractCallback | None,
        cancel_event: threading.Event | None,
    ) -> Path:
        """Cache and install one addon.

        Returns:
            Directory the addon was installed to
        """
        addon = resolved.addon
        cache_name = resolved.cache_name
        repo = self.repository

        if addon.is_symlink:
            repo.delete_addon(addon)
            repo.install_addon_with_symlink(addon)
            return repo.config.addons_path / addon.name

        repo.cache_addon(
            addon,
            cache_name,
            on_download=_bind(on_download, addon),
            on_extract=_bind(on_extract, addon),
            cancel_event=cancel_event,
        )
        repo.prepare_cache(addon, cache_name)
        repo.update_cache(addon, cache_name)
        repo.delete_addon(addon)
        repo.install_addon_from_cache(addon, cache_name)
        return repo.config.addons_path / addon.name


def _bind(callback: Callable[[Addon, T], None] | None, addon: Addon) -> Callable[[T], None] | None:
    if callback is None:
        return None
    return lambda value: callback(addon, value)


def _check_cancelled(cancel_event: threading.Event | None) -> None:
    if cancel_event is not None and cancel_event.is_set():
        logger.warning("Install cancelled")
        raise InstallCancelledError("Install cancelled")


def _log_event(event: InstallEvent) -> None:
    if event.level == "error":
        logger.error(event.message)
    elif event.level == "warning":
        logger.warning(event.message)
    else:
        logger.info(event.message)


def install_addons(
    project_path: Path,
    max_depth: int | None = None,
    on_event: EventCallback | None = None,
    on_download: AddonDownloadCallback | None = None,
    on_extract: AddonExtractCallback | None = None,
    cancel_event: threading.Event | None = None,
    addons_file_name: str | None = None,
    shell_factory: ShellFactory = create_shell,
) -> InstallState:
    """Install the addons of a project.

    Loads the project's manifest, builds a fresh configuration, repository
    and graph, and runs an installer over them.

    Args:
        project_path: Project root directory
        max_depth: Maximum number of manifest directories to resolve
        on_event: Receives graph results and install events
        on_download: Receives archive download progress per addon
        on_extract: Receives archive extraction progress per addon
        cancel_event: Aborts the run when set
        addons_file_name: Explicit manifest filename
        shell_factory: Creates shells for external programs

    Returns:
        Terminal install state

    Raises:
        ConfigError: If the project's manifest is invalid
        InstallCancelledError: If the run is cancelled
    """
    project_path = Path(project_path).absolute()
    addons_file_repo = AddonsFileRepository()
    addons_file, _ = addons_file_repo.load_addons_file(project_path, addons_file_name)
    config = addons_file_repo.create_addons_configuration(project_path, addons_file)

    installer = AddonsInstaller(
        addons_file_repo,
        AddonsRepository(config, shell_factory=shell_factory),
        AddonGraph(),
        LockFileManager(project_path),
    )
    return installer.install(
        project_path,
        max_depth=max_depth,
        on_event=on_event,
        on_download=on_download,
        on_extract=on_extract,
        cancel_event=cancel_event,
        addons_file_name=addons_file_name,
    )
