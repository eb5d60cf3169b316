"""Lock file management for addonkit.

addons.lock records what the last install put in the addons directory and
where each addon came from. It is informational: installs always resolve
from the manifests.
"""

from pathlib import Path

from addonkit.config.parser import LOCK_FILE_NAME, load_lockfile, save_lockfile
from addonkit.config.schemas import LockedAddon, LockFile
from addonkit.core.addon import Addon


class LockFileManager:
    """Manages the addons.lock file of a project."""

    def __init__(self, project_root: Path):
        self._project_root = project_root
        self._lockfile: LockFile | None = None
        self._modified = False

    def load(self) -> LockFile:
        """Load the lock file from disk.

        Creates a new empty lock file if one doesn't exist.

        Returns:
            The loaded or new lock file
        """
        self._lockfile = load_lockfile(self._project_root)
        if self._lockfile is None:
            self._lockfile = LockFile()
        self._modified = False
        return self._lockfile

    def reset(self) -> None:
        """Start a new, empty record for an install run.

        The previous lock file is replaced on the next save, so addons that
        were not installed again drop out of it.
        """
        self._lockfile = LockFile()
        self._modified = (self._project_root / LOCK_FILE_NAME).exists()

    def save(self) -> None:
        """Save the lock file to disk if modified."""
        if self._lockfile is not None and self._modified:
            save_lockfile(self._project_root, self._lockfile)
            self._modified = False

    @property
    def lockfile(self) -> LockFile:
        """Get the current lock file, loading if necessary."""
        if self._lockfile is None:
            self.load()
        assert self._lockfile is not None
        return self._lockfile

    @property
    def modified(self) -> bool:
        return self._modified

    def lock_addon(self, addon: Addon, cache_name: str) -> None:
        """Record an installed addon.

        Args:
            addon: The installed addon
            cache_name: Cache directory the addon was installed from
        """
        try:
            manifest = str(addon.manifest_path.relative_to(self._project_root))
        except ValueError:
            manifest = str(addon.manifest_path)

        self.lockfile.addons[addon.name] = LockedAddon(
            url=addon.url,
            checkout=addon.checkout,
            subfolder=addon.subfolder or "/",
            source=addon.source,
            cache_name=cache_name,
            manifest=manifest,
        )
        self._modified = True

    def get_locked_addon(self, name: str) -> LockedAddon | None:
        return self.lockfile.addons.get(name)

    def list_locked(self) -> list[str]:
        """List all locked addon names, sorted."""
        return sorted(self.lockfile.addons)
