"""Resolved addon models."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from pathlib import Path

from addonkit.config.schemas import AddonEntry, AddonSource, AddonsFile


def _trim_subfolder(subfolder: str) -> str:
    return subfolder.strip("/\\")


def content_hash_for(url: str) -> str:
    """Cache key for archive content, derived from the archive url.

    Archives fetched from the same url are assumed to have the same content.
    The key is never read from a manifest.
    """
    return hashlib.md5(url.encode("utf-8"), usedforsecurity=False).hexdigest()


@dataclass(frozen=True)
class Addon:
    """An addon whose name, declaring manifest and resolved url are known.

    ``url`` is already resolved: an absolute path for local and symlink
    addons, the manifest value for remote and archive addons. ``subfolder``
    has its leading and trailing separators trimmed, so the source root is
    the empty string.
    """

    name: str
    manifest_path: Path
    url: str
    checkout: str
    subfolder: str
    source: AddonSource
    content_hash: str | None = None

    @classmethod
    def from_entry(cls, name: str, entry: AddonEntry, resolved_url: str, manifest_path: Path) -> Addon:
        """Build an addon from a manifest entry and its resolved url."""
        return cls(
            name=name,
            manifest_path=manifest_path,
            url=resolved_url,
            checkout=entry.checkout,
            subfolder=_trim_subfolder(entry.subfolder),
            source=entry.source,
            content_hash=content_hash_for(resolved_url) if entry.source == "archive" else None,
        )

    @property
    def normalized_url(self) -> str:
        """Case-folded url used to compare addon identities."""
        return self.url.lower()

    @property
    def identity(self) -> tuple[str, str, str]:
        return (self.normalized_url, self.subfolder, self.checkout)

    @property
    def is_symlink(self) -> bool:
        return self.source == "symlink"

    @property
    def is_archive(self) -> bool:
        return self.source == "archive"

    @property
    def is_git(self) -> bool:
        """True if the addon is cached as a git clone (remote or local)."""
        return self.source in ("remote", "local")

    def __str__(self) -> str:
        return (
            f'Addon "{self.name}" from `{self.manifest_path}` '
            f"at `{self.subfolder}/` on branch `{self.checkout}` of `{self.url}`"
        )


@dataclass(frozen=True)
class AddonsConfiguration:
    """Where addons are cached and installed for a project."""

    project_path: Path
    addons_path: Path
    cache_path: Path

    @classmethod
    def from_addons_file(cls, project_path: Path, addons_file: AddonsFile) -> AddonsConfiguration:
        project_path = Path(project_path).absolute()
        return cls(
            project_path=project_path,
            addons_path=project_path / addons_file.addons_path,
            cache_path=project_path / addons_file.cache_path,
        )


@dataclass(frozen=True)
class ResolvedAddon:
    """An addon paired with the canonical addon it shares a url with, if any."""

    addon: Addon
    canonical_addon: Addon | None = None

    @property
    def cache_name(self) -> str:
        """Cache directory name; addons sharing a url share one cache."""
        if self.canonical_addon is not None:
            return self.canonical_addon.name
        return self.addon.name
