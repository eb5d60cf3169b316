"""Flat addon dependency graph.

Addons are added one at a time. Each addition returns one of a closed set
of results describing whether the addon can be installed:

- AddonResolved: new addon, install it.
- AddonAlreadyResolved: the same content is already in the graph.
- AddonResolvedButMightConflict: same url as other addons but a different
  subfolder or checkout; install it, but warn.
- AddonCannotBeResolved: the name is taken by different content; refuse.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Literal

from addonkit.core.addon import Addon

ResultLevel = Literal["info", "warning", "error"]


@dataclass(frozen=True)
class AddonResolved:
    """An addon was resolved without conflicts."""

    addon: Addon

    level: ClassVar[ResultLevel] = "info"

    @property
    def message(self) -> str:
        return f'Discovered "{self.addon.name}."\n\n  Resolved: {self.addon}'


@dataclass(frozen=True)
class AddonAlreadyResolved:
    """The same url, subfolder and checkout was already resolved.

    The canonical addon may have a different name.
    """

    addon: Addon
    canonical_addon: Addon

    level: ClassVar[ResultLevel] = "warning"

    @property
    def message(self) -> str:
        return (
            f'The addon "{self.addon.name}" is already resolved as '
            f'"{self.canonical_addon.name}."\n\n'
            f"  Attempted to resolve: {self.addon}\n\n"
            f"  Previously resolved: {self.canonical_addon}"
        )


@dataclass(frozen=True)
class AddonResolvedButMightConflict:
    """An addon shares its url with addons of a different subfolder or checkout.

    canonical_addon is the first addon resolved for the url; its cache is
    reused so one source is never cloned twice.
    """

    addon: Addon
    conflicts: tuple[Addon, ...]
    canonical_addon: Addon

    level: ClassVar[ResultLevel] = "warning"

    @property
    def message(self) -> str:
        article = "a" if len(self.conflicts) == 1 else "the"
        plural = "" if len(self.conflicts) == 1 else "s"
        lines: list[str] = []
        for conflict in self.conflicts:
            lines.append(
                f'\nBoth "{self.addon.name}" and "{conflict.name}" could '
                "potentially conflict with each other.\n"
            )
            if conflict.subfolder != self.addon.subfolder:
                lines.append("- Different subfolders from the same url are required.")
                lines.append(
                    f'    - "{self.addon.name}" requires `{self.addon.subfolder}/` '
                    f"from `{self.addon.url}`"
                )
                lines.append(
                    f'    - "{conflict.name}" requires `{conflict.subfolder}/` '
                    f"from `{conflict.url}`"
                )
            elif conflict.checkout != self.addon.checkout:
                lines.append("- Different checkouts from the same url are required.")
                lines.append(
                    f'    - "{self.addon.name}" requires `{self.addon.checkout}` '
                    f"from `{self.addon.url}`"
                )
                lines.append(
                    f'    - "{conflict.name}" requires `{conflict.checkout}` '
                    f"from `{conflict.url}`"
                )
        return (
            f'The addon "{self.addon.name}" could conflict with {article} '
            f"previously resolved addon{plural}.\n\n"
            f"  Attempted to resolve {self.addon}\n\n" + "\n".join(lines).strip()
        )


@dataclass(frozen=True)
class AddonCannotBeResolved:
    """An addon has the name of a resolved addon with different content.

    Both would be installed to the same path, so this addon is refused.
    """

    addon: Addon
    canonical_addon: Addon

    level: ClassVar[ResultLevel] = "error"

    @property
    def message(self) -> str:
        return (
            f'Cannot resolve "{self.addon.name}" from `{self.addon.manifest_path}` '
            "because it would conflict with a previously resolved addon of the "
            f"same name from `{self.canonical_addon.manifest_path}`.\n\n"
            "Both addons would be installed to the same path.\n\n"
            f"  Attempted to resolve: {self.addon}\n\n"
            f"  Previously resolved: {self.canonical_addon}"
        )


GraphResult = (
    AddonResolved | AddonAlreadyResolved | AddonResolvedButMightConflict | AddonCannotBeResolved
)


class AddonGraph:
    """Flat dependency graph indexed by addon name and by url."""

    def __init__(self) -> None:
        self._addons_by_name: dict[str, Addon] = {}
        self._addons_by_url: dict[str, list[Addon]] = {}
        # First addon added for a given url
        self._canonical_addons_by_url: dict[str, Addon] = {}

    @property
    def addons(self) -> list[Addon]:
        """All recorded addons, sorted by name."""
        return sorted(self._addons_by_name.values(), key=lambda addon: addon.name)

    def canonical_addon(self, normalized_url: str) -> Addon | None:
        return self._canonical_addons_by_url.get(normalized_url)

    def add(self, addon: Addon) -> GraphResult:
        """Add an addon to the graph.

        The addon is recorded unless the result is AddonCannotBeResolved or
        AddonAlreadyResolved.

        Args:
            addon: Addon to add

        Returns:
            Result describing how the addon relates to the graph
        """
        existing = self._addons_by_name.get(addon.name)
        if existing is not None:
            if existing.identity == addon.identity:
                return AddonAlreadyResolved(addon=addon, canonical_addon=existing)
            return AddonCannotBeResolved(addon=addon, canonical_addon=existing)

        same_url = self._addons_by_url.get(addon.normalized_url)
        if same_url:
            conflicts: list[Addon] = []
            for other in same_url:
                if other.subfolder == addon.subfolder and other.checkout == addon.checkout:
                    return AddonAlreadyResolved(addon=addon, canonical_addon=other)
                conflicts.append(other)

            self._mark_added(addon)
            return AddonResolvedButMightConflict(
                addon=addon,
                conflicts=tuple(conflicts),
                canonical_addon=self._canonical_addons_by_url[addon.normalized_url],
            )

        self._mark_added(addon)
        return AddonResolved(addon=addon)

    def _mark_added(self, addon: Addon) -> None:
        url = addon.normalized_url
        if url in self._addons_by_url:
            self._addons_by_url[url].append(addon)
        else:
            self._canonical_addons_by_url[url] = addon
            self._addons_by_url[url] = [addon]
        self._addons_by_name[addon.name] = addon
