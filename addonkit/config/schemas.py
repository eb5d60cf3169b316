"""Pydantic schemas for addonkit configuration files.

This module defines the data models for:
- addons.json / addons.jsonc (addons manifest)
- addons.lock (record of installed addons)
"""

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

# =============================================================================
# Common Types
# =============================================================================

AddonSource = Literal["remote", "local", "symlink", "archive"]

DEFAULT_CHECKOUT = "main"
DEFAULT_SUBFOLDER = "/"
DEFAULT_SOURCE: AddonSource = "remote"
DEFAULT_CACHE_PATH = ".addons"
DEFAULT_ADDONS_PATH = "addons"

# Names reserved for manifest settings in the flat manifest layout
_SETTINGS_KEYS = {"cache_path", "addons_path"}


# =============================================================================
# Addons Manifest (addons.json)
# =============================================================================


class AddonEntry(BaseModel):
    """An addon declared in a manifest."""

    url: str
    checkout: str = DEFAULT_CHECKOUT
    subfolder: str = DEFAULT_SUBFOLDER
    source: AddonSource = DEFAULT_SOURCE

    @field_validator("source", mode="before")
    @classmethod
    def normalize_source(cls, value: Any) -> Any:
        """Accept "zip" as the older name for archive addons."""
        if isinstance(value, str):
            value = value.lower()
            if value == "zip":
                return "archive"
        return value

    @property
    def is_archive(self) -> bool:
        return self.source == "archive"

    @property
    def is_local_path(self) -> bool:
        """True if the url is a path on the local machine."""
        return self.source in ("local", "symlink")


class AddonsFile(BaseModel):
    """Addons manifest schema.

    Two layouts are accepted. Flat, where addon names are top-level keys::

        {"my_addon": {"url": "..."}, "cache_path": ".addons"}

    and nested::

        {"addons": {"my_addon": {"url": "..."}}, "cache": ".addons", "path": "addons"}
    """

    addons: dict[str, AddonEntry] = Field(default_factory=dict)
    cache_path: str = DEFAULT_CACHE_PATH
    addons_path: str = DEFAULT_ADDONS_PATH

    @model_validator(mode="before")
    @classmethod
    def collect_addons(cls, data: Any) -> Any:
        """Normalize either manifest layout into addons + settings."""
        if not isinstance(data, dict):
            return data

        nested = data.get("addons")
        if isinstance(nested, dict) and "url" not in nested:
            return {
                "addons": nested,
                "cache_path": data.get("cache_path", data.get("cache", DEFAULT_CACHE_PATH)),
                "addons_path": data.get("addons_path", data.get("path", DEFAULT_ADDONS_PATH)),
            }

        addons = {name: entry for name, entry in data.items() if name not in _SETTINGS_KEYS}
        settings = {name: data[name] for name in _SETTINGS_KEYS if name in data}
        return {"addons": addons, **settings}


# =============================================================================
# Lock File (addons.lock)
# =============================================================================


class LockedAddon(BaseModel):
    """An installed addon recorded in the lock file."""

    url: str
    checkout: str
    subfolder: str
    source: AddonSource
    cache_name: str
    manifest: str


class LockFile(BaseModel):
    """Lock file (addons.lock) schema."""

    version: str = "1.0"
    addons: dict[str, LockedAddon] = Field(default_factory=dict)
