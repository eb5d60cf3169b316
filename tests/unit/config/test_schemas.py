"""Tests for addonkit.config.schemas module."""

import pytest
from pydantic import ValidationError

from addonkit.config.schemas import AddonEntry, AddonsFile, LockedAddon, LockFile


class TestAddonEntry:
    """Tests for AddonEntry model."""

    def test_applies_defaults(self):
        """Omitted fields use their defaults."""
        entry = AddonEntry(url="https://example.com/addon.git")

        assert entry.checkout == "main"
        assert entry.subfolder == "/"
        assert entry.source == "remote"

    def test_requires_url(self):
        """url is required."""
        with pytest.raises(ValidationError):
            AddonEntry.model_validate({"checkout": "main"})

    def test_source_is_case_insensitive(self):
        """Source names are matched case-insensitively."""
        entry = AddonEntry(url="../addon", source="Symlink")  # type: ignore[arg-type]

        assert entry.source == "symlink"

    def test_zip_is_an_alias_for_archive(self):
        """The zip source is read as archive."""
        entry = AddonEntry(url="https://example.com/addon.zip", source="zip")  # type: ignore[arg-type]

        assert entry.source == "archive"
        assert entry.is_archive

    def test_rejects_unknown_source(self):
        """Unknown sources are rejected."""
        with pytest.raises(ValidationError):
            AddonEntry(url="x", source="ftp")  # type: ignore[arg-type]

    def test_local_and_symlink_are_local_paths(self):
        """Local and symlink urls are paths on this machine."""
        assert AddonEntry(url="x", source="local").is_local_path
        assert AddonEntry(url="x", source="symlink").is_local_path
        assert not AddonEntry(url="x", source="remote").is_local_path
        assert not AddonEntry(url="x", source="archive").is_local_path


class TestAddonsFile:
    """Tests for AddonsFile model."""

    def test_empty_manifest(self):
        """An empty object is a manifest without addons."""
        addons_file = AddonsFile.model_validate({})

        assert addons_file.addons == {}
        assert addons_file.cache_path == ".addons"
        assert addons_file.addons_path == "addons"

    def test_flat_layout(self):
        """Top-level keys are addon names, except settings."""
        addons_file = AddonsFile.model_validate(
            {
                "first": {"url": "https://example.com/first.git"},
                "second": {"url": "../second", "source": "local"},
                "cache_path": ".cache",
                "addons_path": "vendor",
            }
        )

        assert list(addons_file.addons) == ["first", "second"]
        assert addons_file.addons["second"].source == "local"
        assert addons_file.cache_path == ".cache"
        assert addons_file.addons_path == "vendor"

    def test_nested_layout(self):
        """Addons under an "addons" key with cache and path settings."""
        addons_file = AddonsFile.model_validate(
            {
                "path": "vendor",
                "cache": ".cache",
                "addons": {"first": {"url": "https://example.com/first.git"}},
            }
        )

        assert list(addons_file.addons) == ["first"]
        assert addons_file.cache_path == ".cache"
        assert addons_file.addons_path == "vendor"

    def test_addon_named_addons_in_flat_layout(self):
        """An addon may be named "addons" in the flat layout."""
        addons_file = AddonsFile.model_validate(
            {"addons": {"url": "https://example.com/addons.git"}}
        )

        assert list(addons_file.addons) == ["addons"]

    def test_preserves_declaration_order(self):
        """Addons keep the order they are declared in."""
        data = {name: {"url": f"https://example.com/{name}.git"} for name in ("c", "a", "b")}

        addons_file = AddonsFile.model_validate(data)

        assert list(addons_file.addons) == ["c", "a", "b"]

    def test_rejects_invalid_entry(self):
        """An entry without a url is invalid."""
        with pytest.raises(ValidationError):
            AddonsFile.model_validate({"broken": {"checkout": "main"}})


class TestLockFile:
    """Tests for LockFile model."""

    def test_defaults(self):
        lockfile = LockFile()

        assert lockfile.version == "1.0"
        assert lockfile.addons == {}

    def test_round_trips_through_dump(self):
        """A dumped lock file validates back to an equal model."""
        lockfile = LockFile(
            addons={
                "my_addon": LockedAddon(
                    url="https://example.com/my_addon.git",
                    checkout="v1.0",
                    subfolder="addons/my_addon",
                    source="remote",
                    cache_name="my_addon",
                    manifest="addons.json",
                )
            }
        )

        assert LockFile.model_validate(lockfile.model_dump()) == lockfile
