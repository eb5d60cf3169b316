"""Tests for addonkit.core.manifest module."""

from pathlib import Path

from addonkit.config.parser import load_addons_file
from addonkit.core.manifest import ADDONS_EDITOR_CONFIG, AddonsFileRepository


class TestLoadAddonsFile:
    """Tests for AddonsFileRepository.load_addons_file."""

    def test_loads_manifest(self, temp_project: Path, write_addons_file):
        write_addons_file(temp_project, {"a": {"url": "https://x/a.git"}})

        addons_file, path = AddonsFileRepository().load_addons_file(temp_project)

        assert list(addons_file.addons) == ["a"]
        assert path == temp_project / "addons.json"

    def test_missing_manifest_is_empty(self, temp_project: Path):
        addons_file, _ = AddonsFileRepository().load_addons_file(temp_project)

        assert addons_file.addons == {}


class TestCreateAddonsConfiguration:
    """Tests for AddonsFileRepository.create_addons_configuration."""

    def test_uses_manifest_paths(self, temp_project: Path, write_addons_file):
        write_addons_file(temp_project, {"cache_path": ".cache", "addons_path": "vendor"})
        repo = AddonsFileRepository()
        addons_file, _ = repo.load_addons_file(temp_project)

        config = repo.create_addons_configuration(temp_project, addons_file)

        assert config.cache_path == temp_project.absolute() / ".cache"
        assert config.addons_path == temp_project.absolute() / "vendor"


class TestCreateStartingFile:
    """Tests for AddonsFileRepository.create_starting_file."""

    def test_creates_all_files(self, temp_project: Path):
        path = AddonsFileRepository().create_starting_file(temp_project)

        assert path == temp_project / "addons.jsonc"
        assert path.exists()
        assert (temp_project / "addons" / ".editorconfig").read_text() == ADDONS_EDITOR_CONFIG
        gitignore = (temp_project / ".gitignore").read_text().splitlines()
        assert "addons/*" in gitignore
        assert "!addons/.editorconfig" in gitignore

    def test_starting_manifest_is_valid_and_empty(self, temp_project: Path):
        AddonsFileRepository().create_starting_file(temp_project)

        addons_file, _ = load_addons_file(temp_project)

        assert addons_file.addons == {}
        assert addons_file.addons_path == "addons"
        assert addons_file.cache_path == ".addons"

    def test_does_not_overwrite_existing_manifest(self, temp_project: Path):
        existing = '{"a": {"url": "https://x/a.git"}}'
        (temp_project / "addons.jsonc").write_text(existing)

        AddonsFileRepository().create_starting_file(temp_project)

        assert (temp_project / "addons.jsonc").read_text() == existing

    def test_appends_missing_gitignore_entries(self, temp_project: Path):
        (temp_project / ".gitignore").write_text("build/\naddons/*")

        AddonsFileRepository().create_starting_file(temp_project)

        lines = (temp_project / ".gitignore").read_text().splitlines()
        assert lines == ["build/", "addons/*", "!addons/.editorconfig"]

    def test_is_idempotent(self, temp_project: Path):
        repo = AddonsFileRepository()
        repo.create_starting_file(temp_project)
        first = (temp_project / ".gitignore").read_text()

        repo.create_starting_file(temp_project)

        assert (temp_project / ".gitignore").read_text() == first
