"""Addons manifest loading and project scaffolding.

The manifest (addons.json or addons.jsonc) lists the addons a project or an
addon depends on. The root project's manifest also decides where addons are
cached and installed for the whole run.
"""

import logging
from pathlib import Path

from addonkit.config.parser import load_addons_file
from addonkit.config.schemas import DEFAULT_ADDONS_PATH, AddonsFile
from addonkit.core.addon import AddonsConfiguration

logger = logging.getLogger(__name__)

STARTING_ADDONS_FILE_NAME = "addons.jsonc"

STARTING_ADDONS_FILE = """\
// Addons this project depends on.
//
// Each key is the directory name the addon is installed under. Omitted
// fields use their defaults: checkout "main", subfolder "/" and source
// "remote". Other sources are "local", "symlink" and "archive".
{
  "path": "addons",
  "cache": ".addons",
  "addons": {
    /*
    "my_addon": {
      "url": "https://github.com/example/my_addon.git",
      "checkout": "main",
      "subfolder": "addons/my_addon"
    },
    */
  },
}
"""

# Addons are third-party code; keep editor tooling from reformatting them
ADDONS_EDITOR_CONFIG = """\
root = true

[*.cs]
generated_code = true
dotnet_analyzer_diagnostic.severity = none
"""

GITIGNORE_ENTRIES = (f"{DEFAULT_ADDONS_PATH}/*", f"!{DEFAULT_ADDONS_PATH}/.editorconfig")


class AddonsFileRepository:
    """Reads addons manifests and creates the files a new project needs."""

    def load_addons_file(self, path: Path, filename: str | None = None) -> tuple[AddonsFile, Path]:
        """Load the manifest in a directory.

        A directory without a manifest yields an empty manifest.

        Args:
            path: Directory containing the manifest
            filename: Explicit manifest filename

        Returns:
            Tuple of (manifest, manifest path)

        Raises:
            ConfigError: If the manifest exists but is invalid
        """
        addons_file, manifest_path = load_addons_file(path, filename)
        if manifest_path.exists():
            logger.debug("Loaded %d addon(s) from %s", len(addons_file.addons), manifest_path)
        else:
            logger.debug("No addons file in %s", path)
        return addons_file, manifest_path

    def create_addons_configuration(
        self, project_path: Path, addons_file: AddonsFile
    ) -> AddonsConfiguration:
        return AddonsConfiguration.from_addons_file(project_path, addons_file)

    def create_starting_file(self, project_path: Path) -> Path:
        """Scaffold addon management in a project without overwriting anything.

        Creates an example addons.jsonc, an .editorconfig in the addons
        directory, and adds the addons directory to .gitignore (keeping the
        .editorconfig tracked).

        Args:
            project_path: Project root directory

        Returns:
            Path to the addons manifest
        """
        project_path.mkdir(parents=True, exist_ok=True)

        addons_file_path = project_path / STARTING_ADDONS_FILE_NAME
        _create_file(addons_file_path, STARTING_ADDONS_FILE)

        addons_path = project_path / DEFAULT_ADDONS_PATH
        addons_path.mkdir(parents=True, exist_ok=True)
        _create_file(addons_path / ".editorconfig", ADDONS_EDITOR_CONFIG)

        gitignore_path = project_path / ".gitignore"
        if not gitignore_path.exists():
            gitignore_path.write_text("\n".join(GITIGNORE_ENTRIES) + "\n", encoding="utf-8")
            logger.info("Created %s", gitignore_path)
        else:
            _add_lines_if_missing(gitignore_path, GITIGNORE_ENTRIES)

        return addons_file_path


def _create_file(path: Path, content: str) -> None:
    if path.exists():
        logger.debug("Keeping existing %s", path)
        return
    path.write_text(content, encoding="utf-8")
    logger.info("Created %s", path)


def _add_lines_if_missing(path: Path, lines: tuple[str, ...]) -> None:
    content = path.read_text(encoding="utf-8")
    existing = {line.strip() for line in content.splitlines()}
    missing = [line for line in lines if line not in existing]
    if not missing:
        return

    if content and not content.endswith("\n"):
        content += "\n"
    path.write_text(content + "\n".join(missing) + "\n", encoding="utf-8")
    logger.info("Added %s to %s", ", ".join(missing), path)
