"""Main CLI application for addonkit."""

import logging
import threading
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, Progress, TaskID, TextColumn
from rich.table import Table

from addonkit import __version__
from addonkit.config.parser import LOCK_FILE_NAME, ConfigError
from addonkit.core.addon import Addon
from addonkit.core.graph import AddonResolved
from addonkit.core.installer import (
    AddonInstalled,
    AddonInstallFailed,
    AddonsFileInvalid,
    InstallCancelledError,
    InstallEvent,
    InstallFinished,
    install_addons,
)
from addonkit.core.lockfile import LockFileManager
from addonkit.core.manifest import AddonsFileRepository
from addonkit.utils.network import DownloadProgress

app = typer.Typer(
    name="addonkit",
    help="Install project addons from git repositories, archives and local paths",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)

logger = logging.getLogger("addonkit")


def setup_logging(verbosity: int) -> None:
    """Configure logging based on verbosity level.

    Args:
        verbosity: 0=WARNING, 1=INFO, 2+=DEBUG (3+ adds source paths)
    """
    if verbosity <= 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    logger.setLevel(level)

    if not logger.handlers:
        handler = RichHandler(
            console=error_console,
            show_time=verbosity >= 2,
            show_path=verbosity >= 3,
            rich_tracebacks=True,
        )
        handler.setLevel(level)
        logger.addHandler(handler)
    else:
        for h in logger.handlers:
            h.setLevel(level)


def print_error(message: str) -> None:
    """Print an error message to stderr."""
    error_console.print(f"[red]Error:[/red] {message}")


def print_success(message: str) -> None:
    console.print(f"[green]\u2713[/green] {message}")


def print_warning(message: str) -> None:
    console.print(f"[yellow]\u26a0[/yellow] {message}")


class InstallReporter:
    """Prints install events and shows archive progress bars."""

    def __init__(self, progress: Progress):
        self.progress = progress
        self.failures = 0
        self._tasks: dict[tuple[str, str], TaskID] = {}

    def _task(self, addon: Addon, kind: str) -> TaskID:
        key = (addon.name, kind)
        if key not in self._tasks:
            verb = "Downloading" if kind == "download" else "Extracting"
            self._tasks[key] = self.progress.add_task(f"{verb} {addon.name}", total=100, speed="")
        return self._tasks[key]

    def on_event(self, event: InstallEvent) -> None:
        if isinstance(event, AddonInstalled):
            print_success(event.message)
        elif isinstance(event, (AddonInstallFailed, AddonsFileInvalid)):
            self.failures += 1
            print_error(event.message)
        elif isinstance(event, InstallFinished):
            if event.state == "cannot_be_resolved":
                print_error(event.message)
            elif event.state == "nothing_to_install":
                console.print(event.message)
            elif self.failures:
                print_warning(f"Finished with {self.failures} failure(s).")
            else:
                print_success(event.message)
        elif isinstance(event, AddonResolved):
            console.print(f"[dim]{event.message}[/dim]")
        elif event.level == "error":
            print_error(event.message)
        else:
            print_warning(event.message)

    def on_download(self, addon: Addon, progress: DownloadProgress) -> None:
        task = self._task(addon, "download")
        self.progress.update(task, completed=progress.percent, speed=progress.speed)

    def on_extract(self, addon: Addon, fraction: float) -> None:
        task = self._task(addon, "extract")
        self.progress.update(task, completed=fraction * 100, speed="")


@app.callback()
def callback(
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose",
            "-v",
            count=True,
            help="Increase verbosity (-v info, -vv debug, -vvv with source paths)",
        ),
    ] = 0,
) -> None:
    """addonkit - dependency manager for project addons."""
    setup_logging(verbose)


@app.command()
def version() -> None:
    """Show the addonkit version."""
    console.print(f"addonkit {__version__}")


@app.command()
def init(
    path: Annotated[
        Path | None,
        typer.Option(
            "--path",
            "-p",
            help="Project directory",
        ),
    ] = None,
) -> None:
    """Create an example addons.jsonc and ignore the addons directory.

    Existing files are never overwritten; missing .gitignore entries are
    appended.
    """
    project_path = (path or Path.cwd()).absolute()
    try:
        addons_file_path = AddonsFileRepository().create_starting_file(project_path)
    except OSError as e:
        print_error(f"Cannot initialize {project_path}: {e}")
        raise typer.Exit(1) from e

    print_success(f"Addons file ready at {addons_file_path}")


@app.command()
def install(
    path: Annotated[
        Path | None,
        typer.Option(
            "--path",
            "-p",
            help="Project directory",
        ),
    ] = None,
    max_depth: Annotated[
        int | None,
        typer.Option(
            "--max-depth",
            "-d",
            min=1,
            help="Maximum number of addons manifests to resolve, including the project's",
        ),
    ] = None,
    addons_file: Annotated[
        str | None,
        typer.Option(
            "--addons-file",
            "-f",
            help="Name of the project's addons file (default: addons.json or addons.jsonc)",
        ),
    ] = None,
) -> None:
    """Install the addons declared by the project and, recursively, by its addons.

    Exits with a non-zero status if an addon conflicts with another addon of
    the same name, if any addon fails to install, or if an installed addon's
    own addons file is invalid.
    """
    project_path = (path or Path.cwd()).absolute()
    cancel_event = threading.Event()

    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
        TextColumn("{task.fields[speed]}"),
        console=console,
        transient=True,
    ) as progress:
        reporter = InstallReporter(progress)
        try:
            state = install_addons(
                project_path,
                max_depth=max_depth,
                on_event=reporter.on_event,
                on_download=reporter.on_download,
                on_extract=reporter.on_extract,
                cancel_event=cancel_event,
                addons_file_name=addons_file,
            )
        except ConfigError as e:
            print_error(str(e))
            raise typer.Exit(1) from e
        except KeyboardInterrupt as e:
            cancel_event.set()
            print_error("Install interrupted")
            raise typer.Exit(130) from e
        except InstallCancelledError as e:
            print_error(str(e))
            raise typer.Exit(130) from e

    if state == "cannot_be_resolved" or reporter.failures:
        raise typer.Exit(1)


@app.command("list")
def list_addons(
    path: Annotated[
        Path | None,
        typer.Option(
            "--path",
            "-p",
            help="Project directory",
        ),
    ] = None,
) -> None:
    """List the addons recorded by the last install."""
    project_path = (path or Path.cwd()).absolute()
    lock_manager = LockFileManager(project_path)
    try:
        lock_manager.load()
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(1) from e

    names = lock_manager.list_locked()
    if not names:
        console.print("No addons installed")
        return

    table = Table(title="Installed Addons")
    table.add_column("Addon", style="cyan")
    table.add_column("Source", style="green")
    table.add_column("Checkout")
    table.add_column("Subfolder")
    table.add_column("URL", style="dim")

    locked_addons = lock_manager.lockfile.addons
    for name in names:
        locked = locked_addons[name]
        checkout = "" if locked.source in ("symlink", "archive") else locked.checkout
        table.add_row(name, locked.source, checkout, locked.subfolder, locked.url)

    console.print(table)
    console.print(f"\n{len(names)} addon(s) recorded in {LOCK_FILE_NAME}")


if __name__ == "__main__":
    app()
