"""Command-line entry point for the server setup menu."""

import atexit
import signal
import sys
from pathlib import Path
from typing import Optional

import click
from rich.traceback import install as install_rich_traceback

from . import APP_NAME, VERSION
from .config import Config
from .errors import CatalogReadError, ConfigError
from .installer import PackageInstaller
from .logger import setup_logger
from .menu import MainMenu
from .system import ServerSetup
from .ui import NordColors, print_error, print_message, print_warning


# ----------------------------------------------------------------
# Signal Handling and Cleanup
# ----------------------------------------------------------------
def cleanup() -> None:
    print_message("Cleaning up before exit...", NordColors.FROST_3)


def signal_handler(sig: int, frame: Optional[object]) -> None:
    try:
        sig_name = signal.Signals(sig).name
        print_warning(f"Process interrupted by {sig_name}")
    except ValueError:
        print_warning(f"Process interrupted by signal {sig}")
    sys.exit(128 + sig)


def install_handlers() -> None:
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)
    atexit.register(cleanup)


def load_config(
    config_file: Optional[Path],
    catalog: Optional[Path],
    log_dir: Optional[Path],
    strict_confirm: bool,
    no_sudo: bool,
    dry_run: bool,
) -> Config:
    """Defaults, then the config file, then command-line flags."""
    config = Config.from_file(config_file) if config_file else Config()
    return config.merge(
        {
            "CATALOG_FILE": catalog,
            "LOG_DIR": log_dir,
            "STRICT_CONFIRM": True if strict_confirm else None,
            "USE_SUDO": False if no_sudo else None,
            "DRY_RUN": True if dry_run else None,
        }
    )


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--catalog",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Package catalog file with '# Category:' headers.",
)
@click.option(
    "--log-dir", type=click.Path(file_okay=False, path_type=Path), help="Directory for log files."
)
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON configuration file.",
)
@click.option(
    "--strict-confirm", is_flag=True, help="Only an exact 'yes' confirms installation."
)
@click.option("--no-sudo", is_flag=True, help="Never prefix commands with sudo.")
@click.option("--dry-run", is_flag=True, help="Log commands instead of running them.")
@click.option(
    "--list-categories", is_flag=True, help="Print the catalog categories and exit."
)
@click.option("--debug", is_flag=True, help="Enable debug logging on the console.")
@click.version_option(VERSION, prog_name=APP_NAME)
def main(
    catalog: Optional[Path],
    log_dir: Optional[Path],
    config_file: Optional[Path],
    strict_confirm: bool,
    no_sudo: bool,
    dry_run: bool,
    list_categories: bool,
    debug: bool,
) -> None:
    """System Administration Menu for Debian/Ubuntu servers."""
    try:
        config = load_config(config_file, catalog, log_dir, strict_confirm, no_sudo, dry_run)
    except ConfigError as e:
        print_error(str(e))
        sys.exit(1)

    try:
        logger = setup_logger(config.LOG_DIR, debug=debug)
    except OSError as e:
        print_error(f"Cannot open log directory {config.LOG_DIR}: {e}")
        sys.exit(1)
    installer = PackageInstaller(config, logger)

    if list_categories:
        try:
            names = installer.categories()
        except CatalogReadError as e:
            logger.error(str(e))
            sys.exit(1)
        for i, name in enumerate(names, start=1):
            click.echo(f"{i}. {name}")
        return

    install_rich_traceback(show_locals=False)
    install_handlers()
    menu = MainMenu(config, ServerSetup(config, logger), installer, logger)
    try:
        menu.loop()
    except (KeyboardInterrupt, EOFError):
        print_warning("Operation cancelled by user.")
        sys.exit(130)
    except Exception as e:
        logger.exception(f"An unexpected error occurred: {e}")
        sys.exit(1)
