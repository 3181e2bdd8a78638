"""
Category-driven package installer.

The operator picks a category from the package catalog, reviews the
packages it contains and confirms; the whole category is then installed
with a single package-manager invocation.
"""

import logging
import subprocess
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence

import psutil
from rich.markup import escape
from rich.panel import Panel
from rich.text import Text

from .catalog import list_categories, packages_for, select_category
from .commands import CommandRunner
from .config import Config
from .errors import CatalogReadError, SelectionError
from .logger import get_logger
from .ui import NordColors, console, get_user_input

PACKAGE_MANAGER_PROCESSES = ("apt", "apt-get", "dpkg", "unattended-upgr", "nala")
APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}


class InstallStatus(Enum):
    SUCCESS = "success"
    CANCELLED = "cancelled"
    FAILURE = "failure"


@dataclass(frozen=True)
class InstallResult:
    status: InstallStatus
    exit_code: Optional[int] = None

    @classmethod
    def success(cls) -> "InstallResult":
        return cls(InstallStatus.SUCCESS, 0)

    @classmethod
    def cancelled(cls) -> "InstallResult":
        return cls(InstallStatus.CANCELLED)

    @classmethod
    def failure(cls, exit_code: int) -> "InstallResult":
        return cls(InstallStatus.FAILURE, exit_code)

    @property
    def ok(self) -> bool:
        return self.status is InstallStatus.SUCCESS


def is_affirmative(response: str, strict: bool = False) -> bool:
    """
    Interpret a confirmation answer.

    In strict mode only the exact token ``yes`` confirms; otherwise ``yes``
    and ``y`` are accepted in any case.
    """
    if strict:
        return response == "yes"
    return response.strip().lower() in ("y", "yes")


def find_package_manager_processes() -> List[psutil.Process]:
    """Running processes that are likely to hold the dpkg lock."""
    found = []
    for proc in psutil.process_iter(["pid", "name"]):
        try:
            if proc.info["name"] in PACKAGE_MANAGER_PROCESSES:
                found.append(proc)
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
    return found


def confirm_and_install(
    packages: Sequence[str],
    confirmed: bool,
    runner: Optional[CommandRunner] = None,
    install_command: Sequence[str] = ("apt-get", "install", "-y"),
    logger: Optional[logging.Logger] = None,
) -> InstallResult:
    """Install ``packages`` as one batch, but only once the operator confirmed."""
    logger = logger or get_logger()
    if not confirmed:
        return InstallResult.cancelled()
    if not packages:
        logger.warning("No packages to install.")
        return InstallResult.success()

    runner = runner or CommandRunner(logger=logger)
    if not runner.dry_run:
        for proc in find_package_manager_processes():
            logger.warning(
                f"Package manager already running: {proc.info['name']} "
                f"(PID: {proc.info['pid']}); installation may wait for its lock."
            )

    try:
        runner(list(install_command) + list(packages), privileged=True, env=APT_ENV)
    except subprocess.CalledProcessError as e:
        return InstallResult.failure(e.returncode)
    return InstallResult.success()


class PackageInstaller:
    """Interactive flow for installing one category from the catalog."""

    def __init__(
        self,
        config: Config,
        logger: Optional[logging.Logger] = None,
        runner: Optional[CommandRunner] = None,
    ):
        self.config = config
        self.logger = logger or get_logger()
        self.runner = runner or CommandRunner(
            use_sudo=config.USE_SUDO, dry_run=config.DRY_RUN, logger=self.logger
        )

    def categories(self) -> List[str]:
        return list_categories(self.config.CATALOG_FILE, self.config.CATEGORY_MARKER)

    def packages(self, category_name: str) -> List[str]:
        return packages_for(
            self.config.CATALOG_FILE, category_name, self.config.CATEGORY_MARKER
        )

    def confirm_and_install(
        self, packages: Sequence[str], confirmed: bool
    ) -> InstallResult:
        return confirm_and_install(
            packages,
            confirmed,
            runner=self.runner,
            install_command=self.config.INSTALL_COMMAND,
            logger=self.logger,
        )

    def show_categories(self, names: Sequence[str]) -> None:
        console.print("[category]Available categories:[/category]")
        for i, name in enumerate(names, start=1):
            console.print(f"[category]{i}. {escape(name)}[/category]")

    def show_packages(self, name: str, packages: Sequence[str]) -> None:
        console.print(
            Panel(
                Text("\n".join(packages), style=NordColors.GREEN),
                title=f"[bold {NordColors.FROST_3}]Packages to install from '{escape(name)}'[/]",
                border_style=NordColors.FROST_3,
            )
        )

    def run(self, ask: Callable[[str], str] = get_user_input) -> Optional[InstallResult]:
        """
        Walk the operator through selecting and installing a category.

        Returns ``None`` when nothing reached the confirmation step (catalog
        unreadable, invalid selection or empty category). Failures are logged
        and never raised.
        """
        catalog = self.config.CATALOG_FILE
        self.logger.info(f"Reading package list from {catalog}...")
        try:
            names = self.categories()
        except CatalogReadError as e:
            self.logger.error(str(e))
            return None

        if not names:
            self.logger.warning(f"No categories found in {catalog}.")
            return None

        self.show_categories(names)
        choice = ask(
            "Enter the number of the category you wish to install packages from: "
        )
        try:
            name = select_category(names, choice)
        except SelectionError as e:
            self.logger.error(f"Invalid category selection. {e}")
            return None

        self.logger.info(f"Selected Category: {name}")
        try:
            packages = self.packages(name)
        except CatalogReadError as e:
            self.logger.error(str(e))
            return None

        if not packages:
            self.logger.warning(f"Category '{name}' has no packages to install.")
            return None

        self.show_packages(name, packages)
        answer = ask("Proceed with installation? (yes/no) ")
        confirmed = is_affirmative(answer, self.config.STRICT_CONFIRM)
        result = self.confirm_and_install(packages, confirmed)

        if result.status is InstallStatus.SUCCESS:
            self.logger.info("Packages installed successfully.")
        elif result.status is InstallStatus.CANCELLED:
            self.logger.info("Package installation canceled.")
        else:
            self.logger.error(
                f"Failed to install packages (exit code {result.exit_code})."
            )
        return result
