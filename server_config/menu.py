"""Main menu loop."""

import logging
import socket
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from rich.align import Align
from rich.panel import Panel
from rich.text import Text

from .config import Config
from .errors import ServerConfigError
from .installer import PackageInstaller
from .logger import get_logger
from .system import ServerSetup
from .ui import (
    NordColors,
    clear_screen,
    console,
    create_header,
    display_menu,
    get_user_input,
    pause_briefly,
    print_error,
    wait_for_key,
)

EXIT_CHOICE: str = "9"


class MainMenu:
    """Numbered menu dispatching to the setup operations and the installer."""

    def __init__(
        self,
        config: Config,
        setup: ServerSetup,
        installer: PackageInstaller,
        logger: Optional[logging.Logger] = None,
        ask: Optional[Callable[[str], str]] = None,
        pause: Callable[[], None] = wait_for_key,
        clear: bool = True,
    ):
        self.config = config
        self.setup = setup
        self.installer = installer
        self.logger = logger or get_logger()
        self.ask = ask or (lambda message: get_user_input(message, config.HISTORY_FILE))
        self.pause = pause
        self.clear = clear

    def options(self) -> List[Tuple[str, str, Callable[[], object]]]:
        return [
            ("1", "Update System", self.setup.update_system),
            ("2", "Change Hostname", self.change_hostname),
            ("3", "Add User", self.add_user),
            ("4", "Setup Firewall", self.setup.setup_firewall),
            ("5", "Setup Swap", self.setup.setup_swap),
            ("6", "Setup SSH", self.setup.setup_ssh),
            ("7", "Change SSH Port", self.change_ssh_port),
            ("8", "Install Packages", self.install_packages),
        ]

    # Prompting wrappers around operations that need operator input
    def change_hostname(self) -> bool:
        new_hostname = self.ask("Enter new hostname: ")
        if not new_hostname:
            self.logger.warning("No hostname entered.")
            return False
        return self.setup.change_hostname(new_hostname)

    def add_user(self) -> bool:
        username = self.ask("Enter username to add: ")
        if not username:
            self.logger.warning("No username entered.")
            return False
        public_key = self.setup.add_user(username)
        if public_key is None:
            return False
        if public_key:
            console.print(
                Panel(
                    Text(public_key, style=NordColors.SNOW_STORM_1),
                    title=f"[bold {NordColors.YELLOW}]Public key for user {username}[/]",
                    border_style=NordColors.YELLOW,
                )
            )
        return True

    def change_ssh_port(self) -> bool:
        new_port = self.ask("Enter new SSH port number: ")
        if not new_port:
            self.logger.warning("No port entered.")
            return False
        return self.setup.change_ssh_port(new_port)

    def install_packages(self) -> bool:
        result = self.installer.run(self.ask)
        return bool(result and result.ok)

    def render(self) -> None:
        if self.clear:
            clear_screen()
        console.print(create_header())
        current_time = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        console.print(
            Align.center(
                f"[{NordColors.SNOW_STORM_1}]Current Time: {current_time}[/] | "
                f"[{NordColors.SNOW_STORM_1}]Host: {socket.gethostname()}[/]"
            )
        )
        console.print()
        menu = [(key, label) for key, label, _ in self.options()]
        menu.append((EXIT_CHOICE, "Exit"))
        display_menu(menu, "System Administration Menu")

    def handle(self, choice: str) -> bool:
        """Dispatch one menu choice; returns ``False`` when the menu should exit."""
        if choice == EXIT_CHOICE:
            self.logger.info("Exiting system administration script.")
            return False
        for key, label, action in self.options():
            if choice == key:
                try:
                    action()
                except (ServerConfigError, OSError, UnicodeError) as e:
                    self.logger.error(f"{label} failed: {e}")
                self.pause()
                return True
        print_error("Invalid option.")
        pause_briefly(2)
        return True

    def loop(self) -> None:
        while True:
            self.render()
            if not self.handle(self.ask("Enter your choice: ")):
                break
