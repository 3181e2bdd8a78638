"""
System setup operations behind the main menu.

Each operation is a fixed sequence of external commands. Operations return
``True``/``False`` (or a value/``None``) and log their own failures so the
menu always regains control.
"""

import logging
import re
import socket
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from .commands import CommandRunner
from .config import Config
from .installer import APT_ENV
from .logger import get_logger

DEFAULT_SSH_PORT: int = 22

# Debian adduser NAME_REGEX
USERNAME_PATTERN = re.compile(r"^[a-z][-a-z0-9_]*\$?$")
HOSTNAME_LABEL = re.compile(r"^(?!-)[A-Za-z0-9-]{1,63}(?<!-)$")
ACTIVE_PORT_LINE = re.compile(r"^[ \t]*Port[ \t]+(\d+)[ \t]*$", re.MULTILINE)
ANY_PORT_LINE = re.compile(r"^[ \t]*#?Port[ \t]+(\S+).*$", re.MULTILINE)


# ----------------------------------------------------------------
# Validation and sshd_config helpers
# ----------------------------------------------------------------
def is_valid_hostname(name: str) -> bool:
    if not name or len(name) > 253:
        return False
    return all(HOSTNAME_LABEL.match(label) for label in name.split("."))


def is_valid_username(name: str) -> bool:
    return bool(name) and len(name) <= 32 and bool(USERNAME_PATTERN.match(name))


def parse_port(value: str) -> Optional[int]:
    """Return ``value`` as a TCP port number, or ``None`` if it is not one."""
    try:
        port = int(str(value).strip())
    except ValueError:
        return None
    return port if 1 <= port <= 65535 else None


def active_ssh_port(sshd_config: str) -> int:
    """Port from the first uncommented ``Port`` directive."""
    match = ACTIVE_PORT_LINE.search(sshd_config)
    return int(match.group(1)) if match else DEFAULT_SSH_PORT


def configured_ssh_port(sshd_config: str) -> int:
    """Port from the first ``Port`` line, commented out or not."""
    match = ANY_PORT_LINE.search(sshd_config)
    if match:
        port = parse_port(match.group(1))
        if port is not None:
            return port
    return DEFAULT_SSH_PORT


def rewrite_ssh_port(sshd_config: str, port: int) -> str:
    """Replace the first ``#?Port`` line with ``Port <port>``, appending if absent."""
    new_text, count = ANY_PORT_LINE.subn(f"Port {port}", sshd_config, count=1)
    if count:
        return new_text
    if new_text and not new_text.endswith("\n"):
        new_text += "\n"
    return new_text + f"Port {port}\n"


def fstab_has_entry(fstab: str, device: Path) -> bool:
    for line in fstab.splitlines():
        fields = line.split()
        if fields and not fields[0].startswith("#") and fields[0] == str(device):
            return True
    return False


# ----------------------------------------------------------------
# Setup operations
# ----------------------------------------------------------------
class ServerSetup:
    """The system administration operations offered by the main menu."""

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

    def _run_steps(self, steps: Sequence[Tuple[str, List[str]]]) -> bool:
        """Run privileged ``(failure message, command)`` steps, stopping at the first failure."""
        for failure, cmd in steps:
            try:
                self.runner(cmd, privileged=True)
            except subprocess.CalledProcessError as e:
                self.logger.error(f"{failure} (exit code {e.returncode})")
                return False
        return True

    def _read_sshd_config(self) -> str:
        try:
            return self.runner.read_text(self.config.SSHD_CONFIG)
        except (OSError, subprocess.CalledProcessError) as e:
            self.logger.warning(f"Could not read {self.config.SSHD_CONFIG}: {e}")
            return ""

    def update_system(self) -> bool:
        """Refresh package lists and upgrade installed packages."""
        self.logger.info("Updating the system...")
        try:
            self.runner(["apt-get", "update"], privileged=True, env=APT_ENV)
            self.runner(["apt-get", "upgrade", "-y"], privileged=True, env=APT_ENV)
        except subprocess.CalledProcessError as e:
            self.logger.error(f"Failed to update the system (exit code {e.returncode}).")
            return False
        self.logger.info("System updated successfully.")
        return True

    def change_hostname(self, new_hostname: str) -> bool:
        new_hostname = new_hostname.strip()
        if not is_valid_hostname(new_hostname):
            self.logger.error(f"Invalid hostname: {new_hostname!r}")
            return False
        if not self._run_steps(
            [("Failed to change hostname.", ["hostnamectl", "set-hostname", new_hostname])]
        ):
            return False
        self.logger.info(f"Hostname changed to {new_hostname}")
        return True

    def add_user(self, username: str) -> Optional[str]:
        """
        Create a user with a fresh RSA key pair authorized for SSH login.

        Returns the public key so it can be handed to the user, or ``None``
        if any step failed.
        """
        username = username.strip()
        if not is_valid_username(username):
            self.logger.error(f"Invalid username: {username!r}")
            return None

        ssh_dir = self.config.HOME_ROOT / username / ".ssh"
        private_key = ssh_dir / "id_rsa"
        public_key = ssh_dir / "id_rsa.pub"
        authorized_keys = ssh_dir / "authorized_keys"
        owner = f"{username}:{username}"
        comment = f"{username}@{socket.gethostname()}"

        if not self._run_steps(
            [
                (
                    f"Failed to add user {username}.",
                    ["adduser", "--disabled-password", "--gecos", "", username],
                )
            ]
        ):
            return None
        self.logger.info(f"User added: {username}")

        if not self._run_steps(
            [
                (
                    f"Failed to create .ssh directory for {username}.",
                    ["mkdir", "-p", str(ssh_dir)],
                ),
                (
                    "Failed to set permissions on .ssh directory.",
                    ["chmod", "700", str(ssh_dir)],
                ),
                (
                    f"Failed to generate SSH keys for {username}.",
                    [
                        "ssh-keygen", "-t", "rsa", "-b", "4096",
                        "-f", str(private_key), "-N", "", "-C", comment,
                    ],
                ),
            ]
        ):
            return None
        self.logger.info(f"SSH key pair generated for {username}.")

        if not self._run_steps(
            [
                (
                    f"Failed to set ownership of .ssh directory for {username}.",
                    ["chown", "-R", owner, str(ssh_dir)],
                ),
                ("Failed to set permissions on private key.", ["chmod", "600", str(private_key)]),
                ("Failed to set permissions on public key.", ["chmod", "644", str(public_key)]),
                (
                    "Failed to copy public key to authorized_keys.",
                    ["cp", str(public_key), str(authorized_keys)],
                ),
                (
                    "Failed to set permissions on authorized_keys.",
                    ["chmod", "600", str(authorized_keys)],
                ),
                (
                    "Failed to set owner on authorized_keys.",
                    ["chown", owner, str(authorized_keys)],
                ),
            ]
        ):
            return None
        self.logger.info(f"SSH public key added to authorized_keys for {username}.")

        try:
            return self.runner.read_text(public_key).strip()
        except (OSError, subprocess.CalledProcessError) as e:
            self.logger.warning(f"Could not read public key {public_key}: {e}")
            return ""

    def setup_firewall(self) -> bool:
        """Enable UFW and allow HTTP, HTTPS and the configured SSH port."""
        self.logger.info("Setting up the firewall...")
        ssh_port = active_ssh_port(self._read_sshd_config())
        steps = [("Failed to enable firewall.", ["ufw", "--force", "enable"])]
        for port in self.config.FIREWALL_PORTS:
            steps.append((f"Failed to allow port {port}.", ["ufw", "allow", f"{port}/tcp"]))
        steps.append(
            (f"Failed to allow SSH port {ssh_port}.", ["ufw", "allow", f"{ssh_port}/tcp"])
        )
        if not self._run_steps(steps):
            return False
        allowed = ", ".join(self.config.FIREWALL_PORTS)
        self.logger.info(f"Firewall setup with ports {allowed} and SSH (Port {ssh_port}).")
        return True

    def swap_active(self) -> bool:
        try:
            result = self.runner(
                ["swapon", "--show=NAME", "--noheadings"], capture_output=True
            )
        except subprocess.CalledProcessError:
            return False
        return str(self.config.SWAP_FILE) in (result.stdout or "").split()

    def setup_swap(self) -> bool:
        swap_file = self.config.SWAP_FILE
        self.logger.info("Setting up swap space...")
        if self.swap_active():
            self.logger.info(f"Swap file {swap_file} is already active.")
            return True

        if not self._run_steps(
            [
                (
                    f"Failed to allocate {swap_file}.",
                    ["fallocate", "-l", self.config.SWAP_SIZE, str(swap_file)],
                ),
                (f"Failed to set permissions on {swap_file}.", ["chmod", "600", str(swap_file)]),
                (f"Failed to format {swap_file} as swap.", ["mkswap", str(swap_file)]),
                (f"Failed to enable swap on {swap_file}.", ["swapon", str(swap_file)]),
            ]
        ):
            return False

        fstab = self.config.FSTAB
        try:
            current = self.runner.read_text(fstab)
        except (OSError, subprocess.CalledProcessError):
            current = ""
        if fstab_has_entry(current, swap_file):
            self.logger.info(f"{fstab} already has an entry for {swap_file}.")
        else:
            try:
                self.runner.write_text(fstab, f"{swap_file} none swap sw 0 0\n", append=True)
            except subprocess.CalledProcessError as e:
                self.logger.error(f"Failed to update {fstab} (exit code {e.returncode}).")
                return False
        self.logger.info("Swap setup complete.")
        return True

    def setup_ssh(self) -> bool:
        self.logger.info("Setting up SSH...")
        try:
            self.runner(
                ["apt-get", "install", "-y", "openssh-server"],
                privileged=True,
                env=APT_ENV,
            )
        except subprocess.CalledProcessError as e:
            self.logger.error(f"Failed to install SSH server (exit code {e.returncode}).")
            return False
        self.logger.info("SSH setup complete.")
        return True

    def change_ssh_port(self, new_port: str) -> bool:
        """
        Move sshd to ``new_port`` and update the firewall.

        The previous configuration is kept as ``sshd_config.backup``; the old
        port's firewall rule is removed only when the port actually changed.
        """
        port = parse_port(new_port)
        if port is None:
            self.logger.error(f"Invalid SSH port: {new_port!r}")
            return False

        sshd_config = self.config.SSHD_CONFIG
        # Rewritten whole; undecodable bytes abort the change
        try:
            current_text = self.runner.read_text(sshd_config, errors="strict")
        except (OSError, subprocess.CalledProcessError, UnicodeDecodeError) as e:
            self.logger.error(f"Failed to read sshd_config {sshd_config}: {e}")
            return False

        backup = sshd_config.with_name(sshd_config.name + ".backup")
        if not self._run_steps(
            [("Failed to backup sshd_config.", ["cp", str(sshd_config), str(backup)])]
        ):
            return False

        current_port = configured_ssh_port(current_text)
        try:
            self.runner.write_text(sshd_config, rewrite_ssh_port(current_text, port))
        except subprocess.CalledProcessError as e:
            self.logger.error(
                f"Failed to change SSH port in sshd_config (exit code {e.returncode})."
            )
            return False

        steps = [
            ("Failed to restart SSH service.", ["systemctl", "restart", "ssh"]),
            (f"Failed to allow SSH port {port}.", ["ufw", "allow", f"{port}/tcp"]),
        ]
        if port != current_port:
            steps.append(
                (
                    f"Failed to remove old SSH port {current_port} from firewall.",
                    ["ufw", "delete", "allow", f"{current_port}/tcp"],
                )
            )
        if not self._run_steps(steps):
            return False
        self.logger.info(f"SSH port changed to {port} and firewall updated.")
        return True
