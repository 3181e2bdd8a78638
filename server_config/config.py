"""
Configuration for the server setup menu.

Values are resolved in three layers: the dataclass defaults below, an
optional JSON config file, and finally command-line overrides.
"""

import json
import os
from dataclasses import dataclass, field, asdict, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .errors import ConfigError

PACKAGED_CATALOG: Path = Path(__file__).parent / "data" / "server_packages"


def default_catalog_file() -> Path:
    """Prefer a ``server_packages`` file in the working directory."""
    local = Path("server_packages")
    if local.is_file():
        return local
    return PACKAGED_CATALOG


@dataclass
class Config:
    """Configuration for the server setup process."""

    CATALOG_FILE: Path = field(default_factory=default_catalog_file)
    LOG_DIR: Path = field(default_factory=lambda: Path("log"))
    CATEGORY_MARKER: str = "# Category:"
    INSTALL_COMMAND: List[str] = field(
        default_factory=lambda: ["apt-get", "install", "-y"]
    )
    USE_SUDO: bool = True
    STRICT_CONFIRM: bool = False
    DRY_RUN: bool = False

    SSHD_CONFIG: Path = field(default_factory=lambda: Path("/etc/ssh/sshd_config"))
    FIREWALL_PORTS: List[str] = field(default_factory=lambda: ["80", "443"])
    SWAP_FILE: Path = field(default_factory=lambda: Path("/swapfile"))
    SWAP_SIZE: str = "1G"
    FSTAB: Path = field(default_factory=lambda: Path("/etc/fstab"))
    HOME_ROOT: Path = field(default_factory=lambda: Path("/home"))
    HISTORY_FILE: Optional[Path] = field(
        default_factory=lambda: Path(os.path.expanduser("~/.server_config_history"))
    )

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name in _PATH_FIELDS and value is not None:
                setattr(self, f.name, Path(value))
        self.FIREWALL_PORTS = [str(port) for port in self.FIREWALL_PORTS]
        self.INSTALL_COMMAND = list(self.INSTALL_COMMAND)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the config to a JSON-friendly dictionary."""
        data = asdict(self)
        for key in _PATH_FIELDS:
            if data[key] is not None:
                data[key] = str(data[key])
        return data

    def merge(self, overrides: Dict[str, Any]) -> "Config":
        """Return a copy with ``overrides`` applied; ``None`` values are skipped."""
        data = asdict(self)
        for key, value in overrides.items():
            if value is None:
                continue
            name = _field_name(key)
            _check_type(name, value)
            data[name] = value
        return Config(**data)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "Config":
        """Load a JSON config file on top of the defaults."""
        path = Path(path)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except OSError as e:
            raise ConfigError(f"Cannot read config file {path}: {e}") from e
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in config file {path}: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigError(f"Config file {path} must contain a JSON object")
        return cls().merge(raw)


_FIELD_NAMES = {f.name for f in fields(Config)}
_PATH_FIELDS = (
    "CATALOG_FILE",
    "LOG_DIR",
    "SSHD_CONFIG",
    "SWAP_FILE",
    "FSTAB",
    "HOME_ROOT",
    "HISTORY_FILE",
)
_BOOL_FIELDS = ("USE_SUDO", "STRICT_CONFIRM", "DRY_RUN")
_LIST_FIELDS = ("INSTALL_COMMAND", "FIREWALL_PORTS")
_STR_FIELDS = ("CATEGORY_MARKER", "SWAP_SIZE")


def _field_name(key: str) -> str:
    name = key.upper()
    if name not in _FIELD_NAMES:
        raise ConfigError(f"Unknown configuration key: {key}")
    return name


def _check_type(name: str, value: Any) -> None:
    if name in _BOOL_FIELDS and not isinstance(value, bool):
        raise ConfigError(f"{name} must be true or false, got {value!r}")
    if name in _LIST_FIELDS and not (
        isinstance(value, (list, tuple)) and all(isinstance(v, (str, int)) for v in value)
    ):
        raise ConfigError(f"{name} must be a list, got {value!r}")
    if name in _STR_FIELDS and not isinstance(value, str):
        raise ConfigError(f"{name} must be a string, got {value!r}")
    if name in _PATH_FIELDS and not isinstance(value, (str, Path)):
        raise ConfigError(f"{name} must be a path, got {value!r}")
