"""
Shared test fixtures and configuration.
"""

import logging
import subprocess
import textwrap
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import pytest

from server_config import installer as installer_module
from server_config.config import Config

SAMPLE_CATALOG = textwrap.dedent("""\
    Packages for new servers.

    # Category: Dev
    git
    make

    # Category: Web
    nginx

    # Category: Empty
    # Category: Monitoring
    htop iotop
    sysstat
""")


class FakeRunner:
    """Records commands instead of running them."""

    dry_run = False

    def __init__(self):
        self.calls: List[List[str]] = []
        self.privileged: List[bool] = []
        self.envs: List[Optional[Dict[str, str]]] = []
        self.failures: Dict[str, int] = {}
        self.outputs: Dict[str, str] = {}
        self.files: Dict[str, Union[str, bytes]] = {}
        self.writes: List[tuple] = []

    def fail_on(self, program: str, returncode: int = 1) -> None:
        self.failures[program] = returncode

    def __call__(
        self,
        cmd: Sequence[str],
        privileged: bool = False,
        capture_output: bool = False,
        check: bool = True,
        input_text: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        errors: Optional[str] = None,
    ) -> subprocess.CompletedProcess:
        cmd = [str(part) for part in cmd]
        self.calls.append(cmd)
        self.privileged.append(privileged)
        self.envs.append(env)
        returncode = self.failures.get(cmd[0], 0)
        if check and returncode:
            raise subprocess.CalledProcessError(returncode, cmd)
        stdout = self.outputs.get(cmd[0], "") if capture_output else None
        return subprocess.CompletedProcess(cmd, returncode, stdout=stdout)

    def read_text(self, path: Path, errors: str = "replace") -> str:
        try:
            content = self.files[str(path)]
        except KeyError:
            raise FileNotFoundError(str(path)) from None
        if isinstance(content, bytes):
            return content.decode("utf-8", errors=errors)
        return content

    def write_text(self, path: Path, content: str, append: bool = False) -> None:
        self.writes.append((str(path), content, append))
        previous = self.files.get(str(path), "") if append else ""
        self.files[str(path)] = previous + content

    def programs(self) -> List[str]:
        return [cmd[0] for cmd in self.calls]


@pytest.fixture
def catalog_file(tmp_path: Path) -> Path:
    """Write the sample catalog to a temporary file."""
    path = tmp_path / "server_packages"
    path.write_text(SAMPLE_CATALOG)
    return path


@pytest.fixture
def config(tmp_path: Path, catalog_file: Path) -> Config:
    """Config pointing at temporary catalog, log and system files."""
    return Config(
        CATALOG_FILE=catalog_file,
        LOG_DIR=tmp_path / "log",
        SSHD_CONFIG=Path("/etc/ssh/sshd_config"),
        HISTORY_FILE=None,
    )


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def logger() -> logging.Logger:
    log = logging.getLogger("tests.server_config")
    log.setLevel(logging.DEBUG)
    return log


@pytest.fixture(autouse=True)
def no_package_manager_processes(monkeypatch):
    """Keep lock detection independent of the host's running processes."""
    monkeypatch.setattr(installer_module, "find_package_manager_processes", lambda: [])


def answers(*responses: str):
    """Build an ``ask`` callable that replays ``responses`` in order."""
    replies = iter(responses)
    prompts: List[str] = []

    def ask(message: str) -> str:
        prompts.append(message)
        return next(replies)

    ask.prompts = prompts
    return ask
