"""
Command execution utilities.

All external tools are run through :class:`CommandRunner`, which adds the
``sudo`` prefix for privileged commands, logs every invocation and supports a
dry-run mode that records commands without executing them.
"""

import logging
import os
import shlex
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .logger import get_logger


def is_root() -> bool:
    return os.geteuid() == 0


class CommandRunner:
    """Run external commands the way every menu operation needs them."""

    def __init__(
        self,
        use_sudo: bool = True,
        dry_run: bool = False,
        logger: Optional[logging.Logger] = None,
    ):
        self.use_sudo = use_sudo
        self.dry_run = dry_run
        self.logger = logger or get_logger()

    def build(self, cmd: Sequence[str], privileged: bool = False) -> List[str]:
        """Return ``cmd`` with ``sudo`` prepended when it needs root."""
        cmd = [str(part) for part in cmd]
        if privileged and self.use_sudo and not is_root():
            return ["sudo"] + cmd
        return cmd

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
        """
        Run a system command.

        Output streams straight to the terminal unless ``capture_output`` is
        set. A non-zero exit raises ``CalledProcessError`` when ``check`` is
        true; a missing executable is reported as exit status 127.
        """
        full_cmd = self.build(cmd, privileged)
        printable = shlex.join(full_cmd)

        if self.dry_run:
            self.logger.info(f"[dry-run] {printable}")
            return subprocess.CompletedProcess(
                full_cmd, 0, stdout="" if capture_output else None, stderr=None
            )

        self.logger.debug(f"Running command: {printable}")
        run_env = None
        if env:
            run_env = os.environ.copy()
            run_env.update(env)

        try:
            result = subprocess.run(
                full_cmd,
                capture_output=capture_output,
                text=True,
                input=input_text,
                env=run_env,
                timeout=timeout,
                errors=errors,
            )
        except FileNotFoundError as e:
            self.logger.debug(f"Command not found: {full_cmd[0]}")
            if check:
                raise subprocess.CalledProcessError(127, full_cmd) from e
            return subprocess.CompletedProcess(full_cmd, 127, stdout=None, stderr=None)

        if check and result.returncode != 0:
            raise subprocess.CalledProcessError(
                result.returncode, full_cmd, output=result.stdout, stderr=result.stderr
            )
        return result

    def read_text(self, path: Path, errors: str = "replace") -> str:
        """
        Read a file, falling back to ``sudo cat`` when permission is denied.

        Undecodable bytes are replaced unless ``errors="strict"`` is given, in
        which case ``UnicodeDecodeError`` propagates.
        """
        try:
            return path.read_text(encoding="utf-8", errors=errors)
        except PermissionError:
            result = self(
                ["cat", str(path)], privileged=True, capture_output=True, errors=errors
            )
            return result.stdout or ""

    def write_text(self, path: Path, content: str, append: bool = False) -> None:
        """Write a root-owned file through ``tee``."""
        cmd = ["tee", "-a", str(path)] if append else ["tee", str(path)]
        self(cmd, privileged=True, capture_output=True, input_text=content)
