"""
Tests for command execution: sudo prefix, dry-run and error mapping.
"""

import subprocess
from pathlib import Path

import pytest

from server_config import commands
from server_config.commands import CommandRunner


@pytest.fixture
def not_root(monkeypatch):
    monkeypatch.setattr(commands, "is_root", lambda: False)


@pytest.fixture
def recorded(monkeypatch):
    calls = []

    def fake_run(cmd, **kwargs):
        calls.append((cmd, kwargs))
        return subprocess.CompletedProcess(cmd, 0, stdout="out", stderr="")

    monkeypatch.setattr(commands.subprocess, "run", fake_run)
    return calls


class TestBuild:

    def test_sudo_for_privileged(self, not_root, logger):
        runner = CommandRunner(logger=logger)
        assert runner.build(["ufw", "allow", "80/tcp"], privileged=True) == [
            "sudo", "ufw", "allow", "80/tcp",
        ]
        assert runner.build(["swapon", "--show"]) == ["swapon", "--show"]

    def test_no_sudo_when_disabled(self, not_root, logger):
        runner = CommandRunner(use_sudo=False, logger=logger)
        assert runner.build(["ufw", "enable"], privileged=True) == ["ufw", "enable"]

    def test_no_sudo_as_root(self, monkeypatch, logger):
        monkeypatch.setattr(commands, "is_root", lambda: True)
        assert CommandRunner(logger=logger).build(["ufw"], privileged=True) == ["ufw"]


class TestRun:

    def test_dry_run_executes_nothing(self, recorded, not_root, logger, caplog):
        runner = CommandRunner(dry_run=True, logger=logger)
        with caplog.at_level("INFO"):
            result = runner(["apt-get", "install", "-y", "nginx"], privileged=True)
        assert recorded == []
        assert result.returncode == 0
        assert "[dry-run] sudo apt-get install -y nginx" in caplog.text

    def test_env_is_merged(self, recorded, logger):
        CommandRunner(logger=logger)(["apt-get", "update"], env={"DEBIAN_FRONTEND": "noninteractive"})
        _, kwargs = recorded[0]
        assert kwargs["env"]["DEBIAN_FRONTEND"] == "noninteractive"
        assert "PATH" in kwargs["env"]

    def test_input_and_capture(self, recorded, logger):
        result = CommandRunner(logger=logger)(["tee", "/tmp/x"], capture_output=True, input_text="data")
        _, kwargs = recorded[0]
        assert kwargs["input"] == "data"
        assert kwargs["capture_output"] is True
        assert result.stdout == "out"

    def test_nonzero_exit_raises(self, monkeypatch, logger):
        monkeypatch.setattr(
            commands.subprocess,
            "run",
            lambda cmd, **kw: subprocess.CompletedProcess(cmd, 100, stdout=None, stderr=None),
        )
        runner = CommandRunner(logger=logger)
        with pytest.raises(subprocess.CalledProcessError) as excinfo:
            runner(["apt-get", "install", "-y", "nope"])
        assert excinfo.value.returncode == 100
        assert runner(["apt-get", "install"], check=False).returncode == 100

    def test_missing_executable_is_127(self, monkeypatch, logger):
        def missing(cmd, **kwargs):
            raise FileNotFoundError(cmd[0])

        monkeypatch.setattr(commands.subprocess, "run", missing)
        runner = CommandRunner(logger=logger)
        with pytest.raises(subprocess.CalledProcessError) as excinfo:
            runner(["hostnamectl", "set-hostname", "web01"])
        assert excinfo.value.returncode == 127
        assert runner(["hostnamectl"], check=False).returncode == 127


class TestFiles:

    def test_read_text_direct(self, tmp_path, logger):
        path = tmp_path / "sshd_config"
        path.write_text("Port 22\n")
        assert CommandRunner(logger=logger).read_text(path) == "Port 22\n"

    def test_read_text_falls_back_to_sudo_cat(self, tmp_path, monkeypatch, recorded, not_root, logger):
        path = tmp_path / "sshd_config"

        def denied(self, encoding=None, errors=None):
            raise PermissionError(str(self))

        monkeypatch.setattr(type(path), "read_text", denied)
        assert CommandRunner(logger=logger).read_text(path) == "out"
        assert recorded[0][0] == ["sudo", "cat", str(path)]

    def test_write_text_appends_through_tee(self, recorded, not_root, logger):
        CommandRunner(logger=logger).write_text(Path("/etc/fstab"), "line\n", append=True)
        cmd, kwargs = recorded[0]
        assert cmd == ["sudo", "tee", "-a", "/etc/fstab"]
        assert kwargs["input"] == "line\n"

    def test_read_text_replaces_undecodable_bytes(self, tmp_path, logger):
        path = tmp_path / "sshd_config"
        path.write_bytes(b"# caf\xe9\nPort 22\n")
        text = CommandRunner(logger=logger).read_text(path)
        assert text.splitlines() == ["# caf\ufffd", "Port 22"]

    def test_read_text_strict_raises(self, tmp_path, logger):
        path = tmp_path / "sshd_config"
        path.write_bytes(b"# caf\xe9\nPort 22\n")
        with pytest.raises(UnicodeDecodeError):
            CommandRunner(logger=logger).read_text(path, errors="strict")
