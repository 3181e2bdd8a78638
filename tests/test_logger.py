"""
Tests for logger setup.
"""

import io
import logging
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from server_config.logger import LOGGER_NAME, log_file_path, setup_logger


def test_log_file_name_is_timestamped(tmp_path: Path):
    path = log_file_path(tmp_path, datetime(2024, 3, 5, 14, 7, 9))
    assert path == tmp_path / "server_config_20240305_140709.log"


def test_status_lines_reach_log_file(tmp_path: Path):
    log_dir = tmp_path / "nested" / "log"
    logger = setup_logger(log_dir, console=Console(file=io.StringIO()))
    try:
        logger.info("Packages installed successfully.")
        logger.debug("Running command: apt-get install -y nginx")
        for handler in logger.handlers:
            handler.flush()
        files = list(log_dir.glob("server_config_*.log"))
        assert len(files) == 1
        content = files[0].read_text()
        assert "[INFO] Packages installed successfully." in content
        assert "[DEBUG] Running command" in content
    finally:
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)
            handler.close()


def test_handlers_are_replaced_not_stacked(tmp_path: Path):
    quiet = Console(file=io.StringIO())
    setup_logger(tmp_path, console=quiet)
    logger = setup_logger(tmp_path, debug=True, console=quiet)
    try:
        assert logger.name == LOGGER_NAME
        assert len(logger.handlers) == 2
        rich_handler = next(h for h in logger.handlers if isinstance(h, RichHandler))
        assert rich_handler.level == logging.DEBUG
    finally:
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)
            handler.close()
