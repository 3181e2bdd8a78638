import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler

from .ui import console as default_console

LOGGER_NAME: str = "server_config"
LOG_FORMAT: str = "[%(asctime)s] [%(levelname)s] %(message)s"
LOG_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"


def log_file_path(log_dir: Union[str, Path], now: Optional[datetime] = None) -> Path:
    """Timestamped log file inside ``log_dir``."""
    stamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
    return Path(log_dir) / f"{LOGGER_NAME}_{stamp}.log"


def setup_logger(
    log_dir: Union[str, Path],
    debug: bool = False,
    console: Optional[Console] = None,
) -> logging.Logger:
    """Set up the console and file handlers and return the shared logger."""
    log_file = log_file_path(log_dir)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    # Remove any existing handlers
    for h in logger.handlers[:]:
        logger.removeHandler(h)
        h.close()

    console_handler = RichHandler(
        console=console or default_console, rich_tracebacks=True, show_path=False
    )
    console_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    logger.addHandler(console_handler)

    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT))
    logger.addHandler(file_handler)

    try:
        os.chmod(str(log_file), 0o600)
    except OSError as e:
        logger.warning(f"Could not set permissions on log file {log_file}: {e}")

    logger.debug(f"Logging to {log_file}")
    return logger


def get_logger() -> logging.Logger:
    return logging.getLogger(LOGGER_NAME)
