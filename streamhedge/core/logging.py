"""
Logging setup.

``config/logging.yaml`` is applied with dictConfig when present. Without it
everything goes to stdout in the same pipe-separated layout, with the HTTP
and scheduler libraries held at WARNING so a poll loop stays readable.
"""

import logging
import logging.config
import os
import sys
from pathlib import Path
from typing import Optional

import yaml

ROOT_LOGGER = "streamhedge"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
NOISY_LIBRARIES = ("httpx", "httpcore", "apscheduler")


def _default_config_path() -> Optional[Path]:
    for parent in Path(__file__).resolve().parents:
        if (parent / "pyproject.toml").exists():
            return parent / "config" / "logging.yaml"
    return None


def setup_logging(
    config_path: Optional[str] = None,
    log_level: Optional[str] = None,
) -> None:
    """
    Configure the ``streamhedge`` logger tree.

    Args:
        config_path: dictConfig YAML. Defaults to config/logging.yaml at the project root.
        log_level: Level for the package loggers; falls back to $LOG_LEVEL, then INFO.
    """
    level_name = (log_level or os.getenv("LOG_LEVEL") or "INFO").upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO

    path = Path(config_path) if config_path else _default_config_path()
    if path is not None and path.exists():
        with open(path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}
        # RotatingFileHandler will not create its directory
        for handler in config.get("handlers", {}).values():
            filename = handler.get("filename")
            if filename:
                Path(filename).parent.mkdir(parents=True, exist_ok=True)
        logging.config.dictConfig(config)
    else:
        logging.basicConfig(
            level=level,
            format=LOG_FORMAT,
            datefmt="%Y-%m-%d %H:%M:%S",
            stream=sys.stdout,
        )
        for name in NOISY_LIBRARIES:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(ROOT_LOGGER).setLevel(level)


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``streamhedge.`` namespace."""
    if name != ROOT_LOGGER and not name.startswith(f"{ROOT_LOGGER}."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


class LoggerMixin:
    """Adds ``self.logger`` named after the concrete class."""

    @property
    def logger(self) -> logging.Logger:
        logger = self.__dict__.get("_logger")
        if logger is None:
            logger = get_logger(type(self).__name__)
            self._logger = logger
        return logger
