"""Logging utilities."""
from __future__ import annotations

import logging.config
from pathlib import Path

import yaml


def configure_logging(config_path: Path | str | None = None, *, level: int = logging.INFO) -> None:
    """Configure logging from a YAML ``dictConfig`` file if one is given and present."""
    path = Path(config_path) if config_path is not None else None
    if path is not None and path.exists():
        with path.open("r", encoding="utf-8") as config_file:
            logging.config.dictConfig(yaml.safe_load(config_file))
    else:
        logging.basicConfig(level=level)


__all__ = ["configure_logging"]
