from __future__ import annotations

import logging

from .config import LoggingConfig

LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(cfg: LoggingConfig | None = None) -> None:
    """Configure root logging; adds a file handler under base_dir when enabled."""
    cfg = cfg or LoggingConfig()
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if cfg.to_file:
        cfg.base_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(cfg.log_file, encoding="utf-8"))

    logging.basicConfig(
        level=cfg.level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=handlers,
        force=True,
    )
    # aiohttp access noise
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
