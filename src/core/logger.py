"""
Process logger: console at INFO, plus debug.log and info.log files
"""
import logging
import os
from pathlib import Path

LOG_DIR = Path(os.getenv("LOG_DIR", Path(__file__).resolve().parent.parent.parent / "logs"))
LOG_FORMAT = "%(asctime)s [%(levelname)s]: %(message)s "


def build_logger(name: str, log_dir: Path) -> logging.Logger:
    built = logging.getLogger(name)
    if built.handlers:
        # already configured by an earlier import
        return built

    log_dir.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(LOG_FORMAT)
    built.setLevel(logging.DEBUG)

    for handler, level in (
        (logging.FileHandler(log_dir / "debug.log", encoding="utf-8"), logging.DEBUG),
        (logging.FileHandler(log_dir / "info.log", encoding="utf-8"), logging.INFO),
        (logging.StreamHandler(), logging.INFO),
    ):
        handler.setLevel(level)
        handler.setFormatter(formatter)
        built.addHandler(handler)
    return built


logger = build_logger("pages_task_builder", LOG_DIR)
