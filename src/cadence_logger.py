import logging
from os import getenv, path, makedirs
from typing import Optional, TextIO

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL: str = getenv("LOG_LEVEL", "INFO")
LOG_FILE: str = getenv("LOG_FILE", path.join("logs", "logs.txt"))

_formatter: logging.Formatter = logging.Formatter(
    "%(asctime)s %(levelname)-8s %(name)s.%(funcName)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

# Every logger writes to the same file, so the handler is opened once.
_file_handler: Optional[logging.FileHandler] = None


def _shared_file_handler() -> logging.FileHandler:
    global _file_handler

    if _file_handler is None:
        log_dir: str = path.dirname(LOG_FILE)
        if log_dir:
            makedirs(log_dir, exist_ok=True)

        _file_handler = logging.FileHandler(
            filename=LOG_FILE, encoding="utf-8", mode="a"
        )
        _file_handler.setFormatter(_formatter)

    return _file_handler


def Logger(name: str) -> logging.Logger:
    logger: logging.Logger = logging.getLogger(name)

    if not logger.handlers:
        console_handler: logging.StreamHandler[TextIO] = logging.StreamHandler()
        console_handler.setFormatter(_formatter)

        logger.addHandler(console_handler)
        logger.addHandler(_shared_file_handler())
        logger.propagate = False

    log_level = logging.getLevelName(LOG_LEVEL.upper())
    logger.setLevel(log_level if isinstance(log_level, int) else logging.INFO)

    return logger
