import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from config.settings import settings

logging.captureWarnings(True)

TEXT_FMT = "%(asctime)s %(levelname)s %(name)s - %(message)s"
DATE_FMT = "%Y-%m-%dT%H:%M:%S%z"

# Libraries that log every request at INFO
_NOISY = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "uvicorn.error": logging.INFO,
    "uvicorn.access": logging.INFO,
}


class ColoredFormatter(logging.Formatter):
    COLORS = {
        "DEBUG": "\033[37m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[41m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        # Colorize a copy so file handlers sharing the record keep plain names
        colored = logging.makeLogRecord(record.__dict__)
        lvl = colored.levelname
        colored.levelname = f"{self.COLORS.get(lvl, self.RESET)}{lvl}{self.RESET}"
        return super().format(colored)


def _console_handler(level: int) -> logging.Handler:
    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(level)
    ch.setFormatter(ColoredFormatter(TEXT_FMT, datefmt=DATE_FMT))
    return ch


def _file_handler(level: int) -> logging.Handler:
    os.makedirs(settings.LOG_DIR, exist_ok=True)
    fh = RotatingFileHandler(
        os.path.join(settings.LOG_DIR, settings.LOG_FILE_NAME),
        maxBytes=settings.LOG_MAX_BYTES,
        backupCount=settings.LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    fh.setLevel(level)
    fh.setFormatter(logging.Formatter(TEXT_FMT, datefmt=DATE_FMT))
    return fh


def init_logger() -> logging.Logger:
    """
    Idempotent logger init:
    - Always logs to stdout with colored level names.
    - Adds a size-rotated file under LOG_DIR when LOG_TO_FILE is set.
    - Respects LOG_LEVEL for the root logger and every handler.
    """
    root = logging.getLogger()
    if getattr(root, "_cltconsult_inited", False):
        return logging.getLogger(settings.LOGGER_NAME)

    level = getattr(logging, (settings.LOG_LEVEL or "INFO").upper(), logging.INFO)
    root.setLevel(level)

    for h in list(root.handlers):
        root.removeHandler(h)

    root.addHandler(_console_handler(level))
    if settings.LOG_TO_FILE:
        root.addHandler(_file_handler(level))

    for name, lvl in _NOISY.items():
        logging.getLogger(name).setLevel(lvl)

    root._cltconsult_inited = True  # type: ignore[attr-defined]
    logger = logging.getLogger(settings.LOGGER_NAME)
    logger.debug("logger.init level=%s file=%s", logging.getLevelName(level), settings.LOG_TO_FILE)
    return logger
