import logging
import os
from logging.handlers import RotatingFileHandler

LOG_FORMAT = "%(asctime)s %(levelname)s: %(message)s"


def _log_level() -> int:
    name = os.environ.get("HTTPECHO_LOG_LEVEL", "INFO").strip().upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def get_logger(name: str = "httpecho") -> logging.Logger:
    """
    Logger shared by every listener. Writes to stderr, and also to
    HTTPECHO_LOG_FILE (rotated) when that variable is set.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger
    logger.setLevel(_log_level())
    fmt = logging.Formatter(LOG_FORMAT)
    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    log_path = os.environ.get("HTTPECHO_LOG_FILE", "").strip()
    if log_path:
        log_dir = os.path.dirname(os.path.abspath(log_path))
        os.makedirs(log_dir, exist_ok=True)
        fh = RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=3)
        fh.setFormatter(fmt)
        logger.addHandler(fh)
    return logger
