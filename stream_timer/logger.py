import logging
import os
from logging.handlers import RotatingFileHandler

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s:%(filename)s:%(lineno)d] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_logger(
        name="stream_timer",
        level=logging.INFO,
        log_dir=None,
        max_bytes=5 * 1024 * 1024,
        backup_count=5,
        console=True,
) -> logging.Logger:
    """Configures the package logger once. Calling it again only adjusts the level."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logger = logging.getLogger(name)
    logger.setLevel(level)

    fmt = logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT)

    # Rotating file handler, only when a directory is given
    file_handler_name = f"{name}:file"
    if log_dir and not any(h.get_name() == file_handler_name for h in logger.handlers):
        os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            filename=os.path.join(log_dir, f"{name}.log"),
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
            delay=True,
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(fmt)
        file_handler.set_name(file_handler_name)
        logger.addHandler(file_handler)

    console_handler_name = f"{name}:console"
    if console and not any(h.get_name() == console_handler_name for h in logger.handlers):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(fmt)
        console_handler.set_name(console_handler_name)
        logger.addHandler(console_handler)

    for handler in logger.handlers:
        handler.setLevel(level)

    return logger
