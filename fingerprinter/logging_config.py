import os
import logging


def setup_logger(name=None, level=None):
    """
    Set up logger with file and line number information.

    Args:
        name: Logger name (use __name__ to get module name)
        level: Logging level (DEBUG, INFO, WARNING, ERROR). Defaults to the
            LOG_LEVEL environment variable, or DEBUG when ENVIRONMENT=dev
            and LOG_LEVEL is unset.

    Returns:
        logger: Configured logger instance
    """
    if level is None:
        default = "DEBUG" if os.environ.get("ENVIRONMENT") == "dev" else "INFO"
        level = os.environ.get("LOG_LEVEL", default).upper()

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Prevent duplicate handlers
    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(filename)s:%(lineno)d  | %(levelname)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)
    logger.propagate = False

    return logger


def set_level(level, prefix="fingerprinter"):
    """
    Apply a level to every logger already set up under ``prefix``.

    Module loggers are created at import time, before the process config is
    read, so startup calls this once the configured level is known.
    """
    for name, logger in logging.root.manager.loggerDict.items():
        if not isinstance(logger, logging.Logger):
            continue
        if name == prefix or name.startswith(prefix + "."):
            logger.setLevel(level)
            for handler in logger.handlers:
                handler.setLevel(level)
