import logging
import os
import platform
from pathlib import Path
from typing import Optional


PACKAGE_LOGGER = "dfbackup"
LOG_FILE_NAME = "dfbackup.log"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def default_log_dir() -> Path:
    if os.name == "nt":
        base = os.getenv("APPDATA") or str(Path.home())
        return Path(base) / "DentalFlow" / "logs"
    if platform.system() == "Darwin":
        return Path.home() / "Library" / "Application Support" / "DentalFlow" / "logs"
    return Path.home() / ".local" / "share" / "dfbackup" / "logs"


def configure_logging(debug: bool = False, log_dir: Optional[Path] = None) -> logging.Logger:
    """
    Route the backup engine's log records to ``dfbackup.log``.

    Only the ``dfbackup`` logger is touched, so the host application's own
    logging setup stays as it is. Calling this again replaces the handlers
    installed by the previous call. Outside debug mode only warnings and
    errors are kept (legacy fallbacks, classified decrypt failures).
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    level = logging.DEBUG if debug else logging.WARNING
    logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT)

    if debug:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    target_dir = Path(log_dir) if log_dir else default_log_dir()
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
    except OSError:
        if not logger.handlers:
            logger.addHandler(logging.NullHandler())
        return logger

    file_handler = logging.FileHandler(target_dir / LOG_FILE_NAME, encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)
    return logger
