import logging
import os

import pytest

from dfbackup.core.encrypt import decrypt_bytes
from dfbackup.core.errors import InvalidPasswordError
from dfbackup.utils.logger import LOG_FILE_NAME, PACKAGE_LOGGER, configure_logging


@pytest.fixture
def package_logger():
    yield
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


def _log_text(log_dir) -> str:
    for handler in logging.getLogger(PACKAGE_LOGGER).handlers:
        handler.flush()
    return (log_dir / LOG_FILE_NAME).read_text(encoding="utf-8")


def test_legacy_fallback_warning_reaches_log_file(tmp_path, package_logger):
    configure_logging(False, log_dir=tmp_path)

    with pytest.raises(InvalidPasswordError):
        decrypt_bytes(os.urandom(256), "hunter2")

    content = _log_text(tmp_path)
    assert "dfbackup.core.encrypt - WARNING - Header mismatch, trying legacy decrypt" in content
    assert "hunter2" not in content


def test_non_debug_drops_info_records(tmp_path, package_logger):
    configure_logging(False, log_dir=tmp_path)
    logging.getLogger("dfbackup.core.backup_service").info("info-from-test")

    assert "info-from-test" not in _log_text(tmp_path)


def test_reconfigure_replaces_handlers_and_leaves_root_alone(tmp_path, package_logger):
    root_handlers = list(logging.getLogger().handlers)

    configure_logging(True, log_dir=tmp_path / "first")
    logger = configure_logging(True, log_dir=tmp_path / "second")

    file_handlers = [h for h in logger.handlers if isinstance(h, logging.FileHandler)]
    assert len(file_handlers) == 1
    assert file_handlers[0].baseFilename == str(tmp_path / "second" / LOG_FILE_NAME)
    assert logging.getLogger().handlers == root_handlers
