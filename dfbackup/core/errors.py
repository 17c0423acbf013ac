import sqlite3
from enum import Enum


class BackupErrorKind(Enum):
    USAGE_ERROR = "USAGE_ERROR"
    INVALID_PASSWORD = "INVALID_PASSWORD"
    CORRUPTED_FILE = "CORRUPTED_FILE"
    IO_ERROR = "IO_ERROR"


class BackupCryptoError(Exception):
    """Base class for classified backup failures."""

    kind: BackupErrorKind = BackupErrorKind.CORRUPTED_FILE

    def __init__(self, message: str = ""):
        super().__init__(message or self.kind.value)


class PasswordRequiredError(BackupCryptoError, ValueError):
    """Missing or empty password; raised before any file is touched."""

    kind = BackupErrorKind.USAGE_ERROR


class InvalidPasswordError(BackupCryptoError, ValueError):
    """The password did not recover the expected database content."""

    kind = BackupErrorKind.INVALID_PASSWORD


class CorruptedFileError(BackupCryptoError, ValueError):
    """The file cannot be a usable backup, whatever the password."""

    kind = BackupErrorKind.CORRUPTED_FILE


def error_kind(exc: BaseException) -> BackupErrorKind:
    """Map an exception raised by the backup engine to its error kind."""
    if isinstance(exc, BackupCryptoError):
        return exc.kind
    # Locked or unopenable databases are filesystem trouble, not bad backups.
    if isinstance(exc, (OSError, sqlite3.OperationalError)):
        return BackupErrorKind.IO_ERROR
    if isinstance(exc, (TypeError, ValueError)):
        return BackupErrorKind.USAGE_ERROR
    return BackupErrorKind.CORRUPTED_FILE
