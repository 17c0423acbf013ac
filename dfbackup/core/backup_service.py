"""Local backup and restore of the clinic database.

Backups are timestamped copies named ``dental_backup_<timestamp>.db`` or, when
a password is supplied, ``dental_backup_<timestamp>.db.enc`` containers
produced by :mod:`dfbackup.core.encrypt`. Only the newest
``backup_retention_count`` files are kept in the backup directory.

Restores probe the file, decrypt it when needed, check the database integrity,
keep an ``auto_recovery.db`` copy of the live database and roll back to it if
replacing the live file fails.
"""

from __future__ import annotations

import logging
import os
import shutil
import sqlite3
import tempfile
from contextlib import closing
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional
from uuid import uuid4

from .container import has_sqlite_signature
from .encrypt import Password, decrypt_backup, encrypt_backup, is_encrypted_file
from .errors import (
    BackupCryptoError,
    BackupErrorKind,
    CorruptedFileError,
    PasswordRequiredError,
    error_kind,
)
from .format_config import SQLITE_SIGNATURE_SIZE
from ..utils.preferences import Preferences

logger = logging.getLogger(__name__)

BACKUP_PREFIX = "dental_backup_"
BACKUP_SUFFIXES = (".db", ".enc")
ENCRYPTED_SUFFIX = ".enc"
RECOVERY_FILE_NAME = "auto_recovery.db"
PASSWORD_REQUIRED_MESSAGE = "SECURITY_PASSWORD_REQUIRED"


@dataclass(frozen=True)
class BackupResult:
    success: bool
    path: Optional[str] = None
    encrypted: bool = False
    timestamp: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[BackupErrorKind] = None


@dataclass(frozen=True)
class RestoreResult:
    success: bool
    error: Optional[str] = None
    error_kind: Optional[BackupErrorKind] = None


class BackupService:
    """Create, prune and restore local backups of one SQLite database.

    Args:
        db_path: The live database file.
        temp_dir: Scratch directory for snapshots (default: system temp).
        preferences: Backup directory and retention settings.
        before_replace: Called before the live database is overwritten, e.g.
            to close open connections.
        after_replace: Called after the live database was overwritten.
    """

    def __init__(
        self,
        db_path: str,
        temp_dir: Optional[str] = None,
        preferences: Optional[Preferences] = None,
        before_replace: Optional[Callable[[], None]] = None,
        after_replace: Optional[Callable[[], None]] = None,
    ):
        self.db_path = str(db_path)
        self.temp_dir = str(temp_dir) if temp_dir else tempfile.gettempdir()
        if preferences is None:
            preferences = Preferences()
            preferences.load_preferences()
        self.preferences = preferences
        self._before_replace = before_replace
        self._after_replace = after_replace

    # ── Backup ───────────────────────────────────────────────────────

    def perform_backup(self, password: Optional[Password] = None, backup_dir: Optional[str] = None) -> BackupResult:
        now = datetime.now(timezone.utc)
        stamp = now.isoformat().replace(":", "-").replace(".", "-").replace("+", "_")
        encrypted = bool(password)
        scratch_dir: Optional[str] = None

        logger.info("Starting local backup")
        try:
            target_dir = backup_dir or self.preferences.local_backup_path
            if not target_dir or not os.path.isdir(target_dir):
                raise FileNotFoundError(f"Backup directory not found: {target_dir}")

            # Own scratch directory: target_dir may be temp_dir itself.
            scratch_dir = tempfile.mkdtemp(prefix="dfbackup_", dir=self.temp_dir)
            process_path = os.path.join(scratch_dir, f"{BACKUP_PREFIX}{stamp}.db")
            self._snapshot(process_path)

            if encrypted:
                if not self.verify_database_integrity(process_path):
                    raise CorruptedFileError("Database dump failed integrity check")
                encrypted_path = process_path + ENCRYPTED_SUFFIX
                encrypt_backup(process_path, encrypted_path, password)
                os.remove(process_path)
                process_path = encrypted_path

            final_path = os.path.join(target_dir, os.path.basename(process_path))
            shutil.copyfile(process_path, final_path)
        except (BackupCryptoError, OSError, sqlite3.Error) as e:
            logger.error("Backup failed: %s", e)
            return BackupResult(success=False, error=str(e), error_kind=error_kind(e))
        finally:
            if scratch_dir is not None:
                shutil.rmtree(scratch_dir, ignore_errors=True)

        try:
            self.prune_local_backups(target_dir)
        except OSError as e:
            logger.warning("Failed to prune local backups: %s", e)

        self.preferences.last_backup_timestamp = now.isoformat()
        try:
            self.preferences.save_preferences()
        except OSError as e:
            logger.warning("Could not record last backup time: %s", e)

        logger.info("Local backup written to %s", final_path)
        return BackupResult(success=True, path=final_path, encrypted=encrypted, timestamp=now.isoformat())

    def _snapshot(self, dest_path: str) -> None:
        # sqlite3.connect would silently create a missing database.
        if not os.path.exists(self.db_path):
            raise FileNotFoundError(f"Database file not found: {self.db_path}")
        with closing(sqlite3.connect(self.db_path)) as source, closing(sqlite3.connect(dest_path)) as target:
            source.backup(target)

    def prune_local_backups(self, directory: str) -> List[str]:
        """Delete all but the newest backups in ``directory``; return deleted names."""
        keep = max(1, int(self.preferences.backup_retention_count))
        entries = []
        for name in os.listdir(directory):
            if name.startswith(BACKUP_PREFIX) and name.endswith(BACKUP_SUFFIXES):
                entries.append((os.path.getmtime(os.path.join(directory, name)), name))
        entries.sort(reverse=True)

        deleted = []
        for _, name in entries[keep:]:
            os.remove(os.path.join(directory, name))
            deleted.append(name)
        if deleted:
            logger.info("Pruned %d old local backups", len(deleted))
        return deleted

    # ── Restore ──────────────────────────────────────────────────────

    def restore_from_local_file(self, file_path: str, password: Optional[Password] = None) -> RestoreResult:
        decrypted_path: Optional[str] = None
        recovery_path: Optional[str] = None

        try:
            if not os.path.exists(file_path):
                raise FileNotFoundError("File not found")

            encrypted = is_encrypted_file(file_path)
            if encrypted and not password:
                raise PasswordRequiredError(PASSWORD_REQUIRED_MESSAGE)

            candidate_path = file_path
            if encrypted:
                decrypted_path = os.path.join(self.temp_dir, f"restore_local_decrypted_{uuid4().hex[:12]}.db")
                decrypt_backup(file_path, decrypted_path, password)
                candidate_path = decrypted_path

            logger.info("Verifying integrity of restored database")
            if not self.verify_database_integrity(candidate_path):
                raise CorruptedFileError()

            if os.path.exists(self.db_path):
                recovery_path = os.path.join(os.path.dirname(os.path.abspath(self.db_path)), RECOVERY_FILE_NAME)
                try:
                    shutil.copyfile(self.db_path, recovery_path)
                except OSError as e:
                    logger.warning("Failed to create auto-recovery copy: %s", e)
                    recovery_path = None

            if self._before_replace is not None:
                self._before_replace()
            shutil.copyfile(candidate_path, self.db_path)
            logger.info("Live database replaced from backup")
            if self._after_replace is not None:
                self._after_replace()

            return RestoreResult(success=True)
        except (BackupCryptoError, OSError, sqlite3.Error) as e:
            logger.error("Local restore failed: %s", e)
            if recovery_path and os.path.exists(recovery_path):
                self.rollback_database(recovery_path)
            return RestoreResult(success=False, error=str(e), error_kind=error_kind(e))
        finally:
            if decrypted_path:
                _remove_quietly(decrypted_path)

    def rollback_database(self, recovery_path: str) -> bool:
        logger.warning("Rolling back live database from %s", recovery_path)
        try:
            shutil.copyfile(recovery_path, self.db_path)
        except OSError as e:
            logger.critical("Rollback failed: %s", e)
            return False
        return True

    # ── Integrity ────────────────────────────────────────────────────

    @staticmethod
    def verify_database_integrity(path: str) -> bool:
        try:
            with open(path, "rb") as f:
                header = f.read(SQLITE_SIGNATURE_SIZE)
        except OSError as e:
            logger.warning("Integrity check could not read %s: %s", path, e)
            return False
        if not has_sqlite_signature(header):
            return False
        uri = Path(path).resolve().as_uri() + "?mode=ro"
        try:
            with closing(sqlite3.connect(uri, uri=True)) as conn:
                row = conn.execute("PRAGMA integrity_check").fetchone()
        except sqlite3.Error as e:
            logger.warning("Integrity check failed for %s: %s", path, e)
            return False
        return row is not None and row[0] == "ok"


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Could not remove temporary file %s: %s", path, e)
