from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Protocol, Union

logger = logging.getLogger(__name__)

Password = Union[str, bytes, bytearray]


class BackupTransformFn(Protocol):
    def __call__(self, source_path: str, dest_path: str, password: Password) -> None: ...


class CryptoService:
    """
    Awaitable front for the backup engine.

    Each call runs on its own worker thread via asyncio.to_thread. Calls share
    no state and run to completion once started.
    """

    def __init__(self):
        self._encrypt_backup: Optional[BackupTransformFn] = None
        self._decrypt_backup: Optional[BackupTransformFn] = None
        self._is_encrypted_file: Optional[Callable[[str], bool]] = None

    def _ensure_engine(self) -> None:
        if self._encrypt_backup is not None and self._decrypt_backup is not None and self._is_encrypted_file is not None:
            return
        from .encrypt import decrypt_backup, encrypt_backup, is_encrypted_file

        self._encrypt_backup = encrypt_backup
        self._decrypt_backup = decrypt_backup
        self._is_encrypted_file = is_encrypted_file

    async def encrypt_backup(self, source_path: str, dest_path: str, password: Password) -> None:
        self._ensure_engine()
        assert self._encrypt_backup is not None
        await asyncio.to_thread(self._encrypt_backup, source_path, dest_path, password)

    async def decrypt_backup(self, source_path: str, dest_path: str, password: Password) -> None:
        self._ensure_engine()
        assert self._decrypt_backup is not None
        await asyncio.to_thread(self._decrypt_backup, source_path, dest_path, password)

    async def is_encrypted_file(self, path: str) -> bool:
        self._ensure_engine()
        assert self._is_encrypted_file is not None
        return await asyncio.to_thread(self._is_encrypted_file, path)

    async def save_local_backup_binary(self, data: bytes, output_path: str) -> None:
        """Write an unencrypted backup blob as-is."""
        await asyncio.to_thread(_write_bytes, output_path, bytes(data))

    async def load_local_backup_binary(self, input_path: str) -> bytes:
        return await asyncio.to_thread(_read_bytes, input_path)

    async def encrypt_file(self, source_path: str, dest_path: str, password: Password) -> None:
        await self.encrypt_backup(source_path, dest_path, password)

    async def decrypt_file(self, source_path: str, dest_path: str, password: Password) -> None:
        await self.decrypt_backup(source_path, dest_path, password)


def _write_bytes(path: str, data: bytes) -> None:
    with open(path, "wb") as f:
        f.write(data)
    logger.debug("Wrote %d byte unencrypted backup", len(data))


def _read_bytes(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


crypto_service = CryptoService()
