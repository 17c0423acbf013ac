"""
Byte layout of backup containers.

Pure offset arithmetic: nothing here touches the filesystem or a cipher.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .errors import CorruptedFileError
from .format_config import (
    MAGIC_HEADER,
    MAGIC_SIZE,
    SALT_SIZE,
    IV_SIZE,
    TAG_SIZE,
    SALT_OFFSET,
    IV_OFFSET,
    CIPHERTEXT_OFFSET,
    MIN_CONTAINER_SIZE,
    LEGACY_SALT_SIZE,
    LEGACY_HEADER_SIZE,
    SQLITE_SIGNATURE,
    SQLITE_SIGNATURE_SIZE,
)


class ContainerFormat(Enum):
    CURRENT = "current"
    LEGACY_OR_UNKNOWN = "legacy_or_unknown"


@dataclass(frozen=True)
class BackupContainer:
    salt: bytes
    iv: bytes
    ciphertext: bytes
    tag: bytes


@dataclass(frozen=True)
class LegacyContainer:
    salt: bytes
    iv: bytes
    ciphertext: bytes


def assemble(magic: bytes, salt: bytes, iv: bytes, ciphertext: bytes, tag: bytes) -> bytes:
    """Concatenate the fields of a current-format container in file order."""
    if len(magic) != MAGIC_SIZE:
        raise ValueError(f"magic must be {MAGIC_SIZE} bytes")
    if len(salt) != SALT_SIZE:
        raise ValueError(f"salt must be {SALT_SIZE} bytes")
    if len(iv) != IV_SIZE:
        raise ValueError(f"iv must be {IV_SIZE} bytes")
    if len(tag) != TAG_SIZE:
        raise ValueError(f"tag must be {TAG_SIZE} bytes")
    return b"".join((magic, salt, iv, ciphertext, tag))


def detect(data: bytes) -> ContainerFormat:
    """
    Report whether ``data`` starts with the current-format magic header.

    Only an exact match of all 12 header bytes counts; legacy files, plain
    databases and random bytes all land in LEGACY_OR_UNKNOWN.
    """
    if bytes(data[:MAGIC_SIZE]) == MAGIC_HEADER:
        return ContainerFormat.CURRENT
    return ContainerFormat.LEGACY_OR_UNKNOWN


def slice_container(data: bytes) -> BackupContainer:
    if len(data) < MIN_CONTAINER_SIZE:
        raise CorruptedFileError("Backup file is too short to be a valid container")

    tag_start = len(data) - TAG_SIZE
    return BackupContainer(
        salt=bytes(data[SALT_OFFSET:IV_OFFSET]),
        iv=bytes(data[IV_OFFSET:CIPHERTEXT_OFFSET]),
        ciphertext=bytes(data[CIPHERTEXT_OFFSET:tag_start]),
        tag=bytes(data[tag_start:]),
    )


def slice_legacy(data: bytes) -> LegacyContainer:
    if len(data) < LEGACY_HEADER_SIZE:
        raise CorruptedFileError("Backup file is too short to be a legacy container")

    return LegacyContainer(
        salt=bytes(data[:LEGACY_SALT_SIZE]),
        iv=bytes(data[LEGACY_SALT_SIZE:LEGACY_HEADER_SIZE]),
        ciphertext=bytes(data[LEGACY_HEADER_SIZE:]),
    )


def has_sqlite_signature(data: bytes) -> bool:
    return bytes(data[:SQLITE_SIGNATURE_SIZE]) == SQLITE_SIGNATURE
