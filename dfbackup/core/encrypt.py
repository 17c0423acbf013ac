import logging
from typing import Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt
from nacl.utils import random as nacl_random

from .container import (
    ContainerFormat,
    assemble,
    detect,
    has_sqlite_signature,
    slice_container,
    slice_legacy,
)
from .errors import CorruptedFileError, InvalidPasswordError, PasswordRequiredError
from .format_config import (
    MAGIC_HEADER,
    SALT_SIZE,
    IV_SIZE,
    TAG_SIZE,
    KEY_SIZE,
    PBKDF2_ITERATIONS,
    MIN_CONTAINER_SIZE,
    LEGACY_SALT_SIZE,
    LEGACY_SCRYPT_N,
    LEGACY_SCRYPT_R,
    LEGACY_SCRYPT_P,
    PROBE_SIZE,
    SQLITE_SIGNATURE,
)

logger = logging.getLogger(__name__)

Password = Union[str, bytes, bytearray]


def _password_bytes(password: Password) -> bytes:
    # No Unicode normalization: existing backups were keyed from raw UTF-8.
    if isinstance(password, str):
        return password.encode("utf-8")
    if isinstance(password, (bytes, bytearray)):
        return bytes(password)
    raise TypeError("password must be str, bytes, or bytearray")


def _require_password(password: Password) -> bytes:
    if password is None or len(password) == 0:
        raise PasswordRequiredError("Password is required")
    return _password_bytes(password)


def derive_key(password: Password, salt: bytes) -> bytes:
    """
    Derive the AES-256 key for a current-format container with PBKDF2-HMAC-SHA512.

    Recomputed for every operation; keys are never cached.
    """
    if not isinstance(salt, (bytes, bytearray)) or len(salt) != SALT_SIZE:
        raise ValueError(f"salt must be {SALT_SIZE} bytes")

    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA512(),
        length=KEY_SIZE,
        salt=bytes(salt),
        iterations=PBKDF2_ITERATIONS,
    )
    return kdf.derive(_password_bytes(password))


def derive_legacy_key(password: Password, salt: bytes) -> bytes:
    """Derive the AES-256-CBC key used by legacy backups (scrypt, fixed cost)."""
    if not isinstance(salt, (bytes, bytearray)) or len(salt) != LEGACY_SALT_SIZE:
        raise ValueError(f"legacy salt must be {LEGACY_SALT_SIZE} bytes")

    kdf = Scrypt(
        salt=bytes(salt),
        length=KEY_SIZE,
        n=LEGACY_SCRYPT_N,
        r=LEGACY_SCRYPT_R,
        p=LEGACY_SCRYPT_P,
    )
    return kdf.derive(_password_bytes(password))


def encrypt_bytes(plaintext: bytes, password: Password) -> bytes:
    """
    Encrypt ``plaintext`` with AES-256-GCM and return a complete container.

    Returns: magic(12) + salt(64) + iv(16) + ciphertext + tag(16)
    """
    password_bytes = _require_password(password)

    salt = nacl_random(SALT_SIZE)
    iv = nacl_random(IV_SIZE)
    key = derive_key(password_bytes, salt)

    sealed = AESGCM(key).encrypt(iv, bytes(plaintext), None)
    ciphertext, tag = sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]
    return assemble(MAGIC_HEADER, salt, iv, ciphertext, tag)


def _decrypt_current(data: bytes, password_bytes: bytes) -> bytes:
    container = slice_container(data)
    key = derive_key(password_bytes, container.salt)

    try:
        plaintext = AESGCM(key).decrypt(container.iv, container.ciphertext + container.tag, None)
    except InvalidTag as exc:
        logger.warning("Backup authentication failed")
        raise InvalidPasswordError("Decryption failed: wrong password or tampered backup") from exc
    except ValueError as exc:
        logger.warning("Backup decryption failed: %s", exc)
        raise CorruptedFileError("Backup file failed integrity checks") from exc

    # GCM accepted the key; a bad signature means the database was bad before encryption.
    if not has_sqlite_signature(plaintext):
        logger.warning("Authenticated backup does not contain a SQLite database")
        raise CorruptedFileError("Decrypted backup is not a valid database")
    return plaintext


def _decrypt_legacy(data: bytes, password_bytes: bytes) -> bytes:
    container = slice_legacy(data)
    key = derive_legacy_key(password_bytes, container.salt)

    # CBC cannot detect a wrong key; garbage or bad padding both mean a wrong password.
    try:
        decryptor = Cipher(algorithms.AES(key), modes.CBC(container.iv)).decryptor()
        padded = decryptor.update(container.ciphertext) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        plaintext = unpadder.update(padded) + unpadder.finalize()
    except ValueError as exc:
        logger.warning("Legacy backup decryption failed")
        raise InvalidPasswordError("Decryption failed: wrong password") from exc

    if not has_sqlite_signature(plaintext):
        logger.warning("Legacy backup signature mismatch")
        raise InvalidPasswordError("Decryption failed: wrong password")
    return plaintext


def decrypt_bytes(data: bytes, password: Password) -> bytes:
    """
    Decrypt a backup held in memory and return the database bytes.

    Raises:
        PasswordRequiredError: Empty password.
        CorruptedFileError: Too short for any container, or authenticated
            content that is not a database.
        InvalidPasswordError: Tag mismatch (current format) or signature
            mismatch (legacy format).
    """
    password_bytes = _require_password(password)

    if len(data) < MIN_CONTAINER_SIZE:
        logger.warning("Backup is %d bytes, below the %d byte minimum", len(data), MIN_CONTAINER_SIZE)
        raise CorruptedFileError("Backup file is too short or corrupted")

    if detect(data) == ContainerFormat.CURRENT:
        logger.debug("Magic header found, decrypting current-format container")
        return _decrypt_current(data, password_bytes)

    logger.warning("Header mismatch, trying legacy decrypt")
    return _decrypt_legacy(data, password_bytes)


def encrypt_backup(source_path: str, dest_path: str, password: Password) -> None:
    """Encrypt the database at ``source_path`` into a container at ``dest_path``."""
    password_bytes = _require_password(password)

    # Whole file in memory so the live database is never read mid-stream.
    with open(source_path, "rb") as f:
        plaintext = f.read()

    container = encrypt_bytes(plaintext, password_bytes)

    with open(dest_path, "wb") as f:
        f.write(container)
    logger.info("Encrypted backup written (%d bytes)", len(container))


def decrypt_backup(source_path: str, dest_path: str, password: Password) -> None:
    """Decrypt the container at ``source_path`` and write the database to ``dest_path``."""
    password_bytes = _require_password(password)

    with open(source_path, "rb") as f:
        data = f.read()

    plaintext = decrypt_bytes(data, password_bytes)

    with open(dest_path, "wb") as f:
        f.write(plaintext)
    logger.info("Backup decrypted (%d bytes)", len(plaintext))


def is_encrypted_file(path: str) -> bool:
    """
    Probe the first bytes of ``path`` without a password.

    Unknown content counts as encrypted; unreadable files count as not encrypted.
    """
    try:
        with open(path, "rb") as f:
            head = f.read(PROBE_SIZE)
    except OSError as exc:
        logger.debug("Encryption probe could not read %s: %s", path, exc)
        return False

    if detect(head) == ContainerFormat.CURRENT:
        return True
    if head == SQLITE_SIGNATURE:
        return False
    return True


def encrypt_file(source_path: str, dest_path: str, password: Password) -> None:
    return encrypt_backup(source_path, dest_path, password)


def decrypt_file(source_path: str, dest_path: str, password: Password) -> None:
    return decrypt_backup(source_path, dest_path, password)
