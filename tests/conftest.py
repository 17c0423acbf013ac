import os
import sqlite3

import pytest
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from dfbackup.core.format_config import (
    KEY_SIZE,
    LEGACY_IV_SIZE,
    LEGACY_SALT_SIZE,
    LEGACY_SCRYPT_N,
    LEGACY_SCRYPT_P,
    LEGACY_SCRYPT_R,
    SQLITE_SIGNATURE,
)


@pytest.fixture
def sqlite_payload():
    """Bytes that pass the database signature check, padded with noise."""
    def _make(size: int = 4096) -> bytes:
        return SQLITE_SIGNATURE + os.urandom(size - len(SQLITE_SIGNATURE))
    return _make


@pytest.fixture
def legacy_container():
    """Build a headerless scrypt + AES-256-CBC backup as older releases wrote them."""
    def _make(plaintext: bytes, password: str) -> bytes:
        salt = os.urandom(LEGACY_SALT_SIZE)
        iv = os.urandom(LEGACY_IV_SIZE)
        key = Scrypt(
            salt=salt, length=KEY_SIZE, n=LEGACY_SCRYPT_N, r=LEGACY_SCRYPT_R, p=LEGACY_SCRYPT_P
        ).derive(password.encode("utf-8"))
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(plaintext) + padder.finalize()
        encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
        return salt + iv + encryptor.update(padded) + encryptor.finalize()
    return _make


@pytest.fixture
def make_db():
    """Create a small real SQLite database holding the given patient names."""
    def _make(path, names) -> str:
        with sqlite3.connect(str(path)) as conn:
            conn.execute("CREATE TABLE patients (id INTEGER PRIMARY KEY, name TEXT NOT NULL)")
            conn.executemany("INSERT INTO patients (name) VALUES (?)", [(n,) for n in names])
        conn.close()
        return str(path)
    return _make


def read_names(path) -> list:
    conn = sqlite3.connect(str(path))
    try:
        return [row[0] for row in conn.execute("SELECT name FROM patients ORDER BY id")]
    finally:
        conn.close()


@pytest.fixture
def patient_names():
    return read_names
