"""
File format configuration for Dental Flow encrypted backups.

Current layout (version 1):
  - magic header (12 bytes, ASCII "DF_BACKUP_v1")
  - salt (64 bytes, PBKDF2-SHA512 input)
  - iv (16 bytes, AES-256-GCM nonce)
  - ciphertext (same length as the database file)
  - tag (16 bytes, GCM authentication tag)

Legacy layout (no header, no tag):
  - salt (16 bytes, scrypt input)
  - iv (16 bytes, AES-256-CBC IV)
  - ciphertext (PKCS#7 padded)
"""

MAGIC_HEADER = b"DF_BACKUP_v1"
MAGIC_SIZE = len(MAGIC_HEADER)

SALT_SIZE = 64
IV_SIZE = 16
TAG_SIZE = 16
KEY_SIZE = 32

PBKDF2_ITERATIONS = 100_000

SALT_OFFSET = MAGIC_SIZE
IV_OFFSET = SALT_OFFSET + SALT_SIZE
CIPHERTEXT_OFFSET = IV_OFFSET + IV_SIZE

MIN_CONTAINER_SIZE = MAGIC_SIZE + SALT_SIZE + IV_SIZE + TAG_SIZE

LEGACY_SALT_SIZE = 16
LEGACY_IV_SIZE = 16
LEGACY_HEADER_SIZE = LEGACY_SALT_SIZE + LEGACY_IV_SIZE

# Node's crypto.scryptSync defaults, which produced every legacy backup.
LEGACY_SCRYPT_N = 16384
LEGACY_SCRYPT_R = 8
LEGACY_SCRYPT_P = 1

# The host database engine's own file header.
SQLITE_SIGNATURE = b"SQLite format 3\x00"
SQLITE_SIGNATURE_SIZE = len(SQLITE_SIGNATURE)

PROBE_SIZE = 16
