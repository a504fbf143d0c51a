"""Project configuration settings.

Constants shared by the storage, crypto and CLI layers. The user-chosen
storage directory is not configured here; it lives in ``config.json`` and is
validated by :mod:`terminal_vault.lib.paths` every time it is read.
"""

import os

# Key derivation (Argon2id). Stored in every wrapped file so costs can grow later.
KDF_MEMORY_COST = 19 * 1024  # KiB
KDF_TIME_COST = 2
KDF_PARALLELISM = 1
KDF_SALT_LENGTH = 16
KEY_LENGTH = 32  # 256-bit KEK / DEK
NONCE_LENGTH = 12  # 96-bit AEAD nonce

# On-disk format
VAULT_FORMAT_VERSION = 2
VAULT_DIR_NAME = ".terminal-vault"
VAULT_FILE = "vault.json"
META_FILE = "meta.json"
LOCK_FILE = "lock.json"
CONFIG_FILE = "config.json"
FILE_MODE = 0o600
DIR_MODE = 0o700

# External secret store (OS keyring)
KEYRING_SERVICE = "terminal-vault"
KEYRING_LEGACY_KEY_USER = "vault-key"
KEYRING_REVISION_USER = "vault-revision"

# Brute-force lockout
MAX_ATTEMPTS = 3
LOCK_SECONDS = 120

# Password generator (visually ambiguous characters left out)
PASSWORD_DEFAULT_LENGTH = 20
PASSWORD_MIN_LENGTH = 12
PASSWORD_UPPER = "ABCDEFGHJKLMNPQRSTUVWXYZ"
PASSWORD_LOWER = "abcdefghijkmnopqrstuvwxyz"
PASSWORD_DIGITS = "23456789"
PASSWORD_SPECIAL = "!@#$%^&*()-_=+[]{};:,.?"

# Master passphrase policy
MASTER_MIN_LENGTH = 8

# Revision counter is an unsigned 64-bit value in the file format
MAX_REVISION = 2 ** 64 - 1

# Logging
LOG_LEVEL = os.environ.get("TERMINAL_VAULT_LOG_LEVEL", "WARNING").upper()
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

__all__ = [
	'KDF_MEMORY_COST', 'KDF_TIME_COST', 'KDF_PARALLELISM', 'KDF_SALT_LENGTH', 'KEY_LENGTH', 'NONCE_LENGTH',
	'VAULT_FORMAT_VERSION', 'VAULT_DIR_NAME', 'VAULT_FILE', 'META_FILE', 'LOCK_FILE', 'CONFIG_FILE',
	'FILE_MODE', 'DIR_MODE', 'KEYRING_SERVICE', 'KEYRING_LEGACY_KEY_USER', 'KEYRING_REVISION_USER',
	'MAX_ATTEMPTS', 'LOCK_SECONDS', 'PASSWORD_DEFAULT_LENGTH', 'PASSWORD_MIN_LENGTH', 'PASSWORD_UPPER',
	'PASSWORD_LOWER', 'PASSWORD_DIGITS', 'PASSWORD_SPECIAL', 'MASTER_MIN_LENGTH', 'MAX_REVISION',
	'LOG_LEVEL', 'LOG_FORMAT'
]
