"""Storage and cryptography core.

The public surface used by front ends:

- :class:`~terminal_vault.lib.manager.VaultManager` to create, unlock and save
- :func:`~terminal_vault.lib.passgen.generate_password`
- :mod:`~terminal_vault.lib.keystore` for the trusted revision and legacy key
"""
from .errors import (
	DecryptionError, EntryError, ExternalStoreError, FormatError, KeyDerivationError, LockActiveError,
	PassphrasePolicyError, PathValidationError, RollbackDetectedError, StorageError, VaultError,
)
from .keystore import KeyringStore, MemoryStore
from .lockout import AttemptTracker, LockoutController
from .manager import UnlockResult, VaultManager
from .models import Entry, Note, Vault
from .passgen import generate_password
from .paths import VaultPaths, select_base_dir

__all__ = [
	'DecryptionError', 'EntryError', 'ExternalStoreError', 'FormatError', 'KeyDerivationError', 'LockActiveError',
	'PassphrasePolicyError', 'PathValidationError', 'RollbackDetectedError', 'StorageError', 'VaultError',
	'KeyringStore', 'MemoryStore', 'AttemptTracker', 'LockoutController', 'UnlockResult', 'VaultManager',
	'Entry', 'Note', 'Vault', 'generate_password', 'VaultPaths', 'select_base_dir',
]
