"""Exception hierarchy shared by the storage and crypto layers."""
from __future__ import annotations

GENERIC_DECRYPT_MESSAGE = 'Decryption failed: wrong key or corrupted data'

class VaultError(Exception):
	"""Base class for every error raised by terminal_vault."""

class KeyDerivationError(VaultError): ...
class FormatError(VaultError): ...
class PathValidationError(VaultError): ...
class StorageError(VaultError): ...
class EntryError(VaultError): ...
class PassphrasePolicyError(VaultError): ...

class DecryptionError(VaultError):
	"""Authentication failure. Always carries the same message, whatever the cause."""
	def __init__(self, message: str = GENERIC_DECRYPT_MESSAGE):
		super().__init__(message)

class RollbackDetectedError(VaultError):
	def __init__(self, loaded: int, trusted: int):
		super().__init__(f'Vault rollback detected (loaded revision {loaded} is older than trusted revision {trusted})')
		self.loaded = loaded
		self.trusted = trusted

class LockActiveError(VaultError):
	def __init__(self, unlock_at: int, remaining: int):
		super().__init__(f'Vault is locked due to failed attempts. Try again in {remaining} seconds.')
		self.unlock_at = unlock_at
		self.remaining = remaining

class ExternalStoreError(VaultError):
	"""The OS secret store failed for a reason other than a missing entry."""
