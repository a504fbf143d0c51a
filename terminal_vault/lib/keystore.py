"""External secret store: the trust anchor that a copied vault file cannot forge.

Two values live there, under the ``terminal-vault`` service:

- ``vault-revision``: decimal trusted revision counter (only ever raised).
- ``vault-key``: base64 256-bit key of the oldest single-layer scheme, read
  only as a first decryption attempt for legacy files.

Stores implement ``load(key) -> Optional[str]`` (``None`` when absent) and
``store(key, value)``; failures other than absence raise
:class:`ExternalStoreError`.
"""
from __future__ import annotations
import base64, binascii
from typing import Dict, Optional, Protocol
import keyring
from keyring.errors import KeyringError
from ..config.settings import KEY_LENGTH, KEYRING_LEGACY_KEY_USER, KEYRING_REVISION_USER, KEYRING_SERVICE, MAX_REVISION
from .errors import ExternalStoreError
from .memory import SecretBuffer


class SecretStore(Protocol):
	def load(self, key: str) -> Optional[str]: ...
	def store(self, key: str, value: str) -> None: ...


class KeyringStore:
	"""OS keychain via the ``keyring`` package."""

	def __init__(self, service: str = KEYRING_SERVICE):
		self.service = service

	def load(self, key: str) -> Optional[str]:
		try:
			return keyring.get_password(self.service, key)
		except KeyringError as e:
			raise ExternalStoreError(f'Keyring read error: {e}') from e

	def store(self, key: str, value: str) -> None:
		try:
			keyring.set_password(self.service, key, value)
		except KeyringError as e:
			raise ExternalStoreError(f'Keyring write error: {e}') from e


class MemoryStore:
	"""In-process store for tests and dry runs."""

	def __init__(self, initial: Optional[Dict[str, str]] = None):
		self.values: Dict[str, str] = dict(initial or {})

	def load(self, key: str) -> Optional[str]:
		return self.values.get(key)

	def store(self, key: str, value: str) -> None:
		self.values[key] = value


def load_trusted_revision(store: SecretStore) -> Optional[int]:
	raw = store.load(KEYRING_REVISION_USER)
	if raw is None:
		return None
	try:
		value = int(raw.strip())
	except ValueError as e:
		raise ExternalStoreError(f'Invalid trusted revision in keyring: {raw!r}') from e
	if not 0 <= value <= MAX_REVISION:
		raise ExternalStoreError(f'Invalid trusted revision in keyring: {raw!r}')
	return value

def store_trusted_revision(store: SecretStore, revision: int) -> None:
	store.store(KEYRING_REVISION_USER, str(revision))

def load_legacy_key(store: SecretStore) -> Optional[SecretBuffer]:
	raw = store.load(KEYRING_LEGACY_KEY_USER)
	if raw is None:
		return None
	try:
		key = base64.b64decode(raw.encode('ascii'), validate=True)
	except (binascii.Error, UnicodeEncodeError) as e:
		raise ExternalStoreError(f'Failed to decode wrapped key: {e}') from e
	if len(key) != KEY_LENGTH:
		raise ExternalStoreError('Stored wrapped key has invalid length')
	return SecretBuffer(key)

def store_legacy_key(store: SecretStore, key) -> None:
	store.store(KEYRING_LEGACY_KEY_USER, base64.b64encode(bytes(key)).decode('ascii'))
