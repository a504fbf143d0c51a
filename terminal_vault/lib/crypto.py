"""Cryptographic primitives: Argon2id key derivation + ChaCha20-Poly1305 AEAD.

Every salt, nonce and data key comes from ``VaultCrypto.randbytes`` so tests
can swap in a seeded source.
"""
from __future__ import annotations
import base64, binascii, secrets, warnings
from dataclasses import dataclass
from typing import Callable, Dict, Optional
from argon2.exceptions import HashingError
from argon2.low_level import Type, hash_secret_raw
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305
from ..config.settings import (
	KDF_MEMORY_COST, KDF_TIME_COST, KDF_PARALLELISM, KDF_SALT_LENGTH, KEY_LENGTH, NONCE_LENGTH
)
from .errors import DecryptionError, FormatError, KeyDerivationError
from .memory import SecretBuffer

_U32_MAX = 0xFFFFFFFF

def b64encode(raw: bytes) -> str:
	return base64.b64encode(bytes(raw)).decode('ascii')

def b64decode(text, field: str) -> bytes:
	if not isinstance(text, str):
		raise FormatError(f'Field {field!r} must be a base64 string')
	try:
		return base64.b64decode(text.encode('ascii'), validate=True)
	except (binascii.Error, UnicodeEncodeError) as e:
		raise FormatError(f'Invalid base64 in field {field!r}: {e}') from e


@dataclass(frozen=True)
class KdfParams:
	memory_cost: int = KDF_MEMORY_COST  # KiB
	time_cost: int = KDF_TIME_COST
	parallelism: int = KDF_PARALLELISM

	def validate(self) -> None:
		for name in ('memory_cost', 'time_cost', 'parallelism'):
			value = getattr(self, name)
			if isinstance(value, bool) or not isinstance(value, int) or value < 1:
				raise KeyDerivationError(f'Invalid Argon2 params: {name} must be a positive integer')
			if value > _U32_MAX:
				raise KeyDerivationError(f'Invalid Argon2 params: {name} exceeds {_U32_MAX}')
		if self.memory_cost < 8 * self.parallelism:
			raise KeyDerivationError('Invalid Argon2 params: memory_cost must be at least 8 * parallelism')

	def to_dict(self) -> Dict[str, int]:
		return {'m_cost': self.memory_cost, 't_cost': self.time_cost, 'p_cost': self.parallelism}

	@classmethod
	def from_dict(cls, raw) -> 'KdfParams':
		if not isinstance(raw, dict):
			raise FormatError('KDF parameters must be an object')
		try:
			return cls(memory_cost=raw['m_cost'], time_cost=raw['t_cost'], parallelism=raw['p_cost'])
		except KeyError as e:
			raise FormatError(f'KDF parameters missing {e.args[0]!r}') from e


@dataclass(frozen=True)
class EncryptedRecord:
	"""One AEAD output. ``salt`` is only set by the legacy password-keyed form."""
	nonce: bytes
	data: bytes
	salt: Optional[bytes] = None

	def to_dict(self) -> Dict[str, str]:
		out = {'nonce': b64encode(self.nonce), 'data': b64encode(self.data)}
		if self.salt is not None:
			out = {'salt': b64encode(self.salt), **out}
		return out

	@classmethod
	def from_dict(cls, raw) -> 'EncryptedRecord':
		if not isinstance(raw, dict):
			raise FormatError('Encrypted record must be an object')
		for field in ('nonce', 'data'):
			if field not in raw:
				raise FormatError(f'Encrypted record missing {field!r}')
		salt = raw.get('salt')
		return cls(
			nonce=b64decode(raw['nonce'], 'nonce'),
			data=b64decode(raw['data'], 'data'),
			# older writers emit an empty placeholder salt next to key-encrypted records
			salt=b64decode(salt, 'salt') if salt else None,
		)


def derive_key(passphrase, salt: bytes, params: KdfParams = KdfParams()) -> SecretBuffer:
	"""Derive a 32-byte key from ``passphrase`` (str or bytes-like) with Argon2id.

	The caller owns the returned buffer and should use it as a context manager.
	"""
	params.validate()
	if not salt:
		raise KeyDerivationError('Salt must not be empty')
	with SecretBuffer(passphrase.encode('utf-8') if isinstance(passphrase, str) else bytearray(passphrase)) as secret:
		try:
			raw = hash_secret_raw(
				secret=bytes(secret.view()), salt=bytes(salt),
				time_cost=params.time_cost, memory_cost=params.memory_cost, parallelism=params.parallelism,
				hash_len=KEY_LENGTH, type=Type.ID,
			)
		except HashingError as e:
			raise KeyDerivationError(f'Key derivation failed: {e}') from e
	return SecretBuffer(raw)


class VaultCrypto:
	def __init__(self, randbytes: Callable[[int], bytes] = secrets.token_bytes):
		self.randbytes = randbytes

	def generate_salt(self) -> bytes:
		return self.randbytes(KDF_SALT_LENGTH)

	def generate_key(self) -> SecretBuffer:
		return SecretBuffer(self.randbytes(KEY_LENGTH))

	def encrypt(self, key, plaintext) -> EncryptedRecord:
		"""Seal ``plaintext`` under ``key`` with a fresh random 96-bit nonce."""
		key = _key_bytes(key)
		nonce = self.randbytes(NONCE_LENGTH)
		return EncryptedRecord(nonce=nonce, data=ChaCha20Poly1305(key).encrypt(nonce, bytes(plaintext), None))

	def decrypt(self, key, record: EncryptedRecord) -> SecretBuffer:
		key = _key_bytes(key)
		if len(key) != KEY_LENGTH or len(record.nonce) != NONCE_LENGTH:
			raise DecryptionError()
		try:
			return SecretBuffer(ChaCha20Poly1305(key).decrypt(record.nonce, record.data, None))
		except InvalidTag:
			raise DecryptionError() from None

	def encrypt_with_password(self, passphrase, plaintext, params: KdfParams = KdfParams()) -> EncryptedRecord:
		"""Deprecated single-layer form; only kept to produce fixtures of the legacy shape."""
		warnings.warn('password-keyed records are a legacy format; use envelope encryption', DeprecationWarning, stacklevel=2)
		salt = self.generate_salt()
		with derive_key(passphrase, salt, params) as key:
			record = self.encrypt(key, plaintext)
		return EncryptedRecord(nonce=record.nonce, data=record.data, salt=salt)

	def decrypt_with_password(self, passphrase, record: EncryptedRecord, params: KdfParams = KdfParams()) -> SecretBuffer:
		"""Open a legacy single-layer record using the salt embedded in it."""
		if not record.salt:
			raise DecryptionError()
		with derive_key(passphrase, record.salt, params) as key:
			return self.decrypt(key, record)


def _key_bytes(key) -> bytes:
	raw = key.view() if isinstance(key, SecretBuffer) else key
	return bytes(raw)
