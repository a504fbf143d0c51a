"""On-disk document shapes and the wrapped (envelope) vault codec.

``vault.json`` current shape, format version 2::

	{"version": 2,
	 "kdf": {"m_cost": 19456, "t_cost": 2, "p_cost": 1},
	 "kdf_salt": "<b64>",
	 "wrapped_key": {"nonce": "<b64>", "data": "<b64>"},
	 "vault": {"nonce": "<b64>", "data": "<b64>"}}

A fresh data key (DEK) encrypts the vault body; a passphrase-derived key
(KEK) encrypts the DEK. Every save draws a new KDF salt, DEK and nonces.

Legacy single-layer ``vault.json`` is ``{"salt", "nonce", "data"}``.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional
from ..config.settings import KEY_LENGTH, VAULT_FORMAT_VERSION
from .crypto import EncryptedRecord, KdfParams, VaultCrypto, b64decode, b64encode, derive_key
from .errors import FormatError
from .memory import SecretBuffer
from .models import Vault

WRAPPED_MARKERS = ('version', 'kdf', 'kdf_salt', 'wrapped_key', 'vault')

def is_wrapped(raw: Any) -> bool:
	return isinstance(raw, dict) and all(k in raw for k in WRAPPED_MARKERS)


@dataclass(frozen=True)
class WrappedVaultFile:
	version: int
	kdf: KdfParams
	kdf_salt: bytes
	wrapped_key: EncryptedRecord
	vault: EncryptedRecord

	def to_dict(self) -> Dict[str, Any]:
		return {
			'version': self.version,
			'kdf': self.kdf.to_dict(),
			'kdf_salt': b64encode(self.kdf_salt),
			'wrapped_key': self.wrapped_key.to_dict(),
			'vault': self.vault.to_dict(),
		}

	@classmethod
	def from_dict(cls, raw: Any) -> 'WrappedVaultFile':
		if not is_wrapped(raw):
			raise FormatError('Not a wrapped vault file')
		if raw['version'] != VAULT_FORMAT_VERSION or isinstance(raw['version'], bool):
			raise FormatError(f"Unsupported vault format version: {raw['version']}")
		return cls(
			version=raw['version'],
			kdf=KdfParams.from_dict(raw['kdf']),
			kdf_salt=b64decode(raw['kdf_salt'], 'kdf_salt'),
			wrapped_key=EncryptedRecord.from_dict(raw['wrapped_key']),
			vault=EncryptedRecord.from_dict(raw['vault']),
		)


def seal_vault(vault: Vault, passphrase, crypto: VaultCrypto, params: KdfParams = KdfParams()) -> WrappedVaultFile:
	salt = crypto.generate_salt()
	with derive_key(passphrase, salt, params) as kek, crypto.generate_key() as dek, \
			SecretBuffer(bytearray(vault.to_json())) as plaintext:
		wrapped_key = crypto.encrypt(kek, dek.view())
		body = crypto.encrypt(dek, plaintext.view())
	return WrappedVaultFile(version=VAULT_FORMAT_VERSION, kdf=params, kdf_salt=salt, wrapped_key=wrapped_key, vault=body)

def open_vault(wrapped: WrappedVaultFile, passphrase, crypto: VaultCrypto) -> Vault:
	"""Unwrap the DEK with the passphrase-derived KEK, then decrypt the body."""
	with derive_key(passphrase, wrapped.kdf_salt, wrapped.kdf) as kek, crypto.decrypt(kek, wrapped.wrapped_key) as dek:
		if len(dek) != KEY_LENGTH:
			raise FormatError('Invalid wrapped key length in vault')
		with crypto.decrypt(dek, wrapped.vault) as plaintext:
			return Vault.from_json(plaintext.view())

def parse_legacy_record(raw: Any) -> EncryptedRecord:
	if not isinstance(raw, dict) or 'nonce' not in raw or 'data' not in raw:
		raise FormatError('Unsupported or corrupt vault file')
	return EncryptedRecord.from_dict(raw)


@dataclass(frozen=True)
class Meta:
	"""Legacy ``meta.json``: a password hash checked before legacy decryption."""
	master_hash: str

	def to_dict(self) -> Dict[str, Any]:
		return {'master_hash': self.master_hash}

	@classmethod
	def from_dict(cls, raw: Any) -> Optional['Meta']:
		if not isinstance(raw, dict) or not isinstance(raw.get('master_hash'), str):
			return None
		return cls(master_hash=raw['master_hash'])


@dataclass(frozen=True)
class LockState:
	unlock_at: int

	def to_dict(self) -> Dict[str, Any]:
		return {'unlock_at': self.unlock_at}

	@classmethod
	def from_dict(cls, raw: Any) -> 'LockState':
		value = raw.get('unlock_at') if isinstance(raw, dict) else None
		if isinstance(value, bool) or not isinstance(value, int) or value < 0:
			raise FormatError('Lock file is invalid')
		return cls(unlock_at=value)


@dataclass(frozen=True)
class Config:
	vault_dir: str

	def to_dict(self) -> Dict[str, Any]:
		return {'vault_dir': self.vault_dir}

	@classmethod
	def from_dict(cls, raw: Any) -> 'Config':
		if not isinstance(raw, dict) or not isinstance(raw.get('vault_dir'), str) or not raw['vault_dir']:
			raise FormatError('config.json must contain a vault_dir string')
		return cls(vault_dir=raw['vault_dir'])
