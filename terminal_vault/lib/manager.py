"""Session-level vault operations: create, unlock, save, change passphrase.

Rollback protection compares the decrypted ``revision`` with the trusted
counter in the external secret store. A vault older than the counter is
refused even with the right passphrase. Failures of the store itself only
degrade the protection; they never block a save.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence
from .auth import validate_master_passphrase
from .crypto import KdfParams, VaultCrypto
from .errors import EntryError, ExternalStoreError, FormatError, PassphrasePolicyError, RollbackDetectedError, StorageError
from .formats import WrappedVaultFile, is_wrapped, open_vault, seal_vault
from .keystore import SecretStore, load_trusted_revision, store_trusted_revision
from .models import Note, Vault
from .paths import VaultPaths
from .storage import read_json, write_json
from .unlock import HANDLERS, FormatHandler, UnlockContext

log = logging.getLogger(__name__)


@dataclass
class UnlockResult:
	vault: Vault
	format: str
	migrated: bool


class VaultManager:
	def __init__(self, paths: VaultPaths, store: SecretStore, crypto: Optional[VaultCrypto] = None,
			params: Optional[KdfParams] = None, handlers: Sequence[FormatHandler] = HANDLERS):
		self.paths = paths
		self.store = store
		self.crypto = crypto or VaultCrypto()
		self.params = params or KdfParams()
		self.handlers = tuple(handlers)

	def exists(self) -> bool:
		return self.paths.vault.exists()

	def _read_raw(self):
		if not self.exists():
			raise StorageError('Vault file not found')
		return read_json(self.paths.vault)

	# --- trusted revision ---

	def trusted_revision(self) -> Optional[int]:
		try:
			return load_trusted_revision(self.store)
		except ExternalStoreError as e:
			log.warning('trusted revision unavailable (%s); rollback check degraded', e)
			return None

	def _advance_trusted(self, revision: int) -> None:
		try:
			trusted = load_trusted_revision(self.store)
			if trusted is None or revision > trusted:
				store_trusted_revision(self.store, revision)
		except ExternalStoreError as e:
			log.warning('could not record trusted revision %d: %s', revision, e)

	def verify_revision(self, vault: Vault) -> None:
		trusted = self.trusted_revision()
		if trusted is not None and vault.revision < trusted:
			log.error('refusing vault at revision %d; trusted revision is %d', vault.revision, trusted)
			raise RollbackDetectedError(vault.revision, trusted)
		if trusted is None or vault.revision > trusted:
			self._advance_trusted(vault.revision)

	# --- lifecycle ---

	def create(self, passphrase: str) -> Vault:
		"""Write a new empty vault. Its revision continues from any trusted counter."""
		if self.exists():
			raise StorageError('Vault exists')
		validate_master_passphrase(passphrase)
		vault = Vault(revision=self.trusted_revision() or 0)
		self.save(vault, passphrase)
		log.info('created vault at %s', self.paths.vault)
		return vault

	def save(self, vault: Vault, passphrase: str) -> None:
		previous = vault.revision
		vault.bump_revision()
		try:
			wrapped = seal_vault(vault, passphrase, self.crypto, self.params)
			write_json(self.paths.vault, wrapped.to_dict())
		except BaseException:
			vault.revision = previous
			raise
		self._advance_trusted(vault.revision)

	def unlock(self, passphrase: str) -> UnlockResult:
		ctx = UnlockContext(raw=self._read_raw(), paths=self.paths, crypto=self.crypto, store=self.store)
		for handler in self.handlers:
			if not handler.detect(ctx):
				continue
			vault = handler.unlock(ctx, passphrase)
			try:
				self.verify_revision(vault)
				if handler.migrates:
					self.save(vault, passphrase)
					log.info('migrated %s vault to wrapped v2 (revision %d)', handler.name, vault.revision)
			except BaseException:
				vault.wipe()
				raise
			return UnlockResult(vault=vault, format=handler.name, migrated=handler.migrates)
		raise FormatError('Unsupported or corrupt vault file')

	def verify_passphrase(self, passphrase: str) -> None:
		"""Raise DecryptionError unless ``passphrase`` opens the current wrapped file."""
		raw = self._read_raw()
		if not is_wrapped(raw):
			raise FormatError('Vault is not in wrapped v2 format')
		open_vault(WrappedVaultFile.from_dict(raw), passphrase, self.crypto).wipe()

	def change_passphrase(self, vault: Vault, old: str, new: str) -> None:
		self.verify_passphrase(old)
		if new == old:
			raise PassphrasePolicyError('Passphrase already in use')
		validate_master_passphrase(new)
		self.save(vault, new)
		log.info('master passphrase changed')

	def import_text_note(self, vault: Vault, path: Path, passphrase: str, overwrite: bool = False) -> Note:
		"""Store a UTF-8 text file as a note titled with the file name."""
		path = Path(path)
		try:
			content = path.read_text(encoding='utf-8')
		except (OSError, UnicodeDecodeError) as e:
			raise StorageError(f'Failed to read {path}: {e}') from e
		if vault.find_note_by_title(path.name) is not None and not overwrite:
			raise EntryError(f"Note '{path.name}' exists")
		note = vault.upsert_note(path.name, content)
		self.save(vault, passphrase)
		return note
