"""Format handlers for the unlock protocol.

Handlers are tried in a fixed priority order; the first whose ``detect``
matches owns the attempt, and its failure ends it (no fall-through):

1. wrapped v2 ``vault.json`` (envelope encryption, current format)
2. legacy single-layer file with a ``meta.json`` password hash
3. legacy single-layer file alone (oldest shape)

Handlers 2 and 3 set ``migrates`` so a successful unlock is re-saved as
wrapped v2. ``meta.json`` is left in place after migration; once the vault is
wrapped v2 it is advisory only, because handler 1 always wins.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Optional
from .auth import verify_master_hash
from .crypto import VaultCrypto
from .errors import DecryptionError, FormatError
from .formats import Meta, WrappedVaultFile, is_wrapped, open_vault, parse_legacy_record
from .keystore import SecretStore, load_legacy_key
from .memory import SecretBuffer
from .models import Vault
from .paths import VaultPaths
from .storage import read_json_optional

log = logging.getLogger(__name__)

WRAPPED_V2 = 'wrapped-v2'
LEGACY_META = 'legacy-meta'
LEGACY = 'legacy'


@dataclass
class UnlockContext:
	raw: Any
	paths: VaultPaths
	crypto: VaultCrypto
	store: SecretStore
	_meta: Optional[Meta] = field(default=None, init=False, repr=False)
	_meta_loaded: bool = field(default=False, init=False, repr=False)

	@property
	def meta(self) -> Optional[Meta]:
		if not self._meta_loaded:
			try:
				raw = read_json_optional(self.paths.meta)
			except FormatError:
				log.warning('ignoring unreadable %s', self.paths.meta.name)
				raw = None
			self._meta = None if raw is None else Meta.from_dict(raw)
			self._meta_loaded = True
		return self._meta


def _vault_from(plaintext: SecretBuffer) -> Vault:
	with plaintext:
		return Vault.from_json(plaintext.view())


class FormatHandler:
	name = ''
	migrates = False

	def detect(self, ctx: UnlockContext) -> bool:
		raise NotImplementedError

	def unlock(self, ctx: UnlockContext, passphrase: str) -> Vault:
		raise NotImplementedError


class WrappedV2Handler(FormatHandler):
	name = WRAPPED_V2

	def detect(self, ctx):
		return is_wrapped(ctx.raw)

	def unlock(self, ctx, passphrase):
		return open_vault(WrappedVaultFile.from_dict(ctx.raw), passphrase, ctx.crypto)


class LegacyMetaHandler(FormatHandler):
	"""Hash check first, then the keyring key, then the password-derived key."""
	name = LEGACY_META
	migrates = True

	def detect(self, ctx):
		return ctx.meta is not None

	def unlock(self, ctx, passphrase):
		verify_master_hash(passphrase, ctx.meta.master_hash)
		record = parse_legacy_record(ctx.raw)
		legacy_key = load_legacy_key(ctx.store)
		if legacy_key is not None:
			with legacy_key:
				try:
					return _vault_from(ctx.crypto.decrypt(legacy_key, record))
				except DecryptionError:
					log.info('keyring key does not open the legacy vault; trying passphrase')
		return _vault_from(ctx.crypto.decrypt_with_password(passphrase, record))


class LegacyPasswordHandler(FormatHandler):
	name = LEGACY
	migrates = True

	def detect(self, ctx):
		return isinstance(ctx.raw, dict) and 'nonce' in ctx.raw and 'data' in ctx.raw

	def unlock(self, ctx, passphrase):
		return _vault_from(ctx.crypto.decrypt_with_password(passphrase, parse_legacy_record(ctx.raw)))


HANDLERS = (WrappedV2Handler(), LegacyMetaHandler(), LegacyPasswordHandler())
