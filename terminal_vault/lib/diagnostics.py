"""Read-only integrity checks over the storage directory and secret store.

Nothing here migrates, rewrites or advances the trusted counter.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple
from ..config.settings import DIR_MODE, FILE_MODE
from .auth import is_supported_hash
from .crypto import VaultCrypto
from .errors import DecryptionError, VaultError
from .formats import LockState, Meta, WrappedVaultFile, is_wrapped, open_vault, parse_legacy_record
from .keystore import SecretStore, load_legacy_key, load_trusted_revision
from .paths import VaultPaths, config_path, default_base_dir, load_config, resolve_vault_dir
from .storage import file_mode, read_json

PASS, WARN, FAIL = 'PASS', 'WARN', 'FAIL'


@dataclass
class SelfCheckReport:
	findings: List[Tuple[str, str]] = field(default_factory=list)
	decrypt_failed: bool = False

	def add(self, status: str, message: str) -> None:
		self.findings.append((status, message))

	def count(self, status: str) -> int:
		return sum(1 for s, _ in self.findings if s == status)

	@property
	def ok(self) -> bool:
		return self.count(FAIL) == 0

	def lines(self) -> List[str]:
		return [f'[{s}] {m}' for s, m in self.findings]


def _check_base_dir(report: SelfCheckReport, home: Path) -> Path:
	try:
		cfg = load_config(home)
	except VaultError as e:
		report.add(FAIL, f'config.json is unreadable: {e}')
		return default_base_dir(home)
	if cfg is None:
		report.add(WARN, f'No config found at {config_path(home)}; using default {default_base_dir(home)}')
		return default_base_dir(home)
	try:
		base = resolve_vault_dir(cfg.vault_dir, home)
	except VaultError as e:
		report.add(FAIL, f'Invalid configured vault directory: {e}')
		return default_base_dir(home)
	report.add(PASS, f'Configured vault directory is valid: {base}')
	return base

def _check_mode(report: SelfCheckReport, path: Path, expected: int, label: str) -> None:
	mode = file_mode(path)
	if mode is None:
		return
	if mode == expected:
		report.add(PASS, f'{label} permissions are {expected:o}')
	else:
		report.add(WARN, f'{label} permissions are {mode:o}, expected {expected:o}')

def _check_meta(report: SelfCheckReport, paths: VaultPaths) -> None:
	if not paths.meta.exists():
		return
	try:
		meta = Meta.from_dict(read_json(paths.meta))
	except VaultError as e:
		report.add(WARN, f'Legacy meta file is not readable: {e}')
		return
	if meta is None:
		report.add(WARN, 'Legacy meta file exists but could not be parsed')
	elif is_supported_hash(meta.master_hash):
		report.add(PASS, 'Legacy meta file is readable and hash format is valid')
	else:
		report.add(FAIL, 'Legacy meta file hash format is invalid')

def _check_lock(report: SelfCheckReport, paths: VaultPaths) -> None:
	if not paths.lock.exists():
		return
	try:
		report.add(PASS, f'Lock file is readable (unlock_at={LockState.from_dict(read_json(paths.lock)).unlock_at})')
	except VaultError as e:
		report.add(FAIL, f'Lock file is invalid: {e}')

def _check_vault(report: SelfCheckReport, paths: VaultPaths, store: SecretStore, crypto: VaultCrypto,
		trusted: Optional[int], passphrase: Optional[str]) -> None:
	if not paths.vault.exists():
		report.add(WARN, f'Vault file does not exist yet: {paths.vault}')
		return
	_check_mode(report, paths.vault, FILE_MODE, 'Vault file')
	try:
		raw = read_json(paths.vault)
	except VaultError as e:
		report.add(FAIL, f'Vault file is unreadable: {e}')
		return
	if is_wrapped(raw):
		report.add(PASS, 'Vault format is wrapped-key v2')
		if not passphrase:
			report.add(WARN, 'Decrypt test skipped')
			return
		try:
			vault = open_vault(WrappedVaultFile.from_dict(raw), passphrase, crypto)
		except DecryptionError as e:
			report.decrypt_failed = True
			report.add(FAIL, f'Vault decrypt/read failed: {e}')
			return
		except VaultError as e:
			report.add(FAIL, f'Vault decrypt/read failed: {e}')
			return
		report.add(PASS, f'Vault decrypts successfully (revision={vault.revision}, entries={len(vault.entries)}, notes={len(vault.notes)})')
		if trusted is not None:
			if vault.revision < trusted:
				report.add(FAIL, f'Rollback detected: vault revision {vault.revision} < trusted {trusted}')
			else:
				report.add(PASS, 'Revision check passed')
		vault.wipe()
		return
	report.add(WARN, 'Vault appears to be legacy format (migration recommended)')
	try:
		key = load_legacy_key(store)
	except VaultError as e:
		report.add(WARN, f'Legacy keyring read failed: {e}')
		return
	if key is None:
		report.add(WARN, 'Legacy vault key missing from keyring')
		return
	try:
		with key, crypto.decrypt(key, parse_legacy_record(raw)) as plaintext:
			report.add(PASS, f'Legacy vault decrypts with keyring key ({len(plaintext)} bytes)')
	except VaultError as e:
		report.add(FAIL, f'Legacy vault decrypt failed: {e}')


def run_self_check(home: Path, store: SecretStore, passphrase: Optional[str] = None,
		crypto: Optional[VaultCrypto] = None) -> SelfCheckReport:
	report = SelfCheckReport()
	crypto = crypto or VaultCrypto()
	home = Path(home)
	paths = VaultPaths.for_dir(_check_base_dir(report, home))

	if paths.base.exists():
		report.add(PASS, f'Vault directory exists: {paths.base}')
		_check_mode(report, paths.base, DIR_MODE, 'Vault directory')
	else:
		report.add(WARN, f'Vault directory does not exist yet: {paths.base}')

	_check_meta(report, paths)

	try:
		trusted = load_trusted_revision(store)
	except VaultError as e:
		report.add(WARN, f'Could not read trusted revision from keyring: {e}')
		trusted = None
	else:
		if trusted is None:
			report.add(WARN, 'Trusted revision is missing in keyring')
		else:
			report.add(PASS, f'Trusted revision in keyring: {trusted}')

	_check_lock(report, paths)
	_check_vault(report, paths, store, crypto, trusted, passphrase)
	return report
