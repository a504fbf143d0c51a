"""Storage location resolution.

The vault directory comes from ``~/.terminal-vault/config.json`` (or the
default ``~/.terminal-vault``) and must stay inside the home directory, both
lexically and after symlink resolution. A tampered config or a swapped
symlink is rejected with :class:`PathValidationError`; there is no fallback.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union
from ..config.settings import CONFIG_FILE, LOCK_FILE, META_FILE, VAULT_DIR_NAME, VAULT_FILE
from .errors import PathValidationError
from .formats import Config
from .storage import ensure_dir, read_json_optional, write_json

log = logging.getLogger(__name__)

PathLike = Union[str, Path]

def home_dir() -> Path:
	return Path.home()

def default_base_dir(home: Optional[Path] = None) -> Path:
	return Path(home or home_dir()) / VAULT_DIR_NAME

def config_path(home: Optional[Path] = None) -> Path:
	return default_base_dir(home) / CONFIG_FILE

def _inside(path: Path, root: Path) -> bool:
	try:
		path.relative_to(root)
		return True
	except ValueError:
		return False

def _nearest_existing(path: Path) -> Optional[Path]:
	for candidate in (path, *path.parents):
		if candidate.exists() or candidate.is_symlink():
			return candidate
	return None

def resolve_vault_dir(raw: PathLike, home: Optional[Path] = None) -> Path:
	"""Validate a candidate storage directory; relative paths are taken from home."""
	home = Path(home or home_dir())
	text = str(raw).strip()
	if not text:
		raise PathValidationError('Vault directory must not be empty')
	if text == '~' or text.startswith('~/'):
		text = str(home) + text[1:]
	candidate = Path(text)
	if not candidate.is_absolute():
		candidate = home / candidate
	if '..' in candidate.parts:
		raise PathValidationError("Path cannot contain '..' traversal components")
	if not _inside(candidate, home):
		raise PathValidationError(f'Path must be inside {home}')
	# symlinks anywhere on the existing prefix could point the rest of the path elsewhere
	home_real = home.resolve()
	existing = _nearest_existing(candidate)
	if existing is not None and not _inside(existing.resolve(), home_real):
		raise PathValidationError(f'Path resolves outside {home}')
	return candidate


@dataclass(frozen=True)
class VaultPaths:
	base: Path
	vault: Path
	meta: Path
	lock: Path

	@classmethod
	def for_dir(cls, base: PathLike) -> 'VaultPaths':
		base = Path(base)
		return cls(base=base, vault=base / VAULT_FILE, meta=base / META_FILE, lock=base / LOCK_FILE)


def load_config(home: Optional[Path] = None) -> Optional[Config]:
	raw = read_json_optional(config_path(home))
	return None if raw is None else Config.from_dict(raw)

def save_config(vault_dir: Path, home: Optional[Path] = None) -> None:
	write_json(config_path(home), Config(vault_dir=str(vault_dir)).to_dict())

def configured_paths(home: Optional[Path] = None) -> VaultPaths:
	"""Resolve the storage paths without creating anything."""
	cfg = load_config(home)
	base = resolve_vault_dir(cfg.vault_dir, home) if cfg else default_base_dir(home)
	return VaultPaths.for_dir(base)

def select_base_dir(chosen: Optional[PathLike] = None, home: Optional[Path] = None) -> VaultPaths:
	"""Return the storage paths, creating the directory owner-only.

	A configured ``vault_dir`` always wins over ``chosen``; with no config,
	``chosen`` (or the default directory) is validated and recorded.
	"""
	cfg = load_config(home)
	if cfg is not None:
		base = resolve_vault_dir(cfg.vault_dir, home)
	else:
		base = resolve_vault_dir(chosen if chosen else default_base_dir(home), home)
		ensure_dir(base)
		save_config(base, home)
		log.info('vault directory set to %s', base)
	ensure_dir(base)
	return VaultPaths.for_dir(base)
