"""Crash-safe, owner-only persistence for every state file.

Writes go to a temporary file in the destination directory, are flushed and
fsynced, then renamed over the target with ``os.replace``. Files end up 0600
and their directory 0700 on POSIX; elsewhere the chmod step is skipped.
"""
from __future__ import annotations
import json, logging, os, tempfile
from pathlib import Path
from typing import Any, Optional
from ..config.settings import DIR_MODE, FILE_MODE
from .errors import FormatError, StorageError

log = logging.getLogger(__name__)

_POSIX = os.name == 'posix'

def restrict_file(path: Path) -> None:
	if _POSIX and path.exists():
		os.chmod(path, FILE_MODE)

def restrict_dir(path: Path) -> None:
	if _POSIX and path.exists():
		os.chmod(path, DIR_MODE)

def ensure_dir(path: Path) -> Path:
	"""Create ``path`` if needed and tighten it to owner-only."""
	try:
		path.mkdir(parents=True, exist_ok=True)
		restrict_dir(path)
	except OSError as e:
		raise StorageError(f'Cannot prepare directory {path}: {e}') from e
	return path

def _fsync_dir(path: Path) -> None:
	if not _POSIX:
		return
	fd = os.open(path, os.O_RDONLY)
	try:
		os.fsync(fd)
	finally:
		os.close(fd)

def atomic_write(path: Path, data) -> None:
	path = Path(path)
	parent = path.parent
	if not parent.exists():
		ensure_dir(parent)
	tmp: Optional[str] = None
	try:
		fd, tmp = tempfile.mkstemp(dir=parent, prefix=f'.{path.name}.', suffix='.tmp')
		with os.fdopen(fd, 'wb') as f:
			f.write(data)
			f.flush()
			os.fsync(f.fileno())
		os.replace(tmp, path)
		tmp = None
		_fsync_dir(parent)
		restrict_file(path)
		restrict_dir(parent)
	except OSError as e:
		raise StorageError(f'Atomic write failed for {path}: {e}') from e
	finally:
		if tmp is not None and os.path.exists(tmp):
			os.unlink(tmp)
	log.debug('wrote %s (%d bytes)', path, len(data))

def write_json(path: Path, obj: Any) -> None:
	atomic_write(path, json.dumps(obj, indent=2).encode('utf-8'))

def read_json(path: Path) -> Any:
	"""Parse a JSON state file. A missing file raises StorageError, bad UTF-8 or JSON FormatError."""
	try:
		raw = Path(path).read_text(encoding='utf-8')
	except FileNotFoundError as e:
		raise StorageError(f'Missing file: {path}') from e
	except UnicodeDecodeError as e:
		raise FormatError(f'{Path(path).name} is not valid UTF-8: {e}') from e
	except OSError as e:
		raise StorageError(f'Cannot read {path}: {e}') from e
	try:
		return json.loads(raw)
	except json.JSONDecodeError as e:
		raise FormatError(f'{Path(path).name} is not valid JSON: {e}') from e

def read_json_optional(path: Path) -> Optional[Any]:
	return read_json(path) if Path(path).exists() else None

def remove_file(path: Path) -> bool:
	try:
		Path(path).unlink()
		return True
	except FileNotFoundError:
		return False
	except OSError as e:
		raise StorageError(f'Cannot remove {path}: {e}') from e

def file_mode(path: Path) -> Optional[int]:
	"""Permission bits of ``path`` on POSIX, else None."""
	if not _POSIX or not Path(path).exists():
		return None
	return Path(path).stat().st_mode & 0o777
