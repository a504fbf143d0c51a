"""Plaintext vault model: credentials (entries) and notes.

The whole :class:`Vault` is serialized to JSON and encrypted as one payload.
"""
from __future__ import annotations
import json, uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from ..config.settings import MAX_REVISION
from .errors import EntryError, FormatError

def new_id() -> str:
	return str(uuid.uuid4())

def _opt(value: Optional[str]) -> Optional[str]:
	if value is None:
		return None
	value = value.strip()
	return value or None

def _require_str(raw: Dict[str, Any], key: str, kind: str) -> str:
	value = raw.get(key)
	if not isinstance(value, str):
		raise FormatError(f'{kind} field {key!r} must be a string')
	return value

def _optional_str(raw: Dict[str, Any], key: str, kind: str) -> Optional[str]:
	value = raw.get(key)
	if value is not None and not isinstance(value, str):
		raise FormatError(f'{kind} field {key!r} must be a string')
	return value


@dataclass
class Entry:
	name: str
	email: str
	password: str
	username: Optional[str] = None
	notes: Optional[str] = None
	id: str = field(default_factory=new_id)

	@classmethod
	def create(cls, name: str, email: str, password: str, username: Optional[str] = None, notes: Optional[str] = None) -> 'Entry':
		name = (name or '').strip(); email = (email or '').strip()
		if not name or not email or not password:
			raise EntryError('Name, email, and password required')
		return cls(name=name, email=email, password=password, username=_opt(username), notes=_opt(notes))

	def to_dict(self) -> Dict[str, Any]:
		return {'id': self.id, 'name': self.name, 'email': self.email, 'password': self.password,
			'username': self.username, 'notes': self.notes}

	@classmethod
	def from_dict(cls, raw: Dict[str, Any]) -> 'Entry':
		if not isinstance(raw, dict):
			raise FormatError('Entry must be an object')
		return cls(
			id=_optional_str(raw, 'id', 'Entry') or new_id(),
			name=_require_str(raw, 'name', 'Entry'),
			email=_require_str(raw, 'email', 'Entry'),
			password=_require_str(raw, 'password', 'Entry'),
			username=_optional_str(raw, 'username', 'Entry'),
			notes=_optional_str(raw, 'notes', 'Entry'),
		)


@dataclass
class Note:
	title: str
	content: str
	id: str = field(default_factory=new_id)

	def to_dict(self) -> Dict[str, Any]:
		return {'id': self.id, 'title': self.title, 'content': self.content}

	@classmethod
	def from_dict(cls, raw: Dict[str, Any]) -> 'Note':
		if not isinstance(raw, dict):
			raise FormatError('Note must be an object')
		return cls(id=_optional_str(raw, 'id', 'Note') or new_id(), title=_require_str(raw, 'title', 'Note'), content=_require_str(raw, 'content', 'Note'))


@dataclass
class Vault:
	revision: int = 0
	entries: List[Entry] = field(default_factory=list)
	notes: List[Note] = field(default_factory=list)

	# --- entries ---

	def add_entry(self, entry: Entry) -> Entry:
		self.entries.append(entry)
		return entry

	def find_entry(self, entry_id: str) -> Optional[Entry]:
		return next((e for e in self.entries if e.id == entry_id), None)

	def remove_entry(self, entry_id: str) -> Entry:
		entry = self.find_entry(entry_id)
		if entry is None:
			raise EntryError('Entry not found')
		self.entries.remove(entry)
		return entry

	def update_password(self, entry_id: str, password: str) -> Entry:
		if not password:
			raise EntryError('Password required')
		entry = self.find_entry(entry_id)
		if entry is None:
			raise EntryError('Entry not found')
		entry.password = password
		return entry

	def services(self) -> List[str]:
		"""Distinct service names, sorted."""
		return sorted({e.name for e in self.entries})

	def entries_for(self, service: str) -> List[Entry]:
		return [e for e in self.entries if e.name == service]

	# --- notes ---

	def add_note(self, title: str, content: str) -> Note:
		title = (title or '').strip()
		if not title:
			raise EntryError('Note title required')
		note = Note(title=title, content=content)
		self.notes.append(note)
		return note

	def find_note(self, note_id: str) -> Optional[Note]:
		return next((n for n in self.notes if n.id == note_id), None)

	def find_note_by_title(self, title: str) -> Optional[Note]:
		return next((n for n in self.notes if n.title == title), None)

	def upsert_note(self, title: str, content: str) -> Note:
		existing = self.find_note_by_title(title)
		if existing is not None:
			existing.content = content
			return existing
		return self.add_note(title, content)

	def remove_note(self, note_id: str) -> Note:
		note = self.find_note(note_id)
		if note is None:
			raise EntryError('Note not found')
		self.notes.remove(note)
		return note

	# --- lifecycle ---

	def bump_revision(self) -> int:
		self.revision = min(self.revision + 1, MAX_REVISION)
		return self.revision

	def wipe(self) -> None:
		"""Drop references to secret fields at session end."""
		for e in self.entries:
			e.name = e.email = e.password = ''
			e.username = e.notes = None
		for n in self.notes:
			n.title = n.content = ''
		self.entries.clear(); self.notes.clear()

	def to_dict(self) -> Dict[str, Any]:
		return {'revision': self.revision, 'entries': [e.to_dict() for e in self.entries], 'notes': [n.to_dict() for n in self.notes]}

	def to_json(self) -> bytes:
		return json.dumps(self.to_dict(), separators=(',', ':')).encode('utf-8')

	@classmethod
	def from_dict(cls, raw: Dict[str, Any]) -> 'Vault':
		if not isinstance(raw, dict):
			raise FormatError('Vault payload must be an object')
		revision = raw.get('revision', 0)
		if isinstance(revision, bool) or not isinstance(revision, int) or not 0 <= revision <= MAX_REVISION:
			raise FormatError('Vault revision must be a non-negative integer')
		entries = raw.get('entries') or []
		notes = raw.get('notes') or []
		if not isinstance(entries, list) or not isinstance(notes, list):
			raise FormatError('Vault entries and notes must be lists')
		return cls(revision=revision, entries=[Entry.from_dict(e) for e in entries], notes=[Note.from_dict(n) for n in notes])

	@classmethod
	def from_json(cls, payload) -> 'Vault':
		try:
			raw = json.loads(bytes(payload).decode('utf-8'))
		except (UnicodeDecodeError, json.JSONDecodeError) as e:
			raise FormatError(f'Invalid vault data format: {e}') from e
		return cls.from_dict(raw)
