"""Authentication helpers: legacy master hash verification and passphrase policy.

Legacy ``meta.json`` files hold a self-describing password hash. Argon2 PHC
strings and bcrypt modular-crypt strings are both accepted.
"""
from __future__ import annotations
import bcrypt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from ..config.settings import MASTER_MIN_LENGTH
from .errors import DecryptionError, PassphrasePolicyError

_BCRYPT_PREFIXES = ('$2a$', '$2b$', '$2y$')
_hasher = PasswordHasher()

def is_supported_hash(stored: str) -> bool:
	if not isinstance(stored, str):
		return False
	if stored.startswith('$argon2'):
		parts = stored.split('$')
		return len(parts) in (5, 6) and all(parts[1:])
	return stored.startswith(_BCRYPT_PREFIXES) and len(stored) == 60

def hash_password(password: str) -> str:
	if not password:
		raise PassphrasePolicyError('Empty password')
	return _hasher.hash(password)

def verify_master_hash(password: str, stored: str) -> None:
	"""Raise DecryptionError unless ``password`` matches ``stored``."""
	if not is_supported_hash(stored):
		raise DecryptionError()
	if stored.startswith('$argon2'):
		try:
			_hasher.verify(stored, password)
		except (VerificationError, InvalidHashError):
			raise DecryptionError() from None
		return
	try:
		ok = bcrypt.checkpw(password.encode(), stored.encode())
	except ValueError:
		ok = False
	if not ok:
		raise DecryptionError()

def validate_master_passphrase(passphrase: str) -> None:
	if len(passphrase) < MASTER_MIN_LENGTH:
		raise PassphrasePolicyError(f'Password should be at least {MASTER_MIN_LENGTH} characters.')
	if not any('A' <= c <= 'Z' for c in passphrase):
		raise PassphrasePolicyError('Password should include at least one uppercase letter.')
	if not any('0' <= c <= '9' for c in passphrase):
		raise PassphrasePolicyError('Password should include at least one number.')
	if not any(not c.isalnum() and not c.isspace() for c in passphrase):
		raise PassphrasePolicyError('Password should include at least one special character.')
