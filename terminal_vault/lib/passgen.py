"""Strong random password generation."""
from __future__ import annotations
import secrets
from ..config.settings import (
	PASSWORD_DEFAULT_LENGTH, PASSWORD_DIGITS, PASSWORD_LOWER, PASSWORD_MIN_LENGTH, PASSWORD_SPECIAL, PASSWORD_UPPER
)

CHARSETS = (PASSWORD_UPPER, PASSWORD_LOWER, PASSWORD_DIGITS, PASSWORD_SPECIAL)

def generate_password(length: int = PASSWORD_DEFAULT_LENGTH, rng=None) -> str:
	"""One character from each class, the rest from their union, then shuffled.

	``length`` is raised to 12 when smaller. ``rng`` must offer ``choice`` and
	``shuffle``; it defaults to the OS CSPRNG.
	"""
	rng = rng or secrets.SystemRandom()
	target = max(length, PASSWORD_MIN_LENGTH)
	chars = [rng.choice(cs) for cs in CHARSETS]
	pool = ''.join(CHARSETS)
	chars.extend(rng.choice(pool) for _ in range(target - len(chars)))
	rng.shuffle(chars)
	return ''.join(chars)
