"""Scoped secret buffers.

A :class:`SecretBuffer` owns a ``bytearray`` and zeroes it when its ``with``
block exits, however the block is left::

	with SecretBuffer(crypto.generate_key()) as dek:
		record = crypto.encrypt(dek.view(), plaintext)

Only the mutable buffer is wiped. Immutable ``bytes``/``str`` copies made by
the interpreter or by third-party libraries cannot be cleared from Python.
"""
from __future__ import annotations
from typing import Optional


def wipe(buf: Optional[bytearray]) -> None:
	if buf is None:
		return
	buf[:] = bytes(len(buf))


class SecretBuffer:
	__slots__ = ('_buf',)

	def __init__(self, data=b''):
		# a bytearray is adopted, not copied: the caller hands over ownership
		self._buf = data if isinstance(data, bytearray) else bytearray(data)

	@classmethod
	def from_text(cls, text: str) -> 'SecretBuffer':
		return cls(text.encode('utf-8'))

	def view(self) -> bytearray:
		return self._buf

	def __len__(self) -> int:
		return len(self._buf)

	def __bytes__(self) -> bytes:
		return bytes(self._buf)

	def __eq__(self, other) -> bool:
		if isinstance(other, SecretBuffer):
			return self._buf == other._buf
		return NotImplemented

	def __repr__(self) -> str:
		return f'<SecretBuffer len={len(self._buf)}>'

	@property
	def wiped(self) -> bool:
		return not any(self._buf)

	def wipe(self) -> None:
		wipe(self._buf)

	def __enter__(self) -> 'SecretBuffer':
		return self

	def __exit__(self, exc_type, exc, tb) -> None:
		self.wipe()
