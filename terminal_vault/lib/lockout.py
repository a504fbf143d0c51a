"""Cooldown after repeated failed unlocks.

The lock file is a rate limiter, not a mutex: it is consulted once before an
unlock is attempted, and a process that trips it is expected to exit. The
next invocation finds the lock and refuses until ``unlock_at`` has passed.
"""
from __future__ import annotations
import logging, math, time
from pathlib import Path
from typing import Callable, Optional
from ..config.settings import LOCK_SECONDS, MAX_ATTEMPTS
from .errors import LockActiveError
from .formats import LockState
from .storage import read_json_optional, remove_file, write_json

log = logging.getLogger(__name__)


class LockoutController:
	def __init__(self, lock_path: Path, clock: Callable[[], float] = time.time, lock_seconds: int = LOCK_SECONDS):
		self.lock_path = Path(lock_path)
		self.clock = clock
		self.lock_seconds = lock_seconds

	def load(self) -> Optional[int]:
		raw = read_json_optional(self.lock_path)
		return None if raw is None else LockState.from_dict(raw).unlock_at

	def check(self) -> None:
		"""Raise LockActiveError while a cooldown is running; drop an expired lock."""
		unlock_at = self.load()
		if unlock_at is None:
			return
		now = self.clock()
		if now < unlock_at:
			raise LockActiveError(unlock_at, max(1, math.ceil(unlock_at - now)))
		self.clear()
		log.info('expired lock removed')

	def engage(self) -> int:
		unlock_at = int(self.clock()) + self.lock_seconds
		write_json(self.lock_path, LockState(unlock_at).to_dict())
		log.warning('too many failed attempts; locked for %d seconds', self.lock_seconds)
		return unlock_at

	def clear(self) -> bool:
		return remove_file(self.lock_path)


class AttemptTracker:
	"""Consecutive failed unlocks within one process; owned by the caller."""

	def __init__(self, max_attempts: int = MAX_ATTEMPTS):
		self.max_attempts = max_attempts
		self.failures = 0

	@property
	def remaining(self) -> int:
		return max(0, self.max_attempts - self.failures)

	def fail(self) -> bool:
		"""Count a failure; True once the threshold is reached."""
		self.failures += 1
		return self.failures >= self.max_attempts

	def reset(self) -> None:
		self.failures = 0
