"""Configuration constants for terminal-vault.

Re-exports :mod:`terminal_vault.config.settings` so callers can write
``from terminal_vault.config import LOCK_SECONDS``.
"""

from .settings import *  # noqa: F401,F403
from .settings import __all__  # noqa: F401
