"""terminal-vault: an encrypted local store for credentials and notes."""

__version__ = '0.3.0'
