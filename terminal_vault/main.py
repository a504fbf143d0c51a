"""Program entry point (CLI dispatcher)."""
from __future__ import annotations
from .cli.commands import cli

def main():  # pragma: no cover - thin wrapper
	cli(obj={})

if __name__ == '__main__':  # pragma: no cover
	main()
