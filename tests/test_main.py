import sys

import pytest

from terminal_vault import main as entry


def test_main_dispatches_to_cli(monkeypatch, capsys):
    monkeypatch.setattr(sys, 'argv', ['terminal-vault', 'generate', '--length', '16'])
    with pytest.raises(SystemExit) as exc:
        entry.main()
    assert exc.value.code == 0
    assert len(capsys.readouterr().out.strip()) == 16


def test_main_unknown_command(monkeypatch):
    monkeypatch.setattr(sys, 'argv', ['terminal-vault', 'decoy'])
    with pytest.raises(SystemExit) as exc:
        entry.main()
    assert exc.value.code == 2
