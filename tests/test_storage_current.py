import json
import os

import pytest

from terminal_vault.lib import storage
from terminal_vault.lib.errors import FormatError, StorageError

posix_only = pytest.mark.skipif(os.name != 'posix', reason='POSIX permission bits')


def test_write_and_read_json(tmp_path):
    p = tmp_path / 'state' / 'vault.json'
    storage.write_json(p, {'a': 1})
    assert storage.read_json(p) == {'a': 1}
    assert json.loads(p.read_text()) == {'a': 1}


@posix_only
def test_owner_only_modes(tmp_path):
    d = tmp_path / 'store'
    d.mkdir(mode=0o755)
    p = d / 'vault.json'
    storage.write_json(p, {'x': True})
    assert storage.file_mode(p) == 0o600
    assert storage.file_mode(d) == 0o700


@posix_only
def test_ensure_dir_tightens_mode(tmp_path):
    d = storage.ensure_dir(tmp_path / 'a' / 'b')
    assert d.is_dir()
    assert storage.file_mode(d) == 0o700


def test_no_temp_files_left(tmp_path):
    p = tmp_path / 'vault.json'
    for i in range(3):
        storage.write_json(p, {'i': i})
    assert sorted(os.listdir(tmp_path)) == ['vault.json']
    assert storage.read_json(p) == {'i': 2}


def test_failed_replace_keeps_original(tmp_path, monkeypatch):
    p = tmp_path / 'vault.json'
    storage.write_json(p, {'v': 'old'})

    def boom(src, dst):
        raise OSError('disk full')

    monkeypatch.setattr(storage.os, 'replace', boom)
    with pytest.raises(StorageError):
        storage.write_json(p, {'v': 'new'})
    monkeypatch.undo()
    assert storage.read_json(p) == {'v': 'old'}
    assert sorted(os.listdir(tmp_path)) == ['vault.json']


def test_read_json_errors(tmp_path):
    with pytest.raises(StorageError):
        storage.read_json(tmp_path / 'missing.json')
    bad = tmp_path / 'bad.json'
    bad.write_text('{not json')
    with pytest.raises(FormatError):
        storage.read_json(bad)
    binary = tmp_path / 'binary.json'
    binary.write_bytes(b'\xff\xfe{}')
    with pytest.raises(FormatError, match='not valid UTF-8'):
        storage.read_json(binary)
    assert storage.read_json_optional(tmp_path / 'missing.json') is None


def test_remove_file(tmp_path):
    p = tmp_path / 'lock.json'
    p.write_text('{}')
    assert storage.remove_file(p) is True
    assert storage.remove_file(p) is False
