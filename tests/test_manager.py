import json
import shutil

import bcrypt
import pytest

from terminal_vault.config.settings import KEYRING_LEGACY_KEY_USER, KEYRING_REVISION_USER
from terminal_vault.lib import manager as manager_mod
from terminal_vault.lib.auth import hash_password
from terminal_vault.lib.crypto import VaultCrypto
from terminal_vault.lib.errors import (
    DecryptionError, EntryError, ExternalStoreError, FormatError, KeyDerivationError, PassphrasePolicyError,
    RollbackDetectedError, StorageError,
)
from terminal_vault.lib.keystore import MemoryStore, store_legacy_key
from terminal_vault.lib.manager import VaultManager
from terminal_vault.lib.models import Entry, Vault
from terminal_vault.lib.unlock import LEGACY, LEGACY_META, WRAPPED_V2
from conftest import FAST, PASSPHRASE, write_legacy_vault


class BrokenStore:
    def load(self, key):
        raise ExternalStoreError('keyring unavailable')

    def store(self, key, value):
        raise ExternalStoreError('keyring unavailable')


def _legacy_payload():
    v = Vault()
    v.add_entry(Entry.create('example.com', 'a@b.com', 'p@ss1'))
    return v.to_json()


def _write_meta(paths, master_hash):
    paths.meta.write_text(json.dumps({'master_hash': master_hash}))


def _write_key_record(paths, key, payload):
    record = VaultCrypto().encrypt(key, payload)
    paths.vault.write_text(json.dumps({'salt': '', **record.to_dict()}))


# --- wrapped v2 ---

def test_create_add_unlock_with_default_params(paths, store):
    mgr = VaultManager(paths, store)
    vault = mgr.create(PASSPHRASE)
    assert vault.revision == 1
    doc = json.loads(paths.vault.read_text())
    assert doc['version'] == 2
    assert doc['kdf'] == {'m_cost': 19456, 't_cost': 2, 'p_cost': 1}
    assert store.values[KEYRING_REVISION_USER] == '1'

    result = mgr.unlock(PASSPHRASE)
    result.vault.add_entry(Entry.create('example.com', 'a@b.com', 'p@ss1'))
    mgr.save(result.vault, PASSPHRASE)

    again = mgr.unlock(PASSPHRASE)
    assert (again.format, again.migrated) == (WRAPPED_V2, False)
    assert again.vault.revision == 2
    (entry,) = again.vault.entries
    assert (entry.name, entry.email, entry.password) == ('example.com', 'a@b.com', 'p@ss1')


def test_revision_counts_saves(manager, store):
    vault = manager.create(PASSPHRASE)
    for _ in range(3):
        manager.save(vault, PASSPHRASE)
    assert vault.revision == 4
    assert manager.unlock(PASSPHRASE).vault.revision == 4
    assert manager.trusted_revision() == 4


def test_wrong_passphrase(manager):
    manager.create(PASSPHRASE)
    with pytest.raises(DecryptionError):
        manager.unlock('Wr0ng!Pass')


def test_create_errors(manager, paths):
    with pytest.raises(PassphrasePolicyError):
        manager.create('weak')
    assert not paths.vault.exists()
    manager.create(PASSPHRASE)
    with pytest.raises(StorageError, match='Vault exists'):
        manager.create(PASSPHRASE)


def test_create_continues_from_trusted(paths):
    store = MemoryStore({KEYRING_REVISION_USER: '5'})
    mgr = VaultManager(paths, store, params=FAST)
    assert mgr.create(PASSPHRASE).revision == 6
    assert store.values[KEYRING_REVISION_USER] == '6'


def test_missing_and_unsupported_files(manager, paths):
    with pytest.raises(StorageError, match='Vault file not found'):
        manager.unlock(PASSPHRASE)
    paths.vault.write_text(json.dumps({'hello': 'world'}))
    with pytest.raises(FormatError, match='Unsupported or corrupt vault file'):
        manager.unlock(PASSPHRASE)


@pytest.mark.parametrize('field', ['m_cost', 't_cost', 'p_cost'])
def test_oversized_kdf_cost_in_file(manager, paths, field):
    manager.create(PASSPHRASE)
    doc = json.loads(paths.vault.read_text())
    doc['kdf'][field] = 2 ** 40
    paths.vault.write_text(json.dumps(doc))
    with pytest.raises(KeyDerivationError):
        manager.unlock(PASSPHRASE)


def test_non_utf8_vault_file(manager, paths):
    manager.create(PASSPHRASE)
    paths.vault.write_bytes(b'\xff\xfe{"version": 2}')
    with pytest.raises(FormatError):
        manager.unlock(PASSPHRASE)


def test_failed_write_restores_revision(manager, store, monkeypatch):
    vault = manager.create(PASSPHRASE)

    def boom(path, obj):
        raise StorageError('disk full')

    monkeypatch.setattr(manager_mod, 'write_json', boom)
    with pytest.raises(StorageError):
        manager.save(vault, PASSPHRASE)
    assert vault.revision == 1
    assert store.values[KEYRING_REVISION_USER] == '1'


# --- rollback ---

def test_restored_old_copy_is_rejected(manager, paths, tmp_path):
    vault = manager.create(PASSPHRASE)
    snapshot = tmp_path / 'old.json'
    shutil.copy(paths.vault, snapshot)
    manager.save(vault, PASSPHRASE)
    shutil.copy(snapshot, paths.vault)
    with pytest.raises(RollbackDetectedError) as exc:
        manager.unlock(PASSPHRASE)
    assert (exc.value.loaded, exc.value.trusted) == (1, 2)


def test_trusted_ahead_of_file(manager, store):
    manager.create(PASSPHRASE)
    store.values[KEYRING_REVISION_USER] = '9'
    with pytest.raises(RollbackDetectedError, match='older than trusted revision 9'):
        manager.unlock(PASSPHRASE)


def test_trusted_catches_up_with_newer_file(manager, store):
    manager.create(PASSPHRASE)
    del store.values[KEYRING_REVISION_USER]
    assert manager.unlock(PASSPHRASE).vault.revision == 1
    assert store.values[KEYRING_REVISION_USER] == '1'


def test_broken_store_does_not_block(paths):
    mgr = VaultManager(paths, BrokenStore(), params=FAST)
    vault = mgr.create(PASSPHRASE)
    mgr.save(vault, PASSPHRASE)
    assert mgr.unlock(PASSPHRASE).vault.revision == 2


def test_invalid_trusted_value_is_soft(manager, store):
    manager.create(PASSPHRASE)
    store.values[KEYRING_REVISION_USER] = 'garbage'
    assert manager.unlock(PASSPHRASE).vault.revision == 1


# --- legacy formats ---

def test_oldest_shape_migrates(manager, paths, store):
    write_legacy_vault(paths.vault, _legacy_payload(), PASSPHRASE)
    first = manager.unlock(PASSPHRASE)
    assert (first.format, first.migrated) == (LEGACY, True)
    assert first.vault.entries[0].email == 'a@b.com'
    assert first.vault.revision == 1
    assert json.loads(paths.vault.read_text())['version'] == 2
    assert store.values[KEYRING_REVISION_USER] == '1'

    second = manager.unlock(PASSPHRASE)
    assert (second.format, second.migrated) == (WRAPPED_V2, False)
    assert second.vault.entries[0].password == 'p@ss1'


def test_oldest_shape_wrong_passphrase_leaves_file(manager, paths):
    write_legacy_vault(paths.vault, _legacy_payload(), PASSPHRASE)
    before = paths.vault.read_text()
    with pytest.raises(DecryptionError):
        manager.unlock('Wr0ng!Pass')
    assert paths.vault.read_text() == before


def test_rollback_checked_before_migration(paths):
    store = MemoryStore({KEYRING_REVISION_USER: '5'})
    mgr = VaultManager(paths, store, params=FAST)
    write_legacy_vault(paths.vault, _legacy_payload(), PASSPHRASE)
    before = paths.vault.read_text()
    with pytest.raises(RollbackDetectedError):
        mgr.unlock(PASSPHRASE)
    assert paths.vault.read_text() == before


def test_meta_with_keyring_key(manager, paths, store):
    key = b'k' * 32
    store_legacy_key(store, key)
    _write_key_record(paths, key, _legacy_payload())
    _write_meta(paths, hash_password(PASSPHRASE))
    result = manager.unlock(PASSPHRASE)
    assert (result.format, result.migrated) == (LEGACY_META, True)
    assert result.vault.entries[0].name == 'example.com'
    assert paths.meta.exists()
    assert manager.unlock(PASSPHRASE).format == WRAPPED_V2


def test_meta_with_bcrypt_hash(manager, paths, store):
    key = b'b' * 32
    store_legacy_key(store, key)
    _write_key_record(paths, key, _legacy_payload())
    _write_meta(paths, bcrypt.hashpw(PASSPHRASE.encode(), bcrypt.gensalt(rounds=4)).decode())
    assert manager.unlock(PASSPHRASE).format == LEGACY_META


def test_meta_hash_mismatch(manager, paths, store):
    store_legacy_key(store, b'k' * 32)
    _write_key_record(paths, b'k' * 32, _legacy_payload())
    _write_meta(paths, hash_password('0ther!Pass'))
    with pytest.raises(DecryptionError):
        manager.unlock(PASSPHRASE)


def test_meta_falls_back_to_passphrase_key(manager, paths, store):
    store_legacy_key(store, b'x' * 32)
    write_legacy_vault(paths.vault, _legacy_payload(), PASSPHRASE)
    _write_meta(paths, hash_password(PASSPHRASE))
    result = manager.unlock(PASSPHRASE)
    assert result.format == LEGACY_META
    assert result.vault.entries[0].password == 'p@ss1'


def test_meta_without_keyring_key(manager, paths):
    write_legacy_vault(paths.vault, _legacy_payload(), PASSPHRASE)
    _write_meta(paths, hash_password(PASSPHRASE))
    assert manager.unlock(PASSPHRASE).format == LEGACY_META


def test_meta_legacy_key_read_error_propagates(manager, paths, store):
    store.values[KEYRING_LEGACY_KEY_USER] = '***'
    write_legacy_vault(paths.vault, _legacy_payload(), PASSPHRASE)
    _write_meta(paths, hash_password(PASSPHRASE))
    with pytest.raises(ExternalStoreError):
        manager.unlock(PASSPHRASE)


def test_malformed_meta_uses_oldest_handler(manager, paths):
    write_legacy_vault(paths.vault, _legacy_payload(), PASSPHRASE)
    paths.meta.write_text(json.dumps({'unexpected': True}))
    assert manager.unlock(PASSPHRASE).format == LEGACY


# --- passphrase change and notes ---

def test_change_passphrase(manager):
    vault = manager.create(PASSPHRASE)
    with pytest.raises(DecryptionError):
        manager.change_passphrase(vault, 'Wr0ng!Pass', 'N3w!Passphrase')
    with pytest.raises(PassphrasePolicyError, match='already in use'):
        manager.change_passphrase(vault, PASSPHRASE, PASSPHRASE)
    with pytest.raises(PassphrasePolicyError):
        manager.change_passphrase(vault, PASSPHRASE, 'weak')
    manager.change_passphrase(vault, PASSPHRASE, 'N3w!Passphrase')
    assert manager.unlock('N3w!Passphrase').vault.revision == 2
    with pytest.raises(DecryptionError):
        manager.unlock(PASSPHRASE)


def test_import_text_note(manager, tmp_path):
    vault = manager.create(PASSPHRASE)
    src = tmp_path / 'recovery.txt'
    src.write_text('codes 1 2 3', encoding='utf-8')
    note = manager.import_text_note(vault, src, PASSPHRASE)
    assert note.title == 'recovery.txt'
    with pytest.raises(EntryError, match="Note 'recovery.txt' exists"):
        manager.import_text_note(vault, src, PASSPHRASE)
    src.write_text('codes 4 5 6', encoding='utf-8')
    manager.import_text_note(vault, src, PASSPHRASE, overwrite=True)
    reopened = manager.unlock(PASSPHRASE).vault
    assert [(n.title, n.content) for n in reopened.notes] == [('recovery.txt', 'codes 4 5 6')]


def test_import_unreadable_note(manager, tmp_path):
    vault = manager.create(PASSPHRASE)
    src = tmp_path / 'blob.bin'
    src.write_bytes(b'\xff\xfe\x00')
    with pytest.raises(StorageError):
        manager.import_text_note(vault, src, PASSPHRASE)
    with pytest.raises(StorageError):
        manager.import_text_note(vault, tmp_path / 'missing.txt', PASSPHRASE)
