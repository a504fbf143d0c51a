import random
import warnings
from pathlib import Path

import pytest

from terminal_vault.lib.crypto import KdfParams, VaultCrypto
from terminal_vault.lib.keystore import MemoryStore
from terminal_vault.lib.manager import VaultManager
from terminal_vault.lib.paths import VaultPaths

PASSPHRASE = 'Str0ng!Pass'
FAST = KdfParams(memory_cost=256, time_cost=1, parallelism=1)


def seeded_randbytes(seed):
    rnd = random.Random(seed)
    return lambda n: bytes(rnd.getrandbits(8) for _ in range(n))


def write_legacy_vault(path: Path, payload: bytes, password: str) -> None:
    """Write the oldest single-layer shape {salt, nonce, data}."""
    import json
    with warnings.catch_warnings():
        warnings.simplefilter('ignore', DeprecationWarning)
        record = VaultCrypto().encrypt_with_password(password, payload)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(record.to_dict()))


@pytest.fixture
def home(tmp_path, monkeypatch):
    h = tmp_path / 'home'
    h.mkdir()
    monkeypatch.setenv('HOME', str(h))
    monkeypatch.setenv('USERPROFILE', str(h))
    return h


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def paths(home):
    base = home / '.terminal-vault'
    base.mkdir()
    return VaultPaths.for_dir(base)


@pytest.fixture
def manager(paths, store):
    return VaultManager(paths, store, params=FAST)
