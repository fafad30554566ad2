"""Общие фикстуры для тестов."""
import os
import shutil
import tempfile
from unittest.mock import MagicMock

import pytest

from errors import PersistenceError
from main import DEFAULTS
from provisioner import PeerProvisioner
from storage import TextStore
from wg_tools import WgTool

SERVER_CONF = (
    "[Interface]\n"
    "Address = 10.2.53.1/24, fc10:253::1/64\n"
    "ListenPort = 51820\n"
    "PrivateKey = SERVERPRIV=\n"
)


class MemoryStore(TextStore):
    """Хранилище в памяти вместо файла."""

    def __init__(self, text=None, name="<memory>"):
        self.text = text
        self.name = name
        self.writes = 0
        self.fail_writes = False

    def exists(self):
        return self.text is not None

    def read(self):
        return self.text

    def write(self, data):
        if self.fail_writes:
            raise PersistenceError(f"Failed to write {self.name}: No space left on device")
        self.text = data
        self.writes += 1


@pytest.fixture(scope="function")
def temp_dir():
    """Создаёт временную директорию для тестов."""
    path = tempfile.mkdtemp()
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def cfg(temp_dir):
    """Конфигурация со всеми путями внутри временной директории."""
    c = dict(DEFAULTS)
    c.update(
        {
            "WG_CONF": os.path.join(temp_dir, "wg0.conf"),
            "PEER_DB": os.path.join(temp_dir, "wg-peers-meta.csv"),
            "PROFILE_DIR": os.path.join(temp_dir, "profiles"),
            "LOCK_FILE": os.path.join(temp_dir, "wg-peers.lock"),
            "SHOW_QR": False,
        }
    )
    return c


@pytest.fixture
def mock_wg():
    """Мок WgTool: ключи детерминированные, интерфейс не поднят."""
    wg = MagicMock(spec=WgTool)
    counter = {"n": 0}

    def gen_keypair():
        counter["n"] += 1
        return f"PRIV-{counter['n']}", f"PUB-{counter['n']}"

    wg.gen_keypair.side_effect = gen_keypair
    wg.gen_psk.return_value = "PSK="
    wg.public_key.return_value = "SERVERPUB="
    wg.is_active.return_value = False
    wg.detect_endpoint_host.return_value = "203.0.113.7"
    return wg


@pytest.fixture
def config_store():
    return MemoryStore(SERVER_CONF, name="wg0.conf")


@pytest.fixture
def registry_store():
    return MemoryStore(None, name="wg-peers-meta.csv")


@pytest.fixture
def provisioner(cfg, mock_wg, config_store, registry_store):
    """Оркестратор на хранилищах в памяти."""
    return PeerProvisioner(
        cfg, wg=mock_wg, config_store=config_store, registry_store=registry_store
    )
