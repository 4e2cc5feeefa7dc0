import asyncio
from zoneinfo import ZoneInfo
import pytest

from daynotes.keyvault import KeyBackendError, KeyVault
from daynotes.store import NoteStore

NEW_YORK = ZoneInfo("America/New_York")


class MemoryBackend:
    """In-memory key backend; can be told to fail reads or writes."""

    def __init__(self, name="memory", fail_reads=False, fail_writes=False):
        self.name = name
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes
        self.data = {}
        self.reads = 0
        self.writes = 0

    def get(self, key):
        self.reads += 1
        if self.fail_reads:
            raise KeyBackendError(f"{self.name} read refused")
        return self.data.get(key)

    def set(self, key, value):
        if self.fail_writes:
            raise KeyBackendError(f"{self.name} write refused")
        self.writes += 1
        self.data[key] = value


@pytest.fixture
def memory_backend():
    return MemoryBackend


@pytest.fixture
def secure():
    return MemoryBackend("secure")


@pytest.fixture
def prefs():
    return MemoryBackend("prefs")


@pytest.fixture
def vault(secure, prefs):
    return KeyVault(secure, prefs)


@pytest.fixture
def db_file(tmp_path):
    return tmp_path / "data" / "notes.db"


@pytest.fixture
def make_store(db_file, vault):
    stores = []

    def factory(v=None, tz=NEW_YORK):
        store = NoteStore(db_path=db_file, vault=v or vault, tz=tz)
        stores.append(store)
        return store

    yield factory
    # release engines left open by the test
    for store in stores:
        asyncio.run(store.close())
