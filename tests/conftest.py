"""Common test fixtures for the NexusNotes data layer."""

import tempfile
from pathlib import Path

import pytest

from nexus_notes.config import NexusNotesConfig, config
from nexus_notes.observability import metrics
from nexus_notes.services.search_service import SearchService
from nexus_notes.storage.engine import StorageEngine
from nexus_notes.storage.note_repository import NoteRepository
from nexus_notes.storage.notebook_repository import NotebookRepository
from nexus_notes.storage.tag_repository import TagRepository


@pytest.fixture
def temp_data_dir():
    """Create a temporary data directory."""
    with tempfile.TemporaryDirectory() as data_dir:
        yield Path(data_dir)


@pytest.fixture
def test_config(temp_data_dir, monkeypatch):
    """Point the global config at the temp directory (auto-restored even on crash)."""
    monkeypatch.setattr(config, "data_dir", temp_data_dir)
    monkeypatch.setattr(config, "log_dir", None)
    return config


def _make_config(data_dir: Path, **overrides) -> NexusNotesConfig:
    """Build an isolated config rooted at ``data_dir``."""
    values = {
        "data_dir": data_dir,
        "database_filename": "test_nexusnotes.sqlite",
        "pool_size": 1,
        "pool_timeout": 5,
        "seed_default_data": True,
        "record_versions": True,
    }
    values.update(overrides)
    return NexusNotesConfig(**values)


@pytest.fixture
def config_factory():
    """Factory for isolated configs: config_factory(data_dir, **overrides)."""
    return _make_config


@pytest.fixture
def storage(temp_data_dir):
    """Open storage engine with the seed data."""
    engine = StorageEngine(_make_config(temp_data_dir)).open()
    yield engine
    engine.close()


@pytest.fixture
def empty_storage(temp_data_dir):
    """Open storage engine with no seed data."""
    engine = StorageEngine(_make_config(temp_data_dir, seed_default_data=False)).open()
    yield engine
    engine.close()


@pytest.fixture
def notebook_repository(storage):
    return NotebookRepository(storage)


@pytest.fixture
def note_repository(storage):
    return NoteRepository(storage)


@pytest.fixture
def tag_repository(storage):
    return TagRepository(storage)


@pytest.fixture
def search_service(storage):
    return SearchService(storage)


@pytest.fixture(autouse=True)
def _reset_metrics():
    """Keep the global metrics collector isolated between tests."""
    metrics.reset()
    yield
    metrics.reset()
