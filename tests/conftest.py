"""
Shared fixtures: a temporary library root, an in-memory database, a
service wired to both, and a helper writing real PCM WAV files.
"""

from pathlib import Path

import numpy as np
import pytest
import soundfile as sf

from audiosort.application.library_manager import LibraryService
from audiosort.core.config import ConfigManager, LibrarySettings
from audiosort.domain.models import CategoryRecord
from audiosort.infrastructure.database import DatabaseManager, LibraryRepository

VEHICLE_UTILITY = CategoryRecord(
    id="VEHUtil",
    category="VEHICLES",
    sub_category="UTILITY",
    short_code="VEH",
    explanation="Utility vehicles",
    synonyms=["truck", "van"],
)
DOOR_WOOD = CategoryRecord(
    id="DOORWood",
    category="DOORS",
    sub_category="WOOD",
    short_code="DOOR",
)
AMBIENCE_FOREST = CategoryRecord(
    id="AMBForst",
    category="AMBIENCE",
    sub_category="FOREST",
    short_code="AMB",
)


def write_wav(path, seed=0, frames=2205, channels=1, samplerate=22050, subtype="PCM_16"):
    """Write a short WAV with deterministic noise; equal seeds give equal samples."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    rng = np.random.default_rng(seed)
    data = rng.integers(-20000, 20000, size=(frames, channels), dtype=np.int16)
    sf.write(str(path), data, samplerate, subtype=subtype, format="WAV")
    return path


@pytest.fixture
def make_wav():
    return write_wav


@pytest.fixture
def library_root(tmp_path):
    root = tmp_path / "library"
    root.mkdir()
    return root.resolve()


@pytest.fixture
def config(tmp_path, library_root):
    manager = ConfigManager(config_dir=tmp_path / "config")
    manager.load()
    manager.set("library.root", str(library_root))
    return manager


@pytest.fixture
def settings(config):
    return LibrarySettings(config)


@pytest.fixture
def db():
    manager = DatabaseManager(":memory:")
    manager.init_db()
    yield manager
    manager.close()


@pytest.fixture
def repository(db):
    return LibraryRepository(db)


@pytest.fixture
def categories(repository):
    for category in (VEHICLE_UTILITY, DOOR_WOOD, AMBIENCE_FOREST):
        repository.upsert_category(category)
    return repository.list_categories()


@pytest.fixture
def service(db, settings, categories):
    return LibraryService(db=db, settings=settings)
