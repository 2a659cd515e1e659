import asyncio
import os

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from audiosort.application.library_manager import LibraryService
from audiosort.core.config import ConfigManager, LibrarySettings
from audiosort.domain.exceptions import (
    CategoryNotAssignedError,
    InvalidMetadataError,
    LibraryNotConfiguredError,
    ReorganizeError,
)
from audiosort.infrastructure.audio_engine import WaveCodec

FOLDER = "VEHICLES/UTILITY"


def _scan(service):
    service.scan_library()
    return {r.relative_path: r for r in service.list_files()}


def _categorize(service, record, *categories):
    return service.repository.update_tagging(record.id, [], list(categories))


def _folder_listing(root):
    return sorted(os.listdir(root / FOLDER))


class FlakyRename:
    """os.rename that raises for targets ending with ``fail_suffix``."""

    def __init__(self, fail_suffix):
        self.fail_suffix = fail_suffix
        self.failed = 0

    def __call__(self, source, target):
        if str(target).endswith(self.fail_suffix):
            self.failed += 1
            raise OSError(f"injected failure for {target}")
        os.rename(source, target)


def test_organize_numbers_after_existing_files(service, library_root, make_wav):
    make_wav(library_root / FOLDER / "VEH_Util_01.wav", seed=1)
    make_wav(library_root / FOLDER / "VEH_Util_02.wav", seed=2)
    source = make_wav(library_root / "incoming" / "take.wav", seed=3)
    records = _scan(service)
    take = _categorize(service, records["incoming/take.wav"], "VEHUtil")

    organized = service.organize_file(take.id)

    assert organized.id == take.id
    assert organized.file_name == "VEH_Util_03.wav"
    assert organized.relative_path == f"{FOLDER}/VEH_Util_03.wav"
    assert os.path.exists(organized.absolute_path)
    assert not source.exists()
    assert service.get_file(take.id).absolute_path == organized.absolute_path
    assert service.read_file_metadata(take.id).categories == ["VEHUtil"]
    assert [op.operation for op in service.list_operations(take.id)] == ["organize"]


def test_custom_name_gives_unnumbered_name(service, library_root, make_wav):
    make_wav(library_root / "incoming" / "take.wav", seed=3)
    take = _categorize(service, _scan(service)["incoming/take.wav"], "VEHUtil")

    organized = service.organize_file(take.id, {"custom_name": "my car!! engine"})

    assert organized.relative_path == f"{FOLDER}/VEH_Util_My_Car_Engine.wav"
    assert organized.custom_name == "my car!! engine"
    assert service.read_file_metadata(take.id).title == "my car!! engine"


def test_single_file_without_name_is_numbered(service, library_root, make_wav):
    make_wav(library_root / "take.wav", seed=3)
    take = _categorize(service, _scan(service)["take.wav"], "DOORWood")

    organized = service.organize_file(take.id)

    assert organized.relative_path == "DOORS/WOOD/DOOR_Wood_01.wav"


def test_colliding_custom_name_forces_numbering(service, library_root, make_wav):
    existing_path = make_wav(library_root / FOLDER / "VEH_Util_Engine.wav", seed=1)
    make_wav(library_root / "incoming" / "new.wav", seed=2)
    records = _scan(service)
    existing = _categorize(service, records[f"{FOLDER}/VEH_Util_Engine.wav"], "DOORWood")
    new = _categorize(service, records["incoming/new.wav"], "VEHUtil")

    organized = service.organize_file(new.id, {"custom_name": "engine"})

    assert organized.file_name == "VEH_Util_Engine_02.wav"
    renumbered = service.get_file(existing.id)
    assert renumbered.file_name == "VEH_Util_Engine_01.wav"
    assert os.path.exists(renumbered.absolute_path)
    assert not existing_path.exists()
    assert _folder_listing(library_root) == ["VEH_Util_Engine_01.wav", "VEH_Util_Engine_02.wav"]
    assert [op.operation for op in service.list_operations(existing.id)] == ["renumber"]


def test_organize_is_idempotent(service, library_root, make_wav):
    make_wav(library_root / FOLDER / "VEH_Util_01.wav", seed=1)
    make_wav(library_root / "incoming" / "take.wav", seed=3)
    take = _categorize(service, _scan(service)["incoming/take.wav"], "VEHUtil")

    first = service.organize_file(take.id)
    second = service.organize_file(take.id)

    assert first.absolute_path == second.absolute_path == str(library_root / FOLDER / "VEH_Util_02.wav")
    assert _folder_listing(library_root) == ["VEH_Util_01.wav", "VEH_Util_02.wav"]
    assert len(service.list_operations(take.id)) == 1


def test_named_file_is_idempotent(service, library_root, make_wav):
    make_wav(library_root / "take.wav", seed=3)
    take = _categorize(service, _scan(service)["take.wav"], "VEHUtil")

    first = service.organize_file(take.id, {"custom_name": "Engine"})
    second = service.organize_file(take.id)

    assert first.file_name == second.file_name == "VEH_Util_Engine.wav"


def test_clearing_custom_name_switches_to_numbering(service, library_root, make_wav):
    make_wav(library_root / "take.wav", seed=3)
    take = _categorize(service, _scan(service)["take.wav"], "VEHUtil")
    service.organize_file(take.id, {"custom_name": "Engine"})

    cleared = service.organize_file(take.id, {"custom_name": ""})

    assert cleared.file_name == "VEH_Util_01.wav"
    assert cleared.custom_name is None
    assert service.read_file_metadata(take.id).title is None


def test_renumbering_is_a_permutation(service, library_root, make_wav):
    make_wav(library_root / FOLDER / "VEH_Util_Engine.wav", seed=10)
    make_wav(library_root / FOLDER / "VEH_Util_Engine_05.wav", seed=11)
    make_wav(library_root / "incoming" / "new.wav", seed=12)
    records = _scan(service)
    plain = records[f"{FOLDER}/VEH_Util_Engine.wav"]
    numbered = records[f"{FOLDER}/VEH_Util_Engine_05.wav"]
    new = _categorize(service, records["incoming/new.wav"], "VEHUtil")

    organized = service.organize_file(new.id, {"custom_name": "Engine"})

    assert organized.file_name == "VEH_Util_Engine_03.wav"
    assert service.get_file(plain.id).file_name == "VEH_Util_Engine_01.wav"
    assert service.get_file(numbered.id).file_name == "VEH_Util_Engine_02.wav"
    assert _folder_listing(library_root) == [
        "VEH_Util_Engine_01.wav", "VEH_Util_Engine_02.wav", "VEH_Util_Engine_03.wav",
    ]
    # Content follows the record
    for record in (plain, numbered, new):
        current = service.get_file(record.id)
        assert service.checksums.compute(current.absolute_path) == record.checksum


def test_failed_renumber_rolls_back_everything(db, settings, categories, library_root, make_wav):
    rename = FlakyRename("VEH_Util_Engine_02.wav")
    service = LibraryService(db=db, settings=settings, rename=rename)
    plain_path = make_wav(library_root / FOLDER / "VEH_Util_Engine.wav", seed=10)
    numbered_path = make_wav(library_root / FOLDER / "VEH_Util_Engine_05.wav", seed=11)
    new_path = make_wav(library_root / "incoming" / "new.wav", seed=12)
    records = _scan(service)
    new = _categorize(service, records["incoming/new.wav"], "VEHUtil")
    before = {r.id: r.absolute_path for r in service.list_files()}

    with pytest.raises(ReorganizeError):
        service.organize_file(new.id, {"custom_name": "Engine"})

    assert rename.failed == 1
    assert plain_path.exists() and numbered_path.exists() and new_path.exists()
    assert _folder_listing(library_root) == ["VEH_Util_Engine.wav", "VEH_Util_Engine_05.wav"]
    assert {r.id: r.absolute_path for r in service.list_files()} == before
    assert service.checksums.compute(plain_path) == records[f"{FOLDER}/VEH_Util_Engine.wav"].checksum


def test_unique_violation_is_retried_once(service, library_root, make_wav, monkeypatch):
    source = make_wav(library_root / "take.wav", seed=3)
    take = _categorize(service, _scan(service)["take.wav"], "VEHUtil")
    real_update = service.repository.update_file_location
    calls = []

    def flaky_update(*args, **kwargs):
        calls.append(args)
        if len(calls) == 1:
            raise IntegrityError("UPDATE audio_files", {}, Exception("UNIQUE constraint failed"))
        return real_update(*args, **kwargs)

    monkeypatch.setattr(service.repository, "update_file_location", flaky_update)

    organized = service.organize_file(take.id)

    assert len(calls) == 2
    assert organized.file_name == "VEH_Util_01.wav"
    assert os.path.exists(organized.absolute_path)
    assert not source.exists()


def test_second_unique_violation_fails_cleanly(service, library_root, make_wav, monkeypatch):
    source = make_wav(library_root / "take.wav", seed=3)
    take = _categorize(service, _scan(service)["take.wav"], "VEHUtil")

    def always_conflict(*args, **kwargs):
        raise IntegrityError("UPDATE audio_files", {}, Exception("UNIQUE constraint failed"))

    monkeypatch.setattr(service.repository, "update_file_location", always_conflict)

    with pytest.raises(ReorganizeError):
        service.organize_file(take.id)

    assert source.exists()
    assert service.get_file(take.id).absolute_path == str(source)
    assert not (library_root / FOLDER).exists() or not os.listdir(library_root / FOLDER)


def test_untracked_file_on_disk_is_skipped(service, library_root, make_wav):
    make_wav(library_root / "take.wav", seed=3)
    take = _categorize(service, _scan(service)["take.wav"], "VEHUtil")
    make_wav(library_root / FOLDER / "VEH_Util_01.wav", seed=4)  # appears after the scan

    organized = service.organize_file(take.id)

    assert organized.file_name == "VEH_Util_02.wav"


def test_organize_requires_category(service, library_root, make_wav):
    make_wav(library_root / "take.wav", seed=3)
    take = _scan(service)["take.wav"]

    with pytest.raises(CategoryNotAssignedError):
        service.organize_file(take.id)

    _categorize(service, take, "NOTInCatalog")
    with pytest.raises(CategoryNotAssignedError):
        service.organize_file(take.id)


def test_organize_requires_library_root(db, categories, tmp_path):
    settings = LibrarySettings(ConfigManager(config_dir=tmp_path / "empty"))
    service = LibraryService(db=db, settings=settings)
    with pytest.raises(LibraryNotConfiguredError):
        service.organize_file(1)


def test_reindex_listener_and_async_wrapper(service, library_root, make_wav):
    make_wav(library_root / "take.wav", seed=3)
    take = _categorize(service, _scan(service)["take.wav"], "VEHUtil")
    seen = []
    service.add_reindex_listener(seen.append)

    organized = asyncio.run(service.organize_file_async(take.id))

    assert organized.file_name == "VEH_Util_01.wav"
    assert seen == [[take.id]]

    service.remove_reindex_listener(seen.append)
    service.rename_file(take.id, "Renamed")
    assert seen == [[take.id]]


def _snapshot(service, library_root, file_id):
    """Row, embedded tags and every file on disk, for before/after comparison."""
    record = service.get_file(file_id)
    files = sorted(p.relative_to(library_root).as_posix() for p in library_root.rglob("*") if p.is_file())
    return record, WaveCodec().read_tags(record.absolute_path), files


def _tagged_take(service, library_root, make_wav, *categories):
    path = make_wav(library_root / "take.wav", seed=3)
    WaveCodec().write_tags(path, {"IART": "Ann", "IRTD": "6"})
    make_wav(library_root / "other.wav", seed=4)
    records = _scan(service)
    take = records["take.wav"]
    if categories:
        take = _categorize(service, take, *categories)
    return take, records["other.wav"]


def test_failed_precondition_applies_no_overrides(service, library_root, make_wav):
    take, other = _tagged_take(service, library_root, make_wav)
    before = _snapshot(service, library_root, take.id)

    with pytest.raises(CategoryNotAssignedError):
        service.organize_file(take.id, {"parent_file_id": other.id, "custom_name": "Engine", "author": "Bob"})

    assert _snapshot(service, library_root, take.id) == before
    assert service.get_file(take.id).parent_file_id is None


def test_invalid_rating_is_rejected_before_moving(service, library_root, make_wav):
    take, _ = _tagged_take(service, library_root, make_wav, "VEHUtil")
    before = _snapshot(service, library_root, take.id)

    with pytest.raises(InvalidMetadataError):
        service.organize_file(take.id, {"rating": "five"})

    assert _snapshot(service, library_root, take.id) == before


def test_database_error_moves_file_back(service, library_root, make_wav, monkeypatch):
    take, other = _tagged_take(service, library_root, make_wav, "VEHUtil")
    before = _snapshot(service, library_root, take.id)

    def locked(*args, **kwargs):
        raise OperationalError("UPDATE audio_files", {}, Exception("database is locked"))

    monkeypatch.setattr(service.repository, "update_file_location", locked)

    with pytest.raises(ReorganizeError, match="database is locked"):
        service.organize_file(take.id, {"parent_file_id": other.id})
    assert _snapshot(service, library_root, take.id) == before

    with pytest.raises(ReorganizeError):
        service.rename_file(take.id, "Renamed")
    assert _snapshot(service, library_root, take.id) == before
    assert service.list_operations(take.id) == []


def test_parent_override_is_stored_after_the_move(service, library_root, make_wav):
    take, other = _tagged_take(service, library_root, make_wav, "VEHUtil")

    organized = service.organize_file(take.id, {"parent_file_id": other.id})

    assert organized.relative_path == f"{FOLDER}/VEH_Util_01.wav"
    assert service.get_file(take.id).parent_file_id == other.id
    metadata = service.read_file_metadata(take.id)
    assert (metadata.parent_file_id, metadata.author, metadata.rating) == (other.id, "Ann", 3)
