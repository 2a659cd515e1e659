import json

import pytest

from audiosort.application.batch_processor import MetadataSynchronizer, normalize_values
from audiosort.domain.exceptions import InvalidMetadataError
from audiosort.domain.models import UNSET, EmbeddedMetadata, FileRecord, MetadataUpdate
from audiosort.infrastructure.audio_engine import WaveCodec
from audiosort.infrastructure.cache import FailureCache


def _record(path, **overrides):
    values = dict(
        id=1,
        absolute_path=str(path),
        relative_path=path.name,
        file_name=path.name,
        tags=["engine", "idle"],
        categories=["VEHUtil", "VEHCar"],
    )
    values.update(overrides)
    return FileRecord(**values)


@pytest.fixture
def synchronizer():
    return MetadataSynchronizer(WaveCodec(), FailureCache("test"))


def test_parse_rating_and_parent():
    parsed = MetadataSynchronizer.parse({
        "INAM": " Big Engine ",
        "IRTD": "9",
        "ICMT": json.dumps({"parentId": 12}),
        "IPAR": "3",
        "IKEY": "a; b;; a",
    })
    assert parsed.title == "Big Engine"
    assert parsed.rating == 4
    assert parsed.parent_file_id == 12
    assert parsed.tags == ["a", "b"]


def test_parse_falls_back_to_plain_parent_field():
    assert MetadataSynchronizer.parse({"ICMT": "free text", "IPAR": "7"}).parent_file_id == 7
    assert MetadataSynchronizer.parse({"IPAR": "x"}).parent_file_id is None


def test_parse_clamps_rating():
    assert MetadataSynchronizer.parse({"IRTD": "40"}).rating == 5
    assert MetadataSynchronizer.parse({"IRTD": "1"}).rating is None
    assert MetadataSynchronizer.parse({"IRTD": "-2"}).rating is None


def test_to_tags_layout():
    tags = MetadataSynchronizer.to_tags(EmbeddedMetadata(
        title="Engine", author="Ann", rating=3, tags=["loud"], categories=["VEHUtil", "VEHCar"],
        parent_file_id=5,
    ))
    assert tags["ISBJ"] == "VEHUtil; VEHCar"
    assert tags["ISUB"] == "VEHUtil"
    assert tags["IRTD"] == "6"
    assert json.loads(tags["ICMT"]) == {"parentId": 5}
    assert tags["IPAR"] == "5"
    assert tags["ISFT"] == "AudioSort"
    assert "ICOP" not in tags


def test_merge_keeps_omitted_fields_and_replaces_supplied(tmp_path):
    existing = EmbeddedMetadata(title="Old", author="Ann", copyright="(c) Ann", rating=4, tags=["stale"])
    record = _record(tmp_path / "a.wav", custom_name=None)

    merged = MetadataSynchronizer().merge(existing, MetadataUpdate(author=None, rating=2), record)

    assert merged.title == "Old"
    assert merged.author is None
    assert merged.copyright == "(c) Ann"
    assert merged.rating == 2
    assert merged.tags == ["engine", "idle"]
    assert merged.categories == ["VEHUtil", "VEHCar"]


def test_merge_title_follows_custom_name(tmp_path):
    existing = EmbeddedMetadata(title="Old")
    record = _record(tmp_path / "a.wav", custom_name="Stored")
    sync = MetadataSynchronizer()

    assert sync.merge(existing, MetadataUpdate(), record).title == "Stored"
    assert sync.merge(existing, MetadataUpdate(custom_name="New"), record).title == "New"
    assert sync.merge(existing, MetadataUpdate(custom_name=""), record).title is None


def test_write_is_full_replace(tmp_path, make_wav, synchronizer):
    path = make_wav(tmp_path / "a.wav")
    codec = WaveCodec()
    codec.write_tags(path, {"INAM": "Old", "IART": "Ann", "XTRA": "leftover"})

    record = _record(path, custom_name="Engine", parent_file_id=None)
    synchronizer.merge_and_write(path, record, MetadataUpdate(rating=5))

    tags = codec.read_tags(path)
    assert "XTRA" not in tags
    assert tags["INAM"] == "Engine"
    assert tags["IART"] == "Ann"
    assert tags["IRTD"] == "10"
    assert tags["IKEY"] == "engine; idle"
    assert json.loads(tags["ICMT"]) == {"parentId": None}

    reread = synchronizer.read(path)
    assert reread.rating == 5
    assert reread.categories == ["VEHUtil", "VEHCar"]


def test_retagging_does_not_change_samples(tmp_path, make_wav, synchronizer):
    path = make_wav(tmp_path / "a.wav", seed=3)
    before = [c.copy() for c in WaveCodec().decoded_samples(path)]
    synchronizer.merge_and_write(path, _record(path), MetadataUpdate(author="Bo"))
    after = WaveCodec().decoded_samples(path)
    assert all((x == y).all() for x, y in zip(before, after))


def test_unreadable_file_reports_once(tmp_path, caplog):
    broken = tmp_path / "broken.wav"
    broken.write_bytes(b"not a wave file")
    failures = FailureCache("test")
    sync = MetadataSynchronizer(WaveCodec(), failures)

    assert sync.read(broken) == EmbeddedMetadata()
    assert sync.read(broken) == EmbeddedMetadata()
    assert not sync.write(broken, EmbeddedMetadata(title="x"))
    assert len(failures) == 2  # one read key, one write key
    assert caplog.text.count("Failed to read metadata") == 1


def test_normalize_values():
    assert normalize_values([" a", "b", "", None, "a ", "c"]) == ["a", "b", "c"]
    assert MetadataUpdate().supplied() == {}
    assert MetadataUpdate.from_dict({"author": None, "bogus": 1}).supplied() == {"author": None}
    assert MetadataUpdate().rating is UNSET


def test_empty_injected_cache_is_kept():
    failures = FailureCache("metadata")
    assert MetadataSynchronizer(WaveCodec(), failures).failures is failures


def test_update_coerces_numbers():
    assert MetadataUpdate(rating="4").rating == 4
    assert MetadataUpdate(rating=" ").rating is None
    assert MetadataUpdate.from_dict({"parent_file_id": "12"}).parent_file_id == 12
    assert MetadataUpdate(parent_file_id=None).parent_file_id is None


@pytest.mark.parametrize("data", [{"rating": "five"}, {"rating": True}, {"parent_file_id": "abc"}, {"rating": [3]}])
def test_update_rejects_non_integers(data):
    with pytest.raises(InvalidMetadataError):
        MetadataUpdate.from_dict(data)
