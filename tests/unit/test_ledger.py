import os

import pytest

from audiosort.application.naming_manager import RenameLedger, RenameStep, StepPhase


class FlakyRename:
    """os.rename that fails for the listed (source, target) pairs."""

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.calls = []

    def __call__(self, source, target):
        self.calls.append((source, target))
        if (source, target) in self.failing:
            raise OSError(f"injected failure {source} -> {target}")
        os.rename(source, target)


def _files(tmp_path, *names):
    paths = []
    for name in names:
        path = tmp_path / name
        path.write_text(name)
        paths.append(str(path))
    return paths


def _stage_and_finalize(ledger, tmp_path, pairs):
    """Apply STAGE for every pair, then FINALIZE; returns (temp, final) per pair."""
    placed = []
    for index, (record_id, source) in enumerate(pairs):
        final = str(tmp_path / f"final_{index + 1:02d}.wav")
        temp = f"{final}.1-{record_id}-abc.tmp"
        ledger.apply(RenameStep(record_id, source, temp, StepPhase.STAGE, final))
        placed.append((temp, final))
    for (record_id, _), (temp, final) in zip(pairs, placed):
        ledger.apply(RenameStep(record_id, temp, final, StepPhase.FINALIZE, final))
    return placed


def test_rollback_restores_every_original(tmp_path):
    a, b = _files(tmp_path, "a.wav", "b.wav")
    ledger = RenameLedger()
    _stage_and_finalize(ledger, tmp_path, [(1, a), (2, b)])
    assert len(ledger) == 4

    report = ledger.rollback()

    assert report.complete
    assert sorted(report.restored) == [1, 2]
    assert open(a).read() == "a.wav"
    assert open(b).read() == "b.wav"
    assert sorted(os.listdir(tmp_path)) == ["a.wav", "b.wav"]
    assert len(ledger) == 0


def test_failed_stage_undo_falls_back_to_final_path(tmp_path):
    (a,) = _files(tmp_path, "a.wav")
    final = str(tmp_path / "final_01.wav")
    temp = f"{final}.1-1-abc.tmp"
    rename = FlakyRename(failing={(temp, a)})
    ledger = RenameLedger(rename)
    ledger.apply(RenameStep(1, a, temp, StepPhase.STAGE, final))

    report = ledger.rollback()

    assert report.complete
    assert report.placed_at_final == [1]
    assert os.path.exists(final)
    assert not os.path.exists(temp)


def test_failed_finalize_undo_leaves_file_at_final(tmp_path):
    a, b = _files(tmp_path, "a.wav", "b.wav")
    final_a = str(tmp_path / "final_01.wav")
    temp_a = f"{final_a}.1-1-abc.tmp"
    rename = FlakyRename(failing={(final_a, temp_a)})
    ledger = RenameLedger(rename)
    _stage_and_finalize(ledger, tmp_path, [(1, a), (2, b)])

    report = ledger.rollback()

    assert report.complete
    assert report.placed_at_final == [1]
    assert report.restored == [2]
    assert os.path.exists(final_a)
    assert open(b).read() == "b.wav"


def test_unrecoverable_file_is_reported(tmp_path):
    (a,) = _files(tmp_path, "a.wav")
    final = str(tmp_path / "final_01.wav")
    temp = f"{final}.1-1-abc.tmp"
    rename = FlakyRename(failing={(temp, a), (temp, final)})
    ledger = RenameLedger(rename)
    ledger.apply(RenameStep(1, a, temp, StepPhase.STAGE, final))

    report = ledger.rollback()

    assert not report.complete
    assert report.failures[0].record_id == 1
    assert report.failures[0].location == temp


def test_failed_apply_is_not_recorded(tmp_path):
    (a,) = _files(tmp_path, "a.wav")
    target = str(tmp_path / "missing" / "b.wav")
    ledger = RenameLedger()
    with pytest.raises(OSError):
        ledger.apply(RenameStep(1, a, target, StepPhase.STAGE, target))
    assert len(ledger) == 0
