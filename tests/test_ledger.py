from __future__ import annotations

import threading
from pathlib import Path

from mediavault.core.storage import LocalPrivateStore
from mediavault.ingest.ledger import TempFileLedger


def _make_files(store, count: int) -> list[Path]:
    files = []
    for _ in range(count):
        path = store.create_unique_file("jpg")
        path.write_bytes(b"data")
        files.append(path)
    return files


def test_register_is_idempotent(store):
    ledger = TempFileLedger(store)
    (path,) = _make_files(store, 1)
    assert ledger.register(path) is True
    assert ledger.register(path) is False
    assert len(ledger) == 1
    assert path in ledger


def test_promoted_files_survive_cleanup(store):
    ledger = TempFileLedger(store)
    kept, dropped = _make_files(store, 2)
    ledger.register(kept)
    ledger.register(dropped)

    assert ledger.promote([kept]) == [kept]
    removed = ledger.cleanup([kept, dropped])

    assert removed == [dropped]
    assert kept.exists()
    assert not dropped.exists()
    assert len(ledger) == 0


def test_cleanup_twice_is_a_no_op(store):
    ledger = TempFileLedger(store)
    files = _make_files(store, 3)
    for path in files:
        ledger.register(path)

    assert sorted(ledger.cleanup()) == sorted(files)
    assert ledger.cleanup() == []
    assert ledger.cleanup(files) == []
    assert store.list() == []


def test_cleanup_ignores_untracked_ids(store):
    ledger = TempFileLedger(store)
    (stranger,) = _make_files(store, 1)
    assert ledger.cleanup([stranger]) == []
    assert stranger.exists()


def test_already_missing_files_are_forgotten(store):
    ledger = TempFileLedger(store)
    (path,) = _make_files(store, 1)
    ledger.register(path)
    path.unlink()

    assert ledger.cleanup() == [path]
    assert path not in ledger


class _StubbornStore(LocalPrivateStore):
    def __init__(self, root: Path):
        super().__init__(root)
        self.fail = True

    def delete(self, file_id: Path) -> bool:
        if self.fail:
            raise PermissionError("read-only volume")
        return super().delete(file_id)


def test_failed_delete_stays_tracked_for_retry(tmp_path):
    store = _StubbornStore(tmp_path / "stubborn")
    ledger = TempFileLedger(store)
    (path,) = _make_files(store, 1)
    ledger.register(path)

    assert ledger.cleanup() == []
    assert path in ledger

    store.fail = False
    assert ledger.cleanup() == [path]
    assert not path.exists()


def test_close_discards_everything_still_provisional(store):
    ledger = TempFileLedger(store)
    files = _make_files(store, 2)
    for path in files:
        ledger.register(path)
    ledger.promote(files[:1])

    ledger.close()

    assert store.list() == files[:1]


def test_concurrent_promote_and_cleanup_never_delete_promoted(store):
    ledger = TempFileLedger(store)
    files = _make_files(store, 40)
    for path in files:
        ledger.register(path)
    keep = files[::2]

    promoter = threading.Thread(target=ledger.promote, args=(keep,))
    cleaner = threading.Thread(target=ledger.cleanup, args=(files[1::2],))
    promoter.start()
    cleaner.start()
    promoter.join()
    cleaner.join()

    assert all(path.exists() for path in keep)
    assert store.list() == sorted(keep)
