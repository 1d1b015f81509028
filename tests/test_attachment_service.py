from __future__ import annotations

import asyncio
import threading

from mediavault.services.attachment_service import AttachmentService
from tests.conftest import GatedStream, make_ref


def test_ingest_registers_successes_with_the_ledger(settings, store):
    service = AttachmentService(settings, store, retry=False)
    refs = [
        make_ref(b"\xff\xd8" + b"a" * 128, name="a.jpg"),
        make_ref(b"hello", name="notes.txt", kind="text/plain"),
    ]

    results = asyncio.run(service.ingest_results(refs))

    assert len(service.ledger) == 1
    assert results[0].file_id in service.ledger
    assert asyncio.run(service.cleanup_provisional()) == [results[0].file_id]
    assert store.list() == []


def test_cancelled_batch_leaves_no_files_after_close(settings, store):
    reading = threading.Event()
    gate = threading.Event()
    service = AttachmentService(settings, store, retry=False)
    fast = make_ref(b"\xff\xd8" + b"f" * 256, name="fast.jpg")
    slow = make_ref(b"", name="slow.mp4", kind="video/mp4", size=1024, opener=lambda: GatedStream(reading, gate))

    async def scenario():
        task = asyncio.create_task(service.ingest_results([fast, slow]))
        await asyncio.to_thread(reading.wait, 5)
        for _ in range(500):
            if len(service.ledger) == 1:
                break
            await asyncio.sleep(0.01)
        assert len(service.ledger) == 1
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        gate.set()
        await service.close()

    asyncio.run(scenario())

    # asyncio.run waits for the slow copy thread, which removes its partial file.
    assert store.list() == []
    assert len(service.ledger) == 0
