from __future__ import annotations

import threading

import pytest

from firehose_output.buffer import EventBuffer


def test_drain_up_to_returns_head_records_in_order() -> None:
    buffer = EventBuffer()
    for record in (b"a", b"b", b"c"):
        buffer.push(record)

    assert buffer.drain_up_to(2) == [b"a", b"b"]
    assert len(buffer) == 1
    assert buffer.drain_up_to(2) == [b"c"]
    assert buffer.drain_up_to(2) == []


def test_drain_one_is_fifo_and_returns_none_when_empty() -> None:
    buffer = EventBuffer()
    buffer.push(b"first")
    buffer.push(b"second")

    assert buffer.drain_one() == b"first"
    assert buffer.drain_one() == b"second"
    assert buffer.drain_one() is None


def test_drain_up_to_rejects_non_positive_count() -> None:
    with pytest.raises(ValueError):
        EventBuffer().drain_up_to(0)


def test_concurrent_push_and_drain_neither_loses_nor_duplicates_records() -> None:
    buffer = EventBuffer()
    producers = 4
    per_producer = 2_000
    drained: list[bytes] = []
    drained_lock = threading.Lock()
    done = threading.Event()

    def produce(worker: int) -> None:
        for i in range(per_producer):
            buffer.push(f"{worker}-{i}".encode())

    def consume() -> None:
        while not done.is_set() or len(buffer):
            records = buffer.drain_up_to(7)
            with drained_lock:
                drained.extend(records)

    consumers = [threading.Thread(target=consume) for _ in range(3)]
    producer_threads = [threading.Thread(target=produce, args=(w,)) for w in range(producers)]
    for thread in consumers + producer_threads:
        thread.start()
    for thread in producer_threads:
        thread.join()
    done.set()
    for thread in consumers:
        thread.join()

    assert len(drained) == producers * per_producer
    assert len(set(drained)) == producers * per_producer
