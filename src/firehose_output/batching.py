from __future__ import annotations

from collections.abc import Iterable, Sequence

# Hard limits of the Firehose PutRecord/PutRecordBatch API.
FIREHOSE_PUT_BATCH_RECORD_LIMIT = 500
FIREHOSE_PUT_BATCH_SIZE_LIMIT = 4_000_000
FIREHOSE_PUT_RECORD_SIZE_LIMIT = 1_000_000


def batch_size_bytes(records: Iterable[bytes]) -> int:
    return sum(len(record) for record in records)


def split_oversized(
    records: Sequence[bytes],
    *,
    max_record_bytes: int = FIREHOSE_PUT_RECORD_SIZE_LIMIT,
) -> tuple[list[bytes], list[bytes]]:
    kept: list[bytes] = []
    dropped: list[bytes] = []
    for record in records:
        if len(record) > max_record_bytes:
            dropped.append(record)
        else:
            kept.append(record)
    return kept, dropped


def partition_batches(
    records: Sequence[bytes],
    *,
    max_records: int = FIREHOSE_PUT_BATCH_RECORD_LIMIT,
    max_bytes: int = FIREHOSE_PUT_BATCH_SIZE_LIMIT,
) -> list[list[bytes]]:
    """Split records, in order, into batches within both the count and byte limits."""
    if max_records <= 0:
        raise ValueError("max_records must be > 0")
    if max_bytes <= 0:
        raise ValueError("max_bytes must be > 0")

    batches: list[list[bytes]] = []
    batch: list[bytes] = []
    size_bytes = 0

    for record in records:
        record_size = len(record)
        if record_size > max_bytes:
            raise ValueError(
                f"Record size ({record_size}) exceeds batch byte limit ({max_bytes})"
            )

        if batch and (len(batch) >= max_records or size_bytes + record_size > max_bytes):
            batches.append(batch)
            batch = []
            size_bytes = 0

        batch.append(record)
        size_bytes += record_size

    if batch:
        batches.append(batch)

    return batches
