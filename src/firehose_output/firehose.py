from __future__ import annotations

import logging
import math
from collections import Counter
from collections.abc import Sequence
from typing import Any, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from firehose_output.batching import (
    FIREHOSE_PUT_BATCH_RECORD_LIMIT,
    FIREHOSE_PUT_BATCH_SIZE_LIMIT,
    FIREHOSE_PUT_RECORD_SIZE_LIMIT,
    batch_size_bytes,
    partition_batches,
    split_oversized,
)
from firehose_output.buffer import EventBuffer
from firehose_output.errors import StreamNotFoundError
from firehose_output.models import DispatchReport, SubmissionFailure

LOGGER = logging.getLogger(__name__)

_STREAM_NOT_FOUND_ERROR_CODES = {
    "ResourceNotFound",
    "ResourceNotFoundException",
}


class FirehoseClient(Protocol):
    def put_record(self, *, DeliveryStreamName: str, Record: dict[str, Any]) -> dict[str, Any]:
        ...

    def put_record_batch(
        self, *, DeliveryStreamName: str, Records: list[dict[str, Any]]
    ) -> dict[str, Any]:
        ...


def firehose_endpoint(region: str) -> str:
    return f"https://firehose.{region}.amazonaws.com"


def create_firehose_client(
    *,
    region_name: str,
    endpoint_url: str | None = None,
    aws_access_key_id: str | None = None,
    aws_secret_access_key: str | None = None,
    aws_session_token: str | None = None,
    proxy_uri: str | None = None,
) -> FirehoseClient:
    config = Config(proxies={"http": proxy_uri, "https": proxy_uri}) if proxy_uri else None
    return boto3.client(
        "firehose",
        region_name=region_name,
        endpoint_url=endpoint_url,
        aws_access_key_id=aws_access_key_id,
        aws_secret_access_key=aws_secret_access_key,
        aws_session_token=aws_session_token,
        config=config,
    )


class FirehoseDispatcher:
    """Drains an EventBuffer into PutRecord/PutRecordBatch calls within service limits."""

    def __init__(
        self,
        *,
        client: FirehoseClient,
        stream_name: str,
        buffer: EventBuffer,
        max_batch_records: int = FIREHOSE_PUT_BATCH_RECORD_LIMIT,
        max_batch_bytes: int = FIREHOSE_PUT_BATCH_SIZE_LIMIT,
        max_record_bytes: int = FIREHOSE_PUT_RECORD_SIZE_LIMIT,
    ) -> None:
        if not 0 < max_batch_records <= FIREHOSE_PUT_BATCH_RECORD_LIMIT:
            raise ValueError(
                f"max_batch_records must be between 1 and {FIREHOSE_PUT_BATCH_RECORD_LIMIT}"
            )
        if not 0 < max_batch_bytes <= FIREHOSE_PUT_BATCH_SIZE_LIMIT:
            raise ValueError(
                f"max_batch_bytes must be between 1 and {FIREHOSE_PUT_BATCH_SIZE_LIMIT}"
            )
        if not 0 < max_record_bytes <= min(max_batch_bytes, FIREHOSE_PUT_RECORD_SIZE_LIMIT):
            raise ValueError(
                "max_record_bytes must be > 0 and within both max_batch_bytes "
                f"and {FIREHOSE_PUT_RECORD_SIZE_LIMIT}"
            )

        self._client = client
        self._stream_name = stream_name
        self._buffer = buffer
        self._max_batch_records = max_batch_records
        self._max_batch_bytes = max_batch_bytes
        self._max_record_bytes = max_record_bytes

    @property
    def stream_name(self) -> str:
        return self._stream_name

    def handle_event(self) -> DispatchReport:
        record = self._buffer.drain_one()
        if record is None:
            return DispatchReport()

        LOGGER.debug("firehose_record_drained", extra={"encoded_record": record})
        if len(record) > self._max_record_bytes:
            self._log_too_large(record)
            return DispatchReport(dropped_oversized=1)

        failure = self._put_record(record)
        if failure is not None:
            self._handle_failure(failure, records=[record])
            return DispatchReport(dropped_failed=1)

        return DispatchReport(submitted_records=1, submitted_batches=1)

    def handle_events(self) -> DispatchReport:
        report = DispatchReport()
        rounds = math.ceil(len(self._buffer) / self._max_batch_records)

        for _ in range(rounds):
            records = self._buffer.drain_up_to(self._max_batch_records)
            if not records:
                break

            kept, oversized = split_oversized(records, max_record_bytes=self._max_record_bytes)
            for record in oversized:
                self._log_too_large(record)
            report += DispatchReport(dropped_oversized=len(oversized))
            if not kept:
                continue

            batches = partition_batches(
                kept,
                max_records=self._max_batch_records,
                max_bytes=self._max_batch_bytes,
            )
            for index, batch in enumerate(batches):
                try:
                    report += self._submit_batch(batch)
                except StreamNotFoundError:
                    # Later batches of this round are already out of the buffer.
                    for unsent in batches[index + 1 :]:
                        self._log_dropped(unsent)
                    raise

        return report

    def _submit_batch(self, batch: Sequence[bytes]) -> DispatchReport:
        LOGGER.debug(
            "firehose_put_record_batch",
            extra={"batch_records": len(batch), "batch_bytes": batch_size_bytes(batch)},
        )
        try:
            response = self._client.put_record_batch(
                DeliveryStreamName=self._stream_name,
                Records=[{"Data": record} for record in batch],
            )
        except (ClientError, BotoCoreError) as exc:
            self._handle_failure(classify_submission_error(exc), records=batch)
            return DispatchReport(dropped_failed=len(batch))

        failed = _failed_put_count(response)
        if failed:
            error_codes = Counter(
                str(result.get("ErrorCode"))
                for result in response.get("RequestResponses", [])
                if result.get("ErrorCode")
            )
            LOGGER.error(
                "firehose_batch_partial_failure",
                extra={
                    "stream_name": self._stream_name,
                    "failed": failed,
                    "succeeded": len(batch) - failed,
                    "error_codes": dict(error_codes),
                },
            )

        return DispatchReport(
            submitted_records=len(batch) - failed,
            submitted_batches=1,
            dropped_failed=failed,
        )

    def _put_record(self, record: bytes) -> SubmissionFailure | None:
        try:
            self._client.put_record(
                DeliveryStreamName=self._stream_name,
                Record={"Data": record},
            )
        except (ClientError, BotoCoreError) as exc:
            return classify_submission_error(exc)
        return None

    def _handle_failure(self, failure: SubmissionFailure, *, records: Sequence[bytes]) -> None:
        if failure.is_fatal:
            LOGGER.error(
                "firehose_stream_not_found",
                extra={
                    "stream_name": self._stream_name,
                    "error_code": failure.error_code,
                    "error_message": failure.error_message,
                    "dropped_count": len(records),
                },
            )
            self._log_dropped(records)
            raise StreamNotFoundError(
                stream_name=self._stream_name,
                error_code=failure.error_code,
                error_message=failure.error_message,
            )

        LOGGER.error(
            "firehose_delivery_failed",
            extra={
                "stream_name": self._stream_name,
                "error_code": failure.error_code,
                "error_message": failure.error_message,
                "dropped_count": len(records),
            },
        )
        self._log_dropped(records)

    def _log_dropped(self, records: Sequence[bytes]) -> None:
        # TODO: route dropped records to a fallback file once a dead-letter policy exists.
        for record in records:
            LOGGER.info(
                "firehose_record_dropped",
                extra={
                    "stream_name": self._stream_name,
                    "encoded_record": record.decode("utf-8", errors="replace"),
                },
            )

    def _log_too_large(self, record: bytes) -> None:
        LOGGER.error(
            "firehose_record_too_large",
            extra={
                "stream_name": self._stream_name,
                "record_size_bytes": len(record),
                "limit_bytes": self._max_record_bytes,
            },
        )


def classify_submission_error(exc: ClientError | BotoCoreError) -> SubmissionFailure:
    error_code, error_message = _service_error_details(exc)
    normalized_code = error_code.strip() if error_code else None
    if normalized_code in _STREAM_NOT_FOUND_ERROR_CODES:
        return SubmissionFailure(
            kind="fatal",
            error_code=normalized_code,
            error_message=error_message,
        )
    return SubmissionFailure(
        kind="recoverable",
        error_code=normalized_code,
        error_message=error_message,
    )


def _failed_put_count(response: dict[str, Any]) -> int:
    failed = response.get("FailedPutCount")
    if isinstance(failed, int) and failed > 0:
        return failed
    return 0


def _service_error_details(exc: ClientError | BotoCoreError) -> tuple[str | None, str]:
    """Return (error code, message); transport errors from botocore carry no code."""
    if not isinstance(exc, ClientError):
        return None, str(exc)

    error = exc.response.get("Error", {})
    code = error.get("Code")
    return (code or None), str(error.get("Message") or exc)
