from __future__ import annotations

import logging
import os
import socket
import sys
from collections.abc import Iterable, Iterator
from typing import TextIO

from firehose_output.firehose import FirehoseClient
from firehose_output.models import DispatchReport, LogEvent
from firehose_output.output import FirehoseOutput
from firehose_output.settings import Settings

LOGGER = logging.getLogger(__name__)


def configure_logging(level_name: str | None = None) -> None:
    level_name = (level_name or os.getenv("LOG_LEVEL", "INFO")).upper()
    level = logging.getLevelNamesMapping().get(level_name, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    # botocore logs every request at DEBUG, including record payloads.
    for noisy in ("botocore", "urllib3"):
        logging.getLogger(noisy).setLevel(max(level, logging.INFO))


def read_events(lines: Iterable[str], *, host: str) -> Iterator[LogEvent]:
    for line in lines:
        message = line.rstrip("\r\n")
        if not message:
            continue
        yield LogEvent(message=message, host=host)


def _chunks(events: Iterable[LogEvent], size: int) -> Iterator[list[LogEvent]]:
    chunk: list[LogEvent] = []
    for event in events:
        chunk.append(event)
        if len(chunk) >= size:
            yield chunk
            chunk = []
    if chunk:
        yield chunk


def run(
    stream: TextIO,
    *,
    settings: Settings | None = None,
    client: FirehoseClient | None = None,
) -> DispatchReport:
    settings = settings or Settings()
    output = FirehoseOutput.from_settings(settings, client=client)
    output.register()

    LOGGER.info(
        "service_start",
        extra={
            "stream_name": settings.firehose_stream,
            "aws_region": settings.aws_region,
            "codec": settings.codec,
        },
    )

    report = DispatchReport()
    events = read_events(stream, host=socket.gethostname())
    for chunk in _chunks(events, settings.read_batch_size):
        report += output.receive_many(chunk)

    LOGGER.info("service_stop", extra=report.model_dump())
    return report


def main() -> None:
    configure_logging()
    run(sys.stdin)
