from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from firehose_output.codec import (
    JsonCodec,
    JsonLinesCodec,
    LineCodec,
    PlainCodec,
    build_codec,
)
from firehose_output.errors import ConfigurationError
from firehose_output.models import LogEvent

TIMESTAMP = datetime(2024, 5, 17, 8, 30, 15, 123456, tzinfo=timezone.utc)


def _event(**kwargs: object) -> LogEvent:
    return LogEvent(message="123,someValue,1234567890", timestamp=TIMESTAMP, **kwargs)


def test_plain_default_format_keeps_missing_host_reference() -> None:
    encoded = PlainCodec().encode(_event())

    assert encoded == b"2024-05-17T08:30:15.123Z %{host} 123,someValue,1234567890"


def test_plain_default_format_with_host() -> None:
    encoded = PlainCodec().encode(_event(host="web-1"))

    assert encoded == b"2024-05-17T08:30:15.123Z web-1 123,someValue,1234567890"


def test_plain_custom_format_resolves_fields() -> None:
    codec = PlainCodec(format="%{level}|%{message}|%{missing}")

    encoded = codec.encode(_event(fields={"level": "WARN"}))

    assert encoded == b"WARN|123,someValue,1234567890|%{missing}"


def test_line_codec_appends_newline() -> None:
    encoded = LineCodec(format="%{message}").encode(_event())

    assert encoded == b"123,someValue,1234567890\n"


def test_json_codecs() -> None:
    event = _event(host="web-1", fields={"level": "INFO"})

    document = json.loads(JsonCodec().encode(event))
    assert document == {
        "@timestamp": "2024-05-17T08:30:15.123Z",
        "host": "web-1",
        "level": "INFO",
        "message": "123,someValue,1234567890",
    }
    assert JsonLinesCodec().encode(event).endswith(b"}\n")


def test_build_codec_rejects_unknown_name() -> None:
    assert isinstance(build_codec("line"), LineCodec)
    with pytest.raises(ConfigurationError):
        build_codec("msgpack")


def test_plain_empty_format_is_kept() -> None:
    assert PlainCodec(format="").encode(_event()) == b""
