from __future__ import annotations

import json
import re
from typing import Any, Protocol

from firehose_output.errors import ConfigurationError
from firehose_output.models import LogEvent, format_timestamp

_FIELD_REFERENCE = re.compile(r"%\{([^}]+)\}")
DEFAULT_PLAIN_FORMAT = "%{@timestamp} %{host} %{message}"


class Codec(Protocol):
    def encode(self, event: LogEvent) -> bytes:
        ...


def render_template(template: str, event: LogEvent) -> str:
    """Substitute %{name} references; unresolved references are kept verbatim."""

    def _replace(match: re.Match[str]) -> str:
        value = event.get(match.group(1))
        if value is None:
            return match.group(0)
        if isinstance(value, (dict, list)):
            return json.dumps(value, separators=(",", ":"), default=str)
        return str(value)

    return _FIELD_REFERENCE.sub(_replace, template)


class PlainCodec:
    def __init__(self, *, format: str | None = None, charset: str = "utf-8") -> None:
        self._format = DEFAULT_PLAIN_FORMAT if format is None else format
        self._charset = charset

    def encode(self, event: LogEvent) -> bytes:
        return render_template(self._format, event).encode(self._charset)


class LineCodec(PlainCodec):
    def encode(self, event: LogEvent) -> bytes:
        return super().encode(event) + "\n".encode(self._charset)


class JsonCodec:
    def __init__(self, *, charset: str = "utf-8") -> None:
        self._charset = charset

    def encode(self, event: LogEvent) -> bytes:
        return self._dumps(event).encode(self._charset)

    def _dumps(self, event: LogEvent) -> str:
        document: dict[str, Any] = dict(event.fields)
        document["@timestamp"] = format_timestamp(event.timestamp)
        document["message"] = event.message
        if event.host is not None:
            document["host"] = event.host
        return json.dumps(document, separators=(",", ":"), ensure_ascii=False, default=str)


class JsonLinesCodec(JsonCodec):
    def encode(self, event: LogEvent) -> bytes:
        return (self._dumps(event) + "\n").encode(self._charset)


def build_codec(name: str, *, format: str | None = None, charset: str = "utf-8") -> Codec:
    if name == "plain":
        return PlainCodec(format=format, charset=charset)
    if name == "line":
        return LineCodec(format=format, charset=charset)
    if name == "json":
        return JsonCodec(charset=charset)
    if name == "json_lines":
        return JsonLinesCodec(charset=charset)

    raise ConfigurationError(f"Unsupported codec: {name}")
