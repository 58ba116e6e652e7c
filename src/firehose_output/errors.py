from __future__ import annotations


class FirehoseOutputError(Exception):
    """Base class for errors raised by the Firehose output."""


class ConfigurationError(FirehoseOutputError, ValueError):
    """Fatal misconfiguration; the output cannot process events."""


class StreamNotFoundError(ConfigurationError):
    def __init__(self, *, stream_name: str, error_code: str | None, error_message: str | None) -> None:
        super().__init__(
            f"Firehose delivery stream not found: {stream_name} "
            f"({error_code or 'unknown'}: {error_message or 'no details'})"
        )
        self.stream_name = stream_name
        self.error_code = error_code
        self.error_message = error_message
