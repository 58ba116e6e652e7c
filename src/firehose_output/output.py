from __future__ import annotations

import logging
from collections.abc import Iterable

from firehose_output.buffer import EventBuffer
from firehose_output.codec import Codec, PlainCodec, build_codec
from firehose_output.errors import ConfigurationError
from firehose_output.firehose import FirehoseClient, FirehoseDispatcher, create_firehose_client
from firehose_output.models import DispatchReport, LogEvent
from firehose_output.settings import Settings, validate_stream_name

LOGGER = logging.getLogger(__name__)


class FirehoseOutput:
    """Pipeline-facing output: encodes events, buffers them and dispatches to Firehose.

    The pipeline is expected to call one instance at a time, but the buffer is
    locked so encoding and draining from several threads stays consistent.
    """

    def __init__(
        self,
        *,
        client: FirehoseClient,
        stream_name: str,
        codec: Codec | None = None,
    ) -> None:
        self._client = client
        self._stream_name = stream_name
        self._codec = codec or PlainCodec()
        self._buffer: EventBuffer | None = None
        self._dispatcher: FirehoseDispatcher | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        client: FirehoseClient | None = None,
    ) -> FirehoseOutput:
        if client is None:
            client = create_firehose_client(
                region_name=settings.aws_region,
                endpoint_url=settings.firehose_endpoint_url,
                proxy_uri=settings.proxy_uri,
                **settings.aws_credentials,
            )
        codec = build_codec(
            settings.codec,
            format=settings.codec_format,
            charset=settings.codec_charset,
        )
        return cls(client=client, stream_name=settings.firehose_stream, codec=codec)

    @property
    def stream_name(self) -> str:
        return self._stream_name

    @property
    def buffer(self) -> EventBuffer:
        if self._buffer is None:
            raise RuntimeError("FirehoseOutput.register() must be called first")
        return self._buffer

    def register(self) -> None:
        try:
            validate_stream_name(self._stream_name)
        except ConfigurationError:
            LOGGER.error("firehose_invalid_stream_name", extra={"stream_name": self._stream_name})
            raise

        self._buffer = EventBuffer()
        self._dispatcher = FirehoseDispatcher(
            client=self._client,
            stream_name=self._stream_name,
            buffer=self._buffer,
        )
        LOGGER.info("firehose_output_registered", extra={"stream_name": self._stream_name})

    def receive(self, event: LogEvent) -> DispatchReport:
        dispatcher = self._require_dispatcher()
        self._encode(event)
        return dispatcher.handle_event()

    def receive_many(self, events: Iterable[LogEvent]) -> DispatchReport:
        dispatcher = self._require_dispatcher()
        for event in events:
            self._encode(event)
        return dispatcher.handle_events()

    def _encode(self, event: LogEvent) -> None:
        encoded = self._codec.encode(event)
        LOGGER.debug("firehose_event_encoded", extra={"encoded_record": encoded})
        self.buffer.push(encoded)

    def _require_dispatcher(self) -> FirehoseDispatcher:
        if self._dispatcher is None:
            raise RuntimeError("FirehoseOutput.register() must be called first")
        return self._dispatcher
