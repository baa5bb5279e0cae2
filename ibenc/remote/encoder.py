"""Serialization of metric samples into a snappy-compressed WriteRequest."""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional

import snappy
from google.protobuf.message import EncodeError
from prometheus_remote_writer.proto.remote_pb2 import WriteRequest

from ..errors import EncodingError
from ..exporter import MetricSample

LOGGER = logging.getLogger(__name__)

METRIC_NAME_LABEL = "__name__"
CONTENT_ENCODING = "snappy"

Serializer = Callable[[object], bytes]
Compressor = Callable[[bytes], bytes]


def serialize_message(message) -> bytes:
    return message.SerializeToString()


def snappy_block_compress(data: bytes) -> bytes:
    # block format, not the framed stream format
    return snappy.compress(data)


class RemoteWriteEncoder:
    """Turns samples into the bytes a remote-write receiver expects.

    ``serializer`` and ``compressor`` default to protobuf and snappy; tests
    can substitute them to look at the uncompressed envelope.
    """

    def __init__(
        self,
        serializer: Optional[Serializer] = None,
        compressor: Optional[Compressor] = None,
    ):
        self.serializer = serializer or serialize_message
        self.compressor = compressor or snappy_block_compress

    def build_write_request(self, samples: Iterable[MetricSample]):
        write_request = WriteRequest()
        for sample in samples:
            if not sample.is_scalar:
                LOGGER.debug("Skipping %s: unsupported metric kind %s", sample.name, sample.kind)
                continue

            series = write_request.timeseries.add()
            label = series.labels.add()
            label.name = METRIC_NAME_LABEL
            label.value = sample.name
            for name, value in sample.labels:
                label = series.labels.add()
                label.name = name
                label.value = value

            point = series.samples.add()
            point.value = sample.value
            point.timestamp = sample.timestamp_ms
        return write_request

    def serialize(self, samples: Iterable[MetricSample]) -> bytes:
        write_request = self.build_write_request(samples)
        try:
            return self.serializer(write_request)
        except (EncodeError, TypeError, ValueError) as exc:
            raise EncodingError(f"failed to marshal protobuf: {exc}") from exc

    def encode(self, samples: Iterable[MetricSample]) -> bytes:
        data = self.serialize(samples)
        compressed = self.compressor(data)
        LOGGER.debug("Encoded write request: %d bytes (uncompressed %d)", len(compressed), len(data))
        return compressed
