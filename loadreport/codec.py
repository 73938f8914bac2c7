"""Binary encoding of Result records.

Each record is framed as a 4-byte big-endian payload length followed by a
protobuf-serialized ``loadreport.Result`` message. The message type is
built at import time from a descriptor, so no generated module is needed.
"""

import struct
from typing import BinaryIO

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory
from google.protobuf.message import DecodeError as ProtobufDecodeError

from .errors import DecodeError, EndOfStream
from .models import Result
from .reader import read_chunk
from .utils import ns_to_datetime, ns_to_timedelta

FieldType = descriptor_pb2.FieldDescriptorProto

# Field numbers follow this order
RESULT_FIELDS = [
    ('timestamp', FieldType.TYPE_INT64),  # Unix nanoseconds
    ('code', FieldType.TYPE_UINT32),
    ('latency', FieldType.TYPE_INT64),  # Nanoseconds
    ('bytes_out', FieldType.TYPE_UINT64),
    ('bytes_in', FieldType.TYPE_UINT64),
    ('error', FieldType.TYPE_STRING),
]

FRAME_HEADER = struct.Struct('>I')
MAX_FRAME_SIZE = 16 * 1024 * 1024
DEFAULT_CHUNK_SIZE = 64 * 1024


def _build_result_message_class():
    file_proto = descriptor_pb2.FileDescriptorProto(
        name='loadreport/result.proto',
        package='loadreport',
        syntax='proto3',
    )
    message_proto = file_proto.message_type.add(name='Result')
    for number, (name, field_type) in enumerate(RESULT_FIELDS, start=1):
        message_proto.field.add(
            name=name,
            number=number,
            type=field_type,
            label=FieldType.LABEL_OPTIONAL,
        )

    pool = descriptor_pool.DescriptorPool()
    pool.AddSerializedFile(file_proto.SerializeToString())
    return message_factory.GetMessageClass(pool.FindMessageTypeByName('loadreport.Result'))


ResultMessage = _build_result_message_class()


class Encoder:
    """Writes Results to a binary stream, one frame per record."""

    def __init__(self, stream: BinaryIO):
        self.stream = stream

    def encode(self, result: Result) -> None:
        message = ResultMessage(
            timestamp=result.timestamp_ns,
            code=result.code,
            latency=result.latency_ns,
            bytes_out=result.bytes_out,
            bytes_in=result.bytes_in,
            error=result.error,
        )
        payload = message.SerializeToString()
        self.stream.write(FRAME_HEADER.pack(len(payload)) + payload)


class Decoder:
    """Pulls Results one at a time from a byte source.

    decode() raises EndOfStream when the source is exhausted on a record
    boundary and DecodeError when a record is truncated or corrupt. There
    is no attempt to resynchronize after a DecodeError.

    Iterating over a Decoder yields Results until EndOfStream.
    """

    def __init__(self, reader: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.reader = reader
        self.chunk_size = chunk_size
        self._buffer = bytearray()

    def _fill(self) -> bool:
        chunk = read_chunk(self.reader, self.chunk_size)
        if not chunk:
            return False
        self._buffer.extend(chunk)
        return True

    def decode(self) -> Result:
        while len(self._buffer) < FRAME_HEADER.size:
            if not self._fill():
                if not self._buffer:
                    raise EndOfStream()
                raise DecodeError(f"truncated record header: {len(self._buffer)} of {FRAME_HEADER.size} bytes")

        (size,) = FRAME_HEADER.unpack_from(self._buffer, 0)
        if size > MAX_FRAME_SIZE:
            raise DecodeError(f"record of {size} bytes exceeds the {MAX_FRAME_SIZE} byte limit")

        end = FRAME_HEADER.size + size
        while len(self._buffer) < end:
            if not self._fill():
                raise DecodeError(f"truncated record: {len(self._buffer) - FRAME_HEADER.size} of {size} bytes")

        payload = bytes(self._buffer[FRAME_HEADER.size:end])
        del self._buffer[:end]

        message = ResultMessage()
        try:
            message.ParseFromString(payload)
        except ProtobufDecodeError as e:
            raise DecodeError(f"corrupt record: {e}") from e

        return Result(
            timestamp=ns_to_datetime(message.timestamp),
            code=message.code,
            latency=ns_to_timedelta(message.latency),
            bytes_out=message.bytes_out,
            bytes_in=message.bytes_in,
            error=message.error,
        )

    def __iter__(self):
        return self

    def __next__(self) -> Result:
        try:
            return self.decode()
        except EndOfStream:
            raise StopIteration from None
