import io

import pytest

from loadreport.reader import RoundRobinReader, read_chunk


class ChunkSource:
    """Returns one scripted chunk per read and logs which source was read."""

    def __init__(self, name, chunks, log):
        self.name = name
        self.chunks = list(chunks)
        self.log = log

    def read(self, size=-1):
        self.log.append(self.name)
        if not self.chunks:
            return b''
        return self.chunks.pop(0)


def test_reads_rotate_across_sources():
    log = []
    sources = [ChunkSource(name, [name.encode()] * 3, log) for name in 'ABC']
    reader = RoundRobinReader(*sources)

    data = [reader.read(1024) for _ in range(6)]

    assert log == ['A', 'B', 'C', 'A', 'B', 'C']
    assert data == [b'A', b'B', b'C', b'A', b'B', b'C']


def test_exhausted_source_ends_the_merge():
    log = []
    reader = RoundRobinReader(
        ChunkSource('A', [b'a1', b'a2'], log),
        ChunkSource('B', [], log),
        ChunkSource('C', [b'c1'], log),
    )

    assert reader.read(1024) == b'a1'
    # B is empty: the composite stream ends even though A and C have data
    assert reader.read(1024) == b''
    assert log == ['A', 'B']


def test_skip_exhausted_continues_with_remaining_sources():
    log = []
    reader = RoundRobinReader(
        ChunkSource('A', [b'a1', b'a2'], log),
        ChunkSource('B', [], log),
        ChunkSource('C', [b'c1'], log),
        skip_exhausted=True,
    )

    chunks = []
    while True:
        chunk = reader.read(1024)
        if not chunk:
            break
        chunks.append(chunk)

    assert chunks == [b'a1', b'c1', b'a2']
    assert reader.sources == []


def test_each_reader_owns_its_cursor():
    log = []
    first = RoundRobinReader(ChunkSource('A', [b'a'] * 2, log), ChunkSource('B', [b'b'] * 2, log))
    second = RoundRobinReader(ChunkSource('C', [b'c'] * 2, log), ChunkSource('D', [b'd'] * 2, log))

    assert first.read(8) == b'a'
    assert second.read(8) == b'c'
    assert first.read(8) == b'b'
    assert second.read(8) == b'd'


def test_requires_a_source():
    with pytest.raises(ValueError):
        RoundRobinReader()


def test_read_chunk_prefers_read1():
    class Stream:
        def read(self, size=-1):
            return b'read'

        def read1(self, size=-1):
            return b'read1'

    assert read_chunk(Stream(), 100) == b'read1'
    assert read_chunk(io.BytesIO(b'plain'), 100) == b'plain'
