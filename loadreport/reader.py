"""Fan-in reader that presents several byte sources as one stream."""

from typing import BinaryIO, List


def read_chunk(source: BinaryIO, size: int) -> bytes:
    """Read up to size bytes with at most one underlying read.

    Buffered streams expose read1(), which returns whatever is available
    instead of blocking until size bytes have arrived.
    """
    read1 = getattr(source, 'read1', None)
    if read1 is not None:
        return read1(size)
    return source.read(size)


class RoundRobinReader:
    """Byte-level round-robin over several sources.

    Every read() is forwarded to source ``cursor % len(sources)`` and the
    cursor then advances, so reads go A, B, C, A, B, C, ... This does not
    align on record boundaries: merged streams only decode cleanly when
    each read returns whole records.

    By default an empty read from the selected source ends the composite
    stream, even when other sources still have data. With
    ``skip_exhausted=True`` exhausted sources are dropped instead and the
    stream ends once all of them are exhausted.
    """

    def __init__(self, *sources: BinaryIO, skip_exhausted: bool = False):
        if not sources:
            raise ValueError("RoundRobinReader needs at least one source")
        self.sources: List[BinaryIO] = list(sources)
        self.skip_exhausted = skip_exhausted
        self._cursor = 0

    def read(self, size: int = -1) -> bytes:
        while self.sources:
            index = self._cursor % len(self.sources)
            self._cursor += 1
            chunk = read_chunk(self.sources[index], size)
            if chunk or not self.skip_exhausted:
                return chunk
            # Removing the source shifts later ones down one slot
            del self.sources[index]
            self._cursor = index
        return b''

    def readable(self) -> bool:
        return True
