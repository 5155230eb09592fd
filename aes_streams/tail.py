"""
Tail Buffer
===========
Holds the sub-block residue ECB and CBC cannot process yet.

Block modes only accept whole blocks, but callers write whatever they
have. The bytes left over after the last whole block of a write wait
here until later writes complete the block.

Invariant: 0 <= len(tail) < block_size between writes.
"""


def aligned_length(length: int, block_size: int) -> int:
    """Largest multiple of `block_size` that is <= `length`."""
    return length - length % block_size


def run_length(chunk_size: int, block_size: int) -> int:
    """Sub-run size for aligned modes: chunk_size rounded down to whole blocks."""
    return aligned_length(chunk_size, block_size)


class TailBuffer:
    """Fixed one-block buffer with a fill count."""

    __slots__ = ("_block", "_size", "_count")

    def __init__(self, block_size: int):
        self._block = bytearray(block_size)
        self._size  = block_size
        self._count = 0

    def __len__(self):
        return self._count

    def __bool__(self):
        return self._count > 0

    def __bytes__(self):
        return bytes(self._block[:self._count])

    @property
    def full(self) -> bool:
        return self._count == self._size

    @property
    def missing(self) -> int:
        """Bytes still needed to complete the block."""
        return self._size - self._count

    def fill(self, data, offset: int = 0) -> int:
        """
        Copy as many bytes as fit from data[offset:] into the buffer.
        Returns how many were taken.
        """
        take = min(self.missing, len(data) - offset)
        if take <= 0:
            return 0
        self._block[self._count:self._count + take] = data[offset:offset + take]
        self._count += take
        return take

    def clear(self):
        self._count = 0
