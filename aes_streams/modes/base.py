"""
Mode strategies — shared machinery
==================================
A mode strategy turns one chunk of input into one chunk of output using
the primitive and whatever chaining state the mode carries.

BlockMode  (ECB, CBC)       whole blocks only; the context's tail buffer
                            keeps the residue between writes.
StreamMode (CFB, OFB, CTR)  any length; a keystream phase remembers how
                            far into the current block the last chunk
                            stopped, so a write can end mid-block.

Every strategy owns its chaining register (one block, or None for ECB).
A context creates one strategy per context and never shares it.
"""

from typing import NamedTuple, Optional

from ..exceptions import InvalidIVLength
from ..primitive import Direction
from ..tail import aligned_length


class ModeState(NamedTuple):
    """Chaining state at a point in time."""
    register: Optional[bytes]
    phase: int


def xor_bytes(a, b) -> bytes:
    """XOR two equal-length byte strings."""
    n = len(a)
    return (int.from_bytes(a, "big") ^ int.from_bytes(b, "big")).to_bytes(n, "big")


class ModeStrategy:
    name            = None
    needs_alignment = False
    requires_iv     = True

    def __init__(self, primitive, direction: Direction):
        self._primitive  = primitive
        self._direction  = direction
        self._block_size = primitive.block_size
        self._register   = None
        self._phase      = 0

    @property
    def direction(self) -> Direction:
        return self._direction

    @property
    def chaining_width(self) -> int:
        return self._block_size if self.requires_iv else 0

    @property
    def register(self) -> Optional[bytes]:
        return None if self._register is None else bytes(self._register)

    @property
    def phase(self) -> int:
        return self._phase

    def key_direction(self, direction: Direction) -> Direction:
        """Which primitive direction the key schedule must be built for."""
        return direction

    def snapshot(self) -> ModeState:
        return ModeState(self.register, self._phase)

    def _check_iv(self, iv) -> bytes:
        if iv is None:
            raise InvalidIVLength(f"{self.name} context invalid iv length: IV required")
        try:
            iv = bytes(memoryview(iv))
        except TypeError:
            raise InvalidIVLength(f"{self.name} context invalid iv length") from None
        width = self.chaining_width
        if len(iv) < width:
            raise InvalidIVLength(
                f"{self.name} context invalid iv length: {len(iv)} < {width}")
        return iv[:width]

    def install(self, iv=None):
        """Load the chaining register from `iv` and restart the keystream."""
        if not self.requires_iv:
            return
        self._register = bytearray(self._check_iv(iv))
        self._phase = 0

    def reset(self, iv=None):
        self.install(iv)

    def transform_chunk(self, schedule, data) -> bytes:
        raise NotImplementedError


class BlockMode(ModeStrategy):
    needs_alignment = True


class StreamMode(ModeStrategy):
    """
    Byte-granular mode over a block keystream.

    A chunk is cut into: the rest of a half-used block, a run of whole
    blocks, and a final partial block. Subclasses implement the two pieces.
    """

    def key_direction(self, direction: Direction) -> Direction:
        # keystream modes only ever run the primitive forwards
        return Direction.ENCRYPT

    def _encrypt_block(self, schedule, block) -> bytes:
        return self._primitive.transform(Direction.ENCRYPT, schedule, bytes(block))

    def transform_chunk(self, schedule, data) -> bytes:
        bs  = self._block_size
        end = len(data)
        pos = 0
        out = bytearray()

        if self._phase and end:
            pos = min(bs - self._phase, end)
            out += self._partial(schedule, data[:pos])

        whole = aligned_length(end - pos, bs)
        if whole:
            out += self._blocks(schedule, data[pos:pos + whole])
            pos += whole

        if pos < end:
            out += self._partial(schedule, data[pos:])
        return bytes(out)

    def _partial(self, schedule, piece) -> bytes:
        """Process bytes that fit inside the current block from self._phase."""
        raise NotImplementedError

    def _blocks(self, schedule, run) -> bytes:
        """Process whole blocks; called only at a block boundary."""
        raise NotImplementedError
