"""
CTR — Counter Mode
==================
Keystream block K_i = E(counter_i); output = input XOR K_i. The counter
starts at the IV and is incremented once for every keystream block used
up.

Two increment policies, fixed when the context is created:

    BACKWARD  last byte first, carrying toward byte 0. The usual
              big-endian 128-bit counter, and the default.
    FORWARD   byte 0 first, carrying toward the last byte (little-endian).

Both wrap to all-zero on overflow. Whole-block runs build every counter
block up front and encrypt them in one primitive call.
"""

import enum

from ..exceptions import InvalidArgument
from ..primitive import Direction
from .base import StreamMode, xor_bytes


class CounterIncrement(enum.Enum):
    FORWARD  = "forward"
    BACKWARD = "backward"

    @classmethod
    def coerce(cls, value) -> "CounterIncrement":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise InvalidArgument(f"unknown counter increment: {value!r}") from None

    @property
    def byteorder(self) -> str:
        return "little" if self is CounterIncrement.FORWARD else "big"


def forward_increment(counter: bytearray):
    """Increment in place, byte 0 first."""
    for i in range(len(counter)):
        counter[i] = (counter[i] + 1) & 0xFF
        if counter[i]:
            return


def backward_increment(counter: bytearray):
    """Increment in place, last byte first."""
    for i in range(len(counter) - 1, -1, -1):
        counter[i] = (counter[i] + 1) & 0xFF
        if counter[i]:
            return


class CTRMode(StreamMode):
    name = "CTR"

    def __init__(self, primitive, direction, increment=CounterIncrement.BACKWARD):
        super().__init__(primitive, direction)
        self.increment  = CounterIncrement.coerce(increment)
        self._inc       = (forward_increment if self.increment is CounterIncrement.FORWARD
                           else backward_increment)
        self._keystream = None

    def install(self, iv=None):
        super().install(iv)
        self._keystream = None

    def _counter_blocks(self, count: int) -> bytes:
        bs    = self._block_size
        order = self.increment.byteorder
        wrap  = 1 << (8 * bs)
        start = int.from_bytes(self._register, order)
        blocks = b"".join(((start + i) % wrap).to_bytes(bs, order) for i in range(count))
        self._register[:] = ((start + count) % wrap).to_bytes(bs, order)
        return blocks

    def _partial(self, schedule, piece) -> bytes:
        if self._phase == 0:
            self._keystream = self._encrypt_block(schedule, self._register)
        start = self._phase
        end   = start + len(piece)
        out   = xor_bytes(piece, self._keystream[start:end])
        if end == self._block_size:
            self._inc(self._register)
            self._keystream = None
            end = 0
        self._phase = end
        return out

    def _blocks(self, schedule, run) -> bytes:
        counters  = self._counter_blocks(len(run) // self._block_size)
        keystream = self._primitive.transform(Direction.ENCRYPT, schedule, counters)
        return xor_bytes(run, keystream)
