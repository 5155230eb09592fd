"""
Cipher Context
==============
One streaming encrypt or decrypt session: key schedule, chaining
register, tail buffer and sink, driven through a small state machine.

    CLOSED --open()--> OPEN --close()--> CLOSED --open()--> ...
    any state --destroy()--> DESTROYED (terminal, idempotent)

write(data) pipeline:

    [tail merge] -> whole-block / chunk_size runs -> mode transform
                 -> sink push (may suspend) -> residue back into tail

Resumable writes
----------------
A push sink may return SUSPEND (or an awaitable) after taking a chunk.
write() then stops right there and returns a PendingWrite holding the
offset of the first unprocessed input byte and a snapshot of the chaining
state. Nothing is rolled back: the chunk was delivered, the register has
already advanced past it. continue_write(op) restarts from op.offset. At
every push point the tail buffer is empty, so restarting is the same as
writing the rest of the input afresh. write_async() runs that loop for
coroutine sinks.

Only one write may be parked per context. Destroying a context with a
parked write drops it.
"""

import asyncio
import enum
import logging

from .exceptions import InvalidArgument, InvalidState
from .modes.base import ModeState
from .modes.mode_cbc import CBCMode
from .modes.mode_cfb import CFBMode
from .modes.mode_ctr import CTRMode, CounterIncrement
from .modes.mode_ecb import ECBMode
from .modes.mode_ofb import OFBMode
from .primitive import AESPrimitive, Direction
from .sink import SUSPEND, Accumulator, bind_sink, is_suspension
from .tail import TailBuffer, aligned_length, run_length

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 4096    # bytes per sink push


class Mode(enum.Enum):
    ECB = "ecb"
    CBC = "cbc"
    CFB = "cfb"
    OFB = "ofb"
    CTR = "ctr"

    @classmethod
    def coerce(cls, value) -> "Mode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise InvalidArgument(f"unknown mode: {value!r}") from None


_STRATEGIES = {
    Mode.ECB: ECBMode,
    Mode.CBC: CBCMode,
    Mode.CFB: CFBMode,
    Mode.OFB: OFBMode,
    Mode.CTR: CTRMode,
}


class State(enum.Enum):
    CLOSED    = "closed"
    OPEN      = "open"
    DESTROYED = "destroyed"


class PendingWrite:
    """A write parked at a sink suspension point."""

    __slots__ = ("_data", "_sink", "offset", "state", "waiting", "done")

    def __init__(self, data: bytes, sink):
        self._data   = data
        self._sink   = sink
        self.offset  = 0
        self.state   = None    # ModeState at the last checkpoint
        self.waiting = None    # awaitable returned by the sink, if any
        self.done    = False

    @property
    def data(self) -> bytes:
        return self._data

    @property
    def remaining(self) -> int:
        return len(self._data) - self.offset

    async def wait(self):
        """Wait out the suspension: the sink's awaitable, or one loop turn."""
        waiting, self.waiting = self.waiting, None
        if waiting is not None:
            await waiting
        else:
            await asyncio.sleep(0)

    def __repr__(self):
        status = "done" if self.done else "suspended"
        return f"<PendingWrite {status} at {self.offset}/{len(self._data)}>"


def _as_bytes(data) -> bytes:
    if isinstance(data, bytes):
        return data
    if isinstance(data, str):
        raise TypeError("write() expects bytes-like data, not str")
    # copy, so a parked write never sees the caller mutate its buffer
    return bytes(memoryview(data))


class CipherContext:
    """
    Streaming block-cipher mode context.

    mode:        "ecb" | "cbc" | "cfb" | "ofb" | "ctr" (or a Mode)
    direction:   "encrypt" | "decrypt" (or a Direction)
    chunk_size:  most bytes handed to the sink per push, >= 2 blocks
    primitive:   block cipher adapter, AESPrimitive() by default
    increment:   CTR only, CounterIncrement.BACKWARD (default) or FORWARD
    """

    def __init__(self, mode, direction, chunk_size: int = DEFAULT_CHUNK_SIZE,
                 primitive=None, **mode_options):
        mode      = Mode.coerce(mode)
        direction = Direction.coerce(direction)
        if primitive is None:
            primitive = AESPrimitive()
        block_size = primitive.block_size

        if (not isinstance(chunk_size, int) or isinstance(chunk_size, bool)
                or chunk_size < 2 * block_size):
            raise InvalidArgument(
                f"buffer size is too small: {chunk_size!r} (minimum {2 * block_size})")
        if mode_options and mode is not Mode.CTR:
            raise InvalidArgument(
                f"{mode.name} context takes no options: {sorted(mode_options)}")
        unknown = set(mode_options) - {"increment"}
        if unknown:
            raise InvalidArgument(f"unknown options: {sorted(unknown)}")

        self._mode       = mode
        self._direction  = direction
        self._primitive  = primitive
        self._chunk_size = chunk_size
        self._strategy   = _STRATEGIES[mode](primitive, direction, **mode_options)
        if self._strategy.needs_alignment:
            self._run = run_length(chunk_size, block_size)
        else:
            self._run = chunk_size
        self._tail     = TailBuffer(block_size)
        self._state    = State.CLOSED
        self._schedule = None
        self._sink     = None
        self._pending  = None
        logger.info(f"{self._label} context created | {direction.value} | chunk={chunk_size}")

    # -- inspection ----------------------------------------------------------

    @property
    def _label(self) -> str:
        return self._strategy.name

    @property
    def state(self) -> State:
        return self._state

    @property
    def mode(self) -> Mode:
        return self._mode

    @property
    def direction(self) -> Direction:
        return self._direction

    @property
    def block_size(self) -> int:
        return self._primitive.block_size

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def increment(self):
        """CTR counter increment policy; None for the other modes."""
        return getattr(self._strategy, "increment", None)

    @property
    def register(self):
        """Copy of the chaining register (None for ECB or before open)."""
        return self._strategy.register

    @property
    def tail(self) -> bytes:
        """Input bytes waiting for a full block (ECB/CBC)."""
        return bytes(self._tail)

    @property
    def pending(self):
        """The parked PendingWrite, if any."""
        return self._pending

    def snapshot(self) -> ModeState:
        return self._strategy.snapshot()

    def is_open(self) -> bool:
        return self._state is State.OPEN

    def is_closed(self) -> bool:
        """True whenever writes are refused, a destroyed context included."""
        return self._state is not State.OPEN

    def is_destroyed(self) -> bool:
        return self._state is State.DESTROYED

    def __repr__(self):
        return f"<{self._label} context ({self._state.value}) at {hex(id(self))}>"

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.destroy()
        return False

    # -- lifecycle -----------------------------------------------------------

    def _check_alive(self):
        if self._state is State.DESTROYED:
            raise InvalidState(f"{self._label} context is destroyed")

    def _check_open(self):
        self._check_alive()
        if self._state is not State.OPEN:
            raise InvalidState(f"{self._label} context is closed")

    def open(self, key: bytes, iv: bytes = None) -> "CipherContext":
        """
        Set up the key schedule (and the chaining register from `iv` for
        every mode but ECB) and start accepting writes.
        Only the first block of a longer IV is used.
        """
        self._check_alive()
        if self._state is State.OPEN:
            raise InvalidState(f"{self._label} context already open")

        schedule = self._primitive.key_setup(
            self._strategy.key_direction(self._direction), key)
        self._strategy.install(iv)

        self._schedule = schedule
        self._tail.clear()
        self._pending = None
        self._state = State.OPEN
        logger.debug(f"{self._label} context open | key={len(key) * 8}-bit")
        return self

    def close(self):
        """Stop accepting writes. Key schedule, register and tail are kept."""
        self._check_open()
        self._state = State.CLOSED
        logger.debug(f"{self._label} context closed | tail={len(self._tail)}B")

    def destroy(self):
        if self._state is State.DESTROYED:
            return
        self._sink     = None
        self._pending  = None
        self._schedule = None
        self._state    = State.DESTROYED
        logger.debug(f"{self._label} context destroyed")

    def reset(self, iv: bytes = None) -> "CipherContext":
        """
        Reload the chaining register from `iv` and restart the keystream.
        ECB has nothing to reset. The tail buffer is left alone.
        """
        self._check_alive()
        self._strategy.reset(iv)
        logger.debug(f"{self._label} context reset")
        return self

    # -- sink ------------------------------------------------------------------

    def set_sink(self, consumer=None, receiver=None) -> "CipherContext":
        """
        Bind where output goes. No arguments switches back to accumulate
        mode, where write() returns the produced bytes.
        """
        self._check_alive()
        self._sink = bind_sink(consumer, receiver)
        logger.debug(f"{self._label} context sink -> {self._sink!r}")
        return self

    def get_sink(self) -> tuple:
        self._check_alive()
        if self._sink is None:
            return None, None
        return self._sink.as_tuple()

    # -- write -----------------------------------------------------------------

    def write(self, data):
        """
        Push `data` through the mode.

        Returns the output bytes in accumulate mode, None once a push write
        has delivered everything, or a PendingWrite if the sink suspended.
        """
        self._check_open()
        if self._pending is not None:
            raise InvalidState(f"{self._label} context has a suspended write pending")
        data = _as_bytes(data)

        if self._sink is None:
            sink = Accumulator()
            self._drive(PendingWrite(data, sink))
            return sink.result()
        return self._resume(PendingWrite(data, self._sink))

    def continue_write(self, op: PendingWrite):
        """
        Resume a parked write where its sink suspended it.
        An awaitable returned by the sink must be awaited first (op.wait()).
        """
        self._check_open()
        if op is None or op is not self._pending:
            raise InvalidState(f"{self._label} context has no such suspended write")
        if op.waiting is not None:
            # the sink's chunk is only delivered once its awaitable runs
            raise InvalidState(f"{self._label} context sink awaitable not awaited")
        logger.debug(f"{self._label} write resumed at {op.offset}/{len(op.data)}")
        return self._resume(op)

    async def write_async(self, data):
        """write(), awaiting every sink suspension until all input is done."""
        result = self.write(data)
        while isinstance(result, PendingWrite):
            await result.wait()
            result = self.continue_write(result)
        return result

    def _resume(self, op: PendingWrite):
        self._pending = None
        if self._drive(op):
            self._pending = op
            logger.debug(f"{self._label} write suspended at {op.offset}/{len(op.data)}")
            return op
        op.done = True
        return None

    def _emit(self, op: PendingWrite, chunk: bytes) -> bool:
        result = op._sink.push(chunk)
        if not is_suspension(result):
            return False
        op.state   = self._strategy.snapshot()
        op.waiting = None if result is SUSPEND else result
        return True

    def _drive(self, op: PendingWrite) -> bool:
        """
        Process op.data from op.offset. Returns True if the sink suspended;
        op.offset then points at the first byte not yet processed.
        """
        data     = memoryview(op.data)
        end      = len(data)
        pos      = op.offset
        strategy = self._strategy
        schedule = self._schedule
        tail     = self._tail
        if pos >= end:
            return False

        # only ECB/CBC ever leave bytes in the tail
        if tail:
            pos += tail.fill(data, pos)
            op.offset = pos
            if not tail.full:
                return False
            chunk = strategy.transform_chunk(schedule, bytes(tail))
            tail.clear()
            if self._emit(op, chunk):
                return True

        if strategy.needs_alignment:
            stop = pos + aligned_length(end - pos, self.block_size)
        else:
            stop = end

        while pos < stop:
            size  = min(self._run, stop - pos)
            chunk = strategy.transform_chunk(schedule, data[pos:pos + size])
            pos  += size
            op.offset = pos
            if self._emit(op, chunk):
                return True

        if pos < end:
            tail.fill(data, pos)
            op.offset = end
        return False


# -- factories ---------------------------------------------------------------

def ecb_encrypt(chunk_size: int = DEFAULT_CHUNK_SIZE, primitive=None) -> CipherContext:
    return CipherContext(Mode.ECB, Direction.ENCRYPT, chunk_size, primitive)


def ecb_decrypt(chunk_size: int = DEFAULT_CHUNK_SIZE, primitive=None) -> CipherContext:
    return CipherContext(Mode.ECB, Direction.DECRYPT, chunk_size, primitive)


def cbc_encrypt(chunk_size: int = DEFAULT_CHUNK_SIZE, primitive=None) -> CipherContext:
    return CipherContext(Mode.CBC, Direction.ENCRYPT, chunk_size, primitive)


def cbc_decrypt(chunk_size: int = DEFAULT_CHUNK_SIZE, primitive=None) -> CipherContext:
    return CipherContext(Mode.CBC, Direction.DECRYPT, chunk_size, primitive)


def cfb_encrypt(chunk_size: int = DEFAULT_CHUNK_SIZE, primitive=None) -> CipherContext:
    return CipherContext(Mode.CFB, Direction.ENCRYPT, chunk_size, primitive)


def cfb_decrypt(chunk_size: int = DEFAULT_CHUNK_SIZE, primitive=None) -> CipherContext:
    return CipherContext(Mode.CFB, Direction.DECRYPT, chunk_size, primitive)


def ofb_encrypt(chunk_size: int = DEFAULT_CHUNK_SIZE, primitive=None) -> CipherContext:
    return CipherContext(Mode.OFB, Direction.ENCRYPT, chunk_size, primitive)


def ofb_decrypt(chunk_size: int = DEFAULT_CHUNK_SIZE, primitive=None) -> CipherContext:
    return CipherContext(Mode.OFB, Direction.DECRYPT, chunk_size, primitive)


def ctr_encrypt(chunk_size: int = DEFAULT_CHUNK_SIZE,
                increment=CounterIncrement.BACKWARD, primitive=None) -> CipherContext:
    return CipherContext(Mode.CTR, Direction.ENCRYPT, chunk_size, primitive,
                         increment=increment)


def ctr_decrypt(chunk_size: int = DEFAULT_CHUNK_SIZE,
                increment=CounterIncrement.BACKWARD, primitive=None) -> CipherContext:
    return CipherContext(Mode.CTR, Direction.DECRYPT, chunk_size, primitive,
                         increment=increment)
