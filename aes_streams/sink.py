"""
Sinks
=====
Where a context's output goes.

Accumulate:  no sink bound. Every chunk of one write is collected and
             write() returns the joined bytes.
Push:        a consumer is bound. Each chunk is handed over the moment it
             is produced. The consumer may ask the engine to park the write
             by returning SUSPEND, or by returning an awaitable (a coroutine
             sink); the context then returns a PendingWrite instead of
             running on.

Binding forms accepted by bind_sink():

    bind_sink()                    -> None (accumulate)
    bind_sink(fn)                  -> fn(chunk)
    bind_sink(fn, receiver)        -> fn(receiver, chunk)
    bind_sink(obj_with_write)      -> obj.write(chunk)
"""

import inspect

from .exceptions import InvalidArgument


class _Suspend:
    __slots__ = ()

    def __repr__(self):
        return "SUSPEND"


SUSPEND = _Suspend()


def is_suspension(result) -> bool:
    """True if a consumer's return value asks the engine to stop here."""
    return result is SUSPEND or inspect.isawaitable(result)


class Accumulator:
    """In-memory sink for one write."""

    __slots__ = ("_chunks",)

    def __init__(self):
        self._chunks = []

    def push(self, chunk: bytes):
        self._chunks.append(chunk)

    def result(self) -> bytes:
        return b"".join(self._chunks)


class SinkBinding:
    """A consumer plus the optional receiver it is called with."""

    __slots__ = ("consumer", "receiver", "pass_receiver")

    def __init__(self, consumer, receiver=None, pass_receiver: bool = False):
        self.consumer      = consumer
        self.receiver      = receiver
        self.pass_receiver = pass_receiver

    def push(self, chunk: bytes):
        if self.pass_receiver:
            return self.consumer(self.receiver, chunk)
        return self.consumer(chunk)

    def as_tuple(self) -> tuple:
        return self.consumer, self.receiver

    def __repr__(self):
        return f"SinkBinding({self.consumer!r}, receiver={self.receiver!r})"


def bind_sink(consumer=None, receiver=None):
    """
    Validate a consumer/receiver pair and build its binding.
    Returns None for accumulate mode.
    """
    if consumer is None:
        if receiver is not None:
            raise InvalidArgument("no writer present")
        return None

    if callable(consumer):
        if receiver is not None:
            return SinkBinding(consumer, receiver, pass_receiver=True)
        return SinkBinding(consumer)

    if receiver is not None:
        raise InvalidArgument("writer must be callable when a receiver is given")
    write = getattr(consumer, "write", None)
    if not callable(write):
        raise InvalidArgument("write method not found in object")
    return SinkBinding(write, consumer)
