"""
aes_streams — Context, Sink and Resumable Write Suite
=====================================================
Run with:  python -m pytest tests/ -v

State machine (closed / open / destroyed), error taxonomy, sink
bindings, and the suspend / continue_write protocol.
"""

import sys
import os
import asyncio
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from aes_streams import (CipherContext, Mode, State, Direction, PendingWrite, SUSPEND,
                         CipherModeError, InvalidState, InvalidArgument,
                         InvalidKeyLength, InvalidIVLength,
                         ecb_encrypt, cbc_encrypt, ofb_encrypt)

KEY = bytes(range(16))
IV  = bytes(range(16, 32))
MSG = bytes(range(256)) * 2

ALL_MODES = ["ecb", "cbc", "cfb", "ofb", "ctr"]


def opened(mode="cbc", direction="encrypt", chunk_size=4096, **options):
    ctx = CipherContext(mode, direction, chunk_size=chunk_size, **options)
    return ctx.open(KEY, None if mode == "ecb" else IV)


def expected(mode, data, direction="encrypt"):
    return opened(mode, direction).write(data)


class Recorder:
    """Sink that records chunks and optionally suspends after each one."""

    def __init__(self, suspend=False):
        self.chunks  = []
        self.suspend = suspend

    def write(self, chunk):
        self.chunks.append(chunk)
        return SUSPEND if self.suspend else None

    @property
    def data(self):
        return b"".join(self.chunks)


def drain(ctx, result):
    """Resume a parked write until it completes; returns resume count."""
    resumes = 0
    while isinstance(result, PendingWrite):
        resumes += 1
        result = ctx.continue_write(result)
    return resumes


# ── Construction ─────────────────────────────────────────────────────────────
def test_new_context_is_closed():
    ctx = cbc_encrypt()
    assert ctx.state is State.CLOSED
    assert ctx.is_closed() and not ctx.is_open() and not ctx.is_destroyed()
    assert ctx.mode is Mode.CBC
    assert ctx.direction is Direction.ENCRYPT
    assert ctx.chunk_size == 4096
    assert ctx.block_size == 16

@pytest.mark.parametrize("size", [0, 16, 31, "64", 48.0, True])
def test_chunk_size_too_small_or_wrong_type(size):
    with pytest.raises(InvalidArgument):
        CipherContext("cbc", "encrypt", chunk_size=size)

def test_chunk_size_minimum_accepted():
    assert CipherContext("ctr", "decrypt", chunk_size=32).chunk_size == 32

def test_unknown_mode_and_direction():
    with pytest.raises(InvalidArgument):
        CipherContext("gcm", "encrypt")
    with pytest.raises(InvalidArgument):
        CipherContext("cbc", "sideways")

def test_mode_options_only_for_ctr():
    with pytest.raises(InvalidArgument):
        CipherContext("cbc", "encrypt", increment="forward")
    with pytest.raises(InvalidArgument):
        CipherContext("ctr", "encrypt", bogus=1)
    with pytest.raises(InvalidArgument):
        CipherContext("ctr", "encrypt", increment="sideways")
    assert CipherContext("CTR", "ENCRYPT", increment="forward").increment.value == "forward"
    assert cbc_encrypt().increment is None

def test_errors_share_a_base_and_builtin_types():
    assert issubclass(InvalidState, CipherModeError)
    assert issubclass(InvalidState, RuntimeError)
    assert issubclass(InvalidKeyLength, ValueError)
    assert issubclass(InvalidIVLength, InvalidArgument)


# ── open / close ─────────────────────────────────────────────────────────────
def test_open_returns_self_and_opens():
    ctx = cbc_encrypt()
    assert ctx.open(KEY, IV) is ctx
    assert ctx.is_open()
    assert ctx.register == IV

def test_open_twice_fails():
    ctx = opened()
    with pytest.raises(InvalidState, match="already open"):
        ctx.open(KEY, IV)

@pytest.mark.parametrize("key", [b"", b"k" * 15, b"k" * 17, b"k" * 33, b"k" * 64])
def test_invalid_key_length(key):
    ctx = cbc_encrypt()
    with pytest.raises(InvalidKeyLength):
        ctx.open(key, IV)
    assert ctx.is_closed()

@pytest.mark.parametrize("key_len", [16, 24, 32])
def test_valid_key_lengths(key_len):
    assert ecb_encrypt().open(bytes(key_len)).is_open()

@pytest.mark.parametrize("mode", ["cbc", "cfb", "ofb", "ctr"])
def test_short_or_missing_iv(mode):
    ctx = CipherContext(mode, "encrypt")
    with pytest.raises(InvalidIVLength):
        ctx.open(KEY, IV[:15])
    with pytest.raises(InvalidIVLength):
        ctx.open(KEY)
    assert ctx.is_closed()

def test_long_iv_uses_first_block():
    ctx = cbc_encrypt().open(KEY, IV + b"ignored")
    assert ctx.register == IV
    assert ctx.write(MSG) == expected("cbc", MSG)

def test_ecb_needs_no_iv():
    ctx = ecb_encrypt().open(KEY)
    assert ctx.register is None

def test_write_requires_open():
    ctx = cbc_encrypt()
    with pytest.raises(InvalidState, match="closed"):
        ctx.write(b"x")
    ctx.open(KEY, IV)
    ctx.close()
    with pytest.raises(InvalidState):
        ctx.write(b"x")

def test_close_requires_open():
    with pytest.raises(InvalidState):
        cbc_encrypt().close()

def test_close_keeps_register_and_tail():
    ctx = opened("cbc")
    ctx.write(MSG[:40])
    register, tail = ctx.register, ctx.tail
    ctx.close()
    assert ctx.register == register
    assert ctx.tail == tail

def test_reopen_starts_clean_session():
    ctx = opened("cbc")
    ctx.write(MSG[:40])
    ctx.close()
    ctx.open(KEY, IV)
    assert ctx.tail == b""
    assert ctx.register == IV
    assert ctx.write(MSG) == expected("cbc", MSG)

def test_write_rejects_str():
    with pytest.raises(TypeError):
        opened().write("text")

def test_write_accepts_bytearray_and_memoryview():
    data = bytearray(MSG)
    assert opened().write(data) == expected("cbc", MSG)
    assert opened().write(memoryview(MSG)) == expected("cbc", MSG)


# ── reset ────────────────────────────────────────────────────────────────────
def test_reset_allowed_while_closed():
    ctx = opened("ofb")
    ctx.write(b"abc")
    ctx.close()
    assert ctx.reset(IV) is ctx
    assert ctx.register == IV

def test_reset_short_iv():
    ctx = opened("ctr")
    with pytest.raises(InvalidIVLength):
        ctx.reset(b"short")
    with pytest.raises(InvalidIVLength):
        ctx.reset()

def test_reset_ecb_is_noop():
    ctx = opened("ecb")
    ctx.write(b"12345")
    ctx.reset()
    ctx.reset(IV)
    assert ctx.tail == b"12345"
    with pytest.raises(InvalidArgument):
        ctx.reset(12345)

def test_reset_does_not_touch_tail():
    ctx = opened("cbc")
    ctx.write(b"1234567")
    ctx.reset(IV)
    assert ctx.tail == b"1234567"


# ── destroy ──────────────────────────────────────────────────────────────────
def test_destroy_is_terminal_and_idempotent():
    ctx = opened()
    ctx.set_sink(lambda chunk: None)
    ctx.destroy()
    ctx.destroy()
    assert ctx.is_destroyed()
    assert ctx.state is State.DESTROYED
    for call in (lambda: ctx.open(KEY, IV), ctx.close, lambda: ctx.write(b"x"),
                 lambda: ctx.reset(IV), lambda: ctx.set_sink(None), ctx.get_sink):
        with pytest.raises(InvalidState, match="destroyed"):
            call()

def test_destroyed_context_still_inspectable():
    ctx = opened("ctr")
    ctx.destroy()
    assert ctx.is_closed()
    assert ctx.register == IV
    assert "destroyed" in repr(ctx)

def test_context_manager_destroys():
    with opened("cfb") as ctx:
        ctx.write(b"abc")
    assert ctx.is_destroyed()

def test_repr_shows_mode_and_state():
    ctx = ofb_encrypt()
    assert repr(ctx).startswith("<OFB context (closed)")
    ctx.open(KEY, IV)
    assert "(open)" in repr(ctx)


# ── Sink binding ─────────────────────────────────────────────────────────────
def test_no_sink_means_accumulate():
    ctx = opened()
    assert ctx.get_sink() == (None, None)
    assert isinstance(ctx.write(MSG), bytes)

def test_callable_sink():
    chunks = []
    ctx = opened(chunk_size=64).set_sink(chunks.append)
    assert ctx.write(MSG) is None
    assert b"".join(chunks) == expected("cbc", MSG)
    assert [len(c) for c in chunks] == [64] * 8
    assert ctx.get_sink() == (chunks.append, None)

def test_callable_with_receiver_gets_receiver_first():
    calls = []
    def consumer(receiver, chunk):
        calls.append((receiver, chunk))
    receiver = object()
    ctx = opened().set_sink(consumer, receiver)
    ctx.write(MSG)
    assert all(r is receiver for r, _ in calls)
    assert b"".join(c for _, c in calls) == expected("cbc", MSG)
    assert ctx.get_sink() == (consumer, receiver)

def test_object_with_write_method():
    rec = Recorder()
    ctx = opened().set_sink(rec)
    ctx.write(MSG)
    assert rec.data == expected("cbc", MSG)
    consumer, receiver = ctx.get_sink()
    assert receiver is rec
    assert consumer == rec.write

def test_object_without_write_rejected():
    with pytest.raises(InvalidArgument, match="write method not found"):
        opened().set_sink(object())

def test_receiver_without_consumer_rejected():
    with pytest.raises(InvalidArgument, match="no writer present"):
        opened().set_sink(None, object())

def test_non_callable_consumer_with_receiver_rejected():
    with pytest.raises(InvalidArgument):
        opened().set_sink(Recorder(), object())

def test_clearing_sink_returns_to_accumulate():
    ctx = opened().set_sink(Recorder())
    ctx.set_sink()
    assert ctx.get_sink() == (None, None)
    assert ctx.write(MSG) == expected("cbc", MSG)

@pytest.mark.parametrize("mode", ["ecb", "cbc"])
def test_aligned_pushes_are_whole_blocks(mode):
    chunks = []
    ctx = opened(mode, chunk_size=40).set_sink(chunks.append)
    ctx.write(MSG[:100])
    assert [len(c) for c in chunks] == [32, 32, 32]
    assert ctx.tail == MSG[96:100]

def test_stream_pushes_follow_chunk_size():
    chunks = []
    ctx = opened("ctr", chunk_size=40).set_sink(chunks.append)
    ctx.write(MSG[:100])
    assert [len(c) for c in chunks] == [40, 40, 20]

def test_tail_completion_is_its_own_push():
    chunks = []
    ctx = opened("cbc", chunk_size=32).set_sink(chunks.append)
    ctx.write(MSG[:5])
    assert chunks == []
    ctx.write(MSG[5:80])
    assert [len(c) for c in chunks] == [16, 32, 32]
    assert b"".join(chunks) == expected("cbc", MSG[:80])

def test_zero_length_push_write_calls_nothing():
    rec = Recorder()
    ctx = opened("ofb").set_sink(rec)
    assert ctx.write(b"") is None
    assert rec.chunks == []


# ── Resumable writes ─────────────────────────────────────────────────────────
@pytest.mark.parametrize("mode", ALL_MODES)
def test_suspend_after_every_chunk(mode):
    rec = Recorder(suspend=True)
    ctx = opened(mode, chunk_size=48).set_sink(rec)
    op  = ctx.write(MSG)
    offsets = []
    while isinstance(op, PendingWrite):
        offsets.append(op.offset)
        assert ctx.pending is op
        assert op.state == ctx.snapshot()
        op = ctx.continue_write(op)
    assert op is None
    assert ctx.pending is None
    assert rec.data == expected(mode, MSG)
    assert offsets == list(range(48, len(MSG), 48)) + [len(MSG)]

def test_suspension_offset_counts_tail_completion():
    rec = Recorder()
    ctx = opened("cbc", chunk_size=32).set_sink(rec)
    ctx.write(MSG[:5])
    rec.suspend = True
    op = ctx.write(MSG[5:100])
    assert isinstance(op, PendingWrite)
    assert op.offset == 11
    assert op.remaining == 95 - 11
    assert ctx.tail == b""
    assert len(rec.chunks) == 1
    assert drain(ctx, op) == 4
    assert rec.data == expected("cbc", MSG[:96])
    assert ctx.tail == MSG[96:100]

def test_resumed_write_matches_single_call_then_continues():
    rec = Recorder(suspend=True)
    ctx = opened("cfb", chunk_size=32).set_sink(rec)
    drain(ctx, ctx.write(MSG[:77]))
    rec.suspend = False
    ctx.write(MSG[77:])
    assert rec.data == expected("cfb", MSG)

def test_sink_can_suspend_on_some_chunks_only():
    seen = []
    def sometimes(chunk):
        seen.append(chunk)
        return SUSPEND if len(seen) % 3 == 0 else None
    ctx = opened("ctr", chunk_size=32).set_sink(sometimes)
    assert drain(ctx, ctx.write(MSG)) == len(MSG) // 32 // 3
    assert b"".join(seen) == expected("ctr", MSG)

def test_sink_sees_state_of_pushed_chunks_only():
    registers = []
    ctx = opened("cbc", chunk_size=32)
    def sink(chunk):
        registers.append((ctx.register, chunk[-16:]))
    ctx.set_sink(sink)
    ctx.write(MSG)
    assert all(reg == last for reg, last in registers)

def test_write_while_suspended_fails():
    ctx = opened("ofb", chunk_size=32).set_sink(Recorder(suspend=True))
    op = ctx.write(MSG)
    with pytest.raises(InvalidState, match="suspended"):
        ctx.write(b"more")
    drain(ctx, op)
    assert isinstance(ctx.write(b"more"), PendingWrite)

def test_continue_unknown_or_finished_write_fails():
    ctx = opened("ctr", chunk_size=32).set_sink(Recorder(suspend=True))
    other = opened("ctr", chunk_size=32).set_sink(Recorder(suspend=True))
    foreign = other.write(MSG)
    op = ctx.write(MSG)
    with pytest.raises(InvalidState):
        ctx.continue_write(foreign)
    with pytest.raises(InvalidState):
        ctx.continue_write(None)
    drain(ctx, op)
    with pytest.raises(InvalidState):
        ctx.continue_write(op)
    assert op.done

def test_destroy_drops_parked_write():
    ctx = opened("cbc", chunk_size=32).set_sink(Recorder(suspend=True))
    op = ctx.write(MSG)
    ctx.destroy()
    assert ctx.pending is None
    with pytest.raises(InvalidState):
        ctx.continue_write(op)

def test_continue_requires_open():
    ctx = opened("cbc", chunk_size=32).set_sink(Recorder(suspend=True))
    op = ctx.write(MSG)
    ctx.close()
    with pytest.raises(InvalidState, match="closed"):
        ctx.continue_write(op)

def test_parked_write_keeps_its_sink():
    first = Recorder(suspend=True)
    ctx = opened("ctr", chunk_size=32).set_sink(first)
    op = ctx.write(MSG[:64])
    second = Recorder()
    ctx.set_sink(second)
    drain(ctx, op)
    assert first.data == expected("ctr", MSG[:64])
    assert second.chunks == []

def test_parked_write_ignores_caller_mutation():
    data = bytearray(MSG)
    rec = Recorder(suspend=True)
    ctx = opened("cbc", chunk_size=32).set_sink(rec)
    op = ctx.write(data)
    data[:] = bytes(len(data))
    drain(ctx, op)
    assert rec.data == expected("cbc", MSG)

def test_sink_error_propagates_and_write_is_abandoned():
    calls = []
    def failing(chunk):
        calls.append(chunk)
        if len(calls) == 2:
            raise IOError("downstream gone")
    ctx = opened("cbc", chunk_size=32).set_sink(failing)
    with pytest.raises(IOError):
        ctx.write(MSG)
    assert ctx.pending is None
    # nothing rolled back: the register sits after the second chunk
    assert ctx.register == calls[-1][-16:]


# ── Async sinks ──────────────────────────────────────────────────────────────
@pytest.mark.parametrize("mode", ALL_MODES)
def test_write_async_with_coroutine_sink(mode):
    async def check():
        out = []
        async def sink(chunk):
            await asyncio.sleep(0)
            out.append(chunk)
        ctx = opened(mode, chunk_size=32).set_sink(sink)
        result = await ctx.write_async(MSG)
        assert result is None
        return b"".join(out)
    assert asyncio.run(check()) == expected(mode, MSG)

def test_write_async_accumulate_mode_returns_bytes():
    async def check():
        return await opened("ofb").write_async(MSG)
    assert asyncio.run(check()) == expected("ofb", MSG)

def test_write_async_with_suspend_sentinel():
    async def check():
        rec = Recorder(suspend=True)
        ctx = opened("cfb", chunk_size=32).set_sink(rec)
        await ctx.write_async(MSG)
        return rec.data
    assert asyncio.run(check()) == expected("cfb", MSG)

def test_sync_write_exposes_sink_awaitable():
    async def check():
        out = []
        async def sink(chunk):
            out.append(chunk)
        ctx = opened("ctr", chunk_size=64).set_sink(sink)
        op = ctx.write(MSG[:128])
        assert isinstance(op, PendingWrite)
        assert op.waiting is not None
        while isinstance(op, PendingWrite):
            await op.wait()
            op = ctx.continue_write(op)
        return b"".join(out)
    assert asyncio.run(check()) == expected("ctr", MSG[:128])

def test_continue_before_awaiting_sink_is_refused():
    async def check():
        out = []
        async def sink(chunk):
            out.append(chunk)
        ctx = opened("ctr", chunk_size=64).set_sink(sink)
        op  = ctx.write(MSG[:256])
        register = ctx.register
        with pytest.raises(InvalidState, match="not awaited"):
            ctx.continue_write(op)
        assert ctx.pending is op
        assert op.offset == 64
        assert ctx.register == register
        while isinstance(op, PendingWrite):
            await op.wait()
            op = ctx.continue_write(op)
        return b"".join(out)
    assert asyncio.run(check()) == expected("ctr", MSG[:256])

def test_async_streams_interleave_without_crosstalk():
    async def run(ctx, data):
        out = []
        async def sink(chunk):
            await asyncio.sleep(0)
            out.append(chunk)
        ctx.set_sink(sink)
        await ctx.write_async(data)
        return b"".join(out)

    async def check():
        a = opened("cbc", chunk_size=32)
        b = opened("cbc", "decrypt", chunk_size=32)
        ct = expected("cbc", MSG)
        return await asyncio.gather(run(a, MSG), run(b, ct))

    enc, dec = asyncio.run(check())
    assert enc == expected("cbc", MSG)
    assert dec == MSG
