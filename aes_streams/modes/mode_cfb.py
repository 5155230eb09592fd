"""
CFB — Cipher Feedback (128-bit segments)
========================================
Keystream block K_i = E(C_{i-1}), C_0 = IV.  C_i = P_i XOR K_i.

The register is worked on in place: at a block boundary it holds the last
ciphertext block; when the next byte arrives it is replaced by its own
encryption, and each output byte is written back over the keystream byte
it consumed. A write may therefore stop at any byte and the next write
picks up mid-block.

Decryption feeds back the ciphertext (its input), never the recovered
plaintext, so both ends stay in step.
"""

from ..primitive import Direction
from .base import StreamMode, xor_bytes


class CFBMode(StreamMode):
    name = "CFB"

    def _partial(self, schedule, piece) -> bytes:
        if self._phase == 0:
            self._register[:] = self._encrypt_block(schedule, self._register)
        start = self._phase
        end   = start + len(piece)
        out   = xor_bytes(piece, self._register[start:end])
        if self._direction is Direction.ENCRYPT:
            self._register[start:end] = out
        else:
            self._register[start:end] = piece
        self._phase = end % self._block_size
        return out

    def _blocks(self, schedule, run) -> bytes:
        bs   = self._block_size
        enc  = self._direction is Direction.ENCRYPT
        prev = bytes(self._register)
        out  = bytearray()
        for i in range(0, len(run), bs):
            block = run[i:i + bs]
            ct = xor_bytes(block, self._encrypt_block(schedule, prev))
            out += ct
            prev = ct if enc else bytes(block)
        self._register[:] = prev
        return bytes(out)
