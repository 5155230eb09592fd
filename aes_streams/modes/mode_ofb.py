"""
OFB — Output Feedback
=====================
O_0 = IV, O_i = E(O_{i-1}), output = input XOR O_i.

The keystream never depends on the data, so encryption and decryption
are the same operation. The register holds the current keystream block;
it is advanced lazily, only when the first byte of a new block arrives.
"""

from .base import StreamMode, xor_bytes


class OFBMode(StreamMode):
    name = "OFB"

    def _partial(self, schedule, piece) -> bytes:
        if self._phase == 0:
            self._register[:] = self._encrypt_block(schedule, self._register)
        start = self._phase
        end   = start + len(piece)
        out   = xor_bytes(piece, self._register[start:end])
        self._phase = end % self._block_size
        return out

    def _blocks(self, schedule, run) -> bytes:
        bs  = self._block_size
        reg = bytes(self._register)
        out = bytearray()
        for i in range(0, len(run), bs):
            reg = self._encrypt_block(schedule, reg)
            out += xor_bytes(run[i:i + bs], reg)
        self._register[:] = reg
        return bytes(out)
