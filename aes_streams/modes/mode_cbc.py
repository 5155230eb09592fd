"""
CBC — Cipher Block Chaining
===========================
encrypt:  C_i = E(P_i XOR C_{i-1})
decrypt:  P_i = D(C_i) XOR C_{i-1}
C_0 is the IV. After every chunk the register holds the last ciphertext
block, so chunks chain exactly as if the whole stream were one call.

Alignment: whole blocks.
"""

from .base import BlockMode


class CBCMode(BlockMode):
    name = "CBC"

    def transform_chunk(self, schedule, data) -> bytes:
        return self._primitive.transform(
            self._direction, schedule, data, self._register)
