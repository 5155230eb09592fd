"""
ECB — Electronic Codebook
=========================
Every block is transformed on its own: C_i = E(P_i).

No chaining state, no IV. Identical plaintext blocks give identical
ciphertext blocks, so ECB leaks structure; it is here for completeness
and for callers building their own constructions on top of it.

Alignment: whole blocks. Reset is a no-op.
"""

from ..exceptions import InvalidArgument
from .base import BlockMode


class ECBMode(BlockMode):
    """Independent block transform."""

    name        = "ECB"
    requires_iv = False

    def reset(self, iv=None):
        # an IV is accepted for a uniform call shape; nothing to install
        if iv is not None and not isinstance(iv, (bytes, bytearray, memoryview)):
            raise InvalidArgument(f"ECB context reset expects bytes, got {type(iv).__name__}")

    def transform_chunk(self, schedule, data) -> bytes:
        return self._primitive.transform(self._direction, schedule, data)
