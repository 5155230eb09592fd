"""
aes_streams — Streaming AES modes of operation
==============================================
Feed arbitrary-length byte streams through ECB, CBC, CFB, OFB or CTR and
get the output back in one piece, or pushed chunk by chunk to a sink that
may suspend and resume the write.

Modes:
    ECB   block-aligned, no chaining      (residue waits in the tail buffer)
    CBC   block-aligned, ciphertext chaining
    CFB   byte stream, 128-bit ciphertext feedback
    OFB   byte stream, output feedback
    CTR   byte stream, counter keystream  (forward or backward increment)

Quick use:
    ctx = cbc_encrypt().open(key, iv)
    ct  = ctx.write(plaintext)

No padding, no authentication, no key derivation: callers bring aligned
data for ECB/CBC and their own MAC.

Dependencies: cryptography >= 41.0
License: Apache 2.0
"""

__version__ = "1.0.0"

from .exceptions        import (CipherModeError, InvalidState, InvalidArgument,
                                InvalidKeyLength, InvalidIVLength, InvalidBlockLength)
from .primitive         import AESPrimitive, Direction, BLOCK_SIZE, KEY_SIZES
from .sink              import SUSPEND
from .modes.base        import ModeState
from .modes.mode_ctr    import CounterIncrement
from .context           import (CipherContext, Mode, State, PendingWrite, DEFAULT_CHUNK_SIZE,
                                ecb_encrypt, ecb_decrypt, cbc_encrypt, cbc_decrypt,
                                cfb_encrypt, cfb_decrypt, ofb_encrypt, ofb_decrypt,
                                ctr_encrypt, ctr_decrypt)

__all__ = [
    "CipherContext",
    "Mode",
    "State",
    "Direction",
    "CounterIncrement",
    "PendingWrite",
    "ModeState",
    "SUSPEND",
    "AESPrimitive",
    "BLOCK_SIZE",
    "KEY_SIZES",
    "DEFAULT_CHUNK_SIZE",
    "ecb_encrypt",
    "ecb_decrypt",
    "cbc_encrypt",
    "cbc_decrypt",
    "cfb_encrypt",
    "cfb_decrypt",
    "ofb_encrypt",
    "ofb_decrypt",
    "ctr_encrypt",
    "ctr_decrypt",
    "CipherModeError",
    "InvalidState",
    "InvalidArgument",
    "InvalidKeyLength",
    "InvalidIVLength",
    "InvalidBlockLength",
]
