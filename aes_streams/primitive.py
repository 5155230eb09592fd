"""
Cipher Primitive — AES block transform
======================================
The single-block primitive every mode is built on: a key schedule plus
an encrypt/decrypt transform over whole 16-byte blocks.

The mode layer never touches AES directly. It only calls:

    key_setup(direction, key)                          -> KeySchedule
    transform(direction, schedule, blocks[, register]) -> bytes

Without a register the transform is plain ECB over every block. With a
one-block register it chains the run CBC-style and leaves the last
ciphertext block in the register for the next call.

Any object offering `block_size`, `key_setup` and `transform` with this
contract can stand in for AESPrimitive.

Key:   128 / 192 / 256-bit (16 / 24 / 32 bytes)
Block: 128-bit (16 bytes)

Dependencies: cryptography >= 41.0
"""

import enum
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .exceptions import InvalidArgument, InvalidBlockLength, InvalidKeyLength

BLOCK_SIZE = 16              # AES block, bytes
KEY_SIZES  = (16, 24, 32)    # AES-128 / AES-192 / AES-256


class Direction(enum.Enum):
    ENCRYPT = "encrypt"
    DECRYPT = "decrypt"

    @classmethod
    def coerce(cls, value) -> "Direction":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise InvalidArgument(f"unknown direction: {value!r}") from None


class KeySchedule:
    """Expanded key for one direction. Opaque to the mode layer."""

    __slots__ = ("direction", "_algorithm", "_ecb")

    def __init__(self, direction: Direction, key: bytes):
        self.direction  = direction
        self._algorithm = algorithms.AES(key)
        cipher = Cipher(self._algorithm, modes.ECB())
        # ECB contexts keep no chaining state, one is reused for every call
        if direction is Direction.ENCRYPT:
            self._ecb = cipher.encryptor()
        else:
            self._ecb = cipher.decryptor()

    def __repr__(self):
        return f"KeySchedule({self.direction.value}, AES-{self._algorithm.key_size})"


class AESPrimitive:
    """AES key schedule + whole-block transform (ECB, or CBC with a register)."""

    block_size = BLOCK_SIZE

    def key_setup(self, direction: Direction, key: bytes) -> KeySchedule:
        """
        Expand `key` for `direction`.
        Raises InvalidKeyLength unless the key is 16, 24 or 32 bytes.
        """
        try:
            key = bytes(memoryview(key))
        except TypeError:
            raise InvalidKeyLength("invalid key length") from None
        if len(key) not in KEY_SIZES:
            raise InvalidKeyLength(
                f"invalid key length: {len(key)} bytes (expected 16, 24 or 32)")
        try:
            return KeySchedule(direction, key)
        except ValueError as exc:
            raise InvalidKeyLength(str(exc)) from exc

    def transform(self, direction: Direction, schedule: KeySchedule,
                  blocks, chaining_register: bytearray = None) -> bytes:
        """
        Run whole blocks through the schedule.

        With `chaining_register` the run is CBC-chained from the register
        and the register is overwritten with the last ciphertext block.
        Raises InvalidBlockLength if `blocks` is not a multiple of 16 bytes.
        """
        if schedule.direction is not direction:
            raise InvalidArgument(
                f"key schedule is set up for {schedule.direction.value}, "
                f"not {direction.value}")
        length = len(blocks)
        if length == 0 or length % BLOCK_SIZE:
            raise InvalidBlockLength(f"invalid block length: {length}")

        if chaining_register is None:
            return schedule._ecb.update(blocks)

        if len(chaining_register) != BLOCK_SIZE:
            raise InvalidBlockLength(
                f"chaining register must be {BLOCK_SIZE} bytes")
        cipher = Cipher(schedule._algorithm, modes.CBC(bytes(chaining_register)))
        if direction is Direction.ENCRYPT:
            out = cipher.encryptor().update(blocks)
            chaining_register[:] = out[-BLOCK_SIZE:]
        else:
            out = cipher.decryptor().update(blocks)
            chaining_register[:] = blocks[-BLOCK_SIZE:]
        return out
