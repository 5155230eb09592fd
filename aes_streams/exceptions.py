"""
Errors
======
Every failure a cipher context can report. Each error also derives from
the built-in exception ordinary Python crypto code raises for the same
situation, so callers that only catch ValueError / RuntimeError keep
working.
"""


class CipherModeError(Exception):
    """Base class for all aes_streams errors."""


class InvalidState(CipherModeError, RuntimeError):
    """Operation not valid while the context is open, closed or destroyed."""


class InvalidArgument(CipherModeError, ValueError):
    """Malformed sink binding or an undersized chunk size or an unknown mode."""


class InvalidKeyLength(InvalidArgument):
    """The primitive rejected the key."""


class InvalidIVLength(InvalidArgument):
    """IV missing or shorter than one block."""


class InvalidBlockLength(CipherModeError, ValueError):
    """A transform was handed input that is not whole blocks."""
