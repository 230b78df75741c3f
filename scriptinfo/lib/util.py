"""Miscellaneous helpers shared by the lib and server packages."""

import logging
from typing import Union


def class_logger(path, classname):
    """Return a hierarchical logger for a class."""
    return logging.getLogger(path).getChild(classname)


def to_bytes(value: Union[str, bytes, bytearray, memoryview]) -> bytes:
    """Coerce a hex string or byte string into ``bytes``.

    Raises ``ValueError`` for odd-length or non-hex strings and
    ``TypeError`` for any other input type.
    """
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        # bytes.fromhex() tolerates whitespace between byte pairs
        if any(c.isspace() for c in value):
            raise ValueError('whitespace in hex string')
        return bytes.fromhex(value)
    raise TypeError(f'expected hex string or bytes, got {type(value).__name__}')
