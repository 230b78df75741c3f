"""
Error kinds raised while decoding script metadata.

Every error is recoverable by the caller: log it, then either refetch
from the indexer or mark the cache entry as corrupt.
"""

from typing import Optional


class ScriptInfoError(Exception):
    """Base class for all script metadata errors.

    ``field`` names the offending wire field and ``script_hash`` the hex
    hash of the record being decoded, when known.
    """

    def __init__(self, message: str, *, field: Optional[str] = None,
                 script_hash: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field
        self.script_hash = script_hash

    def __str__(self):
        context = []
        if self.field is not None:
            context.append(f'field={self.field}')
        if self.script_hash is not None:
            context.append(f'script_hash={self.script_hash}')
        if not context:
            return self.message
        return f'{self.message} ({", ".join(context)})'


class DecodeError(ScriptInfoError):
    """A record could not be turned into a ScriptInfo."""


class FieldError(DecodeError):
    """A required field is missing or has the wrong shape."""


class ScriptDecodeError(DecodeError):
    """Raw bytes do not parse as a script."""


class UnknownTypeError(DecodeError):
    """The indexer ``type`` tag is not a recognised script kind."""


class MissingFieldError(DecodeError):
    """The field implied by the ``type`` tag is absent or undecodable."""


class EmptyResultError(ScriptInfoError):
    """A single-hash query returned no records."""
