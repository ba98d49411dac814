"""Exceptions raised while building sprite sheets.

Every error is fatal for the resolution variant being built; nothing
is retried.
"""


class SpriteError(Exception):
    """Base class for all mapsprites errors."""


class MalformedInputError(SpriteError, ValueError):
    """Annotation or command input is missing required fields."""


class RetrievalError(SpriteError):
    """A remote resource could not be fetched or decoded."""


class SizingError(SpriteError, ValueError):
    """Sheet or raster dimensions are invalid or too large."""


class StorageError(SpriteError, OSError):
    """Cache or output files could not be written."""
