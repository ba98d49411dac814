"""Thumbnail sprite sheets for georeferenced maps.

Packs small versions of every map image in a Georeference Annotation into
one sheet, publishes the sheet as a static IIIF image service and writes
an annotation whose maps are georeferenced on the sheet.
"""
from . import config
from .errors import (MalformedInputError, RetrievalError, SizingError, SpriteError,
                     StorageError)
from .sprites import SpriteBuilder

__all__ = [
    "MalformedInputError",
    "RetrievalError",
    "SizingError",
    "SpriteBuilder",
    "SpriteError",
    "StorageError",
    "build",
]


def build(annotation_url, variants=None, **kwargs):
    """Build all `variants` of the annotation at `annotation_url`.

    Keyword arguments are passed on to `SpriteBuilder`.
    """
    builder = SpriteBuilder(annotation_url, **kwargs)
    return builder.build(variants or config.get("default_variants"))
