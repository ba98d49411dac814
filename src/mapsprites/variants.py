"""Resolution variants: the sprite sizes one build produces.

A variant is written either as an absolute pixel width (``"128"``) or as
a multiple of the source image service's tile width (``"0.5x"``).
"""
import math
import re
from dataclasses import dataclass
from typing import List, Optional

from .errors import MalformedInputError, SizingError

DEFAULT_TILE_WIDTH = 256

_MULTIPLIER_RE = re.compile(r"^(\d+(?:\.\d+)?|\.\d+)x$")


@dataclass(frozen=True)
class ResolutionVariant:
    name: str
    width: Optional[int] = None
    multiplier: Optional[float] = None

    @property
    def needs_service_info(self) -> bool:
        return self.multiplier is not None

    def target_width(self, resource_width: int, tile_width: Optional[int] = None) -> int:
        """Pixel width to request for an image of full width `resource_width`.

        The width never exceeds `resource_width`; image services are not
        asked to upscale.
        """
        if self.width is not None:
            width = self.width
        else:
            width = math.floor(self.multiplier * (tile_width or DEFAULT_TILE_WIDTH))
        width = min(width, resource_width)
        if width < 1:
            raise SizingError(f"Variant {self.name} gives an empty image "
                              f"for resource width {resource_width}")
        return width


def parse_variant(text: str) -> ResolutionVariant:
    text = text.strip().lower()
    if text.isdigit():
        width = int(text)
        if width <= 0:
            raise MalformedInputError(f"Variant width must be positive: {text!r}")
        return ResolutionVariant(name=str(width), width=width)
    match = _MULTIPLIER_RE.match(text)
    if match:
        multiplier = float(match.group(1))
        if multiplier <= 0:
            raise MalformedInputError(f"Variant multiplier must be positive: {text!r}")
        return ResolutionVariant(name=text, multiplier=multiplier)
    raise MalformedInputError(f"Invalid resolution variant: {text!r}")


def parse_variants(text: str) -> List[ResolutionVariant]:
    """Parse a comma-separated list of variants, dropping duplicates.

    Parameters
    ----------
    text : str
        For example ``"128,256,0.5x"``.

    Returns
    -------
    list of ResolutionVariant
        Variants in first-occurrence order.
    """
    variants = []
    seen = set()
    for part in text.split(","):
        if not part.strip():
            continue
        variant = parse_variant(part)
        if variant.name not in seen:
            seen.add(variant.name)
            variants.append(variant)
    if not variants:
        raise MalformedInputError(f"No resolution variants in {text!r}")
    return variants


def service_tile_width(info: dict) -> int:
    """Tile width advertised by an IIIF image service descriptor."""
    tiles = info.get("tiles") or []
    if tiles and isinstance(tiles[0], dict) and tiles[0].get("width"):
        return int(tiles[0]["width"])
    return DEFAULT_TILE_WIDTH


def image_url(image_id: str, width: int) -> str:
    """IIIF Image API request for the whole image scaled to `width`."""
    return f"{image_id.rstrip('/')}/full/{width},/0/default.jpg"


def info_url(image_id: str) -> str:
    return f"{image_id.rstrip('/')}/info.json"
