"""Paste sprite rasters onto a single sheet image."""
from PIL import Image

from .errors import SizingError

BACKGROUND = (255, 255, 255)


def composite(width, height, rasters, placements, background=BACKGROUND):
    """Create an RGB sheet with each raster pasted at its placement.

    Parameters
    ----------
    width, height : int
        Sheet size in pixels.
    rasters : sequence of PIL.Image.Image
        Images to paste, aligned with `placements`.
    placements : sequence of (int, int)
        Top-left offsets on the sheet.
    background : tuple of int, optional
        Fill colour of uncovered pixels, by default opaque white.

    Returns
    -------
    PIL.Image.Image
        The composited sheet.
    """
    if width <= 0 or height <= 0:
        raise SizingError(f"Cannot create a {width}x{height} sheet")
    sheet = Image.new("RGB", (width, height), background)
    for raster, (x, y) in zip(rasters, placements):
        if x < 0 or y < 0 or x + raster.width > width or y + raster.height > height:
            raise SizingError(f"Raster of size {raster.width}x{raster.height} at "
                              f"({x}, {y}) does not fit a {width}x{height} sheet")
        sheet.paste(raster.convert("RGB"), (x, y))
    return sheet
