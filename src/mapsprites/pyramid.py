"""IIIF tile pyramids for sprite sheets.

Tiles follow the IIIF Image API 3 level-0 layout, so the output folder
can be served as static files and read by any IIIF viewer::

    root/
      ├─ info.json
      └─ {x},{y},{w},{h}/          (region in full-resolution pixels)
          └─ {tw},{th}/0/default.jpg   (region size at this level)

Levels use scale factors 1, 2, 4, ... up to the first level whose image
fits in a single tile. Edge tiles are clipped, never padded.
"""
import logging
import math
import pathlib
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterator, List, Tuple

from PIL import Image
from tqdm import tqdm

from . import config
from .errors import SizingError, StorageError
from .fetch import atomic_write_json

logger = logging.getLogger(__name__)

IIIF_CONTEXT = "http://iiif.io/api/image/3/context.json"
IIIF_PROTOCOL = "http://iiif.io/api/image"


@dataclass(frozen=True)
class TileLevel:
    """One pyramid level.

    Attributes
    ----------
    scale_factor : int
        Downsampling factor relative to full resolution (a power of two).
    columns, rows : int
        Size of the tile grid.
    tile_size : int
        Tile edge in pixels at this level.
    width, height : int
        Size of the level's image in pixels.
    """
    scale_factor: int
    columns: int
    rows: int
    tile_size: int
    width: int
    height: int


@dataclass(frozen=True)
class TileRef:
    scale_factor: int
    column: int
    row: int
    region: Tuple[int, int, int, int]
    size: Tuple[int, int]

    @property
    def path(self) -> str:
        x, y, w, h = self.region
        tw, th = self.size
        return f"{x},{y},{w},{h}/{tw},{th}/0/default.jpg"

    @property
    def level_box(self) -> Tuple[int, int, int, int]:
        """Crop box of this tile in its level's image."""
        x, y, _, _ = self.region
        left = x // self.scale_factor
        top = y // self.scale_factor
        return (left, top, left + self.size[0], top + self.size[1])


@dataclass(frozen=True)
class Pyramid:
    descriptor: dict
    tiles: List[TileRef]


def _check_dimensions(width, height, tile_size):
    if width <= 0 or height <= 0:
        raise SizingError(f"Cannot tile a {width}x{height} image")
    if tile_size <= 0:
        raise SizingError(f"Tile size must be positive, got {tile_size}")


def scale_factors(width: int, height: int, tile_size: int) -> List[int]:
    """Scale factors 1, 2, 4, ... until the image fits in one tile."""
    _check_dimensions(width, height, tile_size)
    factors = [1]
    while (math.ceil(width / factors[-1]) > tile_size
           or math.ceil(height / factors[-1]) > tile_size):
        factors.append(factors[-1] * 2)
    return factors


def tile_levels(width: int, height: int, tile_size: int) -> List[TileLevel]:
    levels = []
    for factor in scale_factors(width, height, tile_size):
        span = tile_size * factor
        levels.append(TileLevel(
            scale_factor=factor,
            columns=math.ceil(width / span),
            rows=math.ceil(height / span),
            tile_size=tile_size,
            width=math.ceil(width / factor),
            height=math.ceil(height / factor),
        ))
    return levels


def iter_tiles(width: int, height: int, tile_size: int) -> Iterator[TileRef]:
    """Yield every tile of every level, row by row, finest level first."""
    for level in tile_levels(width, height, tile_size):
        span = tile_size * level.scale_factor
        for row in range(level.rows):
            for column in range(level.columns):
                x = column * span
                y = row * span
                w = min(span, width - x)
                h = min(span, height - y)
                yield TileRef(
                    scale_factor=level.scale_factor,
                    column=column,
                    row=row,
                    region=(x, y, w, h),
                    size=(math.ceil(w / level.scale_factor),
                          math.ceil(h / level.scale_factor)),
                )


def info_json(service_id: str, width: int, height: int, tile_size: int) -> dict:
    """IIIF Image API 3 descriptor for a level-0 static pyramid."""
    return {
        "@context": IIIF_CONTEXT,
        "id": service_id,
        "type": "ImageService3",
        "protocol": IIIF_PROTOCOL,
        "profile": "level0",
        "width": width,
        "height": height,
        "tiles": [
            {
                "width": tile_size,
                "height": tile_size,
                "scaleFactors": scale_factors(width, height, tile_size),
            }
        ],
    }


def _write_tile(level_image, tile, output_dir):
    path = pathlib.Path(output_dir) / tile.path
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        level_image.crop(tile.level_box).save(path, format="JPEG")
    except OSError as err:
        raise StorageError(f"Cannot write tile {path}: {err}") from err


class TilePyramidGenerator:
    """Slice an image into a IIIF level-0 tile pyramid.

    Parameters
    ----------
    tile_size : int, optional
        Tile edge in pixels. If None, uses settings.
    workers : int, optional
        Number of threads writing tiles. If None, uses settings.
    """

    def __init__(self, tile_size: int = None, workers: int = None):
        self.tile_size = int(tile_size if tile_size is not None else config.get("tile_size"))
        self.workers = int(workers if workers is not None else config.get("workers"))
        if self.tile_size <= 0:
            raise SizingError(f"Tile size must be positive, got {self.tile_size}")
        if self.workers <= 0:
            raise SizingError(f"Worker count must be positive, got {self.workers}")

    def generate(self, image: Image.Image, output_dir, service_id: str) -> Pyramid:
        """Write all tiles and ``info.json`` for `image` into `output_dir`.

        Parameters
        ----------
        image : PIL.Image.Image
            Full-resolution image to tile.
        output_dir : str or pathlib.Path
            Root directory of the image service.
        service_id : str
            Public URL of `output_dir`, recorded as the descriptor's id.

        Returns
        -------
        Pyramid
            The descriptor and the list of written tiles.
        """
        output_path = pathlib.Path(output_dir)
        width, height = image.size
        descriptor = info_json(service_id, width, height, self.tile_size)
        tiles = list(iter_tiles(width, height, self.tile_size))

        by_level = {}
        for tile in tiles:
            by_level.setdefault(tile.scale_factor, []).append(tile)

        image = image.convert("RGB")
        with tqdm(total=len(tiles), desc="Writing tiles", unit="tile",
                  disable=not logger.isEnabledFor(logging.INFO)) as pbar:
            for factor, level_tiles in by_level.items():
                level_size = (math.ceil(width / factor), math.ceil(height / factor))
                if factor == 1:
                    level_image = image
                else:
                    level_image = image.resize(level_size, Image.LANCZOS)
                logger.debug("Level %d: %dx%d, %d tiles",
                             factor, level_size[0], level_size[1], len(level_tiles))
                with ThreadPoolExecutor(max_workers=self.workers) as executor:
                    futures = [executor.submit(_write_tile, level_image, tile, output_path)
                               for tile in level_tiles]
                    for future in futures:
                        future.result()
                        pbar.update(1)

        atomic_write_json(output_path / "info.json", descriptor)
        logger.info("Wrote %d tiles in %d levels to %s",
                    len(tiles), len(by_level), output_path)
        return Pyramid(descriptor=descriptor, tiles=tiles)
