"""Build thumbnail sprite sheets for georeferenced maps.

For every resolution variant all map images are fetched at that size,
packed into one sheet, tiled as a IIIF image service, and the maps are
rewritten to point at the sheet. Output layout::

    output_dir/
      └─ {annotations_id}/
          ├─ annotations.json          (source annotation, cached)
          ├─ meta.json
          └─ {variant}/
              ├─ thumbnail-sprites.jpg
              ├─ thumbnail-sprites-annotation.json
              └─ iiif/                 (info.json + tiles)

A variant is built in a temporary directory next to its final location
and moved into place only when every step succeeded.
"""
import io
import logging
import pathlib
import shutil
import tempfile
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List

from PIL import Image
from tqdm import tqdm

from . import config
from .annotation import ImageResource, generate_annotation, parse_annotation
from .compositor import composite
from .errors import RetrievalError, StorageError
from .fetch import ImageFetcher, atomic_write_bytes, atomic_write_json
from .ids import generate_id
from .packer import pack
from .pyramid import TilePyramidGenerator
from .remap import remap_map
from .variants import image_url, info_url, parse_variants, service_tile_width

logger = logging.getLogger(__name__)

SPRITE_FILENAME = "thumbnail-sprites.jpg"
ANNOTATION_FILENAME = "thumbnail-sprites-annotation.json"
IIIF_DIRNAME = "iiif"
SOURCE_FILENAME = "annotations.json"
META_FILENAME = "meta.json"


@dataclass(frozen=True)
class SpriteImage:
    """A map image fetched for one variant."""
    url: str
    image: Image.Image

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height


@dataclass(frozen=True)
class VariantResult:
    variant: str
    directory: pathlib.Path
    width: int
    height: int
    maps: list
    scale_factors: List[int]


def decode_image(data, url):
    """Decode raster bytes, raising RetrievalError if they are not an image."""
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (OSError, Image.DecompressionBombError) as err:
        raise RetrievalError(f"Could not decode image from {url}: {err}") from err
    return image.convert("RGB")


def derive_maps(maps, sprites, sheet, resource):
    """Rewrite every map into the coordinate space of `sheet`.

    The scale of each map is its sprite's width over the declared
    resource width, used for both axes. Image services round the sprite
    height to whole pixels, so a remapped y coordinate can lie up to half
    a sprite pixel outside the placed box.
    """
    derived = []
    for gmap, sprite, offset in zip(maps, sprites, sheet.placements):
        scale = sprite.width / gmap.resource.width
        derived.append(remap_map(gmap, offset, scale, resource))
    return derived


class SpriteBuilder:
    """Build sprite sheets for all maps of one annotation.

    Parameters
    ----------
    annotation_url : str
        URL of the source Georeference Annotation.
    output_dir, cache_dir : str or pathlib.Path, optional
        Output and cache roots. If None, uses settings.
    base_url : str, optional
        Public URL of `output_dir`. If None, uses settings.
    tile_size : int, optional
        IIIF tile size of the generated pyramids.
    workers : int, optional
        Maximum number of concurrent downloads.
    fetcher : ImageFetcher, optional
        Used for all network access.
    """

    def __init__(self, annotation_url, output_dir=None, cache_dir=None, base_url=None,
                 tile_size=None, workers=None, fetcher=None):
        self.annotation_url = annotation_url
        self.annotations_id = generate_id(annotation_url)
        self.output_dir = pathlib.Path(output_dir or config.get("output_dir")) / self.annotations_id
        self.cache_dir = pathlib.Path(cache_dir or config.get("cache_dir")) / self.annotations_id
        self.base_url = (base_url or config.get("base_url")).rstrip("/")
        self.workers = int(workers if workers is not None else config.get("workers"))
        self.fetcher = fetcher or ImageFetcher()
        self.tiler = TilePyramidGenerator(tile_size=tile_size, workers=self.workers)

    def service_id(self, variant):
        return f"{self.base_url}/{self.annotations_id}/{variant.name}/{IIIF_DIRNAME}"

    def load_maps(self):
        """Return the maps of the source annotation.

        The annotation is downloaded once and kept as ``annotations.json``
        in the output directory; later runs read that copy.
        """
        source_path = self.output_dir / SOURCE_FILENAME
        if source_path.is_file():
            logger.info("Using stored annotation %s", source_path)
            document = source_path.read_text(encoding="utf-8")
            maps = parse_annotation(document)
        else:
            document = self.fetcher.fetch_json(self.annotation_url)
            maps = parse_annotation(document)
            if isinstance(document, dict):
                document = {"_sourceUrl": self.annotation_url, **document}
            atomic_write_json(source_path, document)
        atomic_write_json(self.output_dir / META_FILENAME, {"sourceUrl": self.annotation_url})
        logger.info("Annotation %s has %d maps", self.annotation_url, len(maps))
        return maps

    def fetch_sprite(self, gmap, variant):
        image_id = generate_id(gmap.resource.id)
        tile_width = None
        if variant.needs_service_info:
            info = self.fetcher.fetch_json(
                info_url(gmap.resource.id),
                self.cache_dir / "info" / f"{image_id}.json",
            )
            tile_width = service_tile_width(info)
        width = variant.target_width(gmap.resource.width, tile_width)
        url = image_url(gmap.resource.id, width)
        cache_path = self.cache_dir / variant.name / f"{image_id}.jpg"
        data = self.fetcher.fetch_cached(url, cache_path)
        try:
            image = decode_image(data, url)
        except RetrievalError:
            cache_path.unlink(missing_ok=True)
            raise
        return SpriteImage(url=url, image=image)

    def fetch_sprites(self, maps, variant):
        """Fetch the sprite of every map, at most `workers` at a time.

        Results keep the order of `maps`. On the first failure, downloads
        that have not started yet are cancelled and the error is raised.
        """
        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            futures = [executor.submit(self.fetch_sprite, gmap, variant) for gmap in maps]
            sprites = []
            try:
                for future in tqdm(futures, desc=f"Fetching {variant.name}", unit="image",
                                   disable=not logger.isEnabledFor(logging.INFO)):
                    sprites.append(future.result())
            except Exception:
                for future in futures:
                    future.cancel()
                raise
        return sprites

    def build_variant(self, maps, variant):
        """Run the full pipeline for one resolution variant.

        Parameters
        ----------
        maps : list of GeoreferencedMap
            Maps of the source annotation.
        variant : ResolutionVariant
            Sprite size to build.

        Returns
        -------
        VariantResult
            Where the variant was written and its sheet size.
        """
        logger.info("Building variant %s for %d maps", variant.name, len(maps))
        sprites = self.fetch_sprites(maps, variant)
        sheet = pack([(s.width, s.height) for s in sprites])
        logger.info("Packed %d sprites into %dx%d", len(sprites), sheet.width, sheet.height)

        final_dir = self.output_dir / variant.name
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            work_dir = pathlib.Path(tempfile.mkdtemp(prefix=f".{variant.name}.",
                                                     dir=self.output_dir))
        except OSError as err:
            raise StorageError(f"Cannot create {self.output_dir}: {err}") from err
        try:
            image = composite(sheet.width, sheet.height,
                              [s.image for s in sprites], sheet.placements)
            buf = io.BytesIO()
            image.save(buf, format="JPEG")
            atomic_write_bytes(work_dir / SPRITE_FILENAME, buf.getvalue())

            service_id = self.service_id(variant)
            pyramid = self.tiler.generate(image, work_dir / IIIF_DIRNAME, service_id)

            resource = ImageResource(id=service_id, width=sheet.width,
                                     height=sheet.height, type="ImageService3")
            derived = derive_maps(maps, sprites, sheet, resource)
            atomic_write_json(work_dir / ANNOTATION_FILENAME, generate_annotation(derived))

            try:
                if final_dir.exists():
                    shutil.rmtree(final_dir)
                work_dir.replace(final_dir)
            except OSError as err:
                raise StorageError(f"Cannot move {work_dir} to {final_dir}: {err}") from err
        except BaseException:
            shutil.rmtree(work_dir, ignore_errors=True)
            raise

        return VariantResult(
            variant=variant.name,
            directory=final_dir,
            width=sheet.width,
            height=sheet.height,
            maps=derived,
            scale_factors=pyramid.descriptor["tiles"][0]["scaleFactors"],
        )

    def build(self, variants):
        """Build every variant; `variants` may be a list or a string like "128,256"."""
        if isinstance(variants, (str, int)):
            variants = parse_variants(str(variants))
        maps = self.load_maps()
        return [self.build_variant(maps, variant) for variant in variants]
