"""Static HTML index of all generated sprite sheets."""
import json
import logging
import pathlib
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import quote

from jinja2 import Template

from . import config
from .errors import MalformedInputError, StorageError
from .fetch import atomic_write_bytes
from .sprites import (ANNOTATION_FILENAME, IIIF_DIRNAME, META_FILENAME, SOURCE_FILENAME,
                      SPRITE_FILENAME)

logger = logging.getLogger(__name__)

VIEWER_URL = "https://viewer.allmaps.org/?url="


@dataclass(frozen=True)
class ReportEntry:
    annotations_id: str
    variant: str
    annotation_url: str
    source_url: Optional[str]
    scale_factors: List[int]
    width: int
    height: int

    @property
    def sprite_path(self) -> str:
        return f"{self.annotations_id}/{self.variant}/{SPRITE_FILENAME}"

    @property
    def info_path(self) -> str:
        return f"{self.annotations_id}/{self.variant}/{IIIF_DIRNAME}/info.json"

    @property
    def sprite_annotation_path(self) -> str:
        return f"{self.annotations_id}/{self.variant}/{ANNOTATION_FILENAME}"


def _read_json(path):
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as err:
        raise MalformedInputError(f"Cannot parse {path}: {err}") from err
    except OSError as err:
        raise StorageError(f"Cannot read {path}: {err}") from err


def _variant_key(name):
    # Pixel widths first in numeric order, then multipliers.
    if name.isdigit():
        return (0, int(name), name)
    try:
        return (1, float(name.rstrip("x")), name)
    except ValueError:
        return (2, 0, name)


def collect_entries(output_dir=None) -> List[ReportEntry]:
    """Scan `output_dir` for complete sprite variants.

    A variant counts when its directory holds both the derived annotation
    and ``iiif/info.json``. Entries are sorted by annotation id, then
    variant.
    """
    output_dir = pathlib.Path(output_dir or config.get("output_dir"))
    entries = []
    if not output_dir.is_dir():
        return entries
    for annotation_dir in sorted(output_dir.iterdir()):
        if not annotation_dir.is_dir() or not (annotation_dir / SOURCE_FILENAME).is_file():
            continue
        annotations_id = annotation_dir.name
        source = _read_json(annotation_dir / SOURCE_FILENAME)
        annotation_url = None
        if isinstance(source, dict):
            annotation_url = source.get("id") or source.get("@id")
        if not annotation_url or annotation_url == annotations_id:
            annotation_url = f"{annotations_id}/{SOURCE_FILENAME}"

        source_url = None
        meta_path = annotation_dir / META_FILENAME
        if meta_path.is_file():
            meta = _read_json(meta_path)
            if isinstance(meta, dict):
                source_url = meta.get("sourceUrl")

        variant_dirs = [d for d in annotation_dir.iterdir()
                        if d.is_dir() and not d.name.startswith(".")]
        for variant_dir in sorted(variant_dirs, key=lambda d: _variant_key(d.name)):
            info_path = variant_dir / IIIF_DIRNAME / "info.json"
            if not (variant_dir / ANNOTATION_FILENAME).is_file() or not info_path.is_file():
                continue
            info = _read_json(info_path)
            if not isinstance(info, dict):
                raise MalformedInputError(f"{info_path} is not an image service descriptor")
            tiles = info.get("tiles") or [{}]
            entries.append(ReportEntry(
                annotations_id=annotations_id,
                variant=variant_dir.name,
                annotation_url=annotation_url,
                source_url=source_url,
                scale_factors=tiles[0].get("scaleFactors", []),
                width=info.get("width", 0),
                height=info.get("height", 0),
            ))
    return entries


INDEX_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
  <head>
    <meta charset="UTF-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1.0" />
    <title>{{ title }}</title>
    <style>
      body { font-family: system-ui, -apple-system, sans-serif; max-width: 1200px; margin: 0 auto; padding: 2rem; }
      ul { list-style: none; padding: 0; }
      li { margin-bottom: 1.5rem; padding: 1rem; border: 1px solid #ddd; border-radius: 4px; }
      a { color: #0066cc; text-decoration: none; }
      a:hover { text-decoration: underline; }
      table { margin-top: 0.5rem; border-collapse: collapse; width: 100%; font-size: 0.9rem; }
      th, td { text-align: left; padding: 0.5rem; border: 1px solid #ddd; }
      th { background-color: #f5f5f5; font-weight: 600; }
    </style>
  </head>
  <body>
    <h1>{{ title }}</h1>
    <ul>
{% for entry in entries %}
      <li>
        <strong>{{ entry.annotations_id }}</strong> (variant: {{ entry.variant }})
        {% if entry.source_url %}<br><small>Source: <a href="{{ entry.source_url }}">{{ entry.source_url }}</a></small>{% endif %}
        <br>
        Original: <a href="{{ entry.annotation_url }}">{{ entry.annotation_url }}</a> |
        <a href="{{ viewer(entry.annotation_url) }}">Open in Allmaps Viewer</a>
        <br>
        Sprite:
        <a href="./{{ entry.sprite_path }}">Image</a> |
        <a href="./{{ entry.info_path }}">info.json</a> |
        <a href="./{{ entry.sprite_annotation_path }}">Georeference Annotation</a> |
        <a href="{{ viewer(entry.sprite_annotation_path) }}">Open in Allmaps Viewer</a>
        <table>
          <tr><th>Image Size</th><th>Scale Factors</th></tr>
          <tr><td>{{ entry.width }} &times; {{ entry.height }}</td><td>{{ entry.scale_factors | join(", ") }}</td></tr>
        </table>
      </li>
{% endfor %}
    </ul>
  </body>
</html>
"""


def render_index(entries, base_url=None, title="Allmaps Thumbnail Sprites"):
    """Render the index page for `entries`.

    Viewer links point at `base_url`, where the output directory is
    published.
    """
    base_url = (base_url or config.get("base_url")).rstrip("/")

    def viewer(path):
        if "://" not in path:
            path = f"{base_url}/{path}"
        return VIEWER_URL + quote(path, safe="")

    template = Template(INDEX_TEMPLATE, autoescape=True)
    return template.render(entries=entries, title=title, viewer=viewer)


def write_index(output_dir=None, base_url=None) -> pathlib.Path:
    """Write ``index.html`` for everything in `output_dir` and return its path."""
    output_dir = pathlib.Path(output_dir or config.get("output_dir"))
    entries = collect_entries(output_dir)
    index_path = output_dir / "index.html"
    atomic_write_bytes(index_path, render_index(entries, base_url=base_url).encode("utf-8"))
    logger.info("Generated %s with %d entries", index_path, len(entries))
    return index_path
