"""Shared pytest fixtures for mapsprites tests."""

import hashlib
import io
import json
import re
import tempfile
from pathlib import Path

import pytest
from PIL import Image

from mapsprites.errors import RetrievalError
from mapsprites.fetch import ImageFetcher

ANNOTATION_URL = "https://example.org/annotations/page.json"

_IMAGE_RE = re.compile(r"^(?P<id>.+)/full/(?P<width>\d+),/0/default\.jpg$")


def make_annotation(image_id, width, height, gcps, mask, annotation_id=None):
    """Build a Georeference Annotation (georef extension v1) as a dict."""
    points = " ".join(f"{x},{y}" for x, y in mask)
    return {
        "id": annotation_id or f"{image_id}/annotation",
        "type": "Annotation",
        "motivation": "georeferencing",
        "target": {
            "type": "SpecificResource",
            "source": {"id": image_id, "type": "ImageService2",
                       "width": width, "height": height},
            "selector": {
                "type": "SvgSelector",
                "value": f'<svg width="{width}" height="{height}">'
                         f'<polygon points="{points}" /></svg>',
            },
        },
        "body": {
            "type": "FeatureCollection",
            "transformation": {"type": "polynomial", "options": {"order": 1}},
            "features": [
                {
                    "type": "Feature",
                    "properties": {"resourceCoords": list(resource)},
                    "geometry": {"type": "Point", "coordinates": list(geo)},
                }
                for resource, geo in gcps
            ],
        },
    }


def jpeg_bytes(width, height, color=(200, 30, 30)):
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="JPEG")
    return buf.getvalue()


class FakeFetcher(ImageFetcher):
    """ImageFetcher serving in-memory documents and generated JPEGs.

    Image requests are answered with a solid JPEG of the requested width
    and the aspect ratio of the declared resource.
    """

    def __init__(self, documents, resources, fail_urls=()):
        super().__init__(session=object(), timeout=1)
        self.documents = documents
        self.resources = resources
        self.fail_urls = set(fail_urls)
        self.requests = []

    def fetch(self, url):
        self.requests.append(url)
        if url in self.fail_urls:
            raise RetrievalError(f"Failed to fetch {url}: 404")
        if url in self.documents:
            return json.dumps(self.documents[url]).encode("utf-8")
        match = _IMAGE_RE.match(url)
        if match and match.group("id") in self.resources:
            full_width, full_height = self.resources[match.group("id")]
            width = int(match.group("width"))
            height = max(1, round(full_height * width / full_width))
            digest = hashlib.sha1(match.group("id").encode()).digest()
            return jpeg_bytes(width, height, color=tuple(digest[:3]))
        raise RetrievalError(f"Failed to fetch {url}: 404")


@pytest.fixture
def temp_dir():
    """Provide a temporary directory that is cleaned up after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_annotation_page():
    """AnnotationPage with three maps of different shapes."""
    return {
        "type": "AnnotationPage",
        "@context": "http://www.w3.org/ns/anno.jsonld",
        "items": [
            make_annotation(
                "https://iiif.example.org/images/a", 1000, 800,
                gcps=[((100, 100), (4.9, 52.4)), ((900, 700), (5.0, 52.3)),
                      ((500, 400), (4.95, 52.35))],
                mask=[(0, 0), (1000, 0), (1000, 800), (0, 800)],
            ),
            make_annotation(
                "https://iiif.example.org/images/b", 600, 600,
                gcps=[((0, 0), (10.0, 50.0)), ((600, 600), (11.0, 49.0)),
                      ((300, 0), (10.5, 50.0))],
                mask=[(50, 50), (550, 50), (550, 550), (50, 550)],
            ),
            make_annotation(
                "https://iiif.example.org/images/c", 400, 2000,
                gcps=[((200, 1000), (-3.5, 40.2)), ((0, 2000), (-3.6, 40.0)),
                      ((400, 0), (-3.4, 40.4))],
                mask=[(0, 0), (400, 0), (400, 2000), (0, 2000)],
            ),
        ],
    }


@pytest.fixture
def fake_fetcher(sample_annotation_page):
    """FakeFetcher serving the sample annotation and its images."""
    resources = {}
    documents = {ANNOTATION_URL: sample_annotation_page}
    for item in sample_annotation_page["items"]:
        source = item["target"]["source"]
        resources[source["id"]] = (source["width"], source["height"])
        documents[f"{source['id']}/info.json"] = {
            "@context": "http://iiif.io/api/image/2/context.json",
            "@id": source["id"],
            "width": source["width"],
            "height": source["height"],
            "tiles": [{"width": 512, "scaleFactors": [1, 2, 4]}],
        }
    return FakeFetcher(documents, resources)
