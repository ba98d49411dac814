"""Reading and writing Georeference Annotations.

Two encodings of a georeferenced map are understood:

* Georeference Annotations (IIIF georef extension): a Web Annotation whose
  target is an image service plus an SVG polygon selector (the resource
  mask) and whose body is a GeoJSON FeatureCollection of ground control
  points.
* Allmaps ``GeoreferencedMap`` objects, which carry the same data as plain
  ``resource``, ``gcps`` and ``resourceMask`` fields.

Maps are always written back as an AnnotationPage of Georeference
Annotations.
"""
import json
import re
from dataclasses import dataclass
from typing import Optional, Tuple

from .errors import MalformedInputError

ANNOTATION_CONTEXT = "http://www.w3.org/ns/anno.jsonld"
GEOREF_CONTEXT = [
    "http://iiif.io/api/extension/georef/1/context.json",
    "http://iiif.io/api/presentation/3/context.json",
]

_POLYGON_RE = re.compile(r"<polygon[^>]*\bpoints\s*=\s*[\"']([^\"']*)[\"']")
_NUMBER_RE = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")

Point = Tuple[float, float]


@dataclass(frozen=True)
class GroundControlPoint:
    """A resource pixel coordinate tied to a (lon, lat) coordinate."""
    resource: Point
    geo: Point


@dataclass(frozen=True)
class ImageResource:
    id: str
    width: int
    height: Optional[int] = None
    type: str = "ImageService2"


@dataclass(frozen=True)
class GeoreferencedMap:
    """One georeferenced map: an image, its GCPs and its resource mask.

    Attributes
    ----------
    id : str or None
        Identifier of the map (the annotation id).
    resource : ImageResource
        The image the map is drawn on, with its full-resolution size.
    gcps : tuple of GroundControlPoint
        Ground control points in resource pixel space.
    resource_mask : tuple of (float, float)
        Polygon vertices in resource pixel space.
    transformation : dict or None
        Transformation descriptor, passed through untouched.
    """
    id: Optional[str]
    resource: ImageResource
    gcps: Tuple[GroundControlPoint, ...]
    resource_mask: Tuple[Point, ...]
    transformation: Optional[dict] = None


def _pair(value, what):
    if not isinstance(value, (list, tuple)) or len(value) < 2:
        raise MalformedInputError(f"{what} must be a coordinate pair, got {value!r}")
    try:
        return (_number(value[0]), _number(value[1]))
    except (TypeError, ValueError) as err:
        raise MalformedInputError(f"{what} is not numeric: {value!r}") from err


def _mapping(value, what):
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise MalformedInputError(f"{what} must be an object, got {value!r}")
    return value


def _items(value, what):
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise MalformedInputError(f"{what} must be a list, got {value!r}")
    return value


def _number(value):
    if isinstance(value, bool):
        raise TypeError("booleans are not coordinates")
    if isinstance(value, int):
        return value
    return float(value)


def _resource(source):
    if not isinstance(source, dict):
        raise MalformedInputError("Map has no image resource")
    resource_id = source.get("id") or source.get("@id")
    if not resource_id:
        raise MalformedInputError("Image resource is missing its id")
    width = source.get("width")
    if not isinstance(width, (int, float)) or isinstance(width, bool) or width <= 0:
        raise MalformedInputError(f"Image resource {resource_id} has no valid width")
    height = source.get("height")
    if height is not None and (not isinstance(height, (int, float)) or height <= 0):
        raise MalformedInputError(f"Image resource {resource_id} has an invalid height")
    return ImageResource(
        id=resource_id,
        width=int(width),
        height=None if height is None else int(height),
        type=source.get("type") or source.get("@type") or "ImageService2",
    )


def parse_svg_polygon(svg):
    """Return the vertices of the first ``<polygon>`` in an SVG string."""
    match = _POLYGON_RE.search(svg or "")
    if match is None:
        raise MalformedInputError("SVG selector contains no polygon")
    numbers = [float(n) for n in _NUMBER_RE.findall(match.group(1))]
    if len(numbers) % 2:
        raise MalformedInputError("SVG polygon has an odd number of coordinates")
    return tuple(zip(numbers[0::2], numbers[1::2]))


def _format_number(value):
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return repr(value)


def svg_polygon(points, width, height):
    coords = " ".join(f"{_format_number(x)},{_format_number(y)}" for x, y in points)
    return (f'<svg width="{width}" height="{height}">'
            f'<polygon points="{coords}" /></svg>')


def _from_annotation(item):
    target = item.get("target")
    if not isinstance(target, dict):
        raise MalformedInputError("Annotation has no target")
    resource = _resource(target.get("source"))
    selector = target.get("selector") or {}
    if isinstance(selector, dict) and selector.get("value"):
        mask = parse_svg_polygon(selector["value"])
    else:
        mask = _full_mask(resource)

    body = _mapping(item.get("body"), "Annotation body")
    gcps = []
    for feature in _items(body.get("features"), "Annotation features"):
        feature = _mapping(feature, "GCP feature")
        properties = _mapping(feature.get("properties"), "GCP feature properties")
        coords = properties.get("resourceCoords", properties.get("pixelCoords"))
        geometry = _mapping(feature.get("geometry"), "GCP feature geometry")
        gcps.append(GroundControlPoint(
            resource=_pair(coords, "GCP resource coordinate"),
            geo=_pair(geometry.get("coordinates"), "GCP geo coordinate"),
        ))
    return GeoreferencedMap(
        id=item.get("id") or item.get("@id"),
        resource=resource,
        gcps=tuple(gcps),
        resource_mask=mask,
        transformation=body.get("transformation"),
    )


def _from_map(item):
    resource = _resource(item.get("resource"))
    gcps = []
    for gcp in _items(item.get("gcps"), "Map gcps"):
        gcp = _mapping(gcp, "GCP")
        gcps.append(GroundControlPoint(
            resource=_pair(gcp.get("resource"), "GCP resource coordinate"),
            geo=_pair(gcp.get("geo"), "GCP geo coordinate"),
        ))
    gcps = tuple(gcps)
    mask = _items(item.get("resourceMask"), "Resource mask")
    if mask:
        mask = tuple(_pair(p, "Resource mask vertex") for p in mask)
    else:
        mask = _full_mask(resource)
    return GeoreferencedMap(
        id=item.get("id") or item.get("@id"),
        resource=resource,
        gcps=gcps,
        resource_mask=mask,
        transformation=item.get("transformation"),
    )


def _full_mask(resource):
    if resource.height is None:
        raise MalformedInputError(
            f"Image resource {resource.id} has neither a mask nor a height")
    w, h = resource.width, resource.height
    return ((0, 0), (w, 0), (w, h), (0, h))


def _collect(document, maps):
    if isinstance(document, list):
        for item in document:
            _collect(item, maps)
        return
    if not isinstance(document, dict):
        raise MalformedInputError(f"Unexpected annotation element: {type(document).__name__}")
    kind = document.get("type") or document.get("@type")
    if kind == "AnnotationPage":
        _collect(document.get("items", []), maps)
    elif kind == "Annotation":
        maps.append(_from_annotation(document))
    elif kind == "GeoreferencedMap":
        maps.append(_from_map(document))
    else:
        raise MalformedInputError(f"Unknown annotation type: {kind!r}")


def parse_annotation(document):
    """Parse an annotation document into georeferenced maps.

    Parameters
    ----------
    document : str, bytes, dict or list
        Raw JSON text or decoded JSON. AnnotationPages, single Annotations,
        GeoreferencedMaps and lists of those are accepted.

    Returns
    -------
    list of GeoreferencedMap
        Maps in document order.

    Raises
    ------
    MalformedInputError
        If the document is not valid JSON, has an unknown type, lacks a
        resource id or width, or contains no maps at all.
    """
    if isinstance(document, (str, bytes)):
        try:
            document = json.loads(document)
        except ValueError as err:
            raise MalformedInputError(f"Annotation is not valid JSON: {err}") from err
    maps = []
    _collect(document, maps)
    if not maps:
        raise MalformedInputError("Annotation contains no georeferenced maps")
    return maps


def _to_annotation(gmap):
    resource = gmap.resource
    source = {"id": resource.id, "type": resource.type, "width": resource.width}
    if resource.height is not None:
        source["height"] = resource.height
    annotation = {
        "type": "Annotation",
        "@context": GEOREF_CONTEXT,
        "motivation": "georeferencing",
        "target": {
            "type": "SpecificResource",
            "source": source,
            "selector": {
                "type": "SvgSelector",
                "value": svg_polygon(gmap.resource_mask, resource.width, resource.height or 0),
            },
        },
        "body": {
            "type": "FeatureCollection",
            "transformation": gmap.transformation,
            "features": [
                {
                    "type": "Feature",
                    "properties": {"resourceCoords": list(gcp.resource)},
                    "geometry": {"type": "Point", "coordinates": list(gcp.geo)},
                }
                for gcp in gmap.gcps
            ],
        },
    }
    if gmap.id is not None:
        annotation = {"id": gmap.id, **annotation}
    if gmap.transformation is None:
        del annotation["body"]["transformation"]
    return annotation


def generate_annotation(maps):
    """Encode maps as an AnnotationPage of Georeference Annotations."""
    return {
        "type": "AnnotationPage",
        "@context": ANNOTATION_CONTEXT,
        "items": [_to_annotation(gmap) for gmap in maps],
    }
