"""Move map geometry from resource pixel space into sprite sheet space.

Each image is scaled uniformly and translated to its placement, so the
transform is ``offset + point * scale``. Geo coordinates are never
touched.
"""
from dataclasses import replace

from .annotation import GroundControlPoint


def remap_point(point, offset, scale):
    """Map a resource pixel coordinate to sheet coordinates.

    Parameters
    ----------
    point : (float, float)
        Coordinate in the original full-resolution image.
    offset : (int, int)
        Top-left corner of the image's placement on the sheet.
    scale : float
        Retrieved raster width divided by original image width.

    Returns
    -------
    tuple of float
        ``(offset_x + x * scale, offset_y + y * scale)``, unrounded.
    """
    x, y = point
    offset_x, offset_y = offset
    return (offset_x + x * scale, offset_y + y * scale)


def remap_map(gmap, offset, scale, resource):
    """Rewrite a map so that it points at `resource`, the sprite sheet.

    GCP resource coordinates and mask vertices are remapped with the same
    `offset` and `scale`; the map id and transformation are kept.
    """
    gcps = tuple(
        GroundControlPoint(resource=remap_point(gcp.resource, offset, scale), geo=gcp.geo)
        for gcp in gmap.gcps
    )
    mask = tuple(remap_point(vertex, offset, scale) for vertex in gmap.resource_mask)
    return replace(gmap, resource=resource, gcps=gcps, resource_mask=mask)
