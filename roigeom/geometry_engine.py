# geometry_engine.py

import logging
from dataclasses import dataclass

import numpy as np
import shapely
from shapely import affinity
from shapely.geometry import LineString, MultiPoint, MultiPolygon, Point, Polygon
from shapely.geometry.polygon import orient
from shapely.ops import linemerge, unary_union
from shapely.validation import explain_validity, make_valid

from roigeom import shapes
from roigeom.config import resolve_config
from roigeom.errors import UnsupportedROIError
from roigeom.flattener import flatten_roi
from roigeom.shapes import signed_ring_area

logger = logging.getLogger(__name__)

# Relative area drift (0.01%) a self-intersection repair may introduce and still count as safe
REPAIR_AREA_TOLERANCE = 1e-4
# Multiplies the smallest envelope dimension to give the self-snapping distance
SNAP_PRECISION_FACTOR = 1e-9

POLYGONAL_TYPES = ('Polygon', 'MultiPolygon')


@dataclass(frozen=True)
class RepairRecord:
    """Diagnostic for one ring that failed validation and was repaired."""
    ring_index: int
    reason: str
    area_before: float
    area_after: float
    safe: bool


@dataclass(frozen=True)
class ConversionResult:
    """A converted geometry plus the repairs needed to make it valid."""
    geometry: object
    repairs: tuple = ()

    @property
    def approximate(self):
        return any(not r.safe for r in self.repairs)

    @property
    def is_empty(self):
        return self.geometry.is_empty


# --- RING REPAIR ---

def areas_almost_equal(area_before, area_after, tolerance=REPAIR_AREA_TOLERANCE):
    if area_before == area_after:
        return True
    return abs(area_before - area_after) <= tolerance * max(abs(area_before), abs(area_after))


def snap_tolerance(geom):
    """Size-based snapping distance: larger shapes tolerate larger snaps."""
    minx, miny, maxx, maxy = geom.bounds
    return min(maxx - minx, maxy - miny) * SNAP_PRECISION_FACTOR


def polygonal_part(geom):
    """Keeps only the polygonal components of a geometry (make_valid can emit stray lines/points)."""
    if geom.is_empty:
        return Polygon()
    if geom.geom_type in POLYGONAL_TYPES:
        return geom
    if geom.geom_type == 'GeometryCollection':
        polys = [g for g in geom.geoms if g.geom_type in POLYGONAL_TYPES and not g.is_empty]
        return unary_union(polys) if polys else Polygon()
    return Polygon()


def repair_ring(polygon, ring_index=0):
    """
    Repairs a self-intersecting ring polygon.
    1. Snaps the polygon to itself so near-coincident vertices merge.
    2. If still invalid, rebuilds it with make_valid (polygonal parts only).
    3. Compares areas before/after; drift beyond REPAIR_AREA_TOLERANCE is flagged, never raised.
    """
    reason = explain_validity(polygon)
    logger.debug("Invalid polygon detected! Attempting to correct %s", reason)
    area_before = polygon.area
    repaired = shapely.snap(polygon, polygon, snap_tolerance(polygon))
    if not repaired.is_valid:
        repaired = polygonal_part(make_valid(repaired))
    area_after = repaired.area
    safe = areas_almost_equal(area_before, area_after)
    if safe:
        logger.debug("Geometry fix looks ok (area before: %s, area after: %s)", area_before, area_after)
    else:
        logger.warning("Unable to fix geometry cleanly (area before: %s, area after: %s): %s",
                       area_before, area_after, reason)
        logger.warning("Will attempt to proceed using %s", repaired.wkt)
    return repaired, RepairRecord(ring_index, reason, area_before, area_after, safe)


# --- TOPOLOGY BUILDER ---

def normalize_geometry(geom):
    """
    Zero-tolerance simplification: drops duplicate and collinear vertices without moving any,
    then falls back to make_valid only if the result is still invalid.
    """
    if geom.is_empty:
        return geom
    simplified = geom.simplify(0, preserve_topology=True)
    # Nothing removable: keep the input as-is (including its ring start points)
    if simplified.is_empty or shapely.get_num_coordinates(simplified) == shapely.get_num_coordinates(geom):
        simplified = geom
    if not simplified.is_valid:
        fixed = make_valid(simplified)
        simplified = polygonal_part(fixed) if geom.geom_type in POLYGONAL_TYPES else fixed
    return simplified


def rings_to_geometry(rings):
    """
    Assembles closed rings into a polygon-with-holes geometry.

    Rings are bucketed by the sign of their own area, but which bucket holds the outer
    boundaries is only decided at the end from the sign of the accumulated total, since
    subpaths carry no reliable orientation convention. A zero total means empty.
    """
    positive = []
    negative = []
    repairs = []
    area_cached = 0.0

    for i, ring in enumerate(rings):
        area = signed_ring_area(ring)
        area_cached += area
        if area == 0:
            continue
        polygon = Polygon(ring)
        if not polygon.is_valid:
            polygon, record = repair_ring(polygon, i)
            repairs.append(record)
        if area < 0:
            negative.append(polygon)
        else:
            positive.append(polygon)

    if area_cached < 0:
        outer, holes = negative, positive
    elif area_cached > 0:
        outer, holes = positive, negative
    else:
        return ConversionResult(Polygon(), tuple(repairs))

    geometry = _assemble_nested(outer, holes)
    if geometry is None:
        geometry = unary_union(outer)
        if holes:
            geometry = geometry.difference(unary_union(holes))
    return ConversionResult(normalize_geometry(geometry), tuple(repairs))


def _assemble_nested(outer, holes):
    """
    Builds the polygons directly when the outer rings are pairwise disjoint and every hole
    sits strictly inside exactly one of them. The overlay would give the same area but may
    restart rings at other vertices, so this keeps the ring order and start points.
    Returns None when the rings need the full union/difference.
    """
    if any(p.geom_type != 'Polygon' or p.interiors for p in outer + holes):
        return None
    for i, a in enumerate(outer):
        if any(a.intersects(b) for b in outer[i + 1:]):
            return None
    for i, h in enumerate(holes):
        if any(h.intersects(other) for other in holes[i + 1:]):
            return None

    interiors = [[] for _ in outer]
    for h in holes:
        owners = [i for i, a in enumerate(outer) if a.contains_properly(h)]
        if len(owners) != 1:
            return None
        interiors[owners[0]].append(h.exterior.coords)

    polygons = [Polygon(a.exterior.coords, rings) for a, rings in zip(outer, interiors)]
    if len(polygons) == 1:
        geometry = polygons[0]
    else:
        geometry = MultiPolygon(polygons)
    return geometry if geometry.is_valid else None


def _group_canonical_rings(rings):
    """
    Rebuilds a geometry from rings already laid out as counter-clockwise shells, each
    followed by its clockwise holes. Islands inside holes are kept as separate polygons.
    Returns None when the rings are not in that layout.
    """
    groups = []
    for ring in rings:
        area = signed_ring_area(ring)
        if area > 0:
            groups.append((ring, []))
        elif area < 0:
            if not groups:
                return None
            groups[-1][1].append(ring)
    if not groups:
        return None

    polygons = [Polygon(shell, holes) for shell, holes in groups]
    if not all(p.is_valid for p in polygons):
        return None
    if len(polygons) == 1:
        return polygons[0]
    geometry = MultiPolygon(polygons)
    # Overlapping shells (hand-built composites) still resolve to their union
    return geometry if geometry.is_valid else unary_union(polygons)


def canonical_rings(rings):
    """
    Resolves loosely-structured rings (any winding, overlaps, self-intersections) into the
    composite layout: counter-clockwise shells, each followed by its clockwise holes.
    """
    geometry = polygonal_part(rings_to_geometry(rings).geometry)
    return _polygonal_rings(geometry)


def is_valid_geometry(geom):
    return geom.is_valid


# --- ROI -> GEOMETRY ---

def _scale_coords(points, config):
    points = list(points)
    if not config.is_scaled or not points:
        return points
    scaled = np.asarray(points, dtype=float) * np.array([config.pixel_width, config.pixel_height])
    return [tuple(p) for p in scaled.tolist()]


def roi_to_geometry_result(roi, config=None):
    """Converts any ROI to a shapely geometry, reporting any ring repairs alongside it."""
    config = resolve_config(config)
    kind = shapes.roi_kind(roi)
    repairs = ()

    if kind in shapes.POINT_KINDS:
        coords = _scale_coords(roi.points, config)
        geometry = Point(coords[0]) if len(coords) == 1 else MultiPoint(coords)
    elif kind in shapes.LINE_KINDS:
        coords = _scale_coords(shapes.get_polygon_points(roi), config)
        geometry = LineString(coords) if len(coords) >= 2 else LineString()
    else:
        rings = [_scale_coords(r, config) for r in flatten_roi(roi, config.flatness)]
        # Composites already carry resolved shells and holes
        geometry = _group_canonical_rings(rings) if kind == 'composite' else None
        if geometry is not None:
            geometry = normalize_geometry(geometry)
        elif rings:
            result = rings_to_geometry(rings)
            geometry, repairs = result.geometry, result.repairs
        else:
            geometry = Polygon()

    if config.precision_grid_size:
        geometry = shapely.set_precision(geometry, config.precision_grid_size)
    return ConversionResult(geometry, repairs)


def roi_to_geometry(roi, config=None):
    return roi_to_geometry_result(roi, config).geometry


# --- GEOMETRY -> ROI ---

def _polygonal_to_roi(geom, plane):
    polygons = list(geom.geoms) if geom.geom_type == 'MultiPolygon' else [geom]
    polygons = [p for p in polygons if not p.is_empty]
    if not polygons:
        return shapes.create_empty_roi(plane)
    if len(polygons) == 1 and not polygons[0].interiors:
        return shapes.create_polygon_roi(polygons[0].exterior.coords, plane)
    # Already resolved: built directly so islands inside holes are not re-classified
    return shapes.CompositeROI(_polygonal_rings(geom), plane=plane)


def _polygonal_rings(geom):
    # Shells counter-clockwise, each followed by its clockwise holes
    polygons = list(geom.geoms) if geom.geom_type == 'MultiPolygon' else [geom]
    rings = []
    for p in polygons:
        if p.is_empty:
            continue
        p = orient(p, sign=1.0)
        rings.append(shapes.as_ring(p.exterior.coords))
        rings.extend(shapes.as_ring(interior.coords) for interior in p.interiors)
    return tuple(rings)


def _line_to_roi(geom, plane):
    coords = list(geom.coords)
    if len(coords) == 2:
        (x1, y1), (x2, y2) = coords
        return shapes.create_line_roi(x1, y1, x2, y2, plane)
    return shapes.create_polyline_roi(coords, plane)


def geometry_to_roi(geometry, plane=shapes.DEFAULT_PLANE, config=None):
    """
    Converts a shapely geometry back to a ROI on 'plane'.
    Empty geometries give the explicitly-empty ROI, never None.
    """
    if geometry is None or not hasattr(geometry, 'geom_type'):
        raise UnsupportedROIError(f"Unknown geometry {geometry!r} - cannot convert to a ROI")
    config = resolve_config(config)
    if geometry.is_empty:
        return shapes.create_empty_roi(plane)
    if config.is_scaled:
        geometry = affinity.scale(geometry, 1.0 / config.pixel_width, 1.0 / config.pixel_height, origin=(0, 0))

    geom_type = geometry.geom_type
    if geom_type == 'Point':
        return shapes.create_points_roi([(geometry.x, geometry.y)], plane)
    if geom_type == 'MultiPoint':
        return shapes.create_points_roi([(p.x, p.y) for p in geometry.geoms], plane)
    if geom_type in ('LineString', 'LinearRing'):
        return _line_to_roi(geometry, plane)
    if geom_type == 'MultiLineString':
        merged = linemerge(geometry)
        if merged.geom_type == 'LineString':
            return _line_to_roi(merged, plane)
        raise UnsupportedROIError("Disjoint lines cannot be represented by a single line ROI")
    if geom_type in POLYGONAL_TYPES:
        return _polygonal_to_roi(geometry, plane)
    if geom_type == 'GeometryCollection':
        polygonal = polygonal_part(geometry)
        if not polygonal.is_empty:
            return _polygonal_to_roi(polygonal, plane)
        points = []
        for g in geometry.geoms:
            if g.geom_type == 'Point' and not g.is_empty:
                points.append((g.x, g.y))
            elif g.geom_type == 'MultiPoint':
                points.extend((p.x, p.y) for p in g.geoms)
        if points:
            return shapes.create_points_roi(points, plane)
        return shapes.create_empty_roi(plane)
    raise UnsupportedROIError(f"Unknown geometry type {geom_type} - cannot convert to a ROI")


def normalize_roi(roi, config=None):
    """Round-trips a ROI through a validated geometry, repairing invalid areas."""
    return geometry_to_roi(roi_to_geometry(roi, config), roi.plane, config)
