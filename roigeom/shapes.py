# shapes.py

import math
from dataclasses import dataclass, replace
from typing import ClassVar

import numpy as np
from shapely.geometry import Point

from roigeom.errors import UnsupportedROIError

DEFAULT_FLATNESS = 0.5


@dataclass(frozen=True, order=True)
class ImagePlane:
    """The (z-slice, timepoint, channel) a ROI belongs to. Channel -1 means 'all channels'."""
    z: int = 0
    t: int = 0
    c: int = -1

    @classmethod
    def with_channel(cls, c, z=0, t=0):
        return cls(z=z, t=t, c=c)

    def __str__(self):
        return f"ImagePlane(z={self.z}, t={self.t}, c={self.c})"


DEFAULT_PLANE = ImagePlane()


@dataclass(frozen=True)
class Bounds:
    x: float
    y: float
    width: float
    height: float

    @property
    def max_x(self):
        return self.x + self.width

    @property
    def max_y(self):
        return self.y + self.height

    def as_tuple(self):
        return (self.x, self.y, self.width, self.height)


# --- ROI VARIANTS ---
# Each variant is a frozen value carrying only its own fields; 'kind' is the tag
# every query dispatches on.

@dataclass(frozen=True)
class RectangleROI:
    kind: ClassVar[str] = 'rectangle'
    x: float
    y: float
    width: float
    height: float
    plane: ImagePlane = DEFAULT_PLANE


@dataclass(frozen=True)
class EllipseROI:
    kind: ClassVar[str] = 'ellipse'
    x: float
    y: float
    width: float
    height: float
    plane: ImagePlane = DEFAULT_PLANE


@dataclass(frozen=True)
class PolygonROI:
    kind: ClassVar[str] = 'polygon'
    points: tuple
    plane: ImagePlane = DEFAULT_PLANE


@dataclass(frozen=True)
class CompositeROI:
    """Arbitrary area made of closed subpaths (outer boundaries and holes). No rings = empty."""
    kind: ClassVar[str] = 'composite'
    rings: tuple = ()
    plane: ImagePlane = DEFAULT_PLANE


@dataclass(frozen=True)
class LineROI:
    kind: ClassVar[str] = 'line'
    x1: float
    y1: float
    x2: float
    y2: float
    plane: ImagePlane = DEFAULT_PLANE


@dataclass(frozen=True)
class PolylineROI:
    kind: ClassVar[str] = 'polyline'
    points: tuple
    plane: ImagePlane = DEFAULT_PLANE


@dataclass(frozen=True)
class PointsROI:
    kind: ClassVar[str] = 'points'
    points: tuple = ()
    plane: ImagePlane = DEFAULT_PLANE


AREA_KINDS = frozenset({'rectangle', 'ellipse', 'polygon', 'composite'})
LINE_KINDS = frozenset({'line', 'polyline'})
POINT_KINDS = frozenset({'points'})
ALL_KINDS = AREA_KINDS | LINE_KINDS | POINT_KINDS


def roi_kind(roi):
    kind = getattr(roi, 'kind', None)
    if kind not in ALL_KINDS:
        raise UnsupportedROIError(f"Unknown ROI {roi!r} - not a supported shape kind")
    return kind


# --- FACTORIES ---

def _as_points(points):
    return tuple((float(x), float(y)) for x, y in points)


def as_ring(points):
    ring = _as_points(points)
    # Closing vertex is implicit
    if len(ring) > 1 and ring[0] == ring[-1]:
        ring = ring[:-1]
    return ring


def _normalise_extent(x, y, width, height):
    if width < 0:
        x, width = x + width, -width
    if height < 0:
        y, height = y + height, -height
    return float(x), float(y), float(width), float(height)


def create_rectangle_roi(x, y, width, height, plane=DEFAULT_PLANE):
    return RectangleROI(*_normalise_extent(x, y, width, height), plane=plane)


def create_ellipse_roi(x, y, width, height, plane=DEFAULT_PLANE):
    """Ellipse inscribed in the bounding box (x, y, width, height)."""
    return EllipseROI(*_normalise_extent(x, y, width, height), plane=plane)


def create_polygon_roi(points, plane=DEFAULT_PLANE):
    return PolygonROI(as_ring(points), plane=plane)


def create_polygon_roi_from_coords(xs, ys, plane=DEFAULT_PLANE):
    if len(xs) != len(ys):
        raise ValueError(f"x and y coordinate counts differ ({len(xs)} vs {len(ys)})")
    return create_polygon_roi(zip(xs, ys), plane)


def create_composite_roi(rings, plane=DEFAULT_PLANE):
    """
    Area built from arbitrary closed subpaths. The rings are resolved into outer
    boundaries and holes the same way any flattened shape is, and stored as
    counter-clockwise shells each followed by its clockwise holes.
    """
    # Deferred: the topology builder is itself layered on this module
    from roigeom.geometry_engine import canonical_rings
    return CompositeROI(canonical_rings([as_ring(r) for r in rings]), plane=plane)


def create_empty_roi(plane=DEFAULT_PLANE):
    """The explicitly-empty area ROI returned whenever a result has no area."""
    return CompositeROI((), plane=plane)


def create_line_roi(x1, y1, x2, y2, plane=DEFAULT_PLANE):
    return LineROI(float(x1), float(y1), float(x2), float(y2), plane=plane)


def create_polyline_roi(points, plane=DEFAULT_PLANE):
    return PolylineROI(_as_points(points), plane=plane)


def create_points_roi(points, plane=DEFAULT_PLANE):
    return PointsROI(_as_points(points), plane=plane)


# --- RING MATHS ---

def signed_ring_area(ring):
    """Shoelace area of a closed ring; positive for counter-clockwise traversal."""
    if len(ring) < 3:
        return 0.0
    pts = np.asarray(ring, dtype=float)
    x, y = pts[:, 0], pts[:, 1]
    return 0.5 * float(np.sum(x * np.roll(y, -1) - np.roll(x, -1) * y))


def _ring_perimeter(ring, closed=True):
    if len(ring) < 2:
        return 0.0
    pts = np.asarray(ring, dtype=float)
    if closed:
        pts = np.vstack([pts, pts[:1]])
    return float(np.sum(np.hypot(np.diff(pts[:, 0]), np.diff(pts[:, 1]))))


def ellipse_segment_count(width, height, flatness=DEFAULT_FLATNESS):
    """
    Number of chords used to tessellate an ellipse so that no chord strays more than
    'flatness' from the curve of the larger semi-axis. Always a multiple of 4 (>= 8)
    so the four extreme points of the ellipse are vertices.
    """
    radius = max(width, height) / 2.0
    if radius <= flatness:
        return 8
    theta = 2.0 * math.acos(1.0 - flatness / radius)
    n = max(8, int(math.ceil(2.0 * math.pi / theta)))
    return int(math.ceil(n / 4.0)) * 4


def tessellate_ellipse(x, y, width, height, flatness=DEFAULT_FLATNESS):
    n = ellipse_segment_count(width, height, flatness)
    angles = np.arange(n) * (2.0 * np.pi / n)
    cx, cy = x + width / 2.0, y + height / 2.0
    xs = cx + (width / 2.0) * np.cos(angles)
    ys = cy + (height / 2.0) * np.sin(angles)
    # Pin the extremes to the bounds so the flattened box equals the analytic one
    q = n // 4
    xs[0], ys[0] = x + width, cy
    xs[q], ys[q] = cx, y + height
    xs[2 * q], ys[2 * q] = x, cy
    xs[3 * q], ys[3 * q] = cx, y
    return list(zip(xs.tolist(), ys.tolist()))


def _rectangle_ring(roi):
    x, y, w, h = roi.x, roi.y, roi.width, roi.height
    return [(x, y), (x + w, y), (x + w, y + h), (x, y + h)]


# --- QUERIES ---

def is_area(roi):
    return roi_kind(roi) in AREA_KINDS


def is_line(roi):
    return roi_kind(roi) in LINE_KINDS


def is_points(roi):
    return roi_kind(roi) in POINT_KINDS


def get_plane(roi):
    roi_kind(roi)
    return roi.plane


def is_empty(roi):
    kind = roi_kind(roi)
    if kind in AREA_KINDS:
        return get_area(roi) == 0
    if kind == 'line':
        return False
    return len(roi.points) == 0


def get_polygon_points(roi, flatness=DEFAULT_FLATNESS):
    """Vertex list of the ROI; curved shapes are flattened, composites list every ring in order."""
    kind = roi_kind(roi)
    if kind == 'rectangle':
        return _rectangle_ring(roi)
    if kind == 'ellipse':
        return tessellate_ellipse(roi.x, roi.y, roi.width, roi.height, flatness)
    if kind == 'composite':
        return [p for ring in roi.rings for p in ring]
    if kind == 'line':
        return [(roi.x1, roi.y1), (roi.x2, roi.y2)]
    return list(roi.points)


def get_num_points(roi, flatness=DEFAULT_FLATNESS):
    return len(get_polygon_points(roi, flatness))


def get_bounds(roi):
    kind = roi_kind(roi)
    if kind in ('rectangle', 'ellipse'):
        return Bounds(roi.x, roi.y, roi.width, roi.height)
    points = get_polygon_points(roi)
    if not points:
        return Bounds(0.0, 0.0, 0.0, 0.0)
    pts = np.asarray(points, dtype=float)
    min_x, min_y = pts.min(axis=0).tolist()
    max_x, max_y = pts.max(axis=0).tolist()
    return Bounds(min_x, min_y, max_x - min_x, max_y - min_y)


def _area_geometry(roi):
    # Deferred: the topology builder is itself layered on this module
    from roigeom.geometry_engine import roi_to_geometry
    return roi_to_geometry(roi)


def get_area(roi):
    """Exact area where the shape has a closed form, else the area of the resolved geometry. Zero for lines and points."""
    kind = roi_kind(roi)
    if kind == 'rectangle':
        return roi.width * roi.height
    if kind == 'ellipse':
        return math.pi * (roi.width / 2.0) * (roi.height / 2.0)
    if kind in ('polygon', 'composite'):
        # Free rings may overlap or self-intersect: measure what they resolve to
        return _area_geometry(roi).area
    return 0.0


def get_length(roi):
    """Perimeter for areas, path length for lines, 0 for points."""
    kind = roi_kind(roi)
    if kind == 'rectangle':
        return 2.0 * (roi.width + roi.height)
    if kind == 'ellipse':
        # Ramanujan's approximation
        a, b = roi.width / 2.0, roi.height / 2.0
        return math.pi * (3 * (a + b) - math.sqrt((3 * a + b) * (a + 3 * b)))
    if kind == 'polygon':
        return _ring_perimeter(roi.points)
    if kind == 'composite':
        return sum(_ring_perimeter(r) for r in roi.rings)
    if kind == 'line':
        return math.hypot(roi.x2 - roi.x1, roi.y2 - roi.y1)
    if kind == 'polyline':
        return _ring_perimeter(roi.points, closed=False)
    return 0.0


def get_centroid(roi):
    kind = roi_kind(roi)
    if kind in ('rectangle', 'ellipse'):
        return (roi.x + roi.width / 2.0, roi.y + roi.height / 2.0)
    if kind in ('polygon', 'composite'):
        geom = _area_geometry(roi)
        if not geom.is_empty:
            c = geom.centroid
            return (c.x, c.y)
    elif kind in LINE_KINDS:
        pts = np.asarray(get_polygon_points(roi), dtype=float)
        if len(pts) > 1:
            lengths = np.hypot(np.diff(pts[:, 0]), np.diff(pts[:, 1]))
            if lengths.sum() > 0:
                mids = (pts[:-1] + pts[1:]) / 2.0
                cx, cy = (mids * lengths[:, None]).sum(axis=0) / lengths.sum()
                return (float(cx), float(cy))
    # Zero-area or zero-length shapes fall back to the vertex mean
    points = get_polygon_points(roi)
    if not points:
        return (math.nan, math.nan)
    cx, cy = np.asarray(points, dtype=float).mean(axis=0).tolist()
    return (cx, cy)


def contains(roi, x, y):
    """Point-in-area test. Always False for lines and points."""
    kind = roi_kind(roi)
    if kind == 'rectangle':
        return roi.x <= x < roi.x + roi.width and roi.y <= y < roi.y + roi.height
    if kind == 'ellipse':
        if roi.width <= 0 or roi.height <= 0:
            return False
        nx = (x - roi.x) / roi.width - 0.5
        ny = (y - roi.y) / roi.height - 0.5
        return nx * nx + ny * ny < 0.25
    if kind in ('polygon', 'composite'):
        return _area_geometry(roi).contains(Point(x, y))
    return False


# --- DERIVED ROIS ---

def translate_roi(roi, dx, dy):
    kind = roi_kind(roi)
    if dx == 0 and dy == 0:
        return roi
    if kind in ('rectangle', 'ellipse'):
        return replace(roi, x=roi.x + dx, y=roi.y + dy)
    if kind == 'line':
        return replace(roi, x1=roi.x1 + dx, y1=roi.y1 + dy, x2=roi.x2 + dx, y2=roi.y2 + dy)
    if kind == 'composite':
        return replace(roi, rings=tuple(tuple((px + dx, py + dy) for px, py in r) for r in roi.rings))
    return replace(roi, points=tuple((px + dx, py + dy) for px, py in roi.points))


def update_plane(roi, plane):
    roi_kind(roi)
    return replace(roi, plane=plane)
