# combine.py

import logging
from enum import Enum
from functools import reduce

from shapely.ops import unary_union

from roigeom import shapes
from roigeom.config import resolve_config
from roigeom.errors import PlaneMismatchError, ROIGeometryError
from roigeom.geometry_engine import (
    geometry_to_roi,
    normalize_geometry,
    normalize_roi,
    polygonal_part,
    roi_to_geometry,
)

logger = logging.getLogger(__name__)

# Segments per quarter circle when expanding/shrinking ROIs
BUFFER_QUAD_SEGS = 16


class CombineOp(str, Enum):
    UNION = 'UNION'
    DIFFERENCE = 'DIFFERENCE'
    INTERSECTION = 'INTERSECTION'

    @classmethod
    def from_value(cls, op):
        """Accepts a CombineOp, its name, or the ADD / SUBTRACT / INTERSECT aliases."""
        if isinstance(op, cls):
            return op
        name = str(op).strip().upper()
        name = _OP_ALIASES.get(name, name)
        try:
            return cls(name)
        except ValueError:
            raise ValueError(f"Unknown combine operation: {op!r}") from None


_OP_ALIASES = {'ADD': 'UNION', 'SUBTRACT': 'DIFFERENCE', 'INTERSECT': 'INTERSECTION'}


def _common_plane(rois):
    # Rejected before any conversion: never silently pick one plane
    plane = shapes.get_plane(rois[0])
    for roi in rois[1:]:
        other = shapes.get_plane(roi)
        if other != plane:
            raise PlaneMismatchError(plane, other)
    return plane


def _to_roi(geometry, plane, config, label, areas_only=True):
    # Area inputs that merely touch leave lines/points behind; those carry no area
    if areas_only:
        geometry = polygonal_part(geometry)
    geometry = normalize_geometry(geometry)
    if geometry.is_empty:
        logger.debug("%s produced an empty ROI", label)
        return shapes.create_empty_roi(plane)
    return geometry_to_roi(geometry, plane, config)


def combine_rois(roi1, roi2, op, config=None):
    """
    Applies UNION / DIFFERENCE / INTERSECTION to two ROIs on the same plane.
    Empty inputs follow plain set algebra; an empty result is the explicitly-empty ROI.
    """
    op = CombineOp.from_value(op)
    plane = _common_plane([roi1, roi2])

    if shapes.is_empty(roi1):
        return roi2 if op == CombineOp.UNION else shapes.create_empty_roi(plane)
    if shapes.is_empty(roi2):
        return shapes.create_empty_roi(plane) if op == CombineOp.INTERSECTION else roi1

    config = resolve_config(config)
    geom1 = roi_to_geometry(roi1, config)
    geom2 = roi_to_geometry(roi2, config)
    if op == CombineOp.UNION:
        result = geom1.union(geom2)
    elif op == CombineOp.DIFFERENCE:
        result = geom1.difference(geom2)
    else:
        result = geom1.intersection(geom2)
    areas_only = shapes.is_area(roi1) and shapes.is_area(roi2)
    return _to_roi(result, plane, config, op.value, areas_only)


def union_rois(rois, config=None):
    rois = list(rois)
    if not rois:
        raise ValueError("At least one ROI is required for a union")
    plane = _common_plane(rois)
    non_empty = [r for r in rois if not shapes.is_empty(r)]
    if not non_empty:
        return shapes.create_empty_roi(plane)
    if len(non_empty) == 1:
        return non_empty[0]
    config = resolve_config(config)
    geometry = unary_union([roi_to_geometry(r, config) for r in non_empty])
    return _to_roi(geometry, plane, config, 'UNION', all(shapes.is_area(r) for r in non_empty))


def intersect_rois(rois, config=None):
    rois = list(rois)
    if not rois:
        raise ValueError("At least one ROI is required for an intersection")
    plane = _common_plane(rois)
    if any(shapes.is_empty(r) for r in rois):
        return shapes.create_empty_roi(plane)
    if len(rois) == 1:
        return rois[0]
    config = resolve_config(config)
    geometry = reduce(lambda a, b: a.intersection(b), [roi_to_geometry(r, config) for r in rois])
    return _to_roi(geometry, plane, config, 'INTERSECTION', all(shapes.is_area(r) for r in rois))


def expand_roi(roi, radius, constrain_to=None, remove_interior=False, config=None):
    """
    Grows (radius > 0) or shrinks (radius < 0) a ROI by a distance in geometry units.
    - constrain_to: when growing, the result is clipped to this ROI (e.g. a parent annotation).
    - remove_interior: keep only the band between the original and the expanded outline.
    """
    config = resolve_config(config)
    if constrain_to is not None:
        _common_plane([roi, constrain_to])
    geometry = roi_to_geometry(roi, config)
    expanded = geometry.buffer(radius, quad_segs=BUFFER_QUAD_SEGS)

    is_erosion = radius < 0
    if constrain_to is not None and not is_erosion:
        expanded = expanded.intersection(roi_to_geometry(constrain_to, config))
    if remove_interior:
        expanded = geometry.difference(expanded) if is_erosion else expanded.difference(geometry)
    return _to_roi(expanded, roi.plane, config, f"Expansion by {radius}")


def normalize_rois(rois, config=None):
    """
    Normalises every ROI through a validated geometry. A ROI that violates the conversion
    contract is logged and replaced by an empty ROI so the rest of the batch still succeeds.
    """
    results = []
    for roi in rois:
        try:
            results.append(normalize_roi(roi, config))
        except ROIGeometryError as e:
            logger.warning("Unable to normalize %r: %s", roi, e)
            plane = getattr(roi, 'plane', shapes.DEFAULT_PLANE)
            results.append(shapes.create_empty_roi(plane))
    return results
