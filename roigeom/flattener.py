# flattener.py

import numpy as np
from matplotlib.path import Path

from roigeom.errors import UnsupportedROIError
from roigeom.shapes import AREA_KINDS, DEFAULT_FLATNESS, get_polygon_points, roi_kind


def _subpaths(roi, flatness):
    kind = roi_kind(roi)
    if kind not in AREA_KINDS:
        raise UnsupportedROIError(f"Cannot flatten a {kind} ROI - only area ROIs have closed subpaths")
    if kind == 'composite':
        return [list(r) for r in roi.rings]
    return [get_polygon_points(roi, flatness)]


def roi_to_path(roi, flatness=DEFAULT_FLATNESS):
    """
    Describes an area ROI as a flattened path: one MOVETO, LINETO*, CLOSEPOLY run per subpath,
    in the order the shape emits them. Curves are already tessellated to 'flatness'.
    """
    vertices = []
    codes = []
    for ring in _subpaths(roi, flatness):
        if not ring:
            continue
        vertices.extend(ring)
        vertices.append(ring[0])
        codes.extend([Path.MOVETO] + [Path.LINETO] * (len(ring) - 1) + [Path.CLOSEPOLY])
    if not vertices:
        return Path(np.empty((0, 2)), readonly=True)
    return Path(np.asarray(vertices, dtype=float), np.asarray(codes, dtype=Path.code_type), readonly=True)


def is_degenerate_ring(ring):
    """A ring with fewer than three distinct vertices encloses nothing."""
    return len(set(ring)) < 3


def path_to_rings(path):
    """
    Splits a flattened path into closed rings (no repeated closing vertex).
    An unterminated subpath is closed implicitly. Degenerate rings are dropped.
    """
    rings = []
    current = None
    codes = path.codes
    if codes is None:
        codes = [Path.MOVETO] + [Path.LINETO] * (len(path.vertices) - 1) if len(path.vertices) else []

    for vertex, code in zip(path.vertices.tolist(), codes):
        if code == Path.MOVETO:
            if current:
                rings.append(current)
            current = [(vertex[0], vertex[1])]
        elif code == Path.LINETO:
            if current is None:
                current = []
            current.append((vertex[0], vertex[1]))
        elif code == Path.CLOSEPOLY:
            if current:
                rings.append(current)
            current = None
        else:
            # Curves must be tessellated before they reach here
            raise UnsupportedROIError(f"Unexpected path code {code} - flatten curves before splitting into rings")
    if current:
        rings.append(current)

    result = []
    for ring in rings:
        if len(ring) > 1 and ring[0] == ring[-1]:
            ring = ring[:-1]
        if not is_degenerate_ring(ring):
            result.append(ring)
    return result


def flatten_roi(roi, flatness=DEFAULT_FLATNESS):
    """Ordered list of closed vertex rings for an area ROI."""
    return path_to_rings(roi_to_path(roi, flatness))
