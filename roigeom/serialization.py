# serialization.py

import json
import re

import numpy as np
from matplotlib.path import Path

from roigeom import shapes
from roigeom.errors import UnsupportedROIError
from roigeom.flattener import path_to_rings, roi_to_path

FORMAT_VERSION = 1

_PATH_TOKEN = re.compile(r"[MLZ]|[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?", re.IGNORECASE)


# --- DICT / BYTES ---

def _points(values):
    return tuple((float(x), float(y)) for x, y in values)


def roi_to_dict(roi):
    """JSON-ready description of a ROI. Values are stored as-is so the round trip is exact."""
    kind = shapes.roi_kind(roi)
    plane = roi.plane
    data = {'type': kind, 'plane': {'z': plane.z, 't': plane.t, 'c': plane.c}}
    if kind in ('rectangle', 'ellipse'):
        data.update(x=roi.x, y=roi.y, width=roi.width, height=roi.height)
    elif kind == 'line':
        data.update(x1=roi.x1, y1=roi.y1, x2=roi.x2, y2=roi.y2)
    elif kind == 'composite':
        data['rings'] = [[list(p) for p in ring] for ring in roi.rings]
    else:
        data['points'] = [list(p) for p in roi.points]
    return data


def roi_from_dict(data):
    kind = data.get('type')
    p = data.get('plane', {})
    plane = shapes.ImagePlane(z=int(p.get('z', 0)), t=int(p.get('t', 0)), c=int(p.get('c', -1)))

    if kind == 'rectangle':
        return shapes.RectangleROI(float(data['x']), float(data['y']), float(data['width']), float(data['height']), plane)
    if kind == 'ellipse':
        return shapes.EllipseROI(float(data['x']), float(data['y']), float(data['width']), float(data['height']), plane)
    if kind == 'line':
        return shapes.LineROI(float(data['x1']), float(data['y1']), float(data['x2']), float(data['y2']), plane)
    if kind == 'polygon':
        return shapes.PolygonROI(_points(data['points']), plane)
    if kind == 'polyline':
        return shapes.PolylineROI(_points(data['points']), plane)
    if kind == 'points':
        return shapes.PointsROI(_points(data['points']), plane)
    if kind == 'composite':
        return shapes.CompositeROI(tuple(_points(r) for r in data['rings']), plane)
    raise UnsupportedROIError(f"Unknown ROI type '{kind}' - cannot deserialize")


def roi_to_bytes(roi):
    return json.dumps({'version': FORMAT_VERSION, 'roi': roi_to_dict(roi)}).encode('utf-8')


def roi_from_bytes(payload):
    data = json.loads(payload.decode('utf-8'))
    version = data.get('version')
    if version != FORMAT_VERSION:
        raise ValueError(f"Unsupported ROI format version: {version}")
    return roi_from_dict(data['roi'])


# --- PATH DATA ---

def _fmt(value):
    return repr(float(value))


def roi_to_path_data(roi, flatness=shapes.DEFAULT_FLATNESS):
    """Converts an area ROI to an SVG-style path string, one 'M ... L ... Z' run per ring."""
    path = roi_to_path(roi, flatness)
    if path.codes is None:
        return ""
    parts = []
    for (x, y), code in zip(path.vertices.tolist(), path.codes):
        if code == Path.MOVETO:
            parts.append(f"M {_fmt(x)} {_fmt(y)}")
        elif code == Path.LINETO:
            parts.append(f"L {_fmt(x)} {_fmt(y)}")
        elif code == Path.CLOSEPOLY:
            parts.append("Z")
    return " ".join(parts)


def roi_from_path_data(text, plane=shapes.DEFAULT_PLANE):
    """
    Parses absolute M / L / Z path data back into a composite ROI.
    Coordinates following an M without a new command are line-tos, as in SVG.
    """
    leftover = _PATH_TOKEN.sub('', text).strip(' ,\t\r\n')
    if leftover:
        raise ValueError(f"Unsupported path data near: {leftover[:20]!r}")

    tokens = _PATH_TOKEN.findall(text)
    vertices = []
    codes = []
    command = None
    start = None
    i = 0
    while i < len(tokens):
        token = tokens[i]
        if token in ('m', 'l', 'z'):
            raise ValueError("Relative path commands are not supported")
        if token in ('M', 'L'):
            command = token
            i += 1
            continue
        if token == 'Z':
            if start is not None:
                vertices.append(start)
                codes.append(Path.CLOSEPOLY)
            command, start = None, None
            i += 1
            continue
        if command is None:
            raise ValueError("Path data must start with a move-to")
        if i + 1 >= len(tokens):
            raise ValueError("Odd number of coordinates in path data")
        x, y = float(tokens[i]), float(tokens[i + 1])
        if command == 'M':
            codes.append(Path.MOVETO)
            start = (x, y)
            command = 'L'
        else:
            codes.append(Path.LINETO)
        vertices.append((x, y))
        i += 2

    if not vertices:
        return shapes.create_empty_roi(plane)
    path = Path(np.asarray(vertices, dtype=float), np.asarray(codes, dtype=Path.code_type))
    rings = path_to_rings(path)
    if not rings:
        return shapes.create_empty_roi(plane)
    return shapes.create_composite_roi(rings, plane)
