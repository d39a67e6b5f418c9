# comparator.py

from functools import cmp_to_key

from roigeom import shapes


def _cmp(a, b):
    return (a > b) - (a < b)


def compare_rois(roi1, roi2):
    """
    Total ordering over ROIs: bounds (x, y, width, height), then plane (z, t, c),
    then vertex by vertex, then vertex count. Returns -1, 0 or 1.
    """
    result = _cmp(shapes.get_bounds(roi1).as_tuple(), shapes.get_bounds(roi2).as_tuple())
    if result:
        return result

    p1, p2 = shapes.get_plane(roi1), shapes.get_plane(roi2)
    result = _cmp((p1.z, p1.t, p1.c), (p2.z, p2.t, p2.c))
    if result:
        return result

    points1 = shapes.get_polygon_points(roi1)
    points2 = shapes.get_polygon_points(roi2)
    for a, b in zip(points1, points2):
        result = _cmp(a, b)
        if result:
            return result
    return _cmp(len(points1), len(points2))


roi_sort_key = cmp_to_key(compare_rois)


def sort_rois(rois):
    return sorted(rois, key=roi_sort_key)
