import dataclasses
import math

import pytest

from roigeom import shapes
from roigeom.errors import UnsupportedROIError
from roigeom.shapes import ImagePlane


def test_rectangle_queries():
    rect = shapes.create_rectangle_roi(0, 0, 1000, 1000)

    assert shapes.get_area(rect) == 1000.0 * 1000.0
    assert shapes.get_bounds(rect).as_tuple() == (0.0, 0.0, 1000.0, 1000.0)
    assert shapes.get_centroid(rect) == (500.0, 500.0)
    assert shapes.get_length(rect) == 4000.0
    assert shapes.get_polygon_points(rect) == [(0, 0), (1000, 0), (1000, 1000), (0, 1000)]

    # Half-open like a pixel grid
    assert shapes.contains(rect, 0, 0)
    assert shapes.contains(rect, 999.5, 10)
    assert not shapes.contains(rect, 1000, 10)


def test_negative_extent_is_normalised():
    rect = shapes.create_rectangle_roi(10, 10, -5, -5)
    assert (rect.x, rect.y, rect.width, rect.height) == (5.0, 5.0, 5.0, 5.0)


def test_ellipse_area_is_analytic():
    ellipse = shapes.create_ellipse_roi(50, 0, 500, 300)

    assert shapes.get_area(ellipse) == pytest.approx(math.pi * 250 * 150, abs=0.01)
    assert shapes.get_bounds(ellipse).as_tuple() == (50.0, 0.0, 500.0, 300.0)
    assert shapes.get_centroid(ellipse) == (300.0, 150.0)
    assert shapes.contains(ellipse, 300, 150)
    assert not shapes.contains(ellipse, 52, 2)


def test_ellipse_tessellation_hits_the_bounds():
    n = shapes.ellipse_segment_count(500, 300, 0.5)
    assert n % 4 == 0 and n >= 8
    assert shapes.ellipse_segment_count(500, 300, 0.05) > n

    points = shapes.tessellate_ellipse(50, 0, 500, 300, 0.5)
    assert len(points) == n
    poly = shapes.create_polygon_roi(points)
    assert shapes.get_bounds(poly).as_tuple() == (50.0, 0.0, 500.0, 300.0)


def test_polygon_from_coords():
    poly = shapes.create_polygon_roi_from_coords([1.0, 2.5, 5.0], [10.0, 11.0, 12.0], ImagePlane.with_channel(0, 1, 2))

    assert poly.points == ((1.0, 10.0), (2.5, 11.0), (5.0, 12.0))
    assert poly.plane == ImagePlane(z=1, t=2, c=0)
    assert shapes.get_bounds(poly).as_tuple() == (1.0, 10.0, 4.0, 2.0)
    assert shapes.get_area(poly) == pytest.approx(0.5)

    with pytest.raises(ValueError):
        shapes.create_polygon_roi_from_coords([1.0, 2.0], [1.0])


def test_polygon_drops_repeated_closing_vertex():
    poly = shapes.create_polygon_roi([(0, 0), (4, 0), (4, 4), (0, 0)])
    assert poly.points == ((0.0, 0.0), (4.0, 0.0), (4.0, 4.0))
    assert shapes.get_num_points(poly) == 3


def test_composite_with_hole():
    outer = [(0, 0), (10, 0), (10, 10), (0, 10)]
    hole = [(2, 2), (2, 8), (8, 8), (8, 2)]
    roi = shapes.create_composite_roi([outer, hole])

    assert shapes.signed_ring_area(outer) == 100.0
    assert shapes.signed_ring_area(hole) == -36.0
    assert shapes.get_area(roi) == 64.0
    assert shapes.get_centroid(roi) == pytest.approx((5.0, 5.0))
    assert shapes.contains(roi, 1, 1)
    assert not shapes.contains(roi, 5, 5)
    assert shapes.get_length(roi) == pytest.approx(40.0 + 24.0)


def test_composite_queries_match_the_resolved_area():
    outer = [(0, 0), (10, 0), (10, 10), (0, 10)]
    # Same winding as the outer ring: both are outer boundaries, so the inner one adds nothing
    inner = [(2, 2), (8, 2), (8, 8), (2, 8)]
    roi = shapes.create_composite_roi([outer, inner])

    assert shapes.get_area(roi) == 100.0
    assert shapes.contains(roi, 5, 5)
    assert shapes.get_centroid(roi) == pytest.approx((5.0, 5.0))
    assert len(roi.rings) == 1

    overlapping = shapes.create_composite_roi([outer, [(5, 5), (15, 5), (15, 15), (5, 15)]])
    assert shapes.get_area(overlapping) == pytest.approx(175.0)
    assert shapes.contains(overlapping, 7, 7)
    assert shapes.get_bounds(overlapping).as_tuple() == (0.0, 0.0, 15.0, 15.0)

    # Equal and opposite rings cancel out
    assert shapes.is_empty(shapes.create_composite_roi([outer, outer[::-1]]))


def test_hand_built_composite_rings_are_resolved():
    outer = ((0.0, 0.0), (10.0, 0.0), (10.0, 10.0), (0.0, 10.0))
    inner = ((2.0, 2.0), (8.0, 2.0), (8.0, 8.0), (2.0, 8.0))

    roi = shapes.CompositeROI((outer, inner))
    assert shapes.get_area(roi) == 100.0
    assert shapes.contains(roi, 5, 5)

    flipped = shapes.CompositeROI((outer[::-1], inner))
    assert shapes.get_area(flipped) == 64.0
    assert not shapes.contains(flipped, 5, 5)


def test_self_intersecting_polygon_queries():
    # Lobes of 0.4 and 6.4 crossing at (0.8, 0.8)
    bowtie = shapes.create_polygon_roi([(0, 0), (4, 4), (4, 0), (0, 1)])

    assert shapes.get_area(bowtie) == pytest.approx(6.8)
    assert shapes.contains(bowtie, 3, 1)
    assert shapes.contains(bowtie, 0.1, 0.5)
    assert not shapes.contains(bowtie, 1, 3)


def test_num_points_follows_flatness():
    ellipse = shapes.create_ellipse_roi(50, 0, 500, 300)

    assert shapes.get_num_points(ellipse) == shapes.ellipse_segment_count(500, 300)
    assert shapes.get_num_points(ellipse, 0.05) == shapes.ellipse_segment_count(500, 300, 0.05)
    assert shapes.get_num_points(ellipse, 0.05) > shapes.get_num_points(ellipse)


def test_line_and_points():
    line = shapes.create_line_roi(100, 200, 300, 400)
    assert shapes.is_line(line) and not shapes.is_area(line)
    assert shapes.get_length(line) == pytest.approx(200 * math.sqrt(2))
    assert shapes.get_centroid(line) == (200.0, 300.0)
    assert shapes.get_area(line) == 0.0
    assert not shapes.contains(line, 200, 300)

    polyline = shapes.create_polyline_roi([(0, 0), (10, 0), (10, 30)])
    assert shapes.get_length(polyline) == 40.0
    assert shapes.get_centroid(polyline) == pytest.approx((8.75, 11.25))

    points = shapes.create_points_roi([(0, 0), (2, 0), (4, 6)])
    assert shapes.is_points(points)
    assert shapes.get_num_points(points) == 3
    assert shapes.get_centroid(points) == pytest.approx((2.0, 2.0))
    assert shapes.get_bounds(points).as_tuple() == (0.0, 0.0, 4.0, 6.0)


def test_empty_rois():
    empty = shapes.create_empty_roi()
    assert shapes.is_area(empty)
    assert shapes.is_empty(empty)
    assert shapes.get_area(empty) == 0.0
    assert shapes.get_bounds(empty).as_tuple() == (0.0, 0.0, 0.0, 0.0)

    assert shapes.is_empty(shapes.create_points_roi([]))
    assert shapes.is_empty(shapes.create_rectangle_roi(5, 5, 0, 10))
    assert not shapes.is_empty(shapes.create_rectangle_roi(5, 5, 1, 10))


def test_rois_are_immutable():
    rect = shapes.create_rectangle_roi(0, 0, 10, 10)
    with pytest.raises(dataclasses.FrozenInstanceError):
        rect.width = 20

    moved = shapes.translate_roi(rect, 5, -5)
    assert (moved.x, moved.y) == (5.0, -5.0)
    assert (rect.x, rect.y) == (0.0, 0.0)

    poly = shapes.translate_roi(shapes.create_polygon_roi([(0, 0), (1, 0), (1, 1)]), 1, 1)
    assert poly.points == ((1.0, 1.0), (2.0, 1.0), (2.0, 2.0))

    replaned = shapes.update_plane(rect, ImagePlane(z=3))
    assert replaned.plane.z == 3 and rect.plane == shapes.DEFAULT_PLANE


def test_unknown_roi_is_rejected():
    with pytest.raises(UnsupportedROIError):
        shapes.get_area(object())
    # Structural violations are also TypeErrors
    with pytest.raises(TypeError):
        shapes.get_bounds("rectangle")


if __name__ == "__main__":
    pytest.main([__file__])
