from __future__ import annotations

import pytest

from geo.bounds import MapBounds


def test_padded_grows_each_edge_by_own_span():
    b = MapBounds(north=10.0, south=0.0, east=20.0, west=0.0)
    p = b.padded(0.2)
    assert p.north == pytest.approx(12.0)
    assert p.south == pytest.approx(-2.0)
    assert p.east == pytest.approx(24.0)
    assert p.west == pytest.approx(-4.0)


def test_contains_is_one_directional():
    outer = MapBounds(north=10.0, south=0.0, east=10.0, west=0.0)
    inner = MapBounds(north=5.0, south=1.0, east=5.0, west=1.0)
    assert outer.contains(inner)
    assert not inner.contains(outer)
    assert outer.contains(outer)


def test_contains_point_edges_are_inclusive():
    b = MapBounds(north=1.0, south=0.0, east=1.0, west=0.0)
    assert b.contains_point(0.0, 0.0)
    assert b.contains_point(1.0, 1.0)
    assert not b.contains_point(1.0001, 0.5)


def test_degenerate_and_center():
    assert MapBounds(north=1.0, south=1.0, east=2.0, west=0.0).is_degenerate()
    assert MapBounds(north=2.0, south=0.0, east=1.0, west=1.0).is_degenerate()
    b = MapBounds(north=2.0, south=0.0, east=4.0, west=0.0)
    assert not b.is_degenerate()
    assert b.center() == (1.0, 2.0)


def test_north_below_south_is_rejected():
    with pytest.raises(ValueError):
        MapBounds(north=0.0, south=1.0, east=1.0, west=0.0)
