"""
Natours API — Geometry and Slug Helper Tests
"""

import math

import pytest

from natours.utils.geo import (
    EARTH_RADIUS_METERS,
    GeoPoint,
    bounding_box,
    haversine_meters,
    parse_latlng,
    radius_in_radians,
)
from natours.utils.slug import slugify


class TestSlugify:
    @pytest.mark.parametrize(
        "name,slug",
        [
            ("The Forest Hiker", "the-forest-hiker"),
            ("  The   Sea Explorer!  ", "the-sea-explorer"),
            ("Crème Brûlée Tour", "creme-brulee-tour"),
            ("Over The-Top -- Tour", "over-the-top-tour"),
            ("", ""),
        ],
    )
    def test_slugify(self, name, slug):
        assert slugify(name) == slug


class TestParseLatLng:
    def test_valid(self):
        assert parse_latlng("34.111745, -118.113491") == GeoPoint(lat=34.111745, lng=-118.113491)

    @pytest.mark.parametrize("value", ["34.1", "34.1,", "a,b", "1,2,3", "91,0", "0,181"])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_latlng(value)


class TestDistances:
    def test_same_point(self):
        point = GeoPoint(lat=51.4, lng=-116.2)
        assert haversine_meters(point, point) == 0

    def test_one_degree_of_latitude(self):
        meters = haversine_meters(GeoPoint(lat=0, lng=0), GeoPoint(lat=1, lng=0))
        assert meters == pytest.approx(EARTH_RADIUS_METERS * math.pi / 180)

    def test_radius_units(self):
        assert radius_in_radians(3963.2, "mi") == pytest.approx(1)
        assert radius_in_radians(6378.1, "km") == pytest.approx(1)

    def test_bounding_box_contains_center(self):
        center = GeoPoint(lat=34.1, lng=-118.1)
        min_lat, max_lat, min_lng, max_lng = bounding_box(center, radius_in_radians(200, "mi"))
        assert min_lat < center.lat < max_lat
        assert min_lng < center.lng < max_lng
        # Longitude degrees shrink away from the equator
        assert (max_lng - min_lng) > (max_lat - min_lat)

    def test_bounding_box_across_antimeridian(self):
        box = bounding_box(GeoPoint(lat=0, lng=179.5), radius_in_radians(100, "km"))
        assert box[2:] == (-180.0, 180.0)

    def test_bounding_box_near_pole(self):
        box = bounding_box(GeoPoint(lat=89.9, lng=0), radius_in_radians(100, "km"))
        assert box[1] == 90.0
        assert box[2:] == (-180.0, 180.0)
