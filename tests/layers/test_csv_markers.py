"""Tests for the marker CSV parser — header aliases, bad rows, default names."""

import pytest

from pinpoint.layers.parsers.csv_import import Marker, parse_marker_csv


@pytest.mark.unit
class TestMarkerCsv:
    """Parse name/lat/lon/id rows into markers."""

    def test_english_headers(self):
        text = "name,lat,lon,id\nTokyo Station,35.6812,139.7671,odn_001\nShinjuku,35.6896,139.7006,\n"
        markers = parse_marker_csv(text)
        assert markers == [
            Marker("Tokyo Station", 35.6812, 139.7671, "odn_001"),
            Marker("Shinjuku", 35.6896, 139.7006, None),
        ]

    def test_japanese_headers(self):
        text = "地点名,緯度,経度\n東京駅,35.6812,139.7671\n"
        markers = parse_marker_csv(text)
        assert markers == [Marker("東京駅", 35.6812, 139.7671)]

    def test_headers_are_case_insensitive(self):
        markers = parse_marker_csv("Name,Latitude,LNG\nA,1.5,2.5\n")
        assert markers == [Marker("A", 1.5, 2.5)]

    def test_rows_with_bad_coordinates_are_skipped(self):
        text = "name,lat,lon\nA,abc,139\nB,35,\nC,nan,139\nD,35,139\n"
        assert [m.name for m in parse_marker_csv(text)] == ["D"]

    def test_blank_name_gets_coordinate_label(self):
        markers = parse_marker_csv("name,lat,lon\n,35.5,139.25\n")
        assert markers[0].name == "Loc(35.5000, 139.2500)"

    def test_missing_coordinate_columns(self):
        assert parse_marker_csv("name,x,y\nA,1,2\n") == []

    def test_empty_text(self):
        assert parse_marker_csv("") == []
