"""Tests for the Overpass client and OSM trailhead extraction."""

from unittest.mock import MagicMock, patch

import numpy as np
import pytest
import requests

from mountaindb.utils.overpass import (
    OSMFeature,
    OverpassClient,
    endpoints_from_env,
    haversine_km,
    osm_trailheads,
    parking_capacity,
)
from mountaindb.utils.records import MountainRecord


def response(status_code=200, elements=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = {"elements": elements or []}
    return resp


def feature(osm_id, lat, lon, name=None, **tags):
    return OSMFeature(osm_id=osm_id, osm_type=osm_id.split("/")[0], lat=lat, lon=lon, name=name, tags=tags)


class TestHaversine:
    """Tests for haversine_km()."""

    def test_same_point(self):
        """Test distance to the same point is zero."""
        assert haversine_km(35.625, 139.2437, np.array([35.625]), np.array([139.2437]))[0] == pytest.approx(0.0)

    def test_known_distance(self):
        """Test Tokyo Station to Mt. Fuji is about 100 km."""
        distances = haversine_km(35.6812, 139.7671, np.array([35.3606]), np.array([138.7274]))
        assert distances[0] == pytest.approx(100.0, abs=5.0)

    def test_vectorized(self):
        """Test one distance per target."""
        distances = haversine_km(35.0, 139.0, np.array([35.0, 36.0, 35.0]), np.array([139.0, 139.0, 140.0]))
        assert distances.shape == (3,)
        assert distances[1] == pytest.approx(111.2, abs=0.5)


class TestOverpassClient:
    """Tests for OverpassClient.query()."""

    @pytest.fixture
    def session(self):
        return MagicMock()

    @pytest.fixture
    def client(self, session):
        return OverpassClient(endpoints=["https://a/api", "https://b/api"], rate_limit=0,
                              max_retries=2, session=session)

    def test_parses_nodes_and_ways(self, client, session):
        """Test nodes use lat/lon and ways use their center."""
        session.post.return_value = response(elements=[
            {"type": "node", "id": 1, "lat": 35.63, "lon": 139.27, "tags": {"name": "高尾山口"}},
            {"type": "way", "id": 2, "center": {"lat": 35.62, "lon": 139.26}, "tags": {"amenity": "parking"}},
            {"type": "relation", "id": 3, "tags": {}},
        ])
        features = client.query("[out:json];")
        assert [f.osm_id for f in features] == ["node/1", "way/2"]
        assert features[0].name == "高尾山口"
        assert features[1].lat == 35.62

    def test_rotates_on_timeout(self, client, session):
        """Test a timeout moves on to the next endpoint."""
        session.post.side_effect = [requests.exceptions.Timeout(), response(elements=[])]
        assert client.query("q") == []
        assert [c.args[0] for c in session.post.call_args_list] == ["https://a/api", "https://b/api"]

    def test_rotates_on_rate_limit_status(self, client, session):
        """Test 429 responses are skipped."""
        session.post.side_effect = [
            response(status_code=429),
            response(elements=[{"type": "node", "id": 9, "lat": 35.0, "lon": 139.0}]),
        ]
        assert [f.osm_id for f in client.query("q")] == ["node/9"]

    def test_all_endpoints_fail(self, client, session):
        """Test every pass failing returns an empty list after backing off."""
        session.post.side_effect = requests.exceptions.ConnectionError("refused")
        with patch("mountaindb.utils.overpass.time.sleep") as sleep:
            assert client.query("q") == []
        assert session.post.call_count == 4
        sleep.assert_called_once_with(2.0)

    def test_around_query(self, client):
        """Test the generated Overpass QL."""
        query = client._around_query(['["amenity"="toilets"]'], 35.6, 139.2, 300)
        assert 'nwr["amenity"="toilets"](around:300,35.6,139.2);' in query
        assert query.endswith("out center tags;")


class TestHelpers:
    """Tests for small helpers."""

    @pytest.mark.parametrize("tags,expected", [
        ({"capacity": "30"}, 30),
        ({"capacity": "approx. 20"}, 20),
        ({"capacity": "10-15"}, 10),
        ({"capacity": "many"}, None),
        ({}, None),
    ])
    def test_parking_capacity(self, tags, expected):
        """Test capacity parsing."""
        assert parking_capacity(tags) == expected

    def test_endpoints_from_env(self, monkeypatch):
        """Test OVERPASS_URLS overrides the defaults."""
        monkeypatch.setenv("OVERPASS_URLS", "https://x/api, https://y/api")
        assert endpoints_from_env() == ["https://x/api", "https://y/api"]
        monkeypatch.setenv("OVERPASS_URLS", "")
        assert len(endpoints_from_env()) == 3


class TestOsmTrailheads:
    """Tests for osm_trailheads()."""

    @pytest.fixture
    def record(self):
        return MountainRecord(id="t", name="高尾山", lat=35.625, lng=139.2437)

    def test_trailheads_nearest_first(self, record):
        """Test trailheads are ordered by distance and enriched with amenities."""
        client = MagicMock()
        client.find_trailheads.return_value = [
            feature("node/2", 35.70, 139.30, "遠い登山口"),
            feature("node/1", 35.632, 139.27, "高尾山口"),
        ]
        client.find_amenities.side_effect = [
            [feature("node/10", 35.632, 139.271, amenity="toilets"),
             feature("way/11", 35.633, 139.270, amenity="parking", capacity="50")],
            [],
        ]

        trailheads = osm_trailheads(client, record)
        assert [t["name"] for t in trailheads] == ["高尾山口", "遠い登山口"]
        assert trailheads[0] == {
            "name": "高尾山口", "lat": 35.632, "lng": 139.27, "source": "osm",
            "osm_id": "node/1", "toilet": True, "parking": True, "parking_capacity": 50,
        }
        assert "parking" not in trailheads[1]

    def test_parking_fallback(self, record):
        """Test the nearest parking lot stands in when no trailhead is tagged."""
        client = MagicMock()
        client.find_trailheads.return_value = []
        client.find_amenities.return_value = [
            feature("way/20", 35.64, 139.26, amenity="parking"),
            feature("node/21", 35.63, 139.25, amenity="toilets"),
        ]

        trailhead, = osm_trailheads(client, record)
        assert trailhead["source"] == "osm_parking"
        assert trailhead["name"] == "高尾山 登山口駐車場"
        assert trailhead["osm_id"] == "way/20"

    def test_nothing_found(self, record):
        """Test no trailhead and no parking gives nothing."""
        client = MagicMock()
        client.find_trailheads.return_value = []
        client.find_amenities.return_value = []
        assert osm_trailheads(client, record) == []

    def test_text_coordinates_skipped(self):
        """Test records without numeric coordinates are not queried."""
        client = MagicMock()
        record = MountainRecord(id="fuji", name="富士山", lat="35.36", lng="138.72")
        assert osm_trailheads(client, record) == []
        client.find_trailheads.assert_not_called()
