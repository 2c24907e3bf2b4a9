#!/usr/bin/env python3
"""
OSM Overpass API integration for trailhead enrichment.

Queries OpenStreetMap around a mountain's summit for:
- information=trailhead / highway=trailhead (the trailheads themselves)
- amenity=toilets and amenity=parking near each trailhead

When no trailhead is tagged, the nearest parking lot stands in for one.

Example Overpass QL query:
    [out:json][timeout:60];
    (
      nwr["information"="trailhead"](around:5000,35.625,139.243);
      nwr["highway"="trailhead"](around:5000,35.625,139.243);
    );
    out center tags;

Usage:
    from mountaindb.utils.overpass import OverpassClient, osm_trailheads

    client = OverpassClient()
    trailheads = osm_trailheads(client, record)
"""

import logging
import os
import re
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import requests

from mountaindb.utils.records import MountainRecord, is_numeric

logger = logging.getLogger(__name__)

# Overpass API endpoints (community instances), tried in order
OVERPASS_ENDPOINTS = [
    "https://overpass-api.de/api/interpreter",
    "https://overpass.kumi.systems/api/interpreter",
    "https://maps.mail.ru/osm/tools/overpass/api/interpreter",
]

# Rate limiting (conservative for community instances)
RATE_LIMIT = 1.0  # seconds between requests

EARTH_RADIUS_KM = 6371.0

TRAILHEAD_RADIUS_M = 5000
AMENITY_RADIUS_M = 300
PARKING_FALLBACK_RADIUS_M = 3000

RETRY_STATUS = (429, 502, 503, 504)


def haversine_km(
    lat1: float,
    lon1: float,
    lat2_array: np.ndarray,
    lon2_array: np.ndarray
) -> np.ndarray:
    """Great circle distances from one point to many (vectorized).

    Args:
        lat1: Latitude of reference point in decimal degrees
        lon1: Longitude of reference point in decimal degrees
        lat2_array: Latitudes to calculate distances to
        lon2_array: Longitudes to calculate distances to

    Returns:
        NumPy array of distances in kilometers
    """
    lat1_rad = np.radians(lat1)
    lon1_rad = np.radians(lon1)
    lat2_rad = np.radians(np.asarray(lat2_array, dtype=float))
    lon2_rad = np.radians(np.asarray(lon2_array, dtype=float))

    dlat = lat2_rad - lat1_rad
    dlon = lon2_rad - lon1_rad

    a = np.sin(dlat / 2) ** 2 + np.cos(lat1_rad) * np.cos(lat2_rad) * np.sin(dlon / 2) ** 2
    c = 2 * np.arcsin(np.sqrt(a))

    return EARTH_RADIUS_KM * c


@dataclass
class OSMFeature:
    """OSM feature from Overpass API."""
    osm_id: str  # e.g., "node/123456" or "way/789012"
    osm_type: str  # 'node', 'way', 'relation'
    lat: float
    lon: float
    name: Optional[str]
    tags: Dict[str, Any]


def endpoints_from_env() -> List[str]:
    raw = os.getenv("OVERPASS_URLS", "")
    urls = [u.strip() for u in raw.split(",") if u.strip()]
    return urls or list(OVERPASS_ENDPOINTS)


class OverpassClient:
    """
    Client for OSM Overpass API.

    Handles:
    - Endpoint rotation across community mirrors
    - Rate limiting
    - Retries with linear backoff on timeouts and 429/5xx responses
    - Result parsing
    """

    def __init__(
        self,
        endpoints: Optional[Sequence[str]] = None,
        timeout: int = 60,
        rate_limit: float = RATE_LIMIT,
        max_retries: int = 3,
        backoff: float = 2.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize Overpass client.

        Args:
            endpoints: Overpass API endpoints (OVERPASS_URLS or defaults if None)
            timeout: Query timeout in seconds
            rate_limit: Minimum seconds between requests
            max_retries: Passes over the endpoint list before giving up
            backoff: Seconds added to the wait after each failed pass
            session: requests.Session to reuse (mainly for tests)
        """
        self.endpoints = list(endpoints or endpoints_from_env())
        self.timeout = timeout
        self.rate_limit = rate_limit
        self.max_retries = max_retries
        self.backoff = backoff
        self.session = session or requests.Session()
        self._last_request = 0.0

    def _rate_limit_wait(self):
        """Wait to respect rate limits."""
        elapsed = time.time() - self._last_request
        if elapsed < self.rate_limit:
            time.sleep(self.rate_limit - elapsed)
        self._last_request = time.time()

    def query(self, overpass_ql: str) -> List[OSMFeature]:
        """
        Execute Overpass QL query.

        Args:
            overpass_ql: Overpass QL query string

        Returns:
            List of OSMFeature objects (empty if every endpoint failed)
        """
        for attempt in range(self.max_retries):
            for endpoint in self.endpoints:
                self._rate_limit_wait()
                try:
                    response = self.session.post(
                        endpoint,
                        data={'data': overpass_ql},
                        timeout=self.timeout
                    )
                    if response.status_code in RETRY_STATUS:
                        logger.warning(f"Overpass {endpoint} returned {response.status_code}")
                        continue
                    response.raise_for_status()
                    return self._parse_elements(response.json().get('elements', []))

                except requests.exceptions.Timeout:
                    logger.warning(f"Overpass query timeout ({self.timeout}s) at {endpoint}")
                except requests.exceptions.RequestException as e:
                    logger.warning(f"Overpass query failed at {endpoint}: {e}")
                except ValueError as e:
                    logger.warning(f"Overpass returned invalid JSON at {endpoint}: {e}")

            wait = self.backoff * (attempt + 1)
            if attempt + 1 < self.max_retries:
                logger.info(f"All Overpass endpoints failed, retrying in {wait:.0f}s")
                time.sleep(wait)

        logger.error("Overpass query failed on all endpoints")
        return []

    def _parse_elements(self, elements: List[Dict]) -> List[OSMFeature]:
        """
        Parse Overpass API response elements.

        Args:
            elements: List of elements from Overpass response

        Returns:
            List of OSMFeature objects
        """
        features = []

        for elem in elements:
            osm_type = elem.get('type')
            osm_id = elem.get('id')

            if not osm_type or not osm_id:
                continue

            lat = elem.get('lat')
            lon = elem.get('lon')

            # For ways/relations, use center coordinates
            if lat is None or lon is None:
                center = elem.get('center', {})
                lat = center.get('lat')
                lon = center.get('lon')

            if lat is None or lon is None:
                continue

            tags = elem.get('tags', {})
            features.append(OSMFeature(
                osm_id=f"{osm_type}/{osm_id}",
                osm_type=osm_type,
                lat=lat,
                lon=lon,
                name=tags.get('name'),
                tags=tags
            ))

        return features

    def _around_query(self, selectors: Sequence[str], lat: float, lng: float, radius_m: int) -> str:
        around = f'(around:{int(radius_m)},{lat},{lng})'
        parts = [f'[out:json][timeout:{self.timeout}];', '(']
        parts.extend(f'nwr{selector}{around};' for selector in selectors)
        parts.extend([');', 'out center tags;'])
        return '\n'.join(parts)

    def find_trailheads(self, lat: float, lng: float, radius_m: int = TRAILHEAD_RADIUS_M) -> List[OSMFeature]:
        query = self._around_query(
            ['["information"="trailhead"]', '["highway"="trailhead"]'],
            lat, lng, radius_m,
        )
        logger.debug(f"Overpass query:\n{query}")
        return self.query(query)

    def find_amenities(self, lat: float, lng: float, radius_m: int = AMENITY_RADIUS_M) -> List[OSMFeature]:
        query = self._around_query(
            ['["amenity"="toilets"]', '["amenity"="parking"]'],
            lat, lng, radius_m,
        )
        return self.query(query)


def parking_capacity(tags: Dict[str, Any]) -> Optional[int]:
    """Parse the OSM capacity tag ("30", "approx. 20", "10-15" -> 10)."""
    match = re.search(r'\d+', str(tags.get('capacity') or ''))
    return int(match.group()) if match else None


def _nearest(features: List[OSMFeature], lat: float, lng: float) -> Optional[OSMFeature]:
    if not features:
        return None
    distances = haversine_km(
        lat, lng,
        np.array([f.lat for f in features]),
        np.array([f.lon for f in features]),
    )
    return features[int(np.argmin(distances))]


def _describe(feature: OSMFeature, client: OverpassClient) -> Dict[str, Any]:
    trailhead = {
        "name": feature.name or "",
        "lat": float(feature.lat),
        "lng": float(feature.lon),
        "source": "osm",
        "osm_id": feature.osm_id,
    }

    amenities = client.find_amenities(feature.lat, feature.lon)
    toilets = [a for a in amenities if a.tags.get('amenity') == 'toilets']
    parkings = [a for a in amenities if a.tags.get('amenity') == 'parking']
    if toilets:
        trailhead["toilet"] = True
    parking = _nearest(parkings, feature.lat, feature.lon)
    if parking is not None:
        trailhead["parking"] = True
        capacity = parking_capacity(parking.tags)
        if capacity is not None:
            trailhead["parking_capacity"] = capacity
    return trailhead


def osm_trailheads(
    client: OverpassClient,
    record: MountainRecord,
    radius_m: int = TRAILHEAD_RADIUS_M,
) -> List[Dict[str, Any]]:
    """Trailhead sub-records for a mountain, ready for merge_attachments.

    Returns an empty list for mountains without numeric coordinates.
    """
    if not (is_numeric(record.lat) and is_numeric(record.lng)):
        logger.debug(f"{record.id} ({record.name}): no numeric coordinates, skipped")
        return []

    features = client.find_trailheads(record.lat, record.lng, radius_m)
    if features:
        distances = haversine_km(
            record.lat, record.lng,
            np.array([f.lat for f in features]),
            np.array([f.lon for f in features]),
        )
        ordered = [features[i] for i in np.argsort(distances)]
        return [_describe(f, client) for f in ordered]

    parkings = [
        f for f in client.find_amenities(record.lat, record.lng, PARKING_FALLBACK_RADIUS_M)
        if f.tags.get('amenity') == 'parking'
    ]
    parking = _nearest(parkings, record.lat, record.lng)
    if parking is None:
        return []

    logger.info(f"{record.name}: no tagged trailhead, using nearest parking {parking.osm_id}")
    trailhead = {
        "name": parking.name or f"{record.name} 登山口駐車場",
        "lat": float(parking.lat),
        "lng": float(parking.lon),
        "source": "osm_parking",
        "osm_id": parking.osm_id,
        "parking": True,
    }
    capacity = parking_capacity(parking.tags)
    if capacity is not None:
        trailhead["parking_capacity"] = capacity
    return [trailhead]
