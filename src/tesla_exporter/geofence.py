"""Geofence matching.

Regions are checked in configuration order and the first region whose
center is strictly closer than its radius wins, so overlapping regions
resolve deterministically to the one listed first.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from tesla_exporter._constants import EARTH_RADIUS_METERS, LOCATION_OTHER
from tesla_exporter.models.geofence import GeofenceRegion


def haversine_distance_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters between two coordinates."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def contains(region: GeofenceRegion, latitude: float, longitude: float) -> bool:
    distance = haversine_distance_m(region.latitude, region.longitude, latitude, longitude)
    return distance < region.radius_meters


def match_geofence(
    latitude: float,
    longitude: float,
    regions: Sequence[GeofenceRegion],
) -> GeofenceRegion | None:
    """Return the first region containing the point, ``None`` if none does."""
    for region in regions:
        if contains(region, latitude, longitude):
            return region
    return None


def location_for(latitude: float, longitude: float, regions: Sequence[GeofenceRegion]) -> str:
    """Name of the matching region, or ``"Other"``."""
    region = match_geofence(latitude, longitude, regions)
    return region.name if region is not None else LOCATION_OTHER
