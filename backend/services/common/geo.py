"""
Geodesic helpers for nearby-masjid search
"""
import math
from typing import NamedTuple
from geopy.distance import geodesic

# Mean meridian degree length, good enough for a prefilter box
METERS_PER_DEGREE = 111_320.0


class BoundingBox(NamedTuple):
    south: float
    west: float
    north: float
    east: float

    @property
    def crosses_antimeridian(self) -> bool:
        return self.west < -180.0 or self.east > 180.0


def bounding_box(longitude: float, latitude: float, radius_m: float) -> BoundingBox:
    """Box that fully encloses the circle of ``radius_m`` around the point"""
    lat_delta = radius_m / METERS_PER_DEGREE
    south = max(-90.0, latitude - lat_delta)
    north = min(90.0, latitude + lat_delta)

    # Longitude degrees shrink towards the poles; give up near them
    cos_lat = math.cos(math.radians(max(abs(south), abs(north))))
    if cos_lat < 1e-6:
        return BoundingBox(south, -180.0, north, 180.0)
    lon_delta = radius_m / (METERS_PER_DEGREE * cos_lat)
    if lon_delta >= 180.0:
        return BoundingBox(south, -180.0, north, 180.0)
    return BoundingBox(south, longitude - lon_delta, north, longitude + lon_delta)


def distance_m(lon1: float, lat1: float, lon2: float, lat2: float) -> float:
    """WGS84 geodesic distance in meters (geopy takes (lat, lon) pairs)"""
    return geodesic((lat1, lon1), (lat2, lon2)).meters
