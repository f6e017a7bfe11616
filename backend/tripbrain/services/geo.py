from math import asin, cos, radians, sin, sqrt

EARTH_RADIUS_KM = 6371.0

# Straight-line to road distance, and the speed used for rough drive times
ROAD_FACTOR = 1.3
FALLBACK_SPEED_KMH = 80.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    # Great-circle distance. Safe fallback only, not a road distance.
    la1, lo1 = radians(lat1), radians(lon1)
    la2, lo2 = radians(lat2), radians(lon2)

    dlat = la2 - la1
    dlon = lo2 - lo1

    h = sin(dlat / 2) ** 2 + cos(la1) * cos(la2) * sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_KM * asin(sqrt(h))


def estimate_road_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    return haversine_km(lat1, lon1, lat2, lon2) * ROAD_FACTOR


def distance_to_segment_km(
    lat: float, lng: float,
    a_lat: float, a_lng: float,
    b_lat: float, b_lng: float,
) -> float:
    """
    Distance from a point to the straight line a-b, clamped to its ends.

    Projects onto a flat plane around the point, which is fine at corridor
    scale.
    """
    k = max(cos(radians(lat)), 1e-6)
    ax, ay = (a_lng - lng) * k, a_lat - lat
    bx, by = (b_lng - lng) * k, b_lat - lat
    dx, dy = bx - ax, by - ay

    seg2 = dx * dx + dy * dy
    t = 0.0 if seg2 == 0 else max(0.0, min(1.0, -(ax * dx + ay * dy) / seg2))
    cx, cy = ax + t * dx, ay + t * dy
    return haversine_km(lat, lng, lat + cy, lng + cx / k)
