import math

from arrowview.models.schemas import OCTANTS, Bearing, CompassOctant, GeoPoint

EARTH_RADIUS_M = 6371000


def initial_bearing_degrees(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    Initial great-circle bearing from point 1 to point 2, clockwise from north.

    Returns a value in [0, 360). NaN inputs propagate as NaN, and so does a
    zero-length input (identical points have no direction).
    """
    if lat1 == lat2 and lng1 == lng2:
        return math.nan

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_lambda = math.radians(lng2 - lng1)

    x = math.sin(delta_lambda) * math.cos(phi2)
    y = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(delta_lambda)

    return (math.degrees(math.atan2(x, y)) + 360) % 360


def bearing(start: GeoPoint, end: GeoPoint) -> Bearing:
    """Bearing of the arrow ``start -> end``"""
    return Bearing(degrees=initial_bearing_degrees(start.lat, start.lng, end.lat, end.lng))


def octant(degrees: float) -> CompassOctant:
    """
    Map a bearing to one of 8 compass sectors of 45 degrees centred on N, NE, E, ...

    Uses the built-in round(), i.e. round-half-to-even on exact sector
    boundaries: 22.5 -> N, 67.5 -> E, 112.5 -> E, 157.5 -> S.
    Raises ValueError for NaN.
    """
    if math.isnan(degrees):
        raise ValueError("Cannot map an undefined bearing to a compass direction")
    index = round((degrees % 360) / 45) % 8
    return OCTANTS[index]


def planar_distance(a: GeoPoint, b: GeoPoint) -> float:
    """Euclidean distance in raw coordinate-degree units"""
    return math.hypot(b.lat - a.lat, b.lng - a.lng)


def haversine_distance(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance in meters"""
    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)
    dlat = lat2 - lat1
    dlng = math.radians(b.lng - a.lng)

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
