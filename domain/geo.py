import math
import re


EARTH_RADIUS_KM = 6371
COORDINATES_PATTERN = re.compile(r"^-?\d+(\.\d+)?,\s*-?\d+(\.\d+)?$")


def distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometres (haversine)."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def format_distance(km: float) -> str:
    if km < 1:
        return f"{round(km * 1000)} m"
    return f"{km:.1f} km"


def parse_coordinates(text: str | None) -> tuple[float, float] | None:
    """`"lat, lon"` to a pair. Anything not in that exact shape is `None`."""
    if not text:
        return None
    text = text.strip()
    if not COORDINATES_PATTERN.match(text):
        return None
    lat, lon = text.split(",")
    return float(lat), float(lon.strip())


def is_coordinates(text: str | None) -> bool:
    return parse_coordinates(text) is not None


def format_coordinates(lat: float, lon: float) -> str:
    return f"{lat:.6f}, {lon:.6f}"
