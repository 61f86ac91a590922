import logging

import httpx

from domain.geo import format_coordinates, is_coordinates


logger = logging.getLogger(__name__)


PHOTON_URL = "https://photon.komoot.io"


class Geocoder:
    """Forward and reverse geocoding against Photon (komoot)."""

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        *,
        base_url: str = PHOTON_URL,
    ) -> None:
        self.http_client = (
            httpx.AsyncClient(base_url=base_url, timeout=20)
            if http_client is None
            else http_client
        )

    async def resolve(self, location: str) -> str:
        """A `"lat, lon"` string for a place, or `""` when it can't be found."""
        location = location.strip()
        if not location:
            return ""
        if is_coordinates(location):
            return location

        try:
            resp = await self.http_client.get(
                "/api/", params={"q": location, "limit": 1}
            )
            resp.raise_for_status()
            features = resp.json().get("features") or []
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Geocoding %s failed: %r", location, e)
            return ""

        if not features:
            logger.info("No match for %s", location)
            return ""
        # GeoJSON order is [lon, lat].
        lon, lat = features[0]["geometry"]["coordinates"][:2]
        return f"{lat}, {lon}"

    async def reverse(self, lat: float, lon: float) -> str:
        """A readable label for a point, falling back to the coordinates."""
        coords = format_coordinates(lat, lon)
        try:
            resp = await self.http_client.get(
                "/reverse", params={"lat": lat, "lon": lon}
            )
            resp.raise_for_status()
            features = resp.json().get("features") or []
        except (httpx.HTTPError, ValueError) as e:
            logger.info("Reverse geocoding failed, using coordinates: %r", e)
            return coords

        if not features:
            return coords

        props = features[0].get("properties", {})
        parts = [props[k] for k in ("name", "street") if props.get(k)]
        place = props.get("city") or props.get("town") or props.get("village")
        if place:
            parts.append(place)
        if props.get("state"):
            parts.append(props["state"])
        return ", ".join(parts) if parts else coords

    async def close(self) -> None:
        await self.http_client.aclose()
