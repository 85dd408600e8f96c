import logging

import requests

from arrowview.config import settings
from arrowview.models.schemas import GeoPoint

logger = logging.getLogger(__name__)


class GeocodingError(Exception):
    pass


class NominatimGeocoder:
    """Reverse geocoding against OpenStreetMap's Nominatim service."""

    def __init__(self, base_url: str = None, timeout: float = None, session: requests.Session = None):
        self.base_url = (base_url or settings.NOMINATIM_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.GEOCODING_TIMEOUT
        self.session = session or requests.Session()
        self.headers = {"User-Agent": settings.NOMINATIM_USER_AGENT}

    def reverse_geocode(self, point: GeoPoint) -> str:
        """Return the formatted address for a point, or raise GeocodingError"""
        params = {
            "format": "json",
            "lat": point.lat,
            "lon": point.lng,
            "zoom": 18,
            "addressdetails": 1,
        }
        try:
            resp = self.session.get(f"{self.base_url}/reverse", params=params, headers=self.headers, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise GeocodingError(f"Reverse geocoding request failed: {e}") from e

        if not isinstance(data, dict) or data.get("error"):
            raise GeocodingError(f"No address found: {data.get('error') if isinstance(data, dict) else data}")

        address = data.get("display_name")
        if not address:
            raise GeocodingError("Reverse geocoding response has no display_name")

        logger.info(f"Reverse geocoded ({point.lat:.6f}, {point.lng:.6f}) -> {address}")
        return address
