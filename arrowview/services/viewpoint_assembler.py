import logging
from typing import Callable, Optional, Protocol
from urllib.parse import urlencode

from arrowview.config import settings
from arrowview.models.schemas import Bearing, DirectedSegment, GeoPoint, ViewpointRequest
from arrowview.utils.geo_utils import bearing
from arrowview.utils.image_utils import normalize_capture

logger = logging.getLogger(__name__)

CaptureFn = Callable[[], Optional[bytes]]


class Geocoder(Protocol):
    def reverse_geocode(self, point: GeoPoint) -> str: ...


def street_view_url(point: GeoPoint, heading: Bearing, api_key: str = None) -> str:
    """Static Street View image URL for the real panorama nearest to the viewpoint"""
    if api_key is None:
        api_key = settings.GOOGLE_MAPS_API_KEY
    params = {
        "size": settings.STREET_VIEW_SIZE,
        "location": f"{point.lat},{point.lng}",
        "heading": f"{heading.degrees:.1f}",
    }
    if api_key:
        params["key"] = api_key
    return f"{settings.STREET_VIEW_URL}?{urlencode(params, safe=',')}"


class ViewpointAssembler:
    def __init__(self, geocoder: Optional[Geocoder] = None):
        self.geocoder = geocoder

    def assemble(self, segment: DirectedSegment, capture_fn: Optional[CaptureFn] = None) -> ViewpointRequest:
        heading = bearing(segment.start, segment.end)
        return ViewpointRequest(
            segment=segment,
            bearing=heading,
            location_label=self._location_label(segment.end),
            street_view_url=street_view_url(segment.end, heading),
            captured_surface_image=self._capture(capture_fn),
        )

    def _location_label(self, point: GeoPoint) -> str:
        if self.geocoder is not None:
            try:
                address = self.geocoder.reverse_geocode(point)
                if address:
                    return address
            except Exception as e:
                logger.warning(f"Geocoding unavailable for ({point.lat:.6f}, {point.lng:.6f}): {e}")
        return point.label()

    def _capture(self, capture_fn: Optional[CaptureFn]) -> Optional[bytes]:
        if capture_fn is None:
            return None
        try:
            raw = capture_fn()
        except Exception as e:
            logger.warning(f"Map capture failed, falling back to text-only prompt: {e}")
            return None
        if not raw:
            logger.warning("Map capture returned nothing, falling back to text-only prompt")
            return None

        png = normalize_capture(raw)
        if png is None:
            logger.warning("Map capture is not a usable image, falling back to text-only prompt")
        return png
