from unittest.mock import MagicMock

import pytest
import requests

from arrowview.config import settings
from arrowview.models.schemas import GeoPoint
from arrowview.services.geocoding_service import GeocodingError, NominatimGeocoder

POINT = GeoPoint(lat=37.7760, lng=-122.4194)


def _geocoder(json_data=None, error=None) -> NominatimGeocoder:
    session = MagicMock()
    session.headers = {}
    if error:
        session.get.side_effect = error
    else:
        response = MagicMock()
        response.json.return_value = json_data
        session.get.return_value = response
    return NominatimGeocoder(base_url="https://nominatim.example/", timeout=2, session=session)


def test_reverse_geocode():
    geocoder = _geocoder({"display_name": "1 Market St, San Francisco, CA", "address": {"road": "Market St"}})

    assert geocoder.reverse_geocode(POINT) == "1 Market St, San Francisco, CA"

    args, kwargs = geocoder.session.get.call_args
    assert args[0] == "https://nominatim.example/reverse"
    assert kwargs["params"]["lat"] == 37.7760
    assert kwargs["params"]["lon"] == -122.4194
    assert kwargs["timeout"] == 2
    assert kwargs["headers"]["User-Agent"] == settings.NOMINATIM_USER_AGENT
    assert geocoder.session.headers == {}


@pytest.mark.parametrize("json_data", [
    {"error": "Unable to geocode"},
    {"address": {}},
    [],
])
def test_reverse_geocode_no_address(json_data):
    with pytest.raises(GeocodingError):
        _geocoder(json_data).reverse_geocode(POINT)


def test_reverse_geocode_network_error():
    with pytest.raises(GeocodingError, match="request failed"):
        _geocoder(error=requests.ConnectionError("offline")).reverse_geocode(POINT)
