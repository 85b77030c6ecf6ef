"""
Geocoding gateway (Nominatim) with a mocked requests session.

Covers:
  - Match → {"lat", "lng"} floats, request params and User-Agent
  - No match → None; blank address never calls upstream
  - Transport / HTTP / malformed-payload failures → GeocodingError
  - Shared rate budget: second call waits, or fails past the max wait
"""

from unittest.mock import MagicMock

import pytest
import requests

from markermap.integrations.geocoding_gateway import GeocodingError, GeocodingGateway


def _response(payload, status=200):
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = payload
    if status >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status} Server Error")
    else:
        resp.raise_for_status.return_value = None
    return resp


def _gateway(*responses, sleep=None):
    session = MagicMock()
    session.get.side_effect = list(responses)
    return GeocodingGateway(session=session, sleep=sleep or MagicMock()), session


class TestGeocodeAddress:
    def test_match(self, app):
        gw, session = _gateway(_response([{"lat": "51.5034", "lon": "-0.1276"}]))
        assert gw.geocode_address("10 Downing Street, London") == {"lat": 51.5034, "lng": -0.1276}

        _, kwargs = session.get.call_args
        assert kwargs["params"]["q"] == "10 Downing Street, London"
        assert kwargs["params"]["format"] == "json"
        assert kwargs["params"]["limit"] == 1
        assert kwargs["headers"]["User-Agent"] == (
            "Community Map Geocoder/1.0.0 (http://testserver/contact)"
        )
        assert kwargs["timeout"] == app.config["GEOCODER_TIMEOUT"]

    def test_no_match(self):
        gw, _ = _gateway(_response([]))
        assert gw.geocode_address("nowhere at all") is None

    def test_blank_address_skips_upstream(self):
        gw, session = _gateway()
        assert gw.geocode_address("   ") is None
        session.get.assert_not_called()

    def test_transport_error(self):
        gw, _ = _gateway(requests.ConnectionError("connection refused"))
        with pytest.raises(GeocodingError, match="Geocoding failed: connection refused"):
            gw.geocode_address("Main St")

    def test_http_error(self):
        gw, _ = _gateway(_response(None, status=503))
        with pytest.raises(GeocodingError, match="503"):
            gw.geocode_address("Main St")

    def test_malformed_payload(self):
        gw, _ = _gateway(_response([{"display_name": "no coords"}]))
        with pytest.raises(GeocodingError):
            gw.geocode_address("Main St")


class TestRateLimit:
    def test_second_call_rejected_without_wait_budget(self):
        gw, session = _gateway(_response([{"lat": "1", "lon": "2"}]),
                               _response([{"lat": "3", "lon": "4"}]))
        assert gw.geocode_address("first") == {"lat": 1.0, "lng": 2.0}
        with pytest.raises(GeocodingError, match="rate limit"):
            gw.geocode_address("second")
        assert session.get.call_count == 1

    def test_second_call_waits_for_window(self, app):
        waits = []

        def fake_sleep(seconds):
            waits.append(seconds)
            gw._limiter.storage.reset()

        gw, session = _gateway(_response([{"lat": "1", "lon": "2"}]),
                               _response([{"lat": "3", "lon": "4"}]), sleep=fake_sleep)
        app.config["GEOCODER_MAX_WAIT_SECONDS"] = 5
        try:
            gw.geocode_address("first")
            assert gw.geocode_address("second") == {"lat": 3.0, "lng": 4.0}
        finally:
            app.config["GEOCODER_MAX_WAIT_SECONDS"] = 0

        assert len(waits) == 1
        assert 0 < waits[0] <= app.config["GEOCODER_MIN_INTERVAL_SECONDS"]
        assert session.get.call_count == 2

    def test_separate_gateways_have_separate_memory_budgets(self):
        first, _ = _gateway(_response([{"lat": "1", "lon": "2"}]))
        second, _ = _gateway(_response([{"lat": "3", "lon": "4"}]))
        assert first.geocode_address("a") is not None
        assert second.geocode_address("b") is not None
