"""
Tests for API client module.
"""
import threading
from unittest.mock import Mock, call, patch

import pytest
import requests

from ambient_tracker.api_client import AmbientWeatherClient, DEFAULT_END_DATE
from ambient_tracker.models import WeatherSnapshot


def make_response(status_code, payload=None):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = payload
    response.text = str(payload)
    return response


class TestAmbientWeatherClient:
    """Tests for AmbientWeatherClient class."""

    @pytest.fixture
    def client(self):
        """Create a test client with no waiting between attempts."""
        return AmbientWeatherClient(
            api_key="test_api_key",
            application_key="test_app_key",
            retry_delay=0,
            min_request_interval=0,
        )

    @patch('ambient_tracker.api_client.requests.Session.get')
    def test_get_device_data_success(self, mock_get, client):
        """Test successful device data retrieval."""
        mock_get.return_value = make_response(200, [
            {"dateutc": 1640000000000, "tempf": 72.5, "humidity": 50}
        ])

        data = client.get_device_data("AA:BB:CC:DD:EE:FF")

        assert len(data) == 1
        assert data[0]["tempf"] == 72.5
        assert mock_get.call_count == 1

    @patch('ambient_tracker.api_client.requests.Session.get')
    def test_request_parameters(self, mock_get, client):
        """Test URL, query parameters and timeout of the request."""
        mock_get.return_value = make_response(200, [])

        client.get_device_data("AA:BB:CC:DD:EE:FF")

        args, kwargs = mock_get.call_args
        assert args[0] == "https://api.ambientweather.net/v1/devices/AA:BB:CC:DD:EE:FF"
        assert kwargs["params"] == {
            "limit": 1,
            "end_date": DEFAULT_END_DATE,
            "apiKey": "test_api_key",
            "applicationKey": "test_app_key",
        }
        assert kwargs["timeout"] == (20, None)

    @patch('ambient_tracker.api_client.requests.Session.get')
    def test_success_on_fourth_attempt(self, mock_get, client):
        """Three failures then a success make exactly four attempts."""
        mock_get.side_effect = [
            make_response(500),
            make_response(503),
            make_response(502),
            make_response(200, [{"tempf": 60.1}]),
        ]

        data = client.get_device_data("AA:BB:CC:DD:EE:FF")

        assert data == [{"tempf": 60.1}]
        assert mock_get.call_count == 4

    @patch('ambient_tracker.api_client.requests.Session.get')
    def test_exhausted_retries_return_empty(self, mock_get, client):
        """Four failed attempts give an empty result, not an exception."""
        mock_get.return_value = make_response(500)

        data = client.get_device_data("AA:BB:CC:DD:EE:FF")

        assert data == []
        assert mock_get.call_count == 4

    @patch('ambient_tracker.api_client.requests.Session.get')
    def test_transport_errors_are_retried(self, mock_get, client):
        """Connection errors and timeouts follow the same retry policy."""
        mock_get.side_effect = [
            requests.ConnectionError("connection refused"),
            requests.Timeout("timed out"),
            make_response(200, [{"humidity": 40}]),
        ]

        data = client.get_device_data("AA:BB:CC:DD:EE:FF")

        assert data == [{"humidity": 40}]
        assert mock_get.call_count == 3

    @patch('ambient_tracker.api_client.requests.Session.get')
    def test_auth_and_rate_limit_errors_are_retried(self, mock_get, client):
        """401 and 429 are retried like any other non-2xx status."""
        mock_get.side_effect = [
            make_response(401),
            make_response(429),
            make_response(200, [{"tempf": 1.0}]),
        ]

        assert client.get_device_data("AA:BB:CC:DD:EE:FF") == [{"tempf": 1.0}]

    @patch('ambient_tracker.api_client.requests.Session.get')
    def test_invalid_json_is_retried(self, mock_get, client):
        bad = make_response(200)
        bad.json.side_effect = ValueError("Expecting value")
        mock_get.side_effect = [bad, make_response(200, [{"tempf": 2.0}])]

        assert client.get_device_data("AA:BB:CC:DD:EE:FF") == [{"tempf": 2.0}]

    @patch('ambient_tracker.api_client.requests.Session.get')
    def test_linear_backoff_delays(self, mock_get):
        """Waits are 10s, 20s and 30s after attempts 1, 2 and 3."""
        stop_event = Mock()
        stop_event.wait.return_value = False
        client = AmbientWeatherClient(
            api_key="k", application_key="a",
            min_request_interval=0, stop_event=stop_event,
        )
        mock_get.return_value = make_response(500)

        client.get_device_data("AA:BB:CC:DD:EE:FF")

        assert stop_event.wait.call_args_list == [call(10.0), call(20.0), call(30.0)]

    @patch('ambient_tracker.api_client.requests.Session.get')
    def test_interrupted_retry_returns_none(self, mock_get):
        """An interrupted backoff abandons the chain."""
        stop_event = threading.Event()
        stop_event.set()
        client = AmbientWeatherClient(
            api_key="k", application_key="a",
            retry_delay=0, min_request_interval=0, stop_event=stop_event,
        )
        mock_get.return_value = make_response(500)

        assert client.get_device_data("AA:BB:CC:DD:EE:FF") is None
        assert mock_get.call_count == 1

    @patch('ambient_tracker.api_client.requests.Session.get')
    def test_get_latest_snapshot(self, mock_get, client):
        """Test getting latest snapshot uses the first record only."""
        mock_get.return_value = make_response(200, [
            {"dateutc": 1640000000000, "tempf": 72.5, "humidity": 50},
            {"dateutc": 1639999700000, "tempf": 71.0, "humidity": 52},
        ])

        snapshot = client.get_latest_snapshot("AA:BB:CC:DD:EE:FF")

        assert isinstance(snapshot, WeatherSnapshot)
        assert snapshot.get("tempf") == 72.5
        assert snapshot.get("humidity") == 50

    @patch('ambient_tracker.api_client.requests.Session.get')
    def test_get_latest_snapshot_no_data(self, mock_get, client):
        mock_get.return_value = make_response(500)

        assert client.get_latest_snapshot("AA:BB:CC:DD:EE:FF") is None

    def test_rate_limiting(self):
        """Test that rate limiting enforces the minimum interval."""
        import time

        client = AmbientWeatherClient(
            api_key="k", application_key="a", min_request_interval=1.0
        )
        client._last_request_time = time.time()

        start = time.time()
        client._enforce_rate_limit()
        elapsed = time.time() - start

        # Should have slept for approximately 1 second
        assert elapsed >= 0.9  # Allow some tolerance

    def test_repr_redacts_keys(self, client):
        assert "test_api_key" not in repr(client)

    def test_rate_limit_wait_cut_short_by_stop(self):
        """A set stop event ends the rate-limit wait at once."""
        import time

        stop_event = threading.Event()
        stop_event.set()
        client = AmbientWeatherClient(
            api_key="k", application_key="a",
            min_request_interval=30.0, stop_event=stop_event,
        )
        client._last_request_time = time.time()

        start = time.time()
        client._enforce_rate_limit()

        assert time.time() - start < 1.0
