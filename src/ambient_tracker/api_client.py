"""
Ambient Weather API client.
"""
import logging
import threading
import time
from typing import Dict, List, Optional

import requests

from .models import WeatherSnapshot
from .utils import (
    MAX_RETRIES,
    RETRY_BASE_DELAY,
    RetryStatus,
    retry_with_backoff,
    sanitize_for_logging,
)


logger = logging.getLogger(__name__)

# Sent with every device data request
DEFAULT_END_DATE = 1723481785


class AmbientWeatherAPIError(Exception):
    """Base exception for Ambient Weather API errors."""
    pass


class RateLimitError(AmbientWeatherAPIError):
    """Raised when API rate limit is exceeded."""
    pass


class AuthenticationError(AmbientWeatherAPIError):
    """Raised when API authentication fails."""
    pass


class AmbientWeatherClient:
    """
    Client for Ambient Weather API.

    Handles authentication, rate limiting, and data retrieval. Every failed
    request (non-2xx status or transport error) is retried with linear
    backoff; the client never raises out of get_device_data().
    API Documentation: https://ambientweather.docs.apiary.io/
    """

    BASE_URL = "https://api.ambientweather.net/v1"

    def __init__(
        self,
        api_key: str,
        application_key: str,
        end_date: Optional[int] = DEFAULT_END_DATE,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_BASE_DELAY,
        min_request_interval: float = 5.0,
        stop_event: Optional[threading.Event] = None,
    ):
        """
        Initialize Ambient Weather API client.

        Args:
            api_key: Your Ambient Weather API key
            application_key: Your Ambient Weather Application key
            end_date: end_date query parameter (None to omit)
            max_retries: Retries after the initial attempt
            retry_delay: Backoff unit in seconds
            min_request_interval: Minimum seconds between requests
            stop_event: Event that interrupts a retry backoff when set
        """
        self.api_key = api_key
        self.application_key = application_key
        self.end_date = end_date
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.min_request_interval = min_request_interval
        self.stop_event = stop_event if stop_event is not None else threading.Event()
        self.session = requests.Session()
        self._last_request_time = 0.0

        # Connect timeout only; the read is unbounded
        self.timeout = (20, None)

        logger.info("Initialized Ambient Weather API client")

    def get_device_data(self, mac_address: str) -> Optional[List[Dict]]:
        """
        Get the most recent record for a specific device.

        Args:
            mac_address: Device MAC address

        Returns:
            List of data dictionaries on success, an empty list once retries
            are exhausted, or None if a retry wait was interrupted
        """
        logger.info(f"Fetching data for device {mac_address}")

        endpoint = f"/devices/{mac_address}"
        params = {"limit": 1}
        if self.end_date is not None:
            params["end_date"] = self.end_date

        result = retry_with_backoff(
            lambda: self._make_request(endpoint, params),
            description=f"Request to {endpoint}",
            max_retries=self.max_retries,
            base_delay=self.retry_delay,
            retry_on=(AmbientWeatherAPIError,),
            stop_event=self.stop_event,
        )

        if result.status is RetryStatus.INTERRUPTED:
            return None
        if result.status is RetryStatus.EXHAUSTED:
            logger.error(f"Request failed after {result.attempts} attempts")
            return []

        data = result.value if isinstance(result.value, list) else []
        logger.info(f"Retrieved {len(data)} record(s) for device {mac_address}")
        return data

    def get_latest_snapshot(self, mac_address: str) -> Optional[WeatherSnapshot]:
        """
        Get the latest snapshot for a device.

        Args:
            mac_address: Device MAC address

        Returns:
            WeatherSnapshot instance or None if no data
        """
        data = self.get_device_data(mac_address)

        if not data:
            logger.warning(f"No data available for device {mac_address}")
            return None

        return WeatherSnapshot.from_api_response(data)

    def _make_request(self, endpoint: str, params: Optional[Dict] = None):
        """
        Make a single authenticated request to the Ambient Weather API.

        Args:
            endpoint: API endpoint (e.g., '/devices/AA:BB:CC:DD:EE:FF')
            params: Query parameters (optional)

        Returns:
            Response JSON data

        Raises:
            AmbientWeatherAPIError: If request fails
            RateLimitError: If rate limit is exceeded
            AuthenticationError: If authentication fails
        """
        self._enforce_rate_limit()

        url = f"{self.BASE_URL}{endpoint}"
        params = dict(params or {})

        # Add authentication parameters
        params["apiKey"] = self.api_key
        params["applicationKey"] = self.application_key

        logger.info("Executing new API call request...")

        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.Timeout:
            raise AmbientWeatherAPIError(f"Request timed out after {self.timeout[0]}s")
        except requests.ConnectionError as e:
            raise AmbientWeatherAPIError(f"Connection error: {e}")
        except requests.RequestException as e:
            raise AmbientWeatherAPIError(f"Request failed: {e}")

        if 200 <= response.status_code < 300:
            logger.info("Request successful")
            try:
                data = response.json()
            except ValueError as e:
                raise AmbientWeatherAPIError(f"Invalid JSON in response: {e}")
            logger.debug(f"Station data: {sanitize_for_logging(response.text)}")
            return data
        elif response.status_code == 401:
            raise AuthenticationError(
                "Authentication failed. Check your API key and application key."
            )
        elif response.status_code == 429:
            raise RateLimitError("API rate limit exceeded. Please wait before retrying.")
        else:
            raise AmbientWeatherAPIError(
                f"API request failed with status {response.status_code}"
            )

    def _enforce_rate_limit(self) -> None:
        """
        Enforce the minimum interval between requests.

        Waits on stop_event if necessary so that requests are at least
        min_request_interval seconds apart; stop() cuts the wait short.
        """
        elapsed = time.time() - self._last_request_time

        if elapsed < self.min_request_interval:
            sleep_time = self.min_request_interval - elapsed
            logger.debug(f"Rate limiting: sleeping for {sleep_time:.3f}s")
            self.stop_event.wait(sleep_time)

        self._last_request_time = time.time()

    def __repr__(self) -> str:
        """String representation for debugging."""
        return "AmbientWeatherClient(api_key=***REDACTED***)"
