"""
Ambient Tracker - Ambient Weather to Google Sheets logger.

Polls an Ambient Weather station every five minutes and appends the
top-of-hour reading to a Google Sheet with one tab per year.
"""

__version__ = "0.1.0"

from .api_client import AmbientWeatherClient, AmbientWeatherAPIError, RateLimitError
from .config import Config, ConfigError
from .models import SensorDescriptor, SensorMap, SensorMappingError, WeatherSnapshot
from .scheduler import WeatherScheduler
from .sheet_writer import SheetWriter
from .sheets_backend import GoogleSheetsBackend, SheetsError

__all__ = [
    "AmbientWeatherClient",
    "AmbientWeatherAPIError",
    "RateLimitError",
    "Config",
    "ConfigError",
    "SensorDescriptor",
    "SensorMap",
    "SensorMappingError",
    "WeatherSnapshot",
    "WeatherScheduler",
    "SheetWriter",
    "GoogleSheetsBackend",
    "SheetsError",
]
