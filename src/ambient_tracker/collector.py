"""
Ambient Tracker service entry point.

Polls the Ambient Weather API every five minutes and appends the top-of-hour
reading to a Google Sheet.
"""
import functools
import logging
import os
import signal
import sys
import threading

from .api_client import AmbientWeatherClient, DEFAULT_END_DATE
from .config import Config, ConfigError
from .models import SensorMap, SensorMappingError
from .scheduler import WeatherScheduler
from .sheet_writer import SheetWriter
from .sheets_backend import GoogleSheetsBackend
from .utils import setup_logging


logger = logging.getLogger(__name__)


def build_scheduler(config: Config) -> WeatherScheduler:
    """
    Wire the client, writer and scheduler from configuration.

    Args:
        config: Configuration instance

    Returns:
        WeatherScheduler ready to run
    """
    stop_event = threading.Event()
    ambient = config.get_ambient_weather_config()
    sheets = config.get_google_sheets_config()

    logger.info("Creating new API HTTP access...")
    client = AmbientWeatherClient(
        api_key=ambient.get("api_key"),
        application_key=ambient.get("application_key"),
        end_date=ambient.get("end_date", DEFAULT_END_DATE),
        stop_event=stop_event,
    )

    sensors = None
    try:
        sensors = SensorMap.from_file(sheets["sensor_file"])
    except SensorMappingError as e:
        logger.error(f"{e}; retrying on the first hourly write")

    authenticate = functools.partial(
        GoogleSheetsBackend.connect,
        sheets.get("spreadsheet_id"),
        sheets.get("credentials_file"),
        sheets.get("token_file"),
    )
    writer = SheetWriter(
        authenticate,
        sensors=sensors,
        sensor_file=sheets["sensor_file"],
        stop_event=stop_event,
    )

    return WeatherScheduler(
        client,
        writer,
        mac_address=ambient.get("mac_address"),
        stop_event=stop_event,
    )


def setup_signal_handlers(scheduler: WeatherScheduler):
    """
    Setup signal handlers for graceful shutdown.

    Args:
        scheduler: WeatherScheduler instance
    """
    def signal_handler(signum, frame):
        """Handle shutdown signals."""
        signal_name = signal.Signals(signum).name
        logger.info(f"Received {signal_name} signal")
        scheduler.stop()

    # Handle SIGINT (Ctrl+C) and SIGTERM (Docker stop)
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    logger.debug("Signal handlers registered")


def main():
    """Main entry point for the collector service."""
    config_path = os.getenv("AMBIENT_TRACKER_CONFIG", "config.yaml")

    try:
        config = Config.load(config_path)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    log_config = config.get_logging_config()
    try:
        setup_logging(
            log_file=log_config["file"],
            log_level=log_config["level"],
            log_format=log_config["format"],
        )
    except OSError as e:
        print(f"Unable to set up logging at {log_config['file']}: {e}", file=sys.stderr)
        return 1

    logger.info("=" * 60)
    logger.info("Ambient Tracker - Weather Data Collection Service")
    logger.info("=" * 60)
    logger.info(f"Configuration: {config.to_dict(sanitize=True)}")

    try:
        scheduler = build_scheduler(config)
    except Exception as e:
        logger.exception(f"Failed to initialize collector: {e}")
        return 1

    setup_signal_handlers(scheduler)

    logger.info("Starting scheduled API calls...")
    try:
        scheduler.run()
        return 0
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
