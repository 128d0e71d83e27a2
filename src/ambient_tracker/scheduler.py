"""
Fixed-rate polling scheduler.

Fetches a snapshot every five minutes, aligned to the five-minute marks of the
wall clock, and hands the snapshot taken at the top of each hour to the sheet
writer.
"""
import logging
import threading
import time
from datetime import datetime, timedelta
from typing import Callable, Optional

from .api_client import AmbientWeatherClient
from .sheet_writer import SheetWriter


logger = logging.getLogger(__name__)

INTERVAL_MINUTES = 5
INTERVAL_SECONDS = INTERVAL_MINUTES * 60


def wait_minutes(minute: int) -> int:
    """
    Minutes until the next five-minute mark.

    Never zero: on a mark the wait is a full interval.
    """
    wait = (INTERVAL_MINUTES - minute % INTERVAL_MINUTES) % INTERVAL_MINUTES
    return wait if wait else INTERVAL_MINUTES


def next_fire_time(now: datetime, wait: int) -> datetime:
    """now + wait minutes, truncated to the minute."""
    return (now + timedelta(minutes=wait)).replace(second=0, microsecond=0)


def initial_delay(now: datetime) -> float:
    """Seconds from now until the first firing."""
    target = next_fire_time(now, wait_minutes(now.minute))
    return (target - now).total_seconds()


class WeatherScheduler:
    """
    Drives the API client and sheet writer on a single thread.

    Firings are scheduled at a fixed rate from the first aligned mark. A firing
    that overruns delays the next one instead of overlapping it, and a failing
    firing never stops the loop.
    """

    def __init__(
        self,
        client: AmbientWeatherClient,
        writer: SheetWriter,
        mac_address: str,
        clock: Callable[[], datetime] = datetime.now,
        interval: float = INTERVAL_SECONDS,
        stop_event: Optional[threading.Event] = None,
    ):
        """
        Initialize the scheduler.

        Args:
            client: Ambient Weather API client
            writer: Sheet writer for hourly snapshots
            mac_address: Device MAC address to poll
            clock: Source of wall-clock time
            interval: Seconds between firings
            stop_event: Event shared with client and writer; set by stop()
        """
        self.client = client
        self.writer = writer
        self.mac_address = mac_address
        self.clock = clock
        self.interval = interval
        self.stop_event = stop_event if stop_event is not None else threading.Event()
        self.firing_count = 0

    def run_once(self) -> None:
        """Fetch one snapshot and write it if it is the top of the hour."""
        self.firing_count += 1
        try:
            logger.info("Fetching device data...")
            snapshot = self.client.get_latest_snapshot(self.mac_address)

            if self.clock().minute == 0:
                if snapshot is None:
                    logger.warning("No snapshot for the hourly write")
                else:
                    self.writer.write(snapshot)
        except Exception as e:
            logger.exception(f"An error occurred while fetching data or writing to Google Sheets: {e}")

        logger.info(f"Next API call time is {next_fire_time(self.clock(), INTERVAL_MINUTES)}")

    def run(self) -> None:
        """
        Run until stop() is called.

        The k-th firing is due at start + k * interval on the monotonic clock.
        """
        now = self.clock()
        delay = initial_delay(now)
        logger.info(f"Next API call time is {next_fire_time(now, wait_minutes(now.minute))}")

        start = time.monotonic() + delay
        firing = 0

        while not self.stop_event.is_set():
            due = start + firing * self.interval
            remaining = due - time.monotonic()
            if remaining > 0 and self.stop_event.wait(remaining):
                break

            self.run_once()
            firing += 1

        logger.info(f"Scheduler stopped after {self.firing_count} firing(s)")

    def stop(self) -> None:
        """Stop the loop and interrupt any retry wait in progress."""
        logger.info("Stopping scheduler...")
        self.stop_event.set()
