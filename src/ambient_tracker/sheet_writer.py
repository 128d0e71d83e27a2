"""
Appends weather snapshots to a year-partitioned Google Sheet.
"""
import logging
import threading
from datetime import datetime
from typing import Callable, Optional

from .models import SensorMap, SensorMappingError, WeatherSnapshot, number_to_column
from .sheets_backend import (
    GoogleSheetsBackend,
    ReadResult,
    ReadStatus,
    SheetsAPIError,
    SheetsAuthError,
)
from .utils import MAX_RETRIES, RETRY_BASE_DELAY, retry_with_backoff


logger = logging.getLogger(__name__)

# Rows are always written starting at this column
FIRST_COLUMN = "A"


class SheetWriter:
    """
    Writes one row per snapshot into the sheet named after the current year.

    Each year sheet is created on its first write, with a frozen header row
    built from the sensor descriptions. Data rows are appended below the last
    row that has a value in any mapped column.
    """

    def __init__(
        self,
        authenticate: Callable[[], GoogleSheetsBackend],
        sensors: Optional[SensorMap] = None,
        sensor_file: Optional[str] = None,
        clock: Callable[[], datetime] = datetime.now,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_BASE_DELAY,
        stop_event: Optional[threading.Event] = None,
    ):
        """
        Initialize the sheet writer.

        Args:
            authenticate: Returns a connected backend; called once per write
            sensors: Preloaded sensor mapping
            sensor_file: Mapping file loaded on first write when sensors is None
            clock: Source of the current time (year partition)
            max_retries: Retries after the initial attempt for each API call
            retry_delay: Backoff unit in seconds
            stop_event: Event that interrupts a retry backoff when set
        """
        if sensors is None and sensor_file is None:
            raise ValueError("Either sensors or sensor_file is required")

        self.authenticate = authenticate
        self._sensors = sensors
        self.sensor_file = sensor_file
        self.clock = clock
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.stop_event = stop_event if stop_event is not None else threading.Event()

    def _retry(self, operation, description: str, retry_on):
        return retry_with_backoff(
            operation,
            description=description,
            max_retries=self.max_retries,
            base_delay=self.retry_delay,
            retry_on=retry_on,
            stop_event=self.stop_event,
        )

    def _get_sensors(self) -> Optional[SensorMap]:
        if self._sensors is None:
            logger.info("Initializing sensor data")
            try:
                self._sensors = SensorMap.from_file(self.sensor_file)
            except SensorMappingError as e:
                logger.error(f"!ERROR!: {e}. Sensor mapping not created")
                return None
        return self._sensors

    def write(self, snapshot: WeatherSnapshot) -> bool:
        """
        Append snapshot to the current year's sheet.

        Failures are logged, never raised.

        Returns:
            True if the row was written
        """
        auth = self._retry(
            self.authenticate,
            "Building Sheets service",
            (SheetsAuthError, SheetsAPIError),
        )
        if not auth.ok:
            logger.error("!ERROR!: Sheets service unavailable, skipping write")
            return False
        backend = auth.value

        sensors = self._get_sensors()
        if sensors is None:
            return False

        year = str(self.clock().year)
        row_count = self._existing_row_count(backend, year, sensors)
        if row_count is None:
            logger.error(f"!ERROR!: Unable to read sheet {year}, skipping write")
            return False

        logger.info("Parsing through weather data...")
        row = sensors.build_row(snapshot.values)

        next_row = row_count + 1
        target = f"{year}!{FIRST_COLUMN}{next_row}"
        result = self._retry(
            lambda: backend.update_values(target, [row]),
            f"Updating sheet at {target}",
            (SheetsAPIError,),
        )
        if not result.ok:
            logger.error(f"!ERROR!: Snapshot not written to {target}")
            return False

        logger.info(f"Snapshot written to {target}")
        return True

    def _read_rows(self, backend: GoogleSheetsBackend, range_name: str) -> ReadResult:
        result = backend.read_range(range_name)
        if result.status is ReadStatus.ERROR:
            raise SheetsAPIError(result.message, status=result.code)
        return result

    def _existing_row_count(
        self, backend: GoogleSheetsBackend, year: str, sensors: SensorMap
    ) -> Optional[int]:
        """
        Number of rows already in the year sheet, creating the sheet if needed.

        The read spans every mapped column; the API trims trailing empty rows
        only, so a row with an empty column A still counts.

        Returns:
            Row count, or None if the sheet could not be read
        """
        last_column = number_to_column(max(sensors.row_width, 1))
        range_name = f"{year}!{FIRST_COLUMN}:{last_column}"
        created = False

        while True:
            result = self._retry(
                lambda: self._read_rows(backend, range_name),
                f"Getting values of {range_name}",
                (SheetsAPIError,),
            )
            if not result.ok:
                return None

            read = result.value
            if read.status is ReadStatus.FOUND:
                return len(read.rows)

            if created:
                logger.error(f"!ERROR!: Sheet {year} still missing after creation")
                return None

            if not self._create_year_sheet(backend, year, sensors):
                return None
            created = True

    def _create_year_sheet(
        self, backend: GoogleSheetsBackend, year: str, sensors: SensorMap
    ) -> bool:
        """Add the year sheet, freeze row 1 and write the header row."""
        logger.info(f"Creating new sheet for current year: {year}")

        added = self._retry(
            lambda: backend.add_sheet(year),
            f"Adding sheet {year}",
            (SheetsAPIError,),
        )
        if not added.ok:
            logger.error(f"!ERROR!: Unable to add sheet {year}")
            return False
        sheet_id = added.value

        frozen = self._retry(
            lambda: backend.freeze_rows(sheet_id, 1),
            f"Freezing header of sheet {year}",
            (SheetsAPIError,),
        )
        if not frozen.ok:
            logger.warning(f"Header row of sheet {year} is not frozen")

        header = sensors.header_row()
        target = f"{year}!{FIRST_COLUMN}1"
        written = self._retry(
            lambda: backend.update_values(target, [header]),
            f"Writing header row of sheet {year}",
            (SheetsAPIError,),
        )
        if not written.ok:
            logger.warning(f"Header row of sheet {year} was not written")

        logger.info(f"New sheet created, Year: {year}")
        return True
