"""
Data models for Ambient Tracker.
"""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional

from openpyxl.utils import column_index_from_string, get_column_letter


logger = logging.getLogger(__name__)


class SensorMappingError(Exception):
    """Raised when the sensor mapping file cannot be read."""
    pass


def column_to_number(letters: str) -> int:
    """
    Convert a spreadsheet column letter to its 1-based number.

    A=1 ... Z=26, AA=27 ...

    Raises:
        ValueError: If letters is not a valid column name
    """
    return column_index_from_string(letters.strip().upper())


def number_to_column(number: int) -> str:
    """Inverse of column_to_number()."""
    return get_column_letter(number)


@dataclass(frozen=True)
class SensorDescriptor:
    """
    One line of the sensor mapping: an API field, the spreadsheet column it
    is written to, and the header text for that column.
    """

    key: str
    column: str
    description: str

    @property
    def index(self) -> int:
        """1-based column number."""
        return column_to_number(self.column)


class SensorMap:
    """
    Immutable lookup of API field name -> SensorDescriptor.

    Built once (usually at startup) and handed to the SheetWriter.
    """

    def __init__(self, sensors: Iterable[SensorDescriptor]):
        self._sensors = MappingProxyType({s.key: s for s in sensors})

    @classmethod
    def parse(cls, lines: Iterable[str]) -> "SensorMap":
        """
        Build a SensorMap from "key,column,description" lines.

        Lines that do not split into three fields, or whose column is not a
        valid letter, are skipped.
        """
        sensors = []
        for line_no, line in enumerate(lines, start=1):
            parts = line.rstrip("\r\n").split(",", 2)
            if len(parts) != 3:
                logger.debug(f"Skipping sensor mapping line {line_no}: {line!r}")
                continue

            key, column, description = (p.strip() for p in parts)
            try:
                column_to_number(column)
            except ValueError:
                logger.debug(f"Skipping sensor mapping line {line_no}: bad column {column!r}")
                continue

            sensors.append(SensorDescriptor(key=key, column=column.upper(), description=description))

        return cls(sensors)

    @classmethod
    def from_file(cls, path: str) -> "SensorMap":
        """
        Load a SensorMap from a mapping file.

        Raises:
            SensorMappingError: If the file cannot be read
        """
        logger.info(f"Reading sensor mapping from {path}")
        try:
            with open(Path(path), "r", encoding="utf-8") as f:
                sensor_map = cls.parse(f)
        except (OSError, UnicodeDecodeError) as e:
            raise SensorMappingError(f"Unable to read sensor mapping file {path}: {e}")

        logger.info(f"Loaded {len(sensor_map)} sensor(s)")
        return sensor_map

    def __getitem__(self, key: str) -> SensorDescriptor:
        return self._sensors[key]

    def __contains__(self, key: object) -> bool:
        return key in self._sensors

    def __iter__(self) -> Iterator[SensorDescriptor]:
        return iter(self._sensors.values())

    def __len__(self) -> int:
        return len(self._sensors)

    def get(self, key: str) -> Optional[SensorDescriptor]:
        return self._sensors.get(key)

    @property
    def row_width(self) -> int:
        """Number of cells in a row: enough for every mapped column."""
        if not self._sensors:
            return 0
        return max(len(self._sensors), max(s.index for s in self._sensors.values()))

    def _blank_row(self) -> List[Any]:
        return [None] * self.row_width

    def header_row(self) -> List[Any]:
        """Row 1 of a new year sheet: each description at its column."""
        row = self._blank_row()
        for sensor in self._sensors.values():
            row[sensor.index - 1] = sensor.description
        return row

    def build_row(self, values: Mapping[str, Any]) -> List[Any]:
        """
        Place snapshot values at their mapped columns.

        Keys without a sensor are ignored.
        """
        row = self._blank_row()
        for key, value in values.items():
            sensor = self._sensors.get(key)
            if sensor is None:
                continue
            row[sensor.index - 1] = value
        return row

    def __repr__(self) -> str:
        return f"SensorMap({len(self._sensors)} sensors)"


@dataclass
class WeatherSnapshot:
    """
    A single reading from an Ambient Weather station.

    Values are kept exactly as the API returned them, keyed by API field name
    (tempf, humidity, baromrelin, ...).
    """

    values: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_api_response(cls, data: List[Dict]) -> Optional["WeatherSnapshot"]:
        """
        Create a WeatherSnapshot from the device data array.

        Only the first (most recent) record is used.

        Returns:
            WeatherSnapshot, or None if the array is empty
        """
        if not data:
            return None
        return cls(values=dict(data[0]))

    def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

    def __len__(self) -> int:
        return len(self.values)

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"WeatherSnapshot("
            f"date={self.values.get('date')}, "
            f"tempf={self.values.get('tempf')}, "
            f"humidity={self.values.get('humidity')}, "
            f"fields={len(self.values)})"
        )
