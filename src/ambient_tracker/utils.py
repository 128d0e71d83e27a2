"""
Utility functions for Ambient Tracker.
"""
import logging
import re
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional, Tuple, Type


logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_BASE_DELAY = 10.0


def setup_logging(log_file: str, log_level: str = "INFO", log_format: str = None) -> None:
    """
    Setup logging configuration with file and console handlers.

    Args:
        log_file: Path to log file
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log message format string
    """
    if log_format is None:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    level = getattr(logging, log_level.upper(), logging.INFO)

    # Create logs directory if it doesn't exist
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    formatter = logging.Formatter(log_format)

    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    # googleapiclient logs every discovery cache miss at WARNING
    logging.getLogger("googleapiclient.discovery_cache").setLevel(logging.ERROR)


class RetryStatus(Enum):
    """Outcome of a retried operation."""

    SUCCESS = "success"
    EXHAUSTED = "exhausted"
    INTERRUPTED = "interrupted"


@dataclass
class RetryResult:
    """Tagged result of retry_with_backoff()."""

    status: RetryStatus
    value: Any = None
    attempts: int = 0
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.status is RetryStatus.SUCCESS


def backoff_delay(attempt: int, base_delay: float = RETRY_BASE_DELAY) -> float:
    """Linear backoff: the wait after failed attempt N is N * base_delay."""
    return attempt * base_delay


def retry_with_backoff(
    operation: Callable[[], Any],
    description: str,
    max_retries: int = MAX_RETRIES,
    base_delay: float = RETRY_BASE_DELAY,
    retry_on: Tuple[Type[Exception], ...] = (Exception,),
    stop_event: Optional[threading.Event] = None,
) -> RetryResult:
    """
    Call an operation, retrying on failure with linear backoff.

    The operation runs at most max_retries + 1 times. After failed attempt N
    the helper waits backoff_delay(N) on stop_event, so setting the event
    abandons the chain immediately.

    Args:
        operation: Zero-argument callable to run
        description: What the operation does, for log messages
        max_retries: Retries allowed after the initial attempt
        base_delay: Backoff unit in seconds
        retry_on: Exception types that count as a retryable failure
        stop_event: Event whose being set interrupts a backoff sleep

    Returns:
        RetryResult tagged SUCCESS, EXHAUSTED or INTERRUPTED

    Example:
        result = retry_with_backoff(lambda: session.get(url), "fetching data")
        if result.ok:
            response = result.value
    """
    if stop_event is None:
        stop_event = threading.Event()

    max_attempts = max_retries + 1
    last_error = None

    for attempt in range(1, max_attempts + 1):
        try:
            value = operation()
            return RetryResult(RetryStatus.SUCCESS, value=value, attempts=attempt)
        except retry_on as e:
            last_error = e

        if attempt >= max_attempts:
            break

        delay = backoff_delay(attempt, base_delay)
        logger.warning(
            f"WARNING #{attempt}: {description} failed: {last_error}, "
            f"retrying in {delay:.0f}s"
        )
        if stop_event.wait(delay):
            logger.warning(f"Retry of {description} interrupted, abandoning")
            return RetryResult(
                RetryStatus.INTERRUPTED, attempts=attempt, error=last_error
            )

    logger.error(f"{description} failed after {max_attempts} attempts: {last_error}")
    return RetryResult(RetryStatus.EXHAUSTED, attempts=max_attempts, error=last_error)


def validate_mac_address(mac: str) -> bool:
    """
    Validate MAC address format.

    Accepts formats:
    - XX:XX:XX:XX:XX:XX
    - XXXXXXXXXXXX

    Args:
        mac: MAC address string

    Returns:
        True if valid, False otherwise
    """
    # Pattern with colons
    pattern1 = re.compile(r'^([0-9A-Fa-f]{2}:){5}[0-9A-Fa-f]{2}$')
    # Pattern without colons
    pattern2 = re.compile(r'^[0-9A-Fa-f]{12}$')

    return bool(pattern1.match(mac) or pattern2.match(mac))


def sanitize_for_logging(data: Any) -> Any:
    """
    Sanitize data for logging by redacting sensitive information.

    Args:
        data: Data to sanitize (str, dict, etc.)

    Returns:
        Sanitized data
    """
    if isinstance(data, dict):
        sanitized = {}
        sensitive_keys = {
            "api_key", "apikey", "application_key", "applicationkey",
            "password", "secret", "token",
        }

        for key, value in data.items():
            if key.lower() in sensitive_keys:
                sanitized[key] = "***REDACTED***"
            elif isinstance(value, dict):
                sanitized[key] = sanitize_for_logging(value)
            else:
                sanitized[key] = value

        return sanitized
    elif isinstance(data, str):
        # Don't log long strings that might contain keys
        if len(data) > 100:
            return data[:50] + "...[truncated]"
        return data
    else:
        return data
