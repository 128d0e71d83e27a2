"""
Google Sheets access for Ambient Tracker.

Wraps the Sheets v4 API behind the handful of calls the sheet writer needs and
turns API errors into ReadResult values or SheetsError exceptions.
"""
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import httplib2
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError


logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

# Message Sheets returns when a range names a sheet that doesn't exist
MISSING_SHEET_MESSAGE = "Unable to parse range"


class SheetsError(Exception):
    """Base exception for Google Sheets errors."""
    pass


class SheetsAuthError(SheetsError):
    """Raised when credentials cannot be loaded or refreshed."""
    pass


class SheetsAPIError(SheetsError):
    """Raised when a Sheets API call fails."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class ReadStatus(Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass
class ReadResult:
    """Outcome of reading a range."""

    status: ReadStatus
    rows: List[List[Any]] = field(default_factory=list)
    code: Optional[int] = None
    message: str = ""

    @classmethod
    def found(cls, rows: List[List[Any]]) -> "ReadResult":
        return cls(ReadStatus.FOUND, rows=rows)

    @classmethod
    def not_found(cls, message: str = "") -> "ReadResult":
        return cls(ReadStatus.NOT_FOUND, code=400, message=message)

    @classmethod
    def error(cls, code: Optional[int], message: str) -> "ReadResult":
        return cls(ReadStatus.ERROR, code=code, message=message)


def _load_credentials(credentials_file: str, token_file: Optional[str] = None):
    """
    Load Google credentials.

    With a token file, the stored authorised-user token is used and refreshed
    when expired; there is no interactive consent flow. Without one, the
    credentials file must be a service-account key.
    """
    if token_file:
        logger.info(f"Loading stored token from {token_file}")
        creds = Credentials.from_authorized_user_file(token_file, SCOPES)
        if not creds.valid:
            if creds.expired and creds.refresh_token:
                logger.info("Refreshing expired token")
                creds.refresh(Request())
            else:
                raise SheetsAuthError("Failed to load existing credentials, or no valid token found.")
        return creds

    with open(Path(credentials_file), "r") as f:
        info = json.load(f)

    if info.get("type") != "service_account":
        raise SheetsAuthError(
            f"{credentials_file} is not a service account key and no token file is configured"
        )

    logger.info(f"Loading service account credentials from {credentials_file}")
    return service_account.Credentials.from_service_account_info(info, scopes=SCOPES)


def build_sheets_service(credentials_file: str, token_file: Optional[str] = None):
    """
    Build an authenticated Sheets v4 service.

    Raises:
        SheetsAuthError: If credentials are missing, unreadable or rejected
    """
    if not credentials_file and not token_file:
        raise SheetsAuthError("No Google credentials file configured")

    logger.info("Initializing Google Sheets API service")
    try:
        creds = _load_credentials(credentials_file, token_file)
        service = build("sheets", "v4", credentials=creds, cache_discovery=False)
    except SheetsAuthError:
        raise
    except (OSError, ValueError, GoogleAuthError, HttpError, httplib2.HttpLib2Error) as e:
        raise SheetsAuthError(f"Unable to build Sheets service: {e}")

    logger.info("Sheets service successfully built")
    return service


def _status_of(error: HttpError) -> Optional[int]:
    return getattr(error.resp, "status", None)


class GoogleSheetsBackend:
    """
    Thin wrapper around one spreadsheet.

    Ranges are A1 notation including the sheet name, e.g. "2024!A:A".
    """

    def __init__(self, service, spreadsheet_id: str):
        self.service = service
        self.spreadsheet_id = spreadsheet_id

    @classmethod
    def connect(
        cls, spreadsheet_id: str, credentials_file: str, token_file: Optional[str] = None
    ) -> "GoogleSheetsBackend":
        """Authenticate and return a backend for spreadsheet_id."""
        if not spreadsheet_id:
            raise SheetsAuthError("No spreadsheet id configured")
        service = build_sheets_service(credentials_file, token_file)
        return cls(service, spreadsheet_id)

    def read_range(self, range_name: str) -> ReadResult:
        """Read the values of range_name."""
        logger.info(f"Getting values of {range_name}")
        try:
            response = self.service.spreadsheets().values().get(
                spreadsheetId=self.spreadsheet_id,
                range=range_name,
            ).execute()
        except HttpError as e:
            status = _status_of(e)
            if status == 400 and MISSING_SHEET_MESSAGE in str(e):
                logger.info(f"Sheet for range {range_name} does not exist")
                return ReadResult.not_found(str(e))
            return ReadResult.error(status, str(e))
        except (OSError, httplib2.HttpLib2Error) as e:
            return ReadResult.error(None, str(e))

        rows = response.get("values", [])
        logger.info(f"Retrieved {len(rows)} row(s) from {range_name}")
        return ReadResult.found(rows)

    def _batch_update(self, requests: List[Dict[str, Any]]) -> Dict[str, Any]:
        try:
            return self.service.spreadsheets().batchUpdate(
                spreadsheetId=self.spreadsheet_id,
                body={"requests": requests},
            ).execute()
        except HttpError as e:
            raise SheetsAPIError(f"Batch update failed: {e}", status=_status_of(e))
        except (OSError, httplib2.HttpLib2Error) as e:
            raise SheetsAPIError(f"Batch update failed: {e}")

    def add_sheet(self, title: str) -> int:
        """
        Add a sheet named title.

        Returns:
            The new sheet's numeric id
        """
        logger.info(f"Adding sheet {title}")
        response = self._batch_update([
            {"addSheet": {"properties": {"title": title}}}
        ])
        return response["replies"][0]["addSheet"]["properties"]["sheetId"]

    def freeze_rows(self, sheet_id: int, count: int = 1) -> None:
        """Freeze the first count rows of a sheet."""
        logger.info(f"Freezing first {count} row(s) of sheet {sheet_id}")
        self._batch_update([{
            "updateSheetProperties": {
                "properties": {
                    "sheetId": sheet_id,
                    "gridProperties": {"frozenRowCount": count},
                },
                "fields": "gridProperties.frozenRowCount",
            }
        }])

    def update_values(self, range_name: str, values: List[List[Any]]) -> None:
        """Write values starting at range_name, without formula parsing."""
        logger.info(f"Updating values at range {range_name}")
        try:
            self.service.spreadsheets().values().update(
                spreadsheetId=self.spreadsheet_id,
                range=range_name,
                valueInputOption="RAW",
                body={"values": values},
            ).execute()
        except HttpError as e:
            raise SheetsAPIError(f"Update of {range_name} failed: {e}", status=_status_of(e))
        except (OSError, httplib2.HttpLib2Error) as e:
            raise SheetsAPIError(f"Update of {range_name} failed: {e}")
