"""Google Calendar API adapter."""

import logging
from datetime import date, datetime, time, timedelta
from pathlib import Path
from zoneinfo import ZoneInfo

from docket.core.calendar import Event
from docket.core.errors import ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/calendar.readonly"]


class GoogleCalendarAdapter:
    """
    Fetches one calendar's events from Google Calendar via the API.

    Implements CalendarRepository protocol. Uses a service account key
    when one is configured, otherwise an OAuth token.json from `docket cal-auth`.
    """

    def __init__(
        self,
        calendar_id: str,
        service_account_file: str = "",
        token_dir: str = "",
        client_secret_file: str = "",
        timezone: str = "America/Los_Angeles",
    ):
        self.calendar_id = calendar_id
        self.service_account_file = service_account_file
        self.client_secret_file = client_secret_file
        self.timezone = timezone
        self._token_path = Path(token_dir).expanduser() / "token.json" if token_dir else None

    @property
    def is_configured(self) -> bool:
        return bool(self.calendar_id and (self.service_account_file or self._token_path))

    def _get_credentials(self):
        """Service account credentials, or OAuth credentials refreshed if needed."""
        from google.auth.exceptions import GoogleAuthError
        from google.auth.transport.requests import Request
        from google.oauth2 import service_account
        from google.oauth2.credentials import Credentials

        if self.service_account_file:
            key_path = Path(self.service_account_file).expanduser()
            if not key_path.exists():
                raise ConfigurationError(f"Service account file not found: {key_path}")
            return service_account.Credentials.from_service_account_file(str(key_path), scopes=SCOPES)

        if self._token_path is None or not self._token_path.exists():
            raise ConfigurationError("No Google Calendar token - run 'docket cal-auth'")

        try:
            creds = Credentials.from_authorized_user_file(str(self._token_path), SCOPES)
        except ValueError as e:
            raise ConfigurationError(f"Invalid Google Calendar token {self._token_path}: {e}") from e
        if creds.expired and creds.refresh_token:
            try:
                creds.refresh(Request())
            except GoogleAuthError as e:
                raise UpstreamError(f"Failed to refresh Google Calendar token: {e}") from e
            self._token_path.write_text(creds.to_json())
            self._token_path.chmod(0o600)
        return creds

    def _build_service(self):
        """Build a Google Calendar API service."""
        from googleapiclient.discovery import build

        return build("calendar", "v3", credentials=self._get_credentials(), cache_discovery=False)

    def authenticate(self) -> bool:
        """Run OAuth flow and save token.json. Returns True on success."""
        from google_auth_oauthlib.flow import InstalledAppFlow

        if self._token_path is None:
            logger.error("No GOOGLE_TOKEN_DIR configured")
            return False
        if not self.client_secret_file:
            logger.error("No client secret file configured")
            return False

        secret_path = Path(self.client_secret_file).expanduser()
        if not secret_path.exists():
            logger.error(f"Client secret file not found: {secret_path}")
            return False

        flow = InstalledAppFlow.from_client_secrets_file(str(secret_path), SCOPES)
        creds = flow.run_local_server(port=0)

        self._token_path.parent.mkdir(parents=True, exist_ok=True)
        self._token_path.write_text(creds.to_json())
        self._token_path.chmod(0o600)
        return True

    def fetch_day(self, target_date: date) -> list[Event]:
        """
        Fetch events between local midnight and the next local midnight.

        Raises ConfigurationError for missing credentials and UpstreamError
        when the API call fails.
        """
        from google.auth.exceptions import GoogleAuthError
        from googleapiclient.errors import HttpError

        tz = ZoneInfo(self.timezone)
        time_min = datetime.combine(target_date, time(0, 0), tzinfo=tz)
        time_max = datetime.combine(target_date + timedelta(days=1), time(0, 0), tzinfo=tz)

        items: list[dict] = []
        page_token = None
        try:
            service = self._build_service()
            while True:
                result = (
                    service.events()
                    .list(
                        calendarId=self.calendar_id,
                        timeMin=time_min.isoformat(),
                        timeMax=time_max.isoformat(),
                        singleEvents=True,
                        orderBy="startTime",
                        timeZone=self.timezone,
                        pageToken=page_token,
                    )
                    .execute()
                )
                items.extend(result.get("items", []))
                page_token = result.get("nextPageToken")
                if not page_token:
                    break
        # RefreshError and TransportError surface from execute()
        except (HttpError, GoogleAuthError, OSError) as e:
            logger.warning(f"Google Calendar API error for {self.calendar_id}: {e}")
            raise UpstreamError(f"Calendar request failed: {e}") from e

        events = [e for e in (self._to_event(item, tz) for item in items) if e is not None]
        logger.info(f"Fetched {len(events)} events for {target_date}")
        return events

    def _to_event(self, item: dict, tz: ZoneInfo) -> Event | None:
        start_raw = item.get("start", {})
        end_raw = item.get("end", {})

        if "date" in start_raw:
            # All-day event - attach timezone so sorting with timed events works
            start_dt = datetime.fromisoformat(start_raw["date"]).replace(tzinfo=tz)
            end_dt = datetime.fromisoformat(end_raw["date"]).replace(tzinfo=tz) if "date" in end_raw else None
            all_day = True
        elif "dateTime" in start_raw:
            start_dt = datetime.fromisoformat(start_raw["dateTime"].replace("Z", "+00:00"))
            end_dt = (
                datetime.fromisoformat(end_raw["dateTime"].replace("Z", "+00:00"))
                if "dateTime" in end_raw
                else None
            )
            all_day = False
        else:
            return None

        return Event(
            title=item.get("summary", "Untitled"),
            start=start_dt,
            end=end_dt,
            all_day=all_day,
            declined=is_self_declined(item),
            location=item.get("location", ""),
            calendar=self.calendar_id,
            source="google_calendar",
        )


def is_self_declined(item: dict) -> bool:
    """True when the calendar owner's own attendee entry is 'declined'."""
    for attendee in item.get("attendees") or []:
        if attendee.get("self"):
            return attendee.get("responseStatus") == "declined"
    return False
