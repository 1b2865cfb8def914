"""
Client for the DVSA MOT History API.

Access uses the OAuth2 client-credentials grant: a bearer token is fetched
from the token endpoint and cached until shortly before it expires. Each
lookup then sends the token together with the API key.

API documentation: https://documentation.history.mot.api.gov.uk/
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote

import requests

from .calculations import MOT_LOOKUP_DUE_SOON_DAYS, mot_status, parse_iso_datetime
from .config import (
    DEFAULT_API_BASE_URL,
    DEFAULT_SCOPE,
    DEFAULT_TIMEOUT,
    DEFAULT_TOKEN_URL,
    MOTSettings,
)
from .errors import MOTError, Result
from .status import MOTStatus
from .vehicle import FuelType

logger = logging.getLogger(__name__)

# Tokens this close to expiry are refreshed before a lookup
TOKEN_REFRESH_MARGIN = timedelta(minutes=5)

# Used to estimate mileage when no odometer reading is available
ESTIMATED_MILES_PER_YEAR = 10000

MILES_UNITS = ("mi", "miles")


def normalize_registration(registration: str) -> str:
    """Remove all whitespace and uppercase, e.g. 'ab12 cde' -> 'AB12CDE'."""
    return "".join((registration or "").split()).upper()


def parse_date(value: Any) -> Optional[datetime]:
    """
    Parse a date from the API.

    Accepts ISO-8601 dates with or without a time part, and the legacy
    'YYYY.MM.DD' format. Times with an offset are converted to naive UTC.
    Returns None for missing, non-text or unparseable values.
    """
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if len(text) == 10 and text[4] == "." and text[7] == ".":
        text = text.replace(".", "-")
    try:
        return parse_iso_datetime(text)
    except ValueError:
        logger.debug("Ignoring unparseable MOT date %r", value)
        return None


def _to_int(value: Any) -> Optional[int]:
    """Numbers in the payload are sometimes sent as strings."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    text = str(value).strip().replace(",", "")
    if text.isdigit():
        return int(text)
    return None


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


# =============================================================================
# Lookup results
# =============================================================================


@dataclass
class MOTDefect:
    text: Optional[str] = None
    type: Optional[str] = None
    dangerous: bool = False


@dataclass
class MOTTest:
    test_result: str
    completed_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    odometer_value: Optional[int] = None
    odometer_unit: Optional[str] = None
    mot_test_number: Optional[str] = None
    defects: List[MOTDefect] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.test_result.upper() == "PASSED"


@dataclass
class MOTData:
    """Normalized result of an MOT lookup."""

    registration: str
    make: Optional[str] = None
    model: Optional[str] = None
    primary_colour: Optional[str] = None
    manufacture_year: Optional[int] = None
    engine_size: Optional[int] = None
    fuel_type: Optional[str] = None
    mot_status: MOTStatus = MOTStatus.UNKNOWN
    mot_expiry_date: Optional[datetime] = None
    latest_test: Optional[MOTTest] = None
    mot_history: List[MOTTest] = field(default_factory=list)

    @property
    def latest_odometer(self) -> Optional[int]:
        if self.latest_test is None:
            return None
        return self.latest_test.odometer_value

    @property
    def latest_odometer_miles(self) -> Optional[int]:
        """Latest odometer reading, unless it was recorded in kilometres."""
        if self.latest_test is None or self.latest_test.odometer_value is None:
            return None
        unit = (self.latest_test.odometer_unit or "mi").lower()
        if unit not in MILES_UNITS:
            return None
        return self.latest_test.odometer_value

    def to_vehicle_fields(self, current_year: int) -> Dict[str, Any]:
        """
        Pre-fill values for a new vehicle.

        Only fields the lookup could supply are returned. Mileage comes from
        the latest odometer reading in miles or, failing that, is estimated at
        10,000 miles per year of age.
        """
        fields: Dict[str, Any] = {"registration": self.registration}
        if self.make:
            fields["make"] = self.make
        if self.model:
            fields["model"] = self.model
        if self.primary_colour:
            fields["color"] = self.primary_colour
        if self.fuel_type:
            fields["fuel_type"] = FuelType.from_label(self.fuel_type)
        if self.manufacture_year:
            fields["year"] = self.manufacture_year
        if self.mot_expiry_date is not None:
            fields["mot_due"] = self.mot_expiry_date

        if self.latest_odometer_miles is not None:
            fields["mileage"] = self.latest_odometer_miles
        elif self.manufacture_year:
            age = max(current_year - self.manufacture_year, 0)
            fields["mileage"] = age * ESTIMATED_MILES_PER_YEAR
        return fields


# =============================================================================
# Payload parsing
# =============================================================================


def determine_mot_status(tests: List[Dict[str, Any]], today: datetime) -> MOTStatus:
    """Status from the most recent test (the API lists newest first)."""
    if not tests:
        return MOTStatus.UNKNOWN
    expiry = parse_date(tests[0].get("expiryDate"))
    return mot_status(expiry, today, due_soon_days=MOT_LOOKUP_DUE_SOON_DAYS)


def _parse_test(raw: Dict[str, Any]) -> Optional[MOTTest]:
    result = _text(raw.get("testResult"))
    if result is None:
        return None
    defects = raw.get("defects") or raw.get("rfrAndComments") or []
    if not isinstance(defects, list):
        defects = []
    return MOTTest(
        test_result=result,
        completed_date=parse_date(raw.get("completedDate")),
        expiry_date=parse_date(raw.get("expiryDate")),
        odometer_value=_to_int(raw.get("odometerValue")),
        odometer_unit=_text(raw.get("odometerUnit")),
        mot_test_number=_text(raw.get("motTestNumber")),
        defects=[
            MOTDefect(
                text=_text(d.get("text")),
                type=_text(d.get("type")),
                dangerous=bool(d.get("dangerous", False)),
            )
            for d in defects
            if isinstance(d, dict)
        ],
    )


def parse_mot_response(payload: Any, today: datetime) -> MOTData:
    """
    Normalize a successful lookup response.

    Two shapes are accepted: a vehicle with MOT history (has ``motTests``)
    and a newly registered vehicle that has not been tested yet (has
    ``motTestDueDate`` or ``registrationDate``). Anything else raises
    MOTError.invalid_response().
    """
    if not isinstance(payload, dict):
        raise MOTError.invalid_response()

    registration = _text(payload.get("registration")) or ""
    common = dict(
        registration=registration.upper(),
        make=_text(payload.get("make")),
        model=_text(payload.get("model")),
        primary_colour=_text(payload.get("primaryColour")),
        manufacture_year=_to_int(payload.get("manufactureYear")),
        fuel_type=_text(payload.get("fuelType")),
    )

    tests = payload.get("motTests")
    if isinstance(tests, list):
        if not all(isinstance(raw, dict) for raw in tests):
            raise MOTError.invalid_response()
        history = [t for t in (_parse_test(raw) for raw in tests) if t is not None]
        return MOTData(
            engine_size=_to_int(payload.get("engineSize")),
            mot_status=determine_mot_status(tests, today),
            mot_expiry_date=parse_date(tests[0].get("expiryDate")) if tests else None,
            latest_test=_parse_test(tests[0]) if tests else None,
            mot_history=history,
            **common,
        )

    if "motTestDueDate" in payload or "registrationDate" in payload:
        due = parse_date(payload.get("motTestDueDate"))
        return MOTData(
            mot_status=MOTStatus.VALID if due is not None else MOTStatus.UNKNOWN,
            mot_expiry_date=due,
            **common,
        )

    raise MOTError.invalid_response()


# =============================================================================
# HTTP client
# =============================================================================


class MOTClient:
    """
    MOT History API client with a cached access token.

    One client may serve lookups from several threads; the token check and
    refresh happen under a lock so concurrent lookups share one refresh.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        api_key: str,
        token_url: str = DEFAULT_TOKEN_URL,
        api_base_url: str = DEFAULT_API_BASE_URL,
        scope: str = DEFAULT_SCOPE,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.api_key = api_key
        self.token_url = token_url
        self.api_base_url = api_base_url.rstrip("/")
        self.scope = scope
        self.timeout = timeout
        self.session = session or requests.Session()
        self.clock = clock

        self._token_lock = threading.Lock()
        self._access_token: Optional[str] = None
        self._token_expires_at: Optional[datetime] = None

    @classmethod
    def from_settings(
        cls,
        settings: MOTSettings,
        session: Optional[requests.Session] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> "MOTClient":
        return cls(
            client_id=settings.client_id,
            client_secret=settings.client_secret,
            api_key=settings.api_key,
            token_url=settings.token_url,
            api_base_url=settings.api_base_url,
            scope=settings.scope,
            timeout=settings.timeout,
            session=session,
            clock=clock,
        )

    def close(self) -> None:
        self.session.close()

    def check_mot_status(self, registration: str) -> Result[MOTData]:
        """Look up a vehicle's MOT details by registration."""
        reg = normalize_registration(registration)
        if not reg:
            return Result.failure(MOTError.invalid_registration())

        try:
            token = self._ensure_access_token()
            data = self._fetch_mot_data(reg, token)
        except MOTError as e:
            logger.warning("MOT lookup for %s failed: %s", reg, e.message)
            return Result.failure(e)

        logger.info("MOT lookup for %s: %s", reg, data.mot_status.value)
        return Result.success(data)

    # -------------------------------------------------------------------------
    # Token handling
    # -------------------------------------------------------------------------

    def _token_is_fresh(self, now: datetime) -> bool:
        return (
            self._access_token is not None
            and self._token_expires_at is not None
            and self._token_expires_at > now + TOKEN_REFRESH_MARGIN
        )

    def _ensure_access_token(self) -> str:
        with self._token_lock:
            if not self._token_is_fresh(self.clock()):
                self._fetch_access_token()
            return self._access_token

    def _fetch_access_token(self) -> None:
        data = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "scope": self.scope,
        }
        try:
            response = self.session.post(
                self.token_url,
                data=data,
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise MOTError.authentication_error(str(e)) from e

        if response.status_code != 200:
            raise MOTError.authentication_error(f"HTTP {response.status_code}")

        try:
            body = response.json()
            token = body["access_token"]
            expires_in = int(body["expires_in"])
        except (ValueError, KeyError, TypeError) as e:
            raise MOTError.authentication_error("Invalid token response") from e

        self._access_token = token
        self._token_expires_at = self.clock() + timedelta(seconds=expires_in)
        logger.info("Fetched MOT API access token, expires in %ds", expires_in)

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def _fetch_mot_data(self, registration: str, token: str) -> MOTData:
        url = f"{self.api_base_url}/{quote(registration, safe='')}"
        headers = {
            "Authorization": f"Bearer {token}",
            "X-API-Key": self.api_key,
            "Accept": "application/json",
        }
        try:
            response = self.session.get(url, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise MOTError.network_error(str(e)) from e

        status = response.status_code
        if status == 200:
            try:
                payload = response.json()
            except ValueError as e:
                raise MOTError.invalid_response() from e
            return parse_mot_response(payload, self.clock())
        if status == 404:
            raise MOTError.vehicle_not_found()
        if status == 422:
            raise MOTError.invalid_registration()
        if status == 429:
            raise MOTError.rate_limit_exceeded()
        if 500 <= status <= 599:
            raise MOTError.server_error()
        raise MOTError.network_error(f"HTTP {status}")
