"""
Runtime configuration read from the environment (and a .env file, if present).

Variables:
    MOT_CLIENT_ID, MOT_CLIENT_SECRET, MOT_API_KEY  MOT History API credentials
    MOT_TOKEN_URL, MOT_API_BASE_URL, MOT_SCOPE     endpoint overrides
    MOT_TIMEOUT                                    request timeout in seconds
    GARAGE_DATA_FILE                               data file for the CLI and web app
    LOG_LEVEL                                      logging level name
    SECRET_KEY                                     Flask secret key
"""

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import find_dotenv, load_dotenv

load_dotenv(find_dotenv(usecwd=True))

DEFAULT_TOKEN_URL = (
    "https://login.microsoftonline.com/"
    "a455b827-244f-4c97-b5b4-ce5d13b4d00c/oauth2/v2.0/token"
)
DEFAULT_API_BASE_URL = "https://history.mot.api.gov.uk/v1/trade/vehicles/registration"
DEFAULT_SCOPE = "https://tapi.dvsa.gov.uk/.default"
DEFAULT_TIMEOUT = 30.0

DEFAULT_DATA_FILE = "garage.json"
DEFAULT_LOG_LEVEL = "WARNING"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class MOTSettings:
    """Credentials and endpoints for the MOT History API."""

    client_id: str = ""
    client_secret: str = ""
    api_key: str = ""
    token_url: str = DEFAULT_TOKEN_URL
    api_base_url: str = DEFAULT_API_BASE_URL
    scope: str = DEFAULT_SCOPE
    timeout: float = DEFAULT_TIMEOUT

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret and self.api_key)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "MOTSettings":
        env = os.environ if environ is None else environ
        return cls(
            client_id=(env.get("MOT_CLIENT_ID") or "").strip(),
            client_secret=(env.get("MOT_CLIENT_SECRET") or "").strip(),
            api_key=(env.get("MOT_API_KEY") or "").strip(),
            token_url=(env.get("MOT_TOKEN_URL") or DEFAULT_TOKEN_URL).strip(),
            api_base_url=(env.get("MOT_API_BASE_URL") or DEFAULT_API_BASE_URL)
            .strip()
            .rstrip("/"),
            scope=(env.get("MOT_SCOPE") or DEFAULT_SCOPE).strip(),
            timeout=float(env.get("MOT_TIMEOUT") or DEFAULT_TIMEOUT),
        )


def data_file(environ: Optional[Mapping[str, str]] = None) -> str:
    env = os.environ if environ is None else environ
    return env.get("GARAGE_DATA_FILE") or DEFAULT_DATA_FILE


def secret_key(environ: Optional[Mapping[str, str]] = None) -> str:
    env = os.environ if environ is None else environ
    return env.get("SECRET_KEY") or "dev"


def configure_logging(level: Optional[str] = None) -> None:
    """Set up root logging from LOG_LEVEL unless an explicit level is given."""
    name = (level or os.environ.get("LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper()
    logging.basicConfig(level=getattr(logging, name, logging.WARNING), format=LOG_FORMAT)


# =============================================================================
# Workshop contact details
# =============================================================================


@dataclass(frozen=True)
class ContactInfo:
    name: str
    phone: str
    mobile: str
    email: str
    whatsapp: str
    instagram: str
    address: str
    opening_hours: str
    latitude: float
    longitude: float

    @property
    def phone_link(self) -> str:
        return "tel:+44" + self.phone.replace(" ", "").lstrip("0")

    @property
    def email_link(self) -> str:
        return "mailto:" + self.email

    @property
    def maps_link(self) -> str:
        return (
            "https://www.google.com/maps/search/?api=1"
            f"&query={self.latitude},{self.longitude}"
        )


CONTACT_INFO = ContactInfo(
    name="Bespoke Vehicle Maintenance",
    phone="01304 732 747",
    mobile="07441 111 189",
    email="info@bvmdeal.co.uk",
    whatsapp="https://wa.me/message/2ABQLRICNXSZJ1",
    instagram="https://www.instagram.com/bespokevehiclemaintenance/",
    address="Unit 3a, Southwall Industrial Estate, Southwall Road, Deal, Kent CT14 9QB",
    opening_hours="0900 to 1700, Monday to Friday",
    latitude=51.228312,
    longitude=1.388879,
)
