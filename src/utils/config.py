# runtime settings, read from the environment once at import
import os


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


DEBUG = bool(os.getenv("DEBUG"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG" if DEBUG else "INFO").upper()

# storage
DB_PATH = os.getenv("CC_DB_PATH", "data/store.sqlite")
DB_TIMEOUT = _env_float("CC_DB_TIMEOUT", 5.0)
CART_DIR = os.getenv("CC_CART_DIR", "data/carts")

# public site, used to build tracking / unsubscribe links
SITE_URL = os.getenv("CC_SITE_URL", "http://localhost:8000").rstrip("/")
STORE_NAME = "CoreComponents"
STORE_CONTACT = "(647) 993-8235 | info@ccomponents.ca"

# outbound http (mail api, vin decoder, sms)
HTTP_TIMEOUT = _env_float("CC_HTTP_TIMEOUT", 10.0)

RESEND_API_KEY = os.getenv("RESEND_API_KEY", "")
RESEND_API_URL = os.getenv("RESEND_API_URL", "https://api.resend.com/emails")
MAIL_FROM = os.getenv("MAIL_FROM", "onboarding@resend.dev")
MAIL_SEND_CONCURRENCY = max(_env_int("MAIL_SEND_CONCURRENCY", 5), 1)

VIN_DECODER_URL = os.getenv(
    "VIN_DECODER_URL", "https://vpic.nhtsa.dot.gov/api/vehicles/DecodeVinValues"
)

TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID", "")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN", "")
TWILIO_FROM_NUMBER = os.getenv("TWILIO_FROM_NUMBER", "")
OWNER_PHONE_NUMBER = os.getenv("OWNER_PHONE_NUMBER", "")
