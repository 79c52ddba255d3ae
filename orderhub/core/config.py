import os
from decimal import Decimal

from dotenv import load_dotenv

# Load .env from the project root
load_dotenv()

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_bool(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in _TRUE_VALUES


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./orderhub.db")
ENV = os.getenv("ENV", "dev")
ENV_NORMALIZED = ENV.lower()
IS_DEV = ENV_NORMALIZED in {"dev", "development", "local"}
IS_TEST = ENV_NORMALIZED == "test"
IS_PROD = ENV_NORMALIZED in {"prod", "production"}
STORE_BACKEND = os.getenv("STORE_BACKEND", "sqlalchemy").strip().lower()

# Orders
ORDER_NUMBER_PREFIX = os.getenv("ORDER_NUMBER_PREFIX", "ORD-")
ORDER_NUMBER_START = int(os.getenv("ORDER_NUMBER_START", "1001"))
TAX_RATE = Decimal(os.getenv("TAX_RATE", "0.18"))
KITCHEN_TOKEN_ON_CREATE = _env_bool("KITCHEN_TOKEN_ON_CREATE")

# Matcher
MATCH_MIN_SCORE = float(os.getenv("MATCH_MIN_SCORE", "0.5"))

# Webhooks
WEBHOOK_MAX_ATTEMPTS = int(os.getenv("WEBHOOK_MAX_ATTEMPTS", "5"))
WEBHOOK_BACKOFF_BASE_SECONDS = float(os.getenv("WEBHOOK_BACKOFF_BASE_SECONDS", "1.0"))
WEBHOOK_TIMEOUT_SECONDS = float(os.getenv("WEBHOOK_TIMEOUT_SECONDS", "10.0"))
WEBHOOK_HEADER_PREFIX = os.getenv("WEBHOOK_HEADER_PREFIX", "X-OrderHub").strip() or "X-OrderHub"

# Automation backend (n8n)
AUTOMATION_BASE_URL = os.getenv("AUTOMATION_BASE_URL", "").strip().rstrip("/")
AUTOMATION_API_KEY = os.getenv("AUTOMATION_API_KEY", "").strip()

# Channels
CHANNEL_PROVIDER = os.getenv("CHANNEL_PROVIDER", "mock").strip().lower()
META_WA_ACCESS_TOKEN = os.getenv("META_WA_ACCESS_TOKEN", "")
META_WA_PHONE_NUMBER_ID = os.getenv("META_WA_PHONE_NUMBER_ID", "")
META_API_VERSION = os.getenv("META_API_VERSION", "v19.0")

# LLM
LLM_PROVIDER = os.getenv("LLM_PROVIDER", "none").strip().lower()
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "").strip()
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-1.5-flash").strip()
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "15.0"))

# CORS
_cors_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS = [origin.strip() for origin in _cors_env.split(",") if origin.strip() and origin.strip() != "*"]

if not CORS_ORIGINS and IS_DEV:
    CORS_ORIGINS = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
