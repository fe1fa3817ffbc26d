"""
Environment-aware configuration.
Token settings (SIGNING_KEY, ACCESS_TTL, REFRESH_TTL), database target,
CORS origins and env flags. SIGNING_KEY has no default: create_app refuses
to start without it.
"""
import os
import re
from datetime import timedelta

from dotenv import load_dotenv

from utils.exceptions import ConfigurationError

load_dotenv()  # Read .env if present

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$")
_UNITS = {"": "seconds", "s": "seconds", "m": "minutes", "h": "hours", "d": "days"}

MIN_SIGNING_KEY_LENGTH = 32

DEV_ORIGINS = ["http://localhost:5173", "http://localhost:3000"]
PROD_ORIGINS = [
    "https://ecomanager-two.vercel.app",
    "https://ecomanager-gamma.vercel.app",
    "https://ecomanager-kappa.vercel.app",
    "https://ecomanager-oigp.vercel.app",
    r"^https://ecomanager-.*\.vercel\.app$",
]


def parse_duration(value) -> timedelta:
    """Parse "15m", "7d", "3600" or a timedelta into a timedelta."""
    if isinstance(value, timedelta):
        return value
    if isinstance(value, int):
        return timedelta(seconds=value)
    match = _DURATION_RE.match(str(value))
    if not match:
        raise ConfigurationError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    return timedelta(**{_UNITS[unit]: int(amount)})


def _origins(default):
    raw = os.getenv("CORS_ORIGINS")
    if not raw:
        return default
    return [o.strip() for o in raw.split(",") if o.strip()]


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class BaseConfig:
    DEBUG = False
    TESTING = False
    APP_ENV = os.getenv("APP_ENV", "dev")
    # Token settings
    SIGNING_KEY = os.getenv("SIGNING_KEY")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_ISSUER = os.getenv("JWT_ISSUER", "ecomanager-api")
    ACCESS_TTL = os.getenv("ACCESS_TTL", "15m")
    REFRESH_TTL = os.getenv("REFRESH_TTL", "7d")
    REFRESH_REUSE_DETECTION = _flag("REFRESH_REUSE_DETECTION", "true")
    # Accounts
    ALLOWED_ROLES = os.getenv("ALLOWED_ROLES", "user,admin").split(",")
    DEFAULT_ROLE = "user"
    PASSWORD_MIN_LENGTH = int(os.getenv("PASSWORD_MIN_LENGTH", "8"))
    # Storage
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///ecomanager.db")
    DB_TIMEOUT_SECONDS = int(os.getenv("DB_TIMEOUT_SECONDS", "5"))
    CORS_ORIGINS = _origins(DEV_ORIGINS)
    # 10mb body limit, same as the JSON parser limit on the old server
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024


class DevelopmentConfig(BaseConfig):
    DEBUG = True


class TestingConfig(BaseConfig):
    TESTING = True
    APP_ENV = "test"
    DATABASE_URL = "sqlite://"


class ProductionConfig(BaseConfig):
    DEBUG = False
    APP_ENV = "prod"
    CORS_ORIGINS = _origins(PROD_ORIGINS)


def get_config(name: str | None):
    """
    Select config class.
    - If name is provided, choose by name.
    - Else choose based on APP_ENV (dev/test/prod).
    """
    env = (name or os.getenv("APP_ENV", "dev")).lower()
    if env in ["prod", "production"]:
        return ProductionConfig
    if env in ["test", "testing"]:
        return TestingConfig
    return DevelopmentConfig


def validate_config(config) -> None:
    """
    Fail fast on settings the token layer cannot work without.
    Normalizes ACCESS_TTL / REFRESH_TTL to timedelta in place.
    """
    key = config.get("SIGNING_KEY")
    if not key:
        raise ConfigurationError("SIGNING_KEY is required")
    if len(key) < MIN_SIGNING_KEY_LENGTH:
        raise ConfigurationError(
            f"SIGNING_KEY must be at least {MIN_SIGNING_KEY_LENGTH} characters"
        )
    if not str(config.get("JWT_ALGORITHM", "")).startswith("HS"):
        raise ConfigurationError("JWT_ALGORITHM must be an HMAC algorithm (HS256/HS384/HS512)")

    for name in ("ACCESS_TTL", "REFRESH_TTL"):
        ttl = parse_duration(config.get(name))
        if ttl.total_seconds() <= 0:
            raise ConfigurationError(f"{name} must be positive")
        config[name] = ttl
