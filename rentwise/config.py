import os
import tempfile
from datetime import timedelta
from decimal import Decimal


def normalize_database_url(raw_url: str) -> str:
    if raw_url.startswith("postgres://"):
        return raw_url.replace("postgres://", "postgresql://", 1)
    return raw_url


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-unsafe-key")
    SQLALCHEMY_DATABASE_URI = normalize_database_url(
        os.getenv("DATABASE_URL", "sqlite:///instance/rentwise.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }
    CACHE_TYPE = os.getenv("CACHE_TYPE", "SimpleCache")
    CACHE_DEFAULT_TIMEOUT = int(os.getenv("CACHE_DEFAULT_TIMEOUT", "60"))
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    RATELIMIT_DEFAULT = os.getenv("RATELIMIT_DEFAULT", "500 per day;120 per hour")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "false").lower() == "true"
    PERMANENT_SESSION_LIFETIME = timedelta(days=int(os.getenv("SESSION_DAYS", "7")))
    API_TOKEN_MAX_AGE_SECONDS = int(os.getenv("API_TOKEN_MAX_AGE_SECONDS", str(7 * 24 * 3600)))

    MAX_CONTENT_LENGTH = int(os.getenv("MAX_UPLOAD_MB", "5")) * 1024 * 1024
    UPLOAD_DIR = os.getenv("UPLOAD_DIR", "static/uploads")
    SENTRY_DSN = os.getenv("SENTRY_DSN")

    PAYMENT_GATEWAY = os.getenv("PAYMENT_GATEWAY", "paymob")
    PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "EGP")
    PAYMENT_RETURN_URL = os.getenv("PAYMENT_RETURN_URL", "http://localhost:4200/payment-callback")
    GATEWAY_TIMEOUT_SECONDS = float(os.getenv("GATEWAY_TIMEOUT_SECONDS", "10"))
    ADVERTISE_COMMISSION_RATE = Decimal(os.getenv("ADVERTISE_COMMISSION_RATE", "0.05"))
    BOOKING_COMMISSION_RATE = Decimal(os.getenv("BOOKING_COMMISSION_RATE", "0.05"))
    PENDING_PAYMENT_TTL_MINUTES = int(os.getenv("PENDING_PAYMENT_TTL_MINUTES", str(48 * 60)))
    # Callbacks are unauthenticated; outside development they must carry a verifiable signature.
    REQUIRE_SIGNED_CALLBACKS = os.getenv("REQUIRE_SIGNED_CALLBACKS", "true").lower() == "true"

    PAYMOB_API_BASE_URL = os.getenv("PAYMOB_API_BASE_URL", "https://accept.paymob.com/api")
    PAYMOB_API_KEY = os.getenv("PAYMOB_API_KEY", "")
    PAYMOB_INTEGRATION_ID = os.getenv("PAYMOB_INTEGRATION_ID", "")
    PAYMOB_IFRAME_ID = os.getenv("PAYMOB_IFRAME_ID", "")
    PAYMOB_HMAC_SECRET = os.getenv("PAYMOB_HMAC_SECRET", "")

    STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "")
    STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET", "")


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    REQUIRE_SIGNED_CALLBACKS = os.getenv("REQUIRE_SIGNED_CALLBACKS", "false").lower() == "true"
    SESSION_COOKIE_SECURE = False
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")


class ProductionConfig(BaseConfig):
    DEBUG = False
    TESTING = False
    SESSION_COOKIE_SECURE = True


class TestingConfig(BaseConfig):
    TESTING = True
    SECRET_KEY = "testing-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    CACHE_TYPE = "NullCache"
    RATELIMIT_ENABLED = False
    REQUIRE_SIGNED_CALLBACKS = False
    UPLOAD_DIR = os.path.join(tempfile.gettempdir(), "rentwise-test-uploads")
    PAYMENT_CURRENCY = "EGP"
    ADVERTISE_COMMISSION_RATE = Decimal("0.05")
    BOOKING_COMMISSION_RATE = Decimal("0.05")
    PENDING_PAYMENT_TTL_MINUTES = 60


config_by_env = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}
