import os

# Settings are cached on first use; pin the test environment before any import.
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("PAYPACK_CLIENT_ID", "test-client-id")
os.environ.setdefault("PAYPACK_CLIENT_SECRET", "test-client-secret")
os.environ.setdefault("PAYPACK_WEBHOOK_SECRET", "test-webhook-secret")
os.environ.setdefault("APP_URL", "http://testserver")

from libs.common.config import get_settings  # noqa: E402

get_settings.cache_clear()
