import logging
import os

logger = logging.getLogger(__name__)


def _canon_prefix(val):
    """
    Normalize API prefix to always be exactly like '/api':
      - defaults to '/api' when unset/empty
      - ensures a single leading slash
      - removes any trailing slash (except for root)
    """
    val = (val or "/api").strip()
    if not val.startswith("/"):
        val = "/" + val
    if len(val) > 1 and val.endswith("/"):
        val = val[:-1]
    return val


def _positive_float(env_var: str, default: float) -> float:
    raw_value = os.getenv(env_var)
    if raw_value is None:
        return default

    try:
        value = float(raw_value)
    except ValueError:
        logger.warning(
            "%s is not a valid float (got %r); defaulting to %.2f",
            env_var,
            raw_value,
            default,
        )
        return default

    if value <= 0:
        logger.warning("%s must be positive; defaulting to %.2f", env_var, default)
        return default

    return value


API_PREFIX = _canon_prefix(os.getenv("API_PREFIX"))

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379")
CHANGES_CHANNEL = os.getenv("LADDER_CHANGES_CHANNEL", "ladder:changes")

# Client-side deadline for user actions; the store call itself is not cancelled.
ACTION_TIMEOUT_SECONDS = _positive_float("LADDER_ACTION_TIMEOUT_SECONDS", 15.0)
SETTINGS_CACHE_TTL_SECONDS = _positive_float("SETTINGS_CACHE_TTL_SECONDS", 30.0)


def get_admin_secret() -> str | None:
    return os.getenv("ADMIN_SECRET") or None
