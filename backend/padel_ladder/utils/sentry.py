import logging
import os

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration

from ..exceptions import LadderError

logger = logging.getLogger(__name__)


def _sample_rate(env_var: str) -> float:
    """Read a Sentry sample rate, clamped to ``[0, 1]``; unset or invalid means 0."""

    raw_value = os.getenv(env_var)
    if raw_value is None:
        return 0.0

    try:
        value = float(raw_value)
    except ValueError:
        logger.warning("%s is not a valid float (got %r); sampling disabled", env_var, raw_value)
        return 0.0

    if not 0.0 <= value <= 1.0:
        clamped = min(max(value, 0.0), 1.0)
        logger.warning("%s must be between 0 and 1; using %.2f", env_var, clamped)
        return clamped

    return value


def drop_rejected_actions(event, hint):
    # Rejected challenges, scores and joins are answered with a 4xx and are
    # not failures of the service.
    exc_info = hint.get("exc_info") if hint else None
    if exc_info:
        exc = exc_info[1]
        if isinstance(exc, LadderError) and exc.status_code < 500:
            return None
    return event


def init_sentry() -> bool:
    """Initialise Sentry when ``SENTRY_DSN`` is set; return whether it was."""

    dsn = os.getenv("SENTRY_DSN")
    if not dsn:
        logger.info("SENTRY_DSN not provided; skipping Sentry initialization.")
        return False

    environment = (os.getenv("SENTRY_ENVIRONMENT") or "").strip() or None
    release = (os.getenv("SENTRY_RELEASE") or "").strip() or None

    sentry_sdk.init(
        dsn=dsn,
        integrations=[FastApiIntegration()],
        environment=environment,
        release=release,
        traces_sample_rate=_sample_rate("SENTRY_TRACES_SAMPLE_RATE"),
        profiles_sample_rate=_sample_rate("SENTRY_PROFILES_SAMPLE_RATE"),
        before_send=drop_rejected_actions,
    )
    sentry_sdk.set_tag("service", "padel-ladder")
    logger.info(
        "Initialized Sentry for padel-ladder%s",
        f" (environment={environment})" if environment else "",
    )
    return True
