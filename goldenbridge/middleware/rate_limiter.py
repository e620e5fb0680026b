"""
Per-blueprint request limits (Flask-Limiter, keyed on remote address).

The Limiter in goldenbridge/__init__.py has no default limits; this
attaches one limit per blueprint after registration. Login and register
get the tightest limit. Health probes are exempt.
"""

import logging

logger = logging.getLogger(__name__)

BLUEPRINT_LIMITS = {
    "auth": "10/minute",
    "user": "120/minute",
    "program": "120/minute",
    "finance": "120/minute",
    "milestone": "120/minute",
    "notification": "300/minute",
    "audit": "300/minute",
    "report": "300/minute",
}


def init_rate_limits(app, limiter):
    if app.config.get("TESTING") or not app.config.get("RATELIMIT_ENABLED", True):
        logger.debug("Rate limits off")
        return

    for name, limit in BLUEPRINT_LIMITS.items():
        blueprint = app.blueprints.get(name)
        if blueprint is not None:
            limiter.limit(limit)(blueprint)

    if "health" in app.blueprints:
        limiter.exempt(app.blueprints["health"])

    logger.info("Rate limits applied to %d blueprints", len(BLUEPRINT_LIMITS))
