import logging
import sys
from typing import Any, Dict

import structlog
from starlette.requests import Request

from .config import settings
from .utils import sanitize_shop_domain

# Credentials that must never reach a log line.
_SECRET_KEYS = frozenset({"access_token", "authorization", "session_token", "cookie"})


def _add_app_context(_: Any, __: Any, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    event_dict.setdefault("service", "shopify-app-auth")
    event_dict.setdefault("environment", settings.environment)
    event_dict.setdefault("embedded", settings.embedded_app)
    return event_dict


def _redact_secrets(_: Any, __: Any, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    for key in _SECRET_KEYS.intersection(event_dict):
        event_dict[key] = "[redacted]"
    return event_dict


def configure_logging(level: str | None = None) -> None:
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            _add_app_context,
            _redact_secrets,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel((level or settings.log_level).upper())


def bind_request_context(request: Request) -> None:
    """Scope log context to one request: method, path and the shop it targets."""
    structlog.contextvars.clear_contextvars()
    context = {"method": request.method, "path": request.url.path}
    shop = sanitize_shop_domain(request.query_params.get("shop"))
    if shop:
        context["shop"] = shop
    structlog.contextvars.bind_contextvars(**context)
