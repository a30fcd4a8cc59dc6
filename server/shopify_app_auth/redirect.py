"""Login URL and return path computation."""

from typing import Iterable, Mapping
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from .utils import make_safe, sanitize_shop_domain

RESERVED_PARAMS = frozenset({"shop", "hmac", "timestamp", "locale", "protocol", "return_to"})

Params = Iterable[tuple[str, str]]


def sanitized_params(params: Params) -> list[tuple[str, str]]:
    """Query parameters with ``shop`` replaced by its canonical domain."""
    result: list[tuple[str, str]] = []
    for key, value in params:
        if key == "shop":
            value = sanitize_shop_domain(value)
            if value is None:
                continue
        result.append((key, value))
    return result


def referer_shop(referer: str | None) -> str | None:
    if not referer:
        return None
    try:
        query = urlsplit(referer).query
    except ValueError:
        return None
    shop = dict(parse_qsl(query)).get("shop")
    return sanitize_shop_domain(shop) if shop else None


def _without_reserved(params: Params) -> list[tuple[str, str]]:
    return [(key, value) for key, value in params if key not in RESERVED_PARAMS]


def pending_return_to(
    method: str,
    path: str,
    params: Params,
    referer: str | None = None,
) -> str:
    """Path and query to come back to once the user has logged in again."""
    params = list(params)
    if method.upper() != "GET":
        # Non-GET requests cannot be replayed, go back to the page that sent them.
        referer_parts = urlsplit(referer or "/")
        path = referer_parts.path or "/"
        params = parse_qsl(referer_parts.query) + params
    query = urlencode(_without_reserved(sanitized_params(params)))
    return f"{path}?{query}" if query else path


def return_to_param_required(path: str, params: Params) -> bool:
    return path != "/" or bool(_without_reserved(sanitized_params(params)))


def build_login_url(
    base: str,
    shop: str | None = None,
    return_to: str | None = None,
    top_level: bool = False,
) -> str:
    query: dict[str, str] = {}
    if shop:
        query["shop"] = shop
    safe_return_to = make_safe(return_to, None)
    if safe_return_to:
        query["return_to"] = safe_return_to
    if top_level:
        query["top_level"] = "true"
    if not query:
        return base
    separator = "&" if "?" in base else "?"
    return f"{base}{separator}{urlencode(query)}"


def return_address_with_params(base: str, params: Mapping[str, str]) -> str:
    parts = urlsplit(base)
    merged = dict(parse_qsl(parts.query))
    merged.update(params)
    return urlunsplit(parts._replace(query=urlencode(merged)))
