import re
from urllib.parse import urlsplit

from .config import settings

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def _shop_domain_pattern(myshopify_domain: str) -> re.Pattern[str]:
    domains = {myshopify_domain, "myshopify.io"}
    alternatives = "|".join(re.escape(domain) for domain in sorted(domains))
    return re.compile(rf"^[a-z0-9][a-z0-9\-]*[a-z0-9]\.({alternatives})$")


def sanitize_shop_domain(raw: object, myshopify_domain: str | None = None) -> str | None:
    """Return a canonical ``{name}.myshopify.com`` domain or ``None``."""
    if not isinstance(raw, str):
        return None
    domain = myshopify_domain or settings.myshopify_domain
    name = raw.strip().lower()
    if not name:
        return None
    if "://" not in name:
        name = f"https://{name}"
    try:
        parts = urlsplit(name)
    except ValueError:
        return None
    host = parts.hostname or ""
    # Credentials or ports in the netloc never belong to a shop domain.
    if not host or parts.netloc != host:
        return None
    if "." not in host:
        host = f"{host}.{domain}"
    if _shop_domain_pattern(domain).match(host):
        return host
    return None


def make_safe(candidate: object, default: str | None = None) -> str | None:
    """Keep ``candidate`` only if it is a relative path on this origin."""
    if not isinstance(candidate, str):
        return default
    path = candidate.strip()
    if not path or _CONTROL_CHARS.search(path) or "\\" in path:
        return default
    if not path.startswith("/") or path.startswith("//"):
        return default
    try:
        parts = urlsplit(path)
    except ValueError:
        return default
    if parts.scheme or parts.netloc:
        return default
    return path
