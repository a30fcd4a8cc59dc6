from itsdangerous import BadSignature, URLSafeSerializer

from .config import settings

SESSION_COOKIE_SALT = "shopify-app-session"


def _serializer(secret: str | None = None) -> URLSafeSerializer:
    return URLSafeSerializer(secret or settings.api_secret_key, salt=SESSION_COOKIE_SALT)


def sign_session_id(session_id: str, secret: str | None = None) -> str:
    return _serializer(secret).dumps(session_id)


def load_session_id(raw: str | None, secret: str | None = None) -> str | None:
    if not raw:
        return None
    try:
        value = _serializer(secret).loads(raw)
    except BadSignature:
        return None
    return value if isinstance(value, str) and value else None
