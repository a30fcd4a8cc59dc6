import os
import time
import uuid

import jwt
import pytest


def _set_default(key: str, value: str) -> None:
    os.environ.setdefault(key, value)


_set_default("API_KEY", "test-api-key")
_set_default("API_SECRET_KEY", "test-api-secret")
_set_default("SCOPE", "read_products,write_orders")
_set_default("SESSION_STORE_MODE", "memory")
_set_default("EMBEDDED_APP", "true")
_set_default("LOGIN_URL", "/login")
_set_default("DISABLE_OTEL", "true")


def make_session_token(
    shop: str = "shop1.myshopify.com",
    user_id: str | None = "42",
    expires_in: int = 60,
    secret: str = "test-api-secret",
    audience: str = "test-api-key",
    **overrides,
) -> str:
    now = int(time.time())
    claims = {
        "iss": f"https://{shop}/admin",
        "dest": f"https://{shop}",
        "aud": audience,
        "exp": now + expires_in,
        "nbf": now - 1,
        "iat": now - 1,
        "jti": str(uuid.uuid4()),
        "sid": "sid-1",
    }
    if user_id is not None:
        claims["sub"] = user_id
    claims.update(overrides)
    return jwt.encode(claims, secret, algorithm="HS256")


@pytest.fixture
def session_token():
    return make_session_token
