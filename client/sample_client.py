import os
import time
import uuid

import httpx
import jwt

BASE_URL = os.getenv("APP_BASE_URL", "http://localhost:8080")
API_KEY = os.getenv("API_KEY", "")
API_SECRET_KEY = os.getenv("API_SECRET_KEY", "")
SHOP = os.getenv("SHOP", "example.myshopify.com")
USER_ID = os.getenv("SHOPIFY_USER_ID", "")


def mint_session_token(shop: str, user_id: str | None = None, ttl: int = 60) -> str:
    now = int(time.time())
    claims = {
        "iss": f"https://{shop}/admin",
        "dest": f"https://{shop}",
        "aud": API_KEY,
        "exp": now + ttl,
        "nbf": now,
        "iat": now,
        "jti": str(uuid.uuid4()),
        "sid": str(uuid.uuid4()),
    }
    if user_id:
        claims["sub"] = user_id
    return jwt.encode(claims, API_SECRET_KEY, algorithm="HS256")


def get(path: str) -> httpx.Response:
    token = mint_session_token(SHOP, USER_ID or None)
    headers = {"Authorization": f"Bearer {token}"}
    return httpx.get(f"{BASE_URL}{path}", headers=headers, timeout=10.0)


if __name__ == "__main__":
    response = get("/api/shop")
    print(response.status_code, response.headers.get("X-Shopify-API-Request-Failure-Unauthorized"))
    print(response.text)
