import os
import time
import uuid

import jwt
from locust import HttpUser, task, between

API_KEY = os.getenv("API_KEY", "")
API_SECRET_KEY = os.getenv("API_SECRET_KEY", "")
SHOP = os.getenv("SHOP", "example.myshopify.com")


def _session_token() -> str:
    now = int(time.time())
    claims = {
        "iss": f"https://{SHOP}/admin",
        "dest": f"https://{SHOP}",
        "aud": API_KEY,
        "exp": now + 60,
        "nbf": now,
        "iat": now,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(claims, API_SECRET_KEY, algorithm="HS256")


class EmbeddedAppUser(HttpUser):
    wait_time = between(1, 3)

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {_session_token()}"}

    @task(3)
    def home(self):
        self.client.get("/", headers=self._headers(), name="home")

    @task(2)
    def shop(self):
        self.client.get("/api/shop", headers=self._headers(), name="api_shop")

    @task(1)
    def missing_token(self):
        with self.client.get(
            "/",
            headers={"X-Requested-With": "XMLHttpRequest"},
            name="no_token",
            catch_response=True,
        ) as response:
            if response.status_code == 401:
                response.success()
