from typing import Any

import httpx

from .config import settings
from .errors import HttpResponseError
from .models import Session


class AdminClient:
    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._client = client or httpx.AsyncClient(timeout=settings.http_timeout_seconds)

    def url_for(self, session: Session, path: str) -> str:
        return f"https://{session.shop}/admin/api/{settings.api_version}/{path.lstrip('/')}"

    async def request(
        self,
        method: str,
        path: str,
        session: Session,
        headers: dict | None = None,
        **kwargs: Any,
    ) -> dict:
        if not session.access_token:
            raise HttpResponseError(401, "Session has no access token")
        req_headers = {
            "X-Shopify-Access-Token": session.access_token,
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if headers:
            req_headers.update(headers)

        response = await self._client.request(
            method, self.url_for(session, path), headers=req_headers, **kwargs
        )
        if response.status_code >= 400:
            raise HttpResponseError(
                response.status_code, f"Admin API error: {response.text}"
            )
        if response.status_code == 204:
            return {}
        return response.json()

    async def close(self) -> None:
        await self._client.aclose()
