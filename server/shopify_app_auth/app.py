from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from .admin import AdminClient
from .config import settings
from .errors import HttpResponseError, ShopifyAppError, as_error_payload
from .itp import needs_test_cookie
from .logging import bind_request_context, configure_logging
from .login_protection import (
    COOKIES_PERSIST_KEY,
    ActiveSession,
    LoginProtection,
    ReauthRequired,
    activate_shopify_session,
)
from .store import SessionStore, create_session_store
from .telemetry import configure_telemetry, instrument_fastapi


def _protection(request: Request) -> LoginProtection:
    protection = getattr(request.state, "login_protection", None)
    if protection is None:
        protection = LoginProtection(request, request.app.state.session_store)
    return protection


def create_app(
    store: SessionStore | None = None, admin: AdminClient | None = None
) -> FastAPI:
    configure_logging()
    telemetry = not settings.disable_otel and bool(settings.otel_exporter_otlp_endpoint)
    if telemetry:
        configure_telemetry(
            "shopify-app-auth", settings.otel_exporter_otlp_endpoint, settings.datadog_api_key
        )

    admin_client = admin or AdminClient()

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        await admin_client.close()

    app = FastAPI(lifespan=lifespan)
    app.state.session_store = store or create_session_store()
    app.state.admin_client = admin_client

    @app.middleware("http")
    async def bind_log_context(request: Request, call_next):
        bind_request_context(request)
        return await call_next(request)

    @app.middleware("http")
    async def set_test_cookie(request: Request, call_next):
        response = await call_next(request)
        if needs_test_cookie(request.headers.get("user-agent")):
            request.session[COOKIES_PERSIST_KEY] = True
        return response

    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.api_secret_key,
        session_cookie=settings.state_cookie_name,
        same_site="none" if settings.embedded_app else "lax",
        https_only=settings.embedded_app,
    )

    @app.exception_handler(ReauthRequired)
    async def handle_reauth_required(_, exc: ReauthRequired):
        return exc.response

    @app.exception_handler(HttpResponseError)
    async def handle_http_error(request: Request, exc: HttpResponseError):
        return _protection(request).handle_http_error(exc)

    @app.exception_handler(ShopifyAppError)
    async def handle_app_error(_, exc: ShopifyAppError):
        return JSONResponse(status_code=exc.status, content=as_error_payload(exc))

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {"status": "ok"}

    @app.get("/")
    async def home(active: ActiveSession = Depends(activate_shopify_session)) -> dict[str, Any]:
        session = active.session
        return {
            "shop": session.shop,
            "online": session.is_online,
            "scope": session.scope.to_list(),
            "jwt_expire_at": active.jwt_expire_at,
        }

    @app.get("/api/shop")
    async def shop(
        request: Request, active: ActiveSession = Depends(activate_shopify_session)
    ) -> dict[str, Any]:
        client: AdminClient = request.app.state.admin_client
        return await client.request("GET", "shop.json", active.session)

    @app.post("/logout")
    async def logout(request: Request):
        return _protection(request).close_session()

    if telemetry:
        instrument_fastapi(app)
    return app


app = create_app()
