import json
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator

import structlog
from fastapi import Depends, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from .config import settings
from .context import PlatformContext, RequestPlatformContext, activated_session
from .errors import HttpResponseError, ShopifyDomainNotFound, ShopifyHostNotFound
from .models import Session
from .redirect import (
    build_login_url,
    pending_return_to,
    referer_shop,
    return_address_with_params,
    return_to_param_required,
)
from .scopes import is_sufficient, needs_reauth
from .session import RequestCredentials, Resolution, ResolutionFailure, SessionResolver
from .session_token import SessionTokenPayload
from .store import SessionStore
from .telemetry import record_decision
from .utils import sanitize_shop_domain

logger = structlog.get_logger(__name__)

ACCESS_TOKEN_REQUIRED_HEADER = "X-Shopify-API-Request-Failure-Unauthorized"
RETURN_TO_KEY = "return_to"
COOKIES_PERSIST_KEY = "shopify.cookies_persist"
REAUTHORIZE_HEADER = "X-Shopify-API-Request-Failure-Reauthorize"
REAUTHORIZE_URL_HEADER = "X-Shopify-API-Request-Failure-Reauthorize-Url"

_TOP_LEVEL_REDIRECT = (
    "<!DOCTYPE html><html><head><script>"
    "window.top.location.href = {target};"
    "</script></head><body></body></html>"
)


class AccessState(str, Enum):
    AUTHORIZED = "authorized"
    REAUTH_REQUIRED = "reauth_required"
    BLOCKED = "blocked"


class ReauthReason(str, Enum):
    NOT_FOUND = "not_found"
    INVALID_TOKEN = "invalid_token"
    SHOP_MISMATCH = "shop_mismatch"
    SESSION_MISMATCH = "session_mismatch"
    SCOPE_INSUFFICIENT = "scope_insufficient"
    UPSTREAM_UNAUTHORIZED = "upstream_unauthorized"


@dataclass(frozen=True)
class Decision:
    state: AccessState
    reason: ReauthReason | None = None
    session: Session | None = None
    clear_session: bool = False


class ReauthRequired(Exception):
    def __init__(self, decision: Decision, response: Response) -> None:
        super().__init__(decision.reason.value if decision.reason else decision.state.value)
        self.decision = decision
        self.response = response


@dataclass
class ActiveSession:
    """What an authenticated handler gets to work with."""

    session: Session
    context: PlatformContext
    token_payload: SessionTokenPayload | None = None

    @property
    def shop(self) -> str:
        return self.session.shop

    @property
    def jwt_expire_at(self) -> int | None:
        if self.token_payload is None:
            return None
        return self.token_payload.expire_at_with_gap()


class LoginProtection:
    """Session resolution and login redirects for a single request."""

    def __init__(
        self,
        request: Request,
        store: SessionStore,
        context: PlatformContext | None = None,
        is_online: bool | None = None,
        embedded: bool | None = None,
    ) -> None:
        self._request = request
        self._store = store
        self.context = context or RequestPlatformContext()
        self._is_online = settings.user_session_storage if is_online is None else is_online
        self._embedded = settings.embedded_app if embedded is None else embedded
        self._resolution: Resolution | None = None

    @property
    def _session_data(self) -> dict:
        # Present whenever SessionMiddleware is installed.
        return self._request.session if "session" in self._request.scope else {}

    @property
    def _params(self) -> list[tuple[str, str]]:
        return self._request.query_params.multi_items()

    @property
    def is_xhr(self) -> bool:
        requested_with = self._request.headers.get("x-requested-with", "")
        authorization = self._request.headers.get("authorization", "")
        return (
            requested_with.lower() == "xmlhttprequest"
            or authorization.lower().startswith("bearer ")
        )

    def credentials(self) -> RequestCredentials:
        return RequestCredentials(
            authorization=self._request.headers.get("authorization"),
            cookies=dict(self._request.cookies),
            user_agent=self._request.headers.get("user-agent"),
            cookies_persist=bool(self._session_data.get(COOKIES_PERSIST_KEY)),
        )

    @property
    def resolution(self) -> Resolution:
        if self._resolution is None:
            resolver = SessionResolver(self._store, embedded=self._embedded)
            self._resolution = resolver.resolve(self.credentials(), self._is_online)
        return self._resolution

    @property
    def current_session(self) -> Session | None:
        return self.resolution.session

    def sanitized_shop_name(self) -> str | None:
        return sanitize_shop_domain(self._request.query_params.get("shop"))

    def referer_sanitized_shop_name(self) -> str | None:
        return referer_shop(self._request.headers.get("referer"))

    def requested_shop(self) -> str | None:
        """Shop the request targets: ``shop`` param first, then the referer."""
        raw = self._request.query_params.get("shop")
        if raw:
            # An unusable value still has to count as a different shop.
            return self.sanitized_shop_name() or raw.strip().lower()
        return self.referer_sanitized_shop_name()

    def decide(self) -> Decision:
        resolution = self.resolution
        if resolution.session is None:
            reason = (
                ReauthReason.INVALID_TOKEN
                if resolution.failure is ResolutionFailure.INVALID_TOKEN
                else ReauthReason.NOT_FOUND
            )
            return Decision(AccessState.REAUTH_REQUIRED, reason)

        session = resolution.session
        if needs_reauth(session, self.requested_shop()):
            return Decision(
                AccessState.REAUTH_REQUIRED, ReauthReason.SHOP_MISMATCH, session, True
            )
        admin_session = self._request.query_params.get("session")
        if session.admin_session and admin_session and session.admin_session != admin_session:
            return Decision(
                AccessState.REAUTH_REQUIRED, ReauthReason.SESSION_MISMATCH, session, True
            )
        if not is_sufficient(session, self.context.current_configured_scope()):
            return Decision(
                AccessState.REAUTH_REQUIRED, ReauthReason.SCOPE_INSUFFICIENT, session
            )
        return Decision(AccessState.AUTHORIZED, session=session)

    def signal_access_token_required(self, response: Response) -> None:
        response.headers[ACCESS_TOKEN_REQUIRED_HEADER] = "true"

    def reauth_response(self, decision: Decision) -> Response:
        logger.info(
            "reauth_required",
            reason=decision.reason.value if decision.reason else None,
            path=self._request.url.path,
            xhr=self.is_xhr,
        )
        if self.is_xhr:
            response = Response(status_code=401)
        else:
            response = self.redirect_to_login()
        self.signal_access_token_required(response)
        if decision.clear_session:
            self.clear_session(response)
        return response

    def redirect_to_login(self) -> Response:
        self._session_data[RETURN_TO_KEY] = pending_return_to(
            self._request.method,
            self._request.url.path,
            self._params,
            self._request.headers.get("referer"),
        )
        return self.fullpage_redirect_to(self.login_url(top_level=self._embedded))

    def fullpage_redirect_to(self, url: str) -> Response:
        """Send the whole window to ``url``, breaking out of the admin iframe when embedded."""
        if not self._embedded:
            return RedirectResponse(url, status_code=302)
        # json.dumps leaves "<" alone, and "</script>" in the url would close the tag.
        target = json.dumps(url).replace("<", "\\u003c")
        response = HTMLResponse(_TOP_LEVEL_REDIRECT.format(target=target))
        response.headers[REAUTHORIZE_HEADER] = "1"
        response.headers[REAUTHORIZE_URL_HEADER] = url
        return response

    def login_url(self, top_level: bool = False) -> str:
        shop = None
        if self._request.query_params.get("shop"):
            shop = self.sanitized_shop_name()
        shop = shop or self.referer_sanitized_shop_name()

        return_to = None
        if return_to_param_required(self._request.url.path, self._params):
            return_to = self._session_data.get(RETURN_TO_KEY) or self._request.query_params.get(
                RETURN_TO_KEY
            )
        return build_login_url(settings.login_url, shop, return_to, top_level)

    def clear_session(self, response: Response, delete_stored: bool = False) -> None:
        response.delete_cookie(settings.session_cookie_name, path="/")
        session = self.current_session
        if delete_stored and session is not None:
            self._store.delete(session.id)
            logger.info("session_deleted", session_id=session.id)

    def close_session(self) -> Response:
        response = self.fullpage_redirect_to(self.login_url(top_level=self._embedded))
        self.clear_session(response, delete_stored=True)
        logger.info("session_closed", path=self._request.url.path)
        return response

    def classify_http_error(self, error: HttpResponseError) -> Decision:
        if error.response_code == 401:
            return Decision(
                AccessState.REAUTH_REQUIRED,
                ReauthReason.UPSTREAM_UNAUTHORIZED,
                self.current_session,
                True,
            )
        return Decision(AccessState.BLOCKED, session=self.current_session)

    def handle_http_error(self, error: HttpResponseError) -> Response:
        decision = self.classify_http_error(error)
        record_decision(decision)
        if decision.state is AccessState.BLOCKED:
            raise error
        return self.close_session()

    def host(self) -> str:
        host = self._request.query_params.get("host")
        if host:
            return host
        raise ShopifyHostNotFound()

    def current_shopify_domain(self) -> str:
        session = self.current_session
        domain = self.sanitized_shop_name() or (session.shop if session else None)
        if domain:
            return domain
        raise ShopifyDomainNotFound()

    def return_address(self) -> str:
        """Where to land after login; consumes the pending ``return_to``."""
        try:
            params = {"shop": self.current_shopify_domain(), "host": self.host()}
        except (ShopifyDomainNotFound, ShopifyHostNotFound):
            return self._base_return_address()
        return return_address_with_params(self._base_return_address(), params)

    def _base_return_address(self) -> str:
        return self._session_data.pop(RETURN_TO_KEY, None) or settings.root_url


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store


async def activate_shopify_session(
    request: Request, store: SessionStore = Depends(get_session_store)
) -> AsyncIterator[ActiveSession]:
    protection = LoginProtection(request, store)
    request.state.login_protection = protection
    decision = protection.decide()
    record_decision(decision)
    if decision.state is not AccessState.AUTHORIZED:
        raise ReauthRequired(decision, protection.reauth_response(decision))

    resolution = protection.resolution
    with activated_session(protection.context, decision.session):
        yield ActiveSession(decision.session, protection.context, resolution.token_payload)
