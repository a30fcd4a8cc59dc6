from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping

import structlog

from .config import settings
from .cookies import load_session_id
from .errors import CookieNotFoundError, InvalidJwtTokenError
from .itp import is_itp_affected
from .models import Session
from .session_token import SessionTokenPayload, decode_session_token
from .store import SessionStore, UserSessionStore

logger = structlog.get_logger(__name__)


def extract_bearer(authorization: str | None) -> str:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization.split(" ", 1)[1].strip()
    return ""


@dataclass(frozen=True)
class RequestCredentials:
    authorization: str | None = None
    cookies: Mapping[str, str] = field(default_factory=dict)
    user_agent: str | None = None
    # Set once the ITP test cookie has survived a round trip.
    cookies_persist: bool = False


class ResolutionFailure(str, Enum):
    NOT_FOUND = "not_found"
    INVALID_TOKEN = "invalid_token"


@dataclass(frozen=True)
class Resolution:
    session: Session | None = None
    failure: ResolutionFailure | None = None
    token_payload: SessionTokenPayload | None = None

    @property
    def ok(self) -> bool:
        return self.session is not None


class SessionResolver:
    def __init__(
        self,
        store: SessionStore,
        cookie_name: str | None = None,
        embedded: bool | None = None,
    ) -> None:
        self._store = store
        self._cookie_name = cookie_name or settings.session_cookie_name
        self._embedded = settings.embedded_app if embedded is None else embedded

    def resolve(self, credentials: RequestCredentials, is_online: bool) -> Resolution:
        try:
            session, payload = self._load(credentials, is_online)
        except InvalidJwtTokenError:
            return Resolution(failure=ResolutionFailure.INVALID_TOKEN)
        except CookieNotFoundError:
            return Resolution(failure=ResolutionFailure.NOT_FOUND)

        if session is None:
            return Resolution(failure=ResolutionFailure.NOT_FOUND, token_payload=payload)
        if session.expired():
            logger.info("session_expired", session_id=session.id)
            return Resolution(failure=ResolutionFailure.NOT_FOUND, token_payload=payload)
        return Resolution(session=session, token_payload=payload)

    def load_current_session(
        self, credentials: RequestCredentials, is_online: bool
    ) -> Session | None:
        """Raises ``InvalidJwtTokenError`` or ``CookieNotFoundError``."""
        return self._load(credentials, is_online)[0]

    def _load(
        self, credentials: RequestCredentials, is_online: bool
    ) -> tuple[Session | None, SessionTokenPayload | None]:
        bearer = extract_bearer(credentials.authorization)
        if bearer:
            payload = decode_session_token(bearer)
            return self._load_from_token(payload, is_online), payload
        return self._load_from_cookie(credentials), None

    def _load_from_token(
        self, payload: SessionTokenPayload, is_online: bool
    ) -> Session | None:
        if not is_online:
            return self._store.retrieve(Session.offline_id(payload.shop))
        if not payload.user_id:
            raise InvalidJwtTokenError("Session token has no user for an online session")
        if isinstance(self._store, UserSessionStore):
            session = self._store.retrieve_by_user_id(payload.user_id)
            # The user index holds one session per user, possibly for another shop.
            if session is not None and session.shop != payload.shop:
                return None
            return session
        return self._store.retrieve(Session.online_id(payload.shop, payload.user_id))

    def _load_from_cookie(self, credentials: RequestCredentials) -> Session | None:
        if (
            self._embedded
            and is_itp_affected(credentials.user_agent)
            and not credentials.cookies_persist
        ):
            logger.info("session_cookie_untrusted", reason="itp")
            raise CookieNotFoundError("Cookies are blocked for this browser")
        session_id = load_session_id(credentials.cookies.get(self._cookie_name))
        if not session_id:
            logger.info("session_cookie_missing", cookie=self._cookie_name)
            raise CookieNotFoundError()
        return self._store.retrieve(session_id)
