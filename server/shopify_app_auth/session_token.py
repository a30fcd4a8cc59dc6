from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit

import jwt
import structlog

from .config import settings
from .errors import InvalidJwtTokenError

logger = structlog.get_logger(__name__)

REQUIRED_CLAIMS = ["iss", "dest", "aud", "exp", "nbf"]


def _host(url: str) -> str:
    return (urlsplit(url).hostname or "").lower()


@dataclass(frozen=True)
class SessionTokenPayload:
    """Claims of a session token issued by the admin to the embedded app.

    iss: the shop's admin URL.
    dest: the shop URL.
    aud: the API key of the app.
    sub: the admin user the token was issued for, absent for shop tokens.
    exp / nbf / iat: expiry, activation and issue times.
    sid: a session id per user and app.
    """

    iss: str
    dest: str
    aud: str
    exp: int
    nbf: int
    iat: int | None = None
    sub: str | None = None
    jti: str | None = None
    sid: str | None = None

    @property
    def shop(self) -> str:
        return _host(self.dest)

    @property
    def user_id(self) -> str | None:
        return str(self.sub) if self.sub else None

    @property
    def expires_at(self) -> int:
        return int(self.exp)

    def expire_at_with_gap(self, gap_seconds: int | None = None) -> int:
        if gap_seconds is None:
            gap_seconds = settings.jwt_expire_gap_seconds
        return self.expires_at - gap_seconds

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> "SessionTokenPayload":
        aud = claims["aud"]
        if isinstance(aud, list):
            aud = aud[0] if aud else ""
        return cls(
            iss=claims["iss"],
            dest=claims["dest"],
            aud=aud,
            exp=int(claims["exp"]),
            nbf=int(claims["nbf"]),
            iat=claims.get("iat"),
            sub=claims.get("sub"),
            jti=claims.get("jti"),
            sid=claims.get("sid"),
        )


def decode_session_token(
    token: str,
    secret: str | None = None,
    api_key: str | None = None,
    leeway: int | None = None,
) -> SessionTokenPayload:
    secret = secret or settings.api_secret_key
    api_key = api_key or settings.api_key
    if leeway is None:
        leeway = settings.jwt_leeway_seconds
    if not token:
        raise InvalidJwtTokenError("Missing session token")
    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=["HS256"],
            audience=api_key,
            leeway=leeway,
            options={"require": REQUIRED_CLAIMS},
        )
    except jwt.PyJWTError as exc:
        logger.info("session_token_invalid", error=str(exc))
        raise InvalidJwtTokenError(f"Invalid session token: {exc}") from exc

    payload = SessionTokenPayload.from_claims(claims)
    if not payload.shop or _host(payload.iss) != payload.shop:
        logger.info("session_token_domain_mismatch", iss=payload.iss, dest=payload.dest)
        raise InvalidJwtTokenError("Session token issuer does not match destination")
    return payload
