import time
from dataclasses import asdict, dataclass, field
from typing import Any

from .scopes import AuthScopes


@dataclass(frozen=True)
class AssociatedUser:
    id: int
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    email_verified: bool = False
    account_owner: bool = False
    locale: str = ""
    collaborator: bool = False


@dataclass(frozen=True)
class Session:
    """An authenticated principal for one shop, optionally bound to a user.

    Offline sessions are keyed by the shop domain, online sessions by
    ``"{shop}_{user_id}"``.
    """

    shop: str
    access_token: str | None = None
    scope: AuthScopes = field(default_factory=AuthScopes)
    is_online: bool = False
    associated_user: AssociatedUser | None = None
    expires_at: int | None = None
    admin_session: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.scope, AuthScopes):
            object.__setattr__(self, "scope", AuthScopes(self.scope))
        if self.associated_user is not None and not self.is_online:
            raise ValueError("Offline sessions cannot carry an associated user")
        if self.is_online and self.associated_user is None:
            raise ValueError("Online sessions need an associated user")

    @staticmethod
    def offline_id(shop: str) -> str:
        return shop

    @staticmethod
    def online_id(shop: str, user_id: int | str) -> str:
        return f"{shop}_{user_id}"

    @property
    def id(self) -> str:
        if self.is_online:
            return self.online_id(self.shop, self.associated_user.id)
        return self.offline_id(self.shop)

    def expired(self, now: int | None = None) -> bool:
        if self.expires_at is None:
            return False
        if now is None:
            now = int(time.time())
        return now >= self.expires_at

    def to_dict(self) -> dict[str, Any]:
        user = self.associated_user
        return {
            "shop": self.shop,
            "access_token": self.access_token,
            "scope": str(self.scope),
            "is_online": self.is_online,
            "associated_user": asdict(user) if user else None,
            "expires_at": self.expires_at,
            "admin_session": self.admin_session,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Session":
        user = payload.get("associated_user")
        return cls(
            shop=payload["shop"],
            access_token=payload.get("access_token"),
            scope=AuthScopes(payload.get("scope") or ""),
            is_online=bool(payload.get("is_online", False)),
            associated_user=AssociatedUser(**user) if user else None,
            expires_at=payload.get("expires_at"),
            admin_session=payload.get("admin_session"),
        )
