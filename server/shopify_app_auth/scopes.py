"""Access scope sets and the sufficiency checks built on them."""

import re
from typing import TYPE_CHECKING, Iterable, Iterator

if TYPE_CHECKING:
    from .models import Session

SCOPE_DELIMITER = ","

_IMPLIED_SCOPE = re.compile(r"^(unauthenticated_)?write_(.*)$")


def _split(scopes: str | Iterable[str] | None) -> list[str]:
    if scopes is None:
        return []
    if isinstance(scopes, str):
        scopes = scopes.split(SCOPE_DELIMITER)
    normalized: list[str] = []
    for scope in scopes:
        scope = scope.strip()
        if scope and scope not in normalized:
            normalized.append(scope)
    return normalized


def _implied(scope: str) -> str | None:
    match = _IMPLIED_SCOPE.match(scope)
    if not match:
        return None
    return f"{match.group(1) or ''}read_{match.group(2)}"


class AuthScopes:
    """A set of granted or required access scopes.

    ``write_orders`` implies ``read_orders``, so a set holding only the
    former covers a requirement for the latter.
    """

    def __init__(self, scopes: "str | Iterable[str] | AuthScopes | None" = None) -> None:
        if isinstance(scopes, AuthScopes):
            scopes = scopes.to_list()
        names = _split(scopes)
        implied = {_implied(name) for name in names} - {None}
        self._compressed = frozenset(name for name in names if name not in implied)
        self._expanded = self._compressed | implied

    def covers(self, other: "AuthScopes | str | Iterable[str]") -> bool:
        if not isinstance(other, AuthScopes):
            other = AuthScopes(other)
        return other._compressed <= self._expanded

    def to_list(self) -> list[str]:
        return sorted(self._compressed)

    def __str__(self) -> str:
        return SCOPE_DELIMITER.join(self.to_list())

    def __repr__(self) -> str:
        return f"AuthScopes({str(self)!r})"

    def __iter__(self) -> Iterator[str]:
        return iter(self.to_list())

    def __len__(self) -> int:
        return len(self._compressed)

    def __bool__(self) -> bool:
        return bool(self._compressed)

    def __contains__(self, scope: object) -> bool:
        return scope in self._expanded

    def __eq__(self, other: object) -> bool:
        if isinstance(other, AuthScopes):
            return self._compressed == other._compressed
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._compressed)


def is_sufficient(session: "Session", required: AuthScopes | str | Iterable[str]) -> bool:
    # Sessions stored before scopes were tracked carry no scope at all.
    if not session.scope:
        return True
    return session.scope.covers(required)


def needs_reauth(session: "Session | None", requested_shop: str | None) -> bool:
    if session is None or not requested_shop:
        return False
    return session.shop != requested_shop
