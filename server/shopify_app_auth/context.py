from contextlib import contextmanager
from typing import Iterator, Protocol

from .config import settings
from .models import Session
from .scopes import AuthScopes


class PlatformContext(Protocol):
    def activate_session(self, session: Session) -> None: ...

    def deactivate_session(self) -> None: ...

    def current_configured_scope(self) -> AuthScopes: ...


class RequestPlatformContext:
    """Platform context owned by a single request.

    Handlers receive it explicitly; nothing is kept in thread-local or
    module state.
    """

    def __init__(self, scope: AuthScopes | str | None = None) -> None:
        self._scope = AuthScopes(settings.scope if scope is None else scope)
        self._active: Session | None = None

    @property
    def active_session(self) -> Session | None:
        return self._active

    def activate_session(self, session: Session) -> None:
        self._active = session

    def deactivate_session(self) -> None:
        self._active = None

    def current_configured_scope(self) -> AuthScopes:
        return self._scope


@contextmanager
def activated_session(context: PlatformContext, session: Session) -> Iterator[Session]:
    context.activate_session(session)
    try:
        yield session
    finally:
        context.deactivate_session()
