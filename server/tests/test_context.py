import pytest

from shopify_app_auth.context import RequestPlatformContext, activated_session
from shopify_app_auth.models import Session
from shopify_app_auth.scopes import AuthScopes


def test_context_uses_configured_scope_by_default():
    context = RequestPlatformContext()
    assert context.current_configured_scope() == AuthScopes("read_products,write_orders")


def test_activated_session_deactivates_on_exit():
    context = RequestPlatformContext(scope="read_products")
    session = Session(shop="shop1.myshopify.com")

    with activated_session(context, session) as active:
        assert active is session
        assert context.active_session is session

    assert context.active_session is None


def test_activated_session_deactivates_on_error():
    context = RequestPlatformContext(scope="read_products")

    with pytest.raises(RuntimeError):
        with activated_session(context, Session(shop="shop1.myshopify.com")):
            raise RuntimeError("handler failed")

    assert context.active_session is None


def test_contexts_do_not_share_sessions():
    first = RequestPlatformContext()
    second = RequestPlatformContext()
    first.activate_session(Session(shop="shop1.myshopify.com"))

    assert second.active_session is None
