from shopify_app_auth.models import Session
from shopify_app_auth.scopes import AuthScopes, is_sufficient, needs_reauth


def test_auth_scopes_parses_and_deduplicates():
    scopes = AuthScopes(" read_products, write_orders ,read_products,,")
    assert scopes.to_list() == ["read_products", "write_orders"]
    assert str(scopes) == "read_products,write_orders"


def test_write_scope_implies_read_scope():
    granted = AuthScopes("write_orders")
    assert "read_orders" in granted
    assert granted.covers("read_orders,write_orders")
    assert AuthScopes("unauthenticated_write_checkouts").covers(
        "unauthenticated_read_checkouts"
    )
    assert not AuthScopes("read_orders").covers("write_orders")


def test_equality_ignores_implied_scopes():
    assert AuthScopes("write_orders,read_orders") == AuthScopes("write_orders")
    assert AuthScopes(["read_products"]) == AuthScopes("read_products")


def test_empty_scope_is_always_sufficient():
    session = Session(shop="shop1.myshopify.com", access_token="tok")
    assert is_sufficient(session, AuthScopes("read_products,write_orders"))
    assert is_sufficient(session, "anything_at_all")


def test_sufficient_when_granted_scope_is_superset():
    session = Session(
        shop="shop1.myshopify.com", scope="read_products,write_orders,read_themes"
    )
    assert is_sufficient(session, AuthScopes("read_products,write_orders"))


def test_insufficient_when_any_required_scope_is_missing():
    session = Session(shop="shop1.myshopify.com", scope="read_products")
    assert not is_sufficient(session, AuthScopes("read_products,write_orders"))


def test_needs_reauth_only_on_shop_change():
    session = Session(shop="shop1.myshopify.com")
    assert not needs_reauth(session, None)
    assert not needs_reauth(None, "shop2.myshopify.com")
    assert not needs_reauth(session, "shop1.myshopify.com")
    assert needs_reauth(session, "shop2.myshopify.com")
