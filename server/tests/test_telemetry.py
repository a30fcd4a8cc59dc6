from opentelemetry.sdk.trace import TracerProvider

from shopify_app_auth.login_protection import AccessState, Decision, ReauthReason
from shopify_app_auth.models import Session
from shopify_app_auth.telemetry import record_decision

SHOP1 = Session(shop="shop1.myshopify.com", access_token="tok", scope="read_products")


def _tracer():
    return TracerProvider().get_tracer("shopify_app_auth.tests")


def test_record_decision_tags_request_span():
    with _tracer().start_as_current_span("GET /") as span:
        record_decision(
            Decision(AccessState.REAUTH_REQUIRED, ReauthReason.SHOP_MISMATCH, SHOP1, True)
        )

    assert span.attributes["shopify.auth.state"] == "reauth_required"
    assert span.attributes["shopify.auth.reason"] == "shop_mismatch"
    assert span.attributes["shopify.shop"] == "shop1.myshopify.com"
    assert span.attributes["shopify.session.online"] is False


def test_record_decision_without_session_or_reason():
    with _tracer().start_as_current_span("GET /") as span:
        record_decision(Decision(AccessState.BLOCKED))

    assert span.attributes["shopify.auth.state"] == "blocked"
    assert "shopify.auth.reason" not in span.attributes
    assert "shopify.shop" not in span.attributes


def test_record_decision_outside_a_span_is_a_no_op():
    record_decision(Decision(AccessState.AUTHORIZED, session=SHOP1))
