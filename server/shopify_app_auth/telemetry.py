from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from .config import settings

_configured = False


def configure_telemetry(service_name: str, endpoint: str, api_key: str | None) -> None:
    global _configured
    if _configured:
        return
    headers = {"DD-API-KEY": api_key} if api_key else None
    resource = Resource.create(
        {
            "service.name": service_name,
            "deployment.environment": settings.environment,
            "shopify.api_version": settings.api_version,
        }
    )
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, headers=headers))
    )
    trace.set_tracer_provider(provider)
    # Admin API calls go through httpx.
    HTTPXClientInstrumentor().instrument()
    _configured = True


def instrument_fastapi(app) -> None:
    FastAPIInstrumentor.instrument_app(app, excluded_urls="health")


def record_decision(decision) -> None:
    """Tag the current request span with the outcome of the access check."""
    span = trace.get_current_span()
    if not span.is_recording():
        return
    span.set_attribute("shopify.auth.state", decision.state.value)
    if decision.reason is not None:
        span.set_attribute("shopify.auth.reason", decision.reason.value)
    session = decision.session
    if session is not None:
        span.set_attribute("shopify.shop", session.shop)
        span.set_attribute("shopify.session.online", session.is_online)
