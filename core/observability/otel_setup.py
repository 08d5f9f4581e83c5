"""
Storefront OpenTelemetry Setup

Tracing for discount calculations:
- One span per cart preview / order commit
- Attributes for cart size, rule count and applied discounts
"""
from __future__ import annotations
from typing import Optional
import os

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor


def setup_otel(
    service_name: str = "storefront-promotions",
    endpoint: Optional[str] = None,
):
    """Initialize the tracer provider, exporting over OTLP when configured."""
    resource = Resource.create({"service.name": service_name})
    provider = TracerProvider(resource=resource)

    otlp_endpoint = endpoint or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    if otlp_endpoint:
        # Exporter ships in the optional "otlp" extra
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
        exporter = OTLPSpanExporter(endpoint=otlp_endpoint)
        provider.add_span_processor(BatchSpanProcessor(exporter))

    trace.set_tracer_provider(provider)
    return trace.get_tracer(service_name)


def calculation_span(tracer, operation: str, tenant_id: str, line_count: int):
    """Start a span for a discount calculation (preview or commit).

    Callers add the outcome with record_result() once the engine has run.
    """
    return tracer.start_as_current_span(
        f"promotions.{operation}",
        attributes={
            "promotions.operation": operation,
            "promotions.tenant_id": tenant_id,
            "promotions.cart_lines": line_count,
        },
    )


def record_result(span, result) -> None:
    """Attach totals and applied rule ids of a CalculationResult to ``span``."""
    span.set_attribute("promotions.applied_rules", list(result.applied_rule_ids))
    span.set_attribute("promotions.discount_total", str(result.discount_total))
    span.set_attribute("promotions.final_total", str(result.final_total))
    span.set_attribute("promotions.free_shipping", result.free_shipping)
    if result.errors:
        span.set_attribute("promotions.errors", list(result.errors))
