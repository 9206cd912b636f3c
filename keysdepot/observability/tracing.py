"""OpenTelemetry setup with attribute redaction."""
import logging
import re
from typing import Optional

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.sdk.trace import ReadableSpan, Span, SpanProcessor, TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.context import Context

logger = logging.getLogger(__name__)


class DepotSpanProcessor(SpanProcessor):
    """
    SpanProcessor that redacts sensitive attributes from spans before they
    reach the wrapped processor (and so the exporter).
    """
    def __init__(self, processor: SpanProcessor):
        self._processor = processor
        self._sensitive_keys = {
            "authorization", "cookie", "set-cookie", "x-certificate-token",
        }
        self._sensitive_patterns = [
            re.compile(r"http\.request\.header\..*", re.IGNORECASE),
            re.compile(r"http\.response\.header\..*", re.IGNORECASE),
            re.compile(r".*(token|secret|password|candidate|value|ciphertext).*", re.IGNORECASE),
        ]

    def on_start(self, span: Span, parent_context: Optional[Context] = None) -> None:
        self._processor.on_start(span, parent_context)

    def on_end(self, span: ReadableSpan) -> None:
        if span.attributes and hasattr(span, "_attributes"):
            # The wrapped processor reads span.attributes; swap in a redacted copy
            span._attributes = {
                key: "[REDACTED]" if self._should_redact(key) else value
                for key, value in span.attributes.items()
            }
        self._processor.on_end(span)

    def shutdown(self) -> None:
        self._processor.shutdown()

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return self._processor.force_flush(timeout_millis)

    def _should_redact(self, key: str) -> bool:
        key_lower = key.lower()
        if key_lower in self._sensitive_keys:
            return True
        return any(pattern.match(key_lower) for pattern in self._sensitive_patterns)


def setup_tracing(app: FastAPI, otlp_endpoint: Optional[str], dev_mode: bool) -> Optional[TracerProvider]:
    """Install a tracer provider and auto-instrument FastAPI and SQLAlchemy."""
    from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
    from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor

    if otlp_endpoint:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
        processor: SpanProcessor = BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True))
    elif dev_mode:
        processor = BatchSpanProcessor(ConsoleSpanExporter())
    else:
        logger.warning("Tracing enabled without OTEL_EXPORTER_OTLP_ENDPOINT; spans are dropped")
        return None

    provider = TracerProvider()
    provider.add_span_processor(DepotSpanProcessor(processor))
    trace.set_tracer_provider(provider)

    FastAPIInstrumentor.instrument_app(app, tracer_provider=provider, excluded_urls="health/*")
    # Statement capture stays off; parameters may carry protected values
    SQLAlchemyInstrumentor().instrument(
        tracer_provider=provider,
        enable_commenter=True,
        db_statement_enabled=False,
    )
    return provider
