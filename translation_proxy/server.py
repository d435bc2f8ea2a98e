import logging
from typing import Optional, Sequence

import httpx
from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SpanExporter,
    SpanExportResult,
)
from prometheus_client import Info
from prometheus_fastapi_instrumentator import Instrumentator

from translation_proxy.config import ProxyConfiguration
from translation_proxy.proxy import RequestRelay, build_router
from translation_proxy.proxy.relay import Resolver
from translation_proxy.vars import OTLP_ENDPOINT, OTLP_HEADERS, SERVICE_NAME

logger = logging.getLogger("uvicorn.error")


class FilteringSpanExporter(SpanExporter):
    """
    Wrapper exporter that filters out noisy ASGI body spans from streamed
    passthrough responses, which otherwise emit one span per chunk.
    """

    def __init__(self, exporter: SpanExporter):
        self.exporter = exporter

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        filtered_spans = [
            span
            for span in spans
            if not (
                span.attributes
                and span.attributes.get("asgi.event.type") == "http.response.body"
            )
        ]
        if filtered_spans:
            return self.exporter.export(filtered_spans)
        return SpanExportResult.SUCCESS

    def shutdown(self):
        return self.exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000):
        return self.exporter.force_flush(timeout_millis)


def configure_tracing() -> None:
    trace.set_tracer_provider(
        TracerProvider(resource=Resource.create({"service.name": SERVICE_NAME}))
    )
    if OTLP_ENDPOINT:
        otlp_exporter = OTLPSpanExporter(
            endpoint=OTLP_ENDPOINT,
            headers=((OTLP_HEADERS).split(",") if OTLP_HEADERS else None),
        )
        trace.get_tracer_provider().add_span_processor(
            BatchSpanProcessor(FilteringSpanExporter(otlp_exporter))
        )


def create_app(
    config: Optional[ProxyConfiguration] = None,
    *,
    resolver: Optional[Resolver] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    instrument: bool = False,
) -> FastAPI:
    """
    Build the proxy application.

    Args:
        config: Resolved configuration; read from the environment when omitted
        resolver: Async host -> addresses resolver, system DNS by default
        transport: httpx transport for outbound requests (tests inject a mock)
        instrument: Expose Prometheus metrics and instrument with OpenTelemetry
    """
    config = config or ProxyConfiguration.from_env()
    # the proxy owns every other path, so no generated docs routes
    app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)

    if instrument:
        Instrumentator().instrument(app).expose(app)
        FastAPIInstrumentor.instrument_app(app, excluded_urls="healthz,metrics")

    @app.get("/healthz")
    async def healthz():
        return {"status": "ok"}

    relay = RequestRelay(config, resolver=resolver, transport=transport)
    # last: its catch-all route would shadow everything registered after it
    app.include_router(build_router(relay))

    logger.info(
        f"Proxying under {config.public_url}{config.proxy_prefix} "
        f"(static assets proxied: {config.proxy_static_assets}, guards: {config.enforce_guards})"
    )
    if not config.enforce_guards:
        logger.warning("Referrer and private network checks are disabled")
    return app


configure_tracing()

app = create_app(instrument=True)

# Add app_name to the metrics
app_info = Info("fastapi_app_info", "Application Info")
app_info.info({"app_name": SERVICE_NAME})
