"""OpenTelemetry + Prometheus fallback wiring for the telemetry viewer."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any

from fastapi import FastAPI

from telemetry_viewer import config

logger = logging.getLogger("telemetry_viewer.observability")


_initialized = False
_enabled = False
_tracer: Any | None = None
_trace_provider: Any | None = None
_meter_provider: Any | None = None
_fastapi_instrumentor: Any | None = None

_probe_counter: Any | None = None
_fetch_counter: Any | None = None
_fetch_latency_hist: Any | None = None
_candidate_counter: Any | None = None
_cache_lookup_counter: Any | None = None

_prom_enabled = False
_prom_probe_counter: Any | None = None
_prom_fetch_counter: Any | None = None
_prom_fetch_latency_hist: Any | None = None
_prom_candidate_counter: Any | None = None
_prom_cache_lookup_counter: Any | None = None


def _normalize_otlp_endpoint(base_endpoint: str, signal_path: str) -> str:
    endpoint = (base_endpoint or "").strip()
    if not endpoint:
        return ""
    if endpoint.endswith(signal_path):
        return endpoint
    if endpoint.endswith("/"):
        endpoint = endpoint[:-1]
    if endpoint.endswith("/v1"):
        return f"{endpoint}{signal_path[3:]}"
    return f"{endpoint}{signal_path}"


def _labels(**values: str) -> dict[str, str]:
    return {key: (value or "").strip() or "unknown" for key, value in values.items()}


def initialize(app: FastAPI | None = None) -> None:
    global _initialized, _enabled, _tracer, _trace_provider, _meter_provider, _fastapi_instrumentor
    global _probe_counter, _fetch_counter, _fetch_latency_hist, _candidate_counter, _cache_lookup_counter
    global _prom_enabled
    global _prom_probe_counter, _prom_fetch_counter, _prom_fetch_latency_hist
    global _prom_candidate_counter, _prom_cache_lookup_counter

    if _initialized:
        if _enabled and app and _fastapi_instrumentor:
            _fastapi_instrumentor.instrument_app(app)
        return

    _initialized = True

    if not config.OTEL_ENABLED:
        logger.info("OpenTelemetry disabled (TELEMETRY_OTEL_ENABLED=false)")
        return

    try:
        from opentelemetry import metrics, trace
        from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
        from opentelemetry.sdk.metrics import MeterProvider
        from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
    except ImportError as exc:
        logger.warning("OpenTelemetry dependencies unavailable: %s", exc)
        return

    traces_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/traces")
    metrics_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/metrics")
    service_name = config.OTEL_SERVICE_NAME or "telemetry-viewer"

    resource = Resource.create(
        {
            "service.name": service_name,
            "service.namespace": "telemetry-viewer",
        }
    )

    trace_provider = TracerProvider(resource=resource)
    trace_exporter = OTLPSpanExporter(endpoint=traces_endpoint or None)
    trace_provider.add_span_processor(BatchSpanProcessor(trace_exporter))
    trace.set_tracer_provider(trace_provider)
    tracer = trace.get_tracer("telemetry_viewer")

    metric_reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=metrics_endpoint or None)
    )
    meter_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])
    metrics.set_meter_provider(meter_provider)
    meter = metrics.get_meter("telemetry_viewer")

    _probe_counter = meter.create_counter(
        "telemetry_source_probes_total",
        unit="1",
        description="Source detection attempts by source and outcome",
    )
    _fetch_counter = meter.create_counter(
        "telemetry_session_fetches_total",
        unit="1",
        description="Full session document fetches by source and outcome",
    )
    _fetch_latency_hist = meter.create_histogram(
        "telemetry_session_fetch_latency_ms",
        unit="ms",
        description="Latency of full session document fetches",
    )
    _candidate_counter = meter.create_counter(
        "telemetry_archive_candidates_total",
        unit="1",
        description="Archive candidates by ingestion result",
    )
    _cache_lookup_counter = meter.create_counter(
        "telemetry_cache_lookups_total",
        unit="1",
        description="Session cache lookups by result",
    )

    _trace_provider = trace_provider
    _meter_provider = meter_provider
    _tracer = tracer
    _fastapi_instrumentor = FastAPIInstrumentor()
    _enabled = True

    if app:
        _fastapi_instrumentor.instrument_app(app)

    if config.PROM_PORT > 0:
        try:
            from prometheus_client import Counter, Histogram, start_http_server

            start_http_server(config.PROM_PORT)
            _prom_enabled = True
            _prom_probe_counter = Counter(
                "telemetry_source_probes_total",
                "Source detection attempts by source and outcome",
                ["source", "result"],
            )
            _prom_fetch_counter = Counter(
                "telemetry_session_fetches_total",
                "Full session document fetches by source and outcome",
                ["source", "result"],
            )
            _prom_fetch_latency_hist = Histogram(
                "telemetry_session_fetch_latency_ms",
                "Latency of full session document fetches",
                ["source", "result"],
            )
            _prom_candidate_counter = Counter(
                "telemetry_archive_candidates_total",
                "Archive candidates by ingestion result",
                ["result"],
            )
            _prom_cache_lookup_counter = Counter(
                "telemetry_cache_lookups_total",
                "Session cache lookups by result",
                ["result"],
            )
            logger.info("Prometheus fallback metrics server listening on port %s", config.PROM_PORT)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Prometheus fallback not started: %s", exc)
            _prom_enabled = False

    logger.info(
        "OpenTelemetry initialized (service=%s endpoint=%s)",
        service_name,
        config.OTEL_ENDPOINT,
    )


def shutdown(app: FastAPI | None = None) -> None:
    global _enabled
    if not _initialized:
        return
    try:
        if app and _fastapi_instrumentor:
            _fastapi_instrumentor.uninstrument_app(app)
    except Exception as exc:  # noqa: BLE001
        logger.debug("FastAPI uninstrument failed: %s", exc)
    try:
        if _meter_provider is not None:
            _meter_provider.shutdown()
    except Exception as exc:  # noqa: BLE001
        logger.debug("Meter provider shutdown failed: %s", exc)
    try:
        if _trace_provider is not None:
            _trace_provider.shutdown()
    except Exception as exc:  # noqa: BLE001
        logger.debug("Trace provider shutdown failed: %s", exc)
    _enabled = False


@contextmanager
def start_span(name: str, attributes: dict[str, Any] | None = None):
    if not _enabled or _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(name) as span:
        if attributes:
            for key, value in attributes.items():
                if value is not None:
                    span.set_attribute(key, value)
        yield span


def record_source_probe(source: str, result: str) -> None:
    labels = _labels(source=source, result=result)
    if _enabled and _probe_counter is not None:
        _probe_counter.add(1, labels)
    if _prom_enabled and _prom_probe_counter is not None:
        _prom_probe_counter.labels(**labels).inc()


def record_session_fetch(source: str, result: str, duration_ms: float) -> None:
    labels = _labels(source=source, result=result)
    if _enabled and _fetch_counter is not None:
        _fetch_counter.add(1, labels)
    if _enabled and _fetch_latency_hist is not None:
        _fetch_latency_hist.record(max(0.0, float(duration_ms)), labels)
    if _prom_enabled and _prom_fetch_counter is not None:
        _prom_fetch_counter.labels(**labels).inc()
    if _prom_enabled and _prom_fetch_latency_hist is not None:
        _prom_fetch_latency_hist.labels(**labels).observe(max(0.0, float(duration_ms)))


def record_archive_candidate(result: str) -> None:
    labels = _labels(result=result)
    if _enabled and _candidate_counter is not None:
        _candidate_counter.add(1, labels)
    if _prom_enabled and _prom_candidate_counter is not None:
        _prom_candidate_counter.labels(**labels).inc()


def record_cache_lookup(result: str) -> None:
    labels = _labels(result=result)
    if _enabled and _cache_lookup_counter is not None:
        _cache_lookup_counter.add(1, labels)
    if _prom_enabled and _prom_cache_lookup_counter is not None:
        _prom_cache_lookup_counter.labels(**labels).inc()
