"""Optional OpenTelemetry spans around routing, council and completion calls.

OTEL is a soft dependency (``pip install "crew-council[otel]"``).  Without it,
or with ``telemetry.enabled`` false, ``get_tracer()`` hands out a no-op tracer
so call sites never check whether tracing is on::

    with get_tracer().start_as_current_span("crew.route_single") as span:
        span.set_attribute("candidates", 4)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from crew_council.config import CrewConfig, TelemetryConfig

logger = logging.getLogger(__name__)


class _NoOpSpan:
    def set_attribute(self, key: str, value: Any) -> None:  # noqa: ARG002
        pass

    def record_exception(self, exc: BaseException) -> None:  # noqa: ARG002
        pass

    def __enter__(self) -> "_NoOpSpan":
        return self

    def __exit__(self, *args: Any) -> None:
        pass


class _NoOpTracer:
    def start_as_current_span(self, name: str, **kwargs: Any) -> _NoOpSpan:  # noqa: ARG002
        return _NoOpSpan()


_NOOP_TRACER = _NoOpTracer()
_tracer: Optional[Any] = None

try:
    import opentelemetry  # noqa: F401
    _otel_available = True
except ImportError:
    _otel_available = False


def setup_telemetry(config: "CrewConfig") -> None:
    """Install a tracer provider from ``config.telemetry``.  Idempotent."""
    global _tracer  # noqa: PLW0603

    if _tracer is not None:
        return
    tel_cfg = config.telemetry
    if tel_cfg is None or not tel_cfg.enabled:
        logger.debug("Telemetry off; spans are no-ops")
        return
    if not _otel_available:
        logger.warning(
            "telemetry.enabled is set but opentelemetry-sdk is missing. "
            "Install with: pip install 'crew-council[otel]'"
        )
        return
    _tracer = _build_tracer(tel_cfg)


def _build_tracer(tel_cfg: "TelemetryConfig") -> Any:
    from opentelemetry import trace
    from opentelemetry.sdk.resources import SERVICE_NAME, Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor

    provider = TracerProvider(resource=Resource(attributes={SERVICE_NAME: tel_cfg.service_name}))

    if tel_cfg.exporter == "console":
        from opentelemetry.sdk.trace.export import ConsoleSpanExporter
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    elif tel_cfg.exporter == "otlp":
        if not tel_cfg.otlp_endpoint:
            logger.warning("exporter='otlp' without otlp_endpoint; spans are dropped")
        else:
            try:
                from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
            except ImportError:
                logger.warning(
                    "exporter='otlp' needs opentelemetry-exporter-otlp-proto-grpc; spans are dropped"
                )
            else:
                provider.add_span_processor(
                    BatchSpanProcessor(OTLPSpanExporter(endpoint=tel_cfg.otlp_endpoint))
                )
    elif tel_cfg.exporter != "none":
        logger.warning("Unknown telemetry exporter %r; spans are dropped", tel_cfg.exporter)

    trace.set_tracer_provider(provider)
    logger.info("Telemetry on: exporter=%s service=%s", tel_cfg.exporter, tel_cfg.service_name)
    return trace.get_tracer("crew_council")


def get_tracer() -> Any:
    """The configured OTEL tracer, or the no-op tracer."""
    return _tracer if _tracer is not None else _NOOP_TRACER


def reset_for_testing() -> None:
    global _tracer  # noqa: PLW0603
    _tracer = None
