"""OpenTelemetry setup for Grafana OTLP export."""

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

import structlog
from opentelemetry import _logs, metrics, trace
from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter as GrpcLogExporter
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter as GrpcMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter as GrpcSpanExporter
from opentelemetry.exporter.otlp.proto.http._log_exporter import OTLPLogExporter as HttpLogExporter
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter as HttpMetricExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter as HttpSpanExporter
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor, ConsoleLogExporter, SimpleLogRecordProcessor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import ConsoleMetricExporter, PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter, SimpleSpanProcessor

from grafana_otel.config import GrafanaSettings, get_settings
from grafana_otel.manifest import read_manifest
from grafana_otel.resolver import (
    DEFAULT_PROTOCOL,
    LOGS_EXPORTER,
    METRICS_EXPORTER,
    OTLP_ENDPOINT,
    OTLP_HEADERS,
    OTLP_PROTOCOL,
    RESOURCE_ATTRIBUTES,
    TRACES_EXPORTER,
    assemble_config_properties,
    mask_auth_header,
)

logger = structlog.get_logger()

TRACES = "traces"
METRICS = "metrics"
LOGS = "logs"

_SIGNAL_EXPORTER_KEYS = {
    TRACES: TRACES_EXPORTER,
    METRICS: METRICS_EXPORTER,
    LOGS: LOGS_EXPORTER,
}

# http/protobuf exporters take the full per-signal URL
_SIGNAL_PATHS = {
    TRACES: "/v1/traces",
    METRICS: "/v1/metrics",
    LOGS: "/v1/logs",
}

_OTLP_EXPORTERS: dict[str, dict[str, type]] = {
    "grpc": {
        TRACES: GrpcSpanExporter,
        METRICS: GrpcMetricExporter,
        LOGS: GrpcLogExporter,
    },
    "http/protobuf": {
        TRACES: HttpSpanExporter,
        METRICS: HttpMetricExporter,
        LOGS: HttpLogExporter,
    },
}

_CONSOLE_EXPORTERS: dict[str, type] = {
    TRACES: ConsoleSpanExporter,
    METRICS: ConsoleMetricExporter,
    LOGS: ConsoleLogExporter,
}


class TelemetryConfigurationError(ValueError):
    """Raised when a property map cannot be turned into providers."""


@dataclass
class TelemetryHandles:
    """Providers built from a resolved property map."""

    tracer_provider: Any
    meter_provider: Any
    logger_provider: Any
    enabled: bool = True
    log_handler: LoggingHandler | None = field(default=None, repr=False)

    @classmethod
    def noop(cls) -> "TelemetryHandles":
        """Disabled telemetry."""
        return cls(
            tracer_provider=trace.NoOpTracerProvider(),
            meter_provider=metrics.NoOpMeterProvider(),
            logger_provider=_logs.NoOpLoggerProvider(),
            enabled=False,
        )

    def install(self) -> None:
        """Register the providers globally and bridge stdlib logging."""
        if not self.enabled:
            return
        trace.set_tracer_provider(self.tracer_provider)
        metrics.set_meter_provider(self.meter_provider)
        _logs.set_logger_provider(self.logger_provider)
        self.log_handler = LoggingHandler(logger_provider=self.logger_provider)
        logging.getLogger().addHandler(self.log_handler)

    def force_flush(self) -> None:
        if not self.enabled:
            return
        self.tracer_provider.force_flush()
        self.meter_provider.force_flush()
        self.logger_provider.force_flush()

    def shutdown(self) -> None:
        if not self.enabled:
            return
        if self.log_handler is not None:
            logging.getLogger().removeHandler(self.log_handler)
            self.log_handler = None
        self.tracer_provider.shutdown()
        self.meter_provider.shutdown()
        self.logger_provider.shutdown()


def parse_key_value_list(value: str | None) -> dict[str, str]:
    """Parse the ``k1=v1,k2=v2`` format used by OTLP headers and resource attributes."""
    parsed: dict[str, str] = {}
    if not value:
        return parsed
    for pair in value.split(","):
        key, sep, item = pair.partition("=")
        key = key.strip()
        if not key or not sep:
            continue
        parsed[key] = item.strip()
    return parsed


def to_environment(properties: Mapping[str, str]) -> dict[str, str]:
    """
    Convert SDK properties to OTEL_* environment variables.

    Useful to configure ``opentelemetry-instrument`` from a resolved map.
    """
    return {key.upper().replace(".", "_"): value for key, value in properties.items()}


def _otlp_exporter(signal: str, protocol: str, endpoint: str | None, headers: Mapping[str, str]) -> Any:
    exporters = _OTLP_EXPORTERS.get(protocol)
    if exporters is None:
        raise TelemetryConfigurationError(f"Unsupported OTLP protocol: {protocol}")

    kwargs: dict[str, Any] = {}
    if endpoint:
        if protocol == "grpc":
            kwargs["endpoint"] = endpoint
        else:
            kwargs["endpoint"] = endpoint.rstrip("/") + _SIGNAL_PATHS[signal]
    if headers:
        kwargs["headers"] = dict(headers)
    return exporters[signal](**kwargs)


def _console_exporter(signal: str) -> Any:
    return _CONSOLE_EXPORTERS[signal]()


def _signal_exporters(
    signal: str,
    properties: Mapping[str, str],
    protocol: str,
    endpoint: str | None,
    headers: Mapping[str, str],
) -> list[tuple[str, Any]]:
    names = [name.strip() for name in properties.get(_SIGNAL_EXPORTER_KEYS[signal], "otlp").split(",")]
    exporters = []
    for name in names:
        if name in ("", "none"):
            continue
        if name == "otlp":
            exporters.append((name, _otlp_exporter(signal, protocol, endpoint, headers)))
        elif name in ("logging", "console"):
            exporters.append((name, _console_exporter(signal)))
        else:
            raise TelemetryConfigurationError(f"Unsupported {signal} exporter: {name}")
    return exporters


def build_telemetry(properties: Mapping[str, str]) -> TelemetryHandles:
    """
    Build tracer, meter and logger providers from SDK properties.

    Providers are not registered globally, see TelemetryHandles.install.

    Args:
        properties: Property map as produced by assemble_config_properties

    Returns:
        Handles for the created providers

    Raises:
        TelemetryConfigurationError: If protocol or exporter names are unsupported
    """
    protocol = properties.get(OTLP_PROTOCOL) or DEFAULT_PROTOCOL
    endpoint = properties.get(OTLP_ENDPOINT)
    headers = parse_key_value_list(properties.get(OTLP_HEADERS))

    # exporters first, so a bad property map fails before any provider threads start
    exporters = {
        signal: _signal_exporters(signal, properties, protocol, endpoint, headers)
        for signal in (TRACES, METRICS, LOGS)
    }

    resource = Resource.create(parse_key_value_list(properties.get(RESOURCE_ATTRIBUTES)))

    tracer_provider = TracerProvider(resource=resource)
    for name, exporter in exporters[TRACES]:
        processor = BatchSpanProcessor(exporter) if name == "otlp" else SimpleSpanProcessor(exporter)
        tracer_provider.add_span_processor(processor)

    meter_provider = MeterProvider(
        resource=resource,
        metric_readers=[PeriodicExportingMetricReader(exporter) for _, exporter in exporters[METRICS]],
    )

    logger_provider = LoggerProvider(resource=resource)
    for name, exporter in exporters[LOGS]:
        processor = BatchLogRecordProcessor(exporter) if name == "otlp" else SimpleLogRecordProcessor(exporter)
        logger_provider.add_log_record_processor(processor)

    return TelemetryHandles(
        tracer_provider=tracer_provider,
        meter_provider=meter_provider,
        logger_provider=logger_provider,
    )


def setup_telemetry(
    settings: GrafanaSettings | None = None,
    application_name: str | None = None,
    distribution: str | None = None,
    environ: Mapping[str, str] | None = None,
) -> TelemetryHandles:
    """
    Configure OpenTelemetry export to Grafana.

    Telemetry is disabled rather than failing application startup when the
    SDK cannot be constructed.

    Args:
        settings: Grafana OTLP settings, defaults to the environment
        application_name: Service name of the application
        distribution: Installed distribution to read name and version from
        environ: Environment to read HOSTNAME and HOST from

    Returns:
        Installed providers, or no-op providers if construction failed
    """
    settings = settings or get_settings()
    resolved = assemble_config_properties(
        settings,
        application_name=application_name,
        manifest=read_manifest(distribution),
        environ=environ,
    )
    for warning in resolved.warnings:
        logger.warning(warning)
    logger.info("Using config properties", properties=mask_auth_header(resolved.properties))

    try:
        handles = build_telemetry(resolved.properties)
    except Exception:
        logger.warning("Unable to create OpenTelemetry instance", exc_info=True)
        return TelemetryHandles.noop()

    try:
        handles.install()
    except Exception:
        logger.warning("Unable to install OpenTelemetry providers", exc_info=True)
        # stops the exporter threads and detaches the logging handler
        handles.shutdown()
        return TelemetryHandles.noop()

    logger.info(
        "OpenTelemetry initialized",
        protocol=resolved.properties[OTLP_PROTOCOL],
        endpoint=resolved.properties.get(OTLP_ENDPOINT),
    )
    return handles
