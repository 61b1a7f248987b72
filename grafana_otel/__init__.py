"""OpenTelemetry configuration for Grafana Cloud and on-prem OTLP receivers."""

from grafana_otel.config import CloudSettings, GrafanaSettings, OnPremSettings, get_settings
from grafana_otel.manifest import Manifest, read_manifest
from grafana_otel.resolver import (
    ResolvedConfig,
    assemble_config_properties,
    mask_auth_header,
    resolve_basic_auth_header,
    resolve_endpoint,
    resolve_protocol,
    resolve_resource_attributes,
)
from grafana_otel.telemetry import (
    TelemetryConfigurationError,
    TelemetryHandles,
    build_telemetry,
    setup_telemetry,
    to_environment,
)

__all__ = [
    "CloudSettings",
    "GrafanaSettings",
    "OnPremSettings",
    "get_settings",
    "Manifest",
    "read_manifest",
    "ResolvedConfig",
    "assemble_config_properties",
    "mask_auth_header",
    "resolve_basic_auth_header",
    "resolve_endpoint",
    "resolve_protocol",
    "resolve_resource_attributes",
    "TelemetryConfigurationError",
    "TelemetryHandles",
    "build_telemetry",
    "setup_telemetry",
    "to_environment",
]
