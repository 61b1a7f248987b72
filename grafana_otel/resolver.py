"""Resolution of OpenTelemetry SDK properties for Grafana OTLP export.

Every function here is pure: inputs are never mutated and nothing is logged.
Diagnostics are appended to an optional ``warnings`` list so the caller can
decide how to report them.
"""

import base64
import os
from typing import Mapping

from pydantic import BaseModel, Field

from grafana_otel.config import GrafanaSettings
from grafana_otel.manifest import Manifest

RESOURCE_ATTRIBUTES = "otel.resource.attributes"
OTLP_PROTOCOL = "otel.exporter.otlp.protocol"
OTLP_HEADERS = "otel.exporter.otlp.headers"
OTLP_ENDPOINT = "otel.exporter.otlp.endpoint"
TRACES_EXPORTER = "otel.traces.exporter"
METRICS_EXPORTER = "otel.metrics.exporter"
LOGS_EXPORTER = "otel.logs.exporter"

SERVICE_NAME = "service.name"
SERVICE_VERSION = "service.version"
SERVICE_INSTANCE_ID = "service.instance.id"

CLOUD_PROTOCOL = "http/protobuf"
DEFAULT_PROTOCOL = "grpc"
CLOUD_ENDPOINT_TEMPLATE = "https://otlp-gateway-{zone}.grafana.net/otlp"

MASKED_HEADER_LENGTH = 24


class ResolvedConfig(BaseModel):
    """Result of a configuration resolution."""

    properties: dict[str, str] = Field(description="OpenTelemetry SDK properties")
    warnings: list[str] = Field(default_factory=list, description="Inconsistent or missing inputs")


def _is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


def _warn(warnings: list[str] | None, message: str) -> None:
    if warnings is not None:
        warnings.append(message)


def resolve_protocol(
    on_prem_protocol: str | None,
    auth_present: bool,
    warnings: list[str] | None = None,
) -> str:
    """
    Pick the OTLP protocol.

    Grafana Cloud only accepts http/protobuf, so an on-prem protocol is
    ignored when cloud credentials are present.

    Args:
        on_prem_protocol: Configured on-prem protocol, may be blank
        auth_present: Whether cloud credentials resolved to an auth header
        warnings: Collector for diagnostics

    Returns:
        Protocol name
    """
    has_protocol = not _is_blank(on_prem_protocol)
    if auth_present:
        if has_protocol:
            _warn(
                warnings,
                "ignoring grafana.otlp.onprem.protocol, because grafana.otlp.cloud.instanceId was found",
            )
        return CLOUD_PROTOCOL

    return on_prem_protocol if has_protocol else DEFAULT_PROTOCOL


def resolve_endpoint(
    on_prem_endpoint: str | None,
    cloud_zone: str | None,
    auth_present: bool,
    warnings: list[str] | None = None,
) -> str | None:
    """
    Pick the OTLP endpoint.

    Args:
        on_prem_endpoint: Configured on-prem endpoint, may be blank
        cloud_zone: Grafana Cloud zone, may be blank
        auth_present: Whether cloud credentials resolved to an auth header
        warnings: Collector for diagnostics

    Returns:
        Endpoint URL, or None if the relevant setting is missing
    """
    has_zone = not _is_blank(cloud_zone)
    has_endpoint = not _is_blank(on_prem_endpoint)

    if auth_present:
        if has_endpoint:
            _warn(
                warnings,
                "ignoring grafana.otlp.onprem.endpoint, because grafana.otlp.cloud.instanceId was found",
            )
        if has_zone:
            return CLOUD_ENDPOINT_TEMPLATE.format(zone=cloud_zone)
        _warn(warnings, "please specify grafana.otlp.cloud.zone")
        return None

    if has_zone:
        _warn(
            warnings,
            "ignoring grafana.otlp.cloud.zone, because grafana.otlp.onprem.endpoint was found",
        )
    if has_endpoint:
        return on_prem_endpoint
    _warn(warnings, "please specify grafana.otlp.onprem.endpoint")
    return None


def resolve_basic_auth_header(
    instance_id: int,
    api_key: str | None,
    warnings: list[str] | None = None,
) -> str | None:
    """
    Build the OTLP headers value for Grafana Cloud basic auth.

    Args:
        instance_id: Grafana Cloud instance id, 0 when unset
        api_key: Grafana Cloud API key, may be blank
        warnings: Collector for diagnostics

    Returns:
        ``Authorization=Basic <base64>`` or None unless both credentials are set
    """
    has_key = not _is_blank(api_key)
    has_id = instance_id != 0

    if has_key and has_id:
        user_pass = f"{instance_id}:{api_key}".encode("utf-8")
        return f"Authorization=Basic {base64.b64encode(user_pass).decode('ascii')}"

    if has_key:
        _warn(warnings, "found grafana.otlp.cloud.apiKey but no grafana.otlp.cloud.instanceId")
    if has_id:
        _warn(warnings, "found grafana.otlp.cloud.instanceId but no grafana.otlp.cloud.apiKey")

    return None


def _set_default_attribute(attributes: dict[str, str], key: str, *candidates: str | None) -> None:
    if key in attributes:
        return
    for value in candidates:
        if not _is_blank(value):
            attributes[key] = value
            return


def resolve_resource_attributes(
    caller_attributes: Mapping[str, str] | None,
    application_name: str | None = None,
    manifest_name: str | None = None,
    manifest_version: str | None = None,
    hostname_env: str | None = None,
    host_env: str | None = None,
) -> str:
    """
    Serialize resource attributes, filling in service identity.

    Caller supplied attributes always win over derived ones.

    Returns:
        Comma separated ``key=value`` pairs
    """
    attributes = dict(caller_attributes or {})

    _set_default_attribute(attributes, SERVICE_NAME, application_name, manifest_name)
    _set_default_attribute(attributes, SERVICE_VERSION, manifest_version)
    _set_default_attribute(attributes, SERVICE_INSTANCE_ID, hostname_env, host_env)

    return ",".join(f"{key}={value}" for key, value in attributes.items())


def assemble_config_properties(
    settings: GrafanaSettings,
    application_name: str | None = None,
    manifest: Manifest | None = None,
    environ: Mapping[str, str] | None = None,
) -> ResolvedConfig:
    """
    Resolve the full OpenTelemetry property map.

    Args:
        settings: Grafana OTLP settings
        application_name: Service name supplied by the application
        manifest: Package metadata of the application
        environ: Environment to read HOSTNAME and HOST from, defaults to os.environ

    Returns:
        Property map plus the warnings produced while resolving it
    """
    environ = os.environ if environ is None else environ
    manifest = manifest or Manifest()
    warnings: list[str] = []

    exporters = "logging,otlp" if settings.debug_logging else "otlp"

    cloud = settings.cloud
    onprem = settings.onprem
    auth_header = resolve_basic_auth_header(
        cloud.instance_id, cloud.api_key.get_secret_value(), warnings
    )
    auth_present = auth_header is not None

    properties = {
        RESOURCE_ATTRIBUTES: resolve_resource_attributes(
            settings.global_attributes,
            application_name,
            manifest.name,
            manifest.version,
            environ.get("HOSTNAME"),
            environ.get("HOST"),
        ),
        OTLP_PROTOCOL: resolve_protocol(onprem.protocol, auth_present, warnings),
        TRACES_EXPORTER: exporters,
        METRICS_EXPORTER: exporters,
        LOGS_EXPORTER: exporters,
    }
    if auth_header is not None:
        properties[OTLP_HEADERS] = auth_header

    endpoint = resolve_endpoint(onprem.endpoint, cloud.zone, auth_present, warnings)
    if endpoint is not None:
        properties[OTLP_ENDPOINT] = endpoint

    return ResolvedConfig(properties=properties, warnings=warnings)


def mask_auth_header(properties: Mapping[str, str]) -> dict[str, str]:
    """Return a copy of the property map safe for logging."""
    masked = dict(properties)
    header = masked.get(OTLP_HEADERS)
    if header is not None and len(header) > MASKED_HEADER_LENGTH:
        masked[OTLP_HEADERS] = header[:MASKED_HEADER_LENGTH] + "..."
    return masked
