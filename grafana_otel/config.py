"""Configuration management for Grafana OTLP export."""

import re
from functools import lru_cache
from typing import Any, Mapping

from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

PROPERTY_PREFIX = "grafana.otlp."

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


class CloudSettings(BaseModel):
    """Grafana Cloud credentials and region."""

    instance_id: int = Field(default=0, description="Grafana Cloud instance id, 0 when unset")
    api_key: SecretStr = Field(default=SecretStr(""))
    zone: str = Field(default="", description="e.g. prod-us-east-0")


class OnPremSettings(BaseModel):
    """Self-hosted OTLP receiver."""

    endpoint: str = ""
    protocol: str = ""


class GrafanaSettings(BaseSettings):
    """Settings loaded from GRAFANA_OTLP_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="GRAFANA_OTLP_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    cloud: CloudSettings = Field(default_factory=CloudSettings)
    onprem: OnPremSettings = Field(default_factory=OnPremSettings)
    debug_logging: bool = False
    global_attributes: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_properties(cls, properties: Mapping[str, Any]) -> "GrafanaSettings":
        """
        Build settings from dotted application properties.

        Accepts the same keys as the Java agent configuration, for example
        ``grafana.otlp.cloud.instanceId`` or
        ``grafana.otlp.globalAttributes.deployment.environment``.
        Keys without the ``grafana.otlp.`` prefix are ignored. Spring style
        kebab-case names such as ``grafana.otlp.cloud.instance-id`` work too.

        Args:
            properties: Flat mapping of property name to value

        Returns:
            Settings with explicit properties taking priority over the environment
        """
        values: dict[str, Any] = {}
        for key, value in properties.items():
            if not key.startswith(PROPERTY_PREFIX):
                continue
            section, _, rest = key[len(PROPERTY_PREFIX):].partition(".")
            name = _snake_case(section)
            if name == "global_attributes":
                # attribute names are dotted themselves, keep the remainder whole
                if rest:
                    values.setdefault(name, {})[rest] = str(value)
            elif rest:
                values.setdefault(name, {})[_snake_case(rest)] = value
            else:
                values[name] = value
        return cls(**values)


def _snake_case(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).replace("-", "_").lower()


@lru_cache
def get_settings() -> GrafanaSettings:
    """Get cached settings instance."""
    return GrafanaSettings()
