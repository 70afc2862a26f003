"""Server configuration.

A single ServerConfig value is built by the CLI and passed to every component
constructor that needs it.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from ig_mcp_server.errors import ConfigurationError

KUBERNETES_ENV = "kubernetes"
LINUX_ENV = "linux"

TRANSPORTS = ("stdio", "sse", "streamable-http")

DEFAULT_CHART_URL = "oci://ghcr.io/inspektor-gadget/inspektor-gadget/charts/gadget"
DEFAULT_CHART_VERSION = "1.0.0-dev"
DEFAULT_RELEASE_NAME = "gadget"
DEFAULT_NAMESPACE = "gadget"

_DEFAULT_BINARIES = {
    KUBERNETES_ENV: "kubectl-gadget",
    LINUX_ENV: "ig",
}


class ServerConfig(BaseModel):
    """Validated server settings."""

    transport: Literal["stdio", "sse", "streamable-http"] = "stdio"
    transport_host: str = "localhost"
    transport_port: int = Field(default=8080, ge=1, le=65535)

    environment: Literal["kubernetes", "linux"] = KUBERNETES_ENV
    linux_remote_address: Optional[str] = None

    gadget_images: list[str] = Field(default_factory=list)
    gadget_discoverer: Optional[str] = None

    log_level: Optional[str] = None

    chart_url: str = DEFAULT_CHART_URL
    chart_version: str = DEFAULT_CHART_VERSION
    release_name: str = DEFAULT_RELEASE_NAME
    deploy_namespace: str = DEFAULT_NAMESPACE

    # Post-deploy refresh: fixed settle delay, then a bounded readiness poll
    settle_delay: float = Field(default=10.0, ge=0)
    readiness_timeout: float = Field(default=60.0, ge=0)

    gadget_binary: Optional[str] = None
    helm_binary: str = "helm"

    @field_validator("gadget_images", mode="before")
    @classmethod
    def _split_images(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            value = value.split(",")
        return [v.strip() for v in value if v and v.strip()]

    @model_validator(mode="after")
    def _check_sources(self) -> "ServerConfig":
        if not self.gadget_images and not self.gadget_discoverer:
            raise ValueError("either gadget images or a gadget discoverer must be specified")
        if self.linux_remote_address and self.environment != LINUX_ENV:
            raise ValueError("linux remote address can only be set when environment is 'linux'")
        return self

    @property
    def requires_deployment(self) -> bool:
        """Whether gadget tools depend on a runtime installed in the cluster."""
        return self.environment == KUBERNETES_ENV

    def resolved_gadget_binary(self) -> str:
        return self.gadget_binary or _DEFAULT_BINARIES[self.environment]


def load_config(**values) -> ServerConfig:
    """Build a ServerConfig, turning validation failures into ConfigurationError."""
    try:
        return ServerConfig(**values)
    except ValidationError as exc:
        messages = "; ".join(err["msg"] for err in exc.errors())
        raise ConfigurationError(messages) from exc
