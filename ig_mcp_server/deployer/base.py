"""Deployer contract for installing the Inspektor Gadget runtime."""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel

from ig_mcp_server.config import DEFAULT_NAMESPACE, DEFAULT_RELEASE_NAME

# Label stamped on releases we install; undeploy only touches releases carrying it
LABEL_KEY_MANAGED_BY = "inspektor-gadget.io/managed-by"
LABEL_VALUE_MANAGED_BY = "ig-mcp-server"


class DeployOptions(BaseModel):
    chart_url: str = ""
    chart_version: str = ""
    release_name: str = DEFAULT_RELEASE_NAME
    namespace: str = DEFAULT_NAMESPACE
    skip_namespace_creation: bool = False


class Deployer(ABC):
    """Installs and removes the runtime's cluster-side components."""

    @abstractmethod
    async def deploy(self, options: DeployOptions) -> None:
        ...

    @abstractmethod
    async def undeploy(self, options: DeployOptions) -> None:
        """Remove a release we installed.

        Raises NotDeployedByManagerError without touching the cluster when the
        release is absent or lacks our managed-by label.
        """
        ...

    @abstractmethod
    async def is_deployed(self, options: DeployOptions) -> bool:
        """True only if the release exists and carries our managed-by label."""
        ...
