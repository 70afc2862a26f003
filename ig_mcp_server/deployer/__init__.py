"""Deployment of the Inspektor Gadget runtime."""
from ig_mcp_server.config import KUBERNETES_ENV
from ig_mcp_server.errors import UnsupportedEnvironmentError

from .base import Deployer, DeployOptions, LABEL_KEY_MANAGED_BY, LABEL_VALUE_MANAGED_BY
from .helm import HelmDeployer
from .probe import DeploymentProbe, wait_until_deployed


def new_deployer(environment: str, helm_binary: str = "helm") -> Deployer:
    if environment == KUBERNETES_ENV:
        return HelmDeployer(helm_binary=helm_binary)
    raise UnsupportedEnvironmentError(f"unsupported environment: {environment}")


__all__ = [
    'Deployer',
    'DeployOptions',
    'DeploymentProbe',
    'HelmDeployer',
    'LABEL_KEY_MANAGED_BY',
    'LABEL_VALUE_MANAGED_BY',
    'new_deployer',
    'wait_until_deployed',
]
