"""Kubernetes API client construction (in-cluster config, then kubeconfig)."""

from typing import Optional

from kubernetes import client, config
from kubernetes.config.config_exception import ConfigException


def load_api_client(kubeconfig: Optional[str] = None, context: Optional[str] = None) -> client.ApiClient:
    """Build an ApiClient.

    Resolution order:
    1. Explicit kubeconfig path / context, when given
    2. In-cluster service account
    3. Default kubeconfig (~/.kube/config or $KUBECONFIG)
    """
    if kubeconfig or context:
        try:
            config.load_kube_config(config_file=kubeconfig, context=context)
            return client.ApiClient()
        except (ConfigException, OSError) as e:
            raise RuntimeError(f"Failed to initialize K8s client: {e}") from e

    try:
        config.load_incluster_config()
        return client.ApiClient()
    except ConfigException:
        pass

    try:
        config.load_kube_config()
        return client.ApiClient()
    except (ConfigException, OSError) as e:
        raise RuntimeError(f"Failed to initialize K8s client: {e}") from e
