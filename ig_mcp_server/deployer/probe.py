"""
Deployment probe: is the Inspektor Gadget runtime running in the cluster?

Independent of who installed it: looks for the runtime's pods by label.
"""

from __future__ import annotations

import asyncio
import random
import time
from typing import Callable, Optional

from kubernetes import client
from kubernetes.client.exceptions import ApiException

from ig_mcp_server.errors import AmbiguousDeploymentError, DeploymentError
from ig_mcp_server.models import DeploymentStatus
from ig_mcp_server.utils.k8s import load_api_client
from ig_mcp_server.utils.logger import get_logger

logger = get_logger(__name__)

GADGET_POD_SELECTOR = "k8s-app=gadget"


class DeploymentProbe:
    def __init__(self, api_factory: Optional[Callable[[], client.CoreV1Api]] = None):
        self._api_factory = api_factory
        self._core_api: Optional[client.CoreV1Api] = None

    def _get_core_api(self) -> client.CoreV1Api:
        if self._core_api is None:
            if self._api_factory is not None:
                self._core_api = self._api_factory()
            else:
                try:
                    self._core_api = client.CoreV1Api(load_api_client())
                except RuntimeError as exc:
                    raise DeploymentError(str(exc)) from exc
        return self._core_api

    async def check(self) -> DeploymentStatus:
        """Return where the runtime runs.

        Raises AmbiguousDeploymentError if its pods span several namespaces.
        """
        api = self._get_core_api()
        try:
            pods = await asyncio.to_thread(
                api.list_pod_for_all_namespaces, label_selector=GADGET_POD_SELECTOR,
            )
        except ApiException as exc:
            raise DeploymentError(f"getting pods: K8s API error ({exc.status}): {exc.reason}") from exc

        if not pods.items:
            logger.debug("No Inspektor Gadget pods found")
            return DeploymentStatus(deployed=False)

        namespaces: list[str] = []
        for pod in pods.items:
            if pod.metadata.namespace not in namespaces:
                namespaces.append(pod.metadata.namespace)
        if len(namespaces) > 1:
            logger.debug("Multiple namespaces found for Inspektor Gadget pods",
                         extra={"extra": {"namespaces": namespaces}})
            raise AmbiguousDeploymentError(namespaces)

        return DeploymentStatus(deployed=True, namespace=namespaces[0])


async def wait_until_deployed(
    probe: DeploymentProbe,
    timeout: float,
    base_delay: float = 1.0,
    max_delay: float = 10.0,
) -> bool:
    """Poll the probe until the runtime is up or `timeout` seconds pass.

    Uses exponential backoff with jitter. Probe errors count as "not yet".
    """
    deadline = time.monotonic() + timeout
    attempt = 0
    while True:
        try:
            status = await probe.check()
            if status.deployed:
                return True
        except DeploymentError as exc:
            logger.debug("Readiness probe failed", extra={"error": str(exc)})

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return False
        delay = min(max_delay, base_delay * (2 ** attempt)) + random.uniform(0, 0.5)
        logger.debug("Waiting for Inspektor Gadget pods",
                     extra={"extra": {"attempt": attempt + 1, "delay": round(delay, 1)}})
        await asyncio.sleep(min(delay, remaining))
        attempt += 1
