"""Helm-based Deployer: installs the Inspektor Gadget chart with the helm CLI."""

from __future__ import annotations

import asyncio
from typing import Callable, Optional

from kubernetes import client
from kubernetes.client.exceptions import ApiException

from ig_mcp_server.deployer.base import (
    LABEL_KEY_MANAGED_BY,
    LABEL_VALUE_MANAGED_BY,
    Deployer,
    DeployOptions,
)
from ig_mcp_server.errors import DeploymentError, NotDeployedByManagerError
from ig_mcp_server.utils.commands import run_command
from ig_mcp_server.utils.k8s import load_api_client
from ig_mcp_server.utils.logger import get_logger

logger = get_logger(__name__)

INSTALL_TIMEOUT = "30s"
# Covers chart pull plus the --wait above
HELM_DEADLINE = 300.0


class HelmDeployer(Deployer):
    """Deploys via `helm install`, tracks ownership through Helm's release secrets."""

    def __init__(self, helm_binary: str = "helm", api_factory: Optional[Callable[[], client.CoreV1Api]] = None):
        self._helm = helm_binary
        self._api_factory = api_factory
        self._core_api: Optional[client.CoreV1Api] = None

    def _get_core_api(self) -> client.CoreV1Api:
        """Lazily initialize and cache the CoreV1Api client."""
        if self._core_api is None:
            if self._api_factory is not None:
                self._core_api = self._api_factory()
            else:
                try:
                    self._core_api = client.CoreV1Api(load_api_client())
                except RuntimeError as exc:
                    raise DeploymentError(str(exc)) from exc
        return self._core_api

    async def _helm_cmd(self, action: str, args: list[str]) -> str:
        try:
            code, stdout, stderr = await run_command([self._helm] + args, timeout=HELM_DEADLINE)
        except asyncio.TimeoutError:
            raise DeploymentError(f"{action}: helm timed out after {HELM_DEADLINE:.0f}s") from None
        except OSError as exc:
            raise DeploymentError(f"{action}: {exc}") from exc
        if code != 0:
            raise DeploymentError(f"{action}: {stderr or f'helm exited with code {code}'}")
        return stdout

    async def deploy(self, options: DeployOptions) -> None:
        if not options.chart_url:
            raise DeploymentError("chart URL not set")

        args = [
            "install", options.release_name, options.chart_url,
            "--namespace", options.namespace,
            "--wait",
            "--timeout", INSTALL_TIMEOUT,
            "--labels", f"{LABEL_KEY_MANAGED_BY}={LABEL_VALUE_MANAGED_BY}",
        ]
        if options.chart_version:
            args += ["--version", options.chart_version]
        if not options.skip_namespace_creation:
            args.append("--create-namespace")

        logger.debug("Deploying gadget", extra={
            "release": options.release_name,
            "namespace": options.namespace,
            "extra": {"chart_url": options.chart_url, "chart_version": options.chart_version},
        })
        await self._helm_cmd("run install action", args)
        logger.info("Successfully deployed Inspektor Gadget", extra={
            "release": options.release_name, "namespace": options.namespace,
        })

    async def undeploy(self, options: DeployOptions) -> None:
        try:
            deployed = await self.is_deployed(options)
        except DeploymentError as exc:
            raise DeploymentError(f"check if gadget is deployed: {exc}") from exc
        if not deployed:
            logger.debug("Inspektor Gadget wasn't deployed by this server, nothing to do", extra={
                "release": options.release_name, "namespace": options.namespace,
            })
            raise NotDeployedByManagerError(
                f"release {options.release_name!r} in namespace {options.namespace!r} "
                "was not deployed by ig-mcp-server"
            )

        await self._helm_cmd("run uninstall action", [
            "uninstall", options.release_name,
            "--namespace", options.namespace,
            "--no-hooks",
        ])
        logger.info("Successfully undeployed Inspektor Gadget", extra={
            "release": options.release_name, "namespace": options.namespace,
        })

    async def is_deployed(self, options: DeployOptions) -> bool:
        api = self._get_core_api()
        selector = f"owner=helm,name={options.release_name}"
        try:
            secrets = await asyncio.to_thread(
                api.list_namespaced_secret, options.namespace, label_selector=selector,
            )
        except ApiException as exc:
            raise DeploymentError(f"K8s API error ({exc.status}): {exc.reason}") from exc

        if not secrets.items:
            logger.debug("Helm release not found", extra={
                "release": options.release_name, "namespace": options.namespace,
            })
            return False

        latest = max(secrets.items, key=_release_revision)
        labels = latest.metadata.labels or {}
        managed = labels.get(LABEL_KEY_MANAGED_BY) == LABEL_VALUE_MANAGED_BY
        logger.debug("Checked Helm release ownership", extra={
            "release": options.release_name,
            "namespace": options.namespace,
            "extra": {"managed": managed},
        })
        return managed


def _release_revision(secret) -> int:
    labels = secret.metadata.labels or {}
    try:
        return int(labels.get("version", "0"))
    except ValueError:
        return 0
