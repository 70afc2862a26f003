"""
Tool handlers. Each handler takes the call's arguments dict -> returns ToolResult.

Handlers never raise for per-call problems (bad arguments, runtime or
deployment failures): those come back as error results the agent can read.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

from ig_mcp_server.config import ServerConfig
from ig_mcp_server.deployer import Deployer, DeploymentProbe, DeployOptions
from ig_mcp_server.errors import (
    DeploymentError,
    GadgetClientError,
    InvalidArgumentsError,
    NotDeployedByManagerError,
)
from ig_mcp_server.gadget_client.base import GadgetClient
from ig_mcp_server.models import GadgetDescriptor, ToolDefinition
from ig_mcp_server.tools.synthesis import default_params
from ig_mcp_server.tools.tool_result import ToolResult, wrap_output
from ig_mcp_server.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 10.0
DEFAULT_WAIT_SECONDS = 1
# Periodic gadgets (top_*) emit one snapshot per interval
INTERVAL_PARAM = "map-fetch-interval"


class ToolHandler(Protocol):
    async def __call__(self, arguments: dict[str, Any]) -> ToolResult:
        ...


@dataclass(frozen=True)
class RegisteredTool:
    definition: ToolDefinition
    handler: ToolHandler
    # Set for gadget-derived tools
    image_reference: Optional[str] = None

    @property
    def name(self) -> str:
        return self.definition.name


# ------------------------------------------------------------------
# Argument helpers
# ------------------------------------------------------------------

def _string_arg(arguments: dict[str, Any], name: str, default: str = "") -> str:
    value = arguments.get(name)
    if value is None:
        return default
    if not isinstance(value, str):
        raise InvalidArgumentsError(
            f"invalid type for argument {name}: expected string, got {type(value).__name__}"
        )
    return value or default


def _required_id(arguments: dict[str, Any]) -> str:
    gadget_id = _string_arg(arguments, "id").strip()
    if not gadget_id:
        raise InvalidArgumentsError("an id is required")
    return gadget_id


def _number_arg(arguments: dict[str, Any], name: str, default: float) -> float:
    value = arguments.get(name)
    if value is None:
        return default
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidArgumentsError(
            f"invalid type for argument {name}: expected number, got {type(value).__name__}"
        )
    return float(value)


def format_seconds(seconds: float) -> str:
    """Go-style duration string: 5.0 -> '5s', 2.5 -> '2.5s'."""
    if seconds == int(seconds):
        return f"{int(seconds)}s"
    return f"{seconds:g}s"


def _is_interval_param(full_key: str) -> bool:
    return full_key == INTERVAL_PARAM or full_key.endswith("." + INTERVAL_PARAM)


@dataclass(frozen=True)
class GadgetCall:
    params: dict[str, str]
    timeout: float
    background: bool


def parse_gadget_call(descriptor: GadgetDescriptor, arguments: Optional[dict[str, Any]]) -> GadgetCall:
    """Validate a gadget tool call and derive the parameters to run it with.

    Caller params override the gadget's defaults. Every caller value must be
    a string; the first bad one rejects the whole call. In the foreground the
    snapshot interval is set to half the timeout.
    """
    arguments = arguments or {}

    params = default_params(descriptor)
    user_params = arguments.get("params")
    if user_params is None:
        user_params = {}
    if not isinstance(user_params, dict):
        raise InvalidArgumentsError(
            f"invalid type for params: expected object, got {type(user_params).__name__}"
        )
    for key, value in user_params.items():
        if not isinstance(value, str):
            raise InvalidArgumentsError(
                f"invalid type for parameter {key}: expected string, got {type(value).__name__}"
            )
        params[key] = value

    timeout = _number_arg(arguments, "timeout", DEFAULT_TIMEOUT)
    if timeout <= 0:
        raise InvalidArgumentsError(f"timeout must be positive, got {timeout:g}")

    background = arguments.get("background")
    if background is None:
        background = False
    if not isinstance(background, bool):
        raise InvalidArgumentsError(
            f"invalid type for argument background: expected boolean, got {type(background).__name__}"
        )

    if not background:
        for key in params:
            if _is_interval_param(key):
                params[key] = format_seconds(timeout / 2)

    return GadgetCall(params=params, timeout=timeout, background=background)


# ------------------------------------------------------------------
# Gadget tools
# ------------------------------------------------------------------

class GadgetHandler:
    """Runs one gadget image, in the foreground or detached.

    Holds only the descriptor and the client it runs on; no per-call state
    survives between invocations.
    """

    def __init__(self, descriptor: GadgetDescriptor, client: GadgetClient):
        self.descriptor = descriptor
        self._client = client

    async def __call__(self, arguments: dict[str, Any]) -> ToolResult:
        image = self.descriptor.image_reference
        try:
            call = parse_gadget_call(self.descriptor, arguments)
        except InvalidArgumentsError as exc:
            return ToolResult.error(str(exc))

        if call.background:
            return await self._start_detached(image, call)
        return await self._run(image, call)

    async def _run(self, image: str, call: GadgetCall) -> ToolResult:
        logger.debug("Running gadget", extra={
            "image": image, "extra": {"params": call.params, "timeout": call.timeout},
        })
        start = time.monotonic()
        try:
            output = await self._client.run(image, call.params, call.timeout)
        except GadgetClientError as exc:
            logger.warning("Gadget run failed", extra={"image": image, "error": str(exc)})
            return ToolResult.error(f"running gadget {image}: {exc}")
        logger.info("Gadget run complete", extra={
            "image": image, "duration_ms": int((time.monotonic() - start) * 1000),
        })
        return ToolResult.ok(wrap_output(output))

    async def _start_detached(self, image: str, call: GadgetCall) -> ToolResult:
        try:
            gadget_id = await self._client.run_detached(image, call.params)
        except GadgetClientError as exc:
            logger.warning("Starting detached gadget failed", extra={"image": image, "error": str(exc)})
            return ToolResult.error(f"starting gadget {image}: {exc}")
        return ToolResult.ok(gadget_id)


# ------------------------------------------------------------------
# Lifecycle tools for detached gadgets
# ------------------------------------------------------------------

class StopGadgetHandler:
    def __init__(self, client: GadgetClient):
        self._client = client

    async def __call__(self, arguments: dict[str, Any]) -> ToolResult:
        try:
            gadget_id = _required_id(arguments or {})
        except InvalidArgumentsError as exc:
            return ToolResult.error(str(exc))
        try:
            await self._client.stop(gadget_id)
        except GadgetClientError as exc:
            return ToolResult.error(f"failed to stop gadget with id {gadget_id!r}: {exc}")
        return ToolResult.ok(f"Gadget with ID {gadget_id!r} has been stopped")


class GetResultsHandler:
    def __init__(self, client: GadgetClient):
        self._client = client

    async def __call__(self, arguments: dict[str, Any]) -> ToolResult:
        try:
            gadget_id = _required_id(arguments or {})
        except InvalidArgumentsError as exc:
            return ToolResult.error(str(exc))
        try:
            output = await self._client.results(gadget_id)
        except GadgetClientError as exc:
            return ToolResult.error(f"attaching to gadget {gadget_id}: {exc}")
        return ToolResult.ok(wrap_output(output))


class WaitHandler:
    async def __call__(self, arguments: dict[str, Any]) -> ToolResult:
        try:
            wait_time = _number_arg(arguments or {}, "waitTime", DEFAULT_WAIT_SECONDS)
        except InvalidArgumentsError as exc:
            return ToolResult.error(str(exc))
        if wait_time < 0:
            return ToolResult.error("waitTime must not be negative")
        await asyncio.sleep(wait_time)
        return ToolResult.ok(f"{wait_time:g} seconds have passed")


# ------------------------------------------------------------------
# Deployment tools
# ------------------------------------------------------------------

def _deploy_options(arguments: dict[str, Any], config: ServerConfig, with_chart: bool) -> DeployOptions:
    values = {
        "release_name": _string_arg(arguments, "release", config.release_name),
        "namespace": _string_arg(arguments, "namespace", config.deploy_namespace),
    }
    if with_chart:
        values["chart_url"] = config.chart_url
        values["chart_version"] = _string_arg(arguments, "chart_version", config.chart_version)
    return DeployOptions(**values)


class DeployHandler:
    """Installs the runtime, then triggers `on_deployed` (fire-and-forget)."""

    def __init__(self, deployer: Optional[Deployer], config: ServerConfig, on_deployed: Callable[[], Any]):
        self._deployer = deployer
        self._config = config
        self._on_deployed = on_deployed

    async def __call__(self, arguments: dict[str, Any]) -> ToolResult:
        if self._deployer is None:
            return ToolResult.error(
                f"deploying Inspektor Gadget is not supported in environment {self._config.environment}"
            )
        try:
            options = _deploy_options(arguments or {}, self._config, with_chart=True)
        except InvalidArgumentsError as exc:
            return ToolResult.error(str(exc))
        try:
            await self._deployer.deploy(options)
        except DeploymentError as exc:
            logger.warning("Deploy failed", extra={
                "release": options.release_name, "namespace": options.namespace, "error": str(exc),
            })
            return ToolResult.error(str(exc))

        self._on_deployed()
        return ToolResult.ok("Inspektor Gadget deploy completed successfully")


class UndeployHandler:
    def __init__(self, deployer: Optional[Deployer], config: ServerConfig):
        self._deployer = deployer
        self._config = config

    async def __call__(self, arguments: dict[str, Any]) -> ToolResult:
        if self._deployer is None:
            return ToolResult.error(
                f"undeploying Inspektor Gadget is not supported in environment {self._config.environment}"
            )
        try:
            options = _deploy_options(arguments or {}, self._config, with_chart=False)
        except InvalidArgumentsError as exc:
            return ToolResult.error(str(exc))
        try:
            await self._deployer.undeploy(options)
        except NotDeployedByManagerError as exc:
            return ToolResult.error(f"Nothing to undeploy: {exc}")
        except DeploymentError as exc:
            logger.warning("Undeploy failed", extra={
                "release": options.release_name, "namespace": options.namespace, "error": str(exc),
            })
            return ToolResult.error(f"failed to undeploy Inspektor Gadget: {exc}")
        return ToolResult.ok("Inspektor Gadget undeploy completed successfully")


class IsDeployedHandler:
    def __init__(self, probe: Optional[DeploymentProbe], config: ServerConfig):
        self._probe = probe
        self._config = config

    async def __call__(self, arguments: dict[str, Any]) -> ToolResult:
        if self._probe is None:
            return ToolResult.error(
                f"checking the deployment is not supported in environment {self._config.environment}"
            )
        try:
            status = await self._probe.check()
        except DeploymentError as exc:
            return ToolResult.error(str(exc))
        if not status.deployed:
            return ToolResult.ok("Inspektor Gadget is not deployed")
        return ToolResult.ok(f"Inspektor Gadget is deployed in namespace {status.namespace}")
