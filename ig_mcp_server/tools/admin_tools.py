"""
Administrative tools: always registered, whether or not gadgets are available.

They let the agent deploy the runtime itself, check on it, pace itself with
`wait`, and manage gadgets started in the background.
"""

from __future__ import annotations

from typing import Any, Callable, Optional

from ig_mcp_server.config import ServerConfig
from ig_mcp_server.deployer import Deployer, DeploymentProbe
from ig_mcp_server.gadget_client.base import GadgetClient
from ig_mcp_server.models import ToolDefinition
from ig_mcp_server.tools.handlers import (
    DeployHandler,
    GetResultsHandler,
    IsDeployedHandler,
    RegisteredTool,
    StopGadgetHandler,
    UndeployHandler,
    WaitHandler,
)

DEPLOY_TOOL = "deploy_inspektor_gadget"
UNDEPLOY_TOOL = "undeploy_inspektor_gadget"
IS_DEPLOYED_TOOL = "is_inspektor_gadget_deployed"
WAIT_TOOL = "wait"
STOP_GADGET_TOOL = "stop-gadget"
GET_RESULTS_TOOL = "get-results"


def _schema(properties: dict[str, Any]) -> dict[str, Any]:
    return {"type": "object", "properties": properties}


def _string_prop(description: str, default: Optional[str] = None) -> dict[str, Any]:
    prop: dict[str, Any] = {"type": "string", "description": description}
    if default is not None:
        prop["default"] = default
    return prop


def deploy_definition(config: ServerConfig) -> ToolDefinition:
    return ToolDefinition(
        name=DEPLOY_TOOL,
        description="Deploy Inspektor Gadget on the target system",
        read_only=False,
        input_schema=_schema({
            "namespace": _string_prop(
                "Kubernetes namespace to deploy Inspektor Gadget into, only set if user "
                "explicitly specifies a namespace",
                config.deploy_namespace,
            ),
            "release": _string_prop(
                "Name of Helm release to create for Inspektor Gadget, only set if user "
                "explicitly specifies a release name",
                config.release_name,
            ),
            "chart_version": _string_prop(
                "Version of the Inspektor Gadget Helm chart to deploy, only set if user "
                "explicitly specifies a version",
            ),
        }),
    )


def undeploy_definition(config: ServerConfig) -> ToolDefinition:
    return ToolDefinition(
        name=UNDEPLOY_TOOL,
        description=(
            "Undeploy Inspektor Gadget from the target system. Only removes a deployment "
            "created by this server."
        ),
        read_only=False,
        input_schema=_schema({
            "release": _string_prop(
                "Name of Helm release to remove, only set if user explicitly specifies a release name",
                config.release_name,
            ),
            "namespace": _string_prop(
                "Kubernetes namespace to undeploy Inspektor Gadget from, only set if user "
                "explicitly specifies a namespace",
                config.deploy_namespace,
            ),
        }),
    )


IS_DEPLOYED_DEFINITION = ToolDefinition(
    name=IS_DEPLOYED_TOOL,
    description=(
        "Check if Inspektor Gadget is deployed on the target system. Doesn't rely on if "
        "mcp server deployed it or not but checks if the Inspektor Gadget resources are "
        "present in the cluster."
    ),
    input_schema=_schema({}),
)

WAIT_DEFINITION = ToolDefinition(
    name=WAIT_TOOL,
    description="Wait for a given amount of time",
    input_schema=_schema({
        "waitTime": {"type": "number", "description": "Number of seconds to wait"},
    }),
)

STOP_GADGET_DEFINITION = ToolDefinition(
    name=STOP_GADGET_TOOL,
    description="Stops a gadget running in the background with an ID",
    input_schema={
        "type": "object",
        "properties": {"id": _string_prop("ID of the running gadget")},
        "required": ["id"],
    },
)

GET_RESULTS_DEFINITION = ToolDefinition(
    name=GET_RESULTS_TOOL,
    description=(
        "Returns the collected events from a gadget instance with a specific ID. "
        "Please review the data and provide a concise summary to the user."
    ),
    input_schema={
        "type": "object",
        "properties": {"id": _string_prop("ID of the running gadget instance")},
        "required": ["id"],
    },
)


def build_admin_tools(
    client: GadgetClient,
    config: ServerConfig,
    deployer: Optional[Deployer],
    probe: Optional[DeploymentProbe],
    on_deployed: Callable[[], Any],
) -> list[RegisteredTool]:
    return [
        RegisteredTool(deploy_definition(config), DeployHandler(deployer, config, on_deployed)),
        RegisteredTool(undeploy_definition(config), UndeployHandler(deployer, config)),
        RegisteredTool(IS_DEPLOYED_DEFINITION, IsDeployedHandler(probe, config)),
        RegisteredTool(WAIT_DEFINITION, WaitHandler()),
        RegisteredTool(STOP_GADGET_DEFINITION, StopGadgetHandler(client)),
        RegisteredTool(GET_RESULTS_DEFINITION, GetResultsHandler(client)),
    ]
