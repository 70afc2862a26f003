"""
Tool synthesis: turns a GadgetDescriptor into a ToolDefinition.

Everything here is a pure function of its inputs so the same descriptor always
yields the same schema and description text.
"""

from typing import Any

from ig_mcp_server.models import GadgetDescriptor, ToolDefinition

ENVIRONMENT_LABELS = {
    "kubernetes": "Kubernetes",
    "linux": "Linux",
}

_DESCRIPTION_TEMPLATE = """\
{description}

The "{name}" tool runs the Inspektor Gadget gadget "{name}" on {environment} \
and returns the captured events as JSON lines.
Run it in the foreground (default) to collect events until the timeout expires, \
or set "background" to true to start it detached: the call then returns an ID \
that must be passed to "get-results" to read the collected events and to \
"stop-gadget" once done.
Keep the timeout short and use parameters to filter the data where possible.
{fields_section}"""

_FIELDS_HEADER = "Each event contains the following fields:"


def normalize_tool_name(name: str) -> str:
    """Replace spaces with underscores: 'trace dns' -> 'trace_dns'."""
    return name.replace(" ", "_")


def default_params(descriptor: GadgetDescriptor) -> dict[str, str]:
    """Parameters with a non-empty default, keyed by prefix+key."""
    return {
        p.full_key: p.default_value
        for p in descriptor.param_descs
        if p.default_value != ""
    }


def build_input_schema(descriptor: GadgetDescriptor) -> dict[str, Any]:
    """JSON schema for a gadget tool's arguments."""
    properties: dict[str, Any] = {}
    for p in descriptor.param_descs:
        properties[p.full_key] = {
            "type": "string",
            "description": p.description,
        }

    return {
        "type": "object",
        "properties": {
            "params": {
                "type": "object",
                "description": "key-value pairs of parameters to pass to the gadget",
                "properties": properties,
            },
            "timeout": {
                "type": "number",
                "description": "Timeout in seconds for the gadget to run (foreground only)",
            },
            "background": {
                "type": "boolean",
                "description": (
                    "Run the gadget in the background and return its ID instead of "
                    "waiting for results"
                ),
            },
        },
        "required": ["params"],
    }


def _render_fields(descriptor: GadgetDescriptor) -> str:
    if not descriptor.output_fields:
        return ""
    lines = [_FIELDS_HEADER]
    for field in descriptor.output_fields:
        line = f"- {field.name}"
        if field.description:
            line += f": {field.description}"
        if field.allowed_values:
            line += f" (possible values: {field.allowed_values})"
        lines.append(line)
    return "\n".join(lines) + "\n"


def render_description(descriptor: GadgetDescriptor, environment: str) -> str:
    return _DESCRIPTION_TEMPLATE.format(
        name=normalize_tool_name(descriptor.name),
        description=descriptor.description or f"Inspektor Gadget gadget {descriptor.name}",
        environment=ENVIRONMENT_LABELS.get(environment, environment),
        fields_section=_render_fields(descriptor),
    )


def synthesize(descriptor: GadgetDescriptor, environment: str) -> ToolDefinition:
    return ToolDefinition(
        name=normalize_tool_name(descriptor.name),
        description=render_description(descriptor, environment),
        input_schema=build_input_schema(descriptor),
        read_only=True,
    )
