"""Tests for descriptor parsing and tool synthesis.

Covers:
- GadgetDescriptor.from_info: name/description, params, first data source fields
- normalize_tool_name, default_params
- build_input_schema: one string property per prefix+key
- render_description / synthesize: determinism, environment label, output fields
"""

import json

import pytest

from ig_mcp_server.models import GadgetDescriptor, ParamDesc
from ig_mcp_server.tools.synthesis import (
    build_input_schema,
    default_params,
    normalize_tool_name,
    render_description,
    synthesize,
)

TRACE_DNS_METADATA = """\
name: trace dns
description: trace dns requests and responses
datasources:
  dns:
    fields:
      name:
        annotations:
          description: Domain name being queried
      qr:
        annotations:
          description: Query or response
          value.one-of: Q, R
      id:
        annotations:
          json.skip: "true"
  other:
    fields:
      ignored:
        annotations:
          description: Belongs to the second data source
"""

TRACE_DNS_PARAMS = [
    {"key": "namespace", "prefix": "operator.KubeManager.", "description": "Namespace filter"},
    {"key": "all-namespaces", "prefix": "operator.KubeManager.", "description": "All namespaces",
     "defaultValue": "false"},
]


def _descriptor(**overrides) -> GadgetDescriptor:
    return GadgetDescriptor.from_info(
        overrides.get("image", "trace_dns:latest"),
        overrides.get("metadata", TRACE_DNS_METADATA),
        overrides.get("params", TRACE_DNS_PARAMS),
    )


class TestDescriptorFromInfo:
    def test_parses_name_and_description(self):
        d = _descriptor()
        assert d.image_reference == "trace_dns:latest"
        assert d.name == "trace dns"
        assert d.description == "trace dns requests and responses"
        assert d.raw_metadata == TRACE_DNS_METADATA

    def test_params_keep_order_and_defaults(self):
        d = _descriptor()
        assert [p.full_key for p in d.param_descs] == [
            "operator.KubeManager.namespace",
            "operator.KubeManager.all-namespaces",
        ]
        assert d.param_descs[1].default_value == "false"

    def test_output_fields_from_first_datasource_only(self):
        d = _descriptor()
        names = [f.name for f in d.output_fields]
        assert names == ["name", "qr"]
        qr = d.output_fields[1]
        assert qr.description == "Query or response"
        assert qr.allowed_values == "Q, R"

    def test_no_datasources_gives_empty_fields(self):
        d = _descriptor(metadata="name: snapshot process\n")
        assert d.output_fields == ()

    def test_invalid_yaml_raises(self):
        with pytest.raises(ValueError, match="unmarshalling"):
            _descriptor(metadata="name: [unclosed")

    def test_missing_name_raises(self):
        with pytest.raises(ValueError, match="no name"):
            _descriptor(metadata="description: nameless\n")

    def test_descriptor_is_immutable(self):
        d = _descriptor()
        with pytest.raises(Exception):
            d.name = "other"


class TestNamingAndDefaults:
    def test_normalize_replaces_spaces(self):
        assert normalize_tool_name("trace dns") == "trace_dns"
        assert normalize_tool_name("top  tcp") == "top__tcp"
        assert normalize_tool_name("snapshot_process") == "snapshot_process"

    def test_default_params_skips_empty_defaults(self):
        assert default_params(_descriptor()) == {"operator.KubeManager.all-namespaces": "false"}


class TestInputSchema:
    def test_params_are_string_properties_keyed_by_prefix_and_key(self):
        schema = build_input_schema(_descriptor())
        params = schema["properties"]["params"]
        assert params["type"] == "object"
        assert params["properties"] == {
            "operator.KubeManager.namespace": {"type": "string", "description": "Namespace filter"},
            "operator.KubeManager.all-namespaces": {"type": "string", "description": "All namespaces"},
        }
        assert schema["required"] == ["params"]

    def test_timeout_and_background_properties(self):
        schema = build_input_schema(_descriptor())
        assert schema["properties"]["timeout"]["type"] == "number"
        assert schema["properties"]["background"]["type"] == "boolean"

    def test_gadget_without_params(self):
        schema = build_input_schema(_descriptor(params=[]))
        assert schema["properties"]["params"]["properties"] == {}


class TestSynthesize:
    def test_tool_definition(self):
        tool = synthesize(_descriptor(), "kubernetes")
        assert tool.name == "trace_dns"
        assert tool.read_only is True
        assert "trace dns requests and responses" in tool.description
        assert "Kubernetes" in tool.description

    def test_deterministic(self):
        first = synthesize(_descriptor(), "kubernetes")
        second = synthesize(_descriptor(), "kubernetes")
        assert json.dumps(first.input_schema) == json.dumps(second.input_schema)
        assert first.description == second.description
        assert first == second

    def test_description_lists_output_fields(self):
        text = render_description(_descriptor(), "kubernetes")
        assert "- name: Domain name being queried" in text
        assert "- qr: Query or response (possible values: Q, R)" in text
        assert "id" not in [line.lstrip("- ").split(":")[0] for line in text.splitlines() if line.startswith("- ")]

    def test_description_mentions_background_workflow(self):
        text = render_description(_descriptor(), "linux")
        assert "Linux" in text
        assert "get-results" in text
        assert "stop-gadget" in text

    def test_description_without_fields(self):
        text = render_description(_descriptor(metadata="name: snapshot process\n"), "kubernetes")
        assert "following fields" not in text

    def test_hand_built_descriptor(self):
        d = GadgetDescriptor(
            image_reference="custom:latest",
            name="custom gadget",
            param_descs=(ParamDesc(key="pid", description="Process ID"),),
        )
        tool = synthesize(d, "linux")
        assert tool.name == "custom_gadget"
        assert "pid" in tool.input_schema["properties"]["params"]["properties"]
