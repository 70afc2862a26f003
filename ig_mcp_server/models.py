"""Core data models: gadget descriptors, tool definitions, execution sessions."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field

# Field annotations read from gadget metadata
_DESCRIPTION_ANNOTATION = "description"
_ONE_OF_ANNOTATION = "value.one-of"
_HIDDEN_ANNOTATION = "json.skip"


class ParamDesc(BaseModel):
    """One gadget parameter as reported by the runtime."""
    model_config = ConfigDict(frozen=True)

    key: str
    prefix: str = ""
    description: str = ""
    default_value: str = ""

    @property
    def full_key(self) -> str:
        return self.prefix + self.key


class OutputField(BaseModel):
    """A field of the gadget's first output data source."""
    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    allowed_values: str = ""


class GadgetDescriptor(BaseModel):
    """Metadata bundle for one gadget image. Immutable once fetched."""
    model_config = ConfigDict(frozen=True)

    image_reference: str
    raw_metadata: str = ""
    name: str
    description: str = ""
    param_descs: tuple[ParamDesc, ...] = ()
    output_fields: tuple[OutputField, ...] = ()

    @classmethod
    def from_info(
        cls,
        image_reference: str,
        raw_metadata: str,
        params: list[dict[str, Any]],
    ) -> "GadgetDescriptor":
        """Build a descriptor from the runtime's gadget info.

        ``raw_metadata`` is the gadget's YAML metadata document; ``params`` are
        the runtime's parameter descriptions (key, prefix, description,
        defaultValue). Raises ValueError if the metadata cannot be parsed or
        has no name.
        """
        try:
            metadata = yaml.safe_load(raw_metadata) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"unmarshalling gadget metadata: {exc}") from exc
        if not isinstance(metadata, dict):
            raise ValueError("unmarshalling gadget metadata: expected a mapping")

        name = str(metadata.get("name") or "").strip()
        if not name:
            raise ValueError(f"gadget metadata for {image_reference} has no name")

        param_descs = tuple(
            ParamDesc(
                key=str(p.get("key", "")),
                prefix=str(p.get("prefix", "") or ""),
                description=str(p.get("description", "") or ""),
                default_value=str(p.get("defaultValue", "") or ""),
            )
            for p in params or []
            if p.get("key")
        )

        return cls(
            image_reference=image_reference,
            raw_metadata=raw_metadata,
            name=name,
            description=str(metadata.get("description") or ""),
            param_descs=param_descs,
            output_fields=_first_datasource_fields(metadata),
        )


def _first_datasource_fields(metadata: dict[str, Any]) -> tuple[OutputField, ...]:
    datasources = metadata.get("datasources") or {}
    if not isinstance(datasources, dict) or not datasources:
        return ()
    first = next(iter(datasources.values()))
    if not isinstance(first, dict):
        return ()
    fields = first.get("fields") or {}
    if not isinstance(fields, dict):
        return ()

    result: list[OutputField] = []
    for field_name, spec in fields.items():
        annotations = {}
        if isinstance(spec, dict):
            annotations = spec.get("annotations") or {}
        if str(annotations.get(_HIDDEN_ANNOTATION, "")).lower() == "true":
            continue
        result.append(OutputField(
            name=str(field_name),
            description=str(annotations.get(_DESCRIPTION_ANNOTATION, "") or ""),
            allowed_values=str(annotations.get(_ONE_OF_ANNOTATION, "") or ""),
        ))
    return tuple(result)


class ToolDefinition(BaseModel):
    """A named, schema-described tool exposed to the calling agent."""
    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    input_schema: dict[str, Any] = Field(default_factory=dict)
    read_only: bool = True


class SessionState(str, Enum):
    RUNNING = "running"
    STOPPED = "stopped"


class ExecutionSession(BaseModel):
    """A detached gadget run. Results stay on the runtime, pulled by id."""

    id: str
    image_reference: str
    state: SessionState = SessionState.RUNNING


class DeploymentStatus(BaseModel):
    deployed: bool = False
    namespace: Optional[str] = None
