"""Typed view of the server's `/object_info` response.

Each node type declares its inputs as `[type, metadata?]` pairs, where `type`
is either a type name or a list of allowed choice values. `classify_input`
turns one such pair into an input slot schema; unknown type names become a
`GenericInput` so new server-side types never break parsing.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List, Literal, Mapping, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, Field, ValidationError

from .errors import SchemaError

logger = logging.getLogger(__name__)

RESOURCE_TYPES = ("MODEL", "VAE", "CONDITIONING", "LATENT", "CLIP", "IMAGE", "MASK")

InputGroup = Literal["required", "optional", "hidden"]


class InputInfo(BaseModel):
    tooltip: Optional[str] = None


class TextInput(InputInfo):
    type: Literal["TEXT"] = "TEXT"
    multiline: bool = False


class FloatInput(InputInfo):
    type: Literal["FLOAT"] = "FLOAT"
    default: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    step: Optional[float] = None
    round: Optional[Union[float, bool]] = None


class IntInput(InputInfo):
    type: Literal["INT"] = "INT"
    default: Optional[Union[int, float]] = None
    min: Optional[Union[int, float]] = None
    max: Optional[Union[int, float]] = None
    step: Optional[Union[int, float]] = None


class StringInput(InputInfo):
    type: Literal["STRING"] = "STRING"
    default: Optional[str] = None


class BooleanInput(InputInfo):
    type: Literal["BOOLEAN"] = "BOOLEAN"
    default: Optional[bool] = None


class ResourceInput(InputInfo):
    type: Literal["MODEL", "VAE", "CONDITIONING", "LATENT", "CLIP", "IMAGE", "MASK"]


class ChoiceInput(InputInfo):
    values: List[Union[str, int, float, bool]]


class GenericInput(InputInfo):
    generic_type: str


InputSlotSchema = Union[TextInput, FloatInput, IntInput, StringInput, BooleanInput,
                        ResourceInput, ChoiceInput, GenericInput]


class OutputSlotSchema(BaseModel):
    type: str
    name: str
    is_list: bool = False
    tooltip: Optional[str] = None


class NodeInputs(BaseModel):
    required: Dict[str, InputSlotSchema] = Field(default_factory=dict)
    optional: Dict[str, InputSlotSchema] = Field(default_factory=dict)
    hidden: Dict[str, InputSlotSchema] = Field(default_factory=dict)


class NodeTypeSchema(BaseModel):
    name: str
    display_name: str = ""
    description: str = ""
    category: str = ""
    is_output_node: bool = False
    inputs: NodeInputs = Field(default_factory=NodeInputs)
    outputs: List[OutputSlotSchema] = Field(default_factory=list)

    def input_names(self) -> List[str]:
        return [name for name, _, _ in iter_node_inputs(self)]

    def get_input(self, name: str) -> Optional[InputSlotSchema]:
        for input_name, info, _ in iter_node_inputs(self):
            if input_name == name:
                return info
        return None


def type_name(info: InputSlotSchema) -> str:
    """The server type name of an input, `COMBO` for choice lists."""
    if isinstance(info, GenericInput):
        return info.generic_type
    if isinstance(info, ChoiceInput):
        return "COMBO"
    return info.type


def classify_input(descriptor: Union[str, Sequence[Any]]) -> InputSlotSchema:
    """Classify one `[type, metadata?]` descriptor.

    Metadata that does not fit the variant for a known type name (a string
    default on an INT, say) degrades the input to a `GenericInput` instead
    of failing the whole response.
    """
    # hidden inputs are declared as a bare type name
    if isinstance(descriptor, str):
        descriptor = (descriptor,)
    if not descriptor:
        raise SchemaError("Empty input descriptor")
    raw_type = descriptor[0]
    meta: Mapping[str, Any] = {}
    if len(descriptor) > 1 and isinstance(descriptor[1], Mapping):
        meta = descriptor[1]
    tooltip = meta.get("tooltip")
    if tooltip is not None and not isinstance(tooltip, str):
        tooltip = str(tooltip)

    try:
        return _classify(raw_type, meta, tooltip)
    except ValidationError as e:
        generic_type = "COMBO" if isinstance(raw_type, (list, tuple)) else str(raw_type)
        logger.warning("Unexpected metadata for %s input, treating it as generic: %s",
                       generic_type, e.errors(include_url=False))
        return GenericInput(generic_type=generic_type, tooltip=tooltip)


def _classify(raw_type: Any, meta: Mapping[str, Any], tooltip: Optional[str]) -> InputSlotSchema:
    if isinstance(raw_type, (list, tuple)):
        return ChoiceInput(values=list(raw_type), tooltip=tooltip)
    if raw_type == "TEXT":
        return TextInput(multiline=bool(meta.get("multiline", False)), tooltip=tooltip)
    if raw_type == "FLOAT":
        return FloatInput(default=meta.get("default"), min=meta.get("min"), max=meta.get("max"),
                          step=meta.get("step"), round=meta.get("round"), tooltip=tooltip)
    if raw_type == "INT":
        return IntInput(default=meta.get("default"), min=meta.get("min"), max=meta.get("max"),
                        step=meta.get("step"), tooltip=tooltip)
    if raw_type == "STRING":
        return StringInput(default=meta.get("default"), tooltip=tooltip)
    if raw_type == "BOOLEAN":
        return BooleanInput(default=meta.get("default"), tooltip=tooltip)
    if raw_type in RESOURCE_TYPES:
        return ResourceInput(type=raw_type, tooltip=tooltip)
    return GenericInput(generic_type=str(raw_type), tooltip=tooltip)


def parse_node_schema(class_type: str, raw: Mapping[str, Any]) -> NodeTypeSchema:
    raw_inputs = raw.get("input") or {}
    groups: Dict[str, Dict[str, InputSlotSchema]] = {"required": {}, "optional": {}, "hidden": {}}
    seen = set()
    for group in groups:
        for name, descriptor in (raw_inputs.get(group) or {}).items():
            if name in seen:
                logger.warning("Duplicate input %s on node %s", name, class_type)
                continue
            seen.add(name)
            groups[group][name] = classify_input(descriptor)

    output_types = raw.get("output") or []
    is_list = raw.get("output_is_list") or []
    names = raw.get("output_name") or []
    tooltips = raw.get("output_tooltips") or []
    if len(is_list) != len(output_types):
        raise SchemaError(f"Node {class_type} declares {len(output_types)} outputs "
                          f"but {len(is_list)} output_is_list flags")

    outputs = []
    for index, output_type in enumerate(output_types):
        outputs.append(OutputSlotSchema(
            type=str(output_type) if not isinstance(output_type, list) else "COMBO",
            name=names[index] if index < len(names) else str(output_type),
            is_list=bool(is_list[index]),
            tooltip=tooltips[index] if index < len(tooltips) else None,
        ))

    return NodeTypeSchema(
        name=raw.get("name", class_type),
        display_name=raw.get("display_name") or "",
        description=raw.get("description") or "",
        category=raw.get("category") or "",
        is_output_node=bool(raw.get("output_node", False)),
        inputs=NodeInputs(**groups),
        outputs=outputs,
    )


def parse_schema_response(raw: Mapping[str, Any]) -> Dict[str, NodeTypeSchema]:
    return {class_type: parse_node_schema(class_type, entry) for class_type, entry in raw.items()}


def iter_node_inputs(schema: NodeTypeSchema) -> Iterator[Tuple[str, InputSlotSchema, InputGroup]]:
    for name, info in schema.inputs.required.items():
        yield name, info, "required"
    for name, info in schema.inputs.optional.items():
        yield name, info, "optional"
    for name, info in schema.inputs.hidden.items():
        yield name, info, "hidden"
