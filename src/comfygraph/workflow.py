"""Import of editor workflow documents (the "Save" format of the web UI).

A workflow stores literal inputs positionally in `widgets_values` and
connections as numbered link records. Conversion runs in two passes: first
every node is created and its widget values are mapped onto the required
inputs of its schema, then every link is resolved into an `OutputRef`.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, Field, ValidationError

from .errors import MissingInputSlotError, MissingLinkNodeError, MissingWidgetValueError, WorkflowError
from .graph import GenericNode, Graph, Node
from .schema import NodeTypeSchema
from .storage import load_document

logger = logging.getLogger(__name__)

NodeId = Union[int, str]

# widget position of the UI-only "control after generate" value
CONTROL_WIDGET_POSITIONS = {"KSampler": 1, "PrimitiveNode": 1, "KSamplerAdvanced": 2}
CONTROL_AFTER_GENERATE = "control_after_generate"


class WorkflowNodeInput(BaseModel):
    name: str
    type: Any = None
    link: Optional[int] = None
    widget: Optional[Dict[str, Any]] = None
    slot_index: Optional[int] = None


class WorkflowNodeOutput(BaseModel):
    name: str
    type: Any = None
    links: Optional[List[int]] = None
    slot_index: Optional[int] = None


class WorkflowNode(BaseModel):
    id: NodeId
    type: str
    inputs: Optional[List[WorkflowNodeInput]] = None
    outputs: Optional[List[WorkflowNodeOutput]] = None
    widgets_values: Optional[List[Any]] = None
    mode: int = 0
    properties: Dict[str, Any] = Field(default_factory=dict)


# link id, source node, output slot, target node, input slot, value type
WorkflowLink = Tuple[int, NodeId, int, NodeId, int, Any]


class Workflow(BaseModel):
    nodes: List[WorkflowNode] = Field(default_factory=list)
    links: List[WorkflowLink] = Field(default_factory=list)
    groups: List[Dict[str, Any]] = Field(default_factory=list)
    config: Dict[str, Any] = Field(default_factory=dict)
    extra: Dict[str, Any] = Field(default_factory=dict)
    version: Optional[float] = None


def parse_workflow(data: Mapping[str, Any]) -> Workflow:
    try:
        return Workflow.model_validate(data)
    except ValidationError as e:
        raise WorkflowError(f"Not a workflow document: {e}") from e


def load_workflow(path: Path) -> Workflow:
    return parse_workflow(load_document(path))


def convert_workflow_to_graph(workflow: Union[Workflow, Mapping[str, Any]],
                              schemas: Mapping[str, NodeTypeSchema]) -> Graph:
    if not isinstance(workflow, Workflow):
        workflow = parse_workflow(workflow)

    graph = Graph()
    node_defs: Dict[str, WorkflowNode] = {}

    for node_def in workflow.nodes:
        node_id = str(node_def.id)
        node = graph.add_node(GenericNode(node_def.type), node_id)
        node_defs[node_id] = node_def
        if node_def.widgets_values is None:
            continue
        schema = schemas.get(node_def.type)
        if schema is None:
            logger.warning("No object info for %s node %s, widget values left unmapped", node_def.type, node_id)
            continue
        _apply_widget_values(node, node_def, schema)

    for link in workflow.links:
        link_id, source_id, source_slot, target_id, target_slot = link[:5]
        source = graph.get(str(source_id))
        if source is None:
            raise MissingLinkNodeError("source", source_id, link_id)
        target = graph.get(str(target_id))
        if target is None:
            raise MissingLinkNodeError("target", target_id, link_id)

        target_inputs = node_defs[str(target_id)].inputs or []
        if not 0 <= target_slot < len(target_inputs):
            raise MissingInputSlotError(target_slot, target_id, link_id)
        target.get_input(target_inputs[target_slot].name).connect_to(source.output_ref(source_slot))

    logger.debug("Converted workflow with %d nodes and %d links", len(graph), len(workflow.links))
    return graph


def _apply_widget_values(node: Node, node_def: WorkflowNode, schema: NodeTypeSchema) -> None:
    values = node_def.widgets_values or []
    socket_names = {i.name for i in node_def.inputs or []}
    control_at = CONTROL_WIDGET_POSITIONS.get(node_def.type)
    cursor = 0

    for name in schema.inputs.required:
        if name in socket_names:
            continue
        if name != CONTROL_AFTER_GENERATE and cursor == control_at:
            cursor += 1
        if cursor >= len(values):
            raise MissingWidgetValueError(node_def.id, node_def.type, name)
        if name != CONTROL_AFTER_GENERATE:
            node.get_input(name).value = values[cursor]
        cursor += 1
