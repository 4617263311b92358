from __future__ import annotations

from typing import Any, Dict, Iterator, List, Mapping, Optional, TypeVar, Union

import networkx as nx
from pydantic import BaseModel, ConfigDict

from .errors import DuplicateNodeIdError, NodeIdentityError, PromptError

Value = Union[str, int, float, bool, None]
N = TypeVar("N", bound="Node")


class OutputRef(BaseModel):
    """One output socket of one node, as `(source_node_id, source_node_output_index)`."""

    model_config = ConfigDict(frozen=True)

    source_node_id: str
    source_node_output_index: int

    def to_api(self) -> List[Any]:
        return [self.source_node_id, self.source_node_output_index]


class InputRef:
    """Handle on a single named input of a node.

    Reading, assigning `value` and `connect_to` all address the same slot in
    `node.inputs`, so the last write wins.
    """

    def __init__(self, node: Node, name: str):
        self.node = node
        self.name = name

    @property
    def value(self) -> Union[Value, OutputRef]:
        return self.node.inputs.get(self.name)

    @value.setter
    def value(self, value: Union[Value, OutputRef]) -> None:
        self.node.set_input(self.name, value)

    @property
    def is_set(self) -> bool:
        return self.name in self.node.inputs

    @property
    def is_connected(self) -> bool:
        return isinstance(self.node.inputs.get(self.name), OutputRef)

    def connect_to(self, source: OutputRef) -> None:
        if not isinstance(source, OutputRef):
            raise TypeError(f"Can only connect input '{self.name}' to an OutputRef, got {type(source).__name__}")
        self.node.set_input(self.name, source)

    def __repr__(self) -> str:
        return f"InputRef({self.node!r}, {self.name!r})"


class Node:
    """A unit of computation in a prompt graph.

    Subclasses fix `class_type`; `GenericNode` takes it at construction time.
    The id stays `None` until the node is added to a `Graph`.
    """

    class_type: str = ""

    def __init__(self) -> None:
        if not self.class_type:
            raise TypeError(f"{type(self).__name__} has no class_type")
        self._id: Optional[str] = None
        self.inputs: Dict[str, Union[Value, OutputRef]] = {}

    @property
    def id(self) -> Optional[str]:
        return self._id

    def _assign_id(self, node_id: str) -> None:
        if self._id is not None:
            raise NodeIdentityError(f"{self.class_type} node already has id '{self._id}'")
        self._id = node_id

    def set_input(self, name: str, value: Union[Value, OutputRef]) -> None:
        self.inputs[name] = value

    def get_input(self, name: str) -> InputRef:
        return InputRef(self, name)

    def output_ref(self, index: int) -> OutputRef:
        if self._id is None:
            raise NodeIdentityError(f"{self.class_type} node has no id; add it to a graph first")
        return OutputRef(source_node_id=self._id, source_node_output_index=index)

    def connect_all(self, sources: Mapping[str, Union[Value, OutputRef]]) -> None:
        for name, source in sources.items():
            if isinstance(source, OutputRef):
                self.get_input(name).connect_to(source)
            else:
                self.get_input(name).value = source

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.class_type} id={self._id!r}>"


class GenericNode(Node):
    """Node of any class type, addressed purely by input name and output index."""

    def __init__(self, class_type: str):
        self.class_type = class_type
        super().__init__()


class Graph:
    def __init__(self) -> None:
        self.nodes: List[Node] = []
        self.node_map: Dict[str, Node] = {}

    def add_node(self, node: N, id: Optional[str] = None) -> N:
        node_id = str(len(self.nodes)) if id is None else id
        if node_id in self.node_map:
            raise DuplicateNodeIdError(node_id)
        node._assign_id(node_id)
        self.nodes.append(node)
        self.node_map[node_id] = node
        return node

    def get(self, node_id: str) -> Optional[Node]:
        return self.node_map.get(node_id)

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self) -> Iterator[Node]:
        return iter(self.nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.node_map

    def to_api_prompt(self) -> Dict[str, Dict[str, Any]]:
        """Serialize into the `/prompt` submission format, in insertion order."""
        prompt: Dict[str, Dict[str, Any]] = {}
        for node in self.nodes:
            if node.id is None:
                raise NodeIdentityError(f"No id for node {node!r}")
            inputs: Dict[str, Any] = {}
            for name, value in node.inputs.items():
                inputs[name] = value.to_api() if isinstance(value, OutputRef) else value
            prompt[node.id] = {
                "inputs": inputs,
                "class_type": node.class_type,
                "_meta": {},
            }
        return prompt

    @classmethod
    def from_api_prompt(cls, prompt: Mapping[str, Mapping[str, Any]]) -> Graph:
        if not isinstance(prompt, Mapping):
            raise PromptError(f"An API prompt is a mapping of node ids, got {type(prompt).__name__}")
        graph = cls()
        for node_id, entry in prompt.items():
            class_type = entry.get("class_type") if isinstance(entry, Mapping) else None
            if not class_type or not isinstance(class_type, str):
                raise PromptError(f"Prompt entry {node_id} has no class_type")
            inputs = entry.get("inputs") or {}
            if not isinstance(inputs, Mapping):
                raise PromptError(f"Prompt entry {node_id} has inputs of type {type(inputs).__name__}")
            node = GenericNode(class_type)
            for name, value in inputs.items():
                if _is_link(value):
                    value = OutputRef(source_node_id=value[0], source_node_output_index=value[1])
                node.set_input(name, value)
            graph.add_node(node, str(node_id))
        return graph

    def to_networkx(self) -> nx.MultiDiGraph:
        nxg = nx.MultiDiGraph()
        for node in self.nodes:
            nxg.add_node(node.id, class_type=node.class_type)
        for node in self.nodes:
            for name, value in node.inputs.items():
                if isinstance(value, OutputRef) and value.source_node_id in self.node_map:
                    nxg.add_edge(value.source_node_id, node.id,
                                 source_output=value.source_node_output_index, target_input=name)
        return nxg


def _is_link(value: Any) -> bool:
    return (isinstance(value, (list, tuple)) and len(value) == 2
            and isinstance(value[0], str)
            and isinstance(value[1], int) and not isinstance(value[1], bool))
