from typing import List, Mapping, Optional, Tuple
import networkx as nx

from .graph import Graph, OutputRef
from .schema import NodeTypeSchema

def validate_graph(graph: Graph, schemas: Optional[Mapping[str, NodeTypeSchema]] = None) -> Tuple[bool, List[str]]:
    """Check a graph before submission; returns `(ok, messages)` with `OK:`/`ERR:` prefixes."""
    messages: List[str] = []
    ok = True

    # 1) References point at existing nodes
    refs_ok = True
    for node in graph:
        for name, value in node.inputs.items():
            if isinstance(value, OutputRef) and value.source_node_id not in graph:
                refs_ok = False
                messages.append(f"ERR: Input {node.id}.{name} references missing node '{value.source_node_id}'.")
    if refs_ok:
        messages.append("OK: All connections reference existing nodes.")
    ok = ok and refs_ok

    if schemas is not None:
        # 2) Node types are known
        unknown = [n for n in graph if n.class_type not in schemas]
        for node in unknown:
            messages.append(f"ERR: Node {node.id} has unknown type '{node.class_type}'.")
        if not unknown:
            messages.append("OK: All node types are known to the server.")
        ok = ok and not unknown

        # 3) Output indices exist and required inputs are set
        sockets_ok = True
        for node in graph:
            for name, value in node.inputs.items():
                if not isinstance(value, OutputRef) or value.source_node_id not in graph:
                    continue
                source = graph.get(value.source_node_id)
                source_schema = schemas.get(source.class_type)
                if source_schema is not None and not 0 <= value.source_node_output_index < len(source_schema.outputs):
                    sockets_ok = False
                    messages.append(f"ERR: Input {node.id}.{name} uses output {value.source_node_output_index} "
                                    f"of {source.class_type} node {source.id}, which has "
                                    f"{len(source_schema.outputs)} outputs.")
            schema = schemas.get(node.class_type)
            if schema is None:
                continue
            for name in schema.inputs.required:
                if name not in node.inputs:
                    sockets_ok = False
                    messages.append(f"ERR: Required input {node.id}.{name} is not set.")
        if sockets_ok:
            messages.append("OK: All connections and required inputs match the object info.")
        ok = ok and sockets_ok

    # 4) Acyclic check
    try:
        list(nx.topological_sort(graph.to_networkx()))
        messages.append("OK: Graph is acyclic.")
    except nx.NetworkXUnfeasible:
        ok = False
        messages.append("ERR: Cycle detected in the graph.")

    return ok, messages
