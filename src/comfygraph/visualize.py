import networkx as nx
from .errors import GraphCycleError
from .graph import Graph

def ascii_plan(graph: Graph) -> str:
    nxg = graph.to_networkx()
    try:
        order = list(nx.topological_sort(nxg))
    except nx.NetworkXUnfeasible as e:
        raise GraphCycleError(f"Cycle detected in the graph: {nx.find_cycle(nxg)}") from e
    lines = ["# ASCII Plan (topological order)"]
    for i, nid in enumerate(order, 1):
        node = graph.get(nid)
        lines.append(f"{i:02d}. {node.id} [{node.class_type}]")
        for _, succ, data in nxg.out_edges(nid, data=True):
            lines.append(f"    └─▶ {succ}  ({data['source_output']}->{data['target_input']})")
    return "\n".join(lines)
