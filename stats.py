import numpy as np
from typing import Dict, Hashable, List, Union

from graph import Graph

Block = Dict[str, Union[float, int, List[float]]]


def stats_block(vals: List[int]) -> Block:
    if not vals:
        raise ValueError("vals is empty")

    arr = np.asarray(vals, dtype=float)

    return {
        "average": float(arr.mean()),
        "median": float(np.median(arr)),
        "min": int(arr.min()),
        "max": int(arr.max()),
        "quintiles": [float(q) for q in np.percentile(arr, [20, 40, 60, 80])],
    }


def in_degrees(graph: Graph) -> Dict[Hashable, int]:
    counts: Dict[Hashable, int] = {u: 0 for u in graph.nodes}
    for targets in graph.edges.values():
        for v in targets:
            counts[v] += 1
    return counts


def degree_stats(graph: Graph) -> Dict[str, Block]:
    """Outgoing / incoming link summaries for a non-empty graph."""
    out_degree = [len(graph.edges[u]) for u in graph.nodes]
    in_counts = in_degrees(graph)
    return {
        "out": stats_block(out_degree),
        "in": stats_block([in_counts[u] for u in graph.nodes]),
    }
