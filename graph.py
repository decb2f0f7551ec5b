from types import MappingProxyType
from typing import Callable, Dict, Hashable, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

COMMENT_PREFIXES = ("#", "%")


class GraphValidationError(ValueError):
    """Raised when nodes/edges break the Graph invariants."""


class EdgeListError(GraphValidationError):
    pass


def validate_graph(nodes: Sequence[Hashable], edges: Mapping[Hashable, Sequence[Hashable]]) -> None:
    """
    Check the Graph invariants:
      - node ids are unique
      - every node has an edges entry (possibly empty), and edges has no other keys
      - every target is a known node and appears at most once per source
    """
    node_set: Set[Hashable] = set()
    for u in nodes:
        if u in node_set:
            raise GraphValidationError(f"duplicate node {u!r}")
        node_set.add(u)

    missing = [u for u in nodes if u not in edges]
    if missing:
        raise GraphValidationError(f"nodes without an edges entry: {missing[:5]!r}")

    for u, targets in edges.items():
        if u not in node_set:
            raise GraphValidationError(f"edges entry for unknown node {u!r}")
        seen: Set[Hashable] = set()
        for v in targets:
            if v not in node_set:
                raise GraphValidationError(f"edge {u!r} -> {v!r} points to unknown node")
            if v in seen:
                raise GraphValidationError(f"duplicate edge {u!r} -> {v!r}")
            seen.add(v)


class Graph:
    """Immutable directed graph: ordered node ids plus forward adjacency."""

    __slots__ = ("_nodes", "_edges")

    def __init__(self, nodes: Iterable[Hashable], edges: Mapping[Hashable, Iterable[Hashable]]):
        node_tuple = tuple(nodes)
        edge_tuples = {u: tuple(targets) for u, targets in edges.items()}
        validate_graph(node_tuple, edge_tuples)
        self._nodes = node_tuple
        self._edges = MappingProxyType(edge_tuples)

    @property
    def nodes(self) -> Tuple[Hashable, ...]:
        return self._nodes

    @property
    def edges(self) -> Mapping[Hashable, Tuple[Hashable, ...]]:
        return self._edges

    def __len__(self) -> int:
        return len(self._nodes)

    def __repr__(self) -> str:
        n_edges = sum(len(t) for t in self._edges.values())
        return f"Graph(nodes={len(self._nodes)}, edges={n_edges})"


def graph_from_edges(pairs: Iterable[Tuple[Hashable, Hashable]]) -> Graph:
    """
    Build a Graph from (u, v) pairs.

    Nodes are kept in order of first appearance (u before v). Repeated edges
    are dropped; nodes that never appear as a source get an empty edge list.
    """
    nodes: List[Hashable] = []
    node_set: Set[Hashable] = set()
    edges: Dict[Hashable, List[Hashable]] = {}
    edge_seen: Dict[Hashable, Set[Hashable]] = {}

    for u, v in pairs:
        for x in (u, v):
            if x not in node_set:
                node_set.add(x)
                nodes.append(x)

        if v not in edge_seen.setdefault(u, set()):
            edge_seen[u].add(v)
            edges.setdefault(u, []).append(v)

    for u in nodes:
        edges.setdefault(u, [])

    return Graph(nodes, edges)


def _parse_rows(
    lines: Iterable[str],
    delimiter: Optional[str],
    skip_header: bool,
    node_type: Callable[[str], Hashable],
) -> Iterable[Tuple[Hashable, Hashable]]:
    header_pending = skip_header
    for lineno, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line or line.startswith(COMMENT_PREFIXES):
            continue
        if header_pending:
            header_pending = False
            continue

        data = line.split(delimiter)
        if len(data) < 2:
            raise EdgeListError(f"line {lineno}: expected two node ids, got {line!r}")
        try:
            u = node_type(data[0].strip())
            v = node_type(data[1].strip())
        except ValueError as e:
            raise EdgeListError(f"line {lineno}: {e}") from e
        yield u, v


def graph_from_edge_text(
    text: str,
    delimiter: Optional[str] = ",",
    skip_header: bool = True,
    node_type: Callable[[str], Hashable] = int,
) -> Graph:
    """
    Parse an edge list ("u,v" per row, first row a header) into a Graph.

    delimiter=None splits on whitespace. Blank lines and lines starting with
    '#' or '%' are ignored and do not count as the header.
    """
    return graph_from_edges(_parse_rows(text.splitlines(), delimiter, skip_header, node_type))
