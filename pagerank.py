from typing import Dict, Hashable, List, Mapping, Sequence, Tuple
import logging
import time

from graph import Graph, GraphValidationError, validate_graph

log = logging.getLogger("pagerank")


def build_reverse_index(edges: Mapping[Hashable, Sequence[Hashable]]) -> Dict[Hashable, List[Hashable]]:
    """
    Invert forward adjacency: for every target, the nodes linking to it.

    Predecessors are listed in the order they are met while scanning `edges`.
    Nodes with no incoming edges are absent from the result.
    """
    inv: Dict[Hashable, List[Hashable]] = {}
    for parent, children in edges.items():
        for child in children:
            inv.setdefault(child, []).append(parent)
    return inv


class PageRank:
    """
    PageRank (iterative, non-normalized):

      PR(A) = (1 - d) + d * ( sum_{T in In(A)} PR(T) / C(T) )

    Every node starts at 1.0, so ranks do not sum to 1. A sweep recomputes
    every node in graph order; a node's score is only overwritten when it moves
    by more than `tolerance`. Iteration stops when a sweep changes nothing, or
    after `max_iterations` sweeps (with a warning, results not reliable).

    By default scores are updated in place, so a node reads the already
    updated value of predecessors processed earlier in the same sweep.
    double_buffer=True reads every predecessor from a snapshot taken at the
    start of the sweep instead. Both reach the same fixed point.
    """

    DAMPING_FACTOR = 0.85

    def __init__(
        self,
        tolerance: float = 1e-6,
        max_iterations: int = 100,
        double_buffer: bool = False,
        log_every: int = 0,   # log progress every N sweeps (0 disables)
    ) -> None:
        if not tolerance > 0:
            raise ValueError(f"tolerance must be > 0, got {tolerance!r}")
        if isinstance(max_iterations, bool) or not isinstance(max_iterations, int) or max_iterations < 1:
            raise ValueError(f"max_iterations must be a positive int, got {max_iterations!r}")
        if log_every < 0:
            raise ValueError(f"log_every must be >= 0, got {log_every!r}")

        self._tolerance = float(tolerance)
        self._max_iterations = max_iterations
        self._double_buffer = double_buffer
        self._log_every = log_every

    @property
    def tolerance(self) -> float:
        return self._tolerance

    @property
    def max_iterations(self) -> int:
        return self._max_iterations

    @property
    def double_buffer(self) -> bool:
        return self._double_buffer

    def compute_pagerank(self, graph: Graph) -> Dict[Hashable, float]:
        """Return node -> PageRank for every node of `graph`."""
        pr, _, _ = self.iterate(graph)
        return pr

    def iterate(self, graph: Graph) -> Tuple[Dict[Hashable, float], int, bool]:
        """Run the sweeps. Returns (scores, sweeps performed, converged)."""
        nodes = graph.nodes
        edges = graph.edges
        validate_graph(nodes, edges)

        if not nodes:
            return {}, 0, True

        d = self.DAMPING_FACTOR
        base = 1.0 - d
        in_links = build_reverse_index(edges)

        # Initialize every node with PR 1.0
        pr: Dict[Hashable, float] = {u: 1.0 for u in nodes}

        t0 = time.time()
        it = 0

        while True:
            changed = 0
            max_change = 0.0
            source = dict(pr) if self._double_buffer else pr

            for a in nodes:
                s = 0.0
                for t in in_links.get(a, ()):
                    c = len(edges[t])
                    # only reachable if edges changes after validation
                    if c == 0:
                        raise GraphValidationError(f"predecessor {t!r} of {a!r} has no outgoing edges")
                    s += source[t] / c

                new = base + d * s
                change = abs(pr[a] - new)
                if change > self._tolerance:
                    changed += 1
                    pr[a] = new
                    if change > max_change:
                        max_change = change

            it += 1

            if self._log_every and (it == 1 or it % self._log_every == 0):
                elapsed = time.time() - t0
                log.info(f"[pagerank] iter={it:3d} changed={changed} max_change={max_change:.3e} elapsed={elapsed:.1f}s")

            if it >= self._max_iterations:
                log.warning(
                    f"Iterations {it} reached maximum iterations {self._max_iterations} "
                    f"before calculations were ready. Returned weights are not reliable"
                )
                return pr, it, False

            if changed == 0:
                return pr, it, True
