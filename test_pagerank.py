import logging

import pytest

from graph import Graph, GraphValidationError, graph_from_edges
from pagerank import PageRank, build_reverse_index


def small_graph() -> Graph:
    # A -> B, C
    # B -> C
    # C -> A
    # D -> C
    return Graph(
        ["A", "B", "C", "D"],
        {"A": ["B", "C"], "B": ["C"], "C": ["A"], "D": ["C"]},
    )


class FakeGraph:
    def __init__(self, nodes, edges):
        self.nodes = nodes
        self.edges = edges


def test_pagerank_small_graph_basic_properties():
    pr, iters, converged = PageRank().iterate(small_graph())

    assert converged
    assert 1 <= iters <= 100
    assert set(pr) == {"A", "B", "C", "D"}

    # every score is at least 1 - d
    assert all(v >= 0.15 for v in pr.values())

    # D has no incoming links
    assert pr["D"] == pytest.approx(0.15)

    # C should be the highest because it has most incoming links
    top = sorted(pr.items(), key=lambda x: x[1], reverse=True)
    assert top[0][0] == "C"


def test_reverse_index():
    inv = build_reverse_index({1: [2, 3], 2: [3]})
    assert inv == {2: [1], 3: [1, 2]}
    assert 1 not in inv


def test_reverse_index_does_not_touch_input():
    edges = {1: [2], 2: [1], 3: []}
    build_reverse_index(edges)
    assert edges == {1: [2], 2: [1], 3: []}


def test_empty_graph():
    assert PageRank().compute_pagerank(Graph([], {})) == {}


def test_isolated_node_settles_after_one_sweep():
    graph = Graph([7], {7: []})
    expected = {7: 1 - PageRank.DAMPING_FACTOR}
    assert PageRank().compute_pagerank(graph) == expected
    assert PageRank(max_iterations=1).compute_pagerank(graph) == expected


def test_single_edge():
    pr, iters, converged = PageRank().iterate(graph_from_edges([(1, 2)]))
    assert converged
    assert iters == 2
    assert pr[1] == pytest.approx(0.15)
    assert pr[2] == pytest.approx(0.2775)


def test_cycle_fixed_point():
    graph = graph_from_edges([(1, 2), (2, 3), (3, 1)])
    pr, iters, converged = PageRank().iterate(graph)
    assert converged
    assert iters == 1
    assert pr == {1: 1.0, 2: 1.0, 3: 1.0}


def test_result_follows_node_order():
    graph = Graph([3, 1, 2], {3: [1], 1: [2], 2: []})
    assert list(PageRank().compute_pagerank(graph)) == [3, 1, 2]


def test_reinvocation_is_independent():
    engine = PageRank()
    graph = small_graph()
    first = engine.compute_pagerank(graph)
    second = engine.compute_pagerank(graph)
    assert first == second
    assert first is not second


def test_max_iterations_warns_and_returns_all_nodes(caplog):
    graph = graph_from_edges([(1, 2), (2, 1)])
    with caplog.at_level(logging.WARNING, logger="pagerank"):
        pr, iters, converged = PageRank(max_iterations=1).iterate(graph)

    assert iters == 1
    assert not converged
    assert set(pr) == {1, 2}
    assert "not reliable" in caplog.text


def test_sweeps_never_exceed_cap():
    # chain long enough to need more sweeps than allowed in double-buffer mode
    graph = graph_from_edges([(i, i + 1) for i in range(10)])
    pr, iters, converged = PageRank(max_iterations=3, double_buffer=True).iterate(graph)
    assert iters == 3
    assert not converged
    assert len(pr) == 11


def test_double_buffer_reaches_same_fixed_point():
    graph = small_graph()
    in_place, _, ok1 = PageRank(tolerance=1e-10, max_iterations=1000).iterate(graph)
    jacobi, _, ok2 = PageRank(tolerance=1e-10, max_iterations=1000, double_buffer=True).iterate(graph)
    assert ok1 and ok2
    for u in graph.nodes:
        assert in_place[u] == pytest.approx(jacobi[u], abs=1e-7)


def test_double_buffer_reads_previous_sweep():
    graph = graph_from_edges([(1, 2)])
    pr, iters, _ = PageRank(double_buffer=True).iterate(graph)
    # node 2 only sees node 1's new score on the second sweep
    assert iters == 3
    assert pr[2] == pytest.approx(0.2775)


def test_sub_tolerance_drift_is_kept_out():
    graph = graph_from_edges([(1, 2)])
    pr = PageRank(tolerance=0.8).compute_pagerank(graph)
    # node 1 moves by 0.85 and is updated; node 2 then moves by 0.7225 < 0.8
    assert pr[1] == pytest.approx(0.15)
    assert pr[2] == 1.0


@pytest.mark.parametrize("kwargs", [
    {"tolerance": 0},
    {"tolerance": -1e-6},
    {"max_iterations": 0},
    {"max_iterations": 2.5},
    {"log_every": -1},
])
def test_invalid_config(kwargs):
    with pytest.raises(ValueError):
        PageRank(**kwargs)


def test_defaults():
    engine = PageRank()
    assert engine.tolerance == 1e-6
    assert engine.max_iterations == 100
    assert not engine.double_buffer
    assert PageRank.DAMPING_FACTOR == 0.85


def test_malformed_graph_fails_fast():
    bad = FakeGraph([1, 2], {1: [2, 3], 2: []})
    with pytest.raises(ValueError):
        PageRank().compute_pagerank(bad)


def test_progress_logging(caplog):
    graph = graph_from_edges([(i, i + 1) for i in range(5)])
    with caplog.at_level(logging.INFO, logger="pagerank"):
        PageRank(log_every=1).compute_pagerank(graph)
    assert "iter=  1" in caplog.text


class DroppingEdges(dict):
    """items() keeps the links, but lookups by key see no outgoing edges."""

    def __getitem__(self, key):
        return ()


def test_zero_out_degree_predecessor_fails_fast():
    graph = FakeGraph([1, 2], DroppingEdges({1: [2], 2: []}))
    with pytest.raises(GraphValidationError, match="no outgoing edges"):
        PageRank().compute_pagerank(graph)
