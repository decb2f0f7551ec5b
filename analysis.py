#!/usr/bin/env python3
import argparse
import logging
import os
import sys
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Dict, Hashable, List, Optional, Tuple

from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import DefaultCredentialsError
from google.cloud import storage

from graph import Graph, GraphValidationError, graph_from_edge_text
from pagerank import PageRank
from stats import degree_stats

GCS_SCHEME = "gs://"


def setup_logging() -> logging.Logger:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(message)s",
    )
    return logging.getLogger("analysis")


def parse_gcs_uri(uri: str) -> Tuple[str, str]:
    """Split gs://bucket/path/to/object into (bucket, object name)."""
    if not uri.startswith(GCS_SCHEME):
        raise ValueError(f"not a gs:// URI: {uri!r}")
    bucket, _, blob_name = uri[len(GCS_SCHEME):].partition("/")
    if not bucket or not blob_name:
        raise ValueError(f"expected gs://bucket/object, got {uri!r}")
    return bucket, blob_name


def make_read_worker(client: Optional[storage.Client]) -> Callable[[str], Tuple[str, str]]:
    """
    Create a reader for local paths and gs:// URIs.
    Every GCS read shares `client`; gs:// sources fail when it is None.
    """

    def _read_one(source: str) -> Tuple[str, str]:
        if source.startswith(GCS_SCHEME):
            if client is None:
                raise RuntimeError(f"{source}: no Cloud Storage client available")
            bucket_name, blob_name = parse_gcs_uri(source)
            text = client.bucket(bucket_name).blob(blob_name).download_as_text()
        else:
            with open(source, encoding="utf-8") as f:
                text = f.read()

        if not text:
            raise RuntimeError(f"{source} is empty")
        return source, text

    return _read_one


def make_storage_client(log: logging.Logger) -> Optional[storage.Client]:
    try:
        return storage.Client()
    except DefaultCredentialsError as e:
        log.error(f"Cloud Storage unavailable: {e}")
        return None


def load_graphs(
    sources: List[str],
    workers: int = 4,
    delimiter: Optional[str] = ",",
    skip_header: bool = True,
    log: Optional[logging.Logger] = None,
) -> Tuple[Dict[str, Graph], Dict[str, Exception]]:
    """
    Read and parse every source concurrently.
    Returns (graphs by source, errors by source); a failed source does not stop the others.
    """
    if log is None:
        log = logging.getLogger("analysis")

    client = None
    if any(src.startswith(GCS_SCHEME) for src in sources):
        client = make_storage_client(log)

    read_one = make_read_worker(client)
    graphs: Dict[str, Graph] = {}
    errors: Dict[str, Exception] = {}
    t0 = time.time()

    with ThreadPoolExecutor(max_workers=max(1, workers)) as ex:
        futures = {ex.submit(read_one, src): src for src in sources}
        for f in as_completed(futures):
            src = futures[f]
            try:
                _, text = f.result()
                graphs[src] = graph_from_edge_text(text, delimiter=delimiter, skip_header=skip_header)
            except (GoogleAPIError, OSError, RuntimeError, ValueError) as e:
                log.error(f"Failed to load {src}: {e}")
                errors[src] = e
                continue
            log.info(f"Loaded {src}: {graphs[src]!r}")

    log.info(f"Loaded {len(graphs)}/{len(sources)} edge lists in {time.time() - t0:.2f}s")
    return graphs, errors


def sort_pagerank(pr: Dict[Hashable, float]) -> List[Tuple[Hashable, float]]:
    """Descending PR; ties keep the graph's node order."""
    return sorted(pr.items(), key=lambda x: x[1], reverse=True)


def print_report(name: str, graph: Graph, pr: Dict[Hashable, float], top_n: int = 10) -> None:
    print(f"\n=== {name} ===")
    print(f"Number of nodes in the Graph: {len(pr)}")

    if graph.nodes:
        blocks = degree_stats(graph)
        print("\n=== Outgoing Links Stats ===")
        print(blocks["out"])
        print("\n=== Incoming Links Stats ===")
        print(blocks["in"])

    print(f"\n=== PageRank Top {top_n} ===")
    for rank, (node, score) in enumerate(sort_pagerank(pr)[:top_n], start=1):
        adjacent = " ".join(str(v) for v in graph.edges[node])
        print(f"Rank:{rank}\tNode number: {node}\tNode PR: {score:.10f}")
        print(f"Adjacent Nodes: {adjacent}")
        print("------------------------------------")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Rank the nodes of directed graphs read from edge-list files.")
    parser.add_argument("edges", nargs="+", help="Edge-list files: local paths or gs://bucket/object URIs")
    parser.add_argument(
        "--top",
        type=int,
        default=int(os.environ.get("PAGERANK_TOP_N", "10")),
        help="Number of top-ranked nodes to print per graph.",
    )
    parser.add_argument(
        "--tolerance",
        type=float,
        default=float(os.environ.get("PAGERANK_TOLERANCE", "1e-6")),
        help="Per-node change below which a score is considered settled.",
    )
    parser.add_argument(
        "--max_iterations",
        type=int,
        default=int(os.environ.get("PAGERANK_MAX_ITERATIONS", "100")),
        help="Hard stop on the number of sweeps.",
    )
    parser.add_argument(
        "--double_buffer",
        action="store_true",
        help="Read predecessor scores from a per-sweep snapshot instead of updating in place.",
    )
    parser.add_argument("--delimiter", default=",", help="Column separator (use 'ws' for any whitespace).")
    parser.add_argument("--no_header", action="store_true", help="The edge lists have no header row.")
    parser.add_argument("--workers", type=int, default=4, help="Threads used to read edge lists.")
    parser.add_argument(
        "--log_every",
        type=int,
        default=0,
        help="Log PageRank progress every N sweeps (0 disables).",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    log = setup_logging()
    args = build_parser().parse_args(argv)

    log.info(
        f"Args: sources={len(args.edges)}, top={args.top}, tolerance={args.tolerance}, "
        f"max_iterations={args.max_iterations}, double_buffer={args.double_buffer}, workers={args.workers}"
    )

    if args.top < 1:
        log.error(f"Invalid configuration: --top must be >= 1, got {args.top}")
        return 2

    try:
        engine = PageRank(
            tolerance=args.tolerance,
            max_iterations=args.max_iterations,
            double_buffer=args.double_buffer,
            log_every=args.log_every,
        )
    except ValueError as e:
        log.error(f"Invalid configuration: {e}")
        return 2

    delimiter = None if args.delimiter == "ws" else args.delimiter
    graphs, errors = load_graphs(
        args.edges,
        workers=args.workers,
        delimiter=delimiter,
        skip_header=not args.no_header,
        log=log,
    )

    for src in args.edges:
        if src not in graphs:
            continue
        graph = graphs[src]
        t0 = time.time()
        try:
            pr, iters, converged = engine.iterate(graph)
        except GraphValidationError as e:
            log.error(f"Cannot rank {src}: {e}")
            errors[src] = e
            continue
        log.info(f"Finished PageRank on {src} in {time.time() - t0:.2f}s (iters={iters}, converged={converged})")
        print_report(src, graph, pr, top_n=args.top)

    return 1 if errors else 0


if __name__ == "__main__":
    sys.exit(main())
