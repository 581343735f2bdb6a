"""
Centrality measures for the histnet library.

Each measure is a pure function from a :class:`Graph` (and a direction mode)
to a ``node name -> score`` dictionary, rounded to ``DEFAULT_PRECISION``
decimal places so that tables are reproducible across platforms.
:func:`extract_centrality` collects several measures into one polars
DataFrame, optionally computing them in worker processes.
"""

from concurrent.futures import ProcessPoolExecutor, as_completed
from typing import Any, Dict, List, Optional, Sequence
import multiprocessing
import warnings

import networkit as nk
import numpy as np
import polars as pl
import scipy.sparse as sp

from histnet.common.exceptions import (
    ComputationError,
    ConfigurationError,
    ConvergenceError,
    NetworkAnalysisError,
    check_convergence,
    require_positive,
    validate_parameter
)
from histnet.common.logging_config import get_logger, log_function_entry, LoggingTimer
from histnet.network.conversion import scores_by_name, to_networkit
from histnet.network.graph import Graph, resolve_mode
from histnet.network.paths import brandes_betweenness

logger = get_logger(__name__)

DEFAULT_PRECISION = 4
DEFAULT_HITS_MAX_ITER = 1000
DEFAULT_HITS_TOL = 1e-10

AVAILABLE_METRICS = [
    "degree", "in_degree", "out_degree", "betweenness", "closeness", "hub", "authority"
]


def degree_centrality(graph: Graph, mode: str = "all", loops: bool = True) -> Dict[str, int]:
    """
    Number of incident edges per node.

    Parameters
    ----------
    graph : Graph
        Input graph
    mode : str, default "all"
        ``"in"``, ``"out"`` or ``"all"`` (total). Ignored for undirected graphs.
    loops : bool, default True
        Count self-loops. A loop adds two to the total degree and one to each
        of in- and out-degree.

    Returns
    -------
    Dict[str, int]
        Degree per node

    Examples
    --------
    >>> g = Graph(("AK", "CA", "NY", "OR"),
    ...           (("CA", "NY"), ("OR", "CA"), ("AK", "OR")), directed=True)
    >>> degree_centrality(g, mode="in")
    {'AK': 0, 'CA': 1, 'NY': 1, 'OR': 1}
    """
    mode = resolve_mode(graph, mode)
    counts = [0] * graph.number_of_nodes()

    for (u, v), edge in zip(graph.edge_indices(), graph.edges):
        if edge.is_loop and not loops:
            continue
        if mode in ("out", "all"):
            counts[u] += 1
        if mode in ("in", "all"):
            counts[v] += 1

    return dict(zip(graph.nodes, counts))


def betweenness_centrality(
    graph: Graph,
    mode: str = "out",
    precision: int = DEFAULT_PRECISION
) -> Dict[str, float]:
    """
    Shortest-path betweenness.

    For every pair of distinct nodes (s, t) the fraction of shortest s-t
    paths passing through a node is added to its score; with k shortest
    paths of which j pass through v, v receives j/k. Undirected graphs (and
    ``mode="all"``) count each unordered pair once.

    Parameters
    ----------
    graph : Graph
        Input graph
    mode : str, default "out"
        ``"out"`` or ``"in"`` respect edge direction (both give the same
        scores), ``"all"`` ignores it
    precision : int, default 4
        Decimal places to round to

    Returns
    -------
    Dict[str, float]
        Betweenness per node

    Notes
    -----
    Computed with ``networkit.centrality.Betweenness``, which counts both
    orientations of every pair on undirected graphs; those scores are halved.

    Examples
    --------
    >>> g = Graph(("A", "B", "C", "D"), (("A", "B"), ("B", "C"), ("C", "D")))
    >>> betweenness_centrality(g)
    {'A': 0.0, 'B': 2.0, 'C': 2.0, 'D': 0.0}
    """
    nk_graph, mapper = to_networkit(graph, mode=mode)
    if graph.number_of_nodes() == 0:
        return {}

    with LoggingTimer("betweenness_centrality", {"nodes": graph.number_of_nodes()}):
        bc = nk.centrality.Betweenness(nk_graph, normalized=False)
        bc.run()
        scores = bc.scores()

    if not nk_graph.isDirected():
        scores = [score / 2.0 for score in scores]
    by_name = scores_by_name(mapper, scores)
    return {name: _round(by_name[name], precision) for name in graph.nodes}


def edge_betweenness(
    graph: Graph,
    mode: str = "out",
    precision: int = DEFAULT_PRECISION
) -> List[float]:
    """
    Shortest-path betweenness of every edge, aligned with ``graph.edges``.

    Parallel edges share the paths between their endpoints, each carrying its
    own fraction.
    """
    mode = resolve_mode(graph, mode)
    _, scores = brandes_betweenness(
        graph.adjacency(mode), graph.number_of_edges(), halve=(mode == "all")
    )
    return [_round(score, precision) for score in scores]


def edge_betweenness_table(graph: Graph, mode: str = "out") -> pl.DataFrame:
    """Edge betweenness as a ``source`` / ``target`` / ``betweenness`` DataFrame."""
    scores = edge_betweenness(graph, mode=mode)
    return pl.DataFrame(
        {
            "source": [e.source for e in graph.edges],
            "target": [e.target for e in graph.edges],
            "betweenness": scores,
        },
        schema={"source": pl.Utf8, "target": pl.Utf8, "betweenness": pl.Float64}
    )


def closeness_centrality(
    graph: Graph,
    mode: str = "out",
    precision: int = DEFAULT_PRECISION
) -> Dict[str, float]:
    """
    Closeness over reachable nodes.

    For each node v with r other nodes reachable at total distance D,
    closeness is ``r / D``. Nodes that reach no other node score ``0.0``.

    networkit's generalized closeness gives ``(r / (n - 1)) * (r / D)``; it
    is rescaled by ``(n - 1) / r`` using networkit's reachable-node counts.

    Parameters
    ----------
    graph : Graph
        Input graph
    mode : str, default "out"
        ``"out"`` uses distances from the node, ``"in"`` distances to it,
        ``"all"`` ignores direction
    precision : int, default 4
        Decimal places to round to

    Examples
    --------
    >>> g = Graph(("A", "B", "C"), (("A", "B"), ("B", "C")))
    >>> closeness_centrality(g)
    {'A': 0.6667, 'B': 1.0, 'C': 0.6667}
    """
    nk_graph, _ = to_networkit(graph, mode=mode)
    n = graph.number_of_nodes()
    if n <= 1:
        return {name: 0.0 for name in graph.nodes}

    closeness = nk.centrality.Closeness(
        nk_graph, True, nk.centrality.ClosenessVariant.GENERALIZED
    )
    closeness.run()
    reachable = nk.reachability.ReachableNodes(nk_graph, exact=True)
    reachable.run()

    scores = []
    for v, score in enumerate(closeness.scores()):
        # the count includes v itself
        r = reachable.numberOfReachableNodes(v) - 1
        scores.append(score * (n - 1) / r if r > 0 else 0.0)

    return _round_scores(graph.nodes, scores, precision)


def hub_score(
    graph: Graph,
    max_iter: int = DEFAULT_HITS_MAX_ITER,
    tol: float = DEFAULT_HITS_TOL,
    weight: Optional[str] = None,
    precision: int = DEFAULT_PRECISION
) -> Dict[str, float]:
    """
    Kleinberg hub score.

    Power iteration ``h <- A (A^T h)`` starting from a vector of ones,
    normalized so that the largest hub score is 1 after every step. Stops
    when no entry changes by more than ``tol``.

    Parameters
    ----------
    graph : Graph
        Input graph. Parallel edges add up in the adjacency matrix.
    max_iter : int, default 1000
        Iteration cap
    tol : float, default 1e-10
        Largest allowed change between successive iterates
    weight : str, optional
        Edge attribute used as adjacency weight (1.0 when absent)
    precision : int, default 4
        Decimal places to round to

    Returns
    -------
    Dict[str, float]
        Hub score per node. All zeros for a graph without edges.

    Raises
    ------
    ConvergenceError
        If the iteration cap is reached before convergence

    Examples
    --------
    >>> g = Graph(("A", "B", "C", "D"), (("A", "C"), ("B", "C"), ("B", "D")), directed=True)
    >>> hub_score(g)
    {'A': 0.618, 'B': 1.0, 'C': 0.0, 'D': 0.0}
    """
    scores = _hits(graph, "hub", max_iter, tol, weight)
    return _round_scores(graph.nodes, scores, precision)


def authority_score(
    graph: Graph,
    max_iter: int = DEFAULT_HITS_MAX_ITER,
    tol: float = DEFAULT_HITS_TOL,
    weight: Optional[str] = None,
    precision: int = DEFAULT_PRECISION
) -> Dict[str, float]:
    """
    Kleinberg authority score, the counterpart of :func:`hub_score`.

    Raises
    ------
    ConvergenceError
        If the iteration cap is reached before convergence
    """
    scores = _hits(graph, "authority", max_iter, tol, weight)
    return _round_scores(graph.nodes, scores, precision)


def adjacency_matrix(graph: Graph, weight: Optional[str] = None) -> sp.csr_matrix:
    """
    Sparse adjacency matrix in node order.

    Parallel edges add up. Undirected edges are entered in both directions,
    so an undirected self-loop contributes 2 on the diagonal.
    """
    n = graph.number_of_nodes()
    rows: List[int] = []
    cols: List[int] = []
    data: List[float] = []

    for (u, v), edge in zip(graph.edge_indices(), graph.edges):
        value = edge.weight(weight) if weight else 1.0
        rows.append(u)
        cols.append(v)
        data.append(value)
        if not graph.directed:
            rows.append(v)
            cols.append(u)
            data.append(value)

    return sp.csr_matrix((data, (rows, cols)), shape=(n, n), dtype=float)


def _hits(
    graph: Graph,
    kind: str,
    max_iter: int,
    tol: float,
    weight: Optional[str]
) -> np.ndarray:
    require_positive(max_iter, "max_iter")
    require_positive(tol, "tol")

    n = graph.number_of_nodes()
    matrix = adjacency_matrix(graph, weight)
    if kind == "authority":
        matrix = matrix.T.tocsr()

    if n == 0 or matrix.count_nonzero() == 0:
        return np.zeros(n)

    scores = np.ones(n)
    for iteration in range(1, max_iter + 1):
        updated = matrix @ (matrix.T @ scores)
        largest = updated.max()
        if largest <= 0:
            return np.zeros(n)
        updated = updated / largest

        change = float(np.abs(updated - scores).max())
        scores = updated
        if change <= tol:
            logger.debug("%s scores converged after %d iterations", kind, iteration)
            return scores
        check_convergence(change, tol, iteration, max_iter, algorithm=f"{kind} score")

    return scores


def extract_centrality(
    graph: Graph,
    metrics: Sequence[str] = ("degree", "betweenness", "closeness", "hub"),
    mode: Optional[str] = None,
    precision: int = DEFAULT_PRECISION,
    n_jobs: int = 1
) -> pl.DataFrame:
    """
    Calculate several centrality measures into one node table.

    Parameters
    ----------
    graph : Graph
        Graph to analyze
    metrics : Sequence[str], default ("degree", "betweenness", "closeness", "hub")
        Measures to compute, any of :data:`AVAILABLE_METRICS`
    mode : str, optional
        Direction mode passed to degree, betweenness and closeness. When None
        each measure uses its own default ("all" for degree, "out" otherwise).
        ``in_degree`` and ``out_degree`` always use their own mode.
    precision : int, default 4
        Decimal places to round to
    n_jobs : int, default 1
        Worker processes. 1 computes sequentially, -1 uses all cores. Results
        are assembled by metric name so they do not depend on scheduling.

    Returns
    -------
    pl.DataFrame
        ``node_id`` plus one ``{metric}_centrality`` column per metric, rows
        in graph node order

    Raises
    ------
    ConfigurationError
        If a metric name, mode or n_jobs is invalid
    ConvergenceError
        If a hub or authority computation does not converge
    ComputationError
        If a measure fails unexpectedly

    Examples
    --------
    >>> table = extract_centrality(g, ["in_degree", "betweenness"])
    >>> table.columns
    ['node_id', 'in_degree_centrality', 'betweenness_centrality']
    """
    metrics = list(metrics)
    log_function_entry("extract_centrality",
                       n_nodes=graph.number_of_nodes(),
                       metrics=metrics, mode=mode, n_jobs=n_jobs)

    _validate_centrality_parameters(metrics, mode, n_jobs)

    if graph.number_of_nodes() == 0:
        warnings.warn("Empty graph provided. Returning empty DataFrame.")
        return pl.DataFrame(
            {"node_id": [], **{f"{m}_centrality": [] for m in metrics}},
            schema={"node_id": pl.Utf8, **{f"{m}_centrality": pl.Float64 for m in metrics}}
        )

    with LoggingTimer("extract_centrality", {"metrics": metrics, "nodes": graph.number_of_nodes()}):
        try:
            if n_jobs == 1 or len(metrics) == 1:
                centrality_data = _calculate_centralities_sequential(graph, metrics, mode, precision)
            else:
                centrality_data = _calculate_centralities_parallel(graph, metrics, mode, precision, n_jobs)
        except NetworkAnalysisError:
            raise
        except Exception as e:
            raise ComputationError(
                f"Centrality calculation failed: {e}",
                operation="extract_centrality",
                error_type="computation",
                cause=e
            )

    result = pl.DataFrame({"node_id": list(graph.nodes)}, schema={"node_id": pl.Utf8})
    for metric in metrics:
        values = centrality_data[metric]
        result = result.with_columns(
            pl.Series(f"{metric}_centrality", [values[name] for name in graph.nodes])
        )

    logger.info("Centrality calculation completed: %d nodes, %d metrics",
                result.height, len(metrics))
    return result


def _validate_centrality_parameters(metrics: List[str], mode: Optional[str], n_jobs: int) -> None:
    if not metrics:
        raise ConfigurationError("At least one centrality metric must be specified",
                                 parameter="metrics")
    for metric in metrics:
        validate_parameter(metric, AVAILABLE_METRICS, "metrics", "extract_centrality")
    if len(set(metrics)) != len(metrics):
        raise ConfigurationError("Centrality metrics must not repeat", parameter="metrics",
                                 value=metrics)
    if mode is not None:
        validate_parameter(mode, ["out", "in", "all"], "mode", "extract_centrality")

    if n_jobs == 0 or n_jobs < -1:
        raise ConfigurationError("n_jobs must be -1 or a positive integer",
                                 parameter="n_jobs", value=n_jobs)
    max_cores = multiprocessing.cpu_count()
    if n_jobs > max_cores:
        warnings.warn(
            f"Requested {n_jobs} cores but only {max_cores} available. "
            f"Using {max_cores} cores."
        )


def _calculate_centralities_sequential(
    graph: Graph,
    metrics: List[str],
    mode: Optional[str],
    precision: int
) -> Dict[str, Dict[str, Any]]:
    logger.debug("Calculating centralities sequentially")
    return {
        metric: _calculate_single_centrality(graph, metric, mode, precision)
        for metric in metrics
    }


def _calculate_centralities_parallel(
    graph: Graph,
    metrics: List[str],
    mode: Optional[str],
    precision: int,
    n_jobs: int
) -> Dict[str, Dict[str, Any]]:
    cores = multiprocessing.cpu_count()
    max_workers = min(len(metrics), cores if n_jobs == -1 else min(n_jobs, cores))
    logger.debug("Calculating centralities in parallel with %d workers", max_workers)

    centrality_data: Dict[str, Dict[str, Any]] = {}
    with ProcessPoolExecutor(max_workers=max_workers) as executor:
        future_to_metric = {
            executor.submit(_calculate_single_centrality, graph, metric, mode, precision): metric
            for metric in metrics
        }
        for future in as_completed(future_to_metric):
            metric = future_to_metric[future]
            centrality_data[metric] = future.result()
            logger.debug("Completed %s centrality calculation", metric)

    return centrality_data


def _calculate_single_centrality(
    graph: Graph,
    metric: str,
    mode: Optional[str],
    precision: int
) -> Dict[str, Any]:
    """Dispatch one metric. Module level so worker processes can import it."""
    if metric == "degree":
        return degree_centrality(graph, mode=mode or "all")
    if metric == "in_degree":
        return degree_centrality(graph, mode="in")
    if metric == "out_degree":
        return degree_centrality(graph, mode="out")
    if metric == "betweenness":
        return betweenness_centrality(graph, mode=mode or "out", precision=precision)
    if metric == "closeness":
        return closeness_centrality(graph, mode=mode or "out", precision=precision)
    if metric == "hub":
        return hub_score(graph, precision=precision)
    if metric == "authority":
        return authority_score(graph, precision=precision)
    raise ConfigurationError(f"Unknown centrality metric: {metric}", parameter="metrics",
                             value=metric, valid_options=AVAILABLE_METRICS)


def get_centrality_summary(centrality_df: pl.DataFrame) -> Dict[str, Dict[str, float]]:
    """
    Descriptive statistics for every ``*_centrality`` column.

    Examples
    --------
    >>> summary = get_centrality_summary(extract_centrality(g, ["degree"]))
    >>> summary["degree_centrality"]["max"]
    2.0
    """
    summary = {}
    for col in [c for c in centrality_df.columns if c.endswith("_centrality")]:
        values = centrality_df[col].cast(pl.Float64)
        if values.len() == 0:
            continue
        std = values.std()
        summary[col] = {
            "count": values.len(),
            "mean": float(values.mean()),
            "std": float(std) if std is not None else 0.0,
            "min": float(values.min()),
            "max": float(values.max()),
            "median": float(values.median()),
        }
    return summary


def identify_central_nodes(
    centrality_df: pl.DataFrame,
    metric: str = "betweenness_centrality",
    top_k: int = 10,
    threshold: Optional[float] = None
) -> List[str]:
    """
    Most central nodes by one measure, ties broken by node name.

    Raises
    ------
    ConfigurationError
        If the metric column is not in the table
    """
    available = [col for col in centrality_df.columns if col.endswith("_centrality")]
    validate_parameter(metric, available, "metric", "identify_central_nodes")
    require_positive(top_k, "top_k")

    result = centrality_df.sort([metric, "node_id"], descending=[True, False])
    if threshold is not None:
        result = result.filter(pl.col(metric) >= threshold)
    return result.head(top_k)["node_id"].to_list()


def _round(value: float, precision: int) -> float:
    # adding 0.0 folds -0.0 into 0.0
    return round(float(value), precision) + 0.0


def _round_scores(nodes: Sequence[str], scores: Sequence[float], precision: int) -> Dict[str, float]:
    return {name: _round(score, precision) for name, score in zip(nodes, scores)}
