"""
Community detection for the histnet library.

Three deterministic strategies are provided: weak connected components,
Girvan-Newman edge-betweenness splitting and Pons-Latapy walktrap
agglomeration. Each returns a ``node name -> community id`` mapping whose
ids are renumbered 0..k-1 in order of first appearance along the graph's
node order, so equal partitions always compare equal as dictionaries.
"""

from collections import Counter
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Set, Tuple, Union

import networkit as nk
import numpy as np
import polars as pl
from scipy.sparse.csgraph import connected_components as _csgraph_components
from sklearn.metrics import normalized_mutual_info_score

from histnet.common.exceptions import (
    ComputationError,
    DataError,
    NetworkAnalysisError,
    require_positive,
    validate_parameter
)
from histnet.common.logging_config import get_logger, log_function_entry, LoggingTimer
from histnet.network.analysis import adjacency_matrix
from histnet.network.conversion import to_networkit, to_partition
from histnet.network.graph import Graph
from histnet.network.paths import brandes_betweenness

logger = get_logger(__name__)

AVAILABLE_ALGORITHMS = ["components", "edge_betweenness", "walktrap"]

DEFAULT_WALK_STEPS = 4

# Scores closer than this are treated as tied
_TIE_TOLERANCE = 1e-12

Membership = Dict[str, int]


def connected_components(graph: Graph) -> Membership:
    """
    Weakly connected components.

    Edge direction is ignored, so on directed graphs two nodes share a
    component when some path joins them regardless of orientation.

    Examples
    --------
    >>> g = Graph(("A", "B", "C"), (("A", "B"),))
    >>> connected_components(g)
    {'A': 0, 'B': 0, 'C': 1}
    """
    if graph.number_of_nodes() == 0:
        return {}
    _, labels = _csgraph_components(
        adjacency_matrix(graph), directed=graph.directed, connection="weak"
    )
    return _renumber(graph.nodes, labels)


def modularity(
    graph: Graph,
    membership: Mapping[str, int],
    weight: Optional[str] = None
) -> float:
    """
    Newman modularity of a partition.

    For undirected graphs ``Q = sum_c [L_c / m - (D_c / 2m)^2]`` where
    ``L_c`` is the (weighted) number of edges inside community c and ``D_c``
    its total degree, computed by ``networkit.community.Modularity``.
    Directed graphs use ``Q = sum_c [L_c / m - Dout_c * Din_c / m^2]``.

    Parameters
    ----------
    graph : Graph
        Graph the partition refers to
    membership : Mapping[str, int]
        Community id per node; every node must be assigned
    weight : str, optional
        Edge attribute to use as weight

    Returns
    -------
    float
        Modularity; ``0.0`` for a graph without edges

    Raises
    ------
    DataError
        If a node has no community
    """
    missing = [name for name in graph.nodes if name not in membership]
    if missing:
        raise DataError(
            f"Membership is missing {len(missing)} nodes",
            node=missing[0],
            details={"missing_nodes": missing}
        )
    return _modularity_scorer(graph, weight)(membership)


def _modularity_scorer(graph: Graph, weight: Optional[str] = None) -> Callable[[Mapping[str, int]], float]:
    """Modularity function for repeated scoring of partitions of one graph."""
    total = sum(edge.weight(weight) if weight else 1.0 for edge in graph.edges)
    if total == 0:
        return lambda membership: 0.0
    if graph.directed:
        return lambda membership: _directed_modularity(graph, membership, weight)

    nk_graph, _ = to_networkit(graph, weight=weight)

    def score(membership: Mapping[str, int]) -> float:
        return nk.community.Modularity().getQuality(to_partition(graph, membership), nk_graph)

    return score


def _directed_modularity(graph: Graph, membership: Mapping[str, int], weight: Optional[str]) -> float:
    total = 0.0
    inside: Counter = Counter()
    out_strength: Counter = Counter()
    in_strength: Counter = Counter()

    for edge in graph.edges:
        w = edge.weight(weight) if weight else 1.0
        source_community = membership[edge.source]
        target_community = membership[edge.target]
        total += w
        out_strength[source_community] += w
        in_strength[target_community] += w
        if source_community == target_community:
            inside[source_community] += w

    q = 0.0
    for community in set(membership[name] for name in graph.nodes):
        expected = out_strength[community] * in_strength[community] / total ** 2
        q += inside[community] / total - expected
    return q


def edge_betweenness_communities(graph: Graph) -> Membership:
    """
    Girvan-Newman divisive clustering.

    The edge with the highest betweenness is removed repeatedly, with
    betweenness recomputed after every removal, until no edges remain. Among
    the connected-component partitions passed through, the first one with
    the highest modularity on the original graph is returned. Ties between
    edges go to the lexicographically smallest endpoint pair, then to the
    earlier edge.

    Directed graphs use directed edge betweenness and directed modularity.

    Examples
    --------
    Two triangles joined by a bridge split at the bridge:

    >>> g = Graph(tuple("ABCDEF"), (("A", "B"), ("B", "C"), ("A", "C"),
    ...                             ("C", "D"),
    ...                             ("D", "E"), ("E", "F"), ("D", "F")))
    >>> edge_betweenness_communities(g)
    {'A': 0, 'B': 0, 'C': 0, 'D': 1, 'E': 1, 'F': 1}
    """
    n_edges = graph.number_of_edges()
    if n_edges == 0:
        return _singletons(graph)

    mode = "out" if graph.directed else "all"
    adjacency = graph.adjacency(mode)
    removed = [False] * n_edges
    keys = [edge.key(graph.directed) for edge in graph.edges]

    score = _modularity_scorer(graph)
    best = connected_components(graph)
    best_q = score(best)
    n_components = len(set(best.values()))

    for _ in range(n_edges):
        _, scores = brandes_betweenness(adjacency, n_edges, halve=not graph.directed, removed=removed)
        top = max(scores[p] for p in range(n_edges) if not removed[p])
        tied = [p for p in range(n_edges) if not removed[p] and scores[p] >= top - _TIE_TOLERANCE]
        target = min(tied, key=lambda p: (keys[p], p))
        removed[target] = True
        logger.debug("Removed edge %s with betweenness %.4f", keys[target], scores[target])

        remaining = graph.subgraph_edges(p for p in range(n_edges) if not removed[p])
        partition = connected_components(remaining)
        count = len(set(partition.values()))
        if count == n_components:
            continue
        n_components = count

        q = score(partition)
        if q > best_q + _TIE_TOLERANCE:
            best, best_q = partition, q

    logger.debug("Edge betweenness clustering: %d communities, modularity %.4f",
                 len(set(best.values())), best_q)
    return best


def walktrap_communities(graph: Graph, steps: int = DEFAULT_WALK_STEPS) -> Membership:
    """
    Pons-Latapy walktrap agglomerative clustering.

    Parameters
    ----------
    graph : Graph
        Input graph; edge direction is ignored
    steps : int, default 4
        Length of the random walks

    Returns
    -------
    Dict[str, int]
        Community id per node

    Notes
    -----
    Every node receives a unit self-loop and walks are taken on the
    undirected view. Starting from singletons, the adjacent pair of
    communities with the smallest increase

    ``delta_sigma = (1/n) * |C1||C2| / (|C1| + |C2|) * r^2(C1, C2)``

    is merged, where ``r^2`` is the squared random-walk distance weighted by
    inverse degree. Ties go to the pair with the smallest community ids;
    merged communities receive fresh ids n, n+1, ... . The first partition
    with maximum modularity along the merge sequence is returned.
    """
    require_positive(steps, "steps")

    n = graph.number_of_nodes()
    if graph.number_of_edges() == 0:
        return _singletons(graph)

    undirected = graph.as_undirected()
    matrix = adjacency_matrix(undirected).toarray()
    # loops enter the symmetric matrix twice
    matrix[np.diag_indices(n)] /= 2.0
    matrix += np.eye(n)
    degree = matrix.sum(axis=1)
    transition = matrix / degree[:, None]
    walk = np.linalg.matrix_power(transition, steps)

    members: Dict[int, List[int]] = {i: [i] for i in range(n)}
    profile: Dict[int, np.ndarray] = {i: walk[i] for i in range(n)}
    neighbours: Dict[int, Set[int]] = {i: set() for i in range(n)}
    for u, v in undirected.edge_indices():
        if u != v:
            neighbours[u].add(v)
            neighbours[v].add(u)

    def delta_sigma(a: int, b: int) -> float:
        size_a, size_b = len(members[a]), len(members[b])
        distance = float(np.sum((profile[a] - profile[b]) ** 2 / degree))
        return (size_a * size_b / (size_a + size_b)) * distance / n

    pending: Dict[Tuple[int, int], float] = {}
    for a in range(n):
        for b in neighbours[a]:
            if a < b:
                pending[(a, b)] = delta_sigma(a, b)

    score = _modularity_scorer(undirected)
    assignment = list(range(n))
    best = list(assignment)
    best_q = score(_as_membership(graph.nodes, assignment))
    next_id = n

    while pending:
        smallest = min(pending.values())
        a, b = min(pair for pair, value in pending.items() if value <= smallest + _TIE_TOLERANCE)

        merged = next_id
        next_id += 1
        size_a, size_b = len(members[a]), len(members[b])
        members[merged] = members.pop(a) + members.pop(b)
        profile[merged] = (size_a * profile.pop(a) + size_b * profile.pop(b)) / (size_a + size_b)
        neighbours[merged] = (neighbours.pop(a) | neighbours.pop(b)) - {a, b}

        pending = {pair: value for pair, value in pending.items() if a not in pair and b not in pair}
        for c in neighbours[merged]:
            neighbours[c] -= {a, b}
            neighbours[c].add(merged)
            pending[(c, merged)] = delta_sigma(c, merged)

        for i in members[merged]:
            assignment[i] = merged

        q = score(_as_membership(graph.nodes, assignment))
        if q > best_q + _TIE_TOLERANCE:
            best, best_q = list(assignment), q

    logger.debug("Walktrap (%d steps): %d communities, modularity %.4f",
                 steps, len(set(best)), best_q)
    return _renumber(graph.nodes, best)


def detect_communities(
    graph: Graph,
    algorithm: str = "walktrap",
    **kwargs: Any
) -> pl.DataFrame:
    """
    Run a community detection strategy and return the assignment table.

    Parameters
    ----------
    graph : Graph
        Graph to partition
    algorithm : str, default "walktrap"
        One of :data:`AVAILABLE_ALGORITHMS`
    **kwargs
        Passed to the strategy (``steps`` for walktrap)

    Returns
    -------
    pl.DataFrame
        ``node_id`` and ``community`` columns in graph node order

    Raises
    ------
    ConfigurationError
        If the algorithm is unknown
    ComputationError
        If the strategy fails unexpectedly

    Examples
    --------
    >>> communities = detect_communities(graph, algorithm="edge_betweenness")
    >>> communities.group_by("community").len()
    """
    log_function_entry("detect_communities", algorithm=algorithm,
                       n_nodes=graph.number_of_nodes(),
                       n_edges=graph.number_of_edges())
    validate_parameter(algorithm, AVAILABLE_ALGORITHMS, "algorithm", "detect_communities")

    strategies = {
        "components": connected_components,
        "edge_betweenness": edge_betweenness_communities,
        "walktrap": walktrap_communities,
    }

    if graph.number_of_edges() == 0:
        logger.warning("Graph has no edges - each node forms its own community")

    with LoggingTimer("detect_communities", {"algorithm": algorithm}):
        try:
            membership = strategies[algorithm](graph, **kwargs)
        except NetworkAnalysisError:
            raise
        except Exception as e:
            raise ComputationError(
                f"Community detection failed: {e}",
                operation=f"{algorithm} community detection",
                error_type="computation",
                cause=e
            )

    logger.info("Detected %d communities with %s", len(set(membership.values())), algorithm)
    return pl.DataFrame(
        {
            "node_id": list(graph.nodes),
            "community": [membership[name] for name in graph.nodes],
        },
        schema={"node_id": pl.Utf8, "community": pl.Int64}
    )


def get_community_summary(
    communities: Union[Mapping[str, int], pl.DataFrame],
    graph: Optional[Graph] = None
) -> Dict[str, Any]:
    """
    Summary statistics for a community assignment.

    Parameters
    ----------
    communities : Mapping[str, int] or pl.DataFrame
        A membership mapping or the table returned by detect_communities()
    graph : Graph, optional
        When given, the partition's modularity is included

    Returns
    -------
    Dict[str, Any]
        - num_communities: Number of communities
        - community_sizes: Sizes, largest first
        - size_distribution: min / max / mean / median / std of the sizes
        - total_nodes: Number of assigned nodes
        - modularity: Modularity on ``graph``, or None
    """
    membership = _membership_from(communities)
    community_sizes = sorted(Counter(membership.values()).values(), reverse=True)

    size_stats = {
        "min": min(community_sizes) if community_sizes else 0,
        "max": max(community_sizes) if community_sizes else 0,
        "mean": float(np.mean(community_sizes)) if community_sizes else 0.0,
        "median": float(np.median(community_sizes)) if community_sizes else 0.0,
        "std": float(np.std(community_sizes)) if community_sizes else 0.0
    }

    return {
        "num_communities": len(community_sizes),
        "community_sizes": community_sizes,
        "size_distribution": size_stats,
        "total_nodes": len(membership),
        "modularity": modularity(graph, membership) if graph is not None else None
    }


def compare_partitions(
    first: Union[Mapping[str, int], pl.DataFrame],
    second: Union[Mapping[str, int], pl.DataFrame]
) -> float:
    """
    Normalized mutual information between two partitions of the same nodes.

    Returns 1.0 for identical partitions (up to relabeling).

    Raises
    ------
    DataError
        If the partitions cover different node sets
    """
    a = _membership_from(first)
    b = _membership_from(second)
    if set(a) != set(b):
        differing = sorted(set(a) ^ set(b))
        raise DataError(
            "Partitions cover different node sets",
            node=differing[0],
            details={"differing_nodes": differing}
        )
    names = sorted(a)
    return float(normalized_mutual_info_score([a[n] for n in names], [b[n] for n in names]))


def _membership_from(communities: Union[Mapping[str, int], pl.DataFrame]) -> Membership:
    if isinstance(communities, pl.DataFrame):
        if "node_id" not in communities.columns or "community" not in communities.columns:
            raise DataError(
                "Community table needs 'node_id' and 'community' columns",
                field="columns",
                details={"available_columns": communities.columns}
            )
        return dict(zip(communities["node_id"].to_list(), communities["community"].to_list()))
    return dict(communities)


def _singletons(graph: Graph) -> Membership:
    return {name: i for i, name in enumerate(graph.nodes)}


def _as_membership(nodes: Sequence[str], labels: Sequence[int]) -> Membership:
    return dict(zip(nodes, labels))


def _renumber(nodes: Sequence[str], labels: Sequence[Any]) -> Membership:
    """Relabel communities 0..k-1 by first appearance in node order."""
    relabel: Dict[Any, int] = {}
    membership = {}
    for name, label in zip(nodes, labels):
        if label not in relabel:
            relabel[label] = len(relabel)
        membership[name] = relabel[label]
    return membership
