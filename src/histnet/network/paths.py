"""
Breadth-first search, shortest-path counting and node distances.

All paths in histnet are unweighted: every edge has length one. Shortest
paths are counted as distinct edge sequences, so two parallel edges between
the same nodes yield two shortest paths. The shortest-path DAG here drives
edge betweenness and edge-betweenness clustering, where each parallel edge
carries its own share of the paths. Origin distances are computed by
networkit's BFS.
"""

from collections import deque
from typing import Any, Callable, Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple, Union

import networkit as nk
import polars as pl

from histnet.common.exceptions import DataError
from histnet.common.logging_config import get_logger, log_function_entry
from histnet.network.conversion import to_networkit
from histnet.network.graph import Adjacency, Graph

logger = get_logger(__name__)

# Distance reported for nodes no origin can reach
UNREACHABLE = -1

OriginSelector = Union[Iterable[str], Callable[[str, Dict[str, Any]], bool]]


class ShortestPathDAG(NamedTuple):
    """
    Single-source shortest path structure.

    Attributes
    ----------
    order : List[int]
        Reached node indices in non-decreasing distance order
    distance : List[int]
        Hop distance per node index, ``UNREACHABLE`` when not reached
    sigma : List[int]
        Number of distinct shortest paths from the source per node index
    predecessors : List[List[Tuple[int, int]]]
        ``(predecessor index, edge position)`` pairs on shortest paths
    """

    order: List[int]
    distance: List[int]
    sigma: List[int]
    predecessors: List[List[Tuple[int, int]]]


def shortest_path_dag(
    adjacency: Adjacency,
    source: int,
    removed: Optional[Sequence[bool]] = None
) -> ShortestPathDAG:
    """
    BFS from ``source`` recording path counts and predecessor edges.

    Self-loops never lie on a shortest path and are skipped. ``removed``
    marks edge positions to ignore, which lets edge-betweenness clustering
    delete edges without rebuilding the graph.
    """
    n = len(adjacency)
    distance = [UNREACHABLE] * n
    sigma = [0] * n
    predecessors: List[List[Tuple[int, int]]] = [[] for _ in range(n)]
    order: List[int] = []

    distance[source] = 0
    sigma[source] = 1
    queue = deque([source])

    while queue:
        v = queue.popleft()
        order.append(v)
        next_distance = distance[v] + 1
        for w, position in adjacency[v]:
            if w == v or (removed is not None and removed[position]):
                continue
            if distance[w] == UNREACHABLE:
                distance[w] = next_distance
                queue.append(w)
            if distance[w] == next_distance:
                sigma[w] += sigma[v]
                predecessors[w].append((v, position))

    return ShortestPathDAG(order, distance, sigma, predecessors)


def brandes_betweenness(
    adjacency: Adjacency,
    n_edges: int,
    halve: bool,
    removed: Optional[Sequence[bool]] = None
) -> Tuple[List[float], List[float]]:
    """
    Node and edge betweenness by Brandes' dependency accumulation.

    Sources are processed in index order so the floating point summation
    order, and therefore the result, is fixed for a given graph.

    Parameters
    ----------
    adjacency : Adjacency
        Adjacency lists to traverse
    n_edges : int
        Number of edge positions in the graph
    halve : bool
        Divide by two because every unordered pair was visited twice
        (undirected traversal)
    removed : Sequence[bool], optional
        Edge positions to ignore

    Returns
    -------
    Tuple[List[float], List[float]]
        Node betweenness per node index and edge betweenness per edge position
    """
    n = len(adjacency)
    node_scores = [0.0] * n
    edge_scores = [0.0] * n_edges

    for s in range(n):
        dag = shortest_path_dag(adjacency, s, removed)
        dependency = [0.0] * n
        for w in reversed(dag.order):
            coefficient = (1.0 + dependency[w]) / dag.sigma[w]
            for v, position in dag.predecessors[w]:
                credit = dag.sigma[v] * coefficient
                edge_scores[position] += credit
                dependency[v] += credit
            if w != s:
                node_scores[w] += dependency[w]

    if halve:
        node_scores = [score / 2.0 for score in node_scores]
        edge_scores = [score / 2.0 for score in edge_scores]

    return node_scores, edge_scores


def shortest_path_counts(graph: Graph, source: str, mode: str = "out") -> Dict[str, Tuple[int, int]]:
    """
    Hop distance and number of shortest paths from ``source`` to every node.

    Returns
    -------
    Dict[str, Tuple[int, int]]
        ``node -> (distance, path count)``; unreachable nodes map to
        ``(UNREACHABLE, 0)``

    Examples
    --------
    >>> g = Graph(("A", "B", "C", "D"),
    ...           (("A", "B"), ("A", "C"), ("B", "D"), ("C", "D")))
    >>> shortest_path_counts(g, "A")["D"]
    (2, 2)
    """
    dag = shortest_path_dag(graph.adjacency(mode), graph.index_of(source))
    return {
        name: (dag.distance[i], dag.sigma[i])
        for i, name in enumerate(graph.nodes)
    }


def bfs_distances(graph: Graph, source: str, mode: str = "out") -> Dict[str, int]:
    """Hop distance from a single source, ``UNREACHABLE`` when not reached."""
    return distances_from(graph, [source], mode=mode)


def distances_from(
    graph: Graph,
    origins: OriginSelector,
    mode: str = "out"
) -> Dict[str, int]:
    """
    Shortest hop distance from the nearest origin node to every node.

    Parameters
    ----------
    graph : Graph
        Graph to search
    origins : Iterable[str] or Callable[[str, Dict[str, Any]], bool]
        Origin node names, or a predicate called with each node's name and
        attributes that selects the origins
    mode : str, default "out"
        ``"out"`` follows edges forward from the origins, ``"in"`` follows
        them backward (who reaches the origin), ``"all"`` ignores direction

    Returns
    -------
    Dict[str, int]
        Distance per node in graph order. Origins are at distance 0 and nodes
        no origin reaches get ``UNREACHABLE`` (-1).

    Raises
    ------
    DataError
        If an origin name is not in the graph or no origin is selected
    ConfigurationError
        If mode is invalid

    Examples
    --------
    Who borrowed from New York, directly or transitively:

    >>> g = Graph(("AK", "CA", "NY", "OR"),
    ...           (("CA", "NY"), ("OR", "CA"), ("AK", "OR")), directed=True)
    >>> distances_from(g, ["NY"], mode="in")
    {'AK': 3, 'CA': 1, 'NY': 0, 'OR': 2}
    """
    log_function_entry("distances_from", mode=mode, nodes=graph.number_of_nodes())

    nk_graph, _ = to_networkit(graph, mode=mode)
    sources = _select_origins(graph, origins)
    n = graph.number_of_nodes()

    # one BFS from a virtual node one hop before every origin
    root = nk_graph.addNode()
    for s in sources:
        nk_graph.addEdge(root, s)
    bfs = nk.distance.BFS(nk_graph, root, storePaths=False)
    bfs.run()
    hops = bfs.getDistances()

    distance = [int(hops[i]) - 1 if hops[i] <= n else UNREACHABLE for i in range(n)]

    reached = sum(1 for d in distance if d != UNREACHABLE)
    logger.debug("BFS from %d origins reached %d of %d nodes",
                 len(sources), reached, graph.number_of_nodes())

    return {name: distance[i] for i, name in enumerate(graph.nodes)}


def distance_table(
    graph: Graph,
    origins: OriginSelector,
    mode: str = "out",
    column: str = "distance"
) -> pl.DataFrame:
    """
    :func:`distances_from` as a ``node_id`` / ``distance`` DataFrame.

    Examples
    --------
    >>> distance_table(g, lambda name, attrs: attrs.get("region") == "NE", mode="in")
    """
    distances = distances_from(graph, origins, mode=mode)
    return pl.DataFrame(
        {
            "node_id": list(distances.keys()),
            column: list(distances.values()),
        },
        schema={"node_id": pl.Utf8, column: pl.Int64}
    )


def _select_origins(graph: Graph, origins: OriginSelector) -> List[int]:
    if callable(origins):
        selected = [
            i for i, name in enumerate(graph.nodes)
            if origins(name, graph.attributes_of(name))
        ]
    else:
        if isinstance(origins, str):
            origins = [origins]
        selected = sorted({graph.index_of(name) for name in origins})

    if not selected:
        raise DataError("No origin nodes selected for distance computation")
    return selected
