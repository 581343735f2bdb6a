"""
Conversion of histnet graphs into networkit graphs and partitions.

Node ``i`` of every converted graph is ``graph.nodes[i]``. Closeness,
betweenness, BFS distances and undirected modularity are computed by
networkit on these conversions.
"""

from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

import networkit as nk

from histnet.common.exceptions import DataError
from histnet.common.id_mapper import IDMapper
from histnet.common.logging_config import get_logger
from histnet.network.graph import Graph, resolve_mode

logger = get_logger(__name__)


def to_networkit(
    graph: Graph,
    weight: Optional[str] = None,
    mode: str = "out"
) -> Tuple[nk.Graph, IDMapper]:
    """
    Convert a graph into a networkit graph.

    Parallel edges are added as separate networkit edges.

    Parameters
    ----------
    graph : Graph
        Graph to convert
    weight : str, optional
        Edge attribute to use as weight; the networkit graph is unweighted
        when omitted
    mode : str, default "out"
        Orientation of a directed graph: ``"out"`` keeps edge direction,
        ``"in"`` reverses every edge and ``"all"`` drops direction.
        Undirected graphs always convert undirected.

    Returns
    -------
    Tuple[nk.Graph, IDMapper]
        The networkit graph and the name <-> node id mapping

    Raises
    ------
    ConfigurationError
        If mode is invalid

    Examples
    --------
    >>> nk_graph, mapper = to_networkit(g)
    >>> nk_graph.numberOfNodes() == g.number_of_nodes()
    True
    """
    mode = resolve_mode(graph, mode)
    mapper = IDMapper.from_names(graph.nodes)

    sources = mapper.get_internal_batch(e.source for e in graph.edges)
    targets = mapper.get_internal_batch(e.target for e in graph.edges)
    if mode == "in":
        sources, targets = targets, sources

    nk_graph = nk.Graph(graph.number_of_nodes(), weighted=weight is not None,
                        directed=mode != "all")
    for u, v, edge in zip(sources, targets, graph.edges):
        if weight is not None:
            nk_graph.addEdge(u, v, edge.weight(weight))
        else:
            nk_graph.addEdge(u, v)

    logger.debug("Converted graph to networkit (%s): %d nodes, %d edges", mode,
                 nk_graph.numberOfNodes(), nk_graph.numberOfEdges())
    return nk_graph, mapper


def to_partition(graph: Graph, membership: Mapping[str, Any]) -> nk.structures.Partition:
    """
    Convert a ``node name -> community`` mapping into a networkit Partition.

    Community labels may be any hashable values; they are numbered in order
    of first appearance along the graph's node order.

    Raises
    ------
    DataError
        If a node has no community
    """
    labels: Dict[Any, int] = {}
    subsets = []
    for name in graph.nodes:
        if name not in membership:
            raise DataError(f"Node '{name}' has no community", node=name)
        subsets.append(labels.setdefault(membership[name], len(labels)))

    partition = nk.structures.Partition(graph.number_of_nodes())
    partition.setUpperBound(len(labels))
    for node, subset in enumerate(subsets):
        partition.addToSubset(subset, node)
    return partition


def scores_by_name(mapper: IDMapper, scores: Sequence[float]) -> Dict[str, float]:
    """Key a networkit score vector by node name."""
    return dict(zip(mapper.get_original_batch(range(len(scores))), scores))
