"""
Bipartite graphs and their one-mode projections.

A :class:`BipartiteGraph` pairs a :class:`Graph` with a boolean side label
per node and guarantees that every edge crosses sides. Projecting onto one
side connects two same-side nodes whenever they share a neighbour on the
other side, weighted by the number of distinct shared neighbours.
"""

from collections import Counter
from dataclasses import dataclass, field
from itertools import combinations
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from histnet.common.exceptions import DataError, validate_parameter
from histnet.common.logging_config import get_logger, log_function_entry, LoggingTimer
from histnet.network.construction import EdgeSource, TableSource, build_graph
from histnet.network.graph import Edge, Graph

logger = get_logger(__name__)

DEFAULT_SIDE_ATTRIBUTE = "type"

_TRUE_LABELS = {"true", "t", "yes", "y", "1"}
_FALSE_LABELS = {"false", "f", "no", "n", "0"}

SideSource = Union[Mapping[str, Any], str, None]


def coerce_side(value: Any, node: Optional[str] = None) -> bool:
    """
    Interpret a side label as a boolean.

    Accepts booleans, the integers 0 and 1, and the strings true/false,
    t/f, yes/no, y/n, 1/0 in any case.

    Raises
    ------
    DataError
        If the value is not a recognised side label
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        label = value.strip().lower()
        if label in _TRUE_LABELS:
            return True
        if label in _FALSE_LABELS:
            return False
    raise DataError(
        f"Cannot interpret {value!r} as a bipartite side",
        node=node,
        value=value,
        expected="boolean, 0/1 or true/false"
    )


@dataclass(frozen=True)
class BipartiteGraph:
    """
    A graph whose nodes carry a boolean side and whose edges cross sides.

    Parameters
    ----------
    graph : Graph
        Underlying graph
    sides : Mapping[str, Any]
        Side label for every node, coerced with :func:`coerce_side`

    Raises
    ------
    DataError
        If a node has no side, a side is given for an unknown node, or an
        edge joins two nodes on the same side

    Examples
    --------
    >>> g = Graph(("O1", "O2", "P1", "P2", "P3"),
    ...           (("P1", "O1"), ("P2", "O1"), ("P2", "O2"), ("P3", "O2")))
    >>> people = BipartiteGraph(g, {"P1": False, "P2": False, "P3": False,
    ...                             "O1": True, "O2": True})
    """

    graph: Graph
    sides: Dict[str, bool] = field(hash=False)

    def __post_init__(self) -> None:
        unknown = [name for name in self.sides if name not in self.graph]
        if unknown:
            raise DataError(
                f"Sides given for {len(unknown)} unknown nodes",
                node=unknown[0],
                details={"unknown_nodes": unknown}
            )

        sides = {}
        for name in self.graph.nodes:
            if name not in self.sides:
                raise DataError(f"Node '{name}' has no bipartite side", node=name)
            sides[name] = coerce_side(self.sides[name], node=name)

        for position, edge in enumerate(self.graph.edges):
            if sides[edge.source] == sides[edge.target]:
                raise DataError(
                    f"Edge ({edge.source}, {edge.target}) joins two nodes on side "
                    f"{sides[edge.source]}",
                    node=edge.source,
                    edge=(edge.source, edge.target),
                    row=position
                )

        object.__setattr__(self, "sides", sides)

    @property
    def nodes(self) -> Tuple[str, ...]:
        return self.graph.nodes

    @property
    def edges(self) -> Tuple[Edge, ...]:
        return self.graph.edges

    def side_nodes(self, side: bool) -> List[str]:
        """Nodes on one side, in graph node order."""
        return [name for name in self.graph.nodes if self.sides[name] is side]

    def __repr__(self) -> str:
        return (f"BipartiteGraph(false={len(self.side_nodes(False))}, "
                f"true={len(self.side_nodes(True))}, edges={self.graph.number_of_edges()})")


def build_bipartite_graph(
    edges: EdgeSource,
    nodes: Optional[TableSource] = None,
    side_col: str = DEFAULT_SIDE_ATTRIBUTE,
    **kwargs: Any
) -> BipartiteGraph:
    """
    Build a bipartite graph from edge and node tables.

    With a node table, sides come from its ``side_col`` column. Without one,
    edge sources are placed on side False and targets on side True.

    Parameters
    ----------
    edges : str, Path, pl.DataFrame or sequence of records
        Edge table, as accepted by :func:`build_graph`
    nodes : str, Path or pl.DataFrame, optional
        Node table holding the side column
    side_col : str, default "type"
        Node table column with the side labels
    **kwargs
        Passed to :func:`build_graph` (directed, source_col, ...)

    Raises
    ------
    DataError
        If the side column is missing or invalid, a node appears both as a
        source and as a target without a node table, or an edge joins two
        same-side nodes

    Examples
    --------
    >>> memberships = [("P1", "O1"), ("P2", "O1"), ("P2", "O2"), ("P3", "O2")]
    >>> bgraph = build_bipartite_graph(memberships)
    >>> bgraph.side_nodes(True)
    ['O1', 'O2']
    """
    log_function_entry("build_bipartite_graph", side_col=side_col, has_node_table=nodes is not None)
    graph = build_graph(edges, nodes=nodes, **kwargs)

    if nodes is not None:
        sides = side_labels(graph, side_col)
    else:
        sources = {e.source for e in graph.edges}
        targets = {e.target for e in graph.edges}
        overlap = sorted(sources & targets)
        if overlap:
            raise DataError(
                f"{len(overlap)} nodes appear as both source and target; "
                "supply a node table with side labels",
                node=overlap[0],
                details={"overlapping_nodes": overlap}
            )
        sides = {name: name in targets for name in graph.nodes}

    return BipartiteGraph(graph, sides)


def side_labels(graph: Graph, attribute: str = DEFAULT_SIDE_ATTRIBUTE) -> Dict[str, bool]:
    """
    Read side labels from a node attribute.

    Raises
    ------
    DataError
        If a node lacks the attribute or its value is not a side label
    """
    sides = {}
    for name in graph.nodes:
        attributes = graph.node_attributes[name]
        if attributes.get(attribute) is None:
            raise DataError(
                f"Node '{name}' has no '{attribute}' side attribute",
                node=name,
                field=attribute
            )
        sides[name] = coerce_side(attributes[attribute], node=name)
    return sides


def project_bipartite(
    graph: Union[BipartiteGraph, Graph],
    sides: SideSource = None,
    which: Union[str, bool] = "both"
) -> Union[Graph, Tuple[Graph, Graph]]:
    """
    Project a bipartite graph onto its sides.

    Two nodes on the same side are joined by an undirected edge whenever they
    share at least one neighbour on the other side. The edge's ``weight``
    attribute is the number of distinct shared neighbours. Edge direction and
    parallel edges of the input are ignored.

    Parameters
    ----------
    graph : BipartiteGraph or Graph
        Bipartite graph to project
    sides : Mapping[str, Any] or str, optional
        Side labels, or the node attribute holding them. Required only for a
        plain Graph, where it defaults to the ``"type"`` attribute.
    which : {"both", "false", "true"} or bool, default "both"
        Projection(s) to return

    Returns
    -------
    Graph or Tuple[Graph, Graph]
        ``(side False projection, side True projection)`` for ``"both"``,
        otherwise the single requested projection. Projections keep the
        node attributes and graph node order of their side; edges are sorted
        by endpoint names.

    Raises
    ------
    DataError
        If an edge joins two same-side nodes
    ConfigurationError
        If ``which`` is invalid

    Examples
    --------
    >>> people, organizations = project_bipartite(bgraph)
    >>> organizations.edges
    (Edge(source='O1', target='O2', attributes={'weight': 1}),)
    """
    log_function_entry("project_bipartite", which=which)
    selection = _resolve_which(which)
    bgraph = _as_bipartite(graph, sides)

    with LoggingTimer("project_bipartite"):
        projections = {side: _project_side(bgraph, side) for side in selection}

    for side, projected in projections.items():
        logger.info("Projection onto side %s: %d nodes, %d edges",
                    side, projected.number_of_nodes(), projected.number_of_edges())

    if len(selection) == 2:
        return projections[False], projections[True]
    return projections[selection[0]]


def projection_summary(
    graph: Union[BipartiteGraph, Graph],
    sides: SideSource = None
) -> Dict[bool, Dict[str, int]]:
    """
    Node and edge counts of both projections.

    Lets a caller tell which side is which (say organizations versus
    individuals) without keeping the projected graphs around.

    Returns
    -------
    Dict[bool, Dict[str, int]]
        ``{False: {"num_nodes": ..., "num_edges": ...}, True: {...}}``
    """
    false_side, true_side = project_bipartite(graph, sides, which="both")
    return {
        False: {"num_nodes": false_side.number_of_nodes(), "num_edges": false_side.number_of_edges()},
        True: {"num_nodes": true_side.number_of_nodes(), "num_edges": true_side.number_of_edges()},
    }


def get_bipartite_info(bgraph: BipartiteGraph) -> Dict[str, Any]:
    """Side sizes, side members and edge count of a bipartite graph."""
    false_nodes = bgraph.side_nodes(False)
    true_nodes = bgraph.side_nodes(True)
    return {
        "false_partition_size": len(false_nodes),
        "true_partition_size": len(true_nodes),
        "false_nodes": false_nodes,
        "true_nodes": true_nodes,
        "total_nodes": len(false_nodes) + len(true_nodes),
        "total_edges": bgraph.graph.number_of_edges()
    }


def _resolve_which(which: Union[str, bool]) -> List[bool]:
    if isinstance(which, bool):
        return [which]
    validate_parameter(which, ["both", "false", "true"], "which", "project_bipartite")
    if which == "both":
        return [False, True]
    return [which == "true"]


def _as_bipartite(graph: Union[BipartiteGraph, Graph], sides: SideSource) -> BipartiteGraph:
    if isinstance(graph, BipartiteGraph):
        if sides is None:
            return graph
        graph = graph.graph
    if sides is None:
        sides = DEFAULT_SIDE_ATTRIBUTE
    if isinstance(sides, str):
        sides = side_labels(graph, sides)
    return BipartiteGraph(graph, dict(sides))


def _project_side(bgraph: BipartiteGraph, side: bool) -> Graph:
    graph = bgraph.graph
    members = bgraph.side_nodes(side)

    # distinct neighbours on the other side for every opposite node
    incident: Dict[str, set] = {name: set() for name in graph.nodes if bgraph.sides[name] is not side}
    for edge in graph.edges:
        if bgraph.sides[edge.source] is side:
            incident[edge.target].add(edge.source)
        else:
            incident[edge.source].add(edge.target)

    shared: Counter = Counter()
    for neighbours in incident.values():
        for a, b in combinations(sorted(neighbours), 2):
            shared[(a, b)] += 1

    edges = tuple(
        Edge(a, b, {"weight": count})
        for (a, b), count in sorted(shared.items())
    )
    return Graph(
        tuple(members),
        edges,
        False,
        {name: graph.node_attributes[name] for name in members}
    )
