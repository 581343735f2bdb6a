"""
Immutable graph values.

A :class:`Graph` is a tuple of unique node names, a tuple of :class:`Edge`
records and a directedness flag fixed at construction. Every algorithm in
histnet takes a Graph and returns new mappings keyed by node name; nothing
ever mutates a graph after it is built. Parallel edges are kept as separate
records (multigraph semantics) unless the caller collapses them while
building the graph.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from histnet.common.exceptions import DataError, validate_parameter
from histnet.common.id_mapper import IDMapper

MODES = ["out", "in", "all"]

# (neighbor index, edge position) pairs per node
Adjacency = List[List[Tuple[int, int]]]


@dataclass(frozen=True)
class Edge:
    """
    A single edge record.

    For directed graphs ``source -> target``; for undirected graphs the order
    of the endpoints carries no meaning.
    """

    source: str
    target: str
    attributes: Dict[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "attributes", dict(self.attributes or {}))

    @property
    def is_loop(self) -> bool:
        return self.source == self.target

    def key(self, directed: bool) -> Tuple[str, str]:
        """Endpoint pair used to identify parallel edges."""
        if directed or self.source <= self.target:
            return (self.source, self.target)
        return (self.target, self.source)

    def weight(self, attribute: Optional[str] = "weight", default: float = 1.0) -> float:
        """
        Numeric value of an edge attribute, ``default`` when absent.

        Raises
        ------
        DataError
            If the attribute is present but not numeric
        """
        if attribute is None or attribute not in self.attributes:
            return default
        value = self.attributes[attribute]
        try:
            return float(value)
        except (TypeError, ValueError):
            raise DataError(
                f"Edge attribute '{attribute}' is not numeric: {value!r}",
                edge=(self.source, self.target),
                field=attribute
            ) from None


@dataclass(frozen=True)
class Graph:
    """
    An immutable graph over named nodes.

    Parameters
    ----------
    nodes : Sequence[str]
        Unique node names; their order is the order of every result table
    edges : Sequence[Edge]
        Edge records. ``(source, target)`` and ``(source, target, attrs)``
        tuples are accepted and converted.
    directed : bool, default False
        Whether edges have a distinguished source and target
    node_attributes : Mapping[str, Mapping[str, Any]], optional
        Per-node annotations such as region or bipartite side

    Raises
    ------
    DataError
        If a node name repeats, an edge references an undeclared node, or
        attributes are given for an undeclared node

    Examples
    --------
    >>> g = Graph(("AK", "CA", "NY", "OR"),
    ...           (Edge("CA", "NY"), Edge("OR", "CA"), Edge("AK", "OR")),
    ...           directed=True)
    >>> g.number_of_edges()
    3
    """

    nodes: Tuple[str, ...]
    edges: Tuple[Edge, ...] = ()
    directed: bool = False
    node_attributes: Dict[str, Dict[str, Any]] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        nodes = tuple(self.nodes)
        seen = set()
        for name in nodes:
            if name in seen:
                raise DataError("Duplicate node name", node=name)
            seen.add(name)

        edges = tuple(_as_edge(record) for record in self.edges)
        for position, edge in enumerate(edges):
            for endpoint in (edge.source, edge.target):
                if endpoint not in seen:
                    raise DataError(
                        f"Edge references undeclared node '{endpoint}'",
                        node=endpoint,
                        edge=(edge.source, edge.target),
                        row=position
                    )

        given_attributes = self.node_attributes or {}
        unknown = [name for name in given_attributes if name not in seen]
        if unknown:
            raise DataError(
                f"Attributes given for {len(unknown)} undeclared nodes",
                node=unknown[0],
                details={"unknown_nodes": unknown}
            )

        object.__setattr__(self, "nodes", nodes)
        object.__setattr__(self, "edges", edges)
        object.__setattr__(self, "directed", bool(self.directed))
        object.__setattr__(
            self,
            "node_attributes",
            {name: dict(given_attributes.get(name, {})) for name in nodes}
        )
        object.__setattr__(self, "_mapper", IDMapper.from_names(nodes))
        object.__setattr__(self, "_adjacency_cache", {})

    # -- size ---------------------------------------------------------------

    def number_of_nodes(self) -> int:
        return len(self.nodes)

    def number_of_edges(self) -> int:
        return len(self.edges)

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, name: object) -> bool:
        return name in self._mapper

    # -- lookup -------------------------------------------------------------

    @property
    def mapper(self) -> IDMapper:
        """Name <-> index mapping in node order."""
        return self._mapper

    def index_of(self, name: str) -> int:
        """
        Index of a node name.

        Raises
        ------
        DataError
            If the node is not part of the graph
        """
        if name not in self._mapper:
            raise DataError(f"Unknown node '{name}'", node=name)
        return self._mapper.get_internal(name)

    def attributes_of(self, name: str) -> Dict[str, Any]:
        """Copy of a node's attribute mapping."""
        self.index_of(name)
        return dict(self.node_attributes[name])

    def edge_indices(self) -> List[Tuple[int, int]]:
        """``(source index, target index)`` for every edge, in edge order."""
        index = self._mapper.original_to_internal
        return [(index[e.source], index[e.target]) for e in self.edges]

    def adjacency(self, mode: str = "all") -> Adjacency:
        """
        Adjacency lists of ``(neighbor index, edge position)`` pairs.

        ``"out"`` follows edges forward, ``"in"`` backward and ``"all"``
        ignores direction. Parallel edges appear once per record. The lists
        are cached on the graph and must not be modified by callers.
        """
        mode = resolve_mode(self, mode)
        cached = self._adjacency_cache.get(mode)
        if cached is not None:
            return cached

        adjacency: Adjacency = [[] for _ in self.nodes]
        for position, (u, v) in enumerate(self.edge_indices()):
            if mode == "out":
                adjacency[u].append((v, position))
            elif mode == "in":
                adjacency[v].append((u, position))
            else:
                adjacency[u].append((v, position))
                if u != v:
                    adjacency[v].append((u, position))

        self._adjacency_cache[mode] = adjacency
        return adjacency

    def neighbors(self, name: str, mode: str = "all") -> List[str]:
        """Sorted unique neighbor names of a node."""
        adjacency = self.adjacency(mode)
        names = {self.nodes[v] for v, _ in adjacency[self.index_of(name)]}
        return sorted(names)

    def has_edge(self, source: str, target: str) -> bool:
        if source not in self or target not in self:
            return False
        if self.directed:
            return any(e.source == source and e.target == target for e in self.edges)
        return any({e.source, e.target} == {source, target} for e in self.edges)

    # -- derived graphs -----------------------------------------------------

    def as_undirected(self) -> "Graph":
        """Same nodes and edge records with direction dropped."""
        if not self.directed:
            return self
        return Graph(self.nodes, self.edges, False, self.node_attributes)

    def subgraph(self, names: Iterable[str]) -> "Graph":
        """
        Induced subgraph on ``names``, keeping the graph's node order.

        Raises
        ------
        DataError
            If a name is not part of the graph
        """
        keep = set()
        for name in names:
            self.index_of(name)
            keep.add(name)
        nodes = tuple(n for n in self.nodes if n in keep)
        edges = tuple(e for e in self.edges if e.source in keep and e.target in keep)
        return Graph(
            nodes,
            edges,
            self.directed,
            {n: self.node_attributes[n] for n in nodes}
        )

    def subgraph_edges(self, positions: Iterable[int]) -> "Graph":
        """
        Graph with every node and only the edges at ``positions``.

        Raises
        ------
        DataError
            If a position is out of range
        """
        keep = sorted(set(positions))
        for position in keep:
            if not 0 <= position < len(self.edges):
                raise DataError(f"Edge position {position} out of range", row=position)
        return Graph(
            self.nodes,
            tuple(self.edges[p] for p in keep),
            self.directed,
            self.node_attributes
        )

    def __repr__(self) -> str:
        kind = "directed" if self.directed else "undirected"
        return f"Graph({kind}, nodes={len(self.nodes)}, edges={len(self.edges)})"


def resolve_mode(graph: Graph, mode: str) -> str:
    """
    Validate a direction mode; undirected graphs always resolve to ``"all"``.

    Raises
    ------
    ConfigurationError
        If mode is not one of ``"out"``, ``"in"``, ``"all"``
    """
    validate_parameter(mode, MODES, "mode")
    return mode if graph.directed else "all"


def _as_edge(record: Any) -> Edge:
    if isinstance(record, Edge):
        return record
    if isinstance(record, Mapping):
        if "source" not in record or "target" not in record:
            raise DataError(f"Edge record needs 'source' and 'target' keys: {record!r}")
        return Edge(
            record["source"],
            record["target"],
            {k: v for k, v in record.items() if k not in ("source", "target")}
        )
    if isinstance(record, Sequence) and not isinstance(record, str) and len(record) in (2, 3):
        attributes = record[2] if len(record) == 3 else {}
        return Edge(record[0], record[1], attributes)
    raise DataError(f"Cannot interpret edge record {record!r}")
