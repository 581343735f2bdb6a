"""
Graph construction for the histnet library.

Edge and node tables arrive as CSV files, polars DataFrames or plain Python
records and leave as an immutable :class:`Graph`. Node names are always
strings; every column other than the endpoint (or node id) columns is kept
as an edge (or node) attribute.
"""

from collections import OrderedDict
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import polars as pl

from histnet.common.exceptions import DataError, DataFormatError
from histnet.common.logging_config import get_logger, log_function_entry, LoggingTimer
from histnet.common.validators import (
    resolve_edge_columns,
    validate_edge_table,
    validate_node_table
)
from histnet.network.communities import connected_components
from histnet.network.graph import Edge, Graph, _as_edge

logger = get_logger(__name__)

TableSource = Union[str, Path, pl.DataFrame]
EdgeSource = Union[TableSource, Sequence[Any]]


def load_edge_table(source: TableSource, weight_col: Optional[str] = None) -> pl.DataFrame:
    """
    Load an edge table from a CSV file or return a DataFrame as-is.

    CSV columns are read as strings so that identifiers such as ``"007"``
    survive intact; only ``weight_col`` is converted to a float.

    Parameters
    ----------
    source : str, Path or pl.DataFrame
        Path to a UTF-8 CSV file with a header row, or a DataFrame
    weight_col : str, optional
        Column to parse as numeric edge weights

    Returns
    -------
    pl.DataFrame
        Loaded edge table

    Raises
    ------
    DataFormatError
        If the file is missing or cannot be parsed
    DataError
        If the weight column holds non-numeric values
    """
    df = _read_table(source, "edge")
    if weight_col is not None and weight_col in df.columns and df[weight_col].dtype == pl.Utf8:
        try:
            df = df.with_columns(pl.col(weight_col).cast(pl.Float64, strict=True))
        except pl.exceptions.PolarsError as e:
            raise DataError(
                f"Weight column '{weight_col}' contains non-numeric values",
                field=weight_col,
                cause=e
            )
    return df


def load_node_table(source: TableSource) -> pl.DataFrame:
    """
    Load a node table from a CSV file or return a DataFrame as-is.

    Raises
    ------
    DataFormatError
        If the file is missing or cannot be parsed
    """
    return _read_table(source, "node")


def _read_table(source: TableSource, kind: str) -> pl.DataFrame:
    if isinstance(source, pl.DataFrame):
        return source
    if not isinstance(source, (str, Path)):
        raise DataFormatError(
            f"Invalid {kind} table type: {type(source)}. Expected str, Path or pl.DataFrame",
            format_type="DataFrame"
        )

    file_path = Path(source)
    if not file_path.exists():
        raise DataFormatError(
            f"{kind.capitalize()} table file not found: {source}",
            format_type="CSV",
            file_path=str(source)
        )

    logger.debug("Loading %s table from file: %s", kind, source)
    try:
        return pl.read_csv(file_path, infer_schema_length=0)
    except pl.exceptions.PolarsError as e:
        raise DataFormatError(
            f"Failed to parse CSV file: {e}",
            format_type="CSV",
            file_path=str(source),
            cause=e
        )
    except (OSError, UnicodeDecodeError) as e:
        raise DataFormatError(
            f"Error reading file: {e}",
            format_type="CSV",
            file_path=str(source),
            cause=e
        )


def build_graph(
    edges: EdgeSource,
    nodes: Optional[TableSource] = None,
    directed: bool = False,
    source_col: Optional[str] = None,
    target_col: Optional[str] = None,
    node_col: Optional[str] = None,
    weight_col: Optional[str] = None,
    collapse: bool = False,
    allow_self_loops: bool = True
) -> Graph:
    """
    Build a graph from an edge table and an optional node table.

    Parameters
    ----------
    edges : str, Path, pl.DataFrame or sequence of records
        Edge table as a CSV path or DataFrame, or records of the form
        ``(source, target)``, ``(source, target, attrs)`` or dicts with
        ``source`` and ``target`` keys
    nodes : str, Path or pl.DataFrame, optional
        Node table. When given, its order is the graph's node order and
        every edge endpoint must appear in it. Otherwise the nodes are the
        sorted unique endpoints.
    directed : bool, default False
        Whether to build a directed graph
    source_col, target_col : str, optional
        Endpoint columns; default to the first two edge table columns
    node_col : str, optional
        Node id column; defaults to the first node table column
    weight_col : str, optional
        Numeric edge weight column
    collapse : bool, default False
        Merge parallel edges into one edge whose ``weight`` attribute is the
        number of merged edges, or the sum of ``weight_col`` when given
    allow_self_loops : bool, default True
        Keep edges whose endpoints coincide

    Returns
    -------
    Graph
        The constructed graph

    Raises
    ------
    DataFormatError
        If a CSV file is missing or unreadable
    DataError
        On missing columns, null endpoints, invalid weights, duplicate node
        names, or an edge naming a node absent from the node table

    Examples
    --------
    Directed borrowing network from a CSV edge list:

    >>> g = build_graph("borrowing.csv", directed=True)

    Records with a node table carrying regions:

    >>> regions = pl.DataFrame({"state": ["NY", "CA"], "region": ["NE", "W"]})
    >>> g = build_graph([("CA", "NY")], nodes=regions, directed=True)
    >>> g.attributes_of("CA")
    {'region': 'W'}
    """
    log_function_entry("build_graph", directed=directed, collapse=collapse,
                       allow_self_loops=allow_self_loops, weight_col=weight_col)

    with LoggingTimer("build_graph"):
        if isinstance(edges, (str, Path, pl.DataFrame)):
            edge_records = _edges_from_table(edges, source_col, target_col, weight_col)
        else:
            edge_records = [_normalize_record(record) for record in edges]

        if not allow_self_loops:
            initial_count = len(edge_records)
            edge_records = [edge for edge in edge_records if not edge.is_loop]
            removed_count = initial_count - len(edge_records)
            if removed_count > 0:
                logger.info("Removed %d self-loop edges", removed_count)

        if collapse:
            edge_records = _collapse_edges(edge_records, directed, weight_col)

        if nodes is not None:
            node_names, node_attributes = _nodes_from_table(nodes, node_col)
            _check_declared(edge_records, node_names)
        else:
            node_names = sorted({name for e in edge_records for name in (e.source, e.target)})
            node_attributes = {}

        graph = Graph(tuple(node_names), tuple(edge_records), directed, node_attributes)

    logger.info("Built %s graph with %d nodes and %d edges",
                "directed" if directed else "undirected",
                graph.number_of_nodes(), graph.number_of_edges())
    return graph


def _edges_from_table(
    source: TableSource,
    source_col: Optional[str],
    target_col: Optional[str],
    weight_col: Optional[str]
) -> List[Edge]:
    df = load_edge_table(source, weight_col=weight_col)
    source_col, target_col = resolve_edge_columns(df, source_col, target_col)
    logger.debug("Validating edge table with %d rows", df.height)
    validate_edge_table(df, source_col, target_col, weight_col)

    df = df.with_columns(
        pl.col(source_col).cast(pl.Utf8),
        pl.col(target_col).cast(pl.Utf8)
    )
    if weight_col is not None:
        df = df.with_columns(pl.col(weight_col).cast(pl.Float64))

    records = []
    for row in df.iter_rows(named=True):
        attributes = {k: v for k, v in row.items() if k not in (source_col, target_col)}
        records.append(Edge(row[source_col], row[target_col], attributes))
    return records


def _normalize_record(record: Any) -> Edge:
    edge = _as_edge(record)
    if edge.source is None or edge.target is None:
        raise DataError("Edge record has a null endpoint", edge=(edge.source, edge.target))
    return Edge(str(edge.source), str(edge.target), edge.attributes)


def _nodes_from_table(
    source: TableSource,
    node_col: Optional[str]
) -> Tuple[List[str], Dict[str, Dict[str, Any]]]:
    df = load_node_table(source)
    if node_col is None:
        if not df.columns:
            raise DataError("Node table has no columns", field="columns")
        node_col = df.columns[0]
    validate_node_table(df, node_col)

    df = df.with_columns(pl.col(node_col).cast(pl.Utf8))
    names = df[node_col].to_list()
    attributes = {
        row[node_col]: {k: v for k, v in row.items() if k != node_col}
        for row in df.iter_rows(named=True)
    }
    return names, attributes


def _check_declared(edges: Iterable[Edge], node_names: Sequence[str]) -> None:
    declared = set(node_names)
    for position, edge in enumerate(edges):
        for endpoint in (edge.source, edge.target):
            if endpoint not in declared:
                raise DataError(
                    f"Edge ({edge.source}, {edge.target}) references node "
                    f"'{endpoint}' missing from the node table",
                    node=endpoint,
                    edge=(edge.source, edge.target),
                    row=position
                )


def _collapse_edges(edges: List[Edge], directed: bool, weight_col: Optional[str]) -> List[Edge]:
    """Merge parallel edges, keeping the first record's orientation and attributes."""
    merged: "OrderedDict[Tuple[str, str], Tuple[Edge, float]]" = OrderedDict()
    for edge in edges:
        key = edge.key(directed)
        amount = edge.weight(weight_col) if weight_col else 1.0
        if key in merged:
            first, total = merged[key]
            merged[key] = (first, total + amount)
        else:
            merged[key] = (edge, amount)

    collapsed = [
        Edge(first.source, first.target, {**first.attributes, "weight": total})
        for first, total in merged.values()
    ]
    if len(collapsed) < len(edges):
        logger.info("Collapsed %d parallel edges into %d weighted edges",
                    len(edges), len(collapsed))
    return collapsed


def get_graph_info(graph: Graph) -> Dict[str, Any]:
    """
    Get basic information about a graph.

    Examples
    --------
    >>> info = get_graph_info(graph)
    >>> print(f"Nodes: {info['num_nodes']}, Edges: {info['num_edges']}")
    """
    n = graph.number_of_nodes()
    m = graph.number_of_edges()
    num_self_loops = sum(1 for e in graph.edges if e.is_loop)
    distinct_pairs = len({e.key(graph.directed) for e in graph.edges})
    touched = {name for e in graph.edges for name in (e.source, e.target)}

    if n > 1:
        possible = n * (n - 1) if graph.directed else n * (n - 1) / 2
        density = m / possible
    else:
        density = 0.0

    num_components = len(set(connected_components(graph).values()))

    return {
        "num_nodes": n,
        "num_edges": m,
        "directed": graph.directed,
        "has_self_loops": num_self_loops > 0,
        "num_self_loops": num_self_loops,
        "num_multi_edges": m - distinct_pairs,
        "density": density,
        "isolated_nodes": [name for name in graph.nodes if name not in touched],
        "num_components": num_components,
        "is_connected": num_components == 1
    }
