"""
Network export module for the histnet library.

Graphs leave histnet as a pair of polars tables (the contract handed to
plotting code) or as a file in GEXF, GraphML, CSV edgelist or Parquet
format. Node measures (centrality, communities, distances) can be
joined onto the node table on the way out.
"""

import datetime
import os
import warnings
from pathlib import Path
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Union
import xml.etree.ElementTree as ET
from xml.dom import minidom

import polars as pl

from histnet.common.exceptions import (
    ComputationError,
    DataError,
    NetworkAnalysisError,
    validate_parameter
)
from histnet.common.logging_config import get_logger, log_function_entry, LoggingTimer
from histnet.network.graph import Graph

logger = get_logger(__name__)

# Supported export formats
SUPPORTED_FORMATS = ["gexf", "graphml", "edgelist", "parquet"]

EXPORT_PRECISION = 4

Measures = Union[pl.DataFrame, Mapping[str, Mapping[str, Any]]]


class GraphTables(NamedTuple):
    """Node and edge tables of a graph, ready for a renderer."""

    nodes: pl.DataFrame
    edges: pl.DataFrame
    directed: bool


def graph_to_tables(graph: Graph, measures: Optional[Measures] = None) -> GraphTables:
    """
    Convert a graph into node and edge tables.

    Parameters
    ----------
    graph : Graph
        Graph to convert
    measures : pl.DataFrame or Mapping[str, Mapping[str, Any]], optional
        Per-node values to join onto the node table: a DataFrame with a
        ``node_id`` column (such as the output of extract_centrality or
        detect_communities), or a mapping ``column -> {node: value}``

    Returns
    -------
    GraphTables
        ``nodes`` has ``node_id``, the node attributes and the measures, in
        graph node order; ``edges`` has ``source``, ``target`` and the edge
        attributes, in edge order

    Raises
    ------
    DataError
        If a measure table has no ``node_id`` column

    Examples
    --------
    >>> tables = graph_to_tables(g, {"in_degree": degree_centrality(g, mode="in")})
    >>> tables.nodes.columns
    ['node_id', 'in_degree']
    """
    node_rows = [
        {"node_id": name, **graph.node_attributes[name]}
        for name in graph.nodes
    ]
    nodes = _frame(node_rows, ["node_id"])

    if measures is not None:
        measure_table = _measure_table(graph, measures)
        overlapping = [c for c in measure_table.columns if c != "node_id" and c in nodes.columns]
        if overlapping:
            nodes = nodes.drop(overlapping)
        nodes = nodes.join(measure_table, on="node_id", how="left")
        # restore graph node order after the join
        order = pl.DataFrame({"node_id": list(graph.nodes), "_order": list(range(len(graph.nodes)))},
                             schema={"node_id": pl.Utf8, "_order": pl.Int64})
        nodes = nodes.join(order, on="node_id", how="left").sort("_order").drop("_order")

    edge_rows = [
        {"source": e.source, "target": e.target, **e.attributes}
        for e in graph.edges
    ]
    edges = _frame(edge_rows, ["source", "target"])

    return GraphTables(nodes, edges, graph.directed)


def _frame(rows: List[Dict[str, Any]], key_columns: List[str]) -> pl.DataFrame:
    if not rows:
        return pl.DataFrame(schema={col: pl.Utf8 for col in key_columns})
    return pl.from_dicts(rows, infer_schema_length=None)


def _measure_table(graph: Graph, measures: Measures) -> pl.DataFrame:
    if isinstance(measures, pl.DataFrame):
        if "node_id" not in measures.columns:
            raise DataError(
                "Measure table must contain a 'node_id' column",
                field="columns",
                details={"available_columns": measures.columns}
            )
        missing = set(graph.nodes) - set(measures["node_id"].to_list())
        if missing:
            logger.warning("Measures missing for %d nodes: %s",
                           len(missing), sorted(missing)[:5])
        return measures.with_columns(pl.col("node_id").cast(pl.Utf8))

    table = pl.DataFrame({"node_id": list(graph.nodes)}, schema={"node_id": pl.Utf8})
    for column, values in measures.items():
        table = table.with_columns(pl.Series(column, [values.get(name) for name in graph.nodes]))
    return table


def export_graph(
    graph: Graph,
    output_path: Union[str, Path],
    format: str = "gexf",
    measures: Optional[Measures] = None,
    overwrite: bool = False
) -> str:
    """
    Export a graph, optionally with node measures, to a file.

    Parameters
    ----------
    graph : Graph
        Graph to export
    output_path : str or Path
        Output file path; an extension matching the format is added when
        the path has none
    format : str, default "gexf"
        Export format, one of:
        - "gexf": Gephi Exchange Format
        - "graphml": GraphML
        - "edgelist": CSV edge list, with node attributes prefixed
          ``source_`` / ``target_``
        - "parquet": ``<name>_nodes.parquet`` and ``<name>_edges.parquet``
    measures : pl.DataFrame or Mapping, optional
        Node measures to include, as accepted by :func:`graph_to_tables`
    overwrite : bool, default False
        Replace an existing file without warning

    Returns
    -------
    str
        The path written

    Raises
    ------
    ConfigurationError
        If the format is unsupported
    ComputationError
        If writing fails

    Examples
    --------
    >>> centrality = extract_centrality(g, ["degree", "betweenness"])
    >>> export_graph(g, "borrowing.gexf", measures=centrality)
    'borrowing.gexf'
    """
    log_function_entry(
        "export_graph",
        graph_nodes=graph.number_of_nodes(),
        graph_edges=graph.number_of_edges(),
        format=format,
        output_path=str(output_path),
        has_measures=measures is not None
    )
    validate_parameter(format, SUPPORTED_FORMATS, "format", "export_graph")
    output_path = _prepare_output_path(output_path, format, overwrite)

    with LoggingTimer("export_graph", {"format": format, "nodes": graph.number_of_nodes()}):
        try:
            tables = graph_to_tables(graph, measures)
            if format == "gexf":
                _export_gexf(tables, output_path)
            elif format == "graphml":
                _export_graphml(tables, output_path)
            elif format == "edgelist":
                _export_edgelist(tables, output_path)
            elif format == "parquet":
                _export_parquet(tables, output_path)
        except NetworkAnalysisError:
            raise
        except Exception as e:
            raise ComputationError(
                f"Graph export failed: {e}",
                operation="export_graph",
                error_type="export_failure",
                cause=e,
                context={"format": format, "output_path": output_path}
            ) from e

    logger.info("Graph exported successfully to %s", output_path)
    return output_path


def export_node_table(
    table: pl.DataFrame,
    output_path: Union[str, Path],
    precision: int = EXPORT_PRECISION
) -> str:
    """
    Write a node measure table to CSV with floats rounded to ``precision``.

    Examples
    --------
    >>> export_node_table(extract_centrality(g), "centrality.csv")
    'centrality.csv'
    """
    float_columns = [col for col, dtype in zip(table.columns, table.dtypes) if dtype.is_float()]
    rounded = table.with_columns([pl.col(col).round(precision) for col in float_columns])

    path = Path(output_path)
    os.makedirs(path.parent, exist_ok=True)
    rounded.write_csv(path)
    logger.info("Wrote %d rows to %s", rounded.height, path)
    return str(path)


def _prepare_output_path(output_path: Union[str, Path], format: str, overwrite: bool) -> str:
    """Prepare and validate output path."""
    path = Path(output_path)
    if not path.suffix:
        path = path.with_suffix(".csv" if format == "edgelist" else f".{format}")

    if path.exists() and not overwrite:
        warnings.warn(
            f"File {path} already exists. Use overwrite=True to replace it.",
            UserWarning
        )

    os.makedirs(path.parent, exist_ok=True)
    return str(path)


def _has_weights(edges: pl.DataFrame) -> bool:
    return "weight" in edges.columns and edges["weight"].dtype.is_numeric()


def _write_xml(root: ET.Element, output_path: str) -> None:
    xml_str = ET.tostring(root, encoding="unicode")
    pretty_xml = minidom.parseString(xml_str).toprettyxml(indent="  ")
    with open(output_path, "w", encoding="utf-8") as f:
        f.write(pretty_xml)


def _export_gexf(tables: GraphTables, output_path: str) -> None:
    """Export graph to GEXF format."""
    gexf = ET.Element("gexf", xmlns="http://www.gexf.net/1.2draft", version="1.2")

    meta = ET.SubElement(gexf, "meta", lastmodifieddate=datetime.date.today().isoformat())
    ET.SubElement(meta, "creator").text = "histnet"

    graph_elem = ET.SubElement(
        gexf, "graph", mode="static",
        defaultedgetype="directed" if tables.directed else "undirected"
    )

    attributes = ET.SubElement(graph_elem, "attributes", **{"class": "node"})
    attr_map = {}
    for col, dtype in zip(tables.nodes.columns, tables.nodes.dtypes):
        if col == "node_id":
            continue
        attr_type = "double" if dtype.is_float() else "integer" if dtype.is_integer() else "string"
        attr_map[col] = str(len(attr_map))
        ET.SubElement(attributes, "attribute", id=attr_map[col], title=col, type=attr_type)

    nodes_elem = ET.SubElement(graph_elem, "nodes")
    for row in tables.nodes.iter_rows(named=True):
        node_id = str(row["node_id"])
        node_elem = ET.SubElement(nodes_elem, "node", id=node_id, label=node_id)
        if attr_map:
            attvalues = ET.SubElement(node_elem, "attvalues")
            for col, attr_id in attr_map.items():
                value = row.get(col)
                if value is not None:
                    ET.SubElement(attvalues, "attvalue", **{"for": attr_id, "value": str(value)})

    weighted = _has_weights(tables.edges)
    edges_elem = ET.SubElement(graph_elem, "edges")
    for i, row in enumerate(tables.edges.iter_rows(named=True)):
        edge_attrs = {"id": str(i), "source": row["source"], "target": row["target"]}
        if weighted and row["weight"] is not None:
            edge_attrs["weight"] = str(row["weight"])
        ET.SubElement(edges_elem, "edge", **edge_attrs)

    _write_xml(gexf, output_path)


def _export_graphml(tables: GraphTables, output_path: str) -> None:
    """Export graph to GraphML format."""
    graphml = ET.Element("graphml", xmlns="http://graphml.graphdrawing.org/xmlns")

    key_map = {}
    for col, dtype in zip(tables.nodes.columns, tables.nodes.dtypes):
        if col == "node_id":
            continue
        attr_type = "double" if dtype.is_float() else "long" if dtype.is_integer() else "string"
        key_map[col] = f"n{len(key_map)}"
        ET.SubElement(graphml, "key", id=key_map[col],
                      **{"for": "node", "attr.name": col, "attr.type": attr_type})

    weighted = _has_weights(tables.edges)
    if weighted:
        ET.SubElement(graphml, "key", id="weight",
                      **{"for": "edge", "attr.name": "weight", "attr.type": "double"})

    graph_elem = ET.SubElement(graphml, "graph", id="G",
                               edgedefault="directed" if tables.directed else "undirected")

    for row in tables.nodes.iter_rows(named=True):
        node_elem = ET.SubElement(graph_elem, "node", id=str(row["node_id"]))
        for col, key_id in key_map.items():
            value = row.get(col)
            if value is not None:
                ET.SubElement(node_elem, "data", key=key_id).text = str(value)

    for i, row in enumerate(tables.edges.iter_rows(named=True)):
        edge_elem = ET.SubElement(graph_elem, "edge", id=f"e{i}",
                                  source=row["source"], target=row["target"])
        if weighted and row["weight"] is not None:
            ET.SubElement(edge_elem, "data", key="weight").text = str(row["weight"])

    _write_xml(graphml, output_path)


def _export_edgelist(tables: GraphTables, output_path: str) -> None:
    """Export graph to CSV edgelist format."""
    edges = tables.edges
    if tables.nodes.width > 1:
        source_attrs = tables.nodes.rename(
            {col: ("source" if col == "node_id" else f"source_{col}") for col in tables.nodes.columns}
        )
        target_attrs = tables.nodes.rename(
            {col: ("target" if col == "node_id" else f"target_{col}") for col in tables.nodes.columns}
        )
        edges = (
            edges.with_row_index("_row")
            .join(source_attrs, on="source", how="left")
            .join(target_attrs, on="target", how="left")
            .sort("_row")
            .drop("_row")
        )
    edges.write_csv(output_path)


def _export_parquet(tables: GraphTables, output_path: str) -> None:
    """Export graph to Parquet format with separate node and edge files."""
    base_path = Path(output_path).with_suffix("")

    nodes_path = f"{base_path}_nodes.parquet"
    tables.nodes.write_parquet(nodes_path)

    edges_path = f"{base_path}_edges.parquet"
    tables.edges.write_parquet(edges_path)

    logger.info("Parquet export created: %s and %s", nodes_path, edges_path)
