"""
Tests for network export module.

This module tests table conversion and the file formats written by
export_graph.
"""

import datetime
import os
import shutil
import tempfile
import xml.etree.ElementTree as ET

import polars as pl
import pytest

from histnet.common.exceptions import ConfigurationError, DataError
from histnet.network.analysis import degree_centrality, extract_centrality
from histnet.network.export import (
    GraphTables,
    export_graph,
    export_node_table,
    graph_to_tables
)
from histnet.network.graph import Graph


class TestGraphToTables:
    """Test the renderer table contract."""

    def setup_method(self):
        self.graph = Graph(
            ("NY", "CA", "OR"),
            (("CA", "NY", {"year": 1851}), ("OR", "CA", {"year": 1853})),
            directed=True,
            node_attributes={"NY": {"region": "NE"}, "CA": {"region": "W"}, "OR": {"region": "W"}}
        )

    def test_tables(self):
        tables = graph_to_tables(self.graph)

        assert isinstance(tables, GraphTables)
        assert tables.directed is True
        assert tables.nodes.columns == ["node_id", "region"]
        assert tables.nodes["node_id"].to_list() == ["NY", "CA", "OR"]
        assert tables.edges.columns == ["source", "target", "year"]
        assert tables.edges["year"].to_list() == [1851, 1853]

    def test_measure_mapping(self):
        tables = graph_to_tables(self.graph, {"in_degree": degree_centrality(self.graph, mode="in")})

        assert tables.nodes.columns == ["node_id", "region", "in_degree"]
        assert tables.nodes["in_degree"].to_list() == [1, 1, 0]

    def test_measure_table_keeps_node_order(self):
        centrality = extract_centrality(self.graph, ["betweenness"]).reverse()

        tables = graph_to_tables(self.graph, centrality)

        assert tables.nodes["node_id"].to_list() == ["NY", "CA", "OR"]
        assert tables.nodes["betweenness_centrality"].to_list() == [0.0, 1.0, 0.0]

    def test_measure_table_without_node_id(self):
        with pytest.raises(DataError, match="node_id"):
            graph_to_tables(self.graph, pl.DataFrame({"name": ["NY"]}))

    def test_empty_graph(self):
        tables = graph_to_tables(Graph(()))

        assert tables.nodes.columns == ["node_id"]
        assert tables.edges.columns == ["source", "target"]
        assert tables.edges.height == 0


class TestExportGraph:
    """Test graph export functionality."""

    def setup_method(self):
        """Set up test fixtures."""
        self.graph = Graph(
            ("Alice", "Bob", "Charlie"),
            (("Alice", "Bob", {"weight": 2.5}), ("Bob", "Charlie", {"weight": 1.0})),
            node_attributes={"Alice": {"category": "A"}, "Bob": {"category": "B"},
                             "Charlie": {"category": "A"}}
        )
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        """Clean up test files."""
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def test_export_gexf(self):
        output_path = os.path.join(self.temp_dir, "test.gexf")

        written = export_graph(self.graph, output_path, format="gexf",
                               measures={"degree": degree_centrality(self.graph)})

        assert written == output_path
        root = ET.parse(output_path).getroot()
        ns = {"g": "http://www.gexf.net/1.2draft"}
        assert root.find("g:meta", ns).get("lastmodifieddate") == datetime.date.today().isoformat()
        graph_elem = root.find("g:graph", ns)
        assert graph_elem.get("defaultedgetype") == "undirected"
        nodes = graph_elem.findall("g:nodes/g:node", ns)
        assert [n.get("id") for n in nodes] == ["Alice", "Bob", "Charlie"]
        titles = [a.get("title") for a in graph_elem.findall("g:attributes/g:attribute", ns)]
        assert titles == ["category", "degree"]
        edges = graph_elem.findall("g:edges/g:edge", ns)
        assert [e.get("weight") for e in edges] == ["2.5", "1.0"]

    def test_export_graphml(self):
        output_path = os.path.join(self.temp_dir, "test")

        written = export_graph(self.graph, output_path, format="graphml")

        assert written.endswith("test.graphml")
        root = ET.parse(written).getroot()
        ns = {"g": "http://graphml.graphdrawing.org/xmlns"}
        graph_elem = root.find("g:graph", ns)
        assert graph_elem.get("edgedefault") == "undirected"
        assert len(graph_elem.findall("g:node", ns)) == 3
        assert len(graph_elem.findall("g:edge", ns)) == 2
        assert root.find("g:key[@id='weight']", ns) is not None

    def test_export_edgelist(self):
        output_path = os.path.join(self.temp_dir, "edges.csv")

        export_graph(self.graph, output_path, format="edgelist")

        df = pl.read_csv(output_path)
        assert df.columns == ["source", "target", "weight", "source_category", "target_category"]
        assert df["target_category"].to_list() == ["B", "A"]

    def test_export_parquet(self):
        output_path = os.path.join(self.temp_dir, "network.parquet")

        export_graph(self.graph, output_path, format="parquet")

        nodes = pl.read_parquet(os.path.join(self.temp_dir, "network_nodes.parquet"))
        edges = pl.read_parquet(os.path.join(self.temp_dir, "network_edges.parquet"))
        assert nodes.height == 3
        assert edges["weight"].to_list() == [2.5, 1.0]

    def test_directed_gexf(self):
        g = Graph(("X", "Y"), (("X", "Y"),), directed=True)
        output_path = os.path.join(self.temp_dir, "directed.gexf")

        export_graph(g, output_path)

        root = ET.parse(output_path).getroot()
        graph_elem = root.find("{http://www.gexf.net/1.2draft}graph")
        assert graph_elem.get("defaultedgetype") == "directed"

    def test_empty_graph(self):
        output_path = os.path.join(self.temp_dir, "empty.csv")

        export_graph(Graph(()), output_path, format="edgelist")

        assert os.path.exists(output_path)

    def test_existing_file_warns(self):
        output_path = os.path.join(self.temp_dir, "twice.gexf")
        export_graph(self.graph, output_path)

        with pytest.warns(UserWarning, match="already exists"):
            export_graph(self.graph, output_path)

        export_graph(self.graph, output_path, overwrite=True)

    def test_unsupported_format(self):
        with pytest.raises(ConfigurationError, match="Valid options"):
            export_graph(self.graph, os.path.join(self.temp_dir, "x.dot"), format="dot")


class TestExportNodeTable:
    """Test CSV node table export."""

    def test_floats_are_rounded(self, tmp_path):
        table = pl.DataFrame({"node_id": ["A", "B"], "score": [0.123456, 1 / 3], "degree": [1, 2]})

        path = export_node_table(table, tmp_path / "out" / "scores.csv")

        written = pl.read_csv(path)
        assert written["score"].to_list() == [0.1235, 0.3333]
        assert written["degree"].to_list() == [1, 2]
