"""
End-to-end workflows over the CSV fixtures.
"""

import importlib.util
from pathlib import Path

import polars as pl
import pytest

from histnet.network import (
    UNREACHABLE,
    build_bipartite_graph,
    build_graph,
    degree_centrality,
    detect_communities,
    distance_table,
    export_graph,
    export_node_table,
    extract_centrality,
    get_graph_info,
    graph_to_tables,
    project_bipartite,
    projection_summary
)

FIXTURES = Path(__file__).parent / "fixtures"
EXAMPLE = Path(__file__).parent.parent / "examples" / "example_network_analysis.py"


@pytest.fixture
def borrowing():
    return build_graph(
        FIXTURES / "state_borrowing.csv",
        nodes=FIXTURES / "state_regions.csv",
        directed=True
    )


class TestStateBorrowingWorkflow:
    """Law borrowing between states."""

    def test_graph_is_built_from_tables(self, borrowing):
        info = get_graph_info(borrowing)

        assert borrowing.nodes == ("NY", "CA", "OR", "AK", "WA", "NV", "ID", "TX")
        assert info["num_edges"] == 7
        assert info["isolated_nodes"] == ["TX"]
        assert borrowing.edges[0].attributes == {"year": "1851"}

    def test_in_degree(self, borrowing):
        in_degree = degree_centrality(borrowing, mode="in")

        assert in_degree["NY"] == 2
        assert in_degree["OR"] == 3
        assert in_degree["AK"] == 0
        assert sum(in_degree.values()) == borrowing.number_of_edges()

    def test_distance_from_north_east(self, borrowing):
        table = distance_table(
            borrowing,
            lambda name, attrs: attrs["region"] == "NE",
            mode="in"
        )

        distances = dict(zip(table["node_id"].to_list(), table["distance"].to_list()))
        assert distances == {
            "NY": 0, "CA": 1, "NV": 1, "OR": 2,
            "AK": 3, "WA": 3, "ID": 3, "TX": UNREACHABLE,
        }

    def test_centrality_table_and_export(self, borrowing, tmp_path):
        centrality = extract_centrality(borrowing, ["in_degree", "betweenness", "closeness", "hub"])
        path = export_node_table(centrality, tmp_path / "centrality.csv")

        written = pl.read_csv(path)
        assert written.height == borrowing.number_of_nodes()
        assert written.filter(pl.col("node_id") == "OR")["in_degree_centrality"].item() == 3

    def test_components_isolate_texas(self, borrowing):
        communities = detect_communities(borrowing, algorithm="components")

        assert communities.filter(pl.col("node_id") == "TX")["community"].item() == 1
        assert communities["community"].n_unique() == 2

    def test_tables_for_plotting(self, borrowing, tmp_path):
        communities = detect_communities(borrowing, algorithm="walktrap")
        tables = graph_to_tables(borrowing, communities)

        assert tables.nodes.columns == ["node_id", "region", "community"]
        assert tables.edges.height == 7

        written = export_graph(borrowing, tmp_path / "borrowing.graphml", format="graphml",
                               measures=communities)
        assert Path(written).exists()

    def test_example_draws_network(self, borrowing, tmp_path):
        matplotlib = pytest.importorskip("matplotlib")
        matplotlib.use("Agg")
        spec = importlib.util.spec_from_file_location("example_network_analysis", EXAMPLE)
        example = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(example)

        measures = extract_centrality(borrowing, ["in_degree"]).join(
            detect_communities(borrowing), on="node_id")
        output_path = tmp_path / "borrowing.png"
        example.plot_network(graph_to_tables(borrowing, measures), output_path)

        assert output_path.stat().st_size > 0


class TestAppointmentsWorkflow:
    """People appointed to organizations."""

    def test_projection(self):
        bgraph = build_bipartite_graph(FIXTURES / "appointments.csv")

        people, organizations = project_bipartite(bgraph)

        assert [(e.source, e.target, e.attributes["weight"]) for e in organizations.edges] == [
            ("O1", "O2", 1)
        ]
        assert people.number_of_edges() == 2

    def test_summary_tells_sides_apart(self):
        summary = projection_summary(build_bipartite_graph(FIXTURES / "appointments.csv"))

        assert summary[False] == {"num_nodes": 3, "num_edges": 2}
        assert summary[True] == {"num_nodes": 2, "num_edges": 1}
