"""
Tests for community detection.
"""

import polars as pl
import pytest

from histnet.common.exceptions import ConfigurationError, DataError
from histnet.network.communities import (
    AVAILABLE_ALGORITHMS,
    compare_partitions,
    connected_components,
    detect_communities,
    edge_betweenness_communities,
    get_community_summary,
    modularity,
    walktrap_communities
)
from histnet.network.graph import Graph

TRIANGLE_EDGES = (("A", "B"), ("B", "C"), ("A", "C"), ("D", "E"), ("E", "F"), ("D", "F"))
SPLIT = {"A": 0, "B": 0, "C": 0, "D": 1, "E": 1, "F": 1}


@pytest.fixture
def bridged_triangles():
    """Two triangles joined by the edge C-D."""
    return Graph(tuple("ABCDEF"), TRIANGLE_EDGES + (("C", "D"),))


@pytest.fixture
def separate_triangles():
    return Graph(tuple("ABCDEF"), TRIANGLE_EDGES)


class TestConnectedComponents:
    """Test weak components."""

    def test_components(self, separate_triangles):
        assert connected_components(separate_triangles) == SPLIT

    def test_ids_follow_node_order(self):
        g = Graph(("C", "A", "B"), (("A", "B"),))

        assert connected_components(g) == {"C": 0, "A": 1, "B": 1}

    def test_directed_graphs_use_weak_connectivity(self):
        g = Graph(("A", "B", "C"), (("A", "B"), ("C", "B")), directed=True)

        assert connected_components(g) == {"A": 0, "B": 0, "C": 0}

    def test_empty_graph(self):
        assert connected_components(Graph(())) == {}


class TestModularity:
    """Test Newman modularity."""

    def test_two_triangles(self, bridged_triangles):
        assert modularity(bridged_triangles, SPLIT) == pytest.approx(5 / 14)

    def test_single_community_is_zero(self, bridged_triangles):
        assert modularity(bridged_triangles, {n: 0 for n in "ABCDEF"}) == pytest.approx(0.0)

    def test_directed_variant(self):
        g = Graph(("A", "B", "C", "D"),
                  (("A", "B"), ("B", "A"), ("C", "D"), ("D", "C")), directed=True)

        assert modularity(g, {"A": 0, "B": 0, "C": 1, "D": 1}) == pytest.approx(0.5)

    def test_no_edges(self):
        assert modularity(Graph(("A", "B")), {"A": 0, "B": 1}) == 0.0

    def test_weighted(self):
        g = Graph(("A", "B", "C"),
                  (("A", "B", {"weight": 3.0}), ("B", "C", {"weight": 1.0})))

        # L = 3 of m = 4 inside {A, B}; strengths {A, B} = 7, {C} = 1
        expected = (3 / 4 - (7 / 8) ** 2) + (0 - (1 / 8) ** 2)
        assert modularity(g, {"A": 0, "B": 0, "C": 1}, weight="weight") == pytest.approx(expected)

    def test_parallel_edges_count_twice(self):
        g = Graph(("A", "B", "C", "D"), (("A", "B"), ("A", "B"), ("C", "D")))

        # m = 3; {A, B} holds 2 edges with degree 4, {C, D} 1 edge with degree 2
        expected = (2 / 3 - (4 / 6) ** 2) + (1 / 3 - (2 / 6) ** 2)
        assert modularity(g, {"A": 0, "B": 0, "C": 1, "D": 1}) == pytest.approx(expected)

    def test_self_loop(self):
        g = Graph(("A", "B"), (("A", "B"), ("A", "A")))

        # the loop adds 2 to the degree of A and 1 to its internal weight
        expected = (1 / 2 - (3 / 4) ** 2) + (0 - (1 / 4) ** 2)
        assert modularity(g, {"A": 0, "B": 1}) == pytest.approx(expected)

    def test_labels_need_not_be_integers(self, bridged_triangles):
        labels = {n: ("west" if c == 0 else "east") for n, c in SPLIT.items()}

        assert modularity(bridged_triangles, labels) == pytest.approx(5 / 14)

    def test_missing_node(self, bridged_triangles):
        with pytest.raises(DataError, match="missing"):
            modularity(bridged_triangles, {"A": 0})


class TestEdgeBetweennessCommunities:
    """Test Girvan-Newman clustering."""

    def test_bridge_is_cut(self, bridged_triangles):
        assert edge_betweenness_communities(bridged_triangles) == SPLIT

    def test_first_maximum_is_kept(self):
        # Splitting a 4-cycle never beats the whole cycle (both score 0)
        cycle = Graph(("A", "B", "C", "D"), (("A", "B"), ("B", "C"), ("C", "D"), ("D", "A")))

        assert edge_betweenness_communities(cycle) == {"A": 0, "B": 0, "C": 0, "D": 0}

    def test_directed_pairs(self):
        g = Graph(("A", "B", "C", "D"),
                  (("A", "B"), ("B", "A"), ("B", "C"), ("C", "D"), ("D", "C")),
                  directed=True)

        assert edge_betweenness_communities(g) == {"A": 0, "B": 0, "C": 1, "D": 1}

    def test_no_edges(self):
        g = Graph(("A", "B", "C"))

        assert edge_betweenness_communities(g) == {"A": 0, "B": 1, "C": 2}


class TestWalktrapCommunities:
    """Test walktrap clustering."""

    def test_bridged_triangles(self, bridged_triangles):
        assert walktrap_communities(bridged_triangles) == SPLIT

    def test_separate_triangles(self, separate_triangles):
        assert walktrap_communities(separate_triangles) == SPLIT

    def test_isolated_node_stays_alone(self):
        g = Graph(("A", "B", "C"), (("A", "B"),))

        assert walktrap_communities(g) == {"A": 0, "B": 0, "C": 1}

    def test_direction_is_ignored(self, bridged_triangles):
        directed = Graph(bridged_triangles.nodes, bridged_triangles.edges, directed=True)

        assert walktrap_communities(directed) == walktrap_communities(bridged_triangles)

    def test_no_edges(self):
        g = Graph(("A", "B", "C"))

        assert walktrap_communities(g) == {"A": 0, "B": 1, "C": 2}

    def test_symmetric_cycle_ties_merge_lowest_pair(self):
        # Every adjacent pair of a 6-cycle ties; the lowest-index pair merges
        # first, so the best cut pairs up nodes from the start of the node order
        edges = (("A", "B"), ("B", "C"), ("C", "D"), ("D", "E"), ("E", "F"), ("F", "A"))

        g = Graph(tuple("ABCDEF"), edges)
        assert walktrap_communities(g) == {"A": 0, "B": 0, "C": 1, "D": 1, "E": 2, "F": 2}

        rotated = Graph(tuple("BCDEFA"), edges)
        assert walktrap_communities(rotated) == {"B": 0, "C": 0, "D": 1, "E": 1, "F": 2, "A": 2}

    def test_invalid_steps(self, bridged_triangles):
        with pytest.raises(ConfigurationError):
            walktrap_communities(bridged_triangles, steps=0)


class TestDetectCommunities:
    """Test the community table entry point."""

    def test_table(self, bridged_triangles):
        table = detect_communities(bridged_triangles, algorithm="walktrap")

        assert table.columns == ["node_id", "community"]
        assert table["node_id"].to_list() == list("ABCDEF")
        assert table["community"].to_list() == [0, 0, 0, 1, 1, 1]

    @pytest.mark.parametrize("algorithm", AVAILABLE_ALGORITHMS)
    def test_zero_edges_give_singletons(self, algorithm):
        g = Graph(("X", "Y", "Z"))

        table = detect_communities(g, algorithm=algorithm)

        assert table["community"].to_list() == [0, 1, 2]

    def test_kwargs_are_forwarded(self, bridged_triangles):
        table = detect_communities(bridged_triangles, algorithm="walktrap", steps=3)

        assert table["community"].n_unique() == 2

    def test_unknown_algorithm(self, bridged_triangles):
        with pytest.raises(ConfigurationError, match="Valid options"):
            detect_communities(bridged_triangles, algorithm="louvain")


class TestCommunityHelpers:
    """Test summaries and partition comparison."""

    def test_summary_from_mapping(self, bridged_triangles):
        summary = get_community_summary(SPLIT, graph=bridged_triangles)

        assert summary["num_communities"] == 2
        assert summary["community_sizes"] == [3, 3]
        assert summary["total_nodes"] == 6
        assert summary["size_distribution"]["mean"] == 3.0
        assert summary["modularity"] == pytest.approx(5 / 14)

    def test_summary_from_table(self):
        table = pl.DataFrame({"node_id": ["A", "B", "C"], "community": [0, 0, 1]})

        summary = get_community_summary(table)

        assert summary["community_sizes"] == [2, 1]
        assert summary["modularity"] is None

    def test_summary_table_needs_columns(self):
        with pytest.raises(DataError):
            get_community_summary(pl.DataFrame({"node": ["A"]}))

    def test_compare_identical_partitions(self):
        relabelled = {n: 1 - c for n, c in SPLIT.items()}

        assert compare_partitions(SPLIT, relabelled) == pytest.approx(1.0)

    def test_compare_accepts_tables(self, bridged_triangles):
        table = detect_communities(bridged_triangles, algorithm="edge_betweenness")

        assert compare_partitions(table, SPLIT) == pytest.approx(1.0)

    def test_compare_different_nodes(self):
        with pytest.raises(DataError, match="different node sets"):
            compare_partitions({"A": 0, "B": 0}, {"A": 0, "C": 0})
