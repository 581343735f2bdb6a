"""
Tests for bipartite graphs and projections.
"""

from itertools import combinations

import polars as pl
import pytest

from histnet.common.exceptions import ConfigurationError, DataError
from histnet.network.bipartite import (
    BipartiteGraph,
    build_bipartite_graph,
    coerce_side,
    get_bipartite_info,
    project_bipartite,
    projection_summary,
    side_labels
)
from histnet.network.graph import Graph

MEMBERSHIPS = [("P1", "O1"), ("P2", "O1"), ("P2", "O2"), ("P3", "O2")]


@pytest.fixture
def memberships():
    return build_bipartite_graph(MEMBERSHIPS)


def brute_force_projection(bgraph, side):
    """Shared neighbour counts by checking every same-side pair."""
    neighbours = {
        name: set(bgraph.graph.neighbors(name)) for name in bgraph.side_nodes(side)
    }
    expected = {}
    for a, b in combinations(sorted(neighbours), 2):
        shared = len(neighbours[a] & neighbours[b])
        if shared:
            expected[(a, b)] = shared
    return expected


class TestCoerceSide:
    """Test side label interpretation."""

    @pytest.mark.parametrize("value", [True, 1, "true", "TRUE", "t", "yes", "1"])
    def test_true_labels(self, value):
        assert coerce_side(value) is True

    @pytest.mark.parametrize("value", [False, 0, "false", "F", "no", "0"])
    def test_false_labels(self, value):
        assert coerce_side(value) is False

    @pytest.mark.parametrize("value", ["maybe", 2, None, 0.5])
    def test_invalid_labels(self, value):
        with pytest.raises(DataError):
            coerce_side(value, node="X")


class TestBipartiteGraph:
    """Test bipartite invariants."""

    def test_sides_from_edge_direction(self, memberships):
        assert memberships.side_nodes(False) == ["P1", "P2", "P3"]
        assert memberships.side_nodes(True) == ["O1", "O2"]

    def test_same_side_edge(self):
        g = Graph(("P1", "P2", "O1"), (("P1", "O1"), ("P1", "P2")))

        with pytest.raises(DataError, match="joins two nodes on side") as exc_info:
            BipartiteGraph(g, {"P1": False, "P2": False, "O1": True})
        assert exc_info.value.edge == ("P1", "P2")

    def test_missing_side(self):
        g = Graph(("P1", "O1"), (("P1", "O1"),))

        with pytest.raises(DataError, match="has no bipartite side"):
            BipartiteGraph(g, {"P1": False})

    def test_side_for_unknown_node(self):
        g = Graph(("P1", "O1"), (("P1", "O1"),))

        with pytest.raises(DataError, match="unknown nodes"):
            BipartiteGraph(g, {"P1": False, "O1": True, "O9": True})

    def test_sides_are_coerced(self):
        g = Graph(("P1", "O1"), (("P1", "O1"),))

        bgraph = BipartiteGraph(g, {"P1": "false", "O1": "1"})

        assert bgraph.sides == {"P1": False, "O1": True}
        assert repr(bgraph) == "BipartiteGraph(false=1, true=1, edges=1)"

    def test_overlap_without_node_table(self):
        with pytest.raises(DataError, match="both source and target"):
            build_bipartite_graph([("P1", "O1"), ("O1", "P2")])

    def test_sides_from_node_table(self):
        nodes = pl.DataFrame({
            "name": ["O1", "P1", "P2"],
            "type": ["TRUE", "FALSE", "FALSE"],
        })

        bgraph = build_bipartite_graph([("O1", "P1"), ("P2", "O1")], nodes=nodes)

        assert bgraph.side_nodes(True) == ["O1"]
        assert bgraph.graph.attributes_of("O1") == {"type": "TRUE"}

    def test_missing_side_column(self):
        nodes = pl.DataFrame({"name": ["O1", "P1"], "kind": ["org", "person"]})

        with pytest.raises(DataError, match="side attribute"):
            build_bipartite_graph([("P1", "O1")], nodes=nodes)

    def test_info(self, memberships):
        info = get_bipartite_info(memberships)

        assert info["false_partition_size"] == 3
        assert info["true_partition_size"] == 2
        assert info["true_nodes"] == ["O1", "O2"]
        assert info["total_edges"] == 4


class TestProjectBipartite:
    """Test one-mode projections."""

    def test_organization_projection(self, memberships):
        people, organizations = project_bipartite(memberships)

        assert organizations.nodes == ("O1", "O2")
        assert [(e.source, e.target, e.attributes["weight"]) for e in organizations.edges] == [
            ("O1", "O2", 1)
        ]
        assert [(e.source, e.target, e.attributes["weight"]) for e in people.edges] == [
            ("P1", "P2", 1), ("P2", "P3", 1)
        ]
        assert not people.directed

    def test_matches_brute_force(self):
        edges = [("P1", "O1"), ("P1", "O2"), ("P2", "O1"), ("P2", "O2"),
                 ("P3", "O2"), ("P3", "O3"), ("P4", "O3"), ("P1", "O3")]
        bgraph = build_bipartite_graph(edges)

        for side, projection in zip((False, True), project_bipartite(bgraph)):
            actual = {(e.source, e.target): e.attributes["weight"] for e in projection.edges}
            assert actual == brute_force_projection(bgraph, side)

    def test_parallel_edges_count_once(self):
        bgraph = build_bipartite_graph([("P1", "O1"), ("P1", "O1"), ("P2", "O1")])

        people = project_bipartite(bgraph, which="false")

        assert people.edges[0].attributes["weight"] == 1

    def test_isolated_members_are_kept(self):
        bgraph = build_bipartite_graph([("P1", "O1"), ("P2", "O2")])

        people = project_bipartite(bgraph, which=False)

        assert people.nodes == ("P1", "P2")
        assert people.number_of_edges() == 0

    def test_which_selects_one_side(self, memberships):
        organizations = project_bipartite(memberships, which="true")

        assert isinstance(organizations, Graph)
        assert organizations.nodes == ("O1", "O2")

    def test_invalid_which(self, memberships):
        with pytest.raises(ConfigurationError):
            project_bipartite(memberships, which="left")

    def test_plain_graph_with_side_attribute(self):
        g = Graph(("O1", "O2", "P1", "P2"),
                  (("P1", "O1"), ("P1", "O2"), ("P2", "O2")),
                  node_attributes={
                      "O1": {"type": True, "founded": 1820},
                      "O2": {"type": True, "founded": 1835},
                      "P1": {"type": False},
                      "P2": {"type": False},
                  })

        people, organizations = project_bipartite(g)

        assert organizations.attributes_of("O1") == {"type": True, "founded": 1820}
        assert organizations.edges[0].attributes["weight"] == 1
        assert people.edges[0].attributes["weight"] == 1

    def test_plain_graph_with_side_mapping(self):
        g = Graph(("A", "B", "C"), (("A", "B"), ("C", "B")))

        left, right = project_bipartite(g, sides={"A": 0, "B": 1, "C": 0})

        assert [(e.source, e.target) for e in left.edges] == [("A", "C")]
        assert right.number_of_edges() == 0

    def test_same_side_edge_in_plain_graph(self):
        g = Graph(("A", "B"), (("A", "B"),))

        with pytest.raises(DataError):
            project_bipartite(g, sides={"A": True, "B": True})

    def test_side_labels(self):
        g = Graph(("A", "B"), node_attributes={"A": {"kind": "yes"}, "B": {"kind": "no"}})

        assert side_labels(g, "kind") == {"A": True, "B": False}


class TestProjectionSummary:
    """Test per-side counts."""

    def test_summary(self, memberships):
        summary = projection_summary(memberships)

        assert summary == {
            False: {"num_nodes": 3, "num_edges": 2},
            True: {"num_nodes": 2, "num_edges": 1},
        }
