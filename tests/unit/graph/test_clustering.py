"""
Unit tests for ClusterEngine.
"""

import pytest

from flowview.config import ClusteringSettings
from flowview.core.geometry import Box
from flowview.core.types import NodeType
from flowview.graph.clustering import ClusterEngine, rewrite_edges

from factories import make_edge, make_node


@pytest.fixture
def dense_graph():
    """20 tables feeding 10 joins feeding one select: 31 nodes."""
    tables = [make_node(f"t{i}", i * 200, 0) for i in range(20)]
    joins = [make_node(f"j{i}", i * 200, 200, NodeType.JOIN) for i in range(10)]
    select = make_node("s", 0, 400, NodeType.SELECT)
    edges = [make_edge(f"t{i}", f"j{i // 2}") for i in range(20)]
    edges += [make_edge(f"j{i}", "s") for i in range(10)]
    return tables + joins + [select], edges


@pytest.fixture
def engine():
    return ClusterEngine(ClusteringSettings(enabled=True))


class TestClustering:
    """Tests for building clusters."""

    def test_collapsed_clusters_replace_members(self, engine, dense_graph):
        nodes, edges = dense_graph
        result = engine.cluster(nodes, edges)

        assert {node.id for node in result.nodes} == {"cluster-tables", "cluster-joins", "cluster-other"}
        assert all(node.type == NodeType.CLUSTER for node in result.nodes)
        assert len(result.edges) == 2
        assert result.edges[0].id == "t0-j0:cluster-tables->cluster-joins"
        assert (result.edges[1].source, result.edges[1].target) == ("cluster-joins", "cluster-other")

    def test_labels_and_bounds(self, engine, dense_graph):
        nodes, edges = dense_graph
        engine.cluster(nodes, edges)

        tables = engine.get("cluster-tables")
        assert tables.label == "Tables (20)"
        assert tables.box == Box(0, 0, 4020, 100)
        assert engine.get("cluster-joins").label == "Joins (10)"
        assert engine.get("cluster-other").label == "Other (1)"

    def test_members_are_disjoint(self, engine, dense_graph):
        nodes, edges = dense_graph
        engine.cluster(nodes, edges)

        seen = set()
        for cluster in engine.clusters:
            assert seen.isdisjoint(cluster.node_ids)
            seen.update(cluster.node_ids)
        assert len(seen) == 31

    def test_below_threshold_is_unchanged(self, engine, dense_graph):
        nodes, edges = dense_graph
        result = engine.cluster(nodes[:29], edges)

        assert result.nodes == nodes[:29]
        assert engine.clusters == []
        assert not engine.active

    def test_disabled(self, dense_graph):
        nodes, edges = dense_graph
        engine = ClusterEngine(ClusteringSettings(enabled=False))
        assert len(engine.cluster(nodes, edges).nodes) == 31

    def test_disabled_by_default(self, dense_graph):
        nodes, edges = dense_graph
        engine = ClusterEngine()

        assert len(engine.cluster(nodes, edges).nodes) == 31
        assert not engine.active

    def test_cluster_for_node(self, engine, dense_graph):
        nodes, edges = dense_graph
        engine.cluster(nodes, edges)
        assert engine.cluster_for_node("t3").id == "cluster-tables"
        assert engine.cluster_for_node("nope") is None
        assert engine.is_cluster("cluster-joins")


class TestExpandCollapse:
    """Tests for expanded flags."""

    def test_expand_restores_members(self, engine, dense_graph):
        nodes, edges = dense_graph
        engine.cluster(nodes, edges)

        assert engine.toggle("cluster-tables") is True
        result = engine.project(nodes, edges)

        assert len(result.nodes) == 22
        assert len(result.edges) == 21
        assert result.edges[0].id == "t0-j0:t0->cluster-joins"

    def test_flags_survive_reclustering(self, engine, dense_graph):
        nodes, edges = dense_graph
        engine.cluster(nodes, edges)
        engine.expand("cluster-joins")

        engine.cluster(nodes, edges)
        assert engine.expanded_flags()["cluster-joins"] is True
        assert engine.expanded_flags()["cluster-tables"] is False

    def test_expand_all_returns_original_graph(self, engine, dense_graph):
        nodes, edges = dense_graph
        engine.cluster(nodes, edges)
        engine.expand_all()

        result = engine.project(nodes, edges)
        assert result.nodes == nodes
        assert [edge.id for edge in result.edges] == [edge.id for edge in edges]

        engine.collapse_all()
        assert len(engine.project(nodes, edges).nodes) == 3

    def test_unknown_cluster(self, engine):
        assert engine.toggle("cluster-nothing") is None
        assert not engine.expand("cluster-nothing")

    def test_custom_strategy_first_group_wins(self, dense_graph):
        class Halves:
            def group(self, nodes):
                return {"all": list(nodes), "tables": [n for n in nodes if n.type == NodeType.TABLE]}

            def label(self, group, count):
                return f"{group}:{count}"

        nodes, edges = dense_graph
        engine = ClusterEngine(ClusteringSettings(enabled=True), strategy=Halves())
        engine.cluster(nodes, edges)

        assert [cluster.id for cluster in engine.clusters] == ["cluster-all"]
        assert engine.clusters[0].label == "all:31"


class TestRewriteEdges:
    """Tests for edge rewriting."""

    def test_intra_cluster_edges_are_dropped(self):
        edges = [make_edge("a", "b"), make_edge("b", "c")]
        result = rewrite_edges(edges, {"a": "cluster-x", "b": "cluster-x"})
        assert [(edge.source, edge.target) for edge in result] == [("cluster-x", "c")]

    def test_parallel_edges_are_merged(self):
        edges = [make_edge("a", "c"), make_edge("b", "c")]
        result = rewrite_edges(edges, {"a": "cluster-x", "b": "cluster-x"})
        assert len(result) == 1

    def test_untouched_edges_keep_identity(self):
        edge = make_edge("c", "d")
        assert rewrite_edges([edge], {"a": "cluster-x"})[0] is edge
