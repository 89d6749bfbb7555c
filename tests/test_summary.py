"""
Tests for the agent-readable summary
"""
from conftest import make_doc, make_node

from diagramflow import DiagramEdge, find_connected_components, generate_agent_context
from diagramflow.summary import CONTEXT_FORMAT


class TestConnectedComponents:
    """Tests for cluster detection"""

    def test_components(self, sample_doc):
        """Test the sample splits into the pipeline and the lone client"""
        components = find_connected_components(sample_doc)

        assert [c.node_ids for c in components] == [["api", "cache", "db"], ["client"]]

    def test_cycle(self):
        """Test a cycle is one component"""
        doc = make_doc(
            nodes=[make_node("a"), make_node("b")],
            edges=[DiagramEdge(id="e1", source="a", target="b"), DiagramEdge(id="e2", source="b", target="a")],
        )

        assert len(find_connected_components(doc)) == 1


class TestAgentContext:
    """Tests for generate_agent_context"""

    def test_empty(self):
        """Test an empty diagram says so"""
        context = generate_agent_context(make_doc(title="Blank"))

        assert context["summary"] == '"Blank" is an empty diagram.'
        assert context["nodeIndex"] == []

    def test_summary_text(self, sample_doc):
        """Test the summary names nodes, edges, clusters and groups"""
        summary = generate_agent_context(sample_doc)["summary"]

        assert summary.startswith('"Sample" contains 4 nodes ("API", "Database", "Cache", "Client") connected by 2 edges.')
        assert "It forms 2 separate clusters." in summary
        assert 'Grouped into: "Storage" (2 nodes).' in summary

    def test_long_node_list_truncated(self):
        """Test only the first few labels are listed"""
        doc = make_doc(nodes=[make_node(f"n{i}") for i in range(8)])

        summary = generate_agent_context(doc)["summary"]

        assert "and 3 more" in summary

    def test_indexes(self, sample_doc):
        """Test indexes refer to nodes by label"""
        context = generate_agent_context(sample_doc)

        assert context["format"] == CONTEXT_FORMAT
        assert {"id": "db", "label": "Database", "group": "storage"} in context["nodeIndex"]
        assert {"from": "API", "to": "Cache", "label": "reads"} in context["edgeIndex"]
        assert context["groupIndex"] == [{"group": "Storage", "members": ["Database", "Cache"]}]
        assert "usage" in context
