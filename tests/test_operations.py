"""
Tests for semantic operations and batch application
"""
import pytest

from diagramflow import apply_ops, parse_op
from diagramflow.operations import AddNodeOp, NodeInput, SortNodesOp


class TestNodeOperations:
    """Tests for add/update/remove node"""

    def test_add_then_remove_leaves_no_trace(self, empty_doc, id_generator):
        """Test adding a node and removing it restores the node set"""
        added = apply_ops(empty_doc, [{"op": "add_node", "node": {"label": "A"}}], id_generator)
        assert added.success
        node_id = added.document.nodes[0].id
        assert node_id == "id1"

        removed = apply_ops(added.document, [{"op": "remove_node", "id": node_id}], id_generator)

        assert removed.success
        assert removed.document.nodes == []

    def test_build_and_remove_scenario(self, empty_doc, id_generator):
        """Test two nodes and an edge, then removing the source drops the edge"""
        built = apply_ops(empty_doc, [
            {"op": "add_node", "node": {"label": "A"}},
            {"op": "add_node", "node": {"label": "B"}},
            {"op": "add_edge", "edge": {"source": "id1", "target": "id2"}},
        ], id_generator)

        assert built.success
        assert (len(built.document.nodes), len(built.document.edges)) == (2, 1)

        removed = apply_ops(built.document, [{"op": "remove_node", "id": "id1"}], id_generator)

        assert removed.success
        assert (len(removed.document.nodes), len(removed.document.edges)) == (1, 0)

    def test_add_node_defaults(self, empty_doc, id_generator):
        """Test a new node takes the default shape, color and position"""
        result = apply_ops(empty_doc, [AddNodeOp(node=NodeInput(label="A"))], id_generator)

        node = result.document.nodes[0]
        assert (node.x, node.y) == (0, 0)
        assert node.shape == "rectangle"
        assert node.pinned is False

    def test_remove_node_cascades_edges(self, sample_doc):
        """Test removing a node drops every edge touching it"""
        result = apply_ops(sample_doc, [{"op": "remove_node", "id": "api"}])

        assert result.success
        assert result.document.get_node("api") is None
        assert result.document.edges == []

    def test_cascade_count(self, sample_doc):
        """Test removal drops exactly the edges touching the node"""
        result = apply_ops(sample_doc, [{"op": "remove_node", "id": "db"}])

        assert len(result.document.edges) == len(sample_doc.edges) - 1
        assert all("db" not in (e.source, e.target) for e in result.document.edges)

    def test_remove_missing_node(self, sample_doc):
        """Test removing an unknown node fails with a not-found error"""
        result = apply_ops(sample_doc, [{"op": "remove_node", "id": "ghost"}])

        assert result.success is False
        assert result.error == 'Node "ghost" not found'
        assert result.document is None

    def test_update_node_merges_fields(self, sample_doc):
        """Test update changes only the given fields"""
        result = apply_ops(sample_doc, [
            {"op": "update_node", "id": "api", "changes": {"label": "Gateway", "color": "blue"}},
        ])

        node = result.document.get_node("api")
        assert node.label == "Gateway"
        assert node.color == "blue"
        assert (node.x, node.y) == (100, 100)

    def test_update_pinned_node_keeps_position(self, sample_doc):
        """Test a pinned node ignores x/y but takes other changes"""
        result = apply_ops(sample_doc, [
            {"op": "update_node", "id": "client", "changes": {"x": 999, "y": 999, "label": "Browser"}},
        ])

        assert result.success
        node = result.document.get_node("client")
        assert (node.x, node.y) == (100, 300)
        assert node.label == "Browser"

    def test_update_unpinned_node_moves(self, sample_doc):
        """Test an unpinned node takes new x/y"""
        result = apply_ops(sample_doc, [{"op": "update_node", "id": "api", "changes": {"x": 1, "y": 2}}])

        node = result.document.get_node("api")
        assert (node.x, node.y) == (1, 2)

    def test_unpin_then_move_in_one_batch(self, sample_doc):
        """Test unpinning first lets a later update move the node"""
        result = apply_ops(sample_doc, [
            {"op": "update_node", "id": "client", "changes": {"pinned": False}},
            {"op": "update_node", "id": "client", "changes": {"x": 5, "y": 6}},
        ])

        node = result.document.get_node("client")
        assert (node.x, node.y) == (5, 6)

    def test_explicit_null_clears_group(self, sample_doc):
        """Test a null group detaches the node"""
        result = apply_ops(sample_doc, [{"op": "update_node", "id": "db", "changes": {"group": None}}])

        assert result.document.get_node("db").group is None

    def test_null_label_is_ignored(self, sample_doc):
        """Test a null for a required field leaves it unchanged"""
        result = apply_ops(sample_doc, [{"op": "update_node", "id": "api", "changes": {"label": None}}])

        assert result.success
        assert result.document.get_node("api").label == "API"


class TestEdgeOperations:
    """Tests for add/update/remove edge"""

    def test_add_edge(self, sample_doc, id_generator):
        """Test an edge between existing nodes is added"""
        result = apply_ops(sample_doc, [
            {"op": "add_edge", "edge": {"source": "client", "target": "api", "style": "dashed"}},
        ], id_generator)

        edge = result.document.get_edge("id1")
        assert (edge.source, edge.target, edge.style) == ("client", "api", "dashed")
        assert edge.arrow == "arrow"

    def test_add_edge_missing_source_checked_first(self, sample_doc):
        """Test the source is checked before the target"""
        result = apply_ops(sample_doc, [
            {"op": "add_edge", "edge": {"source": "ghost", "target": "phantom"}},
        ])

        assert result.error == 'Source node "ghost" not found'

    def test_add_edge_missing_target(self, sample_doc):
        """Test a missing target is reported"""
        result = apply_ops(sample_doc, [{"op": "add_edge", "edge": {"source": "api", "target": "ghost"}}])

        assert result.error == 'Target node "ghost" not found'

    def test_update_missing_edge(self, sample_doc):
        """Test updating an unknown edge fails"""
        result = apply_ops(sample_doc, [{"op": "update_edge", "id": "nope", "changes": {"label": "x"}}])

        assert result.success is False
        assert result.error == 'Edge "nope" not found'

    def test_update_edge_retarget(self, sample_doc):
        """Test an edge can be pointed at another node"""
        result = apply_ops(sample_doc, [{"op": "update_edge", "id": "e1", "changes": {"target": "client"}}])

        assert result.document.get_edge("e1").target == "client"

    def test_update_edge_clears_label(self, sample_doc):
        """Test a null label removes it"""
        result = apply_ops(sample_doc, [{"op": "update_edge", "id": "e2", "changes": {"label": None}}])

        assert result.document.get_edge("e2").label is None

    def test_remove_edge(self, sample_doc):
        """Test removing an edge leaves nodes alone"""
        result = apply_ops(sample_doc, [{"op": "remove_edge", "id": "e1"}])

        assert [e.id for e in result.document.edges] == ["e2"]
        assert len(result.document.nodes) == 4


class TestGroupOperations:
    """Tests for add/update/remove group"""

    def test_add_group_with_caller_id(self, empty_doc, id_generator):
        """Test a caller-supplied group id is kept and can be used in the same batch"""
        result = apply_ops(empty_doc, [
            {"op": "add_group", "group": {"id": "g1", "label": "Backend"}},
            {"op": "add_node", "node": {"label": "A", "group": "g1"}},
        ], id_generator)

        assert result.success
        assert result.document.groups[0].id == "g1"
        assert result.document.nodes[0].group == "g1"

    def test_add_group_generated_id(self, empty_doc, id_generator):
        """Test a group without an id gets one from the generator"""
        result = apply_ops(empty_doc, [{"op": "add_group", "group": {"label": "G"}}], id_generator)

        assert result.document.groups[0].id == "id1"

    def test_remove_group_detaches_members(self, sample_doc):
        """Test members survive removal of their group"""
        result = apply_ops(sample_doc, [{"op": "remove_group", "id": "storage"}])

        assert result.success
        assert result.document.groups == []
        assert len(result.document.nodes) == 4
        assert all(n.group is None for n in result.document.nodes)

    def test_update_group(self, sample_doc):
        """Test group fields merge"""
        result = apply_ops(sample_doc, [
            {"op": "update_group", "id": "storage", "changes": {"label": "Data", "collapsed": True}},
        ])

        group = result.document.get_group("storage")
        assert group.label == "Data"
        assert group.collapsed is True

    def test_update_missing_group(self, sample_doc):
        """Test updating an unknown group fails"""
        result = apply_ops(sample_doc, [{"op": "update_group", "id": "ghost", "changes": {"label": "x"}}])

        assert result.error == 'Group "ghost" not found'


class TestBatchSemantics:
    """Tests for atomicity and final validation"""

    def test_input_document_is_not_mutated(self, sample_doc):
        """Test a successful batch leaves its input unchanged"""
        before = sample_doc.clone()

        apply_ops(sample_doc, [
            {"op": "update_node", "id": "api", "changes": {"label": "X"}},
            {"op": "remove_node", "id": "db"},
        ])

        assert sample_doc == before

    def test_first_failure_aborts_batch(self, sample_doc):
        """Test earlier operations are discarded when a later one fails"""
        before = sample_doc.clone()

        result = apply_ops(sample_doc, [
            {"op": "update_node", "id": "api", "changes": {"label": "X"}},
            {"op": "remove_node", "id": "ghost"},
        ])

        assert result.success is False
        assert sample_doc == before

    def test_globally_invalid_batch_rejected(self, sample_doc):
        """Test a batch whose result breaks validation is rejected"""
        result = apply_ops(sample_doc, [
            {"op": "update_node", "id": "api", "changes": {"shape": "hexagon"}},
        ])

        assert result.success is False
        assert result.error.startswith("Validation failed: ")
        assert "nodes[0].shape" in result.error

    def test_group_reference_to_missing_group_rejected(self, sample_doc):
        """Test pointing a node at an unknown group fails final validation"""
        result = apply_ops(sample_doc, [{"op": "update_node", "id": "api", "changes": {"group": "nowhere"}}])

        assert result.success is False
        assert "must reference an existing group id" in result.error

    def test_duplicate_group_id_rejected(self, sample_doc):
        """Test a caller-supplied id colliding with a node id is rejected"""
        result = apply_ops(sample_doc, [{"op": "add_group", "group": {"id": "api", "label": "G"}}])

        assert result.success is False
        assert 'Duplicate id: "api"' in result.error

    def test_unknown_operation(self, sample_doc):
        """Test an unknown op tag is reported as an invalid operation"""
        result = apply_ops(sample_doc, [{"op": "explode"}])

        assert result.success is False
        assert result.error.startswith("Invalid operation: ")

    def test_missing_required_field(self, sample_doc):
        """Test a malformed payload is reported as an invalid operation"""
        result = apply_ops(sample_doc, [{"op": "add_node", "node": {}}])

        assert result.success is False
        assert result.error.startswith("Invalid operation: ")

    def test_success_stamps_modified_and_context(self, sample_doc):
        """Test a successful batch refreshes modified and agentContext"""
        result = apply_ops(sample_doc, [{"op": "update_node", "id": "api", "changes": {"label": "X"}}])

        assert result.document.meta.modified != sample_doc.meta.modified
        assert result.document.agent_context["format"] == "diagramflow-v1"

    def test_empty_batch(self, sample_doc):
        """Test an empty batch succeeds"""
        result = apply_ops(sample_doc, [])

        assert result.success
        assert result.document.nodes == sample_doc.nodes

    def test_to_dict(self, sample_doc):
        """Test OpResult serialization"""
        failed = apply_ops(sample_doc, [{"op": "remove_edge", "id": "x"}]).to_dict()

        assert failed == {"success": False, "error": 'Edge "x" not found'}


class TestParseOp:
    """Tests for parse_op"""

    def test_parses_sort_alias(self):
        """Test sort_nodes accepts the groupId key"""
        op = parse_op({"op": "sort_nodes", "direction": "LR", "groupId": "g1"})

        assert isinstance(op, SortNodesOp)
        assert op.group_id == "g1"

    def test_models_pass_through(self):
        """Test an operation model is returned as is"""
        op = SortNodesOp(direction="TB")

        assert parse_op(op) is op

    def test_bad_direction(self):
        """Test an unknown sort direction is rejected"""
        with pytest.raises(Exception):
            parse_op({"op": "sort_nodes", "direction": "diagonal"})
