"""Tests for graph document parsing and structural validation."""

from flowguard.graph import GraphSpec


FLAT = {
    "id": "login",
    "name": "Login flow",
    "nodes": {
        "1": {"type": "start", "outputs": {"output_1": ["2"]}},
        "2": {
            "type": "type_text",
            "data": {"selector": ".u", "text": "{{profile.username}}"},
            "outputs": {"output_1": ["3"]},
        },
        "3": {"type": "click_element", "data": {"selector": "#go"}, "save_as": {"clicked": "did_click"}},
    },
}

DRAWFLOW = {
    "id": "login",
    "name": "Login flow",
    "drawflow": {
        "Home": {
            "data": {
                "1": {
                    "id": 1,
                    "name": "start",
                    "data": {},
                    "outputs": {"output_1": {"connections": [{"node": "2", "output": "input_1"}]}},
                },
                "2": {
                    "id": 2,
                    "name": "type_text",
                    "data": {"selector": ".u", "text": "{{profile.username}}"},
                    "outputs": {"output_1": {"connections": [{"node": "3", "output": "input_1"}]}},
                },
                "3": {
                    "id": 3,
                    "name": "click_element",
                    "data": {"selector": "#go", "saveAs": {"clicked": "did_click"}},
                    "outputs": {"output_1": {"connections": []}},
                },
            }
        }
    },
}


class TestFromDocument:
    def test_flat_form(self):
        graph = GraphSpec.from_document(FLAT)

        assert graph.id == "login"
        assert list(graph.nodes) == ["1", "2", "3"]
        assert graph.get_node("1").targets("output_1") == ["2"]
        assert graph.get_node("2").data["text"] == "{{profile.username}}"
        assert graph.get_node("3").save_as == {"clicked": "did_click"}

    def test_drawflow_matches_flat(self):
        flat = GraphSpec.from_document(FLAT)
        drawflow = GraphSpec.from_document(DRAWFLOW)

        assert drawflow.id == flat.id
        for node_id, node in flat.nodes.items():
            other = drawflow.get_node(node_id)
            assert other.type == node.type
            assert other.data == node.data
            assert other.save_as == node.save_as
            assert other.targets("output_1") == node.targets("output_1")

    def test_nodes_as_list(self):
        graph = GraphSpec.from_document(
            {"nodes": [{"id": "a", "type": "start", "outputs": {"output_1": "b"}}, {"id": "b", "type": "delay"}]}
        )
        assert graph.get_node("a").targets() == ["b"]

    def test_missing_slot_has_no_targets(self):
        graph = GraphSpec.from_document(FLAT)
        assert graph.get_node("3").targets("output_2") == []

    def test_spec_passthrough(self):
        graph = GraphSpec.from_document(FLAT)
        assert GraphSpec.from_document(graph) is graph

    def test_find_start_node(self):
        assert GraphSpec.from_document(FLAT).find_start_node().id == "1"
        assert GraphSpec.from_document({"nodes": {}}).find_start_node() is None


class TestValidate:
    def test_valid_graph(self, registry):
        assert GraphSpec.from_document(FLAT).validate(registry) == []

    def test_missing_start(self):
        graph = GraphSpec.from_document({"nodes": {"a": {"type": "delay"}}})
        assert any("no start node" in p for p in graph.validate())

    def test_multiple_starts(self):
        graph = GraphSpec.from_document({"nodes": {"a": {"type": "start"}, "b": {"type": "start"}}})
        assert any("multiple start nodes" in p for p in graph.validate())

    def test_dangling_target(self):
        graph = GraphSpec.from_document(
            {"nodes": {"a": {"type": "start", "outputs": {"output_1": ["ghost"]}}}}
        )
        assert any("missing node 'ghost'" in p for p in graph.validate())

    def test_unregistered_type(self, registry):
        graph = GraphSpec.from_document(
            {"nodes": {"a": {"type": "start", "outputs": {"output_1": ["b"]}}, "b": {"type": "warp_drive"}}}
        )
        assert any("warp_drive" in p for p in graph.validate(registry))

    def test_unreachable(self):
        graph = GraphSpec.from_document({"nodes": {"a": {"type": "start"}, "b": {"type": "delay"}}})
        assert any("'b' is unreachable" in p for p in graph.validate())
