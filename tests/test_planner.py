"""
Tests for the execution planner - ordering, gates, orphans and cycles.
Run: pytest tests/test_planner.py -v
"""
from catalyst.compiler.planner import plan_execution
from catalyst.workflow.manifest import EdgeDefinition, NodeDefinition


def _nodes(*specs):
    return {node_id: NodeDefinition(id=node_id, type=node_type) for node_id, node_type in specs}


def _edge(edge_id, source, target, **kwargs):
    return EdgeDefinition(id=edge_id, source=source, target=target, **kwargs)


def _ports(node_type):
    return {"true", "false"} if node_type == "condition" else set()


class TestOrdering:

    def test_linear_chain(self):
        nodes = _nodes(("c", "log"), ("a", "httpEndpoint"), ("b", "log"))
        plan = plan_execution(nodes, [_edge("e1", "a", "b"), _edge("e2", "b", "c")])
        assert plan.success
        assert plan.order == ["a", "b", "c"]
        assert [s.position for s in plan.steps] == [1, 2, 3]

    def test_diamond_respects_dependencies(self):
        nodes = _nodes(("a", "httpEndpoint"), ("b", "log"), ("c", "log"), ("d", "log"))
        edges = [_edge("e1", "a", "b"), _edge("e2", "a", "c"), _edge("e3", "b", "d"), _edge("e4", "c", "d")]
        plan = plan_execution(nodes, edges)
        assert plan.order == ["a", "b", "c", "d"]
        assert plan.steps[3].sources == ["b", "c"]

    def test_roots_keep_node_map_order(self):
        nodes = _nodes(("x", "log"), ("y", "log"))
        plan = plan_execution(nodes, [])
        assert plan.roots == ["x", "y"]
        assert plan.order == ["x", "y"]
        assert plan.orphans == []

    def test_deterministic(self):
        nodes = _nodes(("a", "httpEndpoint"), ("b", "log"), ("c", "log"))
        edges = [_edge("e1", "a", "c"), _edge("e2", "a", "b")]
        assert plan_execution(nodes, edges).order == plan_execution(nodes, edges).order == ["a", "c", "b"]


class TestGates:

    def test_branch_set_only_for_conditional_ports(self):
        nodes = _nodes(("check", "condition"), ("yes", "log"), ("next", "log"))
        edges = [
            _edge("e1", "check", "yes", source_handle="true"),
            _edge("e2", "yes", "next", source_handle="output"),
        ]
        plan = plan_execution(nodes, edges, _ports)
        gates = {s.node_id: s.incoming for s in plan.steps}
        assert gates["yes"][0].branch == "true"
        assert gates["yes"][0].is_gated
        assert gates["next"][0].branch is None
        assert not gates["next"][0].is_gated

    def test_edge_condition_is_carried(self):
        nodes = _nodes(("a", "log"), ("b", "log"))
        plan = plan_execution(nodes, [_edge("e1", "a", "b", condition="{{ input.ok }}")])
        runtime = plan.steps[1].incoming[0].as_runtime()
        assert runtime == {"source": "a", "branch": None, "condition": "{{ input.ok }}"}


class TestProblems:

    def test_dangling_edge(self):
        plan = plan_execution(_nodes(("a", "log")), [_edge("e1", "a", "ghost")])
        assert not plan.success
        assert "target 'ghost' not found" in plan.errors[0]

    def test_cycle(self):
        nodes = _nodes(("a", "httpEndpoint"), ("b", "log"), ("c", "log"))
        edges = [_edge("e1", "a", "b"), _edge("e2", "b", "c"), _edge("e3", "c", "b")]
        plan = plan_execution(nodes, edges)
        assert not plan.success
        assert "cycle" in plan.errors[0]
        assert "b" in plan.errors[0] and "c" in plan.errors[0]
        assert plan.steps == []

    def test_orphan_warning(self):
        nodes = _nodes(("a", "httpEndpoint"), ("b", "log"), ("lonely", "log"))
        plan = plan_execution(nodes, [_edge("e1", "a", "b")])
        assert plan.success
        assert plan.orphans == ["lonely"]
        assert any("lonely" in w for w in plan.warnings)

    def test_trigger_with_incoming_edges_warns(self):
        nodes = _nodes(("a", "log"), ("t", "httpEndpoint"))
        plan = plan_execution(nodes, [_edge("e1", "a", "t")])
        assert any("Trigger node 't'" in w for w in plan.warnings)
