import pytest
from hypothesis import given, strategies as st

# Add the project root to the Python path
import sys, os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from vista_actions.decode.decoder import decode
from vista_actions.errors import CycleError, DecodeError
from vista_actions.plan.resolver import EXPLICIT, IMPLICIT, SHELL_ORDER, DependencyResolver, resolve


def _files(*specs):
    """specs: (id, dependencies-or-None)"""
    return list(decode([
        {"id": aid, "type": "file", "filePath": f"{aid}.txt", "content": aid, "dependencies": deps}
        for aid, deps in specs
    ]))


def _mixed(*specs):
    """specs: (id, type, dependencies-or-None)"""
    records = []
    for aid, kind, deps in specs:
        record = {"id": aid, "type": kind, "content": f"echo {aid}", "dependencies": deps}
        if kind == "file":
            record["filePath"] = f"{aid}.txt"
        records.append(record)
    return list(decode(records))


def test_implicit_order_is_a_chain():
    plan = resolve(_files(("a", None), ("b", None), ("c", None)))
    assert plan.groups == [["a"], ["b"], ["c"]]
    assert plan.edges() == [("a", "b", IMPLICIT), ("b", "c", IMPLICIT)]


def test_explicit_dependencies_override_implicit_order():
    plan = resolve(_files(("a", None), ("b", []), ("c", ["a"])))
    assert plan.groups == [["a", "b"], ["c"]]
    assert ("a", "c", EXPLICIT) in plan.edges()
    assert plan.predecessors("b") == []


def test_implicit_edge_follows_previous_even_when_it_declared_deps():
    plan = resolve(_files(("a", []), ("b", []), ("c", None)))
    assert plan.predecessors("c") == ["b"]
    assert plan.groups == [["a", "b"], ["c"]]


def test_ties_break_by_stream_order():
    plan = resolve(_files(("z", []), ("m", []), ("a", []), ("k", ["z", "a"])))
    assert plan.groups == [["z", "m", "a"], ["k"]]
    assert plan.order == ["z", "m", "a", "k"]
    assert plan.group_of("k") == 1


def test_forward_reference_resolves():
    plan = resolve(_files(("run", ["install"]), ("install", [])))
    assert plan.groups == [["install"], ["run"]]


def test_two_node_cycle():
    with pytest.raises(CycleError) as exc_info:
        resolve(_files(("a", ["b"]), ("b", ["a"])))
    chain = exc_info.value.chain
    assert chain[0] == chain[-1]
    assert set(chain) == {"a", "b"}
    assert "dependency cycle" in str(exc_info.value)


def test_cycle_through_implicit_edge():
    # c -> a is explicit, a -> b -> c is implicit stream order
    with pytest.raises(CycleError) as exc_info:
        resolve(_files(("a", ["c"]), ("b", None), ("c", None)))
    assert exc_info.value.chain == ["a", "b", "c", "a"]


def test_self_dependency_is_a_cycle():
    with pytest.raises(CycleError) as exc_info:
        resolve(_files(("a", ["a"])))
    assert exc_info.value.chain == ["a", "a"]


def test_dangling_dependency_rejected_by_resolver():
    actions = _files(("a", []))
    actions[0].dependencies = ["ghost"]
    with pytest.raises(DecodeError, match="ghost"):
        resolve(actions)


def test_descendants_and_as_dict():
    plan = resolve(_files(("a", []), ("b", ["a"]), ("c", ["b"]), ("d", [])))
    assert plan.descendants("a") == ["b", "c"]
    assert plan.successors("a") == ["b"]
    assert plan.as_dict()["groups"] == [["a", "d"], ["b"], ["c"]]


@given(st.lists(st.lists(st.integers(min_value=0, max_value=7), max_size=3), min_size=1, max_size=8))
def test_groups_respect_every_edge(dep_indexes):
    """Random forward-only dependency graphs: every edge points to a later group."""
    specs = []
    for i, deps in enumerate(dep_indexes):
        specs.append((f"n{i}", sorted({f"n{d}" for d in deps if d < i})))
    plan = DependencyResolver().resolve(_files(*specs))
    assert sorted(sum(plan.groups, [])) == sorted(aid for aid, _ in specs)
    for a, b, _ in plan.edges():
        assert plan.group_of(a) < plan.group_of(b)


def test_shells_keep_stream_order_across_groups():
    # s1 waits for f3, so without the shell-order edge s2 would run first
    plan = resolve(_mixed(("s1", "shell", ["f3"]), ("s2", "shell", []), ("f3", "file", [])))
    assert ("s1", "s2", SHELL_ORDER) in plan.edges()
    assert plan.groups == [["f3"], ["s1"], ["s2"]]
    assert plan.dependencies("s2") == []
    assert plan.warnings == []


def test_shell_order_does_not_duplicate_existing_edges():
    plan = resolve(_mixed(("install", "shell", None), ("run", "shell", None)))
    assert plan.edges() == [("install", "run", IMPLICIT)]
    assert plan.dependencies("run") == ["install"]


def test_shell_order_yields_to_explicit_dependencies():
    plan = resolve(_mixed(("build", "shell", ["test"]), ("test", "shell", [])))
    assert plan.groups == [["test"], ["build"]]
    assert [k for _, _, k in plan.edges()] == [EXPLICIT]
    assert len(plan.warnings) == 1
    assert "'test' must run before 'build'" in plan.warnings[0]


def test_files_are_not_chained_by_shell_order():
    plan = resolve(_mixed(("s1", "shell", []), ("f", "file", []), ("s2", "shell", [])))
    assert plan.groups == [["s1", "f"], ["s2"]]
    assert plan.predecessors("f") == []
