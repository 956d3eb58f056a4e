import pytest

from adpa.core.plugins import PluginDependencyError, resolve_load_order
from adpa.tests.unit.helpers import make_descriptor


def names(descriptors):
    return [d.name for d in descriptors]


class TestResolveLoadOrder:
    def test_chain_is_ordered_after_dependencies(self):
        batch = [
            make_descriptor("c", dependencies=["b"]),
            make_descriptor("b", dependencies=["a"]),
            make_descriptor("a"),
        ]

        assert names(resolve_load_order(batch)) == ["a", "b", "c"]

    def test_every_plugin_follows_its_in_batch_dependencies(self):
        batch = [
            make_descriptor("report", dependencies=["audit", "templates"]),
            make_descriptor("publish", dependencies=["report"]),
            make_descriptor("templates"),
            make_descriptor("audit", dependencies=["templates"]),
            make_descriptor("metrics"),
        ]

        order = names(resolve_load_order(batch))

        assert sorted(order) == sorted(names(batch))
        for descriptor in batch:
            for dep in descriptor.dependencies:
                assert order.index(dep) < order.index(descriptor.name)

    def test_independent_plugins_keep_discovery_order(self):
        batch = [make_descriptor("z"), make_descriptor("m"), make_descriptor("a")]

        assert names(resolve_load_order(batch)) == ["z", "m", "a"]

    def test_dependencies_outside_the_batch_are_skipped(self):
        batch = [make_descriptor("b", dependencies=["missing"]), make_descriptor("a")]

        assert names(resolve_load_order(batch)) == ["b", "a"]

    def test_two_node_cycle_fails(self):
        batch = [
            make_descriptor("a", dependencies=["b"]),
            make_descriptor("b", dependencies=["a"]),
        ]

        with pytest.raises(PluginDependencyError) as excinfo:
            resolve_load_order(batch)

        assert excinfo.value.cycle_at in {"a", "b"}
        assert "Circular dependency" in str(excinfo.value)

    def test_cycle_anywhere_halts_whole_batch(self):
        batch = [
            make_descriptor("standalone"),
            make_descriptor("x", dependencies=["z"]),
            make_descriptor("y", dependencies=["x"]),
            make_descriptor("z", dependencies=["y"]),
        ]

        with pytest.raises(PluginDependencyError) as excinfo:
            resolve_load_order(batch)

        assert excinfo.value.cycle_at in {"x", "y", "z"}

    def test_empty_batch(self):
        assert resolve_load_order([]) == []

    def test_long_dependency_chain_is_ordered(self):
        depth = 5000
        batch = [
            make_descriptor(f"p{i}", dependencies=[f"p{i - 1}"] if i else [])
            for i in reversed(range(depth))
        ]

        order = names(resolve_load_order(batch))

        assert order == [f"p{i}" for i in range(depth)]

    def test_long_cycle_raises_dependency_error(self):
        depth = 5000
        batch = [
            make_descriptor(f"p{i}", dependencies=[f"p{(i + 1) % depth}"])
            for i in range(depth)
        ]

        with pytest.raises(PluginDependencyError) as excinfo:
            resolve_load_order(batch)

        assert excinfo.value.cycle_at == "p0"
