import asyncio
import sys
import types
from unittest.mock import patch

import pytest

from adpa.core.plugins import (
    DuplicatePluginError,
    HookExecutionError,
    PluginCleanupError,
    PluginDependencyError,
    PluginEvent,
    PluginInitializationError,
    PluginLoadError,
    PluginManager,
    PluginNotFoundError,
    PluginSource,
    PluginValidationError,
    StaticPluginSource,
)
from adpa.tests.unit.helpers import EventRecorder, Instance, make_descriptor

HOOK = "after_document_generation"


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def recorder(notifier):
    return EventRecorder(notifier)


def tagged(tag, calls=None):
    async def handler(*args, **kwargs):
        if calls is not None:
            calls.append(tag)
        return tag

    return handler


class TestInstallPlugin:
    def test_install_initializes_and_registers_hooks(self, manager, recorder):
        descriptor = make_descriptor(
            "audit",
            hooks={HOOK: tagged("audit")},
            initializer=lambda config: Instance(config),
            config={"max_entries": 10},
        )

        run(manager.install_plugin(descriptor))

        assert manager.get_plugin("audit") is descriptor
        assert manager.get_plugin_instance("audit").config == {"max_entries": 10}
        assert manager.has_hook(HOOK)
        assert recorder.names() == [PluginEvent.INITIALIZED, PluginEvent.INSTALLED]

    def test_explicit_config_wins(self, manager):
        manager.set_plugin_config("audit", {"source": "override"})
        descriptor = make_descriptor(
            "audit", initializer=lambda config: Instance(config), config={"a": 1}
        )

        run(manager.install_plugin(descriptor, config={"source": "explicit"}))

        assert manager.get_plugin_instance("audit").config == {"source": "explicit"}

    def test_manager_config_override_beats_descriptor_config(self, manager):
        manager.set_plugin_config("audit", {"source": "override"})
        descriptor = make_descriptor(
            "audit", initializer=lambda config: Instance(config), config={"a": 1}
        )

        run(manager.install_plugin(descriptor))

        assert manager.get_plugin_instance("audit").config == {"source": "override"}

    def test_async_initializer_is_awaited(self, manager):
        async def initialize(config):
            await asyncio.sleep(0)
            return Instance(config)

        run(manager.install_plugin(make_descriptor("audit", initializer=initialize)))

        assert isinstance(manager.get_plugin_instance("audit"), Instance)

    def test_duplicate_is_rejected_and_original_untouched(self, manager):
        original = make_descriptor("audit", hooks={HOOK: tagged("original")})
        run(manager.install_plugin(original))

        duplicate = make_descriptor("audit", hooks={HOOK: tagged("duplicate")})
        with pytest.raises(DuplicatePluginError) as excinfo:
            run(manager.install_plugin(duplicate))

        assert excinfo.value.plugin_name == "audit"
        assert manager.get_plugin("audit") is original
        assert run(manager.execute_hook(HOOK, {})) == ["original"]

    def test_missing_dependency_fails_fast(self, manager):
        initialized = []
        descriptor = make_descriptor(
            "publisher",
            dependencies=["templates"],
            initializer=lambda config: initialized.append(True),
        )

        with pytest.raises(PluginDependencyError) as excinfo:
            run(manager.install_plugin(descriptor))

        assert excinfo.value.plugin_name == "publisher"
        assert excinfo.value.missing == ["templates"]
        assert manager.get_plugin("publisher") is None
        assert initialized == []

    def test_dependency_present_allows_install(self, manager):
        run(manager.install_plugin(make_descriptor("templates")))
        run(manager.install_plugin(make_descriptor("publisher", dependencies=["templates"])))

        assert [d.name for d in manager.get_installed_plugins()] == [
            "templates",
            "publisher",
        ]

    def test_invalid_descriptor_rejected_before_initialization(self, manager):
        initialized = []
        descriptor = make_descriptor(
            "exporter",
            hooks={"onExport": tagged("x"), "after_publish": "nope"},
            initializer=lambda config: initialized.append(True),
        )

        with pytest.raises(PluginValidationError) as excinfo:
            run(manager.install_plugin(descriptor))

        assert {v.field for v in excinfo.value.violations} == {
            "hooks.onExport",
            "hooks.after_publish",
        }
        assert initialized == []
        assert manager.get_installed_plugins() == []

    def test_initializer_failure_leaves_registry_unchanged(self, manager, recorder):
        def initialize(config):
            raise RuntimeError("no API key")

        descriptor = make_descriptor(
            "llm_writer", hooks={HOOK: tagged("w")}, initializer=initialize
        )

        with pytest.raises(PluginInitializationError) as excinfo:
            run(manager.install_plugin(descriptor))

        assert excinfo.value.plugin_name == "llm_writer"
        assert isinstance(excinfo.value.cause, RuntimeError)
        assert manager.get_plugin("llm_writer") is None
        assert not manager.has_hook(HOOK)
        assert recorder.of(PluginEvent.INSTALLED) == []
        assert len(recorder.of(PluginEvent.INIT_ERROR)) == 1

    def test_install_by_name_resolves_through_sources(self, manager, static_source):
        static_source.add(make_descriptor("templates"))

        descriptor = run(manager.install_plugin("templates"))

        assert descriptor.name == "templates"
        assert manager.get_plugin("templates") is descriptor

    def test_install_by_name_falls_back_to_module_import(self, manager):
        module = types.ModuleType("adpa_test_plugin_module")
        module.plugin = lambda: make_descriptor("from_module")

        with patch.dict(sys.modules, {"adpa_test_plugin_module": module}):
            run(manager.install_plugin("adpa_test_plugin_module"))

        assert manager.get_plugin("from_module") is not None

    def test_install_unknown_name_raises_load_error(self, manager):
        with pytest.raises(PluginLoadError) as excinfo:
            run(manager.install_plugin("adpa_no_such_plugin_module"))

        assert excinfo.value.plugin_name == "adpa_no_such_plugin_module"


class TestUninstallPlugin:
    def test_uninstall_prunes_hooks(self, manager, recorder):
        calls = []
        run(manager.install_plugin(make_descriptor("x", hooks={HOOK: tagged("x", calls)})))

        run(manager.uninstall_plugin("x"))

        assert not manager.has_hook(HOOK)
        assert run(manager.execute_hook(HOOK, {})) == []
        assert calls == []
        assert manager.get_plugin("x") is None
        assert recorder.of(PluginEvent.UNINSTALLED) == [
            {"plugin_name": "x", "version": "1.0.0"}
        ]

    def test_uninstall_keeps_other_plugins_handlers(self, manager):
        run(manager.install_plugin(make_descriptor("x", hooks={HOOK: tagged("x")})))
        run(manager.install_plugin(make_descriptor("y", hooks={HOOK: tagged("y")})))

        run(manager.uninstall_plugin("x"))

        assert manager.has_hook(HOOK)
        assert run(manager.execute_hook(HOOK, {})) == ["y"]

    def test_uninstall_runs_instance_cleanup(self, manager):
        instance = Instance({})
        run(manager.install_plugin(make_descriptor("x", initializer=lambda c: instance)))

        run(manager.uninstall_plugin("x"))

        assert instance.cleaned_up == 1

    def test_uninstall_unknown_plugin(self, manager):
        with pytest.raises(PluginNotFoundError) as excinfo:
            run(manager.uninstall_plugin("ghost"))

        assert excinfo.value.plugin_name == "ghost"

    def test_cleanup_failure_propagates_and_keeps_plugin(self, manager, recorder):
        run(
            manager.install_plugin(
                make_descriptor(
                    "x",
                    hooks={HOOK: tagged("x")},
                    initializer=lambda c: Instance(c, fail_cleanup=True),
                )
            )
        )

        with pytest.raises(PluginCleanupError) as excinfo:
            run(manager.uninstall_plugin("x"))

        assert excinfo.value.plugin_name == "x"
        assert manager.get_plugin("x") is not None
        assert manager.has_hook(HOOK)
        assert len(recorder.of(PluginEvent.CLEANUP_ERROR)) == 1


class TestEnableDisable:
    def test_disable_then_enable_restores_hooks(self, manager, recorder):
        created = []

        def initialize(config):
            created.append(Instance(config))
            return created[-1]

        run(
            manager.install_plugin(
                make_descriptor("x", hooks={HOOK: tagged("x")}, initializer=initialize)
            )
        )

        run(manager.disable_plugin("x"))

        assert manager.get_plugin("x") is not None
        assert manager.get_plugin_status()["x"]["enabled"] is False
        assert not manager.has_hook(HOOK)
        assert created[0].cleaned_up == 1

        run(manager.enable_plugin("x"))

        assert manager.get_plugin_status()["x"]["enabled"] is True
        assert run(manager.execute_hook(HOOK, {})) == ["x"]
        assert len(created) == 2
        assert PluginEvent.DISABLED in recorder.names()
        assert PluginEvent.ENABLED in recorder.names()

    def test_enable_twice_does_not_duplicate_handlers(self, manager, recorder):
        run(manager.install_plugin(make_descriptor("x", hooks={HOOK: tagged("x")})))

        run(manager.enable_plugin("x"))

        assert run(manager.execute_hook(HOOK, {})) == ["x"]
        assert recorder.of(PluginEvent.ENABLED) == []

    def test_disable_twice_is_a_no_op(self, manager, recorder):
        run(manager.install_plugin(make_descriptor("x")))
        run(manager.disable_plugin("x"))
        run(manager.disable_plugin("x"))

        assert len(recorder.of(PluginEvent.DISABLED)) == 1

    def test_unknown_plugin(self, manager):
        with pytest.raises(PluginNotFoundError):
            run(manager.enable_plugin("ghost"))
        with pytest.raises(PluginNotFoundError):
            run(manager.disable_plugin("ghost"))

    def test_reenable_moves_handlers_to_the_end(self, manager):
        run(manager.install_plugin(make_descriptor("x", hooks={HOOK: tagged("x")})))
        run(manager.install_plugin(make_descriptor("y", hooks={HOOK: tagged("y")})))

        run(manager.disable_plugin("x"))
        run(manager.enable_plugin("x"))

        assert run(manager.execute_hook(HOOK, {})) == ["y", "x"]

    def test_enable_with_failing_initializer_stays_disabled(self, manager, recorder):
        attempts = []

        def initialize(config):
            attempts.append(config)
            if len(attempts) > 1:
                raise RuntimeError("template store offline")
            return Instance(config)

        run(
            manager.install_plugin(
                make_descriptor("x", hooks={HOOK: tagged("x")}, initializer=initialize)
            )
        )
        run(manager.disable_plugin("x"))

        with pytest.raises(PluginInitializationError) as excinfo:
            run(manager.enable_plugin("x"))

        assert excinfo.value.plugin_name == "x"
        assert isinstance(excinfo.value.cause, RuntimeError)
        status = manager.get_plugin_status()["x"]
        assert status["enabled"] is False
        assert "template store offline" in status["error_message"]
        assert manager.get_plugin_instance("x") is None
        assert not manager.has_hook(HOOK)
        assert run(manager.execute_hook(HOOK, {})) == []
        assert [p["plugin_name"] for p in recorder.of(PluginEvent.INIT_ERROR)] == ["x"]
        assert recorder.of(PluginEvent.ENABLED) == []


class TestHookDispatchThroughManager:
    def test_handlers_fire_in_install_order(self, manager):
        calls = []
        run(manager.install_plugin(make_descriptor("x", hooks={HOOK: tagged("x", calls)})))
        run(manager.install_plugin(make_descriptor("y", hooks={HOOK: tagged("y", calls)})))

        results = run(manager.execute_hook(HOOK, {"document_id": "charter"}))

        assert calls == ["x", "y"]
        assert results == ["x", "y"]

    def test_critical_error_names_plugin_and_hook(self, manager):
        class PublishBlocked(Exception):
            critical = True

        async def gate(result):
            raise PublishBlocked("compliance check failed")

        calls = []
        run(manager.install_plugin(make_descriptor("gate", hooks={"before_publish": gate})))
        run(
            manager.install_plugin(
                make_descriptor("after", hooks={"before_publish": tagged("after", calls)})
            )
        )

        with pytest.raises(HookExecutionError) as excinfo:
            run(manager.execute_hook("before_publish", "content"))

        assert excinfo.value.plugin_name == "gate"
        assert excinfo.value.hook_name == "before_publish"
        assert calls == []


class TestLoadPlugins:
    def test_loads_in_dependency_order(self, manager, static_source, recorder):
        order = []

        def initializer(name):
            def initialize(config):
                order.append(name)
                return Instance(config)

            return initialize

        for name, deps in [("c", ["b"]), ("b", ["a"]), ("a", [])]:
            static_source.add(
                make_descriptor(name, dependencies=deps, initializer=initializer(name))
            )

        loaded = run(manager.load_plugins())

        assert order == ["a", "b", "c"]
        assert loaded == ["a", "b", "c"]
        assert recorder.of(PluginEvent.PLUGINS_LOADED) == [
            {"loaded": ["a", "b", "c"], "failed": []}
        ]

    def test_handlers_fire_in_initialization_order(self, manager, static_source):
        static_source.add(make_descriptor("late", dependencies=["early"], hooks={HOOK: tagged("late")}))
        static_source.add(make_descriptor("early", hooks={HOOK: tagged("early")}))

        run(manager.load_plugins())

        assert run(manager.execute_hook(HOOK, {})) == ["early", "late"]

    def test_cycle_fails_whole_batch(self, manager, static_source):
        initialized = []
        static_source.add(
            make_descriptor("a", dependencies=["b"], initializer=lambda c: initialized.append("a"))
        )
        static_source.add(
            make_descriptor("b", dependencies=["a"], initializer=lambda c: initialized.append("b"))
        )
        static_source.add(make_descriptor("free", initializer=lambda c: initialized.append("free")))

        with pytest.raises(PluginDependencyError) as excinfo:
            run(manager.load_plugins())

        assert excinfo.value.cycle_at in {"a", "b"}
        assert initialized == []
        assert manager.get_installed_plugins() == []

    def test_missing_dependencies_are_skipped_in_bulk(self, manager, static_source):
        static_source.add(make_descriptor("publisher", dependencies=["not_installed"]))

        assert run(manager.load_plugins()) == ["publisher"]

    def test_initialization_failure_does_not_abort_batch(
        self, manager, static_source, recorder
    ):
        def broken(config):
            raise RuntimeError("bad credentials")

        static_source.add(make_descriptor("broken", initializer=broken))
        static_source.add(make_descriptor("healthy", hooks={HOOK: tagged("healthy")}))

        loaded = run(manager.load_plugins())

        assert loaded == ["healthy"]
        status = manager.get_plugin_status()
        assert status["broken"]["enabled"] is False
        assert "bad credentials" in status["broken"]["error_message"]
        assert status["healthy"]["enabled"] is True
        assert [p["plugin_name"] for p in recorder.of(PluginEvent.INIT_ERROR)] == ["broken"]

    def test_dependents_of_failed_plugin_are_not_initialized(
        self, manager, static_source, recorder
    ):
        initialized = []

        def broken(config):
            raise RuntimeError("boom")

        static_source.add(make_descriptor("base", initializer=broken))
        static_source.add(
            make_descriptor(
                "child", dependencies=["base"], initializer=lambda c: initialized.append("child")
            )
        )

        loaded = run(manager.load_plugins())

        assert loaded == []
        assert initialized == []
        errors = recorder.of(PluginEvent.INIT_ERROR)
        assert [p["plugin_name"] for p in errors] == ["base", "child"]
        assert isinstance(errors[1]["error"], PluginDependencyError)

    def test_invalid_and_duplicate_candidates_are_reported(
        self, manager, static_source, recorder
    ):
        static_source.add(make_descriptor("bad", hooks={"onLoad": tagged("x")}))
        static_source.add(make_descriptor("dup", version="1.0.0"))
        static_source.add(make_descriptor("dup", version="2.0.0"))

        loaded = run(manager.load_plugins())

        assert loaded == ["dup"]
        assert manager.get_plugin("dup").version == "1.0.0"
        errors = recorder.of(PluginEvent.LOAD_ERROR)
        assert isinstance(errors[0]["error"], PluginValidationError)
        assert isinstance(errors[1]["error"], DuplicatePluginError)

    def test_failing_source_does_not_stop_others(self, notifier, recorder):
        class BrokenSource(PluginSource):
            name = "broken"

            async def list_candidates(self, on_error=None):
                raise OSError("permission denied")

        good = StaticPluginSource([make_descriptor("ok")])
        manager = PluginManager(sources=[BrokenSource(), good], notifier=notifier)

        assert run(manager.load_plugins()) == ["ok"]
        assert recorder.of(PluginEvent.SOURCE_ERROR)[0]["source"] == "broken"

    def test_no_sources_is_an_empty_load(self, notifier):
        assert run(PluginManager(notifier=notifier).load_plugins()) == []


class TestStatusAndCleanup:
    def test_status_contents(self, manager):
        run(
            manager.install_plugin(
                make_descriptor("templates", hooks={"before_document_generation": tagged("t")})
            )
        )
        run(manager.install_plugin(make_descriptor("publisher", dependencies=["templates"])))

        status = manager.get_plugin_status()

        assert status["templates"]["hooks"] == ["before_document_generation"]
        assert status["templates"]["enabled"] is True
        assert status["publisher"]["dependencies"] == ["templates"]

    def test_status_is_idempotent(self, manager):
        run(manager.install_plugin(make_descriptor("x", hooks={HOOK: tagged("x")})))

        first = manager.get_plugin_status()
        second = manager.get_plugin_status()

        assert first == second
        first["x"]["hooks"].append("mutated")
        assert manager.get_plugin_status() == second

    def test_summary(self, manager):
        run(manager.install_plugin(make_descriptor("x", hooks={HOOK: tagged("x")})))
        run(manager.install_plugin(make_descriptor("y")))
        run(manager.disable_plugin("y"))

        assert manager.get_plugin_status_summary() == {
            "total_plugins": 2,
            "enabled_plugins": 1,
            "disabled_plugins": 1,
            "registered_handlers": 1,
            "available_hooks": [HOOK],
        }

    def test_cleanup_tolerates_failures_and_clears_state(self, manager, recorder):
        cleaned = []

        class Tracked(Instance):
            async def cleanup(self):
                cleaned.append(self.config["name"])
                await super().cleanup()

        def initializer(name, fail=False):
            return lambda config: Tracked({"name": name}, fail_cleanup=fail)

        run(manager.install_plugin(make_descriptor("a", initializer=initializer("a"))))
        run(
            manager.install_plugin(
                make_descriptor("b", hooks={HOOK: tagged("b")}, initializer=initializer("b", fail=True))
            )
        )
        run(manager.install_plugin(make_descriptor("c", initializer=initializer("c"))))

        results = run(manager.cleanup())

        assert cleaned == ["c", "b", "a"]
        assert results == {"c": True, "b": False, "a": True}
        assert manager.get_installed_plugins() == []
        assert manager.get_available_hooks() == []
        assert len(recorder.of(PluginEvent.CLEANUP_ERROR)) == 1
