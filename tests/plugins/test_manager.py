"""Tests for PluginManager — discovery, registration, and hook relay."""

from __future__ import annotations

from typing import Any

import pytest

from servicelayer.plugins.manager import PluginManager, hookimpl


class _DummyPlugin:
    """Minimal plugin for registration tests."""

    @hookimpl
    def action_entry(self, service: str, action: str, args: tuple, kwargs: dict) -> str:
        return f"{service}.{action}"


class _ExitPlugin:
    @hookimpl
    def action_exit(self, service: str, action: str, ok: bool) -> dict[str, Any]:
        return {"action": action, "ok": ok}


class _NoHooks:
    pass


class TestPluginManager:
    """Tests for the PluginManager class."""

    @pytest.mark.parametrize("hook_name", ["action_entry", "action_exit"])
    def test_hookspecs_registered(self, hook_name: str) -> None:
        pm = PluginManager()
        assert hasattr(pm.hook, hook_name)

    def test_register_plugin(self) -> None:
        pm = PluginManager()
        pm.register_plugin(_DummyPlugin(), name="dummy")
        assert "dummy" in pm.list_plugin_names()

    def test_register_plugin_default_name(self) -> None:
        pm = PluginManager()
        pm.register_plugin(_DummyPlugin())
        assert "_DummyPlugin" in pm.list_plugin_names()

    def test_unregister_plugin(self) -> None:
        pm = PluginManager()
        plugin = _DummyPlugin()
        pm.register_plugin(plugin, name="dummy")
        pm.unregister(plugin)
        assert "dummy" not in pm.list_plugin_names()

    def test_get_plugins_returns_registered(self) -> None:
        pm = PluginManager()
        plugin = _DummyPlugin()
        pm.register_plugin(plugin, name="test")
        assert plugin in pm.get_plugins()

    def test_is_loaded_false_before_discover(self) -> None:
        pm = PluginManager()
        assert pm.is_loaded is False

    def test_discover_marks_loaded(self) -> None:
        pm = PluginManager()
        pm.discover_and_load()
        assert pm.is_loaded is True


class TestHookDispatch:
    def test_entry_results_collected(self) -> None:
        pm = PluginManager()
        pm.register_plugin(_DummyPlugin())
        results = pm.hook.action_entry(service="UserService", action="create", args=(), kwargs={})
        assert results == ["UserService.create"]

    def test_implementations_may_take_fewer_args(self) -> None:
        pm = PluginManager()
        pm.register_plugin(_ExitPlugin())
        results = pm.hook.action_exit(
            service="UserService", action="find", args=(), kwargs={}, ok=False
        )
        assert results == [{"action": "find", "ok": False}]

    def test_no_implementations(self) -> None:
        pm = PluginManager()
        assert pm.hook.action_entry(service="S", action="a", args=(), kwargs={}) == []


class TestNormalizePluginInstances:
    def test_class_plugins_are_instantiated(self) -> None:
        pm = PluginManager()
        pm._pm.register(_DummyPlugin, name="entry-point-dummy")

        pm._normalize_plugin_instances()

        (plugin,) = pm.get_plugins()
        assert isinstance(plugin, _DummyPlugin)
        assert pm.list_plugin_names() == ["entry-point-dummy"]
        assert pm.hook.action_entry(service="S", action="a", args=(), kwargs={}) == ["S.a"]

    def test_has_hook_impls(self) -> None:
        assert PluginManager._has_hook_impls(_DummyPlugin) is True
        assert PluginManager._has_hook_impls(_NoHooks) is False
