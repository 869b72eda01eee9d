"""Pluggy hook specifications for service action events.

Hooks are called synchronously from the action interceptor of every
service constructed with a PluginManager. Each implementation's return
value is collected into the action's ``meta_data``.
"""

from __future__ import annotations

from typing import Any

import pluggy

hookspec = pluggy.HookspecMarker("servicelayer")


class ServiceLayerHookSpec:
    """Hook specifications for the servicelayer plugin system."""

    @hookspec
    def action_entry(
        self,
        service: str,
        action: str,
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
    ) -> Any:
        """Called before a service action runs."""

    @hookspec
    def action_exit(
        self,
        service: str,
        action: str,
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
        ok: bool,
    ) -> Any:
        """Called after a service action returned; *ok* is False when it failed."""
