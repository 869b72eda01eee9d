"""Action table and interceptor.

A service implements the action ``create`` as the method ``action_create``.
When a service class is created, :func:`register_actions` records every
``action_*`` method in a per-class table and installs the public ``create``
method, which routes each call through :class:`ActionInterceptor`:

1. every entry hook runs concurrently with the :class:`ActionCall`;
2. the bound ``action_*`` handler runs (sync or async);
3. every exit hook runs concurrently with the call and the result;
4. the hook results are attached to the returned ServiceResponse under
   ``meta_data["<action>_meta_data"]``.

Log records emitted during the call carry ``service`` and ``action``
structlog context variables.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog

from servicelayer.services._hooks import run_hooks, settle
from servicelayer.services.result import ServiceResponse

if TYPE_CHECKING:
    from servicelayer.services.base import BaseService

ACTION_PREFIX = "action_"
META_DATA_SUFFIX = "_meta_data"


def action_method_name(name: str) -> str:
    """Map a public action name to its handler (``create`` -> ``action_create``)."""
    return f"{ACTION_PREFIX}{name}"


@dataclass(frozen=True)
class ActionBinding:
    """One row of a service class's action table."""

    name: str
    handler_name: str


@dataclass(frozen=True)
class ActionCall:
    """An action invocation as seen by entry and exit hooks."""

    action_name: str
    target: Callable[..., Any]
    args: tuple[Any, ...] = ()
    kwargs: dict[str, Any] = field(default_factory=dict)


class ActionInterceptor:
    """Runs one service's actions with its entry and exit hooks around them."""

    def __init__(self, service: BaseService) -> None:
        self._service = service

    async def invoke(self, action_name: str, *args: Any, **kwargs: Any) -> Any:
        binding = type(self._service).registered_actions()[action_name]
        call = ActionCall(
            action_name=action_name,
            target=getattr(self._service, binding.handler_name),
            args=args,
            kwargs=kwargs,
        )

        with structlog.contextvars.bound_contextvars(
            service=type(self._service).__name__, action=action_name
        ):
            entry_results = await run_hooks(self._service.entry_hooks(), call)

            result = await settle(call.target(*call.args, **call.kwargs))

            exit_results = await run_hooks(self._service.exit_hooks(), call, result)

        if isinstance(result, ServiceResponse):
            result = result.with_meta(
                f"{action_name}{META_DATA_SUFFIX}",
                {
                    "result_on_entry_functions": entry_results,
                    "result_on_exit_functions": exit_results,
                },
            )
        return result


def _public_action(binding: ActionBinding, handler: Callable[..., Any]) -> Callable[..., Any]:
    async def invoke(self: BaseService, *args: Any, **kwargs: Any) -> Any:
        return await ActionInterceptor(self).invoke(binding.name, *args, **kwargs)

    invoke.__name__ = binding.name
    invoke.__qualname__ = binding.name
    invoke.__doc__ = handler.__doc__
    invoke.__action_proxy__ = True  # type: ignore[attr-defined]
    return invoke


def register_actions(cls: type[BaseService]) -> dict[str, ActionBinding]:
    """Build *cls*'s action table and install its public action methods.

    Public names the class (or a base) defines itself are left alone.
    """
    table: dict[str, ActionBinding] = {}
    for attr in dir(cls):
        if not attr.startswith(ACTION_PREFIX) or not callable(getattr(cls, attr)):
            continue
        name = attr[len(ACTION_PREFIX) :]
        if not name:
            continue
        table[name] = ActionBinding(name=name, handler_name=attr)

    for name, binding in table.items():
        existing = getattr(cls, name, None)
        if existing is not None and not getattr(existing, "__action_proxy__", False):
            continue
        setattr(cls, name, _public_action(binding, getattr(cls, binding.handler_name)))
    return table
