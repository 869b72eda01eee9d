"""Tests for the action table and ActionInterceptor."""

from __future__ import annotations

import asyncio
import inspect
from typing import Any

import pytest

from servicelayer.services.actions import (
    ActionCall,
    ActionInterceptor,
    action_method_name,
)
from servicelayer.services.base import BaseService
from servicelayer.services.result import ServiceResponse

SHARED = ServiceResponse(data="shared")


class EchoService(BaseService):
    """Model-less service with sync, async and non-envelope actions."""

    has_model = False

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.prefix = "echo:"
        self.events: list[str] = []

    def action_echo(self, value: Any) -> ServiceResponse:
        self.events.append("action")
        return ServiceResponse(data=f"{self.prefix}{value}")

    async def action_shout(self, *, text: str) -> ServiceResponse:
        await asyncio.sleep(0)
        return ServiceResponse(data=text.upper())

    def action_raw(self) -> int:
        return 42

    def action_shared(self) -> ServiceResponse:
        return SHARED

    def action_fail(self) -> ServiceResponse:
        return ServiceResponse(error=ValueError("nope"))

    async def ping(self) -> str:
        return "pong"


class CustomEchoService(EchoService):
    async def echo(self, value: Any) -> str:
        return "hand-written"


class OverridingEchoService(EchoService):
    def action_echo(self, value: Any) -> ServiceResponse:
        return ServiceResponse(data=f"override:{value}")


@pytest.fixture
def service() -> EchoService:
    return EchoService(None)  # type: ignore[arg-type]


class TestActionTable:
    def test_method_name_convention(self) -> None:
        assert action_method_name("create") == "action_create"
        assert action_method_name("find_or_create") == "action_find_or_create"

    def test_registers_subclass_actions(self) -> None:
        table = EchoService.registered_actions()
        assert table["echo"].handler_name == "action_echo"
        assert table["shout"].handler_name == "action_shout"

    def test_inherits_base_actions(self) -> None:
        names = EchoService.actions()
        for name in ("create", "update", "delete", "undelete", "find", "find_or_create"):
            assert name in names

    def test_base_service_table(self) -> None:
        assert BaseService.actions() == [
            "create",
            "delete",
            "find",
            "find_or_create",
            "undelete",
            "update",
        ]

    def test_non_action_methods_untouched(self, service: EchoService) -> None:
        assert "ping" not in EchoService.registered_actions()
        assert "query" not in EchoService.registered_actions()

    def test_public_methods_are_coroutines(self) -> None:
        assert inspect.iscoroutinefunction(EchoService.echo)
        assert EchoService.echo.__name__ == "echo"

    def test_hand_written_public_method_wins(self) -> None:
        svc = CustomEchoService(None)  # type: ignore[arg-type]
        assert inspect.iscoroutinefunction(svc.echo)
        assert "echo" in CustomEchoService.registered_actions()

    async def test_hand_written_public_method_is_called(self) -> None:
        svc = CustomEchoService(None)  # type: ignore[arg-type]
        assert await svc.echo(1) == "hand-written"

    async def test_overridden_handler_is_used(self) -> None:
        svc = OverridingEchoService(None)  # type: ignore[arg-type]
        result = await svc.echo(1)
        assert result.data == "override:1"


class TestInterception:
    async def test_sync_action(self, service: EchoService) -> None:
        result = await service.echo(5)
        assert result.data == "echo:5"

    async def test_async_action(self, service: EchoService) -> None:
        result = await service.shout(text="hi")
        assert result.data == "HI"

    async def test_meta_data_key_and_lengths(self, service: EchoService) -> None:
        result = await service.echo(1)
        meta = result.meta_data["echo_meta_data"]
        assert len(meta["result_on_entry_functions"]) == len(service.entry_hooks())
        assert len(meta["result_on_exit_functions"]) == len(service.exit_hooks())

    async def test_debug_hooks_report_false_when_disabled(self, service: EchoService) -> None:
        result = await service.shout(text="x")
        assert result.meta_data["shout_meta_data"] == {
            "result_on_entry_functions": [False],
            "result_on_exit_functions": [False],
        }

    async def test_added_hooks_extend_results(self, service: EchoService) -> None:
        service.add_entry_hook(lambda call: f"entry:{call.action_name}")

        async def async_exit(call: ActionCall, result: Any) -> str:
            return f"exit:{result.data}"

        service.add_exit_hook(async_exit)
        service.add_exit_hook(lambda call, result: "second")

        result = await service.echo("v")
        meta = result.meta_data["echo_meta_data"]
        assert meta["result_on_entry_functions"] == [False, "entry:echo"]
        assert meta["result_on_exit_functions"] == [False, "exit:echo:v", "second"]

    async def test_hooks_see_call_details(self, service: EchoService) -> None:
        seen: list[ActionCall] = []
        service.add_entry_hook(seen.append)
        await service.shout(text="hey")
        (call,) = seen
        assert call.action_name == "shout"
        assert call.args == ()
        assert call.kwargs == {"text": "hey"}
        assert call.target.__self__ is service
        assert call.target.__func__ is EchoService.action_shout

    async def test_exit_hook_receives_result(self, service: EchoService) -> None:
        results: list[Any] = []
        service.add_exit_hook(lambda call, result: results.append(result))
        await service.echo(3)
        assert results[0].data == "echo:3"

    async def test_order_entry_action_exit(self, service: EchoService) -> None:
        service.add_entry_hook(lambda call: service.events.append("entry"))
        service.add_exit_hook(lambda call, result: service.events.append("exit"))
        await service.echo(1)
        assert service.events == ["entry", "action", "exit"]

    async def test_self_binding_preserved(self, service: EchoService) -> None:
        service.prefix = "changed:"
        result = await service.echo(1)
        assert result.data == "changed:1"

    async def test_non_envelope_result_passes_through(self, service: EchoService) -> None:
        assert await service.raw() == 42

    async def test_envelope_is_copied_not_mutated(self, service: EchoService) -> None:
        result = await service.shared()
        assert "shared_meta_data" in result.meta_data
        assert SHARED.meta_data == {}

    async def test_failed_envelope_still_annotated(self, service: EchoService) -> None:
        result = await service.fail()
        assert not result.ok
        assert "fail_meta_data" in result.meta_data

    async def test_failing_entry_hook_propagates(self, service: EchoService) -> None:
        def broken(call: ActionCall) -> None:
            raise RuntimeError("instrumentation broke")

        service.add_entry_hook(broken)
        with pytest.raises(RuntimeError, match="instrumentation broke"):
            await service.echo(1)
        assert service.events == []

    async def test_interceptor_direct(self, service: EchoService) -> None:
        result = await ActionInterceptor(service).invoke("echo", 7)
        assert result.data == "echo:7"
        assert "echo_meta_data" in result.meta_data

    async def test_unknown_action(self, service: EchoService) -> None:
        with pytest.raises(KeyError):
            await ActionInterceptor(service).invoke("missing")


class TestDebugHooks:
    async def test_enabled_debug_returns_true(self, debug_settings: Any) -> None:
        svc = EchoService(None, settings=debug_settings)  # type: ignore[arg-type]
        result = await svc.echo(1)
        assert result.meta_data["echo_meta_data"] == {
            "result_on_entry_functions": [True],
            "result_on_exit_functions": [True],
        }

    async def test_debug_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SERVICELAYER_SERVICE__DEBUG", "true")
        svc = EchoService(None)  # type: ignore[arg-type]
        result = await svc.echo(1)
        assert result.meta_data["echo_meta_data"]["result_on_entry_functions"] == [True]
