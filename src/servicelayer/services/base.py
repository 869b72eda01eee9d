"""BaseService — foundation for all entity services.

Every service receives a :class:`Database` at construction time and
manages one :class:`Entity` subclass. Actions never own a transaction:
they write through the transaction of the :class:`ServiceContext` they are
given, or through a self-contained one when called without a context.

INVARIANT: Actions return ServiceResponse. Validation and persistence
failures are returned in ``error``, never raised.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import TYPE_CHECKING, Any, ClassVar

import structlog
from sqlalchemy.exc import SQLAlchemyError

from servicelayer.config.logging import ACTION_LOGGER
from servicelayer.config.settings import ServiceLayerSettings
from servicelayer.domain.entity import Entity, get_entity
from servicelayer.exceptions import (
    AlreadyFinishedError,
    NotFoundError,
    PersistenceError,
    ServiceConfigurationError,
)
from servicelayer.services._hooks import Hook, settle
from servicelayer.services.actions import ActionBinding, ActionCall, register_actions
from servicelayer.services.result import MergedResponse, ServiceResponse, merge_responses

if TYPE_CHECKING:
    from servicelayer.infrastructure.database.query import Query
    from servicelayer.infrastructure.database.transaction import Database, Transaction
    from servicelayer.plugins.manager import PluginManager
    from servicelayer.services.context import ServiceContext

logger = logging.getLogger(__name__)


class BaseService:
    """Base for services exposing create / update / delete / undelete / find.

    Subclasses name the entity they manage, either directly or by its
    registered class name (resolved on first use)::

        class UserService(BaseService):
            model = User

        class ProfileService(BaseService):
            model_name = "Profile"

    Each ``action_<name>`` method is exposed as ``<name>`` and wrapped with
    the service's entry and exit hooks (see :mod:`servicelayer.services.actions`).
    """

    model: ClassVar[type[Entity] | None] = None
    model_name: ClassVar[str | None] = None
    has_model: ClassVar[bool] = True

    _actions: ClassVar[dict[str, ActionBinding]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        cls._actions = register_actions(cls)

    def __init__(
        self,
        database: Database,
        *,
        model: type[Entity] | None = None,
        settings: ServiceLayerSettings | None = None,
        plugins: PluginManager | None = None,
    ) -> None:
        self._database = database
        self._settings = settings if settings is not None else ServiceLayerSettings()
        self._plugins = plugins
        self._model = model
        self._extra_entry_hooks: list[Hook] = []
        self._extra_exit_hooks: list[Hook] = []
        if self.has_model:
            self._check_model(self.get_model())

    # ------------------------------------------------------------------
    # Model resolution
    # ------------------------------------------------------------------

    @classmethod
    def resolve_model(cls) -> type[Entity] | None:
        """The class-level model, resolving ``model_name`` once per subclass."""
        if cls.__dict__.get("model") is None and cls.model_name is not None:
            try:
                cls.model = get_entity(cls.model_name)
            except KeyError as exc:
                msg = f"{cls.__name__} names unknown model {cls.model_name!r}"
                raise ServiceConfigurationError(msg) from exc
        return cls.model

    def get_model(self) -> type[Entity]:
        model = self._model if self._model is not None else self.resolve_model()
        if model is None:
            msg = f"{type(self).__name__} has no model configured"
            raise ServiceConfigurationError(msg)
        return model

    def _check_model(self, model: Any) -> None:
        if not (isinstance(model, type) and issubclass(model, Entity)):
            msg = (
                f"Expected {type(self).__name__} to handle an Entity subclass. "
                f"Given: {getattr(model, '__name__', model)!r}"
            )
            raise ServiceConfigurationError(msg)

    # ------------------------------------------------------------------
    # Action table and hooks
    # ------------------------------------------------------------------

    @classmethod
    def registered_actions(cls) -> dict[str, ActionBinding]:
        return cls._actions

    @classmethod
    def actions(cls) -> list[str]:
        """Public action names, sorted."""
        return sorted(cls._actions)

    def entry_hooks(self) -> list[Hook]:
        """Hooks run before every action, called with the :class:`ActionCall`."""
        hooks: list[Hook] = [self.on_entry, *self._extra_entry_hooks]
        if self._plugins is not None:
            hooks.append(self._plugin_entry)
        return hooks

    def exit_hooks(self) -> list[Hook]:
        """Hooks run after every action, called with the call and its result."""
        hooks: list[Hook] = [self.on_exit, *self._extra_exit_hooks]
        if self._plugins is not None:
            hooks.append(self._plugin_exit)
        return hooks

    def add_entry_hook(self, hook: Hook) -> Hook:
        self._extra_entry_hooks.append(hook)
        return hook

    def add_exit_hook(self, hook: Hook) -> Hook:
        self._extra_exit_hooks.append(hook)
        return hook

    def on_entry(self, call: ActionCall) -> bool:
        """Log the call when ``service.debug`` is enabled.

        ``service`` and ``action`` come from the interceptor's bound context.
        """
        if not self._settings.service.debug:
            return False
        structlog.get_logger(ACTION_LOGGER).info(
            "action.entry",
            args=call.args,
            kwargs=call.kwargs,
        )
        return True

    def on_exit(self, call: ActionCall, result: Any) -> bool:
        """Log the call, its status and result when ``service.debug`` is enabled."""
        if not self._settings.service.debug:
            return False
        structlog.get_logger(ACTION_LOGGER).info(
            "action.exit",
            status="error" if getattr(result, "error", None) is not None else "success",
            args=call.args,
            kwargs=call.kwargs,
            result=result,
        )
        return True

    def _plugin_entry(self, call: ActionCall) -> list[Any] | None:
        """Dispatch ``action_entry`` to plugins.

        INVARIANT: Plugin failures are warnings, never errors.
        """
        assert self._plugins is not None
        try:
            return self._plugins.hook.action_entry(
                service=type(self).__name__,
                action=call.action_name,
                args=call.args,
                kwargs=call.kwargs,
            )
        except Exception:
            logger.warning("Plugin action_entry failed for %s", call.action_name, exc_info=True)
            return None

    def _plugin_exit(self, call: ActionCall, result: Any) -> list[Any] | None:
        assert self._plugins is not None
        try:
            return self._plugins.hook.action_exit(
                service=type(self).__name__,
                action=call.action_name,
                args=call.args,
                kwargs=call.kwargs,
                ok=getattr(result, "error", None) is None,
            )
        except Exception:
            logger.warning("Plugin action_exit failed for %s", call.action_name, exc_info=True)
            return None

    # ------------------------------------------------------------------
    # Execution helpers
    # ------------------------------------------------------------------

    async def execute_callback(
        self,
        service_context: ServiceContext | None,
        callback: Callable[[Transaction], Awaitable[Any]],
    ) -> ServiceResponse:
        """Run *callback* with a transaction and wrap the outcome.

        Uses the context's transaction when there is one, otherwise a
        self-contained transaction that commits when *callback* returns.
        Errors are captured into ``ServiceResponse.error``; database errors
        become :class:`PersistenceError`. Writing through a finished context
        raises :class:`AlreadyFinishedError`.
        """
        _ensure_open(service_context)
        transaction = service_context.transaction if service_context is not None else None
        if transaction is not None:
            return await self._capture(callback(transaction))

        async def _standalone() -> Any:
            async with self._database.transaction() as txn:
                return await callback(txn)

        return await self._capture(_standalone())

    async def _capture(self, operation: Awaitable[Any]) -> ServiceResponse:
        """Await *operation*, turning its outcome into a ServiceResponse."""
        try:
            data = await operation
        except (ServiceConfigurationError, AlreadyFinishedError):
            raise
        except SQLAlchemyError as exc:
            logger.debug("Persistence failure in %s", type(self).__name__, exc_info=True)
            error = PersistenceError(str(exc))
            error.__cause__ = exc
            return ServiceResponse(error=error)
        except Exception as exc:
            logger.debug("Action failure in %s: %r", type(self).__name__, exc)
            return ServiceResponse(error=exc)
        return ServiceResponse(data=data)

    def query(
        self,
        *,
        by_active: bool = False,
        service_context: ServiceContext | None = None,
    ) -> Query:
        """A query on the model, bound to the context's transaction if any.

        Raises :class:`AlreadyFinishedError` for a finished context.
        """
        _ensure_open(service_context)
        query = self.get_model().query(self._database)
        if service_context is not None and service_context.transaction is not None:
            query.transacting(service_context.transaction)
        return query.active() if by_active else query

    def check_responses(
        self,
        responses: Iterable[ServiceResponse] = (),
        data: Any = None,
    ) -> MergedResponse:
        """Merge several action results into one (see :func:`merge_responses`)."""
        return merge_responses(responses, data)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def action_create(
        self,
        *,
        model: Entity,
        service_context: ServiceContext | None = None,
    ) -> ServiceResponse:
        """Validate and insert *model*."""
        error = await model.validate()
        if error is not None:
            return ServiceResponse(error=error)

        async def _create(transaction: Transaction) -> Entity:
            await model.save(transaction)
            return model

        return await self.execute_callback(service_context, _create)

    async def action_update(
        self,
        *,
        model: Entity,
        service_context: ServiceContext | None = None,
    ) -> ServiceResponse:
        """Validate and persist the changed attributes of *model*."""
        error = await model.validate()
        if error is not None:
            return ServiceResponse(error=error)

        async def _update(transaction: Transaction) -> Entity:
            await model.save(transaction)
            return model

        return await self.execute_callback(service_context, _update)

    async def action_delete(
        self,
        *,
        model: Entity,
        service_context: ServiceContext | None = None,
        soft_delete: bool = False,
    ) -> ServiceResponse:
        """Soft-delete (keep the row) or permanently delete *model*."""

        async def _delete(transaction: Transaction) -> Entity:
            if soft_delete:
                await model.soft_delete(transaction)
            else:
                deleter = getattr(model, "delete_within_transaction", None)
                if deleter is not None:
                    await deleter(transaction)
                else:
                    await settle(model.delete())
            return model

        return await self.execute_callback(service_context, _delete)

    async def action_undelete(
        self,
        *,
        model: Entity,
        service_context: ServiceContext | None = None,
    ) -> ServiceResponse:
        async def _undelete(transaction: Transaction) -> Entity:
            await model.undelete(transaction)
            return model

        return await self.execute_callback(service_context, _undelete)

    async def action_find(
        self,
        *,
        where: dict[str, Any],
        by_active: bool = False,
        service_context: ServiceContext | None = None,
    ) -> ServiceResponse:
        """Exactly one row matching *where*, else a NotFoundError envelope."""
        query = self.query(by_active=by_active, service_context=service_context).where(where)
        return await self._capture(query.first_or_fail())

    async def action_find_or_create(
        self,
        *,
        where: dict[str, Any],
        model_data: dict[str, Any] | None = None,
        service_context: ServiceContext | None = None,
        by_active: bool = False,
    ) -> ServiceResponse:
        """The row matching *where*, or a new one built from *model_data*."""
        found = await self.find(where=where, by_active=by_active, service_context=service_context)
        if found.ok:
            return ServiceResponse(data=found.data)
        if not isinstance(found.error, NotFoundError):
            return ServiceResponse(error=found.error)
        entity = self.get_model()(model_data if model_data is not None else where)
        return await self.create(model=entity, service_context=service_context)


def _ensure_open(service_context: ServiceContext | None) -> None:
    if service_context is not None and service_context.is_finished:
        raise AlreadyFinishedError("ServiceContext already finished.")


BaseService._actions = register_actions(BaseService)
