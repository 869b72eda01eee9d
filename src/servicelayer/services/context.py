"""ServiceContext — one transaction, one unit of work, one finalization.

The caller (a request handler, a job, a script) owns the context: it opens
it with :meth:`ServiceContext.init`, passes it to any number of service
actions, then calls exactly one of :meth:`~ServiceContext.success` or
:meth:`~ServiceContext.error`.

Phase order on both paths::

    end hooks -> success|error hooks -> commit|rollback [-> after-commit hooks]

Hooks of one phase run concurrently and all settle before the next phase
starts. A hook failure rolls the transaction back, then propagates.

INVARIANT: The transaction is committed or rolled back at most once.
Finalizing a finished context raises :class:`AlreadyFinishedError`.
"""

from __future__ import annotations

import logging
from types import TracebackType
from typing import TYPE_CHECKING, Any

from servicelayer.exceptions import AlreadyFinishedError
from servicelayer.services._hooks import Hook, run_hooks

if TYPE_CHECKING:
    from servicelayer.infrastructure.database.transaction import Database, Transaction

logger = logging.getLogger(__name__)


class ServiceContext:
    """Owns the transaction of one unit of work and its lifecycle hooks.

    Usage::

        async with ServiceContext(database, caller_context=request) as ctx:
            await user_service.create(model=user, service_context=ctx)
            # success() on a clean exit, error() if the block raised
    """

    def __init__(self, database: Database, *, caller_context: Any = None) -> None:
        self._database = database
        self.caller_context = caller_context
        self.transaction: Transaction | None = None
        self.is_finished = False
        self._success_hooks: list[Hook] = []
        self._error_hooks: list[Hook] = []
        self._end_hooks: list[Hook] = []
        self._after_commit_hooks: list[Hook] = []

    async def init(self) -> ServiceContext:
        """Open the transaction. Must be called once, before anything else."""
        self.transaction = await self._database.begin_transaction()
        logger.debug("ServiceContext initialized")
        return self

    # ------------------------------------------------------------------
    # Hook registration
    # ------------------------------------------------------------------

    def on_success(self, callback: Hook) -> Hook:
        self._success_hooks.append(callback)
        return callback

    def on_error(self, callback: Hook) -> Hook:
        self._error_hooks.append(callback)
        return callback

    def on_end(self, callback: Hook) -> Hook:
        self._end_hooks.append(callback)
        return callback

    def after_commit(self, callback: Hook) -> Hook:
        """Run *callback* once the commit went through (success path only)."""
        self._after_commit_hooks.append(callback)
        return callback

    # ------------------------------------------------------------------
    # Finalization
    # ------------------------------------------------------------------

    async def end(self) -> None:
        """Run the end hooks and mark the context finished.

        Called by :meth:`success` and :meth:`error`; both paths run it once.
        """
        if self.is_finished:
            raise AlreadyFinishedError("ServiceContext already finished.")
        try:
            await self._run(self._end_hooks)
        finally:
            self.is_finished = True

    async def success(self) -> None:
        """Finish the unit of work and commit."""
        await self._finish(self._success_hooks, outcome="success")
        if self.transaction is not None:
            await self.transaction.commit()
            logger.debug("ServiceContext committed")
            await self._run(self._after_commit_hooks)

    async def error(self) -> None:
        """Finish the unit of work and roll back."""
        await self._finish(self._error_hooks, outcome="error")
        if self.transaction is not None:
            await self.transaction.rollback()
            logger.debug("ServiceContext rolled back")

    async def _finish(self, hooks: list[Hook], *, outcome: str) -> None:
        if self.is_finished:
            raise AlreadyFinishedError("ServiceContext already finished.")
        try:
            await self.end()
            await self._run(hooks)
        except Exception:
            logger.warning("%s hooks failed, rolling back", outcome, exc_info=True)
            if self.transaction is not None:
                await self.transaction.rollback()
            raise

    async def _run(self, hooks: list[Hook]) -> list[Any]:
        return await run_hooks(
            hooks,
            transaction=self.transaction,
            caller_context=self.caller_context,
        )

    # ------------------------------------------------------------------
    # Async context manager
    # ------------------------------------------------------------------

    async def __aenter__(self) -> ServiceContext:
        return await self.init()

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self.is_finished:
            return
        if exc_type is None:
            await self.success()
        else:
            await self.error()
