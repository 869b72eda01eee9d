"""ServiceResponse — the universal action contract.

INVARIANT: Every action returns a ServiceResponse. A non-None ``error``
means the action failed, whatever ``data`` holds.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ServiceResponse(BaseModel):
    """Result envelope of a service action.

    Attributes:
        error: The failure (usually a :class:`~servicelayer.exceptions.ServiceLayerError`).
        data: The produced, found or updated entity.
        meta_data: Diagnostic values attached by the action interceptor.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    error: Any = None
    data: Any = None
    meta_data: dict[str, Any] = Field(default_factory=dict)

    @field_validator("meta_data", mode="before")
    @classmethod
    def _default_meta_data(cls, value: Any) -> Any:
        return {} if value is None else value

    @property
    def ok(self) -> bool:
        return self.error is None

    def with_meta(self, key: str, value: Any) -> ServiceResponse:
        """Return a copy with *key* set in ``meta_data``.

        Uses model_copy(update=...) since ServiceResponse is frozen.
        """
        return self.model_copy(update={"meta_data": {**self.meta_data, key: value}})


class MergedResponse(ServiceResponse):
    """A ServiceResponse folded from several others.

    ``parts`` keeps the flattened source envelopes so a merged response can
    be merged again without nesting its error and data lists. A merge built
    with explicit ``data`` stays whole (``explicit_data``): merged again, it
    contributes its errors and one data entry.
    """

    parts: tuple[ServiceResponse, ...] = ()
    explicit_data: bool = False


def _flatten(responses: Iterable[ServiceResponse]) -> Iterator[ServiceResponse]:
    for response in responses:
        if isinstance(response, MergedResponse) and not response.explicit_data:
            yield from response.parts
        else:
            yield response


def _errors(part: ServiceResponse) -> list[Any]:
    if isinstance(part, MergedResponse):
        return list(part.error or [])
    return [] if part.error is None else [part.error]


def merge_responses(
    responses: Iterable[ServiceResponse],
    data: Any = None,
) -> MergedResponse:
    """Fold *responses* into one envelope.

    ``error`` is the list of every non-None error in input order, or None.
    ``data`` is *data* when given, otherwise one positional entry per
    response (None where a response carried no data), or None for no input.
    Merged inputs are flattened, so the fold is associative; a merge that
    was given explicit *data* counts as one entry holding that data.
    """
    parts = tuple(_flatten(responses))
    errors = [error for part in parts for error in _errors(part)]
    explicit = data is not None
    if not explicit and parts:
        data = [part.data for part in parts]
    return MergedResponse(error=errors or None, data=data, parts=parts, explicit_data=explicit)
