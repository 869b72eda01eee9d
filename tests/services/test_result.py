"""Tests for ServiceResponse and merge_responses."""

import pytest

from servicelayer.exceptions import NotFoundError, ValidationError
from servicelayer.services.result import MergedResponse, ServiceResponse, merge_responses


class TestServiceResponse:
    def test_defaults(self) -> None:
        result = ServiceResponse()
        assert result.error is None
        assert result.data is None
        assert result.meta_data == {}
        assert result.ok is True

    def test_error_construction(self) -> None:
        error = NotFoundError("missing", model="User")
        result = ServiceResponse(error=error)
        assert result.ok is False
        assert result.error is error
        assert result.error.code == "MODEL_NOT_FOUND"

    def test_error_wins_over_data(self) -> None:
        result = ServiceResponse(error=ValueError("boom"), data={"id": 1})
        assert result.ok is False

    def test_none_meta_data_becomes_empty(self) -> None:
        result = ServiceResponse(meta_data=None)
        assert result.meta_data == {}

    def test_frozen(self) -> None:
        result = ServiceResponse(data=1)
        with pytest.raises(Exception):
            result.data = 2  # type: ignore[misc]

    def test_with_meta_returns_copy(self) -> None:
        original = ServiceResponse(data="x", meta_data={"a": 1})
        updated = original.with_meta("b", 2)
        assert updated.meta_data == {"a": 1, "b": 2}
        assert list(updated.meta_data) == ["a", "b"]
        assert original.meta_data == {"a": 1}
        assert updated.data == "x"


class TestMergeResponses:
    def test_collects_errors_in_order(self) -> None:
        first = ValidationError("bad")
        second = ValueError("worse")
        merged = merge_responses(
            [ServiceResponse(error=first), ServiceResponse(data=1), ServiceResponse(error=second)]
        )
        assert merged.error == [first, second]

    def test_no_errors_is_none(self) -> None:
        merged = merge_responses([ServiceResponse(data=1), ServiceResponse(data=2)])
        assert merged.error is None
        assert merged.ok

    def test_data_keeps_positions(self) -> None:
        merged = merge_responses(
            [ServiceResponse(data="a"), ServiceResponse(error=ValueError()), ServiceResponse(data="c")]
        )
        assert merged.data == ["a", None, "c"]

    def test_explicit_data_wins(self) -> None:
        merged = merge_responses([ServiceResponse(data="a")], data={"user": "a"})
        assert merged.data == {"user": "a"}

    def test_empty_input(self) -> None:
        merged = merge_responses([])
        assert merged.error is None
        assert merged.data is None

    def test_returns_merged_response(self) -> None:
        merged = merge_responses([ServiceResponse(data=1)])
        assert isinstance(merged, MergedResponse)
        assert isinstance(merged, ServiceResponse)


class TestMergeAssociativity:
    @pytest.fixture
    def responses(self) -> list[ServiceResponse]:
        return [
            ServiceResponse(data="a"),
            ServiceResponse(error=ValueError("b")),
            ServiceResponse(data="c", error=KeyError("c")),
        ]

    def test_nested_merge_matches_flat_merge(self, responses: list[ServiceResponse]) -> None:
        a, b, c = responses
        nested = merge_responses([merge_responses([a, b]), c])
        flat = merge_responses([a, b, c])
        assert nested.error == flat.error
        assert nested.data == flat.data

    def test_right_nested_merge(self, responses: list[ServiceResponse]) -> None:
        a, b, c = responses
        nested = merge_responses([a, merge_responses([b, c])])
        flat = merge_responses([a, b, c])
        assert nested.error == flat.error
        assert nested.data == flat.data

    def test_merging_empty_merge_is_neutral(self, responses: list[ServiceResponse]) -> None:
        a, _, _ = responses
        assert merge_responses([merge_responses([]), a]).data == merge_responses([a]).data


class TestMergeWithExplicitData:
    def test_explicit_data_survives_second_merge(self) -> None:
        a, b, c = ServiceResponse(data=1), ServiceResponse(data=2), ServiceResponse(data=3)
        inner = merge_responses([a, b], data="X")
        outer = merge_responses([inner, c])
        assert outer.data == ["X", 3]
        assert inner.explicit_data is True
        assert outer.explicit_data is False

    def test_errors_of_explicit_merge_are_flattened(self) -> None:
        first, second = ValueError("a"), KeyError("c")
        inner = merge_responses([ServiceResponse(error=first), ServiceResponse(data=2)], data="X")
        outer = merge_responses([inner, ServiceResponse(error=second)])
        assert outer.error == [first, second]

    def test_explicit_merge_nested_twice(self) -> None:
        inner = merge_responses([ServiceResponse(data=1)], data="X")
        middle = merge_responses([inner, ServiceResponse(data=2)])
        outer = merge_responses([middle, ServiceResponse(data=3)])
        assert outer.data == ["X", 2, 3]
