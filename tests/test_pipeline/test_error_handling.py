"""Tests for the pipeline error taxonomy."""

import pytest

from beststories.pipeline.error_handling import (
    AggregateFailure,
    BestStoriesError,
    DecodeError,
    OperationCancelled,
    TransportError,
    UpstreamError,
    UpstreamStatusError,
)


class TestCustomExceptions:
    """Tests for custom exception classes."""

    def test_base_error_with_context(self):
        error = BestStoriesError("Test error", item_id=8863, attempt=2)
        assert str(error) == "Test error"
        assert error.context == {"item_id": 8863, "attempt": 2}
        assert error.timestamp > 0

    def test_upstream_error_details(self):
        error = UpstreamError("Upstream failed", url="https://hn/item/1.json", status_code=503)
        assert error.url == "https://hn/item/1.json"
        assert error.status_code == 503
        assert str(error) == "Upstream failed (status 503)"

    def test_upstream_error_without_status(self):
        error = UpstreamError("Connection refused", url="https://hn/beststories.json")
        assert error.status_code is None
        assert str(error) == "Connection refused"

    @pytest.mark.parametrize("cls", [TransportError, DecodeError, UpstreamStatusError])
    def test_upstream_subclasses(self, cls):
        error = cls("boom")
        assert isinstance(error, UpstreamError)
        assert isinstance(error, BestStoriesError)

    def test_operation_cancelled_default_message(self):
        error = OperationCancelled()
        assert str(error) == "Operation cancelled"
        assert not isinstance(error, UpstreamError)

    def test_aggregate_failure_chains_cause(self):
        cause = TransportError("down")
        try:
            try:
                raise cause
            except TransportError as e:
                raise AggregateFailure("Failed to fetch best stories", requested=5) from e
        except AggregateFailure as failure:
            assert failure.__cause__ is cause
            assert failure.context["requested"] == 5
