import pytest

from pitchai.backend.errors import GenerationError
from pitchai.backend.retry import call_with_retries


def test_single_attempt_by_default():
    calls = []

    def fail():
        calls.append(1)
        raise GenerationError("nope")

    with pytest.raises(GenerationError):
        call_with_retries(fail, operation="test", sleep=lambda _: None)
    assert len(calls) == 1


def test_retries_with_linear_backoff():
    calls = []
    delays = []

    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise GenerationError("busy")
        return "ok"

    result = call_with_retries(
        flaky,
        operation="test",
        max_retries=3,
        backoff_seconds=0.5,
        retry_on=(GenerationError,),
        sleep=delays.append,
    )

    assert result == "ok"
    assert delays == [0.5, 1.0]


def test_non_matching_errors_are_not_retried():
    calls = []

    def fail():
        calls.append(1)
        raise KeyError("bad")

    with pytest.raises(KeyError):
        call_with_retries(fail, operation="test", max_retries=5, retry_on=(GenerationError,), sleep=lambda _: None)
    assert len(calls) == 1
