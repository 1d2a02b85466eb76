import pytest

from graphbatch.deferred import FirstElement, Lazy, MappedDeferred, Now


def test_now_is_resolved_immediately():
    deferred = Now(value=42)
    assert deferred.resolved
    assert deferred.get() == 42


def test_lazy_calls_producer_once():
    calls = []

    def producer():
        calls.append(1)
        return "value"

    deferred = Lazy(producer)
    assert not deferred.resolved
    assert deferred.get() == "value"
    assert deferred.get() == "value"
    assert len(calls) == 1


def test_lazy_caches_error_instance():
    calls = []

    def producer():
        calls.append(1)
        raise KeyError("boom")

    deferred = Lazy(producer)
    with pytest.raises(KeyError) as first:
        deferred.get()
    with pytest.raises(KeyError) as second:
        deferred.get()
    assert first.value is second.value
    assert deferred.resolved
    assert len(calls) == 1


def test_wrapper_propagates_upstream_error_unchanged():
    error = ValueError("upstream")

    def producer():
        raise error

    mapped = MappedDeferred(Lazy(producer), lambda value: value * 2)
    with pytest.raises(ValueError) as caught:
        mapped.get()
    assert caught.value is error


def test_mapped_deferred_applies_function():
    assert MappedDeferred(Now(value=21), lambda value: value * 2).get() == 42


@pytest.mark.parametrize(
    "value, expected",
    [
        ([3, 4], 3),
        ([], None),
    ],
)
def test_first_element(value, expected):
    assert FirstElement(Now(value=value)).get() == expected
