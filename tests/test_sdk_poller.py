from __future__ import annotations

import threading

import pytest

from azure_extensions_cli.errors import (
    InvalidArgumentError,
    MalformedResponseError,
    ManagementRequestError,
    OperationCancelledError,
    OperationFailedError,
    OperationQueryFailedError,
    OperationTimedOutError,
    TransportError,
)
from azure_extensions_cli.models import OperationStatus
from azure_extensions_cli.poller import OperationPoller


class _Clock:
    def __init__(self) -> None:
        self.current = 0.0
        self.sleeps: list[float] = []

    def time(self) -> float:
        return self.current

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.current += seconds


class _Source:
    """Replays canned statuses (or errors); the last entry repeats forever."""

    def __init__(self, *items: object) -> None:
        self.items = list(items)
        self.queries: list[str] = []

    def __call__(self, operation_id: str) -> OperationStatus:
        self.queries.append(operation_id)
        item = self.items.pop(0) if len(self.items) > 1 else self.items[0]
        if isinstance(item, Exception):
            raise item
        return OperationStatus(operation_id=operation_id, status=item)  # type: ignore[arg-type]


def _poller(source: _Source, clock: _Clock, **kwargs) -> OperationPoller:
    return OperationPoller(
        status_source=source,
        interval=kwargs.pop("interval", 1.0),
        timeout=kwargs.pop("timeout", 60.0),
        clock=clock.time,
        sleep=clock.sleep,
        **kwargs,
    )


def test_wait_succeeds_after_in_progress() -> None:
    clock = _Clock()
    source = _Source("InProgress", "InProgress", "Succeeded")

    result = _poller(source, clock).wait("op-1")

    assert result.state == "Succeeded"
    assert result.succeeded
    assert result.queries == 3
    assert len(source.queries) == 3
    assert clock.sleeps == [1.0, 1.0]


def test_wait_times_out_after_three_queries() -> None:
    clock = _Clock()
    source = _Source("InProgress")

    result = _poller(source, clock, timeout=2.5).wait("op-1")

    assert result.state == "TimedOut"
    assert len(source.queries) == 3
    assert clock.sleeps == [1.0, 1.0, 0.5]
    assert clock.current == pytest.approx(2.5)
    with pytest.raises(OperationTimedOutError):
        result.raise_for_state()


def test_wait_never_overruns_deadline_plus_interval() -> None:
    for deadline in (0.1, 1.0, 3.7, 10.0):
        clock = _Clock()
        result = _poller(_Source("InProgress"), clock, interval=2.0, timeout=deadline).wait("op")
        assert result.state == "TimedOut"
        assert clock.current <= deadline + 2.0


def test_failed_operation_captures_server_error() -> None:
    clock = _Clock()

    def source(operation_id: str) -> OperationStatus:
        return OperationStatus(
            operation_id=operation_id,
            status="Failed",
            error_code="ConflictError",
            error_message="version already published",
        )

    result = OperationPoller(status_source=source, clock=clock.time, sleep=clock.sleep).wait("op")

    assert result.state == "Failed"
    assert result.reason == "OperationFailed"
    assert result.queries == 1
    assert clock.sleeps == []
    with pytest.raises(OperationFailedError) as excinfo:
        result.raise_for_state()
    assert excinfo.value.error_code == "ConflictError"
    assert "version already published" in str(excinfo.value)


def test_consecutive_query_failures_escalate() -> None:
    clock = _Clock()
    source = _Source(
        TransportError("connection refused"),
        TransportError("connection refused"),
        TransportError("connection refused"),
        "Succeeded",
    )

    result = _poller(source, clock, max_query_failures=3).wait("op-1")

    assert result.state == "Failed"
    assert result.reason == "OperationQueryFailed"
    assert len(source.queries) == 3
    assert isinstance(result.cause, TransportError)
    with pytest.raises(OperationQueryFailedError):
        result.raise_for_state()


def test_client_error_on_status_query_is_not_retried() -> None:
    clock = _Clock()
    forbidden = ManagementRequestError("forbidden", status_code=403, error_code="ForbiddenError")
    source = _Source(forbidden, "Succeeded")

    result = _poller(source, clock, max_query_failures=3).wait("op-1")

    assert result.state == "Failed"
    assert result.reason == "OperationQueryFailed"
    assert result.cause is forbidden
    assert len(source.queries) == 1
    assert clock.sleeps == []


@pytest.mark.parametrize("status_code", [408, 429, 503])
def test_throttling_and_server_errors_are_retried(status_code: int) -> None:
    clock = _Clock()
    source = _Source(ManagementRequestError("busy", status_code=status_code), "Succeeded")

    result = _poller(source, clock, max_query_failures=3).wait("op-1")

    assert result.state == "Succeeded"
    assert len(source.queries) == 2


def test_transient_failures_reset_after_success() -> None:
    clock = _Clock()
    source = _Source(
        TransportError("reset"),
        MalformedResponseError("truncated"),
        "InProgress",
        TransportError("reset"),
        TransportError("reset"),
        "Succeeded",
    )

    result = _poller(source, clock, max_query_failures=3).wait("op-1")

    assert result.state == "Succeeded"
    assert len(source.queries) == 6
    assert len(clock.sleeps) == 5


def test_unexpected_errors_propagate() -> None:
    clock = _Clock()
    source = _Source(KeyError("bug"))
    with pytest.raises(KeyError):
        _poller(source, clock).wait("op-1")


def test_cancel_before_first_query() -> None:
    clock = _Clock()
    source = _Source("InProgress")
    cancel = threading.Event()
    cancel.set()

    result = _poller(source, clock).wait("op-1", cancel=cancel)

    assert result.state == "Cancelled"
    assert source.queries == []
    with pytest.raises(OperationCancelledError):
        result.raise_for_state()


def test_cancel_observed_between_polls() -> None:
    clock = _Clock()
    cancel = threading.Event()
    source = _Source("InProgress")

    def sleep(seconds: float) -> None:
        clock.sleep(seconds)
        if len(clock.sleeps) == 2:
            cancel.set()

    poller = OperationPoller(
        status_source=source, interval=1.0, timeout=60.0, clock=clock.time, sleep=sleep
    )
    result = poller.wait("op-1", cancel=cancel)

    assert result.state == "Cancelled"
    assert len(source.queries) == 2


def test_wait_is_idempotent_for_finished_operation() -> None:
    clock = _Clock()
    source = _Source("Succeeded")
    poller = _poller(source, clock)

    first = poller.wait("op-1")
    second = poller.wait("op-1")

    assert first.state == second.state == "Succeeded"
    assert first.operation_id == second.operation_id == "op-1"
    assert len(source.queries) == 2


def test_per_call_overrides() -> None:
    clock = _Clock()
    source = _Source("InProgress", "Succeeded")

    result = _poller(source, clock, interval=5.0).wait("op-1", interval=0.25)

    assert result.state == "Succeeded"
    assert clock.sleeps == [0.25]


@pytest.mark.parametrize(
    "kwargs",
    [{"interval": 0}, {"timeout": -1}, {"max_query_failures": 0}],
)
def test_invalid_configuration_rejected(kwargs: dict) -> None:
    with pytest.raises(InvalidArgumentError):
        OperationPoller(status_source=_Source("Succeeded"), **kwargs)


def test_empty_operation_id_rejected() -> None:
    source = _Source("Succeeded")
    with pytest.raises(InvalidArgumentError):
        OperationPoller(status_source=source).wait("")
    assert source.queries == []
