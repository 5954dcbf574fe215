"""Polling of asynchronous Service Management operations.

An operation moves through these states while it is waited on::

    Pending -> Polling -> Succeeded | Failed | TimedOut | Cancelled

The deadline and the cancellation signal are checked at the top of every
iteration, before a status query is issued. Sleeps are clamped to the time
left before the deadline, so with an interval of 1s and a deadline of 2.5s
queries run at t=0, 1 and 2 and the wait ends with ``TimedOut`` at t=2.5
after exactly three queries.

Transport errors and malformed status payloads do not change the state. They
are retried after the usual interval, and after ``max_query_failures``
consecutive failures the wait ends as ``Failed`` with reason
``OperationQueryFailed``. A 4xx answer other than 408 or 429 ends the wait
the same way after a single query.

The poller keeps no per-operation state between calls: waiting again on an
operation that already finished costs one confirming status query.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Literal, Protocol

from azure_extensions_cli.errors import (
    InvalidArgumentError,
    MalformedResponseError,
    ManagementRequestError,
    TransportError,
)
from azure_extensions_cli.models import (
    REASON_OPERATION_FAILED,
    REASON_QUERY_FAILED,
    OperationResult,
    OperationStatus,
)

DEFAULT_POLL_INTERVAL = 5.0
DEFAULT_POLL_TIMEOUT = 600.0
DEFAULT_MAX_QUERY_FAILURES = 3

PollerState = Literal["Pending", "Polling", "Succeeded", "Failed", "TimedOut", "Cancelled"]
NON_TERMINAL_STATES: tuple[PollerState, ...] = ("Pending", "Polling")
TRANSIENT_CLIENT_ERRORS = (408, 429)

StatusSource = Callable[[str], OperationStatus]


def _is_permanent(exc: Exception) -> bool:
    if not isinstance(exc, ManagementRequestError) or exc.status_code is None:
        return False
    return 400 <= exc.status_code < 500 and exc.status_code not in TRANSIENT_CLIENT_ERRORS


class CancelSignal(Protocol):
    def is_set(self) -> bool: ...


@dataclass
class OperationPoller:
    status_source: StatusSource
    interval: float = DEFAULT_POLL_INTERVAL
    timeout: float = DEFAULT_POLL_TIMEOUT
    max_query_failures: int = DEFAULT_MAX_QUERY_FAILURES
    clock: Callable[[], float] = time.monotonic
    sleep: Callable[[float], None] = time.sleep

    def __post_init__(self) -> None:
        if self.interval <= 0:
            raise InvalidArgumentError("poll interval must be positive")
        if self.timeout <= 0:
            raise InvalidArgumentError("poll timeout must be positive")
        if self.max_query_failures < 1:
            raise InvalidArgumentError("max_query_failures must be >= 1")

    def wait(
        self,
        operation_id: str,
        *,
        timeout: float | None = None,
        interval: float | None = None,
        cancel: CancelSignal | None = None,
    ) -> OperationResult:
        if not operation_id:
            raise InvalidArgumentError("operation_id must not be empty")
        deadline = self.timeout if timeout is None else timeout
        poll_interval = self.interval if interval is None else interval
        if deadline <= 0 or poll_interval <= 0:
            raise InvalidArgumentError("poll timeout and interval must be positive")

        started = self.clock()
        state: PollerState = "Pending"
        outcome: dict[str, object] = {}
        queries = 0
        failures = 0

        while state in NON_TERMINAL_STATES:
            if cancel is not None and cancel.is_set():
                state = "Cancelled"
                break
            if self.clock() - started >= deadline:
                state = "TimedOut"
                break

            state = "Polling"
            queries += 1
            try:
                status = self.status_source(operation_id)
            except (TransportError, MalformedResponseError) as exc:
                failures += 1
                if failures >= self.max_query_failures or _is_permanent(exc):
                    state = "Failed"
                    outcome = {"reason": REASON_QUERY_FAILED, "cause": exc}
                    break
            else:
                failures = 0
                if status.status == "Succeeded":
                    state = "Succeeded"
                    break
                if status.status == "Failed":
                    state = "Failed"
                    outcome = {
                        "reason": REASON_OPERATION_FAILED,
                        "error_code": status.error_code,
                        "error_message": status.error_message,
                    }
                    break

            remaining = deadline - (self.clock() - started)
            if remaining > 0:
                self.sleep(min(poll_interval, remaining))

        return OperationResult(
            operation_id=operation_id,
            state=state,  # type: ignore[arg-type]
            queries=queries,
            elapsed=self.clock() - started,
            **outcome,  # type: ignore[arg-type]
        )
