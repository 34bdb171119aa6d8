from __future__ import annotations

from collections import deque
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any


class _AnySentinel:
    def __repr__(self) -> str:  # pragma: no cover
        return "ANY"


ANY: Any = _AnySentinel()

type RequestCheck = Mapping[str, Any] | Callable[[Mapping[str, Any]], None]


def _mismatch(path: str, detail: str) -> AssertionError:
    return AssertionError(f"{path}: {detail}")


def _assert_match(expected: Any, actual: Any, *, path: str) -> None:
    if expected is ANY:
        return

    if isinstance(expected, dict):
        if not isinstance(actual, dict):
            raise _mismatch(path, f"expected dict, got {type(actual).__name__}")
        for name, want in expected.items():
            if name not in actual:
                raise _mismatch(path, f"missing key {name!r}")
            _assert_match(want, actual[name], path=f"{path}.{name}")
    elif isinstance(expected, list):
        if not isinstance(actual, list):
            raise _mismatch(path, f"expected list, got {type(actual).__name__}")
        if len(actual) != len(expected):
            raise _mismatch(path, f"expected {len(expected)} items, got {len(actual)}")
        for i, want in enumerate(expected):
            _assert_match(want, actual[i], path=f"{path}[{i}]")
    elif expected != actual:
        raise _mismatch(path, f"expected {expected!r}, got {actual!r}")


@dataclass(frozen=True)
class ExpectedRequest:
    operation: str
    check: RequestCheck | None = None
    response: Mapping[str, Any] | None = None
    error: Exception | None = None


class FakeDynamoDBClient:
    """Async stand-in for the aiobotocore DynamoDB client used by ``Table``.

    Each call consumes the next queued expectation, checks the request against it
    and returns its response (or raises its error). Requests are kept in ``calls``.
    """

    def __init__(self) -> None:
        self._queue: deque[ExpectedRequest] = deque()
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def expect(
        self,
        operation: str,
        check: RequestCheck | None = None,
        *,
        response: Mapping[str, Any] | None = None,
        error: Exception | None = None,
    ) -> None:
        self._queue.append(ExpectedRequest(operation, check, response, error))

    def assert_no_pending(self) -> None:
        if self._queue:
            raise AssertionError(f"pending expected calls: {list(self._queue)!r}")

    def _respond(self, operation: str, request: dict[str, Any]) -> dict[str, Any]:
        self.calls.append((operation, dict(request)))
        if not self._queue:
            raise AssertionError(f"unexpected call: {operation}")

        expected = self._queue.popleft()
        if expected.operation != operation:
            raise AssertionError(f"expected {expected.operation}, got {operation}")

        if callable(expected.check):
            expected.check(request)
        elif expected.check is not None:
            _assert_match(dict(expected.check), request, path=operation)

        if expected.error is not None:
            raise expected.error
        return dict(expected.response or {})

    async def describe_table(self, **request: Any) -> dict[str, Any]:
        return self._respond("describe_table", request)

    async def put_item(self, **request: Any) -> dict[str, Any]:
        return self._respond("put_item", request)

    async def get_item(self, **request: Any) -> dict[str, Any]:
        return self._respond("get_item", request)

    async def update_item(self, **request: Any) -> dict[str, Any]:
        return self._respond("update_item", request)

    async def batch_write_item(self, **request: Any) -> dict[str, Any]:
        return self._respond("batch_write_item", request)

    async def batch_get_item(self, **request: Any) -> dict[str, Any]:
        return self._respond("batch_get_item", request)
