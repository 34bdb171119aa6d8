from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from botocore.exceptions import ClientError

from .mocks import ANY, FakeDynamoDBClient

SCHEMA_MISMATCH_MESSAGE = "The document path provided in the update expression is invalid for update"


def client_error(
    code: str,
    message: str = "",
    *,
    operation: str = "UpdateItem",
    item: Mapping[str, Any] | None = None,
) -> ClientError:
    response: dict[str, Any] = {"Error": {"Code": code, "Message": message}}
    if item is not None:
        response["Item"] = dict(item)
    return ClientError(response, operation)  # type: ignore[arg-type]


def schema_mismatch_error() -> ClientError:
    return client_error("ValidationException", SCHEMA_MISMATCH_MESSAGE)


def condition_failed_error(*, item: Mapping[str, Any] | None = None) -> ClientError:
    return client_error(
        "ConditionalCheckFailedException",
        "The conditional request failed",
        item=item,
    )


async def no_sleep(_: float) -> None:
    return None


__all__ = [
    "ANY",
    "FakeDynamoDBClient",
    "SCHEMA_MISMATCH_MESSAGE",
    "client_error",
    "condition_failed_error",
    "no_sleep",
    "schema_mismatch_error",
]
