from __future__ import annotations

from collections.abc import Sequence
from typing import Literal, Protocol

from botocore.exceptions import ClientError

from .errors import (
    AwsError,
    ConditionFailedError,
    NotFoundError,
    ValidationError,
)

type FailureCategory = Literal["schema_mismatch", "condition_check_failed", "unclassified"]

SCHEMA_MISMATCH_SIGNATURES: tuple[str, ...] = (
    "The document path provided in the update expression is invalid for update",
    "Invalid UpdateExpression",
)


class ErrorClassifier(Protocol):
    def classify(self, code: str, message: str) -> FailureCategory: ...


class DynamoDBErrorClassifier:
    def __init__(
        self,
        *,
        schema_mismatch_code: str = "ValidationException",
        schema_mismatch_signatures: Sequence[str] = SCHEMA_MISMATCH_SIGNATURES,
        condition_failed_code: str = "ConditionalCheckFailedException",
    ) -> None:
        self._schema_mismatch_code = schema_mismatch_code
        self._schema_mismatch_signatures = tuple(schema_mismatch_signatures)
        self._condition_failed_code = condition_failed_code

    def classify(self, code: str, message: str) -> FailureCategory:
        if code == self._schema_mismatch_code and any(
            sig in message for sig in self._schema_mismatch_signatures
        ):
            return "schema_mismatch"
        if code == self._condition_failed_code:
            return "condition_check_failed"
        return "unclassified"


def error_code(err: ClientError) -> str:
    return str(err.response.get("Error", {}).get("Code", ""))


def error_message(err: ClientError) -> str:
    return str(err.response.get("Error", {}).get("Message", ""))


def classify_client_error(classifier: ErrorClassifier, err: ClientError) -> FailureCategory:
    return classifier.classify(error_code(err), error_message(err))


def map_client_error(err: ClientError) -> Exception:
    code = error_code(err)
    message = error_message(err)

    if code == "ConditionalCheckFailedException":
        return ConditionFailedError(message)
    if code == "ValidationException":
        return ValidationError(message)
    if code == "ResourceNotFoundException":
        return NotFoundError(message)

    return AwsError(code=code or "UnknownError", message=message or str(err))
