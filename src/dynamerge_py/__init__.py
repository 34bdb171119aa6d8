from __future__ import annotations

import json
import logging
import re
from importlib.resources import files
from typing import TYPE_CHECKING, Any

from .aws_errors import DynamoDBErrorClassifier, ErrorClassifier, FailureCategory
from .conditions import ParsedCondition, merge_placeholders, parse_expression
from .errors import (
    AwsError,
    BatchRetryExceededError,
    ConditionFailedError,
    ConfigurationError,
    DynamergeError,
    MissingExpressionValueError,
    NotFoundError,
    ValidationError,
)
from .model import UNSET, KeySchema, Record, WriteOutcome, WriteResult
from .policy import AllExcept, IncludeMode, OnlyPaths, Policy
from .update_builder import CompiledExpression, compile_update_expression

if TYPE_CHECKING:
    from .marshalling import Marshaller
    from .reconcile import Reconciler, merge_records
    from .runtime import (
        AwsCallMetric,
        create_boto_config,
        instrument_client,
        open_dynamodb_client,
    )
    from .table import Table

logging.getLogger(__name__).addHandler(logging.NullHandler())


def _read_repo_version() -> str:
    try:
        data = json.loads(files(__package__).joinpath("version.json").read_text(encoding="utf-8"))
    except Exception:
        return "0.0.0"

    version = data.get("version")
    return version if isinstance(version, str) and version else "0.0.0"


def _normalize_repo_version(repo_version: str) -> str:
    match = re.match(r"^(\d+\.\d+\.\d+)-rc\.?([0-9]+)$", repo_version)
    if match:
        return f"{match.group(1)}rc{match.group(2)}"
    return repo_version


__repo_version__ = _read_repo_version()
__version__ = _normalize_repo_version(__repo_version__)


def __getattr__(name: str) -> Any:
    if name == "Table":
        from .table import Table

        return Table
    if name == "Marshaller":
        from .marshalling import Marshaller

        return Marshaller
    if name in {"Reconciler", "merge_records"}:
        from . import reconcile

        return getattr(reconcile, name)
    if name in {
        "AwsCallMetric",
        "create_boto_config",
        "instrument_client",
        "open_dynamodb_client",
    }:
        from . import runtime

        return getattr(runtime, name)
    raise AttributeError(name)


__all__ = [
    "AllExcept",
    "AwsCallMetric",
    "AwsError",
    "BatchRetryExceededError",
    "CompiledExpression",
    "ConditionFailedError",
    "ConfigurationError",
    "DynamergeError",
    "DynamoDBErrorClassifier",
    "ErrorClassifier",
    "FailureCategory",
    "IncludeMode",
    "KeySchema",
    "Marshaller",
    "MissingExpressionValueError",
    "NotFoundError",
    "OnlyPaths",
    "ParsedCondition",
    "Policy",
    "Reconciler",
    "Record",
    "Table",
    "UNSET",
    "ValidationError",
    "WriteOutcome",
    "WriteResult",
    "__repo_version__",
    "__version__",
    "compile_update_expression",
    "create_boto_config",
    "instrument_client",
    "merge_placeholders",
    "merge_records",
    "open_dynamodb_client",
    "parse_expression",
]
