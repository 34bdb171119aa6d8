from __future__ import annotations


class DynamergeError(Exception):
    pass


class ConditionFailedError(DynamergeError):
    pass


class NotFoundError(DynamergeError):
    pass


class ValidationError(DynamergeError):
    pass


class ConfigurationError(ValidationError):
    pass


class MissingExpressionValueError(ValidationError):
    def __init__(self, *, token: str, expression: str) -> None:
        super().__init__(f'"{token}" value not found in expression: "{expression}"')
        self.token = token
        self.expression = expression


class BatchRetryExceededError(DynamergeError):
    def __init__(self, *, operation: str, unprocessed_count: int) -> None:
        super().__init__(f"{operation}: retry limit exceeded (unprocessed={unprocessed_count})")
        self.operation = operation
        self.unprocessed_count = unprocessed_count


class AwsError(DynamergeError):
    def __init__(self, *, code: str, message: str) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message
