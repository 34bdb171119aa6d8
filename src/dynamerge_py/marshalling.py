from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from boto3.dynamodb.types import Binary, TypeDeserializer, TypeSerializer

from .errors import ValidationError
from .model import UNSET, Record


def _prepare(value: Any) -> Any:
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, Mapping):
        return {str(k): _prepare(v) for k, v in value.items() if v is not UNSET}
    if isinstance(value, (list, tuple)):
        return [_prepare(v) for v in value if v is not UNSET]
    if isinstance(value, (set, frozenset)):
        if not value:
            raise ValidationError("empty sets cannot be stored")
        return {_prepare(v) for v in value}
    return value


def _native(value: Any) -> Any:
    if isinstance(value, Binary):
        return bytes(value)
    if isinstance(value, dict):
        return {k: _native(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_native(v) for v in value]
    if isinstance(value, set):
        return {_native(v) for v in value}
    return value


class Marshaller:
    def __init__(self) -> None:
        self._serializer = TypeSerializer()
        self._deserializer = TypeDeserializer()

    def serialize(self, value: Any) -> dict[str, Any]:
        try:
            return self._serializer.serialize(_prepare(value))
        except TypeError as err:
            raise ValidationError(str(err)) from err

    def serialize_values(self, values: Mapping[str, Any]) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for k, v in values.items():
            out[k] = self.serialize(v)
        return out

    def to_item(self, record: Mapping[str, Any]) -> dict[str, Any]:
        return {
            str(name): self.serialize(value)
            for name, value in record.items()
            if value is not UNSET
        }

    def from_item(self, item: Mapping[str, Any]) -> Record:
        return {name: _native(self._deserializer.deserialize(av)) for name, av in item.items()}
