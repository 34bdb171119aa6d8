from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal

from .errors import ValidationError

type Record = dict[str, Any]
type WriteOutcome = Literal["applied", "merged", "inserted", "rejected"]


class _UnsetSentinel:
    def __repr__(self) -> str:  # pragma: no cover
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _UnsetSentinel()


def is_map_node(value: Any) -> bool:
    return isinstance(value, Mapping) and len(value) > 0


@dataclass(frozen=True)
class KeySchema:
    pk: str
    sk: str | None = None

    def __post_init__(self) -> None:
        if not self.pk:
            raise ValidationError("pk attribute name is required")
        if self.sk is not None and not self.sk:
            raise ValidationError("sk attribute name must be non-empty")
        if self.sk == self.pk:
            raise ValidationError("pk and sk must be different attributes")

    @property
    def names(self) -> tuple[str, ...]:
        if self.sk is None:
            return (self.pk,)
        return (self.pk, self.sk)

    def is_key_path(self, path: str) -> bool:
        return path == self.pk or (self.sk is not None and path == self.sk)

    def key_of(self, record: Mapping[str, Any]) -> dict[str, Any]:
        key: dict[str, Any] = {}
        for name in self.names:
            value = record.get(name, UNSET)
            if value is UNSET or value is None:
                raise ValidationError(f"missing key attribute: {name}")
            key[name] = value
        return key

    def key_from(self, pk: Any, sk: Any | None = None) -> dict[str, Any]:
        if pk is None:
            raise ValidationError("pk is required")
        if self.sk is None and sk is not None:
            raise ValidationError("table does not define sk")
        if self.sk is not None and sk is None:
            raise ValidationError("sk is required")

        key: dict[str, Any] = {self.pk: pk}
        if self.sk is not None:
            key[self.sk] = sk
        return key

    def normalize(self, key: Any) -> dict[str, Any]:
        if isinstance(key, Mapping):
            return self.key_of(key)

        if self.sk is None:
            if isinstance(key, tuple):
                if len(key) != 2:
                    raise ValidationError("expected key tuple (pk, None) for pk-only tables")
                pk, sk = key
                if sk is not None:
                    raise ValidationError("sk must be None for pk-only tables")
                return self.key_from(pk)
            return self.key_from(key)

        if not isinstance(key, tuple) or len(key) != 2:
            raise ValidationError("expected key tuple (pk, sk)")
        pk, sk = key
        return self.key_from(pk, sk)


@dataclass(frozen=True)
class WriteResult:
    outcome: WriteOutcome
    item: Record | None = None

    @property
    def applied(self) -> bool:
        return self.outcome != "rejected"
