from __future__ import annotations

import logging
import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from .errors import ConfigurationError
from .model import UNSET, KeySchema, is_map_node
from .policy import Policy

logger = logging.getLogger(__name__)

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_]")


def sanitize_segment(segment: str) -> str:
    return _UNSAFE_NAME_CHARS.sub("_", segment)


def name_placeholder(segment: str) -> str:
    if not segment:
        raise ConfigurationError("attribute names must be non-empty")
    return "#" + sanitize_segment(segment)


@dataclass(frozen=True)
class Leaf:
    path: tuple[str, ...]
    value: Any
    insert_only: bool = False

    @property
    def dotted(self) -> str:
        return ".".join(self.path)


@dataclass(frozen=True)
class CompiledExpression:
    update_expression: str
    attribute_names: dict[str, str]
    attribute_values: dict[str, Any]


def iter_leaves(
    record: Mapping[str, Any],
    keys: KeySchema,
    policy: Policy | None = None,
) -> Iterator[Leaf]:
    """Yields the leaves of ``record`` that ``policy`` selects for writing.

    Non-empty maps are always descended into, so a deep leaf can be selected
    without its ancestors qualifying. Identity attributes are never yielded.
    """
    policy = policy or Policy()

    def walk(node: Mapping[str, Any], parent: tuple[str, ...]) -> Iterator[Leaf]:
        for key, value in node.items():
            path = (*parent, str(key))
            dotted = ".".join(path)
            if keys.is_key_path(dotted):
                continue

            if is_map_node(value):
                yield from walk(value, path)
                continue

            if value is UNSET or (value is None and not policy.write_nulls):
                continue
            if dotted in policy.exclude or not policy.includes(dotted):
                continue

            yield Leaf(path=path, value=value, insert_only=dotted in policy.insert_only)

    yield from walk(record, ())


@dataclass
class _CompileContext:
    names: dict[str, str] = field(default_factory=dict)
    values: dict[str, Any] = field(default_factory=dict)
    assignments: list[str] = field(default_factory=list)
    counter: int = 0

    def name_ref(self, path: tuple[str, ...]) -> str:
        refs: list[str] = []
        for segment in path:
            ref = name_placeholder(segment)
            existing = self.names.get(ref)
            if existing is not None and existing != segment:
                raise ConfigurationError(f"expression attribute name collision: {ref}")
            self.names[ref] = segment
            refs.append(ref)
        return ".".join(refs)

    def value_ref(self, value: Any) -> str:
        self.counter += 1
        ref = f":value{self.counter}"
        self.values[ref] = value
        return ref


def compile_update_expression(
    record: Mapping[str, Any],
    keys: KeySchema,
    policy: Policy | None = None,
) -> CompiledExpression:
    ctx = _CompileContext()

    for leaf in iter_leaves(record, keys, policy):
        name_ref = ctx.name_ref(leaf.path)
        value_ref = ctx.value_ref(leaf.value)
        if leaf.insert_only:
            ctx.assignments.append(f"{name_ref} = if_not_exists({name_ref}, {value_ref})")
        else:
            ctx.assignments.append(f"{name_ref} = {value_ref}")

    if not ctx.assignments:
        raise ConfigurationError("no updates provided")

    compiled = CompiledExpression(
        update_expression="SET " + ", ".join(ctx.assignments),
        attribute_names=ctx.names,
        attribute_values=ctx.values,
    )
    logger.debug(
        "compiled update expression %s (%d names, %d values)",
        compiled.update_expression,
        len(compiled.attribute_names),
        len(compiled.attribute_values),
    )
    return compiled
