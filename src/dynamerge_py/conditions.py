from __future__ import annotations

import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from .errors import ConfigurationError, MissingExpressionValueError

_NAME = r"(?P<name>#\w+(?:\s*\.\s*#\w+)*)"
_VALUE = r":(?P<value>\w+)"
_COMPARATOR = r"(?:<>|<=|>=|=|<|>)"
_FUNCTIONS = r"(?:begins_with|attribute_exists|attribute_not_exists|attribute_type|contains)"

_CONDITION_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(rf"{_NAME}\s*{_COMPARATOR}\s*{_VALUE}", re.ASCII),
    re.compile(rf"size\s*\(\s*{_NAME}\s*\)\s*{_COMPARATOR}\s*{_VALUE}", re.ASCII),
    re.compile(rf"{_FUNCTIONS}\s*\(\s*{_NAME}\s*(?:,\s*{_VALUE}\s*)?\)", re.ASCII),
    re.compile(
        rf"{_NAME}\s+BETWEEN\s+:(?P<low>\w+)\s+AND\s+:(?P<high>\w+)",
        re.ASCII | re.IGNORECASE,
    ),
    re.compile(
        rf"{_NAME}\s+IN\s*\((?P<values>\s*:\w+(?:\s*,\s*:\w+)*)\s*\)",
        re.ASCII | re.IGNORECASE,
    ),
)

_SEGMENT = re.compile(r"#(\w+)", re.ASCII)
_TOKEN = re.compile(r":(\w+)", re.ASCII)


@dataclass(frozen=True)
class ParsedCondition:
    attribute_names: dict[str, str]
    attribute_values: dict[str, Any]


def _value_tokens(match: re.Match[str]) -> Iterator[str]:
    groups = match.groupdict()
    for group in ("value", "low", "high"):
        token = groups.get(group)
        if token:
            yield f":{token}"
    listed = groups.get("values")
    if listed:
        for token in _TOKEN.findall(listed):
            yield f":{token}"


def parse_expression(
    expression: str,
    attribute_values: Mapping[str, Any] | None = None,
) -> ParsedCondition:
    names: dict[str, str] = {}
    values: dict[str, Any] = {}

    for pattern in _CONDITION_PATTERNS:
        for match in pattern.finditer(expression):
            for segment in _SEGMENT.findall(match.group("name")):
                names.setdefault(f"#{segment}", segment)

            for token in _value_tokens(match):
                if token in values:
                    continue
                if attribute_values is None or token not in attribute_values:
                    raise MissingExpressionValueError(token=token, expression=expression)
                values[token] = attribute_values[token]

    return ParsedCondition(attribute_names=names, attribute_values=values)


def merge_placeholders(target: dict[str, Any], extra: Mapping[str, Any], *, kind: str = "name") -> dict[str, Any]:
    for placeholder, value in extra.items():
        if placeholder in target and target[placeholder] != value:
            raise ConfigurationError(f"expression attribute {kind} collision: {placeholder}")
        target[placeholder] = value
    return target
