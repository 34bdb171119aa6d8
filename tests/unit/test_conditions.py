from __future__ import annotations

import pytest

from dynamerge_py import ConfigurationError, MissingExpressionValueError, merge_placeholders, parse_expression


def test_parse_dotted_chain_and_value() -> None:
    parsed = parse_expression("#a.#b = :v1", {":v1": {"S": "x"}})

    assert parsed.attribute_names == {"#a": "a", "#b": "b"}
    assert parsed.attribute_values == {":v1": {"S": "x"}}


def test_parse_reports_missing_value_token() -> None:
    expr = "#a = :v1 AND #b = :v2"

    with pytest.raises(MissingExpressionValueError) as exc_info:
        parse_expression(expr, {":v1": 1})

    assert exc_info.value.token == ":v2"
    assert exc_info.value.expression == expr
    assert ":v2" in str(exc_info.value)
    assert expr in str(exc_info.value)


def test_parse_without_values_fails_on_first_value_token() -> None:
    with pytest.raises(MissingExpressionValueError, match=":v"):
        parse_expression("#a = :v")


def test_parse_supports_every_comparator() -> None:
    expr = "#a = :a AND #b <> :b AND #c < :c AND #d <= :d AND #e > :e AND #f >= :f"
    values = {f":{c}": i for i, c in enumerate("abcdef")}

    parsed = parse_expression(expr, values)

    assert parsed.attribute_names == {f"#{c}": c for c in "abcdef"}
    assert parsed.attribute_values == values


def test_parse_size_and_function_forms() -> None:
    expr = (
        "size  ( #users ) > :size AND begins_with(#name, :prefix) AND attribute_exists(#data.#x) "
        "AND attribute_not_exists( #gone ) AND attribute_type(#t, :type) AND contains(#tags, :tag)"
    )
    values = {":size": 10, ":prefix": "Pat", ":type": "S", ":tag": "vip", ":unused": 0}

    parsed = parse_expression(expr, values)

    assert parsed.attribute_names == {
        "#users": "users",
        "#name": "name",
        "#data": "data",
        "#x": "x",
        "#gone": "gone",
        "#t": "t",
        "#tags": "tags",
    }
    assert parsed.attribute_values == {":size": 10, ":prefix": "Pat", ":type": "S", ":tag": "vip"}


def test_parse_between_and_in() -> None:
    parsed = parse_expression(
        "#age BETWEEN :lo AND :hi OR #state IN (:s1, :s2,:s3)",
        {":lo": 18, ":hi": 65, ":s1": "a", ":s2": "b", ":s3": "c"},
    )

    assert parsed.attribute_names == {"#age": "age", "#state": "state"}
    assert parsed.attribute_values == {":lo": 18, ":hi": 65, ":s1": "a", ":s2": "b", ":s3": "c"}


def test_parse_deduplicates_repeated_references() -> None:
    parsed = parse_expression(
        "#data.#v = :v OR (attribute_not_exists(#data.#v) AND #data.#w = :v)",
        {":v": 1},
    )

    assert parsed.attribute_names == {"#data": "data", "#v": "v", "#w": "w"}
    assert parsed.attribute_values == {":v": 1}


def test_parse_name_only_expression() -> None:
    parsed = parse_expression("attribute_exists(#pk)")

    assert parsed.attribute_names == {"#pk": "pk"}
    assert parsed.attribute_values == {}


def test_merge_placeholders_is_idempotent_and_detects_collisions() -> None:
    target: dict[str, object] = {"#a": "a"}

    merge_placeholders(target, {"#a": "a", "#b": "b"})
    assert target == {"#a": "a", "#b": "b"}

    with pytest.raises(ConfigurationError, match="expression attribute value collision: :v"):
        merge_placeholders({":v": 1}, {":v": 2}, kind="value")
