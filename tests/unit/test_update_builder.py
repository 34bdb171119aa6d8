from __future__ import annotations

import pytest

from dynamerge_py import UNSET, ConfigurationError, KeySchema, Policy, compile_update_expression
from dynamerge_py.update_builder import iter_leaves, name_placeholder, sanitize_segment

KEYS = KeySchema(pk="pk", sk="sk")


def _person() -> dict:
    return {
        "pk": "user#1",
        "sk": "profile",
        "status": "active",
        "data": {
            "firstname": "Patricia",
            "lastname": "Ponce",
            "address": {"city": "Cairo", "zip-code": "11311"},
        },
    }


def test_compile_assigns_every_nested_leaf_with_shared_value_counter() -> None:
    compiled = compile_update_expression(_person(), KEYS)

    assert compiled.update_expression == (
        "SET #status = :value1, #data.#firstname = :value2, #data.#lastname = :value3, "
        "#data.#address.#city = :value4, #data.#address.#zip_code = :value5"
    )
    assert compiled.attribute_names == {
        "#status": "status",
        "#data": "data",
        "#firstname": "firstname",
        "#lastname": "lastname",
        "#address": "address",
        "#city": "city",
        "#zip_code": "zip-code",
    }
    assert compiled.attribute_values == {
        ":value1": "active",
        ":value2": "Patricia",
        ":value3": "Ponce",
        ":value4": "Cairo",
        ":value5": "11311",
    }


def test_compile_never_assigns_identity_attributes() -> None:
    compiled = compile_update_expression({"pk": "a", "sk": "1", "v": 1}, KEYS)

    assert compiled.update_expression == "SET #v = :value1"
    assert "#pk" not in compiled.attribute_names
    assert "#sk" not in compiled.attribute_names


def test_compile_only_treats_top_level_paths_as_identity() -> None:
    compiled = compile_update_expression({"pk": "a", "sk": "1", "data": {"pk": "inner"}}, KEYS)

    assert compiled.update_expression == "SET #data.#pk = :value1"
    assert compiled.attribute_names == {"#data": "data", "#pk": "pk"}


def test_only_paths_selects_deep_leaf_without_ancestors() -> None:
    compiled = compile_update_expression(_person(), KEYS, Policy.only("data.firstname"))

    assert compiled.update_expression == "SET #data.#firstname = :value1"
    assert compiled.attribute_names == {"#data": "data", "#firstname": "firstname"}
    assert compiled.attribute_values == {":value1": "Patricia"}


def test_only_paths_ignores_intermediate_map_paths() -> None:
    with pytest.raises(ConfigurationError, match="no updates provided"):
        compile_update_expression(_person(), KEYS, Policy.only("data"))


def test_excluded_leaf_is_skipped() -> None:
    compiled = compile_update_expression(_person(), KEYS, Policy.excluding("data.firstname", "status"))

    assert compiled.update_expression == (
        "SET #data.#lastname = :value1, #data.#address.#city = :value2, #data.#address.#zip_code = :value3"
    )
    assert "#firstname" not in compiled.attribute_names


def test_excluded_map_path_still_visits_children() -> None:
    record = {"pk": "a", "sk": "1", "data": {"x": 1}}

    compiled = compile_update_expression(record, KEYS, Policy.excluding("data"))

    assert compiled.update_expression == "SET #data.#x = :value1"


def test_none_and_unset_are_skipped_unless_nulls_are_written() -> None:
    record = {"pk": "a", "sk": "1", "kept": 1, "cleared": None, "missing": UNSET}

    compiled = compile_update_expression(record, KEYS)
    assert compiled.update_expression == "SET #kept = :value1"

    with_nulls = compile_update_expression(record, KEYS, Policy.all(write_nulls=True))
    assert with_nulls.update_expression == "SET #kept = :value1, #cleared = :value2"
    assert with_nulls.attribute_values == {":value1": 1, ":value2": None}


def test_empty_map_lists_and_sets_are_assigned_as_leaves() -> None:
    record = {"pk": "a", "sk": "1", "meta": {}, "tags": {"x", "y"}, "items": [{"a": 1}]}

    compiled = compile_update_expression(record, KEYS)

    assert compiled.update_expression == "SET #meta = :value1, #tags = :value2, #items = :value3"
    assert compiled.attribute_values == {":value1": {}, ":value2": {"x", "y"}, ":value3": [{"a": 1}]}


def test_insert_only_leaf_compiles_to_if_not_exists() -> None:
    record = {"pk": "a", "sk": "1", "data": {"created_at": "2023-10-02", "updated_at": "2023-10-02"}}

    compiled = compile_update_expression(record, KEYS, Policy.all(insert_only=["data.created_at"]))

    assert compiled.update_expression == (
        "SET #data.#created_at = if_not_exists(#data.#created_at, :value1), #data.#updated_at = :value2"
    )


def test_repeated_segments_register_once() -> None:
    record = {"pk": "a", "sk": "1", "x": 1, "data": {"x": 2, "inner": {"x": 3}}}

    compiled = compile_update_expression(record, KEYS)

    assert compiled.update_expression == (
        "SET #x = :value1, #data.#x = :value2, #data.#inner.#x = :value3"
    )
    assert compiled.attribute_names == {"#x": "x", "#data": "data", "#inner": "inner"}


def test_conflicting_sanitized_names_are_rejected() -> None:
    with pytest.raises(ConfigurationError, match="expression attribute name collision: #user_id"):
        compile_update_expression({"pk": "a", "sk": "1", "user-id": 1, "user_id": 2}, KEYS)


def test_map_keys_containing_dots_stay_single_segments() -> None:
    record = {"pk": "a", "sk": "1", "data": {"v1.2": "x"}}

    compiled = compile_update_expression(record, KEYS, Policy.only("data.v1.2"))

    assert compiled.update_expression == "SET #data.#v1_2 = :value1"
    assert compiled.attribute_names == {"#data": "data", "#v1_2": "v1.2"}


def test_record_with_nothing_to_write_fails() -> None:
    with pytest.raises(ConfigurationError, match="no updates provided"):
        compile_update_expression({"pk": "a", "sk": "1", "gone": None}, KEYS)


def test_empty_attribute_name_fails() -> None:
    with pytest.raises(ConfigurationError, match="non-empty"):
        compile_update_expression({"pk": "a", "sk": "1", "data": {"": 1}}, KEYS)


def test_sanitize_and_placeholder_helpers() -> None:
    assert sanitize_segment("user-id") == "user_id"
    assert sanitize_segment("a b/c") == "a_b_c"
    assert sanitize_segment("plain_9") == "plain_9"
    assert name_placeholder("user-id") == "#user_id"


def test_iter_leaves_reports_paths_and_insert_only_flags() -> None:
    leaves = list(iter_leaves(_person(), KEYS, Policy.all(insert_only=["data.address.city"])))

    assert [leaf.dotted for leaf in leaves] == [
        "status",
        "data.firstname",
        "data.lastname",
        "data.address.city",
        "data.address.zip-code",
    ]
    assert [leaf.insert_only for leaf in leaves] == [False, False, False, True, False]
