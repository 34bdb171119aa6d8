from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Literal

from botocore.exceptions import ClientError

from .aws_errors import ErrorClassifier, classify_client_error, map_client_error
from .conditions import merge_placeholders, parse_expression
from .model import KeySchema, Record, WriteResult
from .policy import Policy
from .update_builder import compile_update_expression, iter_leaves, name_placeholder

if TYPE_CHECKING:
    from .table import Table

type ReconcileMode = Literal["update", "upsert"]


def merge_records(
    current: Mapping[str, Any],
    incoming: Mapping[str, Any],
    keys: KeySchema,
    policy: Policy | None = None,
) -> Record:
    """Deep-merges the leaves ``policy`` selects from ``incoming`` into ``current``.

    Selected leaves overwrite, creating intermediate maps where the stored
    record has none (or has a non-map value). Insert-only leaves keep any
    stored value. Everything else keeps its stored value.
    """
    merged: Record = copy.deepcopy(dict(current))

    for leaf in iter_leaves(incoming, keys, policy):
        node = merged
        for segment in leaf.path[:-1]:
            child = node.get(segment)
            if not isinstance(child, dict):
                child = {}
                node[segment] = child
            node = child

        last = leaf.path[-1]
        if leaf.insert_only and last in node:
            continue
        node[last] = copy.deepcopy(leaf.value)

    merged.update(keys.key_of(incoming))
    return merged


class Reconciler:
    def __init__(self, table: Table, *, classifier: ErrorClassifier, logger: logging.Logger) -> None:
        self._table = table
        self._classifier = classifier
        self._logger = logger

    def build_request(
        self,
        record: Mapping[str, Any],
        policy: Policy | None = None,
        *,
        condition_expression: str | None = None,
        expression_attribute_values: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        keys = self._table.keys
        compiled = compile_update_expression(record, keys, policy)

        names: dict[str, Any] = dict(compiled.attribute_names)
        values: dict[str, Any] = dict(compiled.attribute_values)
        conditions: list[str] = []

        if condition_expression:
            parsed = parse_expression(condition_expression, expression_attribute_values)
            merge_placeholders(names, parsed.attribute_names, kind="name")
            merge_placeholders(values, parsed.attribute_values, kind="value")
            conditions.append(f"({condition_expression})")

        for key_name in keys.names:
            ref = name_placeholder(key_name)
            merge_placeholders(names, {ref: key_name}, kind="name")
            conditions.append(f"attribute_exists({ref})")

        marshaller = self._table.marshaller
        return {
            "TableName": self._table.table_name,
            "Key": marshaller.to_item(keys.key_of(record)),
            "UpdateExpression": compiled.update_expression,
            "ConditionExpression": " AND ".join(conditions),
            "ExpressionAttributeNames": names,
            "ExpressionAttributeValues": marshaller.serialize_values(values),
            "ReturnValues": "ALL_NEW",
            "ReturnValuesOnConditionCheckFailure": "ALL_OLD",
        }

    async def apply(
        self,
        record: Mapping[str, Any],
        policy: Policy | None = None,
        *,
        mode: ReconcileMode = "upsert",
        condition_expression: str | None = None,
        expression_attribute_values: Mapping[str, Any] | None = None,
    ) -> WriteResult:
        request = self.build_request(
            record,
            policy,
            condition_expression=condition_expression,
            expression_attribute_values=expression_attribute_values,
        )
        identity = self._table.keys.key_of(record)

        try:
            resp = await self._table.client.update_item(**request)
        except ClientError as err:
            category = classify_client_error(self._classifier, err)
            if category == "schema_mismatch":
                return await self._recover_schema_mismatch(record, policy, identity, mode)
            if category == "condition_check_failed":
                return await self._recover_condition_failed(record, identity, err, mode)
            raise map_client_error(err) from err

        attrs = resp.get("Attributes")
        item = self._table.marshaller.from_item(attrs) if attrs else None
        return WriteResult(outcome="applied", item=item)

    async def _recover_schema_mismatch(
        self,
        record: Mapping[str, Any],
        policy: Policy | None,
        identity: dict[str, Any],
        mode: ReconcileMode,
    ) -> WriteResult:
        self._logger.warning(
            "schema mismatch updating %s %s; fetching stored record", self._table.table_name, identity
        )
        current = await self._table.fetch(identity, consistent_read=True)
        if current is None:
            if mode == "update":
                self._logger.info("record %s not found in %s; update skipped", identity, self._table.table_name)
                return WriteResult(outcome="rejected")
            return await self._insert(record, identity)

        merged = merge_records(current, record, self._table.keys, policy)
        await self._table.put(merged)
        self._logger.warning("replaced %s %s with merged record", self._table.table_name, identity)
        return WriteResult(outcome="merged", item=merged)

    async def _recover_condition_failed(
        self,
        record: Mapping[str, Any],
        identity: dict[str, Any],
        err: ClientError,
        mode: ReconcileMode,
    ) -> WriteResult:
        if err.response.get("Item"):
            self._logger.info(
                "condition check failed for %s %s; write rejected", self._table.table_name, identity
            )
            return WriteResult(outcome="rejected")

        if mode == "update":
            self._logger.info("record %s not found in %s; update skipped", identity, self._table.table_name)
            return WriteResult(outcome="rejected")

        self._logger.warning("record %s not found in %s; inserting", identity, self._table.table_name)
        return await self._insert(record, identity)

    async def _insert(self, record: Mapping[str, Any], identity: dict[str, Any]) -> WriteResult:
        await self._table.put(record)
        self._logger.debug("inserted %s %s", self._table.table_name, identity)
        return WriteResult(outcome="inserted", item=dict(record))
