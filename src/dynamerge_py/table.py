from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Coroutine, Iterable, Mapping, Sequence
from contextlib import asynccontextmanager
from typing import Any

from aiobotocore.session import AioSession
from botocore.config import Config
from botocore.exceptions import ClientError

from .aws_errors import DynamoDBErrorClassifier, ErrorClassifier
from .aws_errors import map_client_error as _map_client_error
from .errors import BatchRetryExceededError, ValidationError
from .marshalling import Marshaller
from .model import KeySchema, Record, WriteResult
from .policy import Policy
from .reconcile import Reconciler
from .runtime import open_dynamodb_client

_log = logging.getLogger(__name__)

BATCH_WRITE_LIMIT = 25
BATCH_GET_LIMIT = 100

type Sleep = Callable[[float], Awaitable[Any]]


def _backoff_seconds(attempt: int) -> float:
    seconds = 0.05 * (2.0 ** (attempt - 1))
    if seconds > 1.0:
        return 1.0
    return seconds


def _chunked[T](items: Sequence[T], size: int) -> Sequence[Sequence[T]]:
    if size <= 0:
        raise ValueError("size must be > 0")
    return [items[i : i + size] for i in range(0, len(items), size)]


async def _run_groups[T](groups: Sequence[Coroutine[Any, Any, T]]) -> list[T]:
    try:
        async with asyncio.TaskGroup() as tg:
            tasks = [tg.create_task(group) for group in groups]
    except ExceptionGroup as eg:
        # first failure aborts the batch; siblings are already cancelled
        raise eg.exceptions[0] from None
    return [task.result() for task in tasks]


class Table:
    def __init__(
        self,
        table_name: str,
        *,
        pk: str,
        sk: str | None = None,
        client: Any,
        classifier: ErrorClassifier | None = None,
        marshaller: Marshaller | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if not table_name:
            raise ValueError("table_name is required")
        if client is None:
            raise ValueError("client is required (use Table.connect to open one)")

        self._table_name = table_name
        self._keys = KeySchema(pk=pk, sk=sk)
        self._client: Any = client
        self._marshaller = marshaller or Marshaller()
        self._logger = logger or _log
        self._reconciler = Reconciler(
            self,
            classifier=classifier or DynamoDBErrorClassifier(),
            logger=self._logger,
        )

    @classmethod
    @asynccontextmanager
    async def connect(
        cls,
        table_name: str,
        *,
        pk: str,
        sk: str | None = None,
        region: str | None = None,
        endpoint_url: str | None = None,
        config: Config | None = None,
        session: AioSession | None = None,
        classifier: ErrorClassifier | None = None,
        logger: logging.Logger | None = None,
        **client_kwargs: Any,
    ) -> AsyncIterator[Table]:
        async with open_dynamodb_client(
            region=region,
            endpoint_url=endpoint_url,
            config=config,
            session=session,
            **client_kwargs,
        ) as client:
            yield cls(table_name, pk=pk, sk=sk, client=client, classifier=classifier, logger=logger)

    @property
    def table_name(self) -> str:
        return self._table_name

    @property
    def keys(self) -> KeySchema:
        return self._keys

    @property
    def client(self) -> Any:
        return self._client

    @property
    def marshaller(self) -> Marshaller:
        return self._marshaller

    async def describe(self) -> dict[str, Any]:
        try:
            resp = await self._client.describe_table(TableName=self._table_name)
        except ClientError as err:
            raise _map_client_error(err) from err
        return dict(resp.get("Table") or {})

    async def put(
        self,
        record: Mapping[str, Any],
        *,
        condition_expression: str | None = None,
        expression_attribute_names: Mapping[str, str] | None = None,
        expression_attribute_values: Mapping[str, Any] | None = None,
    ) -> None:
        self._keys.key_of(record)
        req: dict[str, Any] = {"TableName": self._table_name, "Item": self._marshaller.to_item(record)}
        if condition_expression:
            req["ConditionExpression"] = condition_expression
        if expression_attribute_names:
            req["ExpressionAttributeNames"] = dict(expression_attribute_names)
        if expression_attribute_values:
            req["ExpressionAttributeValues"] = self._marshaller.serialize_values(expression_attribute_values)

        try:
            await self._client.put_item(**req)
        except ClientError as err:
            raise _map_client_error(err) from err

    async def get(self, pk: Any, sk: Any | None = None, *, consistent_read: bool = False) -> Record | None:
        return await self.fetch(self._keys.key_from(pk, sk), consistent_read=consistent_read)

    async def fetch(self, key: Any, *, consistent_read: bool = False) -> Record | None:
        wire_key = self._marshaller.to_item(self._keys.normalize(key))
        try:
            resp = await self._client.get_item(
                TableName=self._table_name,
                Key=wire_key,
                ConsistentRead=consistent_read,
            )
        except ClientError as err:
            raise _map_client_error(err) from err

        item = resp.get("Item")
        if not item:
            return None
        return self._marshaller.from_item(item)

    async def update(
        self,
        record: Mapping[str, Any],
        policy: Policy | None = None,
        *,
        condition_expression: str | None = None,
        expression_attribute_values: Mapping[str, Any] | None = None,
    ) -> WriteResult:
        """Partially updates an existing record; never creates one.

        ``expression_attribute_values`` holds native Python values (``{":v": "x"}``),
        not wire-format attribute values; they are marshalled with the record.
        """
        return await self._reconciler.apply(
            record,
            policy,
            mode="update",
            condition_expression=condition_expression,
            expression_attribute_values=expression_attribute_values,
        )

    async def update_including(
        self,
        record: Mapping[str, Any],
        paths: Iterable[str],
        *,
        condition_expression: str | None = None,
        expression_attribute_values: Mapping[str, Any] | None = None,
    ) -> WriteResult:
        return await self.update(
            record,
            Policy.only(*paths),
            condition_expression=condition_expression,
            expression_attribute_values=expression_attribute_values,
        )

    async def update_excluding(
        self,
        record: Mapping[str, Any],
        paths: Iterable[str],
        *,
        condition_expression: str | None = None,
        expression_attribute_values: Mapping[str, Any] | None = None,
    ) -> WriteResult:
        return await self.update(
            record,
            Policy.excluding(*paths),
            condition_expression=condition_expression,
            expression_attribute_values=expression_attribute_values,
        )

    async def upsert(
        self,
        record: Mapping[str, Any],
        policy: Policy | None = None,
        *,
        insert_only: Iterable[str] = (),
        condition_expression: str | None = None,
        expression_attribute_values: Mapping[str, Any] | None = None,
    ) -> WriteResult:
        """Partially updates the record, merging or inserting when the update cannot apply.

        ``expression_attribute_values`` holds native Python values, as in ``update``.
        """
        return await self._reconciler.apply(
            record,
            (policy or Policy()).with_insert_only(insert_only),
            mode="upsert",
            condition_expression=condition_expression,
            expression_attribute_values=expression_attribute_values,
        )

    async def upsert_including(
        self,
        record: Mapping[str, Any],
        paths: Iterable[str],
        *,
        insert_only: Iterable[str] = (),
    ) -> WriteResult:
        return await self.upsert(record, Policy.only(*paths), insert_only=insert_only)

    async def batch_put(
        self,
        records: Sequence[Mapping[str, Any]],
        *,
        max_retries: int = 5,
        sleep: Sleep | None = asyncio.sleep,
    ) -> None:
        """Writes ``records`` in concurrent groups of 25. A failing group cancels the rest.

        Unprocessed items the service hands back are resubmitted within their group
        (up to ``max_retries`` times, with backoff) before ``BatchRetryExceededError`` is
        raised. Transport retries are separate and come from the botocore config.
        """
        requests: list[dict[str, Any]] = []
        for record in records:
            self._keys.key_of(record)
            requests.append({"PutRequest": {"Item": self._marshaller.to_item(record)}})
        await self._dispatch_writes(requests, operation="batch_put", max_retries=max_retries, sleep=sleep)

    async def batch_delete(
        self,
        keys: Sequence[Any],
        *,
        max_retries: int = 5,
        sleep: Sleep | None = asyncio.sleep,
    ) -> None:
        """Deletes ``keys`` in concurrent groups of 25. A failing group cancels the rest.

        Unprocessed items the service hands back are resubmitted within their group
        (up to ``max_retries`` times, with backoff) before ``BatchRetryExceededError`` is
        raised. Transport retries are separate and come from the botocore config.
        """
        requests = [
            {"DeleteRequest": {"Key": self._marshaller.to_item(self._keys.normalize(key))}} for key in keys
        ]
        await self._dispatch_writes(requests, operation="batch_delete", max_retries=max_retries, sleep=sleep)

    async def batch_get(
        self,
        keys: Sequence[Any],
        *,
        consistent_read: bool = False,
        max_retries: int = 5,
        sleep: Sleep | None = asyncio.sleep,
    ) -> list[Record]:
        """Reads ``keys`` in concurrent groups of 100; missing keys are absent from the result.

        Unprocessed items the service hands back are resubmitted within their group
        (up to ``max_retries`` times, with backoff) before ``BatchRetryExceededError`` is
        raised. Transport retries are separate and come from the botocore config.
        """
        if max_retries < 0:
            raise ValidationError("max_retries must be >= 0")
        if not keys:
            return []

        wire_keys = [self._marshaller.to_item(self._keys.normalize(key)) for key in keys]
        groups = _chunked(wire_keys, BATCH_GET_LIMIT)
        self._logger.debug("batch_get %d keys in %d groups", len(wire_keys), len(groups))

        results = await _run_groups(
            [
                self._get_group(group, consistent_read=consistent_read, max_retries=max_retries, sleep=sleep)
                for group in groups
            ]
        )
        out: list[Record] = []
        for items in results:
            out.extend(items)
        return out

    async def _dispatch_writes(
        self,
        requests: Sequence[dict[str, Any]],
        *,
        operation: str,
        max_retries: int,
        sleep: Sleep | None,
    ) -> None:
        if max_retries < 0:
            raise ValidationError("max_retries must be >= 0")
        if not requests:
            return

        groups = _chunked(requests, BATCH_WRITE_LIMIT)
        self._logger.debug("%s %d requests in %d groups", operation, len(requests), len(groups))
        await _run_groups(
            [
                self._write_group(group, operation=operation, max_retries=max_retries, sleep=sleep)
                for group in groups
            ]
        )

    async def _write_group(
        self,
        group: Sequence[dict[str, Any]],
        *,
        operation: str,
        max_retries: int,
        sleep: Sleep | None,
    ) -> None:
        pending = list(group)
        attempts = 0

        while pending:
            try:
                resp = await self._client.batch_write_item(RequestItems={self._table_name: pending})
            except ClientError as err:
                raise _map_client_error(err) from err

            pending = resp.get("UnprocessedItems", {}).get(self._table_name, []) or []
            if pending:
                if attempts >= max_retries:
                    raise BatchRetryExceededError(operation=operation, unprocessed_count=len(pending))
                attempts += 1
                if sleep is not None:
                    await sleep(_backoff_seconds(attempts))

    async def _get_group(
        self,
        group: Sequence[dict[str, Any]],
        *,
        consistent_read: bool,
        max_retries: int,
        sleep: Sleep | None,
    ) -> list[Record]:
        out: list[Record] = []
        pending_keys = list(group)
        attempts = 0

        while pending_keys:
            req = {self._table_name: {"Keys": pending_keys, "ConsistentRead": consistent_read}}
            try:
                resp = await self._client.batch_get_item(RequestItems=req)
            except ClientError as err:
                raise _map_client_error(err) from err

            for item in resp.get("Responses", {}).get(self._table_name, []):
                out.append(self._marshaller.from_item(item))

            pending_keys = resp.get("UnprocessedKeys", {}).get(self._table_name, {}).get("Keys") or []
            if pending_keys:
                if attempts >= max_retries:
                    raise BatchRetryExceededError(operation="batch_get", unprocessed_count=len(pending_keys))
                attempts += 1
                if sleep is not None:
                    await sleep(_backoff_seconds(attempts))

        return out
