from __future__ import annotations

import asyncio
import logging
import os
import uuid

import boto3

from dynamerge_py import Table


def _admin_client():
    return boto3.client(
        "dynamodb",
        endpoint_url=os.environ.get("DYNAMODB_ENDPOINT", "http://localhost:8000"),
        region_name=os.environ.get("AWS_REGION", "us-east-1"),
        aws_access_key_id=os.environ.get("AWS_ACCESS_KEY_ID", "dummy"),
        aws_secret_access_key=os.environ.get("AWS_SECRET_ACCESS_KEY", "dummy"),
    )


async def run(table_name: str) -> None:
    async with Table.connect(
        table_name,
        pk="pk",
        sk="sk",
        endpoint_url=os.environ.get("DYNAMODB_ENDPOINT", "http://localhost:8000"),
        aws_access_key_id=os.environ.get("AWS_ACCESS_KEY_ID", "dummy"),
        aws_secret_access_key=os.environ.get("AWS_SECRET_ACCESS_KEY", "dummy"),
    ) as table:
        await table.put({"pk": "user#1", "sk": "profile", "status": "pending"})

        person = {
            "pk": "user#1",
            "sk": "profile",
            "status": "active",
            "data": {"firstname": "Patricia", "created_at": "2023-10-02"},
        }
        result = await table.upsert(person, insert_only=["data.created_at"])
        print("upsert:", result.outcome, result.item)

        result = await table.update_including({**person, "data": {"firstname": "Pat"}}, ["data.firstname"])
        print("update_including:", result.outcome, result.item)

        print("missing update:", (await table.update({"pk": "nobody", "sk": "x", "v": 1})).outcome)

        await table.batch_put([{"pk": f"user#{i}", "sk": "profile", "n": i} for i in range(60)])
        items = await table.batch_get([(f"user#{i}", "profile") for i in range(60)])
        print("batch_get:", len(items))


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    client = _admin_client()
    table_name = f"dynamerge_py_example_{uuid.uuid4().hex[:12]}"

    client.create_table(
        TableName=table_name,
        KeySchema=[{"AttributeName": "pk", "KeyType": "HASH"}, {"AttributeName": "sk", "KeyType": "RANGE"}],
        AttributeDefinitions=[
            {"AttributeName": "pk", "AttributeType": "S"},
            {"AttributeName": "sk", "AttributeType": "S"},
        ],
        BillingMode="PAY_PER_REQUEST",
    )
    client.get_waiter("table_exists").wait(TableName=table_name)

    try:
        asyncio.run(run(table_name))
    finally:
        client.delete_table(TableName=table_name)


if __name__ == "__main__":
    main()
