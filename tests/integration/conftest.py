from __future__ import annotations

import os
import uuid
from collections.abc import Iterator

import boto3
import pytest


def dynamodb_endpoint() -> str:
    return os.environ.get("DYNAMODB_ENDPOINT", "http://localhost:8000")


def _connect_kwargs() -> dict[str, str]:
    return {
        "endpoint_url": dynamodb_endpoint(),
        "region": os.environ.get("AWS_REGION", "us-east-1"),
        "aws_access_key_id": os.environ.get("AWS_ACCESS_KEY_ID", "dummy"),
        "aws_secret_access_key": os.environ.get("AWS_SECRET_ACCESS_KEY", "dummy"),
    }


def _admin_client():
    kwargs = _connect_kwargs()
    return boto3.client(
        "dynamodb",
        endpoint_url=kwargs["endpoint_url"],
        region_name=kwargs["region"],
        aws_access_key_id=kwargs["aws_access_key_id"],
        aws_secret_access_key=kwargs["aws_secret_access_key"],
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if os.environ.get("DYNAMODB_ENDPOINT"):
        return
    skip = pytest.mark.skip(reason="DYNAMODB_ENDPOINT not set")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip)


@pytest.fixture
def client_kwargs() -> dict[str, str]:
    return _connect_kwargs()


@pytest.fixture
def table_name() -> Iterator[str]:
    name = f"dynamerge_py_{uuid.uuid4().hex[:12]}"
    client = _admin_client()
    client.create_table(
        TableName=name,
        KeySchema=[{"AttributeName": "pk", "KeyType": "HASH"}, {"AttributeName": "sk", "KeyType": "RANGE"}],
        AttributeDefinitions=[
            {"AttributeName": "pk", "AttributeType": "S"},
            {"AttributeName": "sk", "AttributeType": "S"},
        ],
        BillingMode="PAY_PER_REQUEST",
    )
    client.get_waiter("table_exists").wait(TableName=name)

    try:
        yield name
    finally:
        client.delete_table(TableName=name)
