from __future__ import annotations

import os
import time
from collections.abc import AsyncIterator, Callable, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from aiobotocore.session import AioSession, get_session
from botocore.config import Config

DEFAULT_REGION = "us-east-1"


@dataclass(frozen=True)
class AwsCallMetric:
    service: str
    operation: str
    seconds: float
    ok: bool


def resolve_endpoint_url(environ: Mapping[str, str] = os.environ) -> str | None:
    endpoint = (environ.get("DYNAMODB_ENDPOINT") or "").strip()
    return endpoint or None


def resolve_region(environ: Mapping[str, str] = os.environ) -> str:
    return environ.get("AWS_REGION") or environ.get("AWS_DEFAULT_REGION") or DEFAULT_REGION


def create_boto_config(
    *,
    connect_timeout: float = 2.0,
    read_timeout: float = 1.0,
    max_attempts: int = 6,
    retry_mode: str = "adaptive",
) -> Config:
    return Config(
        connect_timeout=connect_timeout,
        read_timeout=read_timeout,
        retries={"max_attempts": max_attempts, "mode": retry_mode},
    )


class _InstrumentedClient:
    def __init__(self, client: Any, service: str, on_call: Callable[[AwsCallMetric], None]) -> None:
        self._client = client
        self._service = service
        self._on_call = on_call

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self._client, name)
        if name.startswith("_") or not callable(attr):
            return attr

        async def wrapped(*args: Any, **kwargs: Any) -> Any:
            start = time.monotonic()
            try:
                out = await attr(*args, **kwargs)
            except Exception:
                self._on_call(
                    AwsCallMetric(
                        service=self._service,
                        operation=name,
                        seconds=time.monotonic() - start,
                        ok=False,
                    )
                )
                raise

            self._on_call(
                AwsCallMetric(
                    service=self._service,
                    operation=name,
                    seconds=time.monotonic() - start,
                    ok=True,
                )
            )
            return out

        return wrapped


def instrument_client(
    client: Any,
    *,
    service: str,
    on_call: Callable[[AwsCallMetric], None],
) -> Any:
    return _InstrumentedClient(client, service, on_call)


@asynccontextmanager
async def open_dynamodb_client(
    *,
    region: str | None = None,
    endpoint_url: str | None = None,
    config: Config | None = None,
    session: AioSession | None = None,
    metrics: Callable[[AwsCallMetric], None] | None = None,
    environ: Mapping[str, str] = os.environ,
    **client_kwargs: Any,
) -> AsyncIterator[Any]:
    sess = session or get_session()
    kwargs: dict[str, Any] = {
        "region_name": region or resolve_region(environ),
        "config": config or create_boto_config(),
    }
    endpoint = endpoint_url or resolve_endpoint_url(environ)
    if endpoint:
        kwargs["endpoint_url"] = endpoint
    kwargs.update(client_kwargs)

    async with sess.create_client("dynamodb", **kwargs) as client:
        if metrics is not None:
            yield instrument_client(client, service="dynamodb", on_call=metrics)
        else:
            yield client
