from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Optional

import httpx

from dashcore.errors import UpstreamFailure, body_messages


logger = logging.getLogger(__name__)

FetchFn = Callable[[], Awaitable[Any]]


def create_client(base_url: str, *, timeout: float = 30.0, token: Optional[str] = None) -> httpx.AsyncClient:
    headers = {"Content-Type": "application/json"}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return httpx.AsyncClient(base_url=base_url, timeout=timeout, headers=headers)


def _body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def make_fetch(client: httpx.AsyncClient, path: str) -> FetchFn:
    """Async upstream call for one section; transport and HTTP errors become UpstreamFailure."""

    async def fetch() -> Any:
        try:
            response = await client.get(path)
        except httpx.HTTPError as exc:
            raise UpstreamFailure(str(exc) or type(exc).__name__) from exc
        if response.is_error:
            logger.debug("GET %s -> %s", path, response.status_code)
            messages = body_messages(_body(response)) or [f"{response.status_code} {response.reason_phrase}".strip()]
            raise UpstreamFailure(messages=messages, status=response.status_code)
        return _body(response)

    return fetch
