"""Shared test helpers."""

from collections.abc import Callable
import json
from typing import Any

import httpx

type Responder = httpx.Response | Callable[[httpx.Request], httpx.Response]


def json_response(
    payload: Any, status_code: int = 200, headers: dict[str, str] | None = None
) -> httpx.Response:
    return httpx.Response(status_code, json=payload, headers=headers)


class RecordingTransport:
    """Serves queued responses and records every request it receives.

    An unexpected extra request fails the test instead of reaching the
    network.
    """

    def __init__(self, *responses: Responder) -> None:
        self.requests: list[httpx.Request] = []
        self._responses = list(responses)
        self.client = httpx.Client(transport=httpx.MockTransport(self))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self._responses:
            raise AssertionError(f"Unexpected request: {request.method} {request.url}")
        item = self._responses.pop(0)
        return item if isinstance(item, httpx.Response) else item(request)

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def body(self, index: int = -1) -> Any:
        return json.loads(self.requests[index].content)

    def close(self) -> None:
        self.client.close()
