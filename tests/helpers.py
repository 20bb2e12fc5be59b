import urllib.parse
from typing import Any, Callable, Dict, List, Union

import httpx

Reply = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


class RecordingTransport:
    """httpx.MockTransport handler that records requests and replays queued responses."""

    def __init__(self, *responses: Reply):
        self.requests: List[httpx.Request] = []
        self.responses: List[Reply] = list(responses)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            raise AssertionError(f"Unexpected request: {request.method} {request.url}")
        reply = self.responses.pop(0)
        return reply(request) if callable(reply) else reply

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self))


def form_of(request: httpx.Request) -> Dict[str, str]:
    parsed = urllib.parse.parse_qs(request.content.decode("utf-8"))
    return {k: v[0] for k, v in parsed.items()}


def query_of(url: Any) -> Dict[str, str]:
    parsed = urllib.parse.parse_qs(urllib.parse.urlparse(str(url)).query)
    return {k: v[0] for k, v in parsed.items()}
