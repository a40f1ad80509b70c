"""Request building and the response snapshot that expectations run against."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import httpx


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()

JSON_CONTENT_TYPE = "application/json"

# Keys the spec consumes itself; everything else goes to build_request()
_SPEC_KEYS = frozenset({"method", "headers", "body", "timeout", "base_url"})


@dataclass
class ResponseSnapshot:
    """Status, headers and the decoded body of one resolved response.

    ``body`` stays ``UNSET`` until the root task decodes it, then is assigned
    exactly once.
    """

    status: int
    headers: httpx.Headers
    text: str = ""
    url: str = ""
    elapsed_ms: float = 0.0
    raw: httpx.Response | None = field(default=None, repr=False)
    body: Any = UNSET

    @classmethod
    def from_httpx(cls, response: httpx.Response) -> ResponseSnapshot:
        try:
            elapsed_ms = response.elapsed.total_seconds() * 1000
        except RuntimeError:
            # elapsed is only set once a transport closed the response
            elapsed_ms = 0.0
        try:
            url = str(response.url)
        except RuntimeError:
            url = ""
        return cls(
            status=response.status_code,
            headers=response.headers,
            text=response.text,
            url=url,
            elapsed_ms=elapsed_ms,
            raw=response,
        )

    def attach_body(self, body: Any) -> None:
        if self.body is not UNSET:
            raise RuntimeError("Response body was already attached")
        self.body = body


def is_json_content(headers: httpx.Headers) -> bool:
    return "json" in headers.get("content-type", "").lower()


def decode_body(response: httpx.Response) -> Any:
    """Decode JSON responses, keep everything else as text.

    Raises json.JSONDecodeError when a JSON content type carries malformed JSON.
    """
    if is_json_content(response.headers):
        return json.loads(response.text)
    return response.text


def json_response(value: Any) -> httpx.Response:
    """Wrap an in-memory value as a 200 JSON response with no transport behind it."""
    request = httpx.Request("GET", "http://localhost/")
    return httpx.Response(
        200,
        content=json.dumps(value).encode("utf-8"),
        headers={"Content-Type": JSON_CONTENT_TYPE},
        request=request,
    )


def resolve_url(url: str, base_url: str | None) -> str:
    if not base_url or url.startswith(("http://", "https://")):
        return url
    return f"{base_url.rstrip('/')}/{url.lstrip('/')}"


def build_request(
    client: httpx.AsyncClient | None,
    url: str,
    options: Mapping[str, Any],
    timeout_ms: int,
) -> httpx.Request:
    """Turn a merged request descriptor into an ``httpx.Request``.

    Without a client the request is built standalone, carrying the timeout
    as a request extension the way ``AsyncClient.build_request`` does.
    Raises TypeError synchronously for keys httpx does not understand.
    """
    method = str(options.get("method", "GET")).upper()
    body = options.get("body")
    extra = {k: v for k, v in options.items() if k not in _SPEC_KEYS}
    if body is not None:
        extra["content"] = body
    target = resolve_url(url, options.get("base_url"))
    if client is None:
        timeout = httpx.Timeout(timeout_ms / 1000)
        return httpx.Request(
            method,
            target,
            headers=options.get("headers"),
            extensions={"timeout": timeout.as_dict()},
            **extra,
        )
    return client.build_request(
        method,
        target,
        headers=options.get("headers"),
        timeout=timeout_ms / 1000,
        **extra,
    )
