"""Request execution harness — runs one learner-editable HTTP request.

The harness parses the headers and body text of a RequestSpec, performs
exactly one call with httpx, and classifies the result:

    2xx                         → Success(status, body)
    non-2xx                     → Failure(status, "HTTP <status>", body)
    connect / timeout / network → Failure(None, <message>)
    headers or body not JSON    → Failure(None, <message>, reason="malformed_input")
    request httpx cannot build  → Failure(None, <message>, reason="malformed_input")

It never raises for a bad request or a bad response. The only exception is
RequestInFlight, raised when execute() is re-entered while a call is still
outstanding. The harness decides nothing about quest completion; callers
receive the Outcome and apply their own policy.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from quest_guide.errors import RequestInFlight
from quest_guide.models import Failure, RequestSpec, Success

logger = logging.getLogger(__name__)


def _parse_headers(text: str) -> dict[str, str]:
    if not text.strip():
        return {}
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("headers must be a JSON object")
    return {str(k): str(v) for k, v in data.items()}


def _parse_body(text: str) -> Any:
    if not text.strip():
        return None
    return json.loads(text)


def _decode_body(resp: httpx.Response) -> Any:
    """Return the response body as JSON, or as text when it is not JSON."""
    if not resp.content:
        return None
    try:
        return resp.json()
    except (ValueError, RecursionError):
        if "json" in resp.headers.get("content-type", ""):
            raise
        return resp.text


class RequestHarness:
    """Executes RequestSpecs one at a time.

    Args:
        timeout: HTTP timeout in seconds. Defaults to 30.
        transport: Optional httpx transport, used by tests to avoid the network.
    """

    def __init__(self, timeout: float = 30.0, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._timeout = timeout
        self._transport = transport
        self._busy = False

    @property
    def busy(self) -> bool:
        return self._busy

    async def execute(self, spec: RequestSpec) -> Success | Failure:
        if self._busy:
            raise RequestInFlight("A request is already in flight")

        try:
            headers = _parse_headers(spec.headers)
        except (ValueError, RecursionError) as e:
            return Failure(message=f"Headers are not valid JSON: {e}", reason="malformed_input")
        try:
            body = _parse_body(spec.body)
        except (ValueError, RecursionError) as e:
            return Failure(message=f"Body is not valid JSON: {e}", reason="malformed_input")

        self._busy = True
        try:
            return await self._send(spec, headers, body)
        finally:
            self._busy = False

    async def _send(self, spec: RequestSpec, headers: dict[str, str], body: Any) -> Success | Failure:
        kwargs: dict[str, Any] = {"headers": headers}
        if body is not None and spec.method != "GET":
            kwargs["json"] = body
        logger.debug("harness request method=%s url=%s", spec.method, spec.url)

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.request(spec.method, spec.url, **kwargs)
        except httpx.ConnectError as e:
            return Failure(message=f"Cannot connect to {spec.url}: {e}")
        except httpx.TimeoutException:
            return Failure(message=f"Request timed out after {self._timeout}s")
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            return Failure(message=f"Request failed: {e}")
        except (ValueError, RecursionError) as e:
            # header values httpx cannot encode, among others
            return Failure(message=f"Request could not be built: {e}", reason="malformed_input")

        try:
            payload = _decode_body(resp)
        except (ValueError, RecursionError):
            return Failure(
                status=resp.status_code,
                message="Malformed response: body is not valid JSON",
                body=resp.text,
                reason="malformed_response",
            )

        logger.debug("harness response status=%d url=%s", resp.status_code, spec.url)
        if resp.is_success:
            return Success(status=resp.status_code, body=payload)
        return Failure(
            status=resp.status_code,
            message=f"HTTP {resp.status_code}",
            body=payload,
            reason="status",
        )
