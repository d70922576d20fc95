"""Shared httpx plumbing for the HTTP+SSE transports."""

import httpx

from llm_relay.config.settings import get_settings
from llm_relay.providers.base import FrameStream, Transport
from llm_relay.providers.errors import (
    ProtocolError,
    TransientTransportError,
    error_for_status,
)
from llm_relay.providers.retry import parse_retry_after
from llm_relay.providers.sse import SSEFrameStream


class HTTPTransport(Transport):
    """Base for transports that POST JSON and read SSE back."""

    def __init__(self):
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            settings = get_settings()
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(settings.request_timeout, connect=settings.connect_timeout)
            )
        return self._client

    async def _post_stream(self, url: str, body: dict, headers: dict) -> FrameStream:
        client = await self._get_client()
        request = client.build_request("POST", url, json=body, headers=headers)
        try:
            response = await client.send(request, stream=True)
        except httpx.TimeoutException as e:
            raise TransientTransportError(f"{self.name} timed out while connecting", status_code=504) from e
        except httpx.TransportError as e:
            raise TransientTransportError(f"Cannot reach {self.name}: {e}") from e

        if response.status_code != 200:
            try:
                body_bytes = await response.aread()
            finally:
                await response.aclose()
            raise self._status_error(response, body_bytes.decode(errors="replace"))

        return SSEFrameStream(response)

    async def _post(self, url: str, body: dict, headers: dict) -> dict:
        client = await self._get_client()
        try:
            response = await client.post(url, json=body, headers=headers)
        except httpx.TimeoutException as e:
            raise TransientTransportError(f"{self.name} timed out", status_code=504) from e
        except httpx.TransportError as e:
            raise TransientTransportError(f"Cannot reach {self.name}: {e}") from e

        if response.status_code != 200:
            raise self._status_error(response, response.text)
        try:
            return response.json()
        except ValueError as e:
            raise ProtocolError(f"{self.name} returned a non-JSON body") from e

    def _status_error(self, response: httpx.Response, detail: str):
        retry_after = parse_retry_after(response.headers.get("retry-after"))
        return error_for_status(
            response.status_code,
            f"{self.name} returned {response.status_code}: {detail}",
            retry_after=retry_after,
        )

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
