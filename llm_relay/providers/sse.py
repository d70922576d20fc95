"""Server-Sent Events framing over an httpx streaming response."""

import json
from collections.abc import AsyncIterator

import httpx

from llm_relay.providers.base import FrameStream
from llm_relay.providers.errors import ProtocolError, TransientTransportError


def parse_data_line(line: str) -> dict | None:
    """Decode one SSE line into a frame, or None for non-data lines.

    ``event:`` lines are ignored: the JSON payload repeats the event name
    in its ``type`` field.
    """
    line = line.strip()
    if not line.startswith("data:"):
        return None

    payload = line[len("data:"):].strip()
    if not payload:
        return None
    try:
        return json.loads(payload)
    except json.JSONDecodeError as e:
        raise ProtocolError(f"Invalid JSON in stream frame: {payload[:200]}") from e


class SSEFrameStream(FrameStream):
    """Yields frames from an open response, one line read at a time.

    ``aiter_lines`` keeps a partial trailing line buffered until the rest of
    it arrives, so a frame split across network reads is parsed whole.
    """

    def __init__(self, response: httpx.Response):
        self._response = response

    async def __aiter__(self) -> AsyncIterator[dict]:
        try:
            async for line in self._response.aiter_lines():
                frame = parse_data_line(line)
                if frame is not None:
                    yield frame
        except httpx.HTTPError as e:
            raise TransientTransportError(f"Upstream stream read failed: {e}") from e

    async def aclose(self) -> None:
        await self._response.aclose()
