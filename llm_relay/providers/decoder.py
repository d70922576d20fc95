"""Messages-API stream decoder shared by every transport.

Direct, Vertex and Bedrock all deliver the same message-stream events; only
the framing around them differs. ``StreamDecoder`` consumes those events one
at a time and returns the canonical events each one produces.

State machine::

    AWAITING_START --message_start--> STREAMING --message_stop--> DONE
"""

import enum
import logging

from llm_relay.providers.base import StreamEvent, TextDelta, UsageDelta
from llm_relay.providers.errors import MidStreamError, ProtocolError

logger = logging.getLogger(__name__)

BLOCK_SEPARATOR = "\n"


class DecoderState(enum.Enum):
    AWAITING_START = "awaiting_start"
    STREAMING = "streaming"
    DONE = "done"


# Frames that are only meaningful once the message has started
_STREAMING_FRAMES = frozenset({
    "content_block_start",
    "content_block_delta",
    "content_block_stop",
    "message_delta",
    "message_stop",
})


def _object_field(frame: dict, key: str) -> dict:
    """Return ``frame[key]`` as a dict; absent or null reads as empty."""
    value = frame.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ProtocolError(f"Field {key!r} in {frame.get('type')!r} frame is not an object")
    return value


def _token_count(usage: dict, key: str) -> int:
    value = usage.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ProtocolError(f"Usage field {key!r} is not an integer: {value!r}")
    return value


class StreamDecoder:
    """Translates message-stream frames into canonical events.

    Any frame whose body does not match the message-stream schema raises
    ProtocolError; no other exception escapes ``feed``.
    """

    def __init__(self):
        self.state = DecoderState.AWAITING_START

    @property
    def done(self) -> bool:
        return self.state is DecoderState.DONE

    def feed(self, frame: dict) -> list[StreamEvent]:
        if not isinstance(frame, dict) or not isinstance(frame.get("type"), str):
            raise ProtocolError(f"Malformed stream frame: {frame!r}")
        if self.done:
            raise ProtocolError(f"Frame {frame['type']!r} received after message_stop")

        frame_type = frame["type"]
        if frame_type == "error":
            error = _object_field(frame, "error")
            raise MidStreamError(
                f"Upstream stream error ({error.get('type', 'unknown')}): {error.get('message', '')}"
            )
        if frame_type == "message_start":
            return self._message_start(frame)
        if frame_type in _STREAMING_FRAMES and self.state is not DecoderState.STREAMING:
            raise ProtocolError(f"Frame {frame_type!r} received before message_start")

        if frame_type == "content_block_start":
            return self._block_start(frame)
        if frame_type == "content_block_delta":
            return self._block_delta(frame)
        if frame_type == "message_delta":
            usage = _object_field(frame, "usage")
            return [UsageDelta(input_tokens=0, output_tokens=_token_count(usage, "output_tokens"))]
        if frame_type == "message_stop":
            self.state = DecoderState.DONE
            return []
        if frame_type not in ("content_block_stop", "ping"):
            logger.debug("Ignoring unknown stream frame %r", frame_type)
        return []

    def _message_start(self, frame: dict) -> list[StreamEvent]:
        if self.state is not DecoderState.AWAITING_START:
            raise ProtocolError("Duplicate message_start frame")
        message = frame.get("message")
        if not isinstance(message, dict):
            raise ProtocolError("message_start frame without a message")

        usage = _object_field(message, "usage")
        events = [
            UsageDelta(
                input_tokens=_token_count(usage, "input_tokens"),
                output_tokens=_token_count(usage, "output_tokens"),
                cache_write_tokens=_token_count(usage, "cache_creation_input_tokens") or None,
                cache_read_tokens=_token_count(usage, "cache_read_input_tokens") or None,
            )
        ]
        self.state = DecoderState.STREAMING
        return events

    @staticmethod
    def _block_start(frame: dict) -> list[StreamEvent]:
        block = frame.get("content_block")
        if not isinstance(block, dict):
            raise ProtocolError("content_block_start frame without a content_block")
        index = frame.get("index")
        if index is None:
            index = 0
        if isinstance(index, bool) or not isinstance(index, int):
            raise ProtocolError(f"content_block_start index is not an integer: {index!r}")
        if block.get("type") != "text":
            return []

        text = block.get("text") or ""
        if not isinstance(text, str):
            raise ProtocolError("content_block_start text is not a string")

        events: list[StreamEvent] = []
        # Several text blocks in one message are joined by a line break
        if index > 0:
            events.append(TextDelta(BLOCK_SEPARATOR))
        if text:
            events.append(TextDelta(text))
        return events

    @staticmethod
    def _block_delta(frame: dict) -> list[StreamEvent]:
        delta = frame.get("delta")
        if not isinstance(delta, dict):
            raise ProtocolError("content_block_delta frame without a delta")
        if delta.get("type") != "text_delta":
            return []
        text = delta.get("text")
        if not isinstance(text, str):
            raise ProtocolError(f"text_delta without string text: {text!r}")
        return [TextDelta(text)]
