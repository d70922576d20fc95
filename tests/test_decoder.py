"""Tests for llm_relay/providers/decoder.py: frame to canonical event translation."""

import pytest

from llm_relay.providers.base import TextDelta, UsageDelta
from llm_relay.providers.decoder import DecoderState, StreamDecoder
from llm_relay.providers.errors import MidStreamError, ProtocolError
from tests.conftest import (
    block_start,
    block_stop,
    message_delta,
    message_start,
    message_stop,
    text_delta,
)


def _decode(frames):
    decoder = StreamDecoder()
    events = []
    for frame in frames:
        events.extend(decoder.feed(frame))
    return decoder, events


class TestStreamDecoder:

    def test_basic_sequence(self):
        decoder, events = _decode([
            message_start(input_tokens=10),
            block_start("A"),
            text_delta("B"),
            message_delta(3),
            block_stop(),
            message_stop(),
        ])
        assert events == [
            UsageDelta(input_tokens=10, output_tokens=0),
            TextDelta("A"),
            TextDelta("B"),
            UsageDelta(input_tokens=0, output_tokens=3),
        ]
        assert decoder.done

    def test_newline_between_text_blocks(self):
        _, events = _decode([
            message_start(),
            block_start("X", index=0),
            block_stop(0),
            block_start("Y", index=1),
        ])
        assert events[1:] == [TextDelta("X"), TextDelta("\n"), TextDelta("Y")]

    def test_empty_initial_text_emits_nothing(self):
        _, events = _decode([message_start(), block_start("")])
        assert events == [UsageDelta(input_tokens=10, output_tokens=0)]

    def test_second_block_with_empty_text_emits_separator_only(self):
        _, events = _decode([message_start(), block_start("", index=1)])
        assert events[1:] == [TextDelta("\n")]

    def test_cache_counts_reported(self):
        _, events = _decode([message_start(input_tokens=5, cache_write=200, cache_read=50)])
        assert events == [
            UsageDelta(input_tokens=5, output_tokens=0, cache_write_tokens=200, cache_read_tokens=50),
        ]

    def test_zero_cache_counts_are_none(self):
        _, events = _decode([message_start(input_tokens=5)])
        assert events[0].cache_write_tokens is None
        assert events[0].cache_read_tokens is None

    def test_non_text_blocks_ignored(self):
        _, events = _decode([
            message_start(),
            block_start(index=0, block_type="tool_use"),
            {"type": "content_block_delta", "index": 0,
             "delta": {"type": "input_json_delta", "partial_json": "{\"a\":"}},
            block_stop(0),
        ])
        assert events == [UsageDelta(input_tokens=10, output_tokens=0)]

    def test_ping_and_unknown_frames_ignored(self):
        _, events = _decode([message_start(), {"type": "ping"}, {"type": "future_event"}])
        assert len(events) == 1

    def test_state_transitions(self):
        decoder = StreamDecoder()
        assert decoder.state is DecoderState.AWAITING_START
        decoder.feed(message_start())
        assert decoder.state is DecoderState.STREAMING
        decoder.feed(message_stop())
        assert decoder.state is DecoderState.DONE


class TestStreamDecoderErrors:

    def test_delta_before_start(self):
        with pytest.raises(ProtocolError, match="before message_start"):
            StreamDecoder().feed(text_delta("early"))

    def test_frame_without_type(self):
        with pytest.raises(ProtocolError):
            StreamDecoder().feed({"delta": {}})

    def test_frame_not_a_dict(self):
        with pytest.raises(ProtocolError):
            StreamDecoder().feed(["message_start"])

    def test_duplicate_message_start(self):
        decoder = StreamDecoder()
        decoder.feed(message_start())
        with pytest.raises(ProtocolError, match="Duplicate"):
            decoder.feed(message_start())

    def test_message_start_without_message(self):
        with pytest.raises(ProtocolError):
            StreamDecoder().feed({"type": "message_start"})

    def test_frame_after_stop(self):
        decoder, _ = _decode([message_start(), message_stop()])
        with pytest.raises(ProtocolError, match="after message_stop"):
            decoder.feed(text_delta("late"))

    def test_error_frame_raises_mid_stream(self):
        decoder, _ = _decode([message_start()])
        with pytest.raises(MidStreamError, match="overloaded_error"):
            decoder.feed({"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}})

    @pytest.mark.parametrize("frame", [
        {"type": "error", "error": "overloaded"},
        {"type": "message_delta", "usage": ["output_tokens", 3]},
        {"type": "message_delta", "usage": {"output_tokens": "3"}},
        {"type": "content_block_start", "index": "1", "content_block": {"type": "text", "text": ""}},
        {"type": "content_block_start", "index": 0, "content_block": {"type": "text", "text": 7}},
        {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": None}},
        {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta"}},
    ])
    def test_badly_shaped_frame_is_protocol_error(self, frame):
        decoder, _ = _decode([message_start()])
        with pytest.raises(ProtocolError):
            decoder.feed(frame)

    @pytest.mark.parametrize("message", [
        {"usage": "n/a"},
        {"usage": {"input_tokens": 1.5}},
    ])
    def test_badly_shaped_message_start_is_protocol_error(self, message):
        decoder = StreamDecoder()
        with pytest.raises(ProtocolError):
            decoder.feed({"type": "message_start", "message": message})
        assert decoder.state is DecoderState.AWAITING_START
