"""Shared fixtures for the LLM Relay test suite."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from llm_relay.config.settings import get_settings
from llm_relay.providers.base import FrameStream, Transport
from llm_relay.providers.retry import RetryPolicy


@pytest.fixture
def override_settings(monkeypatch):
    """Factory fixture: set env vars and clear settings cache.

    Usage:
        override_settings(ANTHROPIC_API_KEY="sk-ant-test", RETRY_MAX_RETRIES=1)
    """
    def _override(**kwargs):
        for key, value in kwargs.items():
            monkeypatch.setenv(key.upper(), str(value))
        # Clear lru_cache so Settings re-reads env
        get_settings.cache_clear()

    yield _override

    # Always clear cache on teardown so other tests get fresh settings
    get_settings.cache_clear()


@pytest.fixture
def no_retry_policy() -> RetryPolicy:
    return RetryPolicy(max_retries=0, base_delay=0, max_delay=0, jitter=False)


# --- Message-stream frame builders ---


def message_start(input_tokens=10, output_tokens=0, cache_write=0, cache_read=0) -> dict:
    return {
        "type": "message_start",
        "message": {
            "id": "msg_test",
            "type": "message",
            "role": "assistant",
            "content": [],
            "usage": {
                "input_tokens": input_tokens,
                "output_tokens": output_tokens,
                "cache_creation_input_tokens": cache_write,
                "cache_read_input_tokens": cache_read,
            },
        },
    }


def block_start(text="", index=0, block_type="text") -> dict:
    block = {"type": block_type}
    if block_type == "text":
        block["text"] = text
    return {"type": "content_block_start", "index": index, "content_block": block}


def text_delta(text, index=0) -> dict:
    return {"type": "content_block_delta", "index": index, "delta": {"type": "text_delta", "text": text}}


def block_stop(index=0) -> dict:
    return {"type": "content_block_stop", "index": index}


def message_delta(output_tokens) -> dict:
    return {
        "type": "message_delta",
        "delta": {"stop_reason": "end_turn", "stop_sequence": None},
        "usage": {"output_tokens": output_tokens},
    }


def message_stop() -> dict:
    return {"type": "message_stop"}


def simple_frames(*texts: str, output_tokens: int = 3) -> list[dict]:
    """A complete one-block stream spelling out ``texts``."""
    frames = [message_start(), block_start()]
    frames += [text_delta(t) for t in texts]
    frames += [block_stop(), message_delta(output_tokens), message_stop()]
    return frames


def sse_lines(frames: list[dict]) -> list[str]:
    """Render frames the way the Messages API sends them over SSE."""
    lines = []
    for frame in frames:
        lines.append(f"event: {frame['type']}")
        lines.append(f"data: {json.dumps(frame)}")
        lines.append("")
    return lines


async def async_iter(items):
    """Helper to make a sync list into an async iterator."""
    for item in items:
        yield item


class ListFrameStream(FrameStream):
    """In-memory frame stream; optionally fails after ``fail_after`` frames."""

    def __init__(self, frames, fail_after=None, error=None):
        self.frames = list(frames)
        self.fail_after = fail_after
        self.error = error
        self.closed = False
        self.consumed = 0

    async def __aiter__(self):
        for frame in self.frames:
            if self.fail_after is not None and self.consumed >= self.fail_after:
                raise self.error
            self.consumed += 1
            yield frame
        if self.fail_after is not None and self.consumed >= self.fail_after:
            raise self.error

    async def aclose(self):
        self.closed = True


class FakeTransport(Transport):
    """Transport double: ``open_stream``/``send`` are AsyncMocks."""

    name = "fake"

    def __init__(self, models, default_model_id, stream=None):
        self.models = models
        self.default_model_id = default_model_id
        self.open_stream = AsyncMock(return_value=stream)
        self.send = AsyncMock(return_value={"type": "message", "content": []})
        self.check_configuration = MagicMock()
        self.closed = False

    # Shadowed per instance by the mocks above
    async def open_stream(self, model_id, body, *, prompt_cache):
        raise NotImplementedError

    async def send(self, model_id, body):
        raise NotImplementedError

    async def close(self):
        self.closed = True
