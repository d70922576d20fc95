"""Canonical stream events and the transport strategy interface."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass

from llm_relay.models.catalog import ModelInfo


@dataclass(frozen=True)
class TextDelta:
    """A piece of assistant text, to be concatenated in emission order."""

    text: str
    type: str = "text"

    def to_dict(self) -> dict:
        return {"type": self.type, "text": self.text}


@dataclass(frozen=True)
class UsageDelta:
    """Token accounting. Consumers sum these; they never replace each other."""

    input_tokens: int
    output_tokens: int
    cache_write_tokens: int | None = None
    cache_read_tokens: int | None = None
    type: str = "usage"

    def to_dict(self) -> dict:
        data = {
            "type": self.type,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
        }
        if self.cache_write_tokens is not None:
            data["cache_write_tokens"] = self.cache_write_tokens
        if self.cache_read_tokens is not None:
            data["cache_read_tokens"] = self.cache_read_tokens
        return data


StreamEvent = TextDelta | UsageDelta


class FrameStream(ABC):
    """An open upstream stream yielding decoded vendor frames (dicts)."""

    @abstractmethod
    def __aiter__(self) -> AsyncIterator[dict]:
        ...

    @abstractmethod
    async def aclose(self) -> None:
        """Release the underlying connection. Safe to call more than once."""
        ...


class Transport(ABC):
    """How one backend is reached: endpoint, authentication and framing.

    The message handler owns everything vendor-neutral (model resolution,
    cache markers, retry, frame decoding); a transport only knows how to
    open a stream and how to send a single non-streaming request.
    """

    name: str = ""
    models: Mapping[str, ModelInfo] = {}
    default_model_id: str = ""

    def check_configuration(self) -> None:
        """Raise ConfigurationError if a request cannot possibly succeed."""

    @abstractmethod
    async def open_stream(self, model_id: str, body: dict, *, prompt_cache: bool) -> FrameStream:
        """Submit a streaming request and return once the upstream accepted it.

        Args:
            model_id: Resolved model identifier.
            body: Messages API request body without ``model``/``stream``.
            prompt_cache: Whether the body carries cache-control markers.

        Raises:
            RelayError subclasses; TransientTransportError is retryable.
        """
        ...

    @abstractmethod
    async def send(self, model_id: str, body: dict) -> dict:
        """Send a non-streaming request and return the decoded JSON body."""
        ...

    async def close(self) -> None:
        """Cleanup resources. Override if the transport holds connections."""
        pass
