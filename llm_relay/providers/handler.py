"""Message handler: one streaming contract over every transport."""

import logging
from collections.abc import AsyncGenerator

from llm_relay.models.catalog import ModelInfo, resolve_model
from llm_relay.prompt.cache import apply_cache_markers, plan_cache_breakpoints, system_blocks
from llm_relay.prompt.conversation import validate_conversation
from llm_relay.providers.base import FrameStream, StreamEvent, Transport
from llm_relay.providers.decoder import StreamDecoder
from llm_relay.providers.errors import MidStreamError, ProtocolError, RelayError
from llm_relay.providers.retry import RetryPolicy, with_retry

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 8192
VALIDATION_PROMPT = "Test"


class MessageHandler:
    """Streams canonical events from one backend.

    The handler is stateless between calls: each ``create_message`` owns
    its own connection and decoder, so concurrent calls don't interfere.
    """

    def __init__(
        self,
        transport: Transport,
        model_id: str | None = None,
        retry_policy: RetryPolicy | None = None,
    ):
        self.transport = transport
        self.model_id = model_id
        self.retry_policy = retry_policy or RetryPolicy.from_settings()

    def get_model(self) -> tuple[str, ModelInfo]:
        return resolve_model(self.model_id, self.transport.models, self.transport.default_model_id)

    def build_request(self, system_prompt: str, messages: list[dict]) -> tuple[str, dict, bool]:
        """Return ``(model_id, body, prompt_cache)`` for a streaming request."""
        self.transport.check_configuration()
        model_id, info = self.get_model()
        validate_conversation(messages)

        prompt_cache = info.supports_prompt_cache
        if prompt_cache:
            messages = apply_cache_markers(messages, plan_cache_breakpoints(messages))

        body = {
            "max_tokens": info.max_tokens or DEFAULT_MAX_TOKENS,
            "temperature": 0,
            "system": system_blocks(system_prompt, prompt_cache),
            "messages": messages,
        }
        return model_id, body, prompt_cache

    async def create_message(
        self, system_prompt: str, messages: list[dict]
    ) -> AsyncGenerator[StreamEvent, None]:
        """Stream a reply as TextDelta / UsageDelta events.

        The generator is single-use. Closing it early (``aclose()`` or
        breaking out of ``async for``) closes the upstream connection.

        Raises:
            ConfigurationError, InvalidRequestError: before any network call.
            TransientTransportError: connection retries exhausted.
            ProtocolError: the upstream sent something undecodable.
            MidStreamError: the stream failed after events were yielded.
        """
        model_id, body, prompt_cache = self.build_request(system_prompt, messages)

        async def connect() -> FrameStream:
            return await self.transport.open_stream(model_id, body, prompt_cache=prompt_cache)

        stream = await with_retry(connect, self.retry_policy)
        decoder = StreamDecoder()
        yielded = 0
        try:
            try:
                async for frame in stream:
                    for event in decoder.feed(frame):
                        yielded += 1
                        yield event
                    if decoder.done:
                        return
            except (ProtocolError, MidStreamError):
                raise
            except RelayError as e:
                if yielded:
                    raise MidStreamError(f"Stream interrupted after {yielded} events: {e.detail}") from e
                raise

            if yielded:
                raise MidStreamError(f"Stream ended without message_stop after {yielded} events")
            raise ProtocolError("Stream ended before message_stop")
        finally:
            await stream.aclose()

    async def validate_api_key(self) -> bool:
        """Probe the backend with a one-token request. Never raises."""
        try:
            self.transport.check_configuration()
            model_id, _ = self.get_model()
            response = await self.transport.send(
                model_id,
                {
                    "max_tokens": 1,
                    "temperature": 0,
                    "messages": [{"role": "user", "content": VALIDATION_PROMPT}],
                },
            )
        except Exception as e:
            logger.warning(
                "Credential validation failed",
                extra={"audit_data": {
                    "provider": self.transport.name,
                    "error_type": type(e).__name__,
                    "error": str(e),
                }},
            )
            return False

        if not isinstance(response, dict) or response.get("type") != "message":
            logger.warning(
                "Credential validation got a malformed response",
                extra={"audit_data": {"provider": self.transport.name}},
            )
            return False
        return True

    async def close(self) -> None:
        await self.transport.close()
