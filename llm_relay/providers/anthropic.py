"""Direct Anthropic Messages API transport."""

from llm_relay.config.settings import get_settings
from llm_relay.models.catalog import ANTHROPIC_DEFAULT_MODEL_ID, ANTHROPIC_MODELS
from llm_relay.providers.base import FrameStream
from llm_relay.providers.errors import ConfigurationError
from llm_relay.providers.http import HTTPTransport

ANTHROPIC_VERSION = "2023-06-01"
PROMPT_CACHING_BETA = "prompt-caching-2024-07-31"


class AnthropicTransport(HTTPTransport):
    """Talks to api.anthropic.com (or a compatible base URL) with an API key."""

    name = "anthropic"
    models = ANTHROPIC_MODELS
    default_model_id = ANTHROPIC_DEFAULT_MODEL_ID

    def __init__(self, api_key: str = "", base_url: str = ""):
        super().__init__()
        settings = get_settings()
        self._api_key = api_key or settings.anthropic_api_key
        self._base_url = base_url or settings.anthropic_base_url

    @property
    def messages_url(self) -> str:
        return f"{self._base_url.rstrip('/')}/v1/messages"

    def check_configuration(self) -> None:
        if not self._api_key:
            raise ConfigurationError("ANTHROPIC_API_KEY is required for the anthropic provider")

    def _build_headers(self, prompt_cache: bool = False) -> dict:
        headers = {
            "Content-Type": "application/json",
            "x-api-key": self._api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }
        if prompt_cache:
            headers["anthropic-beta"] = PROMPT_CACHING_BETA
        return headers

    async def open_stream(self, model_id: str, body: dict, *, prompt_cache: bool) -> FrameStream:
        stream_body = {"model": model_id, **body, "stream": True}
        return await self._post_stream(self.messages_url, stream_body, self._build_headers(prompt_cache))

    async def send(self, model_id: str, body: dict) -> dict:
        return await self._post(self.messages_url, {"model": model_id, **body}, self._build_headers())
