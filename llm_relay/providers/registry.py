"""Provider registry: singleton transports and the handlers built on them."""

from llm_relay.config.settings import get_settings
from llm_relay.models.catalog import resolve_model
from llm_relay.providers.anthropic import AnthropicTransport
from llm_relay.providers.base import Transport
from llm_relay.providers.handler import MessageHandler

PROVIDERS = ("anthropic", "vertex", "bedrock")

_transports: dict[str, Transport] = {}
_handlers: dict[tuple[str, str], MessageHandler] = {}


def get_transport(name: str) -> Transport:
    """Get or create a transport instance by provider name."""
    if name in _transports:
        return _transports[name]

    if name == "anthropic":
        _transports[name] = AnthropicTransport()
    elif name == "vertex":
        # Lazy import to keep google-auth out of anthropic-only setups
        from llm_relay.providers.vertex import VertexTransport
        _transports[name] = VertexTransport()
    elif name == "bedrock":
        from llm_relay.providers.bedrock import BedrockTransport
        _transports[name] = BedrockTransport()
    else:
        raise ValueError(f"Unknown provider: {name}")

    return _transports[name]


def get_handler(name: str | None = None, model_id: str | None = None) -> MessageHandler:
    """Get or create the handler for a provider/model pair.

    Missing values fall back to DEFAULT_PROVIDER and API_MODEL_ID. Handlers
    are cached by the resolved model id, so unknown ids all share the
    provider default's handler. Handlers for the same provider share one
    transport (and its connection pool).
    """
    settings = get_settings()
    name = name or settings.default_provider
    transport = get_transport(name)
    resolved_id, _ = resolve_model(
        model_id or settings.api_model_id or None, transport.models, transport.default_model_id
    )
    key = (name, resolved_id)
    if key not in _handlers:
        _handlers[key] = MessageHandler(transport, model_id=resolved_id)
    return _handlers[key]


async def close_all_handlers() -> None:
    """Gracefully shut down all upstream connections."""
    for transport in _transports.values():
        await transport.close()
    _transports.clear()
    _handlers.clear()
