"""Tests for llm_relay/providers/registry.py: transport and handler registry."""

import pytest

import llm_relay.providers.registry as registry_mod
from llm_relay.providers.anthropic import AnthropicTransport
from llm_relay.providers.bedrock import BedrockTransport
from llm_relay.providers.vertex import VertexTransport


@pytest.fixture(autouse=True)
def reset_registry(monkeypatch, override_settings):
    """Clear the registry between tests."""
    override_settings(DEFAULT_PROVIDER="anthropic", API_MODEL_ID="")
    monkeypatch.setattr(registry_mod, "_transports", {})
    monkeypatch.setattr(registry_mod, "_handlers", {})
    yield


class TestGetTransport:

    @pytest.mark.parametrize("name,cls", [
        ("anthropic", AnthropicTransport),
        ("vertex", VertexTransport),
        ("bedrock", BedrockTransport),
    ])
    def test_creates_transport(self, name, cls):
        assert isinstance(registry_mod.get_transport(name), cls)

    def test_singleton_behavior(self):
        assert registry_mod.get_transport("anthropic") is registry_mod.get_transport("anthropic")

    def test_unknown_provider_raises(self):
        with pytest.raises(ValueError, match="Unknown provider"):
            registry_mod.get_transport("fake-provider")


class TestGetHandler:

    def test_defaults_from_settings(self, override_settings):
        override_settings(DEFAULT_PROVIDER="vertex", API_MODEL_ID="claude-3-5-haiku@20241022")
        handler = registry_mod.get_handler()
        assert isinstance(handler.transport, VertexTransport)
        assert handler.get_model()[0] == "claude-3-5-haiku@20241022"

    def test_empty_model_uses_provider_default(self):
        handler = registry_mod.get_handler("anthropic")
        assert handler.model_id == AnthropicTransport.default_model_id
        assert handler.get_model()[0] == AnthropicTransport.default_model_id

    def test_unknown_models_share_default_handler(self):
        default = registry_mod.get_handler("anthropic")
        for i in range(500):
            assert registry_mod.get_handler("anthropic", f"junk-{i}") is default
        assert len(registry_mod._handlers) == 1

    def test_default_and_explicit_default_share_handler(self):
        explicit = registry_mod.get_handler("anthropic", AnthropicTransport.default_model_id)
        assert registry_mod.get_handler("anthropic") is explicit

    def test_handlers_share_transport(self):
        h1 = registry_mod.get_handler("anthropic", "claude-3-5-haiku-20241022")
        h2 = registry_mod.get_handler("anthropic", "claude-3-opus-20240229")
        assert h1 is not h2
        assert h1.transport is h2.transport

    def test_handler_cached_per_model(self):
        assert registry_mod.get_handler("bedrock") is registry_mod.get_handler("bedrock")

    def test_unknown_provider_raises(self):
        with pytest.raises(ValueError, match="Unknown provider"):
            registry_mod.get_handler("nope")


class TestCloseAllHandlers:

    async def test_close_all(self):
        registry_mod.get_handler("anthropic")
        registry_mod.get_handler("bedrock")
        await registry_mod.close_all_handlers()
        assert registry_mod._transports == {}
        assert registry_mod._handlers == {}
