"""Static model capability tables and model-id resolution.

Each backend names the same Claude models differently, so every transport
carries its own table and default. Prices are USD per million tokens.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelInfo:
    max_tokens: int
    context_window: int
    supports_images: bool
    supports_prompt_cache: bool
    input_price: float = 0.0
    output_price: float = 0.0
    cache_writes_price: float = 0.0
    cache_reads_price: float = 0.0


_SONNET_37 = ModelInfo(
    max_tokens=8192,
    context_window=200_000,
    supports_images=True,
    supports_prompt_cache=True,
    input_price=3.0,
    output_price=15.0,
    cache_writes_price=3.75,
    cache_reads_price=0.3,
)
_SONNET_35 = ModelInfo(
    max_tokens=8192,
    context_window=200_000,
    supports_images=True,
    supports_prompt_cache=True,
    input_price=3.0,
    output_price=15.0,
    cache_writes_price=3.75,
    cache_reads_price=0.3,
)
_HAIKU_35 = ModelInfo(
    max_tokens=8192,
    context_window=200_000,
    supports_images=False,
    supports_prompt_cache=True,
    input_price=0.8,
    output_price=4.0,
    cache_writes_price=1.0,
    cache_reads_price=0.08,
)
_OPUS_3 = ModelInfo(
    max_tokens=4096,
    context_window=200_000,
    supports_images=True,
    supports_prompt_cache=True,
    input_price=15.0,
    output_price=75.0,
    cache_writes_price=18.75,
    cache_reads_price=1.5,
)
_HAIKU_3 = ModelInfo(
    max_tokens=4096,
    context_window=200_000,
    supports_images=True,
    supports_prompt_cache=True,
    input_price=0.25,
    output_price=1.25,
    cache_writes_price=0.3,
    cache_reads_price=0.03,
)


def _uncached(info: ModelInfo) -> ModelInfo:
    return ModelInfo(
        max_tokens=info.max_tokens,
        context_window=info.context_window,
        supports_images=info.supports_images,
        supports_prompt_cache=False,
        input_price=info.input_price,
        output_price=info.output_price,
    )


ANTHROPIC_DEFAULT_MODEL_ID = "claude-3-7-sonnet-20250219"
ANTHROPIC_MODELS: Mapping[str, ModelInfo] = MappingProxyType({
    "claude-3-7-sonnet-20250219": _SONNET_37,
    "claude-3-5-sonnet-20241022": _SONNET_35,
    "claude-3-5-haiku-20241022": _HAIKU_35,
    "claude-3-opus-20240229": _OPUS_3,
    "claude-3-haiku-20240307": _HAIKU_3,
})

VERTEX_DEFAULT_MODEL_ID = "claude-3-7-sonnet@20250219"
VERTEX_MODELS: Mapping[str, ModelInfo] = MappingProxyType({
    "claude-3-7-sonnet@20250219": _SONNET_37,
    "claude-3-5-sonnet-v2@20241022": _SONNET_35,
    "claude-3-5-sonnet@20240620": _uncached(_SONNET_35),
    "claude-3-5-haiku@20241022": _HAIKU_35,
    "claude-3-opus@20240229": _OPUS_3,
    "claude-3-haiku@20240307": _HAIKU_3,
})

BEDROCK_DEFAULT_MODEL_ID = "anthropic.claude-3-7-sonnet-20250219-v1:0"
BEDROCK_MODELS: Mapping[str, ModelInfo] = MappingProxyType({
    "anthropic.claude-3-7-sonnet-20250219-v1:0": _SONNET_37,
    "anthropic.claude-3-5-sonnet-20241022-v2:0": _uncached(_SONNET_35),
    "anthropic.claude-3-5-haiku-20241022-v1:0": _HAIKU_35,
    "anthropic.claude-3-opus-20240229-v1:0": _uncached(_OPUS_3),
    "anthropic.claude-3-haiku-20240307-v1:0": _uncached(_HAIKU_3),
})


def resolve_model(
    requested_id: str | None,
    models: Mapping[str, ModelInfo],
    default_id: str,
) -> tuple[str, ModelInfo]:
    """Return ``(id, info)`` for a requested model, or the table default.

    Unknown and missing ids are not errors; they resolve to ``default_id``.
    """
    if requested_id and requested_id in models:
        return requested_id, models[requested_id]
    if requested_id:
        logger.debug("Unknown model %r, using default %r", requested_id, default_id)
    return default_id, models[default_id]
