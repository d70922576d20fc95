"""Anthropic models served through AWS Bedrock InvokeModel.

The request body is the Messages API body with a Bedrock
``anthropic_version``; the response is an AWS event stream whose ``chunk``
payloads are the same message-stream frames the direct API sends as SSE.
"""

import asyncio
import json
from collections.abc import AsyncIterator

from llm_relay.config.settings import get_settings
from llm_relay.models.catalog import BEDROCK_DEFAULT_MODEL_ID, BEDROCK_MODELS
from llm_relay.providers.base import FrameStream, Transport
from llm_relay.providers.errors import (
    ConfigurationError,
    InvalidRequestError,
    ProtocolError,
    RelayError,
    TransientTransportError,
)

BEDROCK_ANTHROPIC_VERSION = "bedrock-2023-05-31"

_CONFIG_ERRORS = {
    "accessdeniedexception",
    "unrecognizedclientexception",
    "expiredtokenexception",
    "nocredentialserror",
    "partialcredentialserror",
}
_TRANSIENT_ERRORS = {
    "throttlingexception",
    "modelnotreadyexception",
    "internalserverexception",
    "serviceunavailableexception",
    "modeltimeoutexception",
    "modelstreamerrorexception",
    "endpointconnectionerror",
    "connecttimeouterror",
    "readtimeouterror",
}
_INVALID_ERRORS = {
    "validationexception",
    "resourcenotfoundexception",
    "servicequotaexceededexception",
    "modelerrorexception",
}


def map_bedrock_error(code: str, message: str) -> RelayError:
    """Map a Bedrock/botocore error code onto the relay taxonomy."""
    normalized = code.lower()
    detail = f"Bedrock {code}: {message}"
    if normalized in _CONFIG_ERRORS:
        return ConfigurationError(detail, status_code=403)
    if normalized == "throttlingexception":
        return TransientTransportError(detail, status_code=429)
    if normalized in _TRANSIENT_ERRORS:
        return TransientTransportError(detail, status_code=503)
    if normalized in _INVALID_ERRORS:
        status = 404 if normalized == "resourcenotfoundexception" else 400
        return InvalidRequestError(detail, status_code=status)
    return RelayError(detail)


def _error_from_exception(e: Exception) -> RelayError:
    if isinstance(getattr(e, "response", None), dict):
        code = e.response.get("Error", {}).get("Code", "") or type(e).__name__
    else:
        code = type(e).__name__
    return map_bedrock_error(code, str(e))


class BedrockFrameStream(FrameStream):
    """Pulls one event-stream event per consumer step from boto3."""

    def __init__(self, event_stream):
        self._event_stream = event_stream
        self._iterator = iter(event_stream)

    def _next_event(self):
        """Blocking read of the next event (run via asyncio.to_thread)."""
        return next(self._iterator, None)

    async def __aiter__(self) -> AsyncIterator[dict]:
        while True:
            try:
                event = await asyncio.to_thread(self._next_event)
            except Exception as e:
                raise _error_from_exception(e) from e
            if event is None:
                return

            if "chunk" in event:
                payload = event["chunk"].get("bytes", b"")
                try:
                    frame = json.loads(payload)
                except json.JSONDecodeError as e:
                    raise ProtocolError(f"Invalid JSON in Bedrock chunk: {payload[:200]!r}") from e
                yield frame
                continue

            # Modeled stream exceptions arrive as single-key events
            code, body = next(iter(event.items()))
            message = body.get("message", "") if isinstance(body, dict) else str(body)
            raise map_bedrock_error(code, message)

    async def aclose(self) -> None:
        close = getattr(self._event_stream, "close", None)
        if close is not None:
            close()


class BedrockTransport(Transport):
    """Sends requests to AWS Bedrock via InvokeModel(WithResponseStream)."""

    name = "bedrock"
    models = BEDROCK_MODELS
    default_model_id = BEDROCK_DEFAULT_MODEL_ID

    def __init__(self, region: str = ""):
        self._region = region or get_settings().aws_region
        self._client = None

    def check_configuration(self) -> None:
        if not self._region:
            raise ConfigurationError("AWS_REGION is required for the bedrock provider")

    def _get_client(self):
        """Lazy-init boto3 client (avoids import when not needed)."""
        if self._client is None:
            import boto3

            self._client = boto3.client("bedrock-runtime", region_name=self._region)
        return self._client

    @staticmethod
    def _bedrock_body(body: dict) -> str:
        return json.dumps({"anthropic_version": BEDROCK_ANTHROPIC_VERSION, **body})

    def _call_invoke_stream(self, model_id: str, body: str) -> dict:
        """Synchronous InvokeModelWithResponseStream call (run via asyncio.to_thread)."""
        return self._get_client().invoke_model_with_response_stream(
            modelId=model_id,
            body=body,
            contentType="application/json",
            accept="application/json",
        )

    def _call_invoke(self, model_id: str, body: str) -> dict:
        """Synchronous InvokeModel call (run via asyncio.to_thread)."""
        return self._get_client().invoke_model(
            modelId=model_id,
            body=body,
            contentType="application/json",
            accept="application/json",
        )

    async def open_stream(self, model_id: str, body: dict, *, prompt_cache: bool) -> FrameStream:
        try:
            response = await asyncio.to_thread(self._call_invoke_stream, model_id, self._bedrock_body(body))
        except Exception as e:
            raise _error_from_exception(e) from e
        return BedrockFrameStream(response.get("body", []))

    async def send(self, model_id: str, body: dict) -> dict:
        try:
            response = await asyncio.to_thread(self._call_invoke, model_id, self._bedrock_body(body))
        except Exception as e:
            raise _error_from_exception(e) from e

        raw = response["body"].read() if hasattr(response.get("body"), "read") else response.get("body")
        try:
            return json.loads(raw)
        except (TypeError, json.JSONDecodeError) as e:
            raise ProtocolError("Bedrock returned a non-JSON body") from e

    async def close(self) -> None:
        # boto3 clients don't need explicit cleanup
        self._client = None
