"""Anthropic models served through Google Vertex AI.

Same SSE stream as the direct API, but the model lives in the URL, the body
pins a Vertex-specific ``anthropic_version``, and auth is an OAuth bearer
token from Application Default Credentials.
"""

import asyncio

from llm_relay.config.settings import get_settings
from llm_relay.models.catalog import VERTEX_DEFAULT_MODEL_ID, VERTEX_MODELS
from llm_relay.providers.base import FrameStream
from llm_relay.providers.errors import ConfigurationError, TransientTransportError
from llm_relay.providers.http import HTTPTransport

VERTEX_ANTHROPIC_VERSION = "vertex-2023-10-16"
CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"


class VertexTransport(HTTPTransport):
    """Sends Messages API requests to Vertex AI's rawPredict endpoints."""

    name = "vertex"
    models = VERTEX_MODELS
    default_model_id = VERTEX_DEFAULT_MODEL_ID

    def __init__(self, project_id: str = "", region: str = ""):
        super().__init__()
        settings = get_settings()
        self._project_id = project_id or settings.vertex_project_id
        self._region = region or settings.vertex_region
        self._credentials = None

    def check_configuration(self) -> None:
        if not self._project_id:
            raise ConfigurationError("VERTEX_PROJECT_ID is required for the vertex provider")
        if not self._region:
            raise ConfigurationError("VERTEX_REGION is required for the vertex provider")

    def model_url(self, model_id: str, method: str) -> str:
        host = (
            "aiplatform.googleapis.com"
            if self._region == "global"
            else f"{self._region}-aiplatform.googleapis.com"
        )
        return (
            f"https://{host}/v1/projects/{self._project_id}/locations/{self._region}"
            f"/publishers/anthropic/models/{model_id}:{method}"
        )

    def _refresh_token(self) -> str:
        """Blocking credential refresh (run via asyncio.to_thread)."""
        import google.auth
        from google.auth.transport.requests import Request

        if self._credentials is None:
            self._credentials, _ = google.auth.default(scopes=[CLOUD_PLATFORM_SCOPE])
        if not self._credentials.valid:
            self._credentials.refresh(Request())
        return self._credentials.token

    async def _build_headers(self) -> dict:
        from google.auth import exceptions as auth_exceptions

        try:
            token = await asyncio.to_thread(self._refresh_token)
        except auth_exceptions.TransportError as e:
            raise TransientTransportError(f"Cannot reach Google auth endpoint: {e}") from e
        except auth_exceptions.GoogleAuthError as e:
            raise ConfigurationError(f"Google credentials unavailable: {e}") from e

        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {token}",
        }

    @staticmethod
    def _vertex_body(body: dict) -> dict:
        return {"anthropic_version": VERTEX_ANTHROPIC_VERSION, **body}

    async def open_stream(self, model_id: str, body: dict, *, prompt_cache: bool) -> FrameStream:
        # Vertex accepts cache_control in the body without a beta header
        headers = await self._build_headers()
        stream_body = {**self._vertex_body(body), "stream": True}
        return await self._post_stream(self.model_url(model_id, "streamRawPredict"), stream_body, headers)

    async def send(self, model_id: str, body: dict) -> dict:
        headers = await self._build_headers()
        return await self._post(self.model_url(model_id, "rawPredict"), self._vertex_body(body), headers)
