"""Application settings loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Backend selection
    default_provider: str = "anthropic"  # anthropic | vertex | bedrock
    api_model_id: str = ""  # Empty = provider's default model

    # Direct Anthropic API
    anthropic_api_key: str = ""
    anthropic_base_url: str = "https://api.anthropic.com"

    # Google Vertex AI (credentials come from Application Default Credentials)
    vertex_project_id: str = ""
    vertex_region: str = "us-east5"

    # AWS Bedrock (credentials come from the standard AWS chain)
    aws_region: str = "us-east-1"

    # Upstream HTTP timeouts, seconds
    request_timeout: float = 600.0
    connect_timeout: float = 10.0

    # Retry policy for opening a stream
    retry_max_retries: int = 3
    retry_base_delay: float = 1.0
    retry_max_delay: float = 10.0
    retry_jitter: bool = True

    # Relay authentication
    # Comma-separated list of keys accepted in X-API-Key; empty = open
    relay_api_keys: str = ""

    # Logging
    log_level: str = "INFO"
    audit_log_file: str = ""  # Empty = stdout only

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def api_keys_list(self) -> list[str]:
        return [k.strip() for k in self.relay_api_keys.split(",") if k.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
