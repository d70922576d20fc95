"""Relay key authentication.

When RELAY_API_KEYS is set, every request must present one of those keys in
the X-API-Key header. With no keys configured the relay is open, which is
meant for local sidecar use only.
"""

import hmac

from fastapi import HTTPException, Security
from fastapi.security import APIKeyHeader

from llm_relay.config.settings import get_settings

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def verify_relay_key(api_key: str | None = Security(api_key_header)) -> str | None:
    """FastAPI dependency returning the accepted key (None in open mode)."""
    valid_keys = get_settings().api_keys_list
    if not valid_keys:
        return None

    if api_key is None:
        raise HTTPException(status_code=401, detail="Missing API key")

    matched = False
    for valid_key in valid_keys:
        # Compare against every key so timing doesn't reveal a partial match
        if hmac.compare_digest(api_key.encode(), valid_key.encode()):
            matched = True
    if not matched:
        raise HTTPException(status_code=403, detail="Invalid API key")
    return api_key
