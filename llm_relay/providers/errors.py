"""Error taxonomy shared by every transport and the message handler.

Callers can tell the kinds apart by class (or by ``kind`` on the wire):

- ConfigurationError: bad or missing credential/project/region. Never retried.
- InvalidRequestError: the request itself was rejected. Never retried.
- TransientTransportError: rate limiting, overload, network blips. Retried
  while opening a stream, surfaced once attempts run out.
- ProtocolError: a frame that does not match the vendor schema.
- MidStreamError: failure after output was already yielded.
"""


class RelayError(Exception):
    """Base class for relay failures."""

    kind = "error"
    status_code = 502

    def __init__(self, detail: str, status_code: int | None = None):
        super().__init__(detail)
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        return {"error": self.kind, "detail": self.detail}


class ConfigurationError(RelayError):
    kind = "configuration"
    status_code = 401


class InvalidRequestError(RelayError):
    kind = "invalid_request"
    status_code = 400


class TransientTransportError(RelayError):
    kind = "transient"
    status_code = 503

    def __init__(
        self,
        detail: str,
        status_code: int | None = None,
        retry_after: float | None = None,
    ):
        super().__init__(detail, status_code)
        self.retry_after = retry_after


class ProtocolError(RelayError):
    kind = "protocol"
    status_code = 502


class MidStreamError(RelayError):
    kind = "mid_stream"
    status_code = 502


def error_for_status(status_code: int, detail: str, retry_after: float | None = None) -> RelayError:
    """Map a non-2xx upstream status to the taxonomy.

    429 and every 5xx (including Anthropic's 529 "overloaded") are transient.
    """
    if status_code in (401, 403):
        return ConfigurationError(detail, status_code=status_code)
    if status_code == 429 or status_code >= 500:
        return TransientTransportError(detail, status_code=status_code, retry_after=retry_after)
    if 400 <= status_code < 500:
        return InvalidRequestError(detail, status_code=status_code)
    return ProtocolError(f"Unexpected upstream status {status_code}: {detail}")
