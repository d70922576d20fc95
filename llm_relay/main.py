"""LLM Relay: FastAPI application entry point.

Exposes the canonical event stream of any configured backend (direct
Anthropic, Vertex AI, Bedrock) as Server-Sent Events, plus a credential
probe.
"""

import json
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse

from llm_relay.logging.audit import (
    StreamTimer,
    generate_request_id,
    get_audit_logger,
    request_id_var,
    setup_logging,
)
from llm_relay.models.usage import UsageTotals
from llm_relay.providers.base import StreamEvent, UsageDelta
from llm_relay.providers.errors import InvalidRequestError, RelayError
from llm_relay.providers.handler import MessageHandler
from llm_relay.providers.registry import close_all_handlers, get_handler
from llm_relay.security.auth import verify_relay_key

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle hooks."""
    setup_logging()
    get_audit_logger().info("Relay started")
    yield
    await close_all_handlers()
    get_audit_logger().info("Relay stopped")


app = FastAPI(
    title="LLM Relay",
    description="Canonical streaming relay for Anthropic, Vertex AI and Bedrock",
    version=VERSION,
    lifespan=lifespan,
)


@app.exception_handler(RelayError)
async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/health")
async def health():
    return {"status": "healthy", "version": VERSION}


@app.post("/v1/messages")
async def create_message(request: Request, _: str | None = Depends(verify_relay_key)):
    """Stream one assistant reply as SSE canonical events.

    Errors raised before the first event become a JSON error response with
    the matching status; later failures are sent as a final error event.
    """
    logger = get_audit_logger()
    rid = generate_request_id()
    request_id_var.set(rid)

    body = await _read_json(request)
    system_prompt = body.get("system", "")
    if not isinstance(system_prompt, str):
        raise InvalidRequestError("system must be a string")
    handler = _handler_for(body)
    model_id, _ = handler.get_model()

    timer = StreamTimer()
    stream = handler.create_message(system_prompt, body.get("messages", []))
    try:
        first = await anext(stream, None)
    except RelayError as e:
        logger.warning(
            "Stream failed to start",
            extra={"audit_data": {
                "provider": handler.transport.name,
                "model": model_id,
                "error": e.kind,
                "detail": e.detail,
            }},
        )
        raise
    timer.mark_first_event()

    return StreamingResponse(
        _sse_events(stream, first, handler, model_id, timer),
        media_type="text/event-stream",
        headers={"X-Request-Id": rid, "Cache-Control": "no-cache"},
    )


@app.post("/v1/validate")
async def validate_credentials(request: Request, _: str | None = Depends(verify_relay_key)):
    """Check that the configured credential can reach the backend."""
    request_id_var.set(generate_request_id())
    body = await _read_json(request)
    handler = _handler_for(body)
    valid = await handler.validate_api_key()
    model_id, _ = handler.get_model()
    return {"valid": valid, "provider": handler.transport.name, "model": model_id}


async def _sse_events(
    stream: AsyncGenerator[StreamEvent, None],
    first: StreamEvent | None,
    handler: MessageHandler,
    model_id: str,
    timer: StreamTimer,
) -> AsyncGenerator[str, None]:
    """Serialize canonical events, then log usage once the stream ends."""
    logger = get_audit_logger()
    totals = UsageTotals()
    outcome = "abandoned"

    def encode(event: StreamEvent) -> str:
        if isinstance(event, UsageDelta):
            totals.add(event)
        return f"data: {json.dumps(event.to_dict())}\n\n"

    try:
        if first is not None:
            yield encode(first)
            async for event in stream:
                yield encode(event)
        yield "data: [DONE]\n\n"
        outcome = "completed"
    except RelayError as e:
        # Text already sent stays with the client; report an interruption
        outcome = e.kind
        yield f"data: {json.dumps(e.to_dict())}\n\n"
    finally:
        await stream.aclose()
        timer.stop()
        _, info = handler.get_model()
        logger.info(
            "Stream finished",
            extra={"audit_data": {
                "provider": handler.transport.name,
                "model": model_id,
                "outcome": outcome,
                "first_event_ms": timer.first_event_ms,
                "latency_ms": timer.elapsed_ms,
                "usage": totals.to_dict(),
                "cost_usd": round(totals.cost(info), 6),
            }},
        )


async def _read_json(request: Request) -> dict:
    raw = await request.body()
    if not raw:
        return {}
    try:
        body = json.loads(raw)
    except ValueError as e:
        raise InvalidRequestError("Request body must be valid JSON") from e
    if not isinstance(body, dict):
        raise InvalidRequestError("Request body must be a JSON object")
    return body


def _handler_for(body: dict) -> MessageHandler:
    try:
        return get_handler(body.get("provider"), body.get("model"))
    except ValueError as e:
        raise InvalidRequestError(str(e)) from e
