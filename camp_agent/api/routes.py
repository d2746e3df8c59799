"""FastAPI route definitions for the camp agent API."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from pathlib import Path

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import FileResponse

from camp_agent import __version__
from camp_agent.api.schemas import ChatRequest, ChatResponse, HealthResponse, WebhookAck
from camp_agent.errors import InvalidInput, SignatureInvalid, UpstreamError
from camp_agent.services.commerce_client import get_commerce_client
from camp_agent.services.payment_client import get_payment_client

logger = logging.getLogger(__name__)

router = APIRouter()

WIDGET_PATH = Path(__file__).resolve().parent.parent / "static" / "chat-widget.js"


def _get_orchestrator(request: Request):
    """Retrieve the orchestrator built during the FastAPI lifespan."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(
            status_code=503,
            detail="The assistant is still starting up. Please try again in a moment.",
        )
    return orchestrator


# ── Chat ─────────────────────────────────────────────────────────────


@router.post("/chat", response_model=ChatResponse)
async def chat(request: ChatRequest, http_request: Request):
    """Send a message to the assistant and get its reply.

    Omit ``sessionId`` (or send an unknown one) to start a new
    conversation; reuse the returned ``sessionId`` to continue it.

    The orchestrator makes blocking calls (Anthropic, WooCommerce,
    Stripe), so it runs on a worker thread to keep the event loop free.
    """
    orchestrator = _get_orchestrator(http_request)
    request_id = getattr(http_request.state, "request_id", "?")

    try:
        reply, session_id = await asyncio.to_thread(
            orchestrator.handle, request.message, request.session_id,
        )
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except Exception as e:
        # Full traceback stays server-side; the client gets a generic message.
        logger.exception("[%s] Error processing chat request", request_id)
        raise HTTPException(
            status_code=500,
            detail="An internal error occurred. Please try again.",
        ) from e

    return ChatResponse(reply=reply, session_id=session_id)


# ── Payment webhook ──────────────────────────────────────────────────


@router.post("/webhook/payment", response_model=WebhookAck)
async def payment_webhook(request: Request):
    """Receive a signed Stripe event and apply it to the storefront."""
    payload = await request.body()
    signature = request.headers.get("Stripe-Signature")
    payments = get_payment_client()

    try:
        event = payments.verify_webhook(payload, signature)
    except SignatureInvalid as e:
        logger.warning("Rejected payment webhook: %s", e)
        raise HTTPException(status_code=400, detail="Invalid signature") from e

    try:
        result = await asyncio.to_thread(
            payments.handle_event, event, get_commerce_client(),
        )
    except UpstreamError as e:
        logger.exception("Failed to apply payment event %s (%s)", event.id, event.type)
        raise HTTPException(status_code=500, detail="Event processing failed") from e

    logger.info("[webhook] %s → %s", event.type, result)
    return WebhookAck()


# ── Utility endpoints ────────────────────────────────────────────────


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Liveness probe."""
    return HealthResponse(
        version=__version__,
        timestamp=datetime.now(UTC).isoformat(),
    )


@router.get("/offerings")
async def list_offerings(
    age: int | None = Query(None, ge=0, le=99),
    month: int | None = Query(None, ge=1, le=12),
):
    """Public read-through to the camp catalog."""
    try:
        return await asyncio.to_thread(
            get_commerce_client().list_offerings, age=age, month=month,
        )
    except UpstreamError as e:
        logger.exception("Failed to list offerings")
        raise HTTPException(
            status_code=502,
            detail="The camp catalog is unavailable right now.",
        ) from e


@router.get("/widget/chat-widget.js", include_in_schema=False)
async def chat_widget():
    """Embeddable chat widget script."""
    return FileResponse(
        WIDGET_PATH,
        media_type="application/javascript",
        headers={"Access-Control-Allow-Origin": "*"},
    )
