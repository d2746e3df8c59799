"""Stripe integration: payment links, checkout sessions, refunds and webhooks.

The Stripe SDK module is injectable (``stripe_module``) so tests can pass
a fake namespace instead of talking to Stripe.  Webhook payloads are
verified against the signing secret before anything is parsed; the
verified JSON is turned into a provider-agnostic ``PaymentEvent``.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

import stripe

from camp_agent.config import (
    PAYMENT_CURRENCY,
    STRIPE_SECRET_KEY,
    STRIPE_WEBHOOK_SECRET,
    WOO_URL,
)
from camp_agent.errors import InvalidInput, PaymentAPIError, SignatureInvalid
from camp_agent.services.commerce_client import CommerceClient
from camp_agent.services.metrics import metrics

logger = logging.getLogger(__name__)

PAYMENT_SOURCE = "hope-basketball-agent"
WEBHOOK_TOLERANCE_SECONDS = 300
CHECKOUT_LOCALE = "fr-CA"

CHECKOUT_STATUS_LABELS = {
    "complete": "Paiement complété",
    "expired": "Session expirée",
    "open": "En attente de paiement",
}

# ── Event kinds we act on ───────────────────────────────────────────
EVENT_CHECKOUT_COMPLETED = "checkout.session.completed"
EVENT_PAYMENT_SUCCEEDED = "payment_intent.succeeded"
EVENT_PAYMENT_FAILED = "payment_intent.payment_failed"


@dataclass(frozen=True)
class PaymentEvent:
    """A verified webhook notification."""

    id: str
    type: str
    object: dict[str, Any] = field(default_factory=dict)

    @property
    def order_id(self) -> str | None:
        metadata = self.object.get("metadata") or {}
        return metadata.get("order_id") or None


def to_cents(price: str | float | int) -> int:
    """Convert a dollar amount such as ``"350.00"`` into integer cents."""
    try:
        amount = Decimal(str(price).strip().replace(",", "."))
    except InvalidOperation as exc:
        raise InvalidInput(f"Prix invalide: {price!r}") from exc
    if not amount.is_finite() or amount <= 0:
        raise InvalidInput(f"Prix invalide: {price!r}")
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PaymentClient:
    """Thin adapter over the Stripe SDK."""

    def __init__(
        self,
        secret_key: str | None = None,
        webhook_secret: str | None = None,
        *,
        stripe_module=None,
        site_url: str | None = None,
        currency: str | None = None,
    ):
        self._api_key = secret_key or STRIPE_SECRET_KEY
        self._webhook_secret = webhook_secret or STRIPE_WEBHOOK_SECRET
        self._stripe = stripe_module or stripe
        self._site_url = (site_url or WOO_URL).rstrip("/")
        self._currency = currency or PAYMENT_CURRENCY

    def _call(self, operation: str, fn, **kwargs: Any):
        """Invoke a Stripe SDK call, converting SDK errors."""
        try:
            with metrics.track("stripe", operation):
                return fn(api_key=self._api_key, **kwargs)
        except stripe.StripeError as exc:
            logger.error("Stripe %s failed: %s", operation, exc)
            raise PaymentAPIError(f"Stripe {operation} failed: {exc}") from exc

    def _confirmation_url(self, order_id: int | str) -> str:
        return f"{self._site_url}/inscription-confirmee/?order_id={order_id}"

    def _cancellation_url(self, order_id: int | str) -> str:
        return f"{self._site_url}/inscription-annulee/?order_id={order_id}"

    # ── Payment creation ────────────────────────────────────────────

    def create_payment_link(
        self,
        order_id: int | str,
        camp_name: str,
        price: str | float,
        *,
        customer_email: str | None = None,
        child_name: str | None = None,
    ) -> dict[str, Any]:
        """Create a shareable Stripe payment link for an existing order.

        The ``order_id`` is attached both to the link (copied onto the
        resulting Checkout Session) and to the PaymentIntent, so success
        and failure webhooks can find the order.
        """
        unit_amount = to_cents(price)
        metadata = {"order_id": str(order_id), "child_name": child_name or ""}

        product = self._call(
            "Product.create",
            self._stripe.Product.create,
            name=camp_name,
            description=(
                f"Inscription de {child_name} — {camp_name}"
                if child_name
                else f"Inscription — {camp_name}"
            ),
            metadata={"order_id": str(order_id), "source": PAYMENT_SOURCE},
        )
        stripe_price = self._call(
            "Price.create",
            self._stripe.Price.create,
            product=product.id,
            unit_amount=unit_amount,
            currency=self._currency,
        )
        link = self._call(
            "PaymentLink.create",
            self._stripe.PaymentLink.create,
            line_items=[{"price": stripe_price.id, "quantity": 1}],
            metadata=metadata,
            payment_intent_data={"metadata": metadata},
            after_completion={
                "type": "redirect",
                "redirect": {"url": self._confirmation_url(order_id)},
            },
        )
        logger.info(
            "Payment link %s created for order %s (%s)",
            link.id, order_id, customer_email or "no email",
        )
        return {
            "success": True,
            "payment_url": link.url,
            "link_id": link.id,
            "order_id": order_id,
        }

    def create_checkout_session(
        self,
        order_id: int | str,
        camp_name: str,
        price: str | float,
        *,
        quantity: int = 1,
        customer_email: str | None = None,
        customer_name: str | None = None,
        child_name: str | None = None,
        success_url: str | None = None,
        cancel_url: str | None = None,
    ) -> dict[str, Any]:
        """Create a one-shot card Checkout Session for an order."""
        metadata = {
            "order_id": str(order_id),
            "source": PAYMENT_SOURCE,
            "customer_name": customer_name or "",
            "child_name": child_name or "",
        }
        params: dict[str, Any] = {
            "mode": "payment",
            "payment_method_types": ["card"],
            "locale": CHECKOUT_LOCALE,
            "line_items": [
                {
                    "price_data": {
                        "currency": self._currency,
                        "unit_amount": to_cents(price),
                        "product_data": {
                            "name": camp_name,
                            "description": (
                                f"Inscription de {child_name}"
                                if child_name
                                else "Inscription camp Hope Basketball"
                            ),
                        },
                    },
                    "quantity": quantity,
                },
            ],
            "metadata": metadata,
            "payment_intent_data": {"metadata": metadata},
            "success_url": success_url or self._confirmation_url(order_id),
            "cancel_url": cancel_url or self._cancellation_url(order_id),
        }
        if customer_email:
            params["customer_email"] = customer_email

        session = self._call(
            "checkout.Session.create", self._stripe.checkout.Session.create, **params,
        )
        return {
            "success": True,
            "checkout_url": session.url,
            "session_id": session.id,
            "order_id": order_id,
        }

    # ── Refunds and status ──────────────────────────────────────────

    def create_refund(
        self,
        payment_intent_id: str,
        amount: str | float | None = None,
        reason: str = "",
    ) -> dict[str, Any]:
        """Refund a payment in full, or partially when *amount* is given."""
        params: dict[str, Any] = {
            "payment_intent": payment_intent_id,
            "reason": "requested_by_customer",
            "metadata": {"reason_detail": reason, "source": PAYMENT_SOURCE},
        }
        if amount is not None:
            params["amount"] = to_cents(amount)

        refund = self._call("Refund.create", self._stripe.Refund.create, **params)
        logger.info("Refund %s issued for %s (%s)", refund.id, payment_intent_id, refund.status)
        return {
            "success": True,
            "refund_id": refund.id,
            "amount_refunded": refund.amount / 100,
            "currency": refund.currency,
            "status": refund.status,
        }

    def get_payment_status(self, session_id: str) -> dict[str, Any]:
        """Look up a Checkout Session and label its status in French."""
        session = self._call(
            "checkout.Session.retrieve", self._stripe.checkout.Session.retrieve, id=session_id,
        )
        details = getattr(session, "customer_details", None)
        metadata = getattr(session, "metadata", None) or {}
        return {
            "success": True,
            "session_id": session.id,
            "payment_status": session.payment_status,
            "status_label": CHECKOUT_STATUS_LABELS.get(session.status, session.status),
            "amount_total": (session.amount_total or 0) / 100,
            "currency": session.currency,
            "customer_email": getattr(details, "email", None),
            "order_id": metadata.get("order_id"),
        }

    # ── Webhooks ────────────────────────────────────────────────────

    def verify_webhook(self, payload: bytes | str, signature: str | None) -> PaymentEvent:
        """Verify the ``Stripe-Signature`` header and parse the event.

        Raises ``SignatureInvalid`` on a missing or mismatched signature
        and on a body that is not a well-formed event.
        """
        if not signature:
            raise SignatureInvalid("Missing Stripe-Signature header")
        if isinstance(payload, bytes):
            try:
                payload = payload.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise SignatureInvalid("Webhook body is not valid UTF-8") from exc

        try:
            self._stripe.WebhookSignature.verify_header(
                payload, signature, self._webhook_secret, WEBHOOK_TOLERANCE_SECONDS,
            )
        except stripe.SignatureVerificationError as exc:
            raise SignatureInvalid(f"Invalid webhook signature: {exc}") from exc

        try:
            data = json.loads(payload)
            return PaymentEvent(
                id=data.get("id", ""),
                type=data["type"],
                object=dict(data.get("data", {}).get("object") or {}),
            )
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            raise SignatureInvalid("Webhook body is not a valid event") from exc

    def handle_event(self, event: PaymentEvent, commerce: CommerceClient) -> dict[str, Any]:
        """Apply a verified event to the storefront.

        Completed payments mark the order paid (idempotent), failed
        payments mark it failed, and every other kind is acknowledged
        without action.  Storefront failures propagate so that Stripe
        retries the delivery.
        """
        order_id = event.order_id

        if event.type == EVENT_CHECKOUT_COMPLETED:
            if not order_id:
                logger.warning("Checkout %s completed without an order_id", event.object.get("id"))
                return {"action": "no_order_id", "order_id": None}
            result = commerce.mark_order_paid(
                order_id,
                checkout_session_id=event.object.get("id"),
                payment_intent=event.object.get("payment_intent"),
            )
            action = "order_updated" if result["changed"] else "already_paid"
            return {"action": action, "order_id": order_id}

        if event.type == EVENT_PAYMENT_SUCCEEDED:
            amount = event.object.get("amount", 0) / 100
            logger.info("Payment succeeded: %s — %.2f$", event.object.get("id"), amount)
            return {"action": "payment_logged", "order_id": order_id}

        if event.type == EVENT_PAYMENT_FAILED:
            last_error = event.object.get("last_payment_error") or {}
            logger.warning(
                "Payment failed: %s (%s)", event.object.get("id"), last_error.get("message"),
            )
            if order_id:
                commerce.mark_order_failed(order_id)
            return {"action": "payment_failed_logged", "order_id": order_id}

        logger.info("Ignoring unhandled Stripe event %s", event.type)
        return {"action": "ignored", "order_id": order_id}


# ── Module-level singleton (thread-safe) ────────────────────────────
_client: PaymentClient | None = None
_client_lock = threading.Lock()


def get_payment_client() -> PaymentClient:
    """Return a module-level PaymentClient singleton (double-checked locking)."""
    global _client
    if _client is None:
        with _client_lock:
            if _client is None:
                _client = PaymentClient()
    return _client
