"""HTTP client for the WooCommerce REST API v3 with retry logic and
timeout handling.

WooCommerce docs: https://woocommerce.github.io/woocommerce-rest-api-docs/
Requests authenticate with the store's consumer key/secret over HTTP basic
auth.  Camps are ordinary catalog products distinguished by their
``camp_start_date`` / ``camp_end_date`` meta fields; everything else in the
catalog is merchandise.

Nothing here is cached: capacity and order status change in real time, so
every chat turn re-fetches authoritative state.
"""

from __future__ import annotations

import logging
import re
import threading
import time
from datetime import date
from typing import Any

import httpx

from camp_agent.config import WOO_CONSUMER_KEY, WOO_CONSUMER_SECRET, WOO_URL
from camp_agent.errors import (
    CommerceAPIError,
    InsufficientCapacity,
    NotACamp,
    SoldOut,
    UpstreamTimeout,
)
from camp_agent.services.metrics import metrics

logger = logging.getLogger(__name__)

# ── Retry configuration ─────────────────────────────────────────────
MAX_RETRIES = 3
INITIAL_BACKOFF_SECONDS = 1.0
REQUEST_TIMEOUT_SECONDS = 15.0

API_PREFIX = "/wp-json/wc/v3"
CATALOG_PAGE_SIZE = 50
BOOKING_SOURCE = "hope-basketball-agent"

# ── Camp defaults when a product lacks the meta field ───────────────
DEFAULT_SPOTS_TOTAL = 60
DEFAULT_AGE_MIN = 8
DEFAULT_AGE_MAX = 17
DEFAULT_CAMP_HOURS = "9h00-16h00"
DEFAULT_DAYCARE_HOURS = "8h00-9h00 / 16h00-17h00"

CAMP_MARKER_KEYS = frozenset({"camp_start_date", "camp_end_date"})
PAID_STATUSES = frozenset({"processing", "completed"})

ORDER_STATUS_LABELS = {
    "pending": "En attente de paiement",
    "processing": "Paiement reçu — inscription confirmée",
    "completed": "Inscription complétée",
    "cancelled": "Annulée",
    "refunded": "Remboursée",
    "failed": "Paiement échoué",
    "on-hold": "En attente de vérification",
}

_TAG_RE = re.compile(r"<[^>]*>")


# ── Product helpers ─────────────────────────────────────────────────


def _meta(product: dict[str, Any], key: str) -> Any:
    for entry in product.get("meta_data") or []:
        if entry.get("key") == key:
            return entry.get("value")
    return None


def _to_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _strip_html(text: str | None) -> str:
    return _TAG_RE.sub("", text or "").strip()


def _first_image(product: dict[str, Any]) -> str | None:
    images = product.get("images") or []
    return images[0].get("src") if images else None


def is_camp_product(product: dict[str, Any]) -> bool:
    """A product is a camp when it carries start/end-date meta."""
    return any(
        entry.get("key") in CAMP_MARKER_KEYS for entry in product.get("meta_data") or []
    )


def format_camp(product: dict[str, Any]) -> dict[str, Any]:
    """Flatten a WooCommerce product into the camp shape shown to the model."""
    spots_total = _to_int(_meta(product, "spots_total"), DEFAULT_SPOTS_TOTAL)
    stock = product.get("stock_quantity")
    return {
        "id": product["id"],
        "name": product.get("name", ""),
        "slug": product.get("slug"),
        "price": product.get("price"),
        "regular_price": product.get("regular_price"),
        "description": _strip_html(product.get("short_description")),
        "start_date": _meta(product, "camp_start_date"),
        "end_date": _meta(product, "camp_end_date"),
        "age_min": _to_int(_meta(product, "age_min"), DEFAULT_AGE_MIN),
        "age_max": _to_int(_meta(product, "age_max"), DEFAULT_AGE_MAX),
        "spots_total": spots_total,
        "spots_remaining": spots_total if stock is None else _to_int(stock, 0),
        "camp_hours": _meta(product, "camp_hours") or DEFAULT_CAMP_HOURS,
        "daycare_included": _meta(product, "daycare_included") == "yes",
        "daycare_hours": _meta(product, "daycare_hours") or DEFAULT_DAYCARE_HOURS,
        "image": _first_image(product),
        "permalink": product.get("permalink"),
        "in_stock": product.get("in_stock", product.get("stock_status") == "instock"),
    }


def _start_month(camp: dict[str, Any]) -> int | None:
    start = camp.get("start_date")
    if not start:
        return None
    try:
        return date.fromisoformat(str(start)[:10]).month
    except ValueError:
        return None


class CommerceClient:
    """Thin wrapper around the WooCommerce REST API with automatic retries.

    Reads raise ``CommerceAPIError`` (or ``UpstreamTimeout``) on failure;
    callers in ``camp_agent.tools`` turn those into structured tool results.
    The booking capacity checks are the one piece of policy that lives
    here: ``create_booking`` returns ``SoldOut`` / ``InsufficientCapacity``
    failure objects instead of raising.
    """

    def __init__(
        self,
        base_url: str | None = None,
        consumer_key: str | None = None,
        consumer_secret: str | None = None,
    ):
        self._base_url = (base_url or WOO_URL).rstrip("/")
        self._client = httpx.Client(
            base_url=f"{self._base_url}{API_PREFIX}",
            auth=(consumer_key or WOO_CONSUMER_KEY, consumer_secret or WOO_CONSUMER_SECRET),
            headers={"Content-Type": "application/json"},
            timeout=REQUEST_TIMEOUT_SECONDS,
        )

    # ── Internal helpers ─────────────────────────────────────────────

    def _request(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> Any:
        """Execute an HTTP request with exponential-backoff retries."""
        last_error: Exception | None = None
        for attempt in range(1, MAX_RETRIES + 1):
            try:
                with metrics.track("woocommerce", operation):
                    response = self._client.request(
                        method, path, params=params, json=json_body,
                    )
                    if response.status_code >= 400:
                        kind = "Server" if response.status_code >= 500 else "Client"
                        raise CommerceAPIError(
                            f"{kind} error {response.status_code}: {response.text}",
                            status_code=response.status_code,
                        )
                try:
                    return response.json()
                except ValueError as exc:
                    raise CommerceAPIError(
                        f"WooCommerce {operation} returned a non-JSON body",
                        status_code=response.status_code,
                    ) from exc

            except httpx.TransportError as exc:
                last_error = exc
                logger.warning(
                    "WooCommerce %s attempt %d/%d failed (%s)",
                    operation, attempt, MAX_RETRIES, type(exc).__name__,
                )
            except CommerceAPIError as exc:
                if exc.status_code and exc.status_code >= 500:
                    last_error = exc
                    logger.warning(
                        "WooCommerce %s server error on attempt %d/%d",
                        operation, attempt, MAX_RETRIES,
                    )
                else:
                    raise  # 4xx errors are not retried
            except httpx.HTTPError as exc:
                raise CommerceAPIError(f"WooCommerce {operation} failed: {exc}") from exc

            if attempt < MAX_RETRIES:
                time.sleep(INITIAL_BACKOFF_SECONDS * (2 ** (attempt - 1)))

        if isinstance(last_error, httpx.TimeoutException):
            raise UpstreamTimeout(
                f"WooCommerce {operation} timed out after {MAX_RETRIES} attempts"
            )
        raise CommerceAPIError(
            f"WooCommerce {operation} failed after {MAX_RETRIES} attempts: {last_error}"
        )

    def _get_product(self, product_id: int) -> dict[str, Any]:
        return self._request("GET", f"/products/{product_id}", operation="get_product")

    def _get_order(self, order_id: int) -> dict[str, Any]:
        return self._request("GET", f"/orders/{order_id}", operation="get_order")

    def _list_products(self, **params: Any) -> list[dict[str, Any]]:
        params = {"per_page": CATALOG_PAGE_SIZE, "status": "publish", **params}
        return self._request("GET", "/products", operation="list_products", params=params)

    # ── Catalog ──────────────────────────────────────────────────────

    def list_offerings(
        self,
        age: int | None = None,
        month: int | None = None,
    ) -> dict[str, Any]:
        """List published camps, optionally filtered by child age and month.

        Filtering happens client-side on a single catalog page.
        """
        products = self._list_products(search="Camp", orderby="date", order="asc")
        camps = [format_camp(p) for p in products if is_camp_product(p)]

        if age is not None:
            camps = [c for c in camps if c["age_min"] <= age <= c["age_max"]]
        if month is not None:
            camps = [c for c in camps if _start_month(c) == month]

        return {"success": True, "camps": camps, "total": len(camps)}

    def get_offering(self, product_id: int) -> dict[str, Any] | None:
        """Return the formatted camp, or ``None`` if the product is not a camp."""
        product = self._get_product(product_id)
        if not is_camp_product(product):
            return None
        return format_camp(product)

    def check_availability(self, product_id: int) -> dict[str, Any]:
        """Fetch the current remaining capacity for a camp.

        Merchandise ids yield a ``NotACamp`` failure object.
        """
        camp = self.get_offering(product_id)
        if camp is None:
            return NotACamp("Ce produit n'est pas un camp.").as_result()
        return {
            "success": True,
            "product_id": product_id,
            "name": camp["name"],
            "spots_total": camp["spots_total"],
            "spots_remaining": camp["spots_remaining"],
            "is_available": camp["spots_remaining"] > 0,
            "price": camp["price"],
            "start_date": camp["start_date"],
            "end_date": camp["end_date"],
        }

    def list_merchandise(self) -> dict[str, Any]:
        """List published products that are not camps."""
        products = self._list_products()
        merch = [
            {
                "id": p["id"],
                "name": p.get("name", ""),
                "price": p.get("price"),
                "regular_price": p.get("regular_price"),
                "sale_price": p.get("sale_price"),
                "description": _strip_html(p.get("short_description")),
                "in_stock": p.get("in_stock", p.get("stock_status") == "instock"),
                "image": _first_image(p),
                "permalink": p.get("permalink"),
            }
            for p in products
            if not is_camp_product(p)
        ]
        return {"success": True, "products": merch, "total": len(merch)}

    # ── Orders ───────────────────────────────────────────────────────

    def create_booking(
        self,
        product_id: int,
        *,
        first_name: str,
        last_name: str,
        email: str,
        child_name: str,
        child_age: int,
        phone: str | None = None,
        quantity: int = 1,
    ) -> dict[str, Any]:
        """Create a pending order for a camp after re-checking capacity.

        Returns a failure object (never raises) when the camp is sold out
        or has fewer seats left than *quantity*; no order is created then.
        """
        availability = self.check_availability(product_id)
        if not availability["success"]:
            return availability
        remaining = availability["spots_remaining"]
        if remaining <= 0:
            logger.info("Booking refused: camp %s is sold out", product_id)
            return SoldOut(
                "Désolé, ce camp est complet. Il n'y a plus de places disponibles."
            ).as_result()
        if remaining < quantity:
            logger.info(
                "Booking refused: camp %s has %d seat(s), %d requested",
                product_id, remaining, quantity,
            )
            return InsufficientCapacity(
                f"Il ne reste que {remaining} place(s) pour ce camp.",
                remaining=remaining,
            ).as_result()

        order = self._request(
            "POST",
            "/orders",
            operation="create_order",
            json_body={
                "status": "pending",
                "billing": {
                    "first_name": first_name,
                    "last_name": last_name,
                    "email": email,
                    "phone": phone or "",
                },
                "line_items": [{"product_id": product_id, "quantity": quantity}],
                "meta_data": [
                    {"key": "child_name", "value": child_name},
                    {"key": "child_age", "value": str(child_age)},
                    {"key": "booking_source", "value": BOOKING_SOURCE},
                ],
            },
        )
        logger.info("Created pending order %s for camp %s", order.get("id"), product_id)
        return {
            "success": True,
            "order_id": order["id"],
            "order_number": order.get("number"),
            "total": order.get("total"),
            "currency": order.get("currency"),
            "status": order.get("status"),
            "camp_name": availability["name"],
            "price": availability["price"],
            "start_date": availability["start_date"],
            "end_date": availability["end_date"],
        }

    def get_order_status(self, order_id: int) -> dict[str, Any]:
        order = self._get_order(order_id)
        billing = order.get("billing") or {}
        status = order.get("status", "")
        return {
            "success": True,
            "order_id": order["id"],
            "order_number": order.get("number"),
            "status": status,
            "status_label": ORDER_STATUS_LABELS.get(status, status),
            "total": order.get("total"),
            "date_created": order.get("date_created"),
            "billing": {
                "name": f"{billing.get('first_name', '')} {billing.get('last_name', '')}".strip(),
                "email": billing.get("email"),
            },
        }

    def get_orders_by_email(self, email: str) -> dict[str, Any]:
        """Return the 10 most recent orders matching *email*."""
        orders = self._request(
            "GET",
            "/orders",
            operation="search_orders",
            params={"search": email, "per_page": 10, "orderby": "date", "order": "desc"},
        )
        return {
            "success": True,
            "orders": [
                {
                    "order_id": o["id"],
                    "order_number": o.get("number"),
                    "status": o.get("status"),
                    "status_label": ORDER_STATUS_LABELS.get(o.get("status", ""), o.get("status")),
                    "total": o.get("total"),
                    "date": o.get("date_created"),
                    "items": ", ".join(i.get("name", "") for i in o.get("line_items") or []),
                }
                for o in orders
            ],
        }

    def mark_order_paid(
        self,
        order_id: int | str,
        *,
        checkout_session_id: str | None = None,
        payment_intent: str | None = None,
    ) -> dict[str, Any]:
        """Move an order to ``processing``.  A no-op if it is already paid."""
        order = self._get_order(order_id)
        if order.get("status") in PAID_STATUSES:
            logger.info("Order %s already paid (%s); nothing to do", order_id, order["status"])
            return {"order_id": order_id, "status": order["status"], "changed": False}

        self._request(
            "PUT",
            f"/orders/{order_id}",
            operation="update_order",
            json_body={
                "status": "processing",
                "meta_data": [
                    {"key": "stripe_session_id", "value": checkout_session_id or ""},
                    {"key": "stripe_payment_intent", "value": payment_intent or ""},
                ],
            },
        )
        logger.info("Order %s marked as paid", order_id)
        return {"order_id": order_id, "status": "processing", "changed": True}

    def mark_order_failed(self, order_id: int | str) -> dict[str, Any]:
        """Move an order to ``failed`` unless it has already been paid."""
        order = self._get_order(order_id)
        status = order.get("status")
        if status in PAID_STATUSES or status == "failed":
            logger.info("Order %s left as %s on payment failure", order_id, status)
            return {"order_id": order_id, "status": status, "changed": False}

        self._request(
            "PUT",
            f"/orders/{order_id}",
            operation="update_order",
            json_body={"status": "failed"},
        )
        logger.info("Order %s marked as failed", order_id)
        return {"order_id": order_id, "status": "failed", "changed": True}


# ── Module-level singleton (thread-safe) ────────────────────────────
_client: CommerceClient | None = None
_client_lock = threading.Lock()


def get_commerce_client() -> CommerceClient:
    """Return a module-level CommerceClient singleton (double-checked locking)."""
    global _client
    if _client is None:
        with _client_lock:
            if _client is None:
                _client = CommerceClient()
    return _client
