"""Tests for the WooCommerce CommerceClient service."""

from __future__ import annotations

from unittest.mock import patch

import httpx
import pytest

from camp_agent.errors import CommerceAPIError, UpstreamTimeout
from camp_agent.services.commerce_client import (
    INITIAL_BACKOFF_SECONDS,
    MAX_RETRIES,
    CommerceClient,
    format_camp,
    is_camp_product,
)
from tests.factories import camp_product, merch_product, mock_http_response


def _client() -> CommerceClient:
    return CommerceClient(
        base_url="https://shop.example.com/",
        consumer_key="ck_test",
        consumer_secret="cs_test",
    )


# ── Product helpers ──────────────────────────────────────────────────


class TestProductHelpers:
    def test_camp_marker_meta_identifies_camps(self):
        assert is_camp_product(camp_product()) is True
        assert is_camp_product(merch_product()) is False

    def test_format_camp_reads_meta_and_strips_html(self):
        camp = format_camp(camp_product(stock=12, age_min="9", age_max="12"))
        assert camp["start_date"] == "2026-06-29"
        assert camp["age_min"] == 9
        assert camp["age_max"] == 12
        assert camp["spots_remaining"] == 12
        assert camp["description"] == "Semaine complète"

    def test_format_camp_defaults_when_meta_missing(self):
        product = {
            "id": 7,
            "name": "Camp",
            "meta_data": [{"key": "camp_start_date", "value": "2026-07-06"}],
        }
        camp = format_camp(product)
        assert camp["age_min"] == 8
        assert camp["age_max"] == 17
        # Without stock management the whole capacity is considered open
        assert camp["spots_remaining"] == 60

    def test_client_targets_versioned_api_prefix(self):
        client = _client()
        assert str(client._client.base_url).rstrip("/") == (
            "https://shop.example.com/wp-json/wc/v3"
        )


# ── Catalog ──────────────────────────────────────────────────────────


class TestListOfferings:
    def test_excludes_merchandise(self):
        client = _client()
        products = [camp_product(101), merch_product(900)]
        with patch.object(client._client, "request", return_value=mock_http_response(products)):
            result = client.list_offerings()
        assert result["success"] is True
        assert [c["id"] for c in result["camps"]] == [101]
        assert result["total"] == 1

    def test_filters_by_age(self):
        client = _client()
        products = [
            camp_product(1, age_min="8", age_max="12"),
            camp_product(2, age_min="13", age_max="17"),
        ]
        with patch.object(client._client, "request", return_value=mock_http_response(products)):
            result = client.list_offerings(age=10)
        assert [c["id"] for c in result["camps"]] == [1]

    def test_filters_by_start_month(self):
        client = _client()
        products = [
            camp_product(1, start="2026-06-29"),
            camp_product(2, start="2026-07-06"),
        ]
        with patch.object(client._client, "request", return_value=mock_http_response(products)):
            result = client.list_offerings(month=7)
        assert [c["id"] for c in result["camps"]] == [2]

    def test_sends_catalog_query_params(self):
        client = _client()
        with patch.object(
            client._client, "request", return_value=mock_http_response([]),
        ) as mock_req:
            client.list_offerings()
        params = mock_req.call_args[1]["params"]
        assert params["search"] == "Camp"
        assert params["status"] == "publish"
        assert params["per_page"] == 50


class TestCheckAvailability:
    def test_reports_remaining_spots(self):
        client = _client()
        with patch.object(
            client._client, "request", return_value=mock_http_response(camp_product(stock=3)),
        ):
            result = client.check_availability(101)
        assert result["spots_remaining"] == 3
        assert result["is_available"] is True

    def test_zero_stock_is_unavailable(self):
        client = _client()
        with patch.object(
            client._client, "request", return_value=mock_http_response(camp_product(stock=0)),
        ):
            result = client.check_availability(101)
        assert result["is_available"] is False

    def test_merchandise_is_not_a_camp(self):
        client = _client()
        with patch.object(
            client._client, "request", return_value=mock_http_response(merch_product(900)),
        ):
            result = client.check_availability(900)
        assert result["success"] is False
        assert result["error"] == "not_a_camp"


class TestListMerchandise:
    def test_returns_only_non_camp_products(self):
        client = _client()
        products = [camp_product(101), merch_product(900)]
        with patch.object(client._client, "request", return_value=mock_http_response(products)):
            result = client.list_merchandise()
        assert [p["id"] for p in result["products"]] == [900]
        assert result["products"][0]["description"] == "Coton bio"
        assert result["products"][0]["image"] == "https://shop.example.com/chandail.jpg"


# ── Bookings ─────────────────────────────────────────────────────────


class TestCreateBooking:
    _BOOKING = {
        "first_name": "Marie",
        "last_name": "Tremblay",
        "email": "marie@example.com",
        "child_name": "Léo",
        "child_age": 10,
    }

    def test_sold_out_camp_creates_no_order(self):
        client = _client()
        with patch.object(
            client._client, "request", return_value=mock_http_response(camp_product(stock=0)),
        ) as mock_req:
            result = client.create_booking(101, **self._BOOKING)

        assert result["success"] is False
        assert result["error"] == "sold_out"
        methods = [c[0][0] for c in mock_req.call_args_list]
        assert "POST" not in methods

    def test_insufficient_capacity_reports_remaining(self):
        client = _client()
        with patch.object(
            client._client, "request", return_value=mock_http_response(camp_product(stock=1)),
        ) as mock_req:
            result = client.create_booking(101, quantity=2, **self._BOOKING)

        assert result["error"] == "insufficient_capacity"
        assert result["spots_remaining"] == 1
        assert mock_req.call_count == 1

    def test_merchandise_cannot_be_booked(self):
        client = _client()
        with patch.object(
            client._client, "request", return_value=mock_http_response(merch_product(900)),
        ) as mock_req:
            result = client.create_booking(900, **self._BOOKING)

        assert result["error"] == "not_a_camp"
        assert mock_req.call_count == 1

    def test_creates_pending_order(self):
        client = _client()
        order = {
            "id": 5001,
            "number": "5001",
            "total": "350.00",
            "currency": "CAD",
            "status": "pending",
        }
        with patch.object(
            client._client,
            "request",
            side_effect=[mock_http_response(camp_product(stock=5)), mock_http_response(order, 201)],
        ) as mock_req:
            result = client.create_booking(101, phone="418-555-0100", **self._BOOKING)

        assert result["success"] is True
        assert result["order_id"] == 5001
        assert result["status"] == "pending"
        assert result["price"] == "350.00"

        method, path = mock_req.call_args_list[1][0]
        assert (method, path) == ("POST", "/orders")
        payload = mock_req.call_args_list[1][1]["json"]
        assert payload["status"] == "pending"
        assert payload["billing"]["email"] == "marie@example.com"
        assert payload["billing"]["phone"] == "418-555-0100"
        assert payload["line_items"] == [{"product_id": 101, "quantity": 1}]
        meta = {m["key"]: m["value"] for m in payload["meta_data"]}
        assert meta["child_name"] == "Léo"
        assert meta["child_age"] == "10"


# ── Orders ───────────────────────────────────────────────────────────


class TestOrderStatus:
    def test_status_label_is_french(self):
        client = _client()
        order = {
            "id": 5001,
            "number": "5001",
            "status": "processing",
            "total": "350.00",
            "billing": {"first_name": "Marie", "last_name": "Tremblay", "email": "m@x.com"},
        }
        with patch.object(client._client, "request", return_value=mock_http_response(order)):
            result = client.get_order_status(5001)
        assert result["status_label"].startswith("Paiement reçu")
        assert result["billing"]["name"] == "Marie Tremblay"

    def test_orders_by_email_joins_item_names(self):
        client = _client()
        orders = [
            {
                "id": 1,
                "status": "pending",
                "line_items": [{"name": "Camp A"}, {"name": "Chandail"}],
            },
        ]
        with patch.object(client._client, "request", return_value=mock_http_response(orders)):
            result = client.get_orders_by_email("m@x.com")
        assert result["orders"][0]["items"] == "Camp A, Chandail"
        assert result["orders"][0]["status_label"] == "En attente de paiement"


class TestMarkOrderPaid:
    def test_pending_order_moves_to_processing(self):
        client = _client()
        with patch.object(
            client._client,
            "request",
            side_effect=[
                mock_http_response({"id": 5001, "status": "pending"}),
                mock_http_response({"id": 5001, "status": "processing"}),
            ],
        ) as mock_req:
            result = client.mark_order_paid(5001, checkout_session_id="cs_1", payment_intent="pi_1")

        assert result["changed"] is True
        put = mock_req.call_args_list[1]
        assert put[0] == ("PUT", "/orders/5001")
        assert put[1]["json"]["status"] == "processing"

    def test_already_paid_order_is_left_alone(self):
        client = _client()
        with patch.object(
            client._client,
            "request",
            return_value=mock_http_response({"id": 5001, "status": "completed"}),
        ) as mock_req:
            result = client.mark_order_paid(5001)

        assert result["changed"] is False
        assert mock_req.call_count == 1


class TestMarkOrderFailed:
    def test_paid_order_is_never_downgraded(self):
        client = _client()
        with patch.object(
            client._client,
            "request",
            return_value=mock_http_response({"id": 5001, "status": "processing"}),
        ) as mock_req:
            result = client.mark_order_failed(5001)
        assert result["changed"] is False
        assert mock_req.call_count == 1

    def test_pending_order_moves_to_failed(self):
        client = _client()
        with patch.object(
            client._client,
            "request",
            side_effect=[
                mock_http_response({"id": 5001, "status": "pending"}),
                mock_http_response({"id": 5001, "status": "failed"}),
            ],
        ) as mock_req:
            result = client.mark_order_failed(5001)
        assert result["status"] == "failed"
        assert mock_req.call_args_list[1][1]["json"] == {"status": "failed"}


# ── Retry logic ──────────────────────────────────────────────────────


class TestRetryLogic:
    @patch("camp_agent.services.commerce_client.time.sleep")
    def test_retries_on_timeout(self, mock_sleep):
        client = _client()
        with patch.object(
            client._client,
            "request",
            side_effect=[httpx.TimeoutException("timeout"), mock_http_response([])],
        ):
            result = client.list_offerings()
        assert result["total"] == 0
        mock_sleep.assert_called_once_with(INITIAL_BACKOFF_SECONDS)

    @patch("camp_agent.services.commerce_client.time.sleep")
    def test_retries_on_503(self, mock_sleep):
        client = _client()
        with patch.object(
            client._client,
            "request",
            side_effect=[mock_http_response({}, 503), mock_http_response(camp_product())],
        ):
            assert client.get_offering(101)["id"] == 101

    @patch("camp_agent.services.commerce_client.time.sleep")
    def test_does_not_retry_on_404(self, mock_sleep):
        client = _client()
        with patch.object(
            client._client, "request", return_value=mock_http_response({}, 404),
        ):
            with pytest.raises(CommerceAPIError) as exc_info:
                client.get_order_status(9999)
        assert exc_info.value.status_code == 404
        mock_sleep.assert_not_called()

    @patch("camp_agent.services.commerce_client.time.sleep")
    def test_timeouts_exhaust_into_upstream_timeout(self, mock_sleep):
        client = _client()
        with patch.object(
            client._client, "request", side_effect=httpx.TimeoutException("timeout"),
        ) as mock_req:
            with pytest.raises(UpstreamTimeout):
                client.list_merchandise()
        assert mock_req.call_count == MAX_RETRIES
        assert mock_sleep.call_count == MAX_RETRIES - 1

    @patch("camp_agent.services.commerce_client.time.sleep")
    def test_server_errors_exhaust_into_commerce_error(self, mock_sleep):
        client = _client()
        with patch.object(
            client._client, "request", return_value=mock_http_response({}, 500),
        ):
            with pytest.raises(CommerceAPIError) as exc_info:
                client.list_merchandise()
        assert "after" in str(exc_info.value)

    @patch("camp_agent.services.commerce_client.time.sleep")
    def test_dropped_connections_are_retried_then_wrapped(self, mock_sleep):
        client = _client()
        with patch.object(
            client._client,
            "request",
            side_effect=[
                httpx.ReadError("connection reset"),
                httpx.RemoteProtocolError("peer closed"),
                httpx.ReadError("connection reset"),
            ],
        ) as mock_req:
            with pytest.raises(CommerceAPIError):
                client.list_offerings()
        assert mock_req.call_count == MAX_RETRIES

    @patch("camp_agent.services.commerce_client.time.sleep")
    def test_non_json_body_is_a_commerce_error(self, mock_sleep):
        client = _client()
        response = mock_http_response(None)
        response.json.side_effect = ValueError("Expecting value")
        with patch.object(client._client, "request", return_value=response):
            with pytest.raises(CommerceAPIError) as exc_info:
                client.list_offerings()
        assert "non-JSON" in str(exc_info.value)
        mock_sleep.assert_not_called()
