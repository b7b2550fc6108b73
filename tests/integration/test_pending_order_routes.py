"""Integration tests for pending-order ledger endpoints."""

from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from src.api.middleware.error_handler import DuplicateOrderError, LedgerValidationError


class TestCreatePendingOrder:
    """Tests for POST /api/v1/pending-orders."""

    def test_creates_entry(self, client: TestClient) -> None:
        """Test that a valid intent returns the new row id."""
        with patch("src.api.routes.pending_orders.PendingOrderService") as mock_service:
            mock_service.return_value.create = AsyncMock(return_value=42)
            response = client.post(
                "/api/v1/pending-orders",
                json={
                    "order_number": "DH-ECOM-0751",
                    "items": [{"id": "v1", "name": "Herbal Hair Oil", "price": 499, "quantity": 1}],
                    "total": 499,
                    "customer_info": {"name": "Priya", "email": "priya@example.com", "state": "TN"},
                },
            )

        assert response.status_code == 201
        assert response.json() == {"id": 42, "order_number": "DH-ECOM-0751"}

        data = mock_service.return_value.create.call_args.args[0]
        assert data["order_number"] == "DH-ECOM-0751"
        assert data["customer_info"]["email"] == "priya@example.com"
        assert "shipping_charges" not in data

    def test_missing_data_returns_422(self, client: TestClient) -> None:
        """Test that ledger validation failures use the standard error body."""
        with patch("src.api.routes.pending_orders.PendingOrderService") as mock_service:
            mock_service.return_value.create = AsyncMock(
                side_effect=LedgerValidationError(
                    details=[{"loc": ["customer_info", "email"], "msg": "Customer email is required", "type": "missing"}]
                )
            )
            response = client.post("/api/v1/pending-orders", json={"order_number": "DH-ECOM-0751"})

        assert response.status_code == 422
        data = response.json()
        assert data["error"] == "validation_error"
        assert data["details"][0]["loc"] == ["customer_info", "email"]

    def test_taken_order_number_returns_409(self, client: TestClient) -> None:
        """Test that an order number already in the ledger is rejected."""
        with patch("src.api.routes.pending_orders.PendingOrderService") as mock_service:
            mock_service.return_value.create = AsyncMock(side_effect=DuplicateOrderError("DH-ECOM-0751"))
            response = client.post(
                "/api/v1/pending-orders",
                json={
                    "order_number": "DH-ECOM-0751",
                    "items": [{"id": "v1", "name": "Herbal Hair Oil", "price": 499, "quantity": 1}],
                    "customer_info": {"name": "Priya", "email": "priya@example.com"},
                },
            )

        assert response.status_code == 409
        assert response.json()["error"] == "duplicate_order"


class TestLedgerUpdates:
    """Tests for correlation and payment detail updates."""

    def test_record_razorpay_order(self, client: TestClient) -> None:
        """Test recording the Razorpay order id."""
        with patch("src.api.routes.pending_orders.PendingOrderService") as mock_service:
            mock_service.return_value.update_gateway_correlation = AsyncMock(return_value=True)
            response = client.put(
                "/api/v1/pending-orders/DH-ECOM-0751/razorpay-order",
                json={"razorpay_order_id": "order_XYZ789"},
            )

        assert response.status_code == 200
        assert response.json() == {"order_number": "DH-ECOM-0751", "updated": True}
        mock_service.return_value.update_gateway_correlation.assert_awaited_once_with("DH-ECOM-0751", "order_XYZ789")

    def test_payment_details(self, client: TestClient) -> None:
        """Test that a rejected write is reported as not updated."""
        with patch("src.api.routes.pending_orders.PendingOrderService") as mock_service:
            mock_service.return_value.update_payment_details = AsyncMock(return_value=False)
            response = client.put(
                "/api/v1/pending-orders/DH-ECOM-0751/payment-details",
                json={"payment_id": "pay_1", "status": "completed"},
            )

        assert response.status_code == 200
        assert response.json()["updated"] is False
        mock_service.return_value.update_payment_details.assert_awaited_once_with(
            "DH-ECOM-0751",
            gateway_order_id=None,
            payment_id="pay_1",
            status="completed",
            failure_reason=None,
        )

    def test_unknown_status_is_rejected(self, client: TestClient) -> None:
        """Test request validation of the status field."""
        response = client.put(
            "/api/v1/pending-orders/DH-ECOM-0751/payment-details",
            json={"status": "shipped"},
        )

        assert response.status_code == 422


class TestListAndExpire:
    """Tests for listing and expiry."""

    def test_list_by_email(self, client: TestClient) -> None:
        """Test listing a customer's ledger entries."""
        with patch("src.api.routes.pending_orders.PendingOrderService") as mock_service:
            mock_service.return_value.list_pending_orders = AsyncMock(
                return_value=[
                    {
                        "id": 1,
                        "order_number": "DH-ECOM-0751",
                        "status": "pending",
                        "customer_info": {"email": "priya@example.com"},
                        "created_at": "2024-05-01T10:00:00+00:00",
                    }
                ]
            )
            response = client.get("/api/v1/pending-orders", params={"email": "priya@example.com"})

        assert response.status_code == 200
        items = response.json()["items"]
        assert [item["order_number"] for item in items] == ["DH-ECOM-0751"]
        mock_service.return_value.list_pending_orders.assert_awaited_once_with("priya@example.com")

    def test_expire(self, client: TestClient) -> None:
        """Test running one expiry sweep on demand."""
        with patch("src.api.routes.pending_orders.get_expiry_sweeper") as mock_sweeper:
            mock_sweeper.return_value.sweep = AsyncMock(return_value=3)
            response = client.post("/api/v1/pending-orders/expire")

        assert response.status_code == 200
        assert response.json() == {"expired": 3}
