from fastapi import status

from app.errors import GatewayError
from app.services.pi_gateway import PaymentStatus


def _create(client, admin_headers, amount=50, order_id="ORD1"):
    return client.post(
        "/refund/create",
        json={"order_id": order_id, "amount_rm": amount, "reason": "Damaged item", "admin_id": "ops-1"},
        headers=admin_headers,
    )


class TestCreateEndpoint:
    def test_create(self, client, admin_headers, test_order, exchange_rate):
        response = _create(client, admin_headers)

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["success"] is True
        assert data["amount_pi"] == 25.0
        assert data["amount_rm"] == 50.0
        assert data["exchange_rate"] == 2.0
        assert data["user_uid"] == "pi-uid-1"
        assert data["status"] == "pending"

    def test_requires_admin(self, client, test_order):
        response = client.post(
            "/refund/create", json={"order_id": "ORD1", "amount_rm": 10, "reason": "r"}
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_missing_reason(self, client, admin_headers, test_order):
        response = client.post(
            "/refund/create", json={"order_id": "ORD1", "amount_rm": 10}, headers=admin_headers
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["success"] is False

    def test_unknown_order(self, client, admin_headers):
        response = _create(client, admin_headers, order_id="NOPE")
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_amount_above_total(self, client, admin_headers, test_order):
        response = _create(client, admin_headers, amount=150)
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "exceeds order total" in response.json()["error"]

    def test_order_without_payer(self, client, admin_headers, fpx_order):
        response = _create(client, admin_headers, amount=10, order_id="ORD3")
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_duplicate(self, client, admin_headers, test_order, exchange_rate):
        _create(client, admin_headers, amount=10)
        response = _create(client, admin_headers, amount=10)
        assert response.status_code == status.HTTP_409_CONFLICT


class TestProcessEndpoint:
    def test_process_completes(self, client, admin_headers, gateway, test_order, exchange_rate):
        refund_id = _create(client, admin_headers).json()["refund_id"]
        gateway.get_payment_status.side_effect = lambda payment_id: PaymentStatus(
            payment_id=payment_id, transaction_verified=True, txid="tx_r"
        )

        response = client.post("/refund/process", json={"refund_id": refund_id}, headers=admin_headers)

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["status"] == "completed"
        assert data["txid"] == "tx_r"
        assert data["payment_identifier"] == "a2u_payment_1"

    def test_process_still_processing(self, client, admin_headers, test_order, exchange_rate):
        refund_id = _create(client, admin_headers).json()["refund_id"]

        response = client.post("/refund/process", json={"refund_id": refund_id}, headers=admin_headers)

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["status"] == "processing"
        assert data["txid"] is None

    def test_process_gateway_failure(self, client, admin_headers, gateway, test_order, exchange_rate):
        refund_id = _create(client, admin_headers).json()["refund_id"]
        gateway.create_outbound_payment.side_effect = GatewayError(
            "Pi API error: 500 - internal", upstream_status=500
        )

        response = client.post("/refund/process", json={"refund_id": refund_id}, headers=admin_headers)

        assert response.status_code == status.HTTP_502_BAD_GATEWAY
        assert response.json()["success"] is False

        detail = client.get("/refund/status", params={"refund_id": refund_id}).json()["refund"]
        assert detail["refund_status"] == "failed"
        assert detail["retry_count"] == 1

    def test_process_completed_refund_is_conflict(self, client, admin_headers, gateway, test_order, exchange_rate):
        refund_id = _create(client, admin_headers).json()["refund_id"]
        gateway.get_payment_status.side_effect = lambda payment_id: PaymentStatus(
            payment_id=payment_id, completed=True, txid="tx_r"
        )
        client.post("/refund/process", json={"refund_id": refund_id}, headers=admin_headers)
        gateway.reset_mock()

        response = client.post("/refund/process", json={"refund_id": refund_id}, headers=admin_headers)

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["error"] == "Refund already completed"
        gateway.create_outbound_payment.assert_not_called()

    def test_process_unknown_refund(self, client, admin_headers):
        response = client.post("/refund/process", json={"refund_id": "REF_nope"}, headers=admin_headers)
        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestCancelEndpoint:
    def test_cancel_failed_then_recreate(self, client, admin_headers, gateway, test_order, exchange_rate):
        refund_id = _create(client, admin_headers).json()["refund_id"]
        gateway.create_outbound_payment.side_effect = GatewayError("Pi API error: 500")
        client.post("/refund/process", json={"refund_id": refund_id}, headers=admin_headers)

        response = client.post(
            "/refund/cancel", json={"refund_id": refund_id, "reason": "Retry later"}, headers=admin_headers
        )
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "cancelled"

        assert _create(client, admin_headers).status_code == status.HTTP_200_OK

    def test_cancel_releases_outbound_payment(self, client, admin_headers, gateway, test_order, exchange_rate):
        refund_id = _create(client, admin_headers).json()["refund_id"]
        gateway.create_outbound_payment.return_value = "a2u_live"
        gateway.get_payment_status.side_effect = GatewayError("Pi API unreachable: timeout")
        client.post("/refund/process", json={"refund_id": refund_id}, headers=admin_headers)
        gateway.get_payment_status.side_effect = lambda payment_id: PaymentStatus(payment_id=payment_id)

        response = client.post("/refund/cancel", json={"refund_id": refund_id}, headers=admin_headers)

        assert response.status_code == status.HTTP_200_OK
        gateway.cancel_payment.assert_called_once_with("a2u_live")


class TestStatusAndList:
    def test_status_includes_order_summary(self, client, admin_headers, test_order, exchange_rate):
        refund_id = _create(client, admin_headers).json()["refund_id"]

        response = client.get("/refund/status", params={"refund_id": refund_id})

        assert response.status_code == status.HTTP_200_OK
        refund = response.json()["refund"]
        assert refund["refund_status"] == "pending"
        assert refund["amount_pi"] == 25.0
        assert refund["metadata"]["orderId"] == "ORD1"
        assert refund["order"]["customer_name"] == "Aina Binti Ali"
        assert refund["order"]["order_total"] == 100.0

    def test_status_requires_refund_id(self, client):
        response = client.get("/refund/status")
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_status_unknown(self, client):
        response = client.get("/refund/status", params={"refund_id": "REF_nope"})
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_list(self, client, admin_headers, test_order, exchange_rate):
        _create(client, admin_headers)

        response = client.get("/refund/list", params={"status": "pending"}, headers=admin_headers)

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["count"] == 1
        assert data["total"] == 1
        assert data["filter"] == "pending"

    def test_list_requires_admin(self, client):
        response = client.get("/refund/list")
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_list_bad_status(self, client, admin_headers):
        response = client.get("/refund/list", params={"status": "weird"}, headers=admin_headers)
        assert response.status_code == status.HTTP_400_BAD_REQUEST


class TestCleanupEndpoint:
    def test_nothing_to_do(self, client, admin_headers):
        response = client.post("/refund/cleanup", headers=admin_headers)

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["message"] == "No incomplete payments found"
        assert data["total_incomplete"] == 0

    def test_reports_per_payment(self, client, admin_headers, gateway):
        gateway.list_incomplete_outbound_payments.return_value = [
            PaymentStatus(payment_id="p1"),
            PaymentStatus(payment_id="p2", txid="tx_2", transaction_verified=True),
        ]

        data = client.post("/refund/cleanup", headers=admin_headers).json()

        assert data["total_incomplete"] == 2
        assert data["results"] == [
            {"payment_id": "p1", "action": "cancelled", "success": True, "reason": "No blockchain transaction"},
            {"payment_id": "p2", "action": "completed", "success": True, "txid": "tx_2"},
        ]

    def test_listing_failure_is_502(self, client, admin_headers, gateway):
        gateway.list_incomplete_outbound_payments.side_effect = GatewayError("Pi API unreachable: timeout")

        response = client.post("/refund/cleanup", headers=admin_headers)

        assert response.status_code == status.HTTP_502_BAD_GATEWAY
