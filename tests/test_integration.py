"""End-to-end flows through the HTTP API with the Pi gateway replaced by a mock."""

from fastapi import status

from app.services.pi_gateway import PaymentStatus


def test_full_purchase_and_refund_flow(client, admin_headers, gateway):
    # 1. Admin sets the rate
    response = client.post(
        "/admin/exchange-rate", json={"action": "update", "rate": 2.0}, headers=admin_headers
    )
    assert response.status_code == status.HTTP_200_OK

    # 2. Checkout creates the order
    response = client.post(
        "/orders",
        json={
            "order_id": "ORD500",
            "customer_name": "Aina",
            "phone": "60123456789",
            "product_name": "Tenom Coffee 500g",
            "quantity": 1,
            "total_amount": 80,
            "payment_method": "Pi Network",
            "user_external_id": "pi-uid-500",
        },
    )
    assert response.status_code == status.HTTP_200_OK

    # 3. Pi SDK approve + complete
    response = client.post("/pi/approve", json={"payment_id": "u2a_500", "order_id": "ORD500"})
    assert response.status_code == status.HTTP_200_OK
    response = client.post(
        "/pi/complete", json={"payment_id": "u2a_500", "txid": "tx_500", "order_id": "ORD500"}
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["order"]["order_status"] == "Paid"

    # 4. A paid order cannot be cancelled from the SDK
    response = client.post("/pi/cancel", json={"payment_id": "u2a_500", "order_id": "ORD500"})
    assert response.status_code == status.HTTP_409_CONFLICT

    # 5. Admin refunds half
    response = client.post(
        "/refund/create",
        json={"order_id": "ORD500", "amount_rm": 40, "reason": "Late delivery"},
        headers=admin_headers,
    )
    assert response.status_code == status.HTTP_200_OK
    refund_id = response.json()["refund_id"]
    assert response.json()["amount_pi"] == 20.0

    # 6. Processing times out, then the sweep completes it
    response = client.post("/refund/process", json={"refund_id": refund_id}, headers=admin_headers)
    assert response.json()["status"] == "processing"
    payment_id = response.json()["payment_identifier"]

    gateway.list_incomplete_outbound_payments.return_value = [
        PaymentStatus(payment_id=payment_id, txid="tx_refund_500", transaction_verified=True)
    ]
    response = client.post("/refund/cleanup", headers=admin_headers)
    assert response.json()["results"][0]["action"] == "completed"

    # 7. Refund and order reflect completion
    refund = client.get("/refund/status", params={"refund_id": refund_id}).json()["refund"]
    assert refund["refund_status"] == "completed"
    assert refund["txid"] == "tx_refund_500"

    order = client.get("/orders/ORD500").json()
    assert order["has_refund"] is True
    assert order["refund_reason"] == "Late delivery"
    assert order["refunded_at"] is not None


def test_orphaned_cancel_then_new_payment(client, gateway):
    client.post(
        "/orders",
        json={"order_id": "ORD600", "customer_name": "Ben", "product_name": "Sabah Tea", "total_amount": 20},
    )

    response = client.post("/pi/cancel", json={"payment_id": "ghost"})
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["found_by"] == "not_found"

    response = client.post("/pi/approve", json={"payment_id": "u2a_600", "order_id": "ORD600"})
    assert response.status_code == status.HTTP_200_OK
    gateway.approve_payment.assert_called_once_with("u2a_600")
