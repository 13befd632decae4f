"""Integration tests for the provider callback endpoint.

The endpoint answers 200 for everything so the provider never retries;
what happened is reported in the body.
"""

from merch.order.order import Order
from protean import current_domain


def _place_order(provider_order_id="ord_2001"):
    order = Order.create(
        customer_id="cust-001",
        creator_id="creator-cb-001",
        items_data=[
            {
                "product_id": "prod-001",
                "provider_sku": "GLOBAL-CAN-10X10",
                "title": "Sunset Canvas",
                "quantity": 1,
                "base_cost": 60.0,
                "selling_price": 150.0,
            }
        ],
        shipping_address={
            "name": "Maria Silva",
            "line1": "Rua das Flores, 100",
            "city": "São Paulo",
            "postal_code": "01000-000",
            "country_code": "BR",
        },
        pricing={"subtotal": 150.0, "grand_total": 150.0},
        commission_rate=70.0,
    )
    order.record_payment()
    order.record_provider_acceptance(provider_order_id)
    current_domain.repository_for(Order).add(order)
    return order


def _callback(provider_order_id="ord_2001", stage="InProgress", details=None, **order_fields):
    order = {"id": provider_order_id, "status": {"stage": stage, "details": details or {}}}
    order.update(order_fields)
    return {
        "type": f"com.prodigi.order.status.stage.changed#{stage}",
        "subject": provider_order_id,
        "data": {"order": order},
    }


class TestCallbackEndpoint:
    def test_health_check(self, client):
        response = client.get("/provider/callbacks")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_progress_callback_is_applied(self, client):
        order = _place_order()
        response = client.post("/provider/callbacks", json=_callback())
        assert response.status_code == 200
        data = response.json()
        assert data["received"] is True
        assert data["handled"] is True
        assert data["order_number"] == order.order_number
        assert data["previous_status"] == "confirmed"
        assert data["new_status"] == "processing"
        assert data["credited"] is False

    def test_delivery_credits_creator(self, client, services):
        _place_order()
        response = client.post(
            "/provider/callbacks",
            json=_callback(stage="Complete", details={"shipping": "Complete"}),
        )
        assert response.status_code == 200
        assert response.json()["credited"] is True
        assert services.ledger.get("creator-cb-001").total_earnings == 63.0

    def test_replayed_delivery_credits_once(self, client, services):
        _place_order()
        body = _callback(stage="Complete", details={"shipping": "Complete"})
        first = client.post("/provider/callbacks", json=body).json()
        second = client.post("/provider/callbacks", json=body).json()
        assert first["credited"] is True
        assert second["credited"] is False
        assert services.ledger.get("creator-cb-001").total_earnings == 63.0

    def test_unknown_order_still_answers_200(self, client):
        response = client.post("/provider/callbacks", json=_callback("ord_missing"))
        assert response.status_code == 200
        data = response.json()
        assert data["received"] is True
        assert data["handled"] is False

    def test_malformed_body_still_answers_200(self, client):
        response = client.post(
            "/provider/callbacks",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 200
        assert response.json()["handled"] is False

    def test_callback_without_order_still_answers_200(self, client):
        response = client.post(
            "/provider/callbacks",
            json={"type": "com.prodigi.order.status.stage.changed", "data": {}},
        )
        assert response.status_code == 200
        assert response.json() == {"received": True, "handled": False, "credited": False}
