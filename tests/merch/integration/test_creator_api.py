"""Integration tests for creator earnings, payouts and payout details."""


class TestEarningsAPI:
    def test_new_creator_has_empty_summary(self, client):
        response = client.get("/creators/creator-new/earnings")
        assert response.status_code == 200
        data = response.json()
        assert data["total_earnings"] == 0.0
        assert data["available_for_payout"] == 0.0
        assert data["can_request_payout"] is False
        assert data["min_payout_amount"] == 50.0
        assert data["period"]["days"] == 30
        assert len(data["monthly"]) == 6
        assert data["payout_details"]["method"] is None

    def test_summary_reflects_credits(self, client, services):
        services.ledger.credit("creator-001", 63.0, sales_amount=170.0)
        data = client.get("/creators/creator-001/earnings?period=7").json()
        assert data["total_earnings"] == 63.0
        assert data["pending_earnings"] == 63.0
        assert data["total_sales"] == 170.0
        assert data["total_orders"] == 1
        assert data["period"]["days"] == 7

    def test_payout_details_are_masked(self, client, services):
        services.ledger.update_payout_details("creator-001", "paypal", {"paypal_email": "maria@example.com"})
        details = client.get("/creators/creator-001/earnings").json()["payout_details"]
        assert details["method"] == "paypal"
        assert details["paypal_email"] == "ma***@example.com"


class TestPayoutAPI:
    def test_payout_below_minimum_returns_400(self, client, services):
        services.ledger.credit("creator-001", 40.0)
        services.ledger.update_payout_details("creator-001", "pix", {"pix_key": "maria@pix.example"})
        response = client.post("/creators/creator-001/payouts")
        assert response.status_code == 400

    def test_payout_without_method_returns_400(self, client, services):
        services.ledger.credit("creator-001", 80.0)
        response = client.post("/creators/creator-001/payouts")
        assert response.status_code == 400

    def test_eligible_payout_returns_201(self, client, services):
        services.ledger.credit("creator-001", 80.0)
        services.ledger.update_payout_details("creator-001", "pix", {"pix_key": "maria@pix.example"})
        response = client.post("/creators/creator-001/payouts")
        assert response.status_code == 201
        data = response.json()
        assert data["amount"] == 80.0
        assert data["payout_method"] == "pix"

        summary = client.get("/creators/creator-001/earnings").json()
        assert summary["paid_earnings"] == 80.0
        assert summary["available_for_payout"] == 0.0
        assert summary["payout_details"]["last_payout_date"] is not None


class TestPayoutDetailsAPI:
    def test_pix_details_are_saved(self, client, services):
        response = client.put(
            "/creators/creator-001/payout-details",
            json={"payout_method": "pix", "pix_key": "maria@pix.example"},
        )
        assert response.status_code == 200
        assert services.ledger.get("creator-001").payout_method == "pix"

    def test_missing_bank_fields_return_400(self, client):
        response = client.put(
            "/creators/creator-001/payout-details",
            json={"payout_method": "bank_transfer", "bank_account": "0012345678"},
        )
        assert response.status_code == 400

    def test_unknown_method_returns_400(self, client):
        response = client.put("/creators/creator-001/payout-details", json={"payout_method": "cheque"})
        assert response.status_code == 400
