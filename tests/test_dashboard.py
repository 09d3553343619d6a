import io
import json
import zipfile

import pytest


def paid_wash(client, headers, payload, method="cash"):
    check_in_id = json.loads(
        client.post("/api/admin/check-ins", json=payload, headers=headers).data
    )["checkIn"]["id"]
    for body in (
        {"status": "in_progress"},
        {"status": "completed"},
        {"paymentStatus": "paid", "paymentMethod": method},
    ):
        client.patch(f"/api/admin/check-ins/{check_in_id}", json=body, headers=headers)
    return check_in_id


@pytest.mark.dashboard
class TestAdminDashboard:

    def test_income_and_counts(self, client, auth_header, admin_id, washer_id, check_in_payload):
        headers = auth_header(admin_id)
        paid_wash(client, headers, check_in_payload())
        client.post(
            "/api/admin/check-ins",
            json=check_in_payload(licensePlate="KJA-999-ZZ"),
            headers=headers,
        )
        client.post(
            "/api/admin/sales", json={"totalAmount": 1500, "description": "Air freshener"}, headers=headers
        )

        response = client.get("/api/admin/dashboard", headers=headers)

        assert response.status_code == 200
        data = json.loads(response.data)["data"]
        assert data["income"]["daily"]["carWashIncome"] == 3000.0
        assert data["income"]["daily"]["stockSalesIncome"] == 1500.0
        assert data["income"]["daily"]["total"] == 4500.0
        assert data["carCounts"]["daily"] == 2
        assert data["pendingToday"] == {"count": 1, "amount": 5000.0}
        assert data["activeWashers"] == 1
        assert data["topWashers"][0]["washerId"] == washer_id
        assert data["topWashers"][0]["earnings"] == 2000.0
        assert len(data["recentCheckIns"]) == 2

    def test_washer_cannot_view_admin_dashboard(self, client, auth_header, washer_id):
        response = client.get("/api/admin/dashboard", headers=auth_header(washer_id))
        assert response.status_code == 403

    def test_sale_amount_must_be_positive(self, client, auth_header, admin_id):
        response = client.post("/api/admin/sales", json={"totalAmount": 0}, headers=auth_header(admin_id))
        assert response.status_code == 400


@pytest.mark.dashboard
class TestWorkerDashboard:

    def test_worker_dashboard(self, client, auth_header, admin_id, washer_id, check_in_payload):
        paid_wash(client, auth_header(admin_id), check_in_payload())

        response = client.get("/api/worker/dashboard", headers=auth_header(washer_id))

        assert response.status_code == 200
        data = json.loads(response.data)["data"]
        assert data["jobs"]["today"] == 1
        assert data["earnings"]["today"] == 2000.0
        assert data["earnings"]["available"] == 2000.0
        assert data["pendingPaymentRequest"] is None
        assert data["unreturnedItems"] == 0

    def test_admin_has_no_worker_dashboard(self, client, auth_header, admin_id):
        response = client.get("/api/worker/dashboard", headers=auth_header(admin_id))
        assert response.status_code == 403


@pytest.mark.dashboard
class TestReports:

    def test_generate_excel_report(self, client, auth_header, admin_id, check_in_payload):
        headers = auth_header(admin_id)
        paid_wash(client, headers, check_in_payload(), method="card")

        response = client.post(
            "/api/admin/dashboard/reports/generate",
            json={"checkIns": True, "bonuses": True},
            headers=headers,
        )

        assert response.status_code == 200
        assert "spreadsheetml" in response.headers["Content-Type"]
        assert "carwash_report_" in response.headers["Content-Disposition"]
        with zipfile.ZipFile(io.BytesIO(response.data)) as workbook:
            sheets = workbook.read("xl/workbook.xml").decode()
            strings = workbook.read("xl/sharedStrings.xml").decode()
        assert 'name="Check-ins"' in sheets
        assert 'name="Bonuses"' in sheets
        assert 'name="Payment Requests"' not in sheets
        assert "LND-123-AA" in strings
        assert "card" in strings

    def test_invalid_date(self, client, auth_header, admin_id):
        response = client.post(
            "/api/admin/dashboard/reports/generate",
            json={"startDate": "19/10/2026"},
            headers=auth_header(admin_id),
        )
        assert response.status_code == 400
