import json

import pytest

from app.models import CarWasherProfile, CheckIn, Customer, WasherTool


def create(client, headers, payload):
    return client.post("/api/admin/check-ins", json=payload, headers=headers)


def patch(client, headers, check_in_id, body):
    return client.patch(f"/api/admin/check-ins/{check_in_id}", json=body, headers=headers)


def earnings(db, washer_id):
    profile = db.session.query(CarWasherProfile).filter_by(user_id=washer_id).one()
    db.session.refresh(profile)
    return float(profile.total_earnings)


@pytest.fixture
def delayed_payload(check_in_payload):
    return check_in_payload(
        washType="delayed",
        securityCode="SEC-9",
        userCode="Q7-PASS",
        checkInProcess="Keys left at front desk",
    )


@pytest.mark.checkins
class TestCreateCheckIn:

    def test_create_pending_check_in(self, client, auth_header, admin_id, washer_id, check_in_payload):
        response = create(client, auth_header(admin_id), check_in_payload())

        assert response.status_code == 201
        check_in = json.loads(response.data)["checkIn"]
        assert check_in["status"] == "pending"
        assert check_in["paymentStatus"] == "pending"
        assert check_in["licensePlate"] == "LND-123-AA"
        assert check_in["assignedWasherId"] == washer_id
        assert check_in["assignedAdminId"] == admin_id
        assert check_in["totalPrice"] == 5000.0
        assert check_in["estimatedDuration"] == 30
        assert check_in["services"][0]["serviceName"] == "Exterior Wash"

    def test_valuable_items_required(self, client, auth_header, admin_id, check_in_payload):
        response = create(client, auth_header(admin_id), check_in_payload(valuableItems="  "))
        assert response.status_code == 400

    def test_at_least_one_service(self, client, auth_header, admin_id, check_in_payload):
        response = create(client, auth_header(admin_id), check_in_payload(services=[]))

        assert response.status_code == 400
        assert json.loads(response.data)["error"] == "At least one service must be selected"

    def test_every_service_needs_a_worker(
        self, client, auth_header, admin_id, service_ids, check_in_payload
    ):
        response = create(
            client,
            auth_header(admin_id),
            check_in_payload(services=[{"serviceId": service_ids["exterior"]}]),
        )

        assert response.status_code == 400
        assert json.loads(response.data)["error"] == "Please assign a worker for service: Exterior Wash"

    def test_zero_price_service_needs_custom_price(
        self, client, auth_header, admin_id, washer_id, service_ids, check_in_payload
    ):
        lines = [{"serviceId": service_ids["detailing"], "workerId": washer_id}]
        response = create(client, auth_header(admin_id), check_in_payload(services=lines))

        assert response.status_code == 400
        assert json.loads(response.data)["error"] == "Custom price is required for service: Full Detailing"

        lines[0]["customPrice"] = 20000
        response = create(client, auth_header(admin_id), check_in_payload(services=lines))
        assert response.status_code == 201
        assert json.loads(response.data)["checkIn"]["totalPrice"] == 20000.0

    def test_inactive_worker_rejected(
        self, client, db, auth_header, admin_id, washer_id, check_in_payload
    ):
        from app.models import User

        db.session.get(User, washer_id).is_active = False
        db.session.commit()

        response = create(client, auth_header(admin_id), check_in_payload())
        assert response.status_code == 400

    def test_delayed_wash_requires_codes(self, client, auth_header, admin_id, check_in_payload):
        response = create(
            client,
            auth_header(admin_id),
            check_in_payload(washType="delayed", securityCode="SEC-9"),
        )
        assert response.status_code == 400
        assert json.loads(response.data)["error"] == "User code is required for delayed wash"

    def test_passcode_is_never_returned(self, client, auth_header, admin_id, delayed_payload):
        response = create(client, auth_header(admin_id), delayed_payload)

        assert response.status_code == 201
        check_in = json.loads(response.data)["checkIn"]
        assert check_in["hasPasscode"] is True
        assert "Q7-PASS" not in response.get_data(as_text=True)


@pytest.mark.checkins
class TestDuplicateDetection:

    def test_same_plate_same_day_is_flagged(self, client, db, auth_header, admin_id, check_in_payload):
        headers = auth_header(admin_id)
        assert create(client, headers, check_in_payload()).status_code == 201

        response = create(client, headers, check_in_payload(licensePlate=" LND-123-AA "))

        assert response.status_code == 409
        data = json.loads(response.data)
        assert data["duplicate"] is True
        assert len(data["existingCheckIns"]) == 1
        assert db.session.query(CheckIn).count() == 1

    def test_acknowledged_duplicate_is_created(self, client, db, auth_header, admin_id, check_in_payload):
        headers = auth_header(admin_id)
        create(client, headers, check_in_payload())

        response = create(client, headers, check_in_payload(acknowledgeDuplicate=True))

        assert response.status_code == 201
        assert db.session.query(CheckIn).count() == 2

    def test_duplicates_lookup(self, client, auth_header, admin_id, check_in_payload):
        headers = auth_header(admin_id)
        empty = json.loads(
            client.get("/api/admin/check-ins/duplicates?licensePlate=lnd-123-aa", headers=headers).data
        )
        assert empty["duplicate"] is False

        create(client, headers, check_in_payload())
        found = json.loads(
            client.get("/api/admin/check-ins/duplicates?licensePlate=lnd-123-aa", headers=headers).data
        )
        assert found["duplicate"] is True
        assert found["existingCheckIns"][0]["customerName"] == "Chidi Okafor"


@pytest.mark.checkins
class TestLifecycle:

    def test_full_instant_lifecycle(
        self, client, db, auth_header, admin_id, washer_id, customer_id, check_in_payload
    ):
        admin = auth_header(admin_id)
        check_in_id = json.loads(create(client, admin, check_in_payload()).data)["checkIn"]["id"]

        started = patch(client, auth_header(washer_id), check_in_id, {"status": "in_progress"})
        assert started.status_code == 200

        completed = patch(client, auth_header(washer_id), check_in_id, {"status": "completed"})
        assert completed.status_code == 200
        body = json.loads(completed.data)["checkIn"]
        assert body["status"] == "completed"
        assert body["completedTime"] is not None
        assert body["washerIncome"] == 2000.0
        assert body["companyIncome"] == 3000.0
        assert earnings(db, washer_id) == 0.0

        paid = patch(client, admin, check_in_id, {"paymentStatus": "paid", "paymentMethod": "pos"})
        assert paid.status_code == 200
        data = json.loads(paid.data)
        assert data["earningsUpdated"] is True
        assert data["checkIn"]["status"] == "paid"
        assert data["checkIn"]["paymentMethod"] == "pos"
        assert earnings(db, washer_id) == 2000.0

        customer = db.session.get(Customer, customer_id)
        db.session.refresh(customer)
        assert customer.total_visits == 1
        assert float(customer.total_spent) == 5000.0

    def test_each_line_credits_its_own_worker(
        self, client, db, auth_header, admin_id, washer_id, second_washer_id, service_ids, check_in_payload
    ):
        admin = auth_header(admin_id)
        lines = [
            {"serviceId": service_ids["exterior"], "workerId": washer_id},
            {"serviceId": service_ids["detailing"], "workerId": second_washer_id, "customPrice": 20000},
        ]
        check_in_id = json.loads(
            create(client, admin, check_in_payload(services=lines)).data
        )["checkIn"]["id"]

        patch(client, admin, check_in_id, {"status": "in_progress"})
        completed = json.loads(patch(client, admin, check_in_id, {"status": "completed"}).data)
        assert completed["checkIn"]["washerIncome"] == 12000.0
        assert completed["checkIn"]["companyIncome"] == 13000.0

        patch(client, admin, check_in_id, {"paymentStatus": "paid", "paymentMethod": "cash"})
        assert earnings(db, washer_id) == 2000.0
        assert earnings(db, second_washer_id) == 10000.0

    def test_cannot_skip_states(self, client, auth_header, admin_id, check_in_payload):
        admin = auth_header(admin_id)
        check_in_id = json.loads(create(client, admin, check_in_payload()).data)["checkIn"]["id"]

        assert patch(client, admin, check_in_id, {"status": "completed"}).status_code == 400
        paid = patch(client, admin, check_in_id, {"paymentStatus": "paid", "paymentMethod": "cash"})
        assert paid.status_code == 400

    def test_payment_method_required(self, client, auth_header, admin_id, check_in_payload):
        admin = auth_header(admin_id)
        check_in_id = json.loads(create(client, admin, check_in_payload()).data)["checkIn"]["id"]
        patch(client, admin, check_in_id, {"status": "in_progress"})
        patch(client, admin, check_in_id, {"status": "completed"})

        response = patch(client, admin, check_in_id, {"paymentStatus": "paid", "paymentMethod": "bitcoin"})

        assert response.status_code == 400
        assert json.loads(response.data)["error"] == "Please select a payment method (cash, card or pos)"

    def test_washer_cannot_record_payment(self, client, auth_header, admin_id, washer_id, check_in_payload):
        admin = auth_header(admin_id)
        check_in_id = json.loads(create(client, admin, check_in_payload()).data)["checkIn"]["id"]
        patch(client, admin, check_in_id, {"status": "in_progress"})
        patch(client, admin, check_in_id, {"status": "completed"})

        response = patch(
            client, auth_header(washer_id), check_in_id, {"paymentStatus": "paid", "paymentMethod": "cash"}
        )
        assert response.status_code == 403

    def test_payment_is_not_repeated(self, client, db, auth_header, admin_id, washer_id, check_in_payload):
        admin = auth_header(admin_id)
        check_in_id = json.loads(create(client, admin, check_in_payload()).data)["checkIn"]["id"]
        patch(client, admin, check_in_id, {"status": "in_progress"})
        patch(client, admin, check_in_id, {"status": "completed"})
        patch(client, admin, check_in_id, {"paymentStatus": "paid", "paymentMethod": "cash"})

        again = patch(client, admin, check_in_id, {"paymentStatus": "paid", "paymentMethod": "cash"})
        assert again.status_code == 400
        assert earnings(db, washer_id) == 2000.0


@pytest.mark.checkins
class TestDelayedWashPasscode:

    def _in_progress(self, client, admin, payload):
        check_in_id = json.loads(create(client, admin, payload).data)["checkIn"]["id"]
        patch(client, admin, check_in_id, {"status": "in_progress"})
        return check_in_id

    def test_passcode_required(self, client, auth_header, admin_id, delayed_payload):
        admin = auth_header(admin_id)
        check_in_id = self._in_progress(client, admin, delayed_payload)

        response = patch(client, admin, check_in_id, {"status": "completed"})

        assert response.status_code == 400
        assert (
            json.loads(response.data)["error"]
            == "Passcode is required to mark check-in as completed for delayed wash customers"
        )

    def test_wrong_passcode(self, client, auth_header, admin_id, delayed_payload):
        admin = auth_header(admin_id)
        check_in_id = self._in_progress(client, admin, delayed_payload)

        response = patch(client, admin, check_in_id, {"status": "completed", "passcode": "0000"})

        assert response.status_code == 400
        assert json.loads(response.data)["error"] == "Invalid passcode"

    def test_correct_passcode(self, client, auth_header, admin_id, washer_id, delayed_payload):
        admin = auth_header(admin_id)
        check_in_id = self._in_progress(client, admin, delayed_payload)

        response = patch(
            client, auth_header(washer_id), check_in_id, {"status": "completed", "passcode": "Q7-PASS"}
        )
        assert response.status_code == 200
        assert json.loads(response.data)["checkIn"]["status"] == "completed"

    def test_non_ascii_wrong_passcode(self, client, auth_header, admin_id, delayed_payload):
        admin = auth_header(admin_id)
        check_in_id = self._in_progress(client, admin, delayed_payload)

        response = patch(client, admin, check_in_id, {"status": "completed", "passcode": "cl\u00e9"})

        assert response.status_code == 400
        assert json.loads(response.data)["error"] == "Invalid passcode"
        assert json.loads(client.get(f"/api/admin/check-ins/{check_in_id}", headers=admin).data)[
            "checkIn"
        ]["status"] == "in_progress"

    def test_numeric_codes(self, client, auth_header, admin_id, delayed_payload):
        admin = auth_header(admin_id)
        payload = dict(delayed_payload, userCode=1234, securityCode=5678)

        created = create(client, admin, payload)
        assert created.status_code == 201
        check_in_id = json.loads(created.data)["checkIn"]["id"]
        patch(client, admin, check_in_id, {"status": "in_progress"})

        wrong = patch(client, admin, check_in_id, {"status": "completed", "passcode": 4321})
        assert wrong.status_code == 400
        response = patch(client, admin, check_in_id, {"status": "completed", "passcode": 1234})
        assert response.status_code == 200


@pytest.mark.checkins
class TestCancelAndAssignment:

    def test_cancel_requires_reason(self, client, auth_header, admin_id, check_in_payload):
        admin = auth_header(admin_id)
        check_in_id = json.loads(create(client, admin, check_in_payload()).data)["checkIn"]["id"]

        assert patch(client, admin, check_in_id, {"status": "cancelled"}).status_code == 400
        response = patch(client, admin, check_in_id, {"status": "cancelled", "reason": "Customer left"})
        assert response.status_code == 200
        assert json.loads(response.data)["checkIn"]["reason"] == "Customer left"

    def test_cancelled_is_terminal(self, client, auth_header, admin_id, check_in_payload):
        admin = auth_header(admin_id)
        check_in_id = json.loads(create(client, admin, check_in_payload()).data)["checkIn"]["id"]
        patch(client, admin, check_in_id, {"status": "cancelled", "reason": "Customer left"})

        assert patch(client, admin, check_in_id, {"status": "in_progress"}).status_code == 400

    def test_completed_cannot_be_cancelled(self, client, auth_header, admin_id, check_in_payload):
        admin = auth_header(admin_id)
        check_in_id = json.loads(create(client, admin, check_in_payload()).data)["checkIn"]["id"]
        patch(client, admin, check_in_id, {"status": "in_progress"})
        patch(client, admin, check_in_id, {"status": "completed"})

        response = patch(client, admin, check_in_id, {"status": "cancelled", "reason": "Oops"})
        assert response.status_code == 400

    def test_reassign_moves_lines(
        self, client, auth_header, admin_id, washer_id, second_washer_id, check_in_payload
    ):
        admin = auth_header(admin_id)
        check_in_id = json.loads(create(client, admin, check_in_payload()).data)["checkIn"]["id"]

        response = patch(client, admin, check_in_id, {"assignedWasherId": second_washer_id})

        assert response.status_code == 200
        body = json.loads(response.data)["checkIn"]
        assert body["status"] == "pending"
        assert body["assignedWasherId"] == second_washer_id
        assert body["services"][0]["workerId"] == second_washer_id

    def test_assign_and_start(self, client, auth_header, admin_id, second_washer_id, check_in_payload):
        admin = auth_header(admin_id)
        check_in_id = json.loads(create(client, admin, check_in_payload()).data)["checkIn"]["id"]

        response = patch(
            client, admin, check_in_id, {"assignedWasherId": second_washer_id, "status": "in_progress"}
        )
        body = json.loads(response.data)["checkIn"]
        assert body["status"] == "in_progress"
        assert body["assignedWasherId"] == second_washer_id

    def test_washer_complete_flag(self, client, auth_header, admin_id, washer_id, check_in_payload):
        admin = auth_header(admin_id)
        check_in_id = json.loads(create(client, admin, check_in_payload()).data)["checkIn"]["id"]
        patch(client, admin, check_in_id, {"status": "in_progress"})

        response = client.post(
            f"/api/admin/check-ins/{check_in_id}/washer-complete", headers=auth_header(washer_id)
        )

        assert response.status_code == 200
        body = json.loads(response.data)["checkIn"]
        assert body["washerCompletionStatus"] is True
        assert body["status"] == "in_progress"


@pytest.mark.checkins
class TestVisibility:

    def test_washer_only_sees_own_jobs(
        self, client, auth_header, admin_id, washer_id, second_washer_id, check_in_payload
    ):
        admin = auth_header(admin_id)
        check_in_id = json.loads(create(client, admin, check_in_payload()).data)["checkIn"]["id"]

        mine = json.loads(client.get("/api/admin/check-ins", headers=auth_header(washer_id)).data)
        theirs = json.loads(
            client.get(
                f"/api/admin/check-ins?washerId={washer_id}", headers=auth_header(second_washer_id)
            ).data
        )
        assert [c["id"] for c in mine["checkIns"]] == [check_in_id]
        assert theirs["checkIns"] == []

        forbidden = client.get(
            f"/api/admin/check-ins/{check_in_id}", headers=auth_header(second_washer_id)
        )
        assert forbidden.status_code == 403

    def test_search_and_status_filter(self, client, auth_header, admin_id, check_in_payload):
        admin = auth_header(admin_id)
        create(client, admin, check_in_payload())
        create(client, admin, check_in_payload(licensePlate="KJA-999-ZZ", customerId=None))

        by_name = json.loads(client.get("/api/admin/check-ins?search=chidi", headers=admin).data)
        assert [c["licensePlate"] for c in by_name["checkIns"]] == ["LND-123-AA"]

        by_status = json.loads(
            client.get("/api/admin/check-ins?status=pending,in_progress", headers=admin).data
        )
        assert by_status["total"] == 2

    def test_worker_route_lists_own_jobs(self, client, auth_header, admin_id, washer_id, check_in_payload):
        create(client, auth_header(admin_id), check_in_payload())

        response = client.get("/api/worker/check-ins", headers=auth_header(washer_id))
        assert response.status_code == 200
        assert len(json.loads(response.data)["checkIns"]) == 1


@pytest.mark.checkins
class TestMaterials:

    def _material(self, db, washer_id, admin_id, quantity=5):
        tool = WasherTool(
            washer_id=washer_id,
            tool_name="Car shampoo",
            tool_type="material",
            quantity=quantity,
            amount=500,
            assigned_by=admin_id,
            is_returned=False,
        )
        db.session.add(tool)
        db.session.commit()
        return tool.id

    def test_usage_decrements_and_consumes(
        self, client, db, auth_header, admin_id, washer_id, check_in_payload
    ):
        material_id = self._material(db, washer_id, admin_id)
        check_in_id = json.loads(
            create(client, auth_header(admin_id), check_in_payload()).data
        )["checkIn"]["id"]
        washer = auth_header(washer_id)

        first = client.post(
            "/api/admin/check-ins/assign-materials",
            json={"checkInId": check_in_id, "materials": [{"materialId": material_id, "quantity": 2}]},
            headers=washer,
        )
        assert first.status_code == 201
        tool = db.session.get(WasherTool, material_id)
        db.session.refresh(tool)
        assert tool.quantity == 3
        assert tool.is_returned is False

        second = client.post(
            "/api/admin/check-ins/assign-materials",
            json={"checkInId": check_in_id, "materials": [{"materialId": material_id, "quantity": 3}]},
            headers=washer,
        )
        assert second.status_code == 201
        db.session.refresh(tool)
        assert tool.quantity == 0
        assert tool.is_returned is True

        used = json.loads(
            client.get(f"/api/admin/check-ins/{check_in_id}/materials", headers=washer).data
        )
        assert [m["quantityUsed"] for m in used["materials"]] == [2, 3]

    def test_insufficient_quantity(self, client, db, auth_header, admin_id, washer_id, check_in_payload):
        material_id = self._material(db, washer_id, admin_id, quantity=1)
        check_in_id = json.loads(
            create(client, auth_header(admin_id), check_in_payload()).data
        )["checkIn"]["id"]

        response = client.post(
            "/api/admin/check-ins/assign-materials",
            json={"checkInId": check_in_id, "materials": [{"materialId": material_id, "quantity": 4}]},
            headers=auth_header(washer_id),
        )

        assert response.status_code == 400
        assert json.loads(response.data)["error"] == "Insufficient quantity for Car shampoo: 1 available"
