import json

import pytest

from app.models import Bonus, CustomerMilestoneAchievement, Expense


def create_milestone(client, headers, **overrides):
    body = {
        "name": "Loyal Customer",
        "type": "visits",
        "condition": {"operator": ">=", "value": 2},
        "reward": "Free interior vacuum",
    }
    body.update(overrides)
    return client.post("/api/admin/milestones", json=body, headers=headers)


def complete_wash(client, headers, payload):
    payload = dict(payload, acknowledgeDuplicate=True)
    check_in_id = json.loads(
        client.post("/api/admin/check-ins", json=payload, headers=headers).data
    )["checkIn"]["id"]
    client.patch(f"/api/admin/check-ins/{check_in_id}", json={"status": "in_progress"}, headers=headers)
    client.patch(f"/api/admin/check-ins/{check_in_id}", json={"status": "completed"}, headers=headers)
    return check_in_id


@pytest.mark.milestones
class TestMilestoneDefinitions:

    def test_create_milestone(self, client, auth_header, admin_id):
        response = create_milestone(client, auth_header(admin_id))

        assert response.status_code == 201
        milestone = json.loads(response.data)["milestone"]
        assert milestone["condition"] == {"operator": ">=", "value": 2.0}
        assert milestone["isActive"] is True
        assert milestone["createdBy"] == admin_id

    @pytest.mark.parametrize(
        "condition",
        [{"operator": "!=", "value": 2}, {"operator": ">="}, {"operator": ">=", "value": -1}, "visits>=2"],
    )
    def test_invalid_condition(self, client, auth_header, admin_id, condition):
        response = create_milestone(client, auth_header(admin_id), condition=condition)
        assert response.status_code == 400

    def test_invalid_type(self, client, auth_header, admin_id):
        response = create_milestone(client, auth_header(admin_id), type="referrals")
        assert response.status_code == 400

    def test_washer_cannot_manage_milestones(self, client, auth_header, washer_id):
        response = create_milestone(client, auth_header(washer_id))
        assert response.status_code == 403

    def test_delete_unreached_milestone(self, client, auth_header, admin_id):
        headers = auth_header(admin_id)
        milestone_id = json.loads(create_milestone(client, headers).data)["milestone"]["id"]

        response = client.delete(f"/api/admin/milestones/{milestone_id}", headers=headers)
        assert json.loads(response.data)["deleted"] is True


@pytest.mark.milestones
class TestAchievements:

    def test_completion_records_achievement(
        self, client, db, auth_header, admin_id, customer_id, check_in_payload
    ):
        headers = auth_header(admin_id)
        milestone_id = json.loads(create_milestone(client, headers).data)["milestone"]["id"]

        complete_wash(client, headers, check_in_payload())
        assert db.session.query(CustomerMilestoneAchievement).count() == 0

        complete_wash(client, headers, check_in_payload())
        achievement = db.session.query(CustomerMilestoneAchievement).one()
        assert achievement.customer_id == customer_id
        assert achievement.milestone_id == milestone_id
        assert float(achievement.achieved_value) == 2.0
        assert achievement.reward_claimed is False

        complete_wash(client, headers, check_in_payload())
        assert db.session.query(CustomerMilestoneAchievement).count() == 1

    def test_spending_milestone(self, client, db, auth_header, admin_id, customer_id, check_in_payload):
        headers = auth_header(admin_id)
        create_milestone(
            client, headers, name="Big Spender", type="spending", condition={"operator": ">", "value": 4999}
        )

        complete_wash(client, headers, check_in_payload())

        listed = json.loads(client.get("/api/admin/milestone-achievements", headers=headers).data)
        assert [a["milestoneName"] for a in listed["achievements"]] == ["Big Spender"]

    def test_achievements_are_permanent(self, client, auth_header, admin_id, check_in_payload):
        headers = auth_header(admin_id)
        milestone_id = json.loads(create_milestone(client, headers).data)["milestone"]["id"]
        complete_wash(client, headers, check_in_payload())
        complete_wash(client, headers, check_in_payload())

        client.patch(
            f"/api/admin/milestones/{milestone_id}",
            json={"condition": {"operator": ">=", "value": 10}},
            headers=headers,
        )

        qualifying = json.loads(
            client.put(
                "/api/admin/milestone-achievements", json={"milestoneId": milestone_id}, headers=headers
            ).data
        )
        assert qualifying["customers"] == []

        ledger = json.loads(
            client.get(
                f"/api/admin/milestone-achievements?milestoneId={milestone_id}", headers=headers
            ).data
        )
        assert len(ledger["achievements"]) == 1

        claimed = client.patch(
            f"/api/admin/milestone-achievements/{ledger['achievements'][0]['id']}",
            json={"notes": "Honoured after the threshold changed"},
            headers=headers,
        )
        assert claimed.status_code == 200
        assert json.loads(claimed.data)["achievement"]["rewardClaimed"] is True

    def test_qualifying_customers_show_claim_state(
        self, client, auth_header, admin_id, customer_id, check_in_payload
    ):
        headers = auth_header(admin_id)
        milestone_id = json.loads(create_milestone(client, headers).data)["milestone"]["id"]
        complete_wash(client, headers, check_in_payload())
        complete_wash(client, headers, check_in_payload())

        response = client.put(
            "/api/admin/milestone-achievements", json={"milestoneId": milestone_id}, headers=headers
        )

        assert response.status_code == 200
        customers = json.loads(response.data)["customers"]
        assert customers[0]["customerId"] == customer_id
        assert customers[0]["actualValue"] == 2.0
        assert customers[0]["achievementId"] is not None
        assert customers[0]["rewardClaimed"] is False

    def test_manual_evaluation(self, client, db, auth_header, admin_id, customer_id, check_in_payload):
        headers = auth_header(admin_id)
        complete_wash(client, headers, check_in_payload())
        complete_wash(client, headers, check_in_payload())
        assert db.session.query(CustomerMilestoneAchievement).count() == 0

        create_milestone(client, headers)
        response = client.post(
            "/api/admin/milestone-achievements", json={"customerId": customer_id}, headers=headers
        )

        assert response.status_code == 200
        assert len(json.loads(response.data)["newAchievements"]) == 1

    def test_claim_reward_once(self, client, auth_header, admin_id, check_in_payload):
        headers = auth_header(admin_id)
        create_milestone(client, headers)
        complete_wash(client, headers, check_in_payload())
        complete_wash(client, headers, check_in_payload())
        achievement_id = json.loads(
            client.get("/api/admin/milestone-achievements", headers=headers).data
        )["achievements"][0]["id"]

        claimed = client.patch(
            f"/api/admin/milestone-achievements/{achievement_id}",
            json={"notes": "Vacuum done"},
            headers=headers,
        )
        assert claimed.status_code == 200
        body = json.loads(claimed.data)["achievement"]
        assert body["rewardClaimed"] is True
        assert body["claimedBy"] == admin_id

        again = client.patch(
            f"/api/admin/milestone-achievements/{achievement_id}", json={}, headers=headers
        )
        assert again.status_code == 400
        assert json.loads(again.data)["error"] == "Reward has already been claimed"

    def test_reached_milestone_is_deactivated_not_deleted(
        self, client, auth_header, admin_id, check_in_payload
    ):
        headers = auth_header(admin_id)
        milestone_id = json.loads(create_milestone(client, headers).data)["milestone"]["id"]
        complete_wash(client, headers, check_in_payload())
        complete_wash(client, headers, check_in_payload())

        response = client.delete(f"/api/admin/milestones/{milestone_id}", headers=headers)

        assert json.loads(response.data)["deleted"] is False
        listed = json.loads(client.get("/api/admin/milestones?isActive=false", headers=headers).data)
        assert [m["id"] for m in listed["milestones"]] == [milestone_id]


@pytest.mark.milestones
class TestBonuses:

    def test_customer_bonus_records_expense(self, client, db, auth_header, admin_id, customer_id):
        headers = auth_header(admin_id)
        response = client.post(
            "/api/admin/bonuses",
            json={"recipientId": customer_id, "amount": 3000, "reason": "10th visit"},
            headers=headers,
        )

        assert response.status_code == 201
        bonus = json.loads(response.data)["bonus"]
        assert bonus["status"] == "pending"
        assert bonus["type"] == "customer"

        expense = db.session.query(Expense).one()
        assert expense.bonus_id == bonus["id"]
        assert expense.category == "customer_bonus"
        assert float(expense.amount) == 3000.0

        listed = json.loads(client.get("/api/admin/expenses", headers=headers).data)
        assert len(listed["expenses"]) == 1

    def test_washer_bonus_has_no_expense(self, client, db, auth_header, admin_id, washer_id):
        response = client.post(
            "/api/admin/bonuses",
            json={"type": "washer", "recipientId": washer_id, "amount": 5000, "reason": "Top washer"},
            headers=auth_header(admin_id),
        )

        assert response.status_code == 201
        assert db.session.query(Expense).count() == 0

    def test_bonus_requires_reason_and_amount(self, client, db, auth_header, admin_id, customer_id):
        headers = auth_header(admin_id)
        no_reason = client.post(
            "/api/admin/bonuses", json={"recipientId": customer_id, "amount": 3000}, headers=headers
        )
        zero = client.post(
            "/api/admin/bonuses",
            json={"recipientId": customer_id, "amount": 0, "reason": "x"},
            headers=headers,
        )
        assert no_reason.status_code == 400
        assert zero.status_code == 400
        assert db.session.query(Bonus).count() == 0

    def test_status_moves_forward_only(self, client, auth_header, admin_id, customer_id):
        headers = auth_header(admin_id)
        bonus_id = json.loads(
            client.post(
                "/api/admin/bonuses",
                json={"recipientId": customer_id, "amount": 3000, "reason": "10th visit"},
                headers=headers,
            ).data
        )["bonus"]["id"]
        url = f"/api/admin/bonuses/{bonus_id}"

        assert client.patch(url, json={"status": "paid"}, headers=headers).status_code == 400
        approved = json.loads(client.patch(url, json={"status": "approved"}, headers=headers).data)
        assert approved["bonus"]["approvedBy"] == admin_id
        paid = json.loads(client.patch(url, json={"status": "paid"}, headers=headers).data)
        assert paid["bonus"]["paidAt"] is not None
