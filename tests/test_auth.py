import json
import datetime

import jwt
import pytest

from app.models import User

PASSWORD = "password123"


@pytest.mark.auth
class TestLogin:
    """Test suite for staff login."""

    def test_login_success(self, client, admin_id):
        """Valid credentials return a token and the user."""
        response = client.post(
            "/api/auth/login",
            data=json.dumps({"email": "admin@carwash.test", "password": PASSWORD}),
            content_type="application/json",
        )

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data["success"] is True
        assert data["token"]
        assert data["user"]["id"] == admin_id
        assert data["user"]["role"] == "admin"

    def test_login_is_case_insensitive_on_email(self, client, admin_id):
        response = client.post(
            "/api/auth/login",
            json={"email": "  ADMIN@carwash.test ", "password": PASSWORD},
        )
        assert response.status_code == 200

    def test_login_wrong_password(self, client, admin_id):
        response = client.post(
            "/api/auth/login",
            json={"email": "admin@carwash.test", "password": "not-the-password"},
        )

        assert response.status_code == 401
        data = json.loads(response.data)
        assert data["success"] is False
        assert data["error"] == "Invalid credentials"

    def test_login_missing_fields(self, client, db):
        response = client.post("/api/auth/login", json={"email": "admin@carwash.test"})
        assert response.status_code == 400

    def test_login_deactivated_account(self, client, db, washer_id):
        db.session.get(User, washer_id).is_active = False
        db.session.commit()

        response = client.post(
            "/api/auth/login",
            json={"email": "washer@carwash.test", "password": PASSWORD},
        )
        assert response.status_code == 401
        assert json.loads(response.data)["error"] == "Account is deactivated"


@pytest.mark.auth
class TestTokenResolution:
    """Bearer tokens are re-checked against the user row on every request."""

    def test_me_returns_profile(self, client, auth_header, washer_id):
        response = client.get("/api/auth/me", headers=auth_header(washer_id))

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data["user"]["email"] == "washer@carwash.test"
        assert data["user"]["profile"]["assignedLocationId"] is not None

    def test_missing_token(self, client, db):
        response = client.get("/api/auth/me")
        assert response.status_code == 401

    def test_garbage_token(self, client, db):
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401
        assert json.loads(response.data)["error"] == "Invalid token"

    def test_expired_token(self, app, client, admin_id):
        token = jwt.encode(
            {
                "user_id": admin_id,
                "role": "admin",
                "exp": datetime.datetime.now(datetime.timezone.utc) - datetime.timedelta(minutes=1),
            },
            app.config["SECRET_KEY"],
            algorithm="HS256",
        )
        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_token_of_deactivated_user_is_rejected(self, client, db, auth_header, washer_id):
        headers = auth_header(washer_id)
        db.session.get(User, washer_id).is_active = False
        db.session.commit()

        response = client.get("/api/auth/me", headers=headers)
        assert response.status_code == 401

    def test_role_comes_from_database_not_token(self, app, client, db, washer_id):
        """A token claiming admin for a washer account still acts as a washer."""
        token = jwt.encode(
            {
                "user_id": washer_id,
                "role": "super_admin",
                "exp": datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(hours=1),
            },
            app.config["SECRET_KEY"],
            algorithm="HS256",
        )
        response = client.get(
            "/api/admin/admins", headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 403


@pytest.mark.auth
class TestChangePassword:

    def test_change_password(self, client, auth_header, admin_id):
        response = client.post(
            "/api/auth/change-password",
            json={"currentPassword": PASSWORD, "newPassword": "brand-new-pass"},
            headers=auth_header(admin_id),
        )
        assert response.status_code == 200

        login = client.post(
            "/api/auth/login",
            json={"email": "admin@carwash.test", "password": "brand-new-pass"},
        )
        assert login.status_code == 200

    def test_wrong_current_password(self, client, auth_header, admin_id):
        response = client.post(
            "/api/auth/change-password",
            json={"currentPassword": "nope-nope", "newPassword": "brand-new-pass"},
            headers=auth_header(admin_id),
        )
        assert response.status_code == 401

    def test_new_password_too_short(self, client, auth_header, admin_id):
        response = client.post(
            "/api/auth/change-password",
            json={"currentPassword": PASSWORD, "newPassword": "abc"},
            headers=auth_header(admin_id),
        )
        assert response.status_code == 400
