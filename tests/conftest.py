"""
Pytest configuration and shared fixtures for the car wash backend tests.
"""

import os
from pathlib import Path

import pytest
from dotenv import load_dotenv
from flask import Flask

test_env_path = Path(__file__).parent / ".env.test"
if test_env_path.exists():
    load_dotenv(test_env_path, override=True)
os.environ["TESTING"] = "True"

from main import create_app  # noqa: E402
from app.config import is_production_database  # noqa: E402
from app.extensions import db as database  # noqa: E402
from app.models import (  # noqa: E402
    AdminProfile,
    Base,
    CarWasherProfile,
    Customer,
    Location,
    Service,
    User,
    Vehicle,
)
from app.utils.auth_utils import encode_token, hash_password  # noqa: E402

TEST_DB_URL = os.environ.get("DATABASE_TEST_URL", "sqlite://")
PASSWORD = "password123"


@pytest.fixture(scope="session")
def app():
    """Create and configure a test app instance."""
    if is_production_database(TEST_DB_URL):
        pytest.exit(f"Refusing to run tests against {TEST_DB_URL}")

    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": TEST_DB_URL,
            "SECRET_KEY": "test-secret-key-for-testing-only",
        }
    )
    yield app


@pytest.fixture
def db(app: Flask):
    """Fresh tables for every test."""
    with app.app_context():
        Base.metadata.create_all(bind=database.engine)
        yield database
        database.session.remove()
        Base.metadata.drop_all(bind=database.engine)


@pytest.fixture
def client(app, db):
    return app.test_client()


@pytest.fixture(autouse=True)
def fake_s3(monkeypatch):
    """Record uploads and deletes instead of calling AWS."""
    calls = {"uploaded": [], "deleted": []}

    def upload(file, key, bucket):
        calls["uploaded"].append((bucket, key))
        return f"https://{bucket}.s3.test.amazonaws.com/{key}"

    def delete(url, bucket):
        calls["deleted"].append((bucket, url))
        return True

    monkeypatch.setattr("app.services.accounts.upload_file_to_s3", upload)
    monkeypatch.setattr("app.services.accounts.delete_file_from_s3", delete)
    return calls


def _user(name, email, role, is_active=True):
    user = User(
        name=name,
        email=email,
        phone="08030000000",
        password_hash=hash_password(PASSWORD),
        role=role,
        is_active=is_active,
    )
    database.session.add(user)
    database.session.flush()
    return user


@pytest.fixture
def location_id(db):
    location = Location(address="12 Admiralty Way, Lekki", lga="Eti-Osa", is_active=True)
    db.session.add(location)
    db.session.commit()
    return location.id


@pytest.fixture
def super_admin_id(db):
    user = _user("Super Admin", "super@carwash.test", "super_admin")
    db.session.commit()
    return user.id


@pytest.fixture
def admin_id(db, location_id):
    user = _user("Ada Admin", "admin@carwash.test", "admin")
    db.session.add(AdminProfile(user_id=user.id, location_id=location_id))
    db.session.commit()
    return user.id


def _washer(db, name, email, location_id, admin_id):
    user = _user(name, email, "car_washer")
    db.session.add(
        CarWasherProfile(
            user_id=user.id,
            assigned_admin_id=admin_id,
            assigned_location_id=location_id,
            total_earnings=0,
            is_available=True,
        )
    )
    db.session.commit()
    return user.id


@pytest.fixture
def washer_id(db, location_id, admin_id):
    return _washer(db, "Wale Washer", "washer@carwash.test", location_id, admin_id)


@pytest.fixture
def second_washer_id(db, location_id, admin_id):
    return _washer(db, "Bola Washer", "washer2@carwash.test", location_id, admin_id)


@pytest.fixture
def service_ids(db):
    """Exterior wash at 5000 (40/60) and a custom-priced detailing job (50/50)."""
    exterior = Service(
        name="Exterior Wash",
        price=5000,
        duration=30,
        category="exterior",
        washer_commission_percentage=40,
        company_commission_percentage=60,
        is_active=True,
    )
    detailing = Service(
        name="Full Detailing",
        price=0,
        duration=120,
        category="interior",
        washer_commission_percentage=50,
        company_commission_percentage=50,
        is_active=True,
    )
    db.session.add_all([exterior, detailing])
    db.session.commit()
    return {"exterior": exterior.id, "detailing": detailing.id}


@pytest.fixture
def customer_id(db):
    customer = Customer(name="Chidi Okafor", phone="08031234567", total_visits=0, total_spent=0)
    customer.vehicles = [
        Vehicle(license_plate="LND-123-AA", vehicle_type="sedan", color="black", is_primary=True)
    ]
    db.session.add(customer)
    db.session.commit()
    return customer.id


@pytest.fixture
def auth_header(db):
    """Build an Authorization header for a seeded user id."""

    def _header(user_id):
        user = db.session.get(User, user_id)
        return {"Authorization": f"Bearer {encode_token(user)}"}

    return _header


@pytest.fixture
def check_in_payload(customer_id, service_ids, washer_id):
    def _payload(**overrides):
        payload = {
            "customerId": customer_id,
            "licensePlate": "lnd-123-aa",
            "vehicleType": "sedan",
            "vehicleColor": "black",
            "washType": "instant",
            "valuableItems": "Phone charger in glovebox",
            "services": [{"serviceId": service_ids["exterior"], "workerId": washer_id}],
        }
        payload.update(overrides)
        return payload

    return _payload
