import mongomock
import mongomock.gridfs
import pytest
from fastapi.testclient import TestClient

from config import Settings
from database import DocumentStore
from main import create_app

mongomock.gridfs.enable_gridfs_integration()

ADMIN_EMAIL = "admin@vengase.com"
PASSWORD = "secret123"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        app_env="test",
        jwt_secret="test-secret",
        image_dir=str(tmp_path / "images"),
        upload_dir=str(tmp_path / "uploads"),
        rate_limit_max_requests=10000,
        max_file_size=1024,
        admin_emails=[ADMIN_EMAIL],
    )


@pytest.fixture
def db():
    return mongomock.MongoClient(tz_aware=True)["vengase_test"]


@pytest.fixture
def store(db):
    return DocumentStore(db)


@pytest.fixture
def app(settings, db):
    return create_app(settings, db)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def services(app):
    return app.state.services


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


def make_account(services, email, admin=False, profile=True):
    record = services.identity.create_user(email, PASSWORD, email.split("@")[0])
    if admin:
        services.identity.set_custom_claims(record.uid, {"admin": True, "role": "admin"})
        record = services.identity.get_user(record.uid)
    if profile:
        services.users.create({"uid": record.uid, "email": record.email})
    return record.uid, bearer(services.identity.issue_token(record))


@pytest.fixture
def admin_headers(services):
    _, headers = make_account(services, "owner@vengase.com", admin=True)
    return headers


@pytest.fixture
def user(services):
    """(uid, headers) for a regular customer with a profile."""
    return make_account(services, "shopper@vengase.com")


def product_payload(**overrides):
    payload = {
        "name": "Classic Tee",
        "price": 2500,
        "description": "Soft cotton tee",
        "category": "unisex",
        "subcategory": "t-shirts-shirts",
        "stock": {"S": 2, "M": 5},
        "img": "/images/prod1.png",
    }
    payload.update(overrides)
    return payload
