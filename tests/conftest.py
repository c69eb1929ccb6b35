import mongomock
import pytest
from fastapi.testclient import TestClient

from config import Settings
from main import create_app


@pytest.fixture
def settings(tmp_path):
    return Settings(jwt_secret="test-secret", upload_dir=str(tmp_path / "uploads"))


@pytest.fixture
def db():
    return mongomock.MongoClient()["shop_test"]


@pytest.fixture
def app(settings, db):
    return create_app(settings, db)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def user(app):
    return app.state.credentials.register("Jane Doe", "jane@example.com", "secret123")


@pytest.fixture
def admin(app):
    created = app.state.credentials.register("Admin User", "admin@example.com", "adminpass")
    return app.state.credentials.update_user(created["id"], is_admin=True)


@pytest.fixture
def bearer(app):
    def headers_for(account):
        token = app.state.tokens.issue(account["id"], account.get("is_admin", False))
        return {"Authorization": f"Bearer {token}"}
    return headers_for


@pytest.fixture
def user_headers(bearer, user):
    return bearer(user)


@pytest.fixture
def admin_headers(bearer, admin):
    return bearer(admin)
