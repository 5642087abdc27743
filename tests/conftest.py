import pytest

from api import create_app
from api.config import AuthSettings
from models import storage


@pytest.fixture
def settings():
    return AuthSettings(
        access_secret="test-access-secret-0123456789abcdef",
        refresh_secret="test-refresh-secret-0123456789abcdef",
        hash_cost=1,
        hash_memory_kib=1024,
    )


@pytest.fixture
def app(tmp_path):
    app = create_app("testing", {"DATABASE_URL": f"sqlite:///{tmp_path / 'library-test.db'}"})
    yield app
    storage.close()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_service(app):
    return app.extensions["auth_service"]


@pytest.fixture
def store(auth_service):
    return auth_service.store


@pytest.fixture
def register_and_login(client):
    def _do(username="alice", email="alice@x.com", password="pw123"):
        r = client.post("/auth/register", json={"username": username, "email": email, "password": password})
        assert r.status_code == 201, r.get_json()
        login = client.post("/auth/login", json={"username": username, "password": password})
        assert login.status_code == 200, login.get_json()
        return r.get_json()["user"], login.get_json()

    return _do
