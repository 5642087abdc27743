import threading

import jwt

from models import storage
from models.refresh_token import RefreshToken
from models.user import UserRole


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


def test_register_login_profile_scenario(client, register_and_login, settings):
    user, tokens = register_and_login("alice", "alice@x.com", "pw123")

    assert user["username"] == "alice"
    assert user["role"] == "user"
    assert set(user) == {"id", "username", "email", "role"}
    assert tokens["message"]
    assert tokens["expiresIn"] == "2h"
    claims = jwt.decode(tokens["accessToken"], settings.access_secret, algorithms=["HS256"])
    assert claims["username"] == "alice"

    r = client.get("/auth/profile", headers=bearer(tokens["accessToken"]))
    assert r.status_code == 200
    body = r.get_json()
    assert body["username"] == "alice"
    assert body["email"] == "alice@x.com"
    assert body["id"] == user["id"]
    assert body["created_at"] and body["updated_at"]
    assert "password_hash" not in body
    assert "password" not in body


def test_register_response_shape(client):
    r = client.post("/auth/register", json={"username": "dora", "email": "Dora@X.com", "password": "pw"})
    assert r.status_code == 201
    body = r.get_json()
    assert body["message"]
    assert body["user"]["email"] == "dora@x.com"
    assert "password_hash" not in body["user"]


def test_register_missing_fields(client):
    r = client.post("/auth/register", json={"username": "alice"})
    assert r.status_code == 400
    body = r.get_json()
    assert body["error"] == "VALIDATION_ERROR"
    assert set(body["details"]) == {"email", "password"}


def test_register_duplicate_username(client, register_and_login):
    register_and_login()
    r = client.post("/auth/register", json={"username": "alice", "email": "a2@x.com", "password": "pw"})
    assert r.status_code == 400
    assert r.get_json()["error"] == "CONFLICT"


def test_register_admin_requires_admin_token(client, auth_service, register_and_login):
    payload = {"username": "eve", "email": "eve@x.com", "password": "pw", "role": "admin"}
    assert client.post("/auth/register", json=payload).status_code == 401

    _, user_tokens = register_and_login("alice", "alice@x.com", "pw123")
    r = client.post("/auth/register", json=payload, headers=bearer(user_tokens["accessToken"]))
    assert r.status_code == 403

    auth_service.register("root", "root@x.com", "rootpw", UserRole.ADMIN)
    admin_tokens = client.post("/auth/login", json={"username": "root", "password": "rootpw"}).get_json()
    r = client.post("/auth/register", json=payload, headers=bearer(admin_tokens["accessToken"]))
    assert r.status_code == 201
    assert r.get_json()["user"]["role"] == "admin"


def test_register_unknown_role_is_rejected(client):
    r = client.post("/auth/register", json={"username": "x", "email": "x@x.com", "password": "pw", "role": "owner"})
    assert r.status_code == 400


def test_login_missing_fields(client):
    r = client.post("/auth/login", json={"username": "alice"})
    assert r.status_code == 400
    assert r.get_json()["error"] == "VALIDATION_ERROR"


def test_login_ignores_whitespace_around_username(client, register_and_login):
    register_and_login(" alice ", "alice@x.com", "pw123")
    r = client.post("/auth/login", json={"username": " alice ", "password": "pw123"})
    assert r.status_code == 200
    assert client.post("/auth/login", json={"username": "alice", "password": "pw123"}).status_code == 200


def test_login_errors_do_not_reveal_which_part_failed(client, register_and_login):
    register_and_login()
    wrong_password = client.post("/auth/login", json={"username": "alice", "password": "nope"})
    unknown_user = client.post("/auth/login", json={"username": "mallory", "password": "pw123"})

    assert wrong_password.status_code == unknown_user.status_code == 400
    assert wrong_password.get_json() == unknown_user.get_json()
    assert wrong_password.get_json()["error"] == "INVALID_CREDENTIALS"


def test_refresh_returns_new_pair(client, register_and_login):
    _, tokens = register_and_login()
    r = client.post("/auth/refresh", json={"refreshToken": tokens["refreshToken"]})

    assert r.status_code == 200
    body = r.get_json()
    assert set(body) == {"message", "accessToken", "refreshToken", "expiresIn"}
    assert body["refreshToken"] != tokens["refreshToken"]
    assert client.get("/auth/profile", headers=bearer(body["accessToken"])).status_code == 200


def test_refresh_reuse_of_original_token_is_rejected(client, register_and_login):
    _, tokens = register_and_login()
    assert client.post("/auth/refresh", json={"refreshToken": tokens["refreshToken"]}).status_code == 200

    r = client.post("/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
    assert r.status_code == 403
    assert r.get_json()["error"] == "INVALID_TOKEN"


def test_refresh_garbage_token(client):
    r = client.post("/auth/refresh", json={"refreshToken": "garbage"})
    assert r.status_code == 403


def test_refresh_missing_token(client):
    assert client.post("/auth/refresh", json={}).status_code == 400
    assert client.post("/auth/refresh").status_code == 400


def test_logout_then_refresh_is_rejected(client, register_and_login):
    _, tokens = register_and_login()
    assert client.post("/auth/logout", json={"refreshToken": tokens["refreshToken"]}).status_code == 204
    assert client.post("/auth/refresh", json={"refreshToken": tokens["refreshToken"]}).status_code == 403
    assert client.post("/auth/logout", json={}).status_code == 400


def test_profile_requires_authorization_header(client):
    r = client.get("/auth/profile")
    assert r.status_code == 401
    assert r.get_json()["error"] == "UNAUTHORIZED"


def test_profile_rejects_malformed_header(client, register_and_login):
    _, tokens = register_and_login()
    r = client.get("/auth/profile", headers={"Authorization": tokens["accessToken"]})
    assert r.status_code == 401


def test_profile_rejects_invalid_token(client):
    r = client.get("/auth/profile", headers=bearer("not.a.token"))
    assert r.status_code == 403
    assert r.get_json()["error"] == "FORBIDDEN"


def test_profile_rejects_refresh_token(client, register_and_login):
    _, tokens = register_and_login()
    assert client.get("/auth/profile", headers=bearer(tokens["refreshToken"])).status_code == 403


def test_profile_of_deleted_user_is_not_found(app, client, register_and_login, store):
    user, tokens = register_and_login()
    storage.delete(store.get_user_by_id(user["id"]))
    storage.save()

    r = client.get("/auth/profile", headers=bearer(tokens["accessToken"]))
    assert r.status_code == 404
    # the refresh row went with the user
    assert storage.count(RefreshToken) == 0


def test_concurrent_logins_leave_one_refresh_row(app, client, store):
    client.post("/auth/register", json={"username": "alice", "email": "alice@x.com", "password": "pw123"})
    results = []
    barrier = threading.Barrier(2)

    def login():
        with app.test_client() as c:
            barrier.wait()
            results.append(c.post("/auth/login", json={"username": "alice", "password": "pw123"}))

    threads = [threading.Thread(target=login) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert [r.status_code for r in results] == [200, 200]
    issued = {r.get_json()["refreshToken"] for r in results}
    assert len(issued) == 2

    user = store.get_user_by_username("alice")
    rows = storage.get_session().query(RefreshToken).filter(RefreshToken.user_id == user.id).all()
    assert len(rows) == 1
    assert rows[0].token in issued


def test_health(client):
    assert client.get("/health").get_json()["status"] == "ok"
    r = client.get("/health/db")
    assert r.status_code == 200
    assert r.get_json()["db_time"]


def test_unknown_route_uses_error_envelope(client):
    r = client.get("/nope")
    assert r.status_code == 404
    assert r.get_json() == {"error": "NOT_FOUND", "message": "Resource not found", "status": 404}
