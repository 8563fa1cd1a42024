import itsdangerous.timed

from tests.helpers import login_headers


def test_admin_login_returns_token_and_role(client):
    r = client.post("/api/v1/login", json={"password": "admin123"})
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["data"]["role"] == "admin"
    assert body["data"]["token"]


def test_wrong_password_is_rejected_without_role_hint(client):
    r = client.post("/api/v1/login", json={"password": "wrong"})
    assert r.status_code == 401
    body = r.json()
    assert body["success"] is False
    assert body["error"] == "Contraseña incorrecta"
    assert "role" not in body


def test_missing_password_is_a_bad_request(client):
    r = client.post("/api/v1/login", json={})
    assert r.status_code == 400
    assert r.json()["error"] == "Contraseña requerida"


def test_malformed_login_body_is_a_bad_request(client):
    r = client.post("/api/v1/login", content=b"not json", headers={"Content-Type": "application/json"})
    assert r.status_code == 400
    assert r.json()["success"] is False
    assert r.json()["error"] == "Contraseña requerida"


def test_login_without_body_asks_for_password(client):
    r = client.post("/api/v1/login")
    assert r.status_code == 400
    assert r.json() == {"success": False, "error": "Contraseña requerida", "code": "VALIDATION_ERROR"}


def test_verify_token_round_trip(client):
    for password, role in (("admin123", "admin"), ("guest123", "guest")):
        r = client.get("/api/v1/verify-token", headers=login_headers(client, password))
        assert r.status_code == 200
        assert r.json() == {"success": True, "data": {"role": role, "valid": True}}


def test_verify_token_without_token(client):
    r = client.get("/api/v1/verify-token")
    assert r.status_code == 401
    assert r.json()["code"] == "MISSING_TOKEN"


def test_non_bearer_authorization_counts_as_missing(client):
    r = client.get("/api/v1/verify-token", headers={"Authorization": "Basic YWRtaW46YWRtaW4="})
    assert r.status_code == 401
    assert r.json()["code"] == "MISSING_TOKEN"


def test_tampered_token_is_forbidden(client, admin_headers):
    tampered = {"Authorization": admin_headers["Authorization"][:-3] + "xyz"}
    r = client.get("/api/v1/verify-token", headers=tampered)
    assert r.status_code == 403
    assert r.json()["code"] == "INVALID_TOKEN"


def test_expired_token_is_unauthorized(client, admin_headers, monkeypatch):
    original = itsdangerous.timed.TimestampSigner.get_timestamp
    monkeypatch.setattr(
        itsdangerous.timed.TimestampSigner,
        "get_timestamp",
        lambda self: original(self) + 2 * 3600,
    )
    r = client.get("/api/v1/files", headers=admin_headers)
    assert r.status_code == 401
    assert r.json()["code"] == "TOKEN_EXPIRED"


def test_guest_cannot_change_password(client, guest_headers):
    r = client.post("/api/v1/new-password", headers=guest_headers, json={"newPassword": "hijack"})
    assert r.status_code == 403
    assert r.json()["error"] == "Permisos de administrador requeridos"
    assert client.post("/api/v1/login", json={"password": "guest123"}).status_code == 200
    assert client.post("/api/v1/login", json={"password": "hijack"}).status_code == 401


def test_admin_changes_guest_password(client, admin_headers, guest_headers):
    r = client.post("/api/v1/new-password", headers=admin_headers, json={"newPassword": "fresh-guest"})
    assert r.status_code == 200
    assert r.json() == {"success": True, "message": "Contraseña actualizada correctamente"}

    assert client.post("/api/v1/login", json={"password": "guest123"}).status_code == 401
    new_login = client.post("/api/v1/login", json={"password": "fresh-guest"})
    assert new_login.json()["data"]["role"] == "guest"
    assert client.post("/api/v1/login", json={"password": "admin123"}).json()["data"]["role"] == "admin"

    # Issued tokens stay valid until they expire.
    assert client.get("/api/v1/verify-token", headers=guest_headers).status_code == 200


def test_new_password_requires_value(client, admin_headers):
    r = client.post("/api/v1/new-password", headers=admin_headers, json={})
    assert r.status_code == 400
    assert r.json()["error"] == "Nueva contraseña requerida"

    r = client.post("/api/v1/new-password", headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["error"] == "Nueva contraseña requerida"


def test_failed_logins_are_rate_limited(client):
    for _ in range(5):
        assert client.post("/api/v1/login", json={"password": "nope"}).status_code == 401
    r = client.post("/api/v1/login", json={"password": "admin123"})
    assert r.status_code == 429
    assert r.json()["code"] == "RATE_LIMITED"


def test_successful_logins_do_not_consume_the_login_quota(client):
    for _ in range(7):
        assert client.post("/api/v1/login", json={"password": "guest123"}).status_code == 200
    assert client.post("/api/v1/login", json={"password": "nope"}).status_code == 401
