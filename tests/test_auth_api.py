from jose import jwt

from parkeasy.config import ALGORITHM, SECRET_KEY

from conftest import auth_headers


def _register(client, email="Jest.User@ParkEasy.io", password="secret123", name="Jest User"):
    return client.post("/api/auth/register", json={"name": name, "email": email, "password": password})


def test_register_returns_token_and_user(client):
    resp = _register(client)
    assert resp.status_code == 201
    body = resp.json()
    assert body["message"] == "User registered successfully"
    assert body["user"]["email"] == "jest.user@parkeasy.io"
    assert body["user"]["is_admin"] is False

    claims = jwt.decode(body["token"], SECRET_KEY, algorithms=[ALGORITHM])
    assert claims["userId"] == body["user"]["id"]
    assert claims["email"] == "jest.user@parkeasy.io"
    assert "exp" in claims


def test_register_duplicate_email(client):
    assert _register(client).status_code == 201
    resp = _register(client, email="jest.user@parkeasy.io")
    assert resp.status_code == 409


def test_register_validation(client):
    assert _register(client, email="not-an-email").status_code == 400
    assert _register(client, password="123").status_code == 400
    assert _register(client, name=" a ").status_code == 400


def test_login_and_profile(client):
    _register(client)

    resp = client.post("/api/auth/login", json={"email": "jest.user@parkeasy.io", "password": "secret123"})
    assert resp.status_code == 200
    token = resp.json()["token"]

    resp = client.get("/api/auth/profile", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200
    profile = resp.json()
    assert profile["name"] == "Jest User"
    assert profile["is_admin"] is False
    assert profile["created_at"]


def test_login_rejects_bad_credentials(client):
    _register(client)
    resp = client.post("/api/auth/login", json={"email": "jest.user@parkeasy.io", "password": "wrong-pass"})
    assert resp.status_code == 401
    resp = client.post("/api/auth/login", json={"email": "nobody@parkeasy.io", "password": "secret123"})
    assert resp.status_code == 401


def test_profile_of_deleted_user(client, db, make_user):
    user = make_user()
    headers = auth_headers(user)
    db.delete(user)
    db.commit()

    assert client.get("/api/auth/profile", headers=headers).status_code == 404
