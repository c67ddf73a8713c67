from datetime import datetime, timedelta, timezone

from shop.accounts.models import AccessToken
from shop.accounts.security import token_digest

PASSWORD = "Str0ng!Pass"


def register(client, username="alice", email="alice@example.com", password=PASSWORD):
    return client.post("/auth/register", json={"username": username, "email": email, "password": password})


def test_register(client):
    r = register(client, email="  Alice@Example.COM ")

    assert r.status_code == 201, r.json()
    body = r.json()
    assert body["success"] is True
    assert body["message"] == "User registered"
    assert body["object"]["username"] == "alice"
    assert body["object"]["email"] == "alice@example.com"
    assert "password" not in body["object"]
    assert "passwordHash" not in body["object"]
    assert body["object"]["id"]


def test_register_reports_every_invalid_field(client):
    r = register(client, username="not valid!", email="nope", password="weak")

    assert r.status_code == 400
    assert r.json()["message"] == "Validation error"
    fields = sorted(e.split(":", 1)[0] for e in r.json()["errors"])
    assert fields == ["email", "password", "username"]


def test_register_duplicates(client):
    register(client)
    r = register(client)
    assert r.status_code == 400
    assert r.json()["errors"] == ["email already registered", "username already taken"]


def test_register_requires_a_json_object(client):
    r = client.post("/auth/register", json=["alice"])
    assert r.status_code == 400


def test_login_returns_token_usable_for_orders(client):
    register(client)

    r = client.post("/auth/login", json={"email": "alice@example.com", "password": PASSWORD})

    assert r.status_code == 200
    assert r.json()["message"] == "Login successful"
    token = r.json()["object"]["token"]
    assert client.get("/orders", headers={"Authorization": f"Bearer {token}"}).status_code == 200


def test_login_with_wrong_password(client):
    register(client)
    r = client.post("/auth/login", json={"email": "alice@example.com", "password": "Wr0ng!Pass"})
    assert r.status_code == 401
    assert r.json()["message"] == "Invalid credentials"


def test_login_unknown_email(client):
    r = client.post("/auth/login", json={"email": "ghost@example.com", "password": PASSWORD})
    assert r.status_code == 401


def test_expired_token_is_rejected(client, app, buyer_token):
    with app.state.sessionmaker() as s:
        rec = s.get(AccessToken, token_digest(buyer_token))
        rec.expires_at = datetime.now(timezone.utc) - timedelta(seconds=1)
        s.commit()

    r = client.get("/orders", headers={"Authorization": f"Bearer {buyer_token}"})

    assert r.status_code == 401
    assert r.json()["errors"] == ["Token expired"]


def test_non_bearer_scheme_is_rejected(client, buyer_token):
    r = client.get("/orders", headers={"Authorization": f"Basic {buyer_token}"})
    assert r.status_code == 401
    assert r.json()["errors"] == ["Missing token"]
