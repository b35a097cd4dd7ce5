"""Tests for registration, login and credential handling."""
from datetime import timedelta

import pytest

import main
from auth import create_access_token
from conftest import PASSWORD

EMPLOYEE = {
    "email": "Jane.Doe@Example.com",
    "full_name": "Jane Doe",
    "password": "hunter22",
    "user_type": "employee",
    "job_title": "Analyst",
    "skills": ["Excel", "SQL"],
    "experience_level": "mid",
    "years_of_experience": 4,
}


def test_register_employee(client):
    response = client.post("/auth/register", json=EMPLOYEE)

    assert response.status_code == 201
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["email"] == "jane.doe@example.com"
    assert body["user"]["role"] == "employee"
    assert body["user"]["skills"] == ["Excel", "SQL"]
    assert "hashed_password" not in body["user"]
    assert response.cookies.get("token") == body["access_token"]


def test_register_employer_needs_company(client):
    payload = {"email": "boss@example.com", "full_name": "Boss", "password": "hunter22", "user_type": "employer"}
    assert client.post("/auth/register", json=payload).status_code == 400

    response = client.post("/auth/register", json=dict(payload, company_name="Acme"))
    assert response.status_code == 201
    assert response.json()["user"]["company_name"] == "Acme"


def test_register_duplicate_email(client, make_user):
    make_user("employer", email="jane.doe@example.com")

    response = client.post("/auth/register", json=EMPLOYEE)

    assert response.status_code == 400
    assert response.json()["detail"] == "User with this email already exists"


def test_register_race_on_same_email(client, make_user, monkeypatch):
    # A concurrent sign-up commits the address after this request checked it
    def not_found_yet(db, email):
        return None

    make_user("employee", email="jane.doe@example.com")
    monkeypatch.setattr(main, "get_user", not_found_yet)

    response = client.post("/auth/register", json=EMPLOYEE)

    assert response.status_code == 400
    assert response.json()["detail"] == "User with this email already exists"


@pytest.mark.parametrize("override", [{"user_type": "admin"}, {"password": "123"}, {"email": "not-an-email"}])
def test_register_validation(client, override):
    assert client.post("/auth/register", json=dict(EMPLOYEE, **override)).status_code == 400


def test_login_sets_cookie_and_token_works(client, employee):
    response = client.post("/auth/login", json={"email": employee.email, "password": PASSWORD})

    assert response.status_code == 200
    token = response.json()["access_token"]
    assert response.cookies.get("token") == token
    assert response.json()["user"]["last_login"] is not None

    me = client.get("/users/me/", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["id"] == employee.id


def test_login_with_wrong_password(client, employee):
    response = client.post("/auth/login", json={"email": employee.email, "password": "wrong-password"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid credentials"


def test_oauth2_token_form(client, employer):
    response = client.post("/token", data={"username": employer.email, "password": PASSWORD})
    assert response.status_code == 200
    assert response.json()["token_type"] == "bearer"


def test_cookie_authentication(client, employee):
    client.cookies.set("token", create_access_token({"sub": str(employee.id)}))
    response = client.get("/users/me/")
    assert response.status_code == 200
    assert response.json()["email"] == employee.email


def test_logout_clears_cookie(client, auth_headers, employee):
    response = client.post("/auth/logout", headers=auth_headers(employee))
    assert response.status_code == 200
    assert 'token=""' in response.headers["set-cookie"]


@pytest.mark.parametrize(
    "token",
    [
        "garbage",
        create_access_token({"sub": "1"}, expires_delta=timedelta(minutes=-1)),
        create_access_token({"sub": "not-a-number"}),
        create_access_token({"sub": "99999"}),
    ],
)
def test_bad_tokens(client, token):
    response = client.get("/users/me/", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


def test_disabled_account(client, auth_headers, make_user):
    user = make_user("employee", is_active=False)
    assert client.get("/users/me/", headers=auth_headers(user)).status_code == 401


def test_login_is_rate_limited(client):
    for _ in range(5):
        response = client.post("/auth/login", json={"email": "ghost@example.com", "password": "whatever"})
        assert response.status_code == 401

    response = client.post("/auth/login", json={"email": "ghost@example.com", "password": "whatever"})
    assert response.status_code == 429
    assert int(response.headers["retry-after"]) > 0


def test_security_headers(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.headers["x-content-type-options"] == "nosniff"
    assert response.headers["x-frame-options"] == "DENY"
    assert response.headers["x-ratelimit-limit"] == "100"
