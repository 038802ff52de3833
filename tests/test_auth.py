import pytest
from fastapi import status
from jose import jwt

from app.config import settings
from app.models import User


def _register_payload(email: str = "newuser@example.com", profile: dict | None = None) -> dict:
    return {
        "email": email,
        "name": "New User",
        "password": "password123",
        "profile": profile or {"user_type": "individual", "skills": ["teaching"]},
    }


@pytest.mark.parametrize(
    "profile",
    [
        {"user_type": "individual", "skills": ["teaching"], "experience_years": 3},
        {"user_type": "company", "company_name": "Acme Pvt Ltd", "industry": "textiles"},
        {"user_type": "ngo", "organization_name": "Helping Hands", "focus_areas": ["education"]},
    ],
)
def test_register_each_user_type(client, db, profile):
    response = client.post("/api/auth/register", json=_register_payload(profile=profile))

    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["email"] == "newuser@example.com"
    assert data["user_type"] == profile["user_type"]
    assert data["profile"]["user_type"] == profile["user_type"]
    assert data["is_verified"] is False

    user = db.query(User).filter(User.email == "newuser@example.com").first()
    assert user.user_type == profile["user_type"]
    assert "user_type" not in user.profile_data


def test_register_company_requires_company_name(client):
    response = client.post("/api/auth/register", json=_register_payload(profile={"user_type": "company"}))
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_register_unknown_user_type(client):
    response = client.post("/api/auth/register", json=_register_payload(profile={"user_type": "government"}))
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_register_duplicate_email(client, buyer):
    response = client.post("/api/auth/register", json=_register_payload(email=buyer.email))
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert "already registered" in response.json()["detail"].lower()


def test_register_password_too_short(client):
    payload = _register_payload()
    payload["password"] = "short"
    response = client.post("/api/auth/register", json=payload)
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_register_invalid_email(client):
    response = client.post("/api/auth/register", json=_register_payload(email="not-an-email"))
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_register_password_hash(client, db):
    response = client.post("/api/auth/register", json=_register_payload(email="hashuser@example.com"))
    assert response.status_code == status.HTTP_201_CREATED

    user = db.query(User).filter(User.email == "hashuser@example.com").first()
    assert user.hashed_password != "password123"
    assert len(user.hashed_password) > 50


def test_login_success(client, buyer):
    response = client.post(
        "/api/auth/login",
        json={"email": "buyer@example.com", "password": "testpassword123"},
    )
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["success"] is True
    assert data["token_type"] == "bearer"
    assert data["expires_in"] == settings.JWT_EXPIRE_MINUTES * 60


def test_login_unverified_user_allowed(client, unverified_user):
    response = client.post(
        "/api/auth/login",
        json={"email": "new@example.com", "password": "testpassword123"},
    )
    assert response.status_code == status.HTTP_200_OK


def test_login_wrong_email(client, buyer):
    response = client.post(
        "/api/auth/login",
        json={"email": "wrong@example.com", "password": "testpassword123"},
    )
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_login_wrong_password(client, buyer):
    response = client.post(
        "/api/auth/login",
        json={"email": "buyer@example.com", "password": "wrongpassword"},
    )
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["detail"] == "Incorrect email or password"


def test_login_token_format(client, buyer):
    response = client.post(
        "/api/auth/login",
        json={"email": "buyer@example.com", "password": "testpassword123"},
    )
    token = response.json()["access_token"]

    payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    assert payload["sub"] == str(buyer.id)
    assert payload["type"] == "access"
    assert "exp" in payload


def test_me_returns_profile(client, seller, seller_headers):
    response = client.get("/api/auth/me", headers=seller_headers)

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["id"] == seller.id
    assert data["user_type"] == "company"
    assert data["profile"]["company_name"] == "Seller Co"
    assert data["is_verified"] is True


def test_me_without_profile(client, unverified_user):
    from app.api.auth import create_access_token

    response = client.get(
        "/api/auth/me",
        headers={"Authorization": f"Bearer {create_access_token(unverified_user.id)}"},
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["profile"] is None


def test_me_requires_auth(client):
    response = client.get("/api/auth/me")
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
