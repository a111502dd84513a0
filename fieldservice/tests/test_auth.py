"""
Tests for authentication endpoints
"""
from fastapi import status

from fieldservice.core.security import decode_token, hash_password, verify_password

TEST_PASSWORD = "testpass123"


def test_login_success(client, dispatcher):
    response = client.post(
        "/api/v1/auth/login",
        json={"email": "dispatch@acme.test", "password": TEST_PASSWORD},
    )
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["token_type"] == "bearer"

    payload = decode_token(data["access_token"])
    assert payload["sub"] == dispatcher.id
    assert payload["tenant_id"] == dispatcher.tenant_id


def test_login_email_is_case_insensitive(client, dispatcher):
    response = client.post(
        "/api/v1/auth/login",
        json={"email": "Dispatch@ACME.test", "password": TEST_PASSWORD},
    )
    assert response.status_code == status.HTTP_200_OK


def test_login_wrong_password(client, dispatcher):
    response = client.post(
        "/api/v1/auth/login",
        json={"email": "dispatch@acme.test", "password": "wrong"},
    )
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_login_unknown_email(client, db):
    response = client.post(
        "/api/v1/auth/login",
        json={"email": "nobody@acme.test", "password": TEST_PASSWORD},
    )
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_login_suspended_user(client, tenant, make_user):
    make_user(tenant.id, "left@acme.test", status="suspended")
    response = client.post(
        "/api/v1/auth/login",
        json={"email": "left@acme.test", "password": TEST_PASSWORD},
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_platform_admin_token_has_null_tenant(client, platform_admin):
    from fieldservice.core.config import settings

    response = client.post(
        "/api/v1/auth/login",
        json={"email": settings.INITIAL_ADMIN_EMAIL, "password": settings.INITIAL_ADMIN_PASSWORD},
    )
    assert response.status_code == status.HTTP_200_OK
    assert decode_token(response.json()["access_token"])["tenant_id"] is None


def test_bootstrap_is_idempotent(db, platform_admin):
    from fieldservice.services.bootstrap_service import bootstrap_platform_admin

    assert bootstrap_platform_admin(db) is False


def test_malformed_hash_never_verifies():
    assert verify_password("secret", "not-a-bcrypt-hash") is False
    assert verify_password("secret", None) is False
    assert verify_password("secret", hash_password("secret")) is True
