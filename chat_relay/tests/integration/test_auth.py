import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio


async def test_register_user(client: AsyncClient):
    response = await client.post(
        "/api/v1/auth/register",
        json={
            "username": "newuser",
            "email": "newuser@example.com",
            "password": "newpassword",
            "name": "New User",
        },
    )
    assert response.status_code == 201
    body = response.json()
    assert "id" in body
    assert body["username"] == "newuser"
    assert body["email"] == "newuser@example.com"
    assert body["name"] == "New User"
    assert "hashed_password" not in body


async def test_register_duplicate_username(client: AsyncClient, test_user):
    response = await client.post(
        "/api/v1/auth/register",
        json={"username": test_user.username, "email": "another@example.com", "password": "newpassword"},
    )
    assert response.status_code == 400
    assert response.json() == {"message": "Username already registered", "kind": "validation"}


async def test_register_duplicate_email(client: AsyncClient, test_user):
    response = await client.post(
        "/api/v1/auth/register",
        json={"username": "uniqueuser", "email": test_user.email, "password": "newpassword"},
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Email already registered"


@pytest.mark.parametrize(
    "payload",
    [
        {"username": "invaliduser", "email": "invalid-email", "password": "newpassword"},
        {"username": "shortpass", "email": "short@example.com", "password": "short"},
        {"username": "nopassword", "email": "nopassword@example.com"},
    ],
)
async def test_register_invalid_payload(client: AsyncClient, payload):
    response = await client.post("/api/v1/auth/register", json=payload)
    assert response.status_code == 422


async def test_login(client: AsyncClient, test_user):
    response = await client.post(
        "/api/v1/auth/login",
        data={"username": test_user.username, "password": "testpassword"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["user_id"] == test_user.id
    assert body["access_token"] and body["refresh_token"]


async def test_login_with_email(client: AsyncClient, test_user):
    response = await client.post(
        "/api/v1/auth/login",
        data={"username": test_user.email, "password": "testpassword"},
    )
    assert response.status_code == 200


async def test_login_invalid_credentials(client: AsyncClient, test_user):
    response = await client.post(
        "/api/v1/auth/login",
        data={"username": test_user.username, "password": "wrongpassword"},
    )
    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"
    assert response.json() == {
        "message": "Incorrect username or password",
        "kind": "authentication",
    }


async def test_protected_route_requires_token(client: AsyncClient):
    response = await client.get("/api/v1/users/me")
    assert response.status_code == 401

    response = await client.get(
        "/api/v1/users/me", headers={"Authorization": "Bearer not-a-jwt"}
    )
    assert response.status_code == 401
    assert response.json()["kind"] == "authentication"


async def test_refresh_token_rotates_pair(client: AsyncClient, test_user):
    login = await client.post(
        "/api/v1/auth/login",
        data={"username": test_user.username, "password": "testpassword"},
    )
    tokens = login.json()

    response = await client.post(
        "/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]}
    )
    assert response.status_code == 200
    refreshed = response.json()
    assert refreshed["access_token"] != tokens["access_token"]
    assert refreshed["refresh_token"] != tokens["refresh_token"]

    # the old pair is gone
    old = await client.get(
        "/api/v1/users/me", headers={"Authorization": f"Bearer {tokens['access_token']}"}
    )
    assert old.status_code == 401
    again = await client.post(
        "/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]}
    )
    assert again.status_code == 401

    new = await client.get(
        "/api/v1/users/me",
        headers={"Authorization": f"Bearer {refreshed['access_token']}"},
    )
    assert new.status_code == 200


async def test_refresh_with_unknown_token(client: AsyncClient):
    response = await client.post("/api/v1/auth/refresh", json={"refresh_token": "nope"})
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid refresh token"


async def test_logout_revokes_token(client: AsyncClient, auth_header):
    response = await client.post("/api/v1/auth/logout", headers=auth_header)
    assert response.status_code == 204

    response = await client.get("/api/v1/users/me", headers=auth_header)
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid or expired token"

    response = await client.post("/api/v1/auth/logout", headers=auth_header)
    assert response.status_code == 401
