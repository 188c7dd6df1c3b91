"""HTTP tests for the /api/auth routes, driven through the ASGI app."""

from __future__ import annotations

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import func, select

from conftest import TEST_SECRET, sent_code
from otp_auth.database.engine import get_session
from otp_auth.errors import DeliveryError, StorageError
from otp_auth.main import app
from otp_auth.models import OTPCode


@pytest_asyncio.fixture
async def client(session_factory, notifier, locks, token_issuer):
    """Async client against the app with the test database and collaborators wired in."""

    async def _test_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _test_session
    app.state.notifier = notifier
    app.state.token_issuer = token_issuer
    app.state.otp_locks = locks

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _otp_count(session_factory, email: str) -> int:
    async with session_factory() as session:
        result = await session.execute(
            select(func.count()).select_from(OTPCode).where(OTPCode.email == email)
        )
        return result.scalar_one()


# ──────────────────────────────────────────────────────────
# POST /api/auth/request-otp
# ──────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_request_otp(client, notifier, session_factory):
    resp = await client.post("/api/auth/request-otp", json={"email": "a@x.com"})

    assert resp.status_code == 200
    assert resp.json() == {"message": "OTP sent to your email"}
    notifier.send_otp.assert_called_once()
    assert len(sent_code(notifier)) == 6
    assert await _otp_count(session_factory, "a@x.com") == 1


@pytest.mark.asyncio
async def test_request_otp_requires_email(client, notifier):
    resp = await client.post("/api/auth/request-otp", json={})

    assert resp.status_code == 400
    assert resp.json() == {"message": "Email is required"}
    notifier.send_otp.assert_not_called()


@pytest.mark.asyncio
@pytest.mark.parametrize("failure", [DeliveryError("smtp down"), StorageError("db down")])
async def test_request_otp_infrastructure_failure_is_generic(client, notifier, failure):
    notifier.send_otp.side_effect = failure

    resp = await client.post("/api/auth/request-otp", json={"email": "a@x.com"})

    assert resp.status_code == 500
    assert resp.json() == {"message": "Failed to send OTP"}


# ──────────────────────────────────────────────────────────
# POST /api/auth/register
# ──────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_register_with_otp_then_replay(client, notifier, session_factory):
    await client.post("/api/auth/request-otp", json={"email": "a@x.com"})
    code = sent_code(notifier)

    resp = await client.post(
        "/api/auth/register", json={"email": "a@x.com", "otp": code, "name": "Alice"}
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Registration successful"
    claims = jwt.decode(body["token"], TEST_SECRET, algorithms=["HS256"])
    assert claims["email"] == "a@x.com"
    assert await _otp_count(session_factory, "a@x.com") == 0

    replay = await client.post("/api/auth/register", json={"email": "a@x.com", "otp": code})
    assert replay.status_code == 400
    assert replay.json() == {"message": "Invalid OTP"}


@pytest.mark.asyncio
async def test_register_accepts_numeric_otp(client, notifier):
    await client.post("/api/auth/request-otp", json={"email": "a@x.com"})

    resp = await client.post(
        "/api/auth/register", json={"email": "a@x.com", "otp": int(sent_code(notifier))}
    )
    assert resp.status_code == 200


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [{"email": "a@x.com"}, {"password": "pw"}, {"email": "", "otp": "123456"}],
)
async def test_register_validation(client, payload):
    resp = await client.post("/api/auth/register", json=payload)

    assert resp.status_code == 400
    assert resp.json() == {"message": "Email and password OR OTP are required"}


@pytest.mark.asyncio
async def test_register_twice_conflicts(client):
    first = await client.post("/api/auth/register", json={"email": "a@x.com", "password": "pw"})
    assert first.status_code == 200

    second = await client.post(
        "/api/auth/register", json={"email": "a@x.com", "password": "other"}
    )
    assert second.status_code == 400
    assert second.json() == {"message": "User already exists"}


@pytest.mark.asyncio
async def test_register_ignores_unknown_profile_fields(client):
    resp = await client.post(
        "/api/auth/register",
        json={"email": "a@x.com", "password": "pw", "phone": "+15551234567"},
    )
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_only_latest_otp_works(client, notifier):
    await client.post("/api/auth/request-otp", json={"email": "a@x.com"})
    first = sent_code(notifier)
    await client.post("/api/auth/request-otp", json={"email": "a@x.com"})
    second = sent_code(notifier)

    if first != second:
        stale = await client.post("/api/auth/register", json={"email": "a@x.com", "otp": first})
        assert stale.status_code == 400

    fresh = await client.post("/api/auth/register", json={"email": "a@x.com", "otp": second})
    assert fresh.status_code == 200


# ──────────────────────────────────────────────────────────
# POST /api/auth/login
# ──────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_login_with_password(client):
    await client.post("/api/auth/register", json={"email": "a@x.com", "password": "pw"})

    resp = await client.post("/api/auth/login", json={"email": "a@x.com", "password": "pw"})

    assert resp.status_code == 200
    assert resp.json()["message"] == "Login successful"
    assert resp.json()["token"]


@pytest.mark.asyncio
async def test_login_with_otp_is_single_use(client, notifier):
    await client.post("/api/auth/register", json={"email": "a@x.com", "password": "pw"})
    await client.post("/api/auth/request-otp", json={"email": "a@x.com"})
    code = sent_code(notifier)

    ok = await client.post("/api/auth/login", json={"email": "a@x.com", "otp": code})
    again = await client.post("/api/auth/login", json={"email": "a@x.com", "otp": code})

    assert ok.status_code == 200
    assert again.status_code == 400
    assert again.json() == {"message": "Invalid credentials"}


@pytest.mark.asyncio
async def test_unknown_email_and_wrong_password_are_indistinguishable(client):
    await client.post("/api/auth/register", json={"email": "a@x.com", "password": "pw"})

    unknown = await client.post(
        "/api/auth/login", json={"email": "ghost@x.com", "password": "pw"}
    )
    wrong = await client.post("/api/auth/login", json={"email": "a@x.com", "password": "nope"})

    assert unknown.status_code == wrong.status_code == 400
    assert unknown.json() == wrong.json() == {"message": "Invalid credentials"}


@pytest.mark.asyncio
async def test_login_requires_credential(client):
    resp = await client.post("/api/auth/login", json={"email": "a@x.com"})

    assert resp.status_code == 400
    assert resp.json() == {"message": "Email and password OR OTP are required"}


# ──────────────────────────────────────────────────────────
# GET /health
# ──────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_password_longer_than_bcrypt_limit(client):
    password = "p" * 80

    registered = await client.post(
        "/api/auth/register", json={"email": "a@x.com", "password": password}
    )
    logged_in = await client.post(
        "/api/auth/login", json={"email": "a@x.com", "password": password}
    )

    assert registered.status_code == 200
    assert logged_in.status_code == 200


# ──────────────────────────────────────────────────────────
# Request bodies
# ──────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_malformed_json_gets_flat_error(client):
    resp = await client.post(
        "/api/auth/login",
        content=b'{"email": "a@x.com", "password":',
        headers={"content-type": "application/json"},
    )

    assert resp.status_code == 400
    assert resp.json() == {"message": "Invalid request body"}


@pytest.mark.asyncio
async def test_wrong_field_type_gets_flat_error(client):
    resp = await client.post("/api/auth/register", json={"email": 123, "password": "pw"})

    assert resp.status_code == 400
    assert resp.json() == {"message": "Invalid request body"}


@pytest.mark.asyncio
async def test_non_json_body_gets_flat_error(client):
    resp = await client.post(
        "/api/auth/request-otp", content=b"hello", headers={"content-type": "text/plain"}
    )

    assert resp.status_code == 400
    assert resp.json() == {"message": "Invalid request body"}


@pytest.mark.asyncio
async def test_form_encoded_bodies(client, notifier):
    registered = await client.post(
        "/api/auth/register", data={"email": "a@x.com", "password": "pw"}
    )
    assert registered.status_code == 200

    logged_in = await client.post("/api/auth/login", data={"email": "a@x.com", "password": "pw"})
    assert logged_in.status_code == 200
    assert logged_in.json()["message"] == "Login successful"

    await client.post("/api/auth/request-otp", data={"email": "a@x.com"})
    by_otp = await client.post(
        "/api/auth/login", data={"email": "a@x.com", "otp": sent_code(notifier)}
    )
    assert by_otp.status_code == 200


@pytest.mark.asyncio
async def test_unknown_route_gets_flat_error(client):
    resp = await client.get("/api/auth/nope")

    assert resp.status_code == 404
    assert set(resp.json()) == {"message"}


# ──────────────────────────────────────────────────────────
# CORS
# ──────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_cors_headers_on_browser_request(client):
    resp = await client.post(
        "/api/auth/login",
        json={"email": "ghost@x.com", "password": "pw"},
        headers={"Origin": "http://localhost:3000"},
    )

    assert resp.headers["access-control-allow-origin"] == "*"


@pytest.mark.asyncio
async def test_cors_preflight(client):
    resp = await client.options(
        "/api/auth/login",
        headers={
            "Origin": "http://localhost:3000",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "Content-Type",
        },
    )

    assert resp.status_code == 200
    assert "POST" in resp.headers["access-control-allow-methods"]
