"""
Unit tests for session resolution and role gating.
"""

import uuid

import httpx
import pytest
from starlette.requests import Request

from app.core.auth import (
    CurrentUser,
    IdentityClient,
    _resolve_user,
    extract_token,
    require_roles,
)
from app.core.config import settings
from app.core.exceptions import ExternalServiceError, ForbiddenException
from app.models.profile import KycStatus, UserRole, VerificationStatus

from .conftest import INVESTOR_ID, make_admin, make_operator, make_profile, make_user


def _request(headers: dict) -> Request:
    raw = [(k.lower().encode(), v.encode()) for k, v in headers.items()]
    return Request({"type": "http", "method": "GET", "path": "/", "headers": raw})


def _identity(handler) -> IdentityClient:
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url="https://id.example.com"
    )
    return IdentityClient(base_url="https://id.example.com", anon_key="anon", client=client)


class TestExtractToken:
    def test_cookie_wins_over_header(self):
        request = _request(
            {
                "Cookie": f"{settings.SESSION_COOKIE_NAME}=cookie-token",
                "Authorization": "Bearer header-token",
            }
        )
        assert extract_token(request) == "cookie-token"

    def test_bearer_header(self):
        assert extract_token(_request({"Authorization": "bearer  abc "})) == "abc"

    @pytest.mark.parametrize("header", ["", "Basic abc", "Bearer ", "Bearer"])
    def test_missing_or_malformed(self, header):
        assert extract_token(_request({"Authorization": header})) is None


class TestIdentityClient:
    @pytest.mark.asyncio
    async def test_valid_token(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["Authorization"] == "Bearer tok"
            assert request.headers["apikey"] == "anon"
            return httpx.Response(200, json={"id": str(INVESTOR_ID), "email": "a@b.co"})

        assert await _identity(handler).get_user("tok") == (INVESTOR_ID, "a@b.co")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403, 500])
    async def test_rejected_token(self, status):
        identity = _identity(lambda request: httpx.Response(status))
        assert await identity.get_user("tok") is None

    @pytest.mark.asyncio
    async def test_malformed_user_id(self):
        identity = _identity(lambda request: httpx.Response(200, json={"id": "nope"}))
        assert await identity.get_user("tok") is None

    @pytest.mark.asyncio
    async def test_unreachable_provider_is_502(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ExternalServiceError) as exc_info:
            await _identity(handler).get_user("tok")
        assert exc_info.value.status_code == 502


class _StubIdentity:
    def __init__(self, result):
        self.result = result
        self.calls = []

    async def get_user(self, token):
        self.calls.append(token)
        return self.result


class TestResolveUser:
    @pytest.mark.asyncio
    async def test_no_token_skips_provider(self, mock_db):
        identity = _StubIdentity((INVESTOR_ID, None))
        assert await _resolve_user(_request({}), mock_db, identity) is None
        assert identity.calls == []

    @pytest.mark.asyncio
    async def test_profile_supplies_role_and_statuses(self, mock_db):
        mock_db.get.return_value = make_profile(
            role=UserRole.OPERATOR,
            verification_status=VerificationStatus.PENDING,
            kyc_status=KycStatus.APPROVED,
        )
        identity = _StubIdentity((INVESTOR_ID, None))

        user = await _resolve_user(_request({"Authorization": "Bearer t"}), mock_db, identity)

        assert user.role == UserRole.OPERATOR
        assert user.email == "investor@example.com"
        assert user.verification_status == VerificationStatus.PENDING
        assert user.kyc_status == KycStatus.APPROVED

    @pytest.mark.asyncio
    async def test_missing_profile_defaults_to_investor(self, mock_db):
        mock_db.get.return_value = None
        new_id = uuid.uuid4()
        identity = _StubIdentity((new_id, "new@example.com"))

        user = await _resolve_user(_request({"Authorization": "Bearer t"}), mock_db, identity)

        assert user == CurrentUser(id=new_id, email="new@example.com", role=UserRole.INVESTOR)


class TestRequireRoles:
    @pytest.mark.asyncio
    async def test_allowed_role_passes_through(self):
        checker = require_roles(UserRole.OPERATOR, UserRole.ADMIN)
        admin = make_admin()
        assert await checker(user=admin) is admin
        assert await checker(user=make_operator()) == make_operator()

    @pytest.mark.asyncio
    async def test_other_role_is_403(self):
        checker = require_roles(UserRole.ADMIN)
        with pytest.raises(ForbiddenException):
            await checker(user=make_user())
