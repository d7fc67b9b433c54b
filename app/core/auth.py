"""
Authentication and role-gated access.

Every protected route declares its access rule as a FastAPI dependency:

- ``get_current_user`` — the session token (cookie or ``Authorization:
  Bearer``) is validated against the identity provider, then the caller's
  ``Profile`` is loaded to resolve the role.  Nothing is cached: a role or
  status change takes effect on the caller's next request.
- ``get_optional_user`` — same, but anonymous callers get ``None``.
- ``require_roles(...)`` — 403 unless the caller holds one of the roles.

The identity client is constructed once per process and reused, so its
connection pool is shared by all requests.
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Optional, Tuple
from uuid import UUID

import httpx
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import ExternalServiceError, ForbiddenException, UnauthorizedException
from app.db.session import get_db
from app.models.profile import KycStatus, Profile, UserRole, VerificationStatus
from app.repositories.profile_repo import ProfileRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CurrentUser:
    """The authenticated caller, with the role read from ``profiles``."""

    id: UUID
    email: Optional[str]
    role: UserRole
    full_name: Optional[str] = None
    verification_status: VerificationStatus = VerificationStatus.UNVERIFIED
    kyc_status: KycStatus = KycStatus.NONE

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class IdentityClient:
    """
    Thin async client for the hosted identity provider.

    ``get_user`` exchanges an opaque access token for ``(user_id, email)``;
    a token the provider rejects yields ``None``.
    """

    def __init__(
        self,
        base_url: str,
        anon_key: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._anon_key = anon_key
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"), timeout=timeout
        )

    async def get_user(self, token: str) -> Optional[Tuple[UUID, Optional[str]]]:
        try:
            response = await self._client.get(
                "/auth/v1/user",
                headers={"Authorization": f"Bearer {token}", "apikey": self._anon_key},
            )
        except httpx.TransportError as exc:
            logger.error("Identity provider unreachable: %s", exc)
            raise ExternalServiceError("Identity provider", "unreachable")

        if response.status_code in (401, 403):
            return None
        if response.status_code != 200:
            logger.warning(
                "Identity provider returned %d while validating a session",
                response.status_code,
            )
            return None

        data = response.json()
        try:
            user_id = UUID(str(data.get("id")))
        except ValueError:
            return None
        return user_id, data.get("email")

    async def close(self) -> None:
        await self._client.aclose()


@lru_cache
def get_identity_client() -> IdentityClient:
    """Process-wide identity client (FastAPI dependency)."""
    return IdentityClient(
        base_url=settings.IDENTITY_URL,
        anon_key=settings.IDENTITY_ANON_KEY,
        timeout=settings.IDENTITY_TIMEOUT,
    )


def extract_token(request: Request) -> Optional[str]:
    """Session cookie first, then ``Authorization: Bearer``."""
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if token:
        return token
    header = request.headers.get("Authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


async def _resolve_user(
    request: Request, db: AsyncSession, identity: IdentityClient
) -> Optional[CurrentUser]:
    token = extract_token(request)
    if not token:
        return None
    resolved = await identity.get_user(token)
    if resolved is None:
        return None
    user_id, email = resolved

    profile = await ProfileRepository(Profile, db).get(user_id)
    if profile is None:
        return CurrentUser(id=user_id, email=email, role=UserRole.INVESTOR)
    return CurrentUser(
        id=user_id,
        email=email or profile.email,
        role=profile.role,
        full_name=profile.full_name,
        verification_status=profile.verification_status,
        kyc_status=profile.kyc_status,
    )


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
    identity: IdentityClient = Depends(get_identity_client),
) -> CurrentUser:
    user = await _resolve_user(request, db, identity)
    if user is None:
        raise UnauthorizedException()
    return user


async def get_optional_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
    identity: IdentityClient = Depends(get_identity_client),
) -> Optional[CurrentUser]:
    return await _resolve_user(request, db, identity)


def require_roles(*roles: UserRole) -> Callable:
    """
    Build a dependency that admits only callers holding one of ``roles``.

    Example::

        @router.delete("/{deal_id}")
        async def delete_deal(user: CurrentUser = Depends(require_roles(UserRole.ADMIN))):
            ...
    """
    allowed = frozenset(roles)

    async def _checker(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if user.role not in allowed:
            raise ForbiddenException()
        return user

    return _checker
