"""Identity resolution for request handlers.

This service trusts the bearer token it is handed; issuing tokens and
managing accounts belong to the account service.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from bookindoor.core.database import get_db_session
from bookindoor.core.enums import RoleEnum
from bookindoor.core.security import decode_token, oauth2_scheme, optional_oauth2_scheme
from bookindoor.modules.identity.models import User
from bookindoor.modules.identity.repository import IdentityRepository
from bookindoor.shared.exceptions import UnauthenticatedException, UnauthorizedException


class IdentityService:
    """Identity domain service."""

    def __init__(self, repository: IdentityRepository) -> None:
        self.repository = repository

    async def ensure_default_roles(self) -> None:
        """Ensure all default roles exist."""
        for role_name in RoleEnum:
            role = await self.repository.get_role_by_name(role_name)
            if role is None:
                await self.repository.create_role(role_name)

    async def get_user_from_access_token(self, token: str) -> User:
        """Resolve user from access token."""
        payload = decode_token(token)
        if payload.get("type") != "access":
            raise UnauthenticatedException("Invalid access token")

        subject = payload.get("sub")
        if not subject:
            raise UnauthenticatedException("Token subject is missing")
        try:
            user_id = UUID(str(subject))
        except ValueError as exc:
            raise UnauthenticatedException("Token subject is malformed") from exc

        user = await self.repository.get_user_by_id(user_id)
        if user is None:
            raise UnauthenticatedException("User not found")
        if not user.is_active:
            raise UnauthenticatedException("User is inactive")
        return user


async def get_identity_service(session: AsyncSession = Depends(get_db_session)) -> IdentityService:
    """Dependency to provide identity service."""
    return IdentityService(IdentityRepository(session))


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    service: IdentityService = Depends(get_identity_service),
) -> User:
    """Resolve currently authenticated user from bearer token."""
    return await service.get_user_from_access_token(token)


async def get_optional_user(
    token: str | None = Depends(optional_oauth2_scheme),
    service: IdentityService = Depends(get_identity_service),
) -> User | None:
    """Resolve the caller when a bearer token is sent; guests get None."""
    if token is None:
        return None
    return await service.get_user_from_access_token(token)


def require_roles(*roles: RoleEnum):
    """Dependency factory for role-based access."""

    async def _checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role.name not in roles:
            raise UnauthorizedException("Operation not permitted for your role")
        return current_user

    return _checker
