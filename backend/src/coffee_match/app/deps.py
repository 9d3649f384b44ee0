"""FastAPI dependencies: sessions, the authenticated user, and the services on app.state."""

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from coffee_match.domain.enums import AccountType
from coffee_match.domain.models import User
from coffee_match.repositories.user_repository import UserRepository
from coffee_match.services.auth_service import decode_token


async def get_db(request: Request):
    """Yield an async session from the app's session factory."""
    async with request.app.state.session_factory() as session:
        yield session


async def get_current_user_dep(request: Request, db: AsyncSession = Depends(get_db)) -> User:
    """Dependency: extract current user from Bearer token."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid token",
        )
    token = auth_header.removeprefix("Bearer ")
    payload = decode_token(token)
    if not payload or "sub" not in payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )
    user = await UserRepository(db).find_by_id(payload["sub"])
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return user


async def require_admin(user: User = Depends(get_current_user_dep)) -> User:
    if user.account_type != AccountType.ADMIN.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions",
        )
    return user


def get_lifecycle(request: Request):
    return request.app.state.match_lifecycle


def get_pairing_engine(request: Request):
    return request.app.state.pairing_engine


def get_scheduler(request: Request):
    return request.app.state.match_scheduler


def get_availability_service(request: Request):
    return request.app.state.availability_service
