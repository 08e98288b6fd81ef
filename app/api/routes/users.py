# app/api/routes/users.py

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from infrastructure.postgres_connection import get_db_session
from models.user import User
from services.user_directory import UserDirectory
from schemas.user_schema import UserCreate, UserResponse, UserListResponse


users_router = APIRouter(prefix="/users", tags=["Users"])


def to_user_response(user: User) -> UserResponse:
    return UserResponse(id=user.id_user, username=user.username, created_at=user.created_at)


@users_router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_create: UserCreate,
    session: AsyncSession = Depends(get_db_session),
):
    """
    Register a username.

    - **username**: unique, non-blank
    """
    user = await UserDirectory.create_user(session=session, username=user_create.username)
    return to_user_response(user)


@users_router.get("", response_model=UserListResponse)
async def list_users(
    limit: int = Query(50, ge=1, le=200, description="Number of users to return"),
    offset: int = Query(0, ge=0, description="Number of users to skip"),
    session: AsyncSession = Depends(get_db_session),
):
    """List users ordered by username."""
    users, total = await UserDirectory.list_users(session=session, limit=limit, offset=offset)
    return UserListResponse(
        users=[to_user_response(user) for user in users],
        total=total,
        limit=limit,
        offset=offset
    )


@users_router.get("/{username}", response_model=UserResponse)
async def get_user(
    username: str,
    session: AsyncSession = Depends(get_db_session),
):
    """Get a user by username."""
    user = await UserDirectory.get_by_username(session=session, username=username)
    return to_user_response(user)
