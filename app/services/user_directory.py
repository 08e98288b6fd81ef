# app/services/user_directory.py

from typing import Dict, List, Optional, Sequence, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from models.user import User
from exceptions.domain_exceptions import UsernameTakenException, NotFoundException
from services.storage_guard import storage_guard
import logging

logger = logging.getLogger(__name__)


class UserDirectory:
    """Resolves usernames to users. Read-only from the chat core's point of view."""

    @staticmethod
    async def lookup(session: AsyncSession, username: str) -> Optional[User]:
        """Return the user registered under username, or None"""
        result = await session.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    @staticmethod
    async def lookup_many(session: AsyncSession, usernames: Sequence[str]) -> Dict[str, User]:
        """
        Resolve several usernames with a single query

        Returns:
            Mapping of username to User for every username that resolved.
            Usernames that do not resolve are absent from the mapping.
        """
        if not usernames:
            return {}
        result = await session.execute(select(User).where(User.username.in_(set(usernames))))
        return {user.username: user for user in result.scalars().all()}

    @staticmethod
    async def get_by_id(session: AsyncSession, user_id: int) -> Optional[User]:
        """Return the user with the given id, or None"""
        result = await session.execute(select(User).where(User.id_user == user_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_username(session: AsyncSession, username: str) -> User:
        """
        Get a user by username

        Raises:
            NotFoundException: If no user has that username
        """
        async with storage_guard(session, "get user"):
            user = await UserDirectory.lookup(session, username)
            if user is None:
                raise NotFoundException(
                    message=f"No user found with username: {username}",
                    details={"username": username}
                )
            return user

    @staticmethod
    async def create_user(session: AsyncSession, username: str) -> User:
        """
        Register a new username

        Raises:
            UsernameTakenException: If the username is already registered
        """
        async with storage_guard(session, "create user"):
            if await UserDirectory.lookup(session, username) is not None:
                raise UsernameTakenException(
                    message="Username already taken",
                    details={"username": username}
                )

            user = User(username=username)
            session.add(user)
            try:
                await session.commit()
            except IntegrityError:
                # Lost a race against a concurrent registration
                await session.rollback()
                raise UsernameTakenException(
                    message="Username already taken",
                    details={"username": username}
                )
            await session.refresh(user)

        logger.info(f"Registered user {user.id_user} ({username})")
        return user

    @staticmethod
    async def list_users(
        session: AsyncSession,
        limit: int = 50,
        offset: int = 0
    ) -> Tuple[List[User], int]:
        """
        List users ordered by username

        Returns:
            Tuple of (users on this page, total number of users)
        """
        async with storage_guard(session, "list users"):
            total = (await session.execute(select(func.count()).select_from(User))).scalar()
            result = await session.execute(
                select(User).order_by(User.username).limit(limit).offset(offset)
            )
            return list(result.scalars().all()), total
