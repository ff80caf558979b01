"""
finance_app.db.repositories.users

User directory store.

Responsibilities:
- Insert, fetch, list and save `User` rows.
- Nothing else: provisioning order and validation live in `services.provisioning`.
"""

from __future__ import annotations

from sqlalchemy import exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from finance_app.db.models import User


class UserRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def insert(self, user: User) -> User:
        # Flushing assigns the surrogate id without committing.
        self._session.add(user)
        await self._session.flush()
        return user

    async def get(self, user_id: int) -> User | None:
        return await self._session.get(User, user_id)

    async def get_by_username(self, username: str) -> User | None:
        stmt = select(User).where(User.username == username)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def list_all(self, *, username: str | None = None) -> list[User]:
        stmt = select(User).order_by(User.id)
        if username is not None:
            stmt = stmt.where(User.username == username)
        return list((await self._session.execute(stmt)).scalars().all())

    async def list_usernames(self) -> set[str]:
        return set((await self._session.execute(select(User.username))).scalars().all())

    async def exists(self, user_id: int) -> bool:
        stmt = select(exists().where(User.id == user_id))
        return bool((await self._session.execute(stmt)).scalar())

    async def save(self, user: User) -> User:
        # Upsert by primary key.
        merged = await self._session.merge(user)
        await self._session.flush()
        return merged
