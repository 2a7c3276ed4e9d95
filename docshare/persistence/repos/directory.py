from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from docshare.core.errors import StoreUnavailableError
from docshare.domain import models
from docshare.domain.permissions import Group, User


async def get_group(session: AsyncSession, group_id: str) -> models.Group | None:
    result = await session.execute(select(models.Group).where(models.Group.id == group_id))
    return result.scalar_one_or_none()


async def get_user(session: AsyncSession, user_id: str) -> models.User | None:
    result = await session.execute(select(models.User).where(models.User.id == user_id))
    return result.scalar_one_or_none()


async def list_user_group_ids(session: AsyncSession, user_id: str) -> list[str]:
    # Stable ordering keeps principal construction deterministic.
    result = await session.execute(
        select(models.GroupMembership.group_id)
        .where(models.GroupMembership.user_id == user_id)
        .order_by(models.GroupMembership.group_id)
    )
    return list(result.scalars().all())


async def upsert_group(session: AsyncSession, group_id: str, name: str) -> models.Group:
    row = await get_group(session, group_id)
    if row is None:
        row = models.Group(id=group_id, name=name)
        session.add(row)
    else:
        row.name = name
    return row


async def upsert_user(
    session: AsyncSession,
    user_id: str,
    name: str,
    group_ids: list[str] | tuple[str, ...] = (),
) -> models.User:
    row = await get_user(session, user_id)
    if row is None:
        row = models.User(id=user_id, name=name)
        session.add(row)
    else:
        row.name = name
    existing = set(await list_user_group_ids(session, user_id))
    for group_id in group_ids:
        if group_id not in existing:
            session.add(models.GroupMembership(group_id=group_id, user_id=user_id))
    return row


class SqlGroupDirectory:
    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self._sessionmaker = sessionmaker

    async def get_group(self, group_id: str) -> Group | None:
        try:
            async with self._sessionmaker() as session:
                row = await get_group(session, group_id)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError("Group directory unavailable") from exc
        return Group(id=row.id, name=row.name) if row is not None else None


class SqlUserDirectory:
    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self._sessionmaker = sessionmaker

    async def get_user(self, user_id: str) -> User | None:
        try:
            async with self._sessionmaker() as session:
                row = await get_user(session, user_id)
                if row is None:
                    return None
                group_ids = await list_user_group_ids(session, user_id)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError("User directory unavailable") from exc
        return User(id=row.id, name=row.name, group_ids=frozenset(group_ids))
