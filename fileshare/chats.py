"""Chat message persistence."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import delete, select

from fileshare import users
from fileshare.errors import UserNotFound, ValidationError
from fileshare.models import ChatModel

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


async def create(
    session: AsyncSession, user_id: int, message: str, date: str | None = None
) -> ChatModel:
    if not await users.exists(session, user_id):
        raise UserNotFound("User does not exist")
    if not message or not message.strip():
        raise ValidationError("message is required")

    chat = ChatModel(
        user_id=user_id,
        message=message,
        date=date or datetime.now(timezone.utc).isoformat(),
    )
    session.add(chat)
    await session.flush()
    return chat


async def list_all(session: AsyncSession) -> list[ChatModel]:
    res = await session.execute(select(ChatModel).order_by(ChatModel.id))
    return list(res.scalars().all())


async def delete_by_user(session: AsyncSession, user_id: int) -> int:
    res = await session.execute(delete(ChatModel).where(ChatModel.user_id == user_id))
    return res.rowcount
