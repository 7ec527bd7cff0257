"""User directory: single-record user persistence and existence checks."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError

from fileshare.errors import UserAlreadyExists, UserNotFound, ValidationError
from fileshare.models import UserModel

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {"fullName": "full_name", "email": "email"}


async def exists(session: AsyncSession, user_id: int | None) -> bool:
    if not user_id:
        return False
    res = await session.execute(select(UserModel.id).where(UserModel.id == user_id))
    return res.scalar_one_or_none() is not None


async def get(session: AsyncSession, user_id: int) -> UserModel:
    user = await session.get(UserModel, user_id)
    if user is None:
        raise UserNotFound(f"User {user_id} does not exist")
    return user


async def list_all(session: AsyncSession) -> list[UserModel]:
    res = await session.execute(select(UserModel).order_by(UserModel.id))
    return list(res.scalars().all())


async def register(session: AsyncSession, full_name: str, email: str) -> UserModel:
    full_name = (full_name or "").strip()
    email = (email or "").strip().lower()
    if not full_name or not email:
        raise ValidationError("fullName and email are required")

    res = await session.execute(select(UserModel.id).where(UserModel.email == email))
    if res.scalar_one_or_none() is not None:
        raise UserAlreadyExists(f"User already exists: {email}")

    user = UserModel(full_name=full_name, email=email)
    session.add(user)
    try:
        await session.flush()
    except IntegrityError as e:
        # a concurrent register won the unique email
        raise UserAlreadyExists(f"User already exists: {email}") from e
    logger.info("Registered user %s", user.id)
    return user


async def update(session: AsyncSession, user_id: int, patch: dict) -> UserModel:
    unknown = set(patch) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
    user = await get(session, user_id)
    for key, value in patch.items():
        if not value or not str(value).strip():
            raise ValidationError(f"{key} must not be empty")
        setattr(user, UPDATABLE_FIELDS[key], str(value).strip())
    await session.flush()
    return user


async def delete_user(session: AsyncSession, user_id: int) -> int:
    """Delete a user and drop them from every share list."""
    from fileshare import sharing

    res = await session.execute(delete(UserModel).where(UserModel.id == user_id))
    if res.rowcount:
        await sharing.revoke_everywhere(session, user_id)
        logger.info("Deleted user %s", user_id)
    return res.rowcount
