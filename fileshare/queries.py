"""Ownership and visibility queries over upload records."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select

from fileshare import uploads, users
from fileshare.errors import UserNotFound
from fileshare.models import UploadModel
from fileshare.sharing import ShareEntry, ShareList

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from fileshare.storage import BlobStore


async def list_shared_with_me(session: AsyncSession, user_id: int) -> list[UploadModel]:
    """Records shared with *user_id*, scanned store-wide.

    Linear in records times share-list length.
    """
    if not await users.exists(session, user_id):
        raise UserNotFound("User does not exist")
    res = await session.execute(select(UploadModel).order_by(UploadModel.id))
    return [
        record
        for record in res.scalars()
        if user_id in ShareList.from_json(record.shared_to)
    ]


async def get_shared_users(
    session: AsyncSession, owner_id: int, file_id: str
) -> list[ShareEntry] | None:
    record = await uploads.find_by_file_id(session, owner_id, file_id)
    if record is None:
        return None
    return list(ShareList.from_json(record.shared_to))


async def list_accessible(session: AsyncSession, user_id: int) -> list[UploadModel]:
    """Records owned by *user_id* followed by records shared with them."""
    shared = await list_shared_with_me(session, user_id)
    owned = await uploads.find_by_owner(session, user_id)
    return owned + [r for r in shared if r.owner_id != user_id]


async def can_read(session: AsyncSession, user_id: int, file_id: str) -> bool:
    res = await session.execute(
        select(UploadModel).where(UploadModel.file_id == file_id)
    )
    for record in res.scalars():
        if record.owner_id == user_id or user_id in ShareList.from_json(record.shared_to):
            return True
    return False


async def find_orphans(
    session: AsyncSession, blobs: BlobStore, owner_id: int | None = None
) -> list[UploadModel]:
    # records whose blob no longer exists in the storage root
    if owner_id is None:
        records = await uploads.list_all(session)
    else:
        records = await uploads.find_by_owner(session, owner_id)
    return [r for r in records if not blobs.exists(r.file)]
