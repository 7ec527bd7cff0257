"""Upload metadata store: one record per uploaded file."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError

from fileshare import users
from fileshare.errors import FileIdConflict, OwnerNotFound, ValidationError
from fileshare.models import UploadModel

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from fileshare.storage import BlobStore

logger = logging.getLogger(__name__)

FILE_ID_PREFIX = "FILE_"

# descriptive fields an owner may patch, wire name -> column
DESCRIPTIVE_FIELDS = {"label": "label"}


def make_file_id(raw_file_id: str) -> str:
    return f"{FILE_ID_PREFIX}{raw_file_id}"


async def create(
    session: AsyncSession,
    owner_id: int,
    raw_file_id: str,
    label: str,
    file: str | None = None,
) -> UploadModel:
    """Register a metadata record for an already stored blob.

    The owner check and the insert are separate statements; an owner deleted
    in between still ends up with the record.
    """
    if not await users.exists(session, owner_id):
        raise OwnerNotFound("User does not exist")
    if not raw_file_id or not raw_file_id.strip():
        raise ValidationError("Upload validation failed: key: Key is required.")

    file_id = make_file_id(raw_file_id)
    res = await session.execute(
        select(UploadModel.id).where(UploadModel.file_id == file_id)
    )
    if res.scalar_one_or_none() is not None:
        raise FileIdConflict(f"Upload already registered: {file_id}")

    record = UploadModel(
        owner_id=owner_id,
        file_id=file_id,
        label=label or "",
        file=file or raw_file_id,
        shared_to=[],
    )
    session.add(record)
    try:
        await session.flush()
    except IntegrityError as e:
        # lost a race with a concurrent create of the same file id
        raise FileIdConflict(f"Upload already registered: {file_id}") from e

    logger.info("User %s registered upload %s", owner_id, file_id)
    return record


async def list_all(session: AsyncSession) -> list[UploadModel]:
    res = await session.execute(select(UploadModel).order_by(UploadModel.id))
    return list(res.scalars().all())


async def find_by_owner(session: AsyncSession, owner_id: int) -> list[UploadModel]:
    res = await session.execute(
        select(UploadModel)
        .where(UploadModel.owner_id == owner_id)
        .order_by(UploadModel.id)
    )
    return list(res.scalars().all())


async def find_by_file_id(
    session: AsyncSession, owner_id: int, file_id: str, *, for_update: bool = False
) -> UploadModel | None:
    stmt = select(UploadModel).where(
        (UploadModel.owner_id == owner_id) & (UploadModel.file_id == file_id)
    )
    if for_update:
        stmt = stmt.with_for_update()
    res = await session.execute(stmt)
    return res.scalar_one_or_none()


async def update_label(session: AsyncSession, file_id: str, patch: dict) -> int:
    """Apply a descriptive patch to every record with *file_id*.

    Ownership, share list and blob reference are never patchable.
    """
    if not patch:
        raise ValidationError("Nothing to update")
    forbidden = set(patch) - set(DESCRIPTIVE_FIELDS)
    if forbidden:
        raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(forbidden))}")

    if not all(isinstance(v, str) for v in patch.values()):
        raise ValidationError("Descriptive fields must be strings")

    values = {DESCRIPTIVE_FIELDS[k]: v for k, v in patch.items()}
    res = await session.execute(
        update(UploadModel)
        .where(UploadModel.file_id == file_id)
        .values(**values)
        .execution_options(synchronize_session="evaluate")
    )
    return res.rowcount


async def get_by_file_id(session: AsyncSession, file_id: str) -> UploadModel | None:
    res = await session.execute(
        select(UploadModel).where(UploadModel.file_id == file_id)
    )
    return res.scalar_one_or_none()


async def _release_blobs(
    session: AsyncSession, blobs: BlobStore, names: set[str]
) -> int:
    # blobs still referenced by a surviving record stay on disk
    if not names:
        return 0
    res = await session.execute(
        select(UploadModel.file).where(UploadModel.file.in_(names))
    )
    kept = set(res.scalars())
    removed = 0
    for name in sorted(names - kept):
        if blobs.exists(name) and blobs.remove(name):
            removed += 1
    return removed


async def _delete_where(
    session: AsyncSession, criteria, blobs: BlobStore | None
) -> int:
    names: set[str] = set()
    if blobs is not None:
        res = await session.execute(select(UploadModel.file).where(criteria))
        names = set(res.scalars())

    res = await session.execute(delete(UploadModel).where(criteria))
    if blobs is not None:
        await _release_blobs(session, blobs, names)
    return res.rowcount


async def delete_by_file_id(
    session: AsyncSession, file_id: str, blobs: BlobStore | None = None
) -> int:
    """Delete records with *file_id*; their blobs too when *blobs* is given."""
    count = await _delete_where(session, UploadModel.file_id == file_id, blobs)
    logger.info("Deleted %d upload(s) for %s", count, file_id)
    return count


async def delete_by_owner(
    session: AsyncSession, owner_id: int, blobs: BlobStore | None = None
) -> int:
    count = await _delete_where(session, UploadModel.owner_id == owner_id, blobs)
    logger.info("Deleted %d upload(s) owned by %s", count, owner_id)
    return count
