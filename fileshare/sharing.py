"""Share list management for upload records.

A record's ``shared_to`` column stores an ordered JSON array of
``{"userId": n}`` entries. ``ShareList`` is the in-memory form: an ordered
mapping keyed by user id, so a user can only ever appear once.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Iterator

from sqlalchemy import select

from fileshare import uploads
from fileshare.errors import RecordNotFound, SelfShareError, ValidationError
from fileshare.models import UploadModel

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShareEntry:
    """Read-visibility grant to a single user. Equal when user ids match."""

    user_id: int

    @classmethod
    def from_dict(cls, data: dict) -> ShareEntry:
        return cls(user_id=int(data["userId"]))

    def to_dict(self) -> dict:
        return {"userId": self.user_id}


class ShareList:
    def __init__(self, entries: Iterable[ShareEntry] = ()) -> None:
        self._entries: dict[int, ShareEntry] = {}
        for entry in entries:
            self.add(entry)

    @classmethod
    def from_json(cls, raw: list[dict] | None) -> ShareList:
        return cls(ShareEntry.from_dict(item) for item in raw or [])

    def to_json(self) -> list[dict]:
        return [entry.to_dict() for entry in self]

    def add(self, entry: ShareEntry) -> bool:
        """Add *entry*; the first occurrence wins. Returns True if it was new."""
        if entry.user_id in self._entries:
            return False
        self._entries[entry.user_id] = entry
        return True

    def remove(self, user_id: int) -> bool:
        return self._entries.pop(user_id, None) is not None

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._entries

    def __iter__(self) -> Iterator[ShareEntry]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)


async def _load_owned(
    session: AsyncSession, file_id: str, requester_id: int
) -> UploadModel:
    record = await uploads.find_by_file_id(
        session, requester_id, file_id, for_update=True
    )
    if record is None:
        raise RecordNotFound(f"No file {file_id} owned by user {requester_id}")
    return record


async def share_file(
    session: AsyncSession, file_id: str, requester_id: int, target_user_id: int | None
) -> ShareEntry:
    """Grant *target_user_id* visibility of the requester's record *file_id*.

    Sharing the same file with the same user again leaves the list unchanged.
    """
    record = await _load_owned(session, file_id, requester_id)
    if not target_user_id:
        raise ValidationError("No user to add")
    if target_user_id == requester_id:
        raise SelfShareError("Self sharing not allowed")

    entry = ShareEntry(user_id=target_user_id)
    shares = ShareList.from_json(record.shared_to)
    if shares.add(entry):
        record.shared_to = shares.to_json()
        await session.flush()
        logger.info("User %s shared %s with %s", requester_id, file_id, target_user_id)
    return entry


async def unshare_file(
    session: AsyncSession, file_id: str, requester_id: int, target_user_id: int
) -> bool:
    record = await _load_owned(session, file_id, requester_id)
    shares = ShareList.from_json(record.shared_to)
    if not shares.remove(target_user_id):
        return False
    record.shared_to = shares.to_json()
    await session.flush()
    logger.info("User %s unshared %s from %s", requester_id, file_id, target_user_id)
    return True


async def revoke_everywhere(session: AsyncSession, user_id: int) -> int:
    """Remove *user_id* from every share list. Returns records changed."""
    res = await session.execute(select(UploadModel))
    changed = 0
    for record in res.scalars():
        shares = ShareList.from_json(record.shared_to)
        if shares.remove(user_id):
            record.shared_to = shares.to_json()
            changed += 1
    if changed:
        await session.flush()
        logger.info("Revoked user %s from %d share list(s)", user_id, changed)
    return changed
