"""Tests for the upload metadata store."""

from __future__ import annotations

import io
from typing import TYPE_CHECKING

import pytest

from fileshare import uploads
from fileshare.errors import FileIdConflict, OwnerNotFound, ValidationError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


# ---------------------------------------------------------------------------
# create
# ---------------------------------------------------------------------------


class TestCreate:
    async def test_create(self, async_session: AsyncSession, alice_bob_carol):
        alice, _, _ = alice_bob_carol
        record = await uploads.create(async_session, alice, "abc123", "Q3 report")

        assert record.id
        assert record.owner_id == alice
        assert record.file_id == "FILE_abc123"
        assert record.label == "Q3 report"
        assert record.shared_to == []
        assert record.file == "abc123"

    async def test_create_with_blob_reference(
        self, async_session: AsyncSession, alice_bob_carol
    ):
        alice, _, _ = alice_bob_carol
        record = await uploads.create(
            async_session, alice, "abc123", "Q3", file="0f3a.pdf"
        )
        assert record.file == "0f3a.pdf"

    async def test_unknown_owner(self, async_session: AsyncSession, alice_bob_carol):
        with pytest.raises(OwnerNotFound):
            await uploads.create(async_session, 999, "abc123", "Q3 report")

    @pytest.mark.parametrize("raw", ["", "   ", None])
    async def test_missing_file_id(
        self, async_session: AsyncSession, alice_bob_carol, raw
    ):
        alice, _, _ = alice_bob_carol
        with pytest.raises(ValidationError, match="Key is required"):
            await uploads.create(async_session, alice, raw, "Q3 report")

    async def test_duplicate_file_id(
        self, async_session: AsyncSession, alice_bob_carol
    ):
        alice, bob, _ = alice_bob_carol
        await uploads.create(async_session, alice, "abc123", "first")
        with pytest.raises(FileIdConflict):
            await uploads.create(async_session, bob, "abc123", "second")

    async def test_to_dict_omits_id(self, async_session: AsyncSession, alice_bob_carol):
        alice, _, _ = alice_bob_carol
        record = await uploads.create(async_session, alice, "abc123", "Q3 report")
        assert record.to_dict() == {
            "userId": alice,
            "fileId": "FILE_abc123",
            "label": "Q3 report",
            "file": "abc123",
            "sharedTo": [],
        }
        assert record.to_dict(include_id=True)["id"] == record.id


# ---------------------------------------------------------------------------
# lookups
# ---------------------------------------------------------------------------


class TestFind:
    async def test_find_by_owner(self, async_session: AsyncSession, alice_bob_carol):
        alice, bob, _ = alice_bob_carol
        await uploads.create(async_session, alice, "a1", "one")
        await uploads.create(async_session, alice, "a2", "two")
        await uploads.create(async_session, bob, "b1", "three")

        found = await uploads.find_by_owner(async_session, alice)
        assert [r.file_id for r in found] == ["FILE_a1", "FILE_a2"]
        assert await uploads.find_by_owner(async_session, 999) == []

    async def test_find_by_file_id_is_owner_scoped(
        self, async_session: AsyncSession, alice_bob_carol
    ):
        alice, bob, _ = alice_bob_carol
        await uploads.create(async_session, alice, "a1", "one")

        found = await uploads.find_by_file_id(async_session, alice, "FILE_a1")
        assert found is not None
        assert found.label == "one"
        assert await uploads.find_by_file_id(async_session, bob, "FILE_a1") is None
        assert await uploads.find_by_file_id(async_session, alice, "a1") is None

    async def test_list_all(self, async_session: AsyncSession, alice_bob_carol):
        alice, bob, _ = alice_bob_carol
        await uploads.create(async_session, alice, "a1", "one")
        await uploads.create(async_session, bob, "b1", "two")
        assert len(await uploads.list_all(async_session)) == 2


# ---------------------------------------------------------------------------
# update_label
# ---------------------------------------------------------------------------


class TestUpdateLabel:
    async def test_update_label(self, async_session: AsyncSession, alice_bob_carol):
        alice, _, _ = alice_bob_carol
        await uploads.create(async_session, alice, "a1", "old")

        count = await uploads.update_label(async_session, "FILE_a1", {"label": "new"})
        assert count == 1
        found = await uploads.find_by_file_id(async_session, alice, "FILE_a1")
        assert found.label == "new"

    async def test_update_label_no_match(
        self, async_session: AsyncSession, alice_bob_carol
    ):
        count = await uploads.update_label(async_session, "FILE_none", {"label": "x"})
        assert count == 0

    @pytest.mark.parametrize(
        "patch",
        [
            {"userId": 2},
            {"sharedTo": [{"userId": 2}]},
            {"file": "other.bin"},
            {"fileId": "FILE_other"},
            {"label": "ok", "userId": 2},
        ],
    )
    async def test_update_rejects_non_descriptive_fields(
        self, async_session: AsyncSession, alice_bob_carol, patch
    ):
        alice, _, _ = alice_bob_carol
        record = await uploads.create(async_session, alice, "a1", "old")
        with pytest.raises(ValidationError, match="cannot be updated"):
            await uploads.update_label(async_session, "FILE_a1", patch)
        assert record.owner_id == alice
        assert record.label == "old"

    async def test_update_empty_patch(self, async_session: AsyncSession):
        with pytest.raises(ValidationError):
            await uploads.update_label(async_session, "FILE_a1", {})

    async def test_update_non_string_label(self, async_session: AsyncSession):
        with pytest.raises(ValidationError):
            await uploads.update_label(async_session, "FILE_a1", {"label": None})


# ---------------------------------------------------------------------------
# delete
# ---------------------------------------------------------------------------


class TestDelete:
    async def test_delete_by_file_id(self, async_session: AsyncSession, alice_bob_carol):
        alice, _, _ = alice_bob_carol
        await uploads.create(async_session, alice, "a1", "one")
        await uploads.create(async_session, alice, "a2", "two")

        assert await uploads.delete_by_file_id(async_session, "FILE_a1") == 1
        assert await uploads.delete_by_file_id(async_session, "FILE_a1") == 0
        remaining = await uploads.find_by_owner(async_session, alice)
        assert [r.file_id for r in remaining] == ["FILE_a2"]

    async def test_delete_by_owner(self, async_session: AsyncSession, alice_bob_carol):
        alice, bob, _ = alice_bob_carol
        await uploads.create(async_session, alice, "a1", "one")
        await uploads.create(async_session, alice, "a2", "two")
        await uploads.create(async_session, bob, "b1", "three")

        assert await uploads.delete_by_owner(async_session, alice) == 2
        assert await uploads.find_by_owner(async_session, alice) == []
        assert len(await uploads.find_by_owner(async_session, bob)) == 1


class TestDeleteBlobs:
    async def test_delete_by_file_id_removes_blob(
        self, async_session: AsyncSession, alice_bob_carol, blobs
    ):
        alice, _, _ = alice_bob_carol
        stored = await blobs.save(io.BytesIO(b"data"), "a.txt")
        await uploads.create(async_session, alice, "a1", "one", file=stored.file)

        assert await uploads.delete_by_file_id(async_session, "FILE_a1", blobs) == 1
        assert not blobs.exists(stored.file)

    async def test_blob_kept_while_referenced(
        self, async_session: AsyncSession, alice_bob_carol, blobs
    ):
        alice, bob, _ = alice_bob_carol
        stored = await blobs.save(io.BytesIO(b"data"), "a.txt")
        await uploads.create(async_session, alice, "a1", "one", file=stored.file)
        await uploads.create(async_session, bob, "b1", "two", file=stored.file)

        await uploads.delete_by_file_id(async_session, "FILE_a1", blobs)
        assert blobs.exists(stored.file)
        await uploads.delete_by_owner(async_session, bob, blobs)
        assert not blobs.exists(stored.file)

    async def test_missing_or_invalid_blob_names(
        self, async_session: AsyncSession, alice_bob_carol, blobs
    ):
        alice, _, _ = alice_bob_carol
        await uploads.create(async_session, alice, "a1", "one", file="gone.txt")
        await uploads.create(async_session, alice, "a2", "two", file="../../etc/passwd")
        assert await uploads.delete_by_owner(async_session, alice, blobs) == 2

    async def test_without_blob_store_leaves_blob(
        self, async_session: AsyncSession, alice_bob_carol, blobs
    ):
        alice, _, _ = alice_bob_carol
        stored = await blobs.save(io.BytesIO(b"data"), "a.txt")
        await uploads.create(async_session, alice, "a1", "one", file=stored.file)
        await uploads.delete_by_file_id(async_session, "FILE_a1")
        assert blobs.exists(stored.file)

    async def test_get_by_file_id(self, async_session: AsyncSession, alice_bob_carol):
        alice, _, _ = alice_bob_carol
        await uploads.create(async_session, alice, "a1", "one")
        found = await uploads.get_by_file_id(async_session, "FILE_a1")
        assert found.owner_id == alice
        assert await uploads.get_by_file_id(async_session, "FILE_none") is None
