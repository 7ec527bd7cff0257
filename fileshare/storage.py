"""Local-disk blob store rooted at the sandbox directory."""

from __future__ import annotations

import asyncio
import hashlib
import logging
import os
import uuid
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import BinaryIO

from fileshare.errors import BlobNotFound, InvalidPath, ValidationError
from fileshare.paths import resolve

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class StoredBlob:
    file: str
    originalname: str
    mimetype: str | None
    size: int
    checksum: str

    def to_dict(self) -> dict:
        return asdict(self)


class BlobStore:
    def __init__(self, root: str | os.PathLike) -> None:
        self.root = Path(root)

    def ensure_root(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def _write(self, stream: BinaryIO, name: str) -> tuple[int, str]:
        target = resolve(name, self.root)
        h = hashlib.sha256()
        size = 0
        try:
            with open(target, "wb") as out:
                while chunk := stream.read(CHUNK_SIZE):
                    out.write(chunk)
                    h.update(chunk)
                    size += len(chunk)
        except BaseException:
            target.unlink(missing_ok=True)
            raise
        return size, h.hexdigest()

    async def save(
        self, stream: BinaryIO, original_name: str, mimetype: str | None = None
    ) -> StoredBlob:
        """Stream *stream* into a new blob named ``<uuid hex><suffix>``."""
        if not original_name:
            raise ValidationError("Upload validation failed: filename is required.")
        self.ensure_root()
        name = uuid.uuid4().hex + Path(original_name).suffix.lower()
        size, checksum = await asyncio.to_thread(self._write, stream, name)
        logger.info("Stored blob %s (%d bytes) from %s", name, size, original_name)
        return StoredBlob(
            file=name,
            originalname=original_name,
            mimetype=mimetype,
            size=size,
            checksum=checksum,
        )

    def list_names(self) -> list[str]:
        if not self.root.is_dir():
            return []
        return sorted(p.name for p in self.root.iterdir() if p.is_file())

    def exists(self, name: str) -> bool:
        try:
            return resolve(name, self.root).is_file()
        except InvalidPath:
            return False

    def open_path(self, name: str) -> Path:
        path = resolve(name, self.root)
        if not path.is_file():
            raise BlobNotFound(f"file not found: {name}")
        return path

    def remove(self, name: str) -> bool:
        path = resolve(name, self.root)
        if not path.is_file():
            return False
        path.unlink()
        logger.info("Removed blob %s", name)
        return True
