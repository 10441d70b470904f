"""
CHUNKED BINARY CONTENT STORE

Stores document bytes as an ordered list of fixed-size chunks behind a
single header row, addressed by an opaque hex id.

Transaction ownership:
- Nothing here commits. Writers and deletes only flush.
- The caller commits, so a catalog record and its content are created or
  removed in the same transaction and neither can be left orphaned.

Usage:
    store = ContentStore(db)
    with store.open_write("cardiac.pdf", "application/pdf") as writer:
        writer.write(pdf_bytes)
    content_id = writer.content_id

    for chunk in store.open_read(content_id):
        ...
"""
import logging
import uuid
from typing import Iterator, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import ContentNotFound
from app.models.content import ContentFile, ContentChunk

logger = logging.getLogger(__name__)


class ContentWriter:
    """Buffers incoming bytes and flushes them as numbered chunks."""

    def __init__(self, db: Session, header: ContentFile):
        self._db = db
        self._header = header
        self._buffer = bytearray()
        self._next_n = 0
        self._length = 0
        self._closed = False

    @property
    def content_id(self) -> str:
        return self._header.id

    def write(self, data: bytes) -> int:
        if self._closed:
            raise ValueError("write to closed content writer")
        self._buffer.extend(data)
        self._length += len(data)
        chunk_size = self._header.chunk_size
        while len(self._buffer) >= chunk_size:
            self._flush_chunk(bytes(self._buffer[:chunk_size]))
            del self._buffer[:chunk_size]
        return len(data)

    def _flush_chunk(self, data: bytes):
        self._db.add(ContentChunk(file_id=self._header.id, n=self._next_n, data=data))
        self._next_n += 1

    def close(self) -> str:
        """Flush the tail chunk and finalise the header. Returns the content id."""
        if self._closed:
            return self._header.id
        if self._buffer:
            self._flush_chunk(bytes(self._buffer))
            self._buffer.clear()
        self._header.length = self._length
        self._db.flush()
        self._closed = True
        logger.info(
            f"[CONTENT] Stored {self._header.filename} "
            f"id={self._header.id} bytes={self._length} chunks={self._next_n}"
        )
        return self._header.id

    def abort(self):
        """Discard everything written so far (still uncommitted)."""
        self._closed = True
        self._db.flush()
        self._db.query(ContentChunk).filter(ContentChunk.file_id == self._header.id).delete(
            synchronize_session=False
        )
        self._db.delete(self._header)
        self._db.flush()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.close()
        else:
            self.abort()
        return False


class ContentStore:
    """Binary content store backed by the catalog database."""

    def __init__(self, db: Session, chunk_size: Optional[int] = None):
        self.db = db
        self.chunk_size = chunk_size or settings.CONTENT_CHUNK_SIZE

    def open_write(self, name: str, mime_type: str) -> ContentWriter:
        header = ContentFile(
            id=uuid.uuid4().hex,
            filename=name,
            content_type=mime_type or "application/octet-stream",
            length=0,
            chunk_size=self.chunk_size,
        )
        self.db.add(header)
        self.db.flush()
        return ContentWriter(self.db, header)

    def put(self, name: str, mime_type: str, data: bytes) -> str:
        with self.open_write(name, mime_type) as writer:
            writer.write(data)
        return writer.content_id

    def find(self, content_id: str) -> Optional[ContentFile]:
        if not content_id:
            return None
        return self.db.query(ContentFile).filter(ContentFile.id == content_id).first()

    def open_read(self, content_id: str) -> Iterator[bytes]:
        """
        Yield the stored chunks in order.

        Raises ContentNotFound immediately (not on first iteration) when the
        id is unknown, so callers can report "not found" before streaming.
        """
        header = self.find(content_id)
        if header is None:
            raise ContentNotFound(content_id)
        return self._iter_chunks(header.id)

    def _iter_chunks(self, content_id: str) -> Iterator[bytes]:
        n = 0
        while True:
            chunk = (
                self.db.query(ContentChunk)
                .filter(ContentChunk.file_id == content_id, ContentChunk.n == n)
                .first()
            )
            if chunk is None:
                return
            yield chunk.data
            n += 1

    def delete(self, content_id: str):
        header = self.find(content_id)
        if header is None:
            raise ContentNotFound(content_id)
        self.db.query(ContentChunk).filter(ContentChunk.file_id == content_id).delete(
            synchronize_session=False
        )
        self.db.delete(header)
        self.db.flush()
        logger.info(f"[CONTENT] Deleted id={content_id}")
