"""
Chunked binary content storage.

A ContentFile is the header (name, type, total length); its bytes are split
into fixed-size ContentChunk rows ordered by `n`. Materials reference the
header by its opaque hex id.

Chunks are not mapped as a relationship: they can add up to
tens of megabytes, so the store reads and deletes them with explicit queries.
"""
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, LargeBinary, UniqueConstraint
from sqlalchemy.sql import func
from app.db.base import Base


class ContentFile(Base):
    __tablename__ = "content_files"

    id = Column(String(32), primary_key=True)  # uuid4 hex
    filename = Column(String(255), nullable=False)
    content_type = Column(String(128), nullable=False, default="application/octet-stream")
    length = Column(Integer, nullable=False, default=0)
    chunk_size = Column(Integer, nullable=False)
    upload_date = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<ContentFile id={self.id} filename={self.filename!r} length={self.length}>"


class ContentChunk(Base):
    __tablename__ = "content_chunks"
    __table_args__ = (UniqueConstraint("file_id", "n", name="uq_content_chunk_file_n"),)

    id = Column(Integer, primary_key=True)
    file_id = Column(String(32), ForeignKey("content_files.id", ondelete="CASCADE"), nullable=False, index=True)
    n = Column(Integer, nullable=False)
    data = Column(LargeBinary, nullable=False)
