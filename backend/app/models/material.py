"""
Material: a purchasable study document in the catalog.

The bytes live in the chunked content store (see content.py); this row only
mirrors the file metadata captured at upload time.

Counters (downloads, purchases, revenue) only ever grow. They are updated
with in-database increments, never read-modify-write in Python.
"""
from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, DateTime, Text
from sqlalchemy.sql import func
from sqlalchemy.types import JSON
from app.db.base import Base


class Material(Base):
    __tablename__ = "materials"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    topics = Column(JSON, nullable=False, default=list)  # ordered list of topic strings
    category = Column(String(64), nullable=False, index=True)  # one of NCLEX_CATEGORIES
    description = Column(Text, nullable=True)
    keywords = Column(JSON, nullable=False, default=list)
    price = Column(String(32), nullable=False, default="Free")  # "Free" or decimal string
    currency = Column(String(8), nullable=False, default="USD")

    content_id = Column(String(32), ForeignKey("content_files.id"), nullable=False)
    file_name = Column(String(255), nullable=True)
    file_size = Column(Integer, nullable=True)
    mime_type = Column(String(128), nullable=False, default="application/pdf")
    created_by = Column(String(128), nullable=False, default="system")

    downloads = Column(Integer, nullable=False, default=0)
    purchases = Column(Integer, nullable=False, default=0)
    revenue = Column(Numeric(12, 2), nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def is_free(self) -> bool:
        return (self.price or "").strip().lower() == "free"

    def __repr__(self):
        return f"<Material id={self.id} title={self.title!r} category={self.category!r}>"
