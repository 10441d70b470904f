from sqlalchemy import Column, Integer, String, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.db.base import Base


class StudyUser(Base):
    """
    One row per Telegram identity.

    Lifecycle:
        1. Created on the first inbound message from an unseen telegram_id
        2. last_active_at refreshed on every inbound message
        3. Never deleted by the bot
    """
    __tablename__ = "study_users"

    id = Column(Integer, primary_key=True, index=True)
    telegram_id = Column(String(64), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    level = Column(String(128), nullable=False, default="unknown")  # last category studied
    last_active_at = Column(DateTime(timezone=True), server_default=func.now())
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    downloads = relationship(
        "DownloadRecord",
        back_populates="user",
        order_by="DownloadRecord.id",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<StudyUser telegram_id={self.telegram_id} name={self.name!r}>"


class DownloadRecord(Base):
    """Append-only download history entry. Title/category/price are copied at send time."""
    __tablename__ = "download_history"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("study_users.id", ondelete="CASCADE"), nullable=False, index=True)
    material_id = Column(Integer, nullable=False)  # no FK: history outlives catalog deletes
    title = Column(String(255), nullable=False)
    category = Column(String(64), nullable=True)
    price = Column(String(32), nullable=False, default="Free")
    downloaded_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("StudyUser", back_populates="downloads")
