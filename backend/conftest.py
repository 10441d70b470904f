"""Shared pytest fixtures: in-memory database, content store, catalog helpers, fake chat channel."""
import pytest
from sqlalchemy.orm import sessionmaker

from app.agent.channel import ChatChannel
from app.db.base import Base
from app.db.session import build_engine
from app.models import ContentFile, ContentChunk, Material, StudyUser, DownloadRecord  # noqa: F401
from app.services.catalog_service import MaterialUpload, create_material
from app.services.content_store import ContentStore

PDF_BYTES = b"%PDF-1.4\n" + b"study notes " * 50 + b"\n%%EOF"


@pytest.fixture
def engine():
    eng = build_engine("sqlite:///:memory:")
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture
def db(engine):
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = Session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def store(db):
    # Small chunks so multi-chunk paths are exercised
    return ContentStore(db, chunk_size=64)


@pytest.fixture
def add_material(db, store):
    """Factory: add_material("Title", ["topic"], "Category", price="Free", ...)."""
    def _add(title, topics, category, price="Free", description=None, keywords=None,
             data=PDF_BYTES, file_name=None):
        return create_material(db, store, MaterialUpload(
            title=title,
            topics=topics,
            category=category,
            price=price,
            file_name=file_name or title.lower().replace(" ", "_") + ".pdf",
            data=data,
            description=description,
            keywords=keywords or [],
        ))
    return _add


class FakeChannel(ChatChannel):
    """Records everything the bot would have sent."""

    def __init__(self, fail_documents: bool = False):
        self.texts = []
        self.documents = []
        self.fail_documents = fail_documents

    async def send_text(self, text, markdown=True):
        self.texts.append(text)

    async def send_document(self, data, filename, caption=""):
        if self.fail_documents:
            raise RuntimeError("upload rejected")
        self.documents.append((filename, data, caption))

    @property
    def last(self):
        return self.texts[-1] if self.texts else None


@pytest.fixture
def channel():
    return FakeChannel()


class FakeClient:
    """Stands in for GroqClient: fixed reply, records prompts."""

    def __init__(self, reply=None, available=True):
        self.reply = reply
        self.available = available
        self.prompts = []

    def is_available(self):
        return self.available

    def complete(self, prompt, max_tokens=600):
        self.prompts.append(prompt)
        return self.reply
