"""Chunked content store: write, read back in order, delete."""
import pytest

from app.core.exceptions import ContentNotFound
from app.models.content import ContentChunk, ContentFile
from app.services.content_store import ContentStore


def test_put_splits_into_ordered_chunks(db):
    store = ContentStore(db, chunk_size=10)
    data = bytes(range(256)) * 2  # 512 bytes
    content_id = store.put("notes.pdf", "application/pdf", data)
    db.commit()

    header = store.find(content_id)
    assert header.filename == "notes.pdf"
    assert header.content_type == "application/pdf"
    assert header.length == 512
    assert header.chunk_size == 10

    chunks = db.query(ContentChunk).filter(ContentChunk.file_id == content_id).order_by(ContentChunk.n).all()
    assert len(chunks) == 52
    assert [c.n for c in chunks] == list(range(52))
    assert all(len(c.data) == 10 for c in chunks[:-1])
    assert len(chunks[-1].data) == 2

    assert b"".join(store.open_read(content_id)) == data


def test_incremental_writes(db):
    store = ContentStore(db, chunk_size=4)
    with store.open_write("parts.pdf", "application/pdf") as writer:
        writer.write(b"ab")
        writer.write(b"cdefg")
        writer.write(b"h")
    db.commit()
    assert list(store.open_read(writer.content_id)) == [b"abcd", b"efgh"]


def test_empty_content(db):
    store = ContentStore(db, chunk_size=4)
    content_id = store.put("empty.pdf", "application/pdf", b"")
    db.commit()
    assert store.find(content_id).length == 0
    assert b"".join(store.open_read(content_id)) == b""


def test_ids_are_unique(db):
    store = ContentStore(db)
    a = store.put("a.pdf", "application/pdf", b"a")
    b = store.put("a.pdf", "application/pdf", b"a")
    assert a != b


def test_open_read_unknown_id_raises_immediately(db):
    store = ContentStore(db)
    with pytest.raises(ContentNotFound):
        store.open_read("0" * 32)


def test_delete_removes_header_and_chunks(db):
    store = ContentStore(db, chunk_size=3)
    content_id = store.put("gone.pdf", "application/pdf", b"123456789")
    db.commit()

    store.delete(content_id)
    db.commit()

    assert store.find(content_id) is None
    assert db.query(ContentChunk).filter(ContentChunk.file_id == content_id).count() == 0
    with pytest.raises(ContentNotFound):
        store.delete(content_id)


def test_failed_write_leaves_nothing_behind(db):
    store = ContentStore(db, chunk_size=4)
    with pytest.raises(RuntimeError):
        with store.open_write("broken.pdf", "application/pdf") as writer:
            writer.write(b"abcdefgh")
            raise RuntimeError("client disconnected")
    db.commit()
    assert db.query(ContentFile).count() == 0
    assert db.query(ContentChunk).count() == 0
