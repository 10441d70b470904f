"""File delivery: transfer ceiling, missing content, counters and history."""
import asyncio

import pytest

from app.core.exceptions import TransferTooLarge
from app.models.content import ContentFile
from app.models.material import Material
from app.models.study_user import DownloadRecord
from app.services.content_store import ContentStore
from app.services.delivery import DeliveryReason, FileDelivery
from app.services.user_service import ensure_user
from conftest import FakeChannel

MiB = 1024 * 1024
PHYS = "Physiological Integrity"


@pytest.fixture
def user(db):
    return ensure_user(db, "2002", "bob")


def test_delivers_and_records(db, store, user, channel, add_material):
    material = add_material("Fluids Review", ["fluids"], PHYS, price="12.50")
    delivery = FileDelivery(db, store)

    result = asyncio.run(delivery.deliver(channel, user, material))

    assert result.success is True
    assert result.reason is None
    assert result.size == len(channel.documents[0][1])
    assert channel.documents[0][2] == "📘 Fluids Review"

    db.expire_all()
    stored = db.get(Material, material.id)
    assert stored.downloads == 1
    assert stored.purchases == 1
    assert float(stored.revenue) == pytest.approx(12.5)
    entry = db.query(DownloadRecord).one()
    assert (entry.material_id, entry.title, entry.price) == (material.id, "Fluids Review", "12.50")


def test_repeat_deliveries_accumulate(db, store, user, channel, add_material):
    material = add_material("Oxygenation", ["oxygenation"], PHYS, price="2")
    delivery = FileDelivery(db, store)
    for _ in range(3):
        asyncio.run(delivery.deliver(channel, user, material))

    db.expire_all()
    stored = db.get(Material, material.id)
    assert stored.downloads == 3
    assert stored.purchases == 3
    assert float(stored.revenue) == pytest.approx(6)
    assert db.query(DownloadRecord).count() == 3


def test_missing_content_is_not_found(db, store, user, channel, add_material):
    material = add_material("Orphan", ["renal"], PHYS)
    store.delete(material.content_id)
    db.commit()

    result = asyncio.run(FileDelivery(db, store).deliver(channel, user, material))

    assert result.success is False
    assert result.reason == DeliveryReason.NOT_FOUND
    assert channel.documents == []
    db.expire_all()
    assert db.get(Material, material.id).downloads == 0


def test_file_over_50_mib_is_rejected_before_sending(db, user, channel, add_material):
    big_store = ContentStore(db, chunk_size=MiB)
    material = add_material("Huge Atlas", ["wound care"], PHYS)
    material.content_id = big_store.put("atlas.pdf", "application/pdf", b"\0" * (51 * MiB))
    db.commit()

    result = asyncio.run(FileDelivery(db, big_store, max_bytes=50 * MiB).deliver(channel, user, material))

    assert result.success is False
    assert result.reason == DeliveryReason.TOO_LARGE
    assert result.size == 51 * MiB
    assert channel.documents == []
    db.expire_all()
    stored = db.get(Material, material.id)
    assert stored.downloads == 0
    assert stored.purchases == 0
    assert db.query(DownloadRecord).count() == 0


def test_file_exactly_at_ceiling_is_sent(db, store, user, channel, add_material):
    data = b"x" * 1000
    material = add_material("Edge", ["fluids"], PHYS, data=data)
    result = asyncio.run(FileDelivery(db, store, max_bytes=1000).deliver(channel, user, material))
    assert result.success is True
    assert channel.documents[0][1] == data


def test_load_stops_reading_once_over_ceiling(db, store, add_material):
    material = add_material("Liar", ["fluids"], PHYS, data=b"y" * 500)
    # header understates the size, so only the streamed total can catch it
    header = db.query(ContentFile).filter(ContentFile.id == material.content_id).one()
    header.length = 10
    db.commit()

    with pytest.raises(TransferTooLarge):
        FileDelivery(db, store, max_bytes=100).load(material)


def test_send_failure_reports_send_failed(db, store, user, add_material):
    material = add_material("Ethics", ["ethics"], "Safe and Effective Care Environment", price="3")
    failing = FakeChannel(fail_documents=True)

    result = asyncio.run(FileDelivery(db, store).deliver(failing, user, material))

    assert result.reason == DeliveryReason.SEND_FAILED
    db.expire_all()
    assert db.get(Material, material.id).purchases == 0


def test_history_failure_does_not_undo_counters(db, store, user, channel, add_material, monkeypatch):
    material = add_material("Grief", ["grief"], "Psychosocial Integrity", price="5")

    def broken(*args, **kwargs):
        raise RuntimeError("history table unavailable")

    monkeypatch.setattr("app.services.user_service.record_download", broken)
    result = asyncio.run(FileDelivery(db, store).deliver(channel, user, material))

    assert result.success is True
    db.expire_all()
    stored = db.get(Material, material.id)
    assert stored.downloads == 1
    assert stored.purchases == 1
