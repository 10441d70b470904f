"""
Catalog operations over study materials.

Upload writes the bytes to the content store first, then the Material row
referencing the returned content id, and commits once. Delete removes both
in one transaction. Counters use in-database increments so concurrent
deliveries of the same material never lose an update.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import String, cast, func, or_, update
from sqlalchemy.orm import Session

from app.core.categories import CATEGORY_NAMES, is_valid_category
from app.core.exceptions import ContentNotFound, MaterialNotFound, ValidationError
from app.models.material import Material
from app.models.study_user import DownloadRecord
from app.services.content_store import ContentStore

logger = logging.getLogger(__name__)

FREE = "Free"


# ==============================================================================
# VALIDATION
# ==============================================================================

def validate_category(category: Optional[str]) -> str:
    if not category:
        raise ValidationError("Category is required.")
    if not is_valid_category(category):
        raise ValidationError("Invalid category. Must be one of: " + ", ".join(CATEGORY_NAMES))
    return category


def parse_price(price) -> Optional[Decimal]:
    """Numeric value of a price string, or None for "Free" / unparsable input."""
    if price is None:
        return None
    text = str(price).strip()
    if not text or text.lower() == "free":
        return None
    try:
        value = Decimal(text)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return value


def validate_price(price) -> str:
    """Accept "Free" or a non-negative decimal; return the canonical string."""
    if price is None or not str(price).strip():
        raise ValidationError("Price is required.")
    text = str(price).strip()
    if text.lower() == "free":
        return FREE
    value = parse_price(text)
    if value is None or value < 0:
        raise ValidationError('Price must be a valid number or "Free".')
    return text


def split_list(value) -> List[str]:
    """Comma-separated string or list -> cleaned list."""
    if value is None:
        return []
    if isinstance(value, str):
        parts = value.split(",")
    else:
        parts = list(value)
    return [str(p).strip() for p in parts if str(p).strip()]


# ==============================================================================
# CRUD
# ==============================================================================

@dataclass
class MaterialUpload:
    title: str
    topics: List[str]
    category: str
    price: str
    file_name: str
    data: bytes
    mime_type: str = "application/pdf"
    description: Optional[str] = None
    keywords: List[str] = field(default_factory=list)
    created_by: str = "system"


def create_material(db: Session, store: ContentStore, upload: MaterialUpload) -> Material:
    """Validate, store the bytes, then the record. Nothing persists on failure."""
    title = (upload.title or "").strip()
    if not title:
        raise ValidationError("Title is required.")
    topics = split_list(upload.topics)
    if not topics:
        raise ValidationError("Topics are required.")
    category = validate_category(upload.category)
    price = validate_price(upload.price)

    try:
        content_id = store.put(upload.file_name, upload.mime_type, upload.data)
        header = store.find(content_id)
        material = Material(
            title=title,
            topics=topics,
            category=category,
            description=upload.description,
            keywords=split_list(upload.keywords),
            price=price,
            currency="USD",
            content_id=content_id,
            file_name=header.filename,
            file_size=header.length,
            mime_type=header.content_type,
            created_by=upload.created_by or "system",
            downloads=0,
            purchases=0,
            revenue=Decimal("0"),
        )
        db.add(material)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(material)
    logger.info(f"[CATALOG] Uploaded material id={material.id} '{material.title}' price={material.price}")
    return material


def get_material(db: Session, material_id: int) -> Material:
    material = db.query(Material).filter(Material.id == material_id).first()
    if not material:
        raise MaterialNotFound(material_id)
    return material


def list_materials(
    db: Session,
    topics: Optional[Sequence[str]] = None,
    category: Optional[str] = None,
    search: Optional[str] = None,
) -> List[Material]:
    """Newest first. `topics` matches any listed topic, `search` is a substring over text fields."""
    q = db.query(Material)
    if category:
        q = q.filter(Material.category == category)
    if search:
        pattern = f"%{search.strip()}%"
        q = q.filter(or_(
            Material.title.ilike(pattern),
            cast(Material.topics, String).ilike(pattern),
            cast(Material.keywords, String).ilike(pattern),
            Material.description.ilike(pattern),
        ))
    materials = q.order_by(Material.created_at.desc(), Material.id.desc()).all()

    wanted = {t.lower() for t in split_list(topics)}
    if wanted:
        # JSON array membership, exact topic names
        materials = [m for m in materials if wanted & {t.lower() for t in (m.topics or [])}]
    return materials


UPDATABLE_FIELDS = ("title", "topics", "category", "description", "keywords", "price", "currency")


def update_material(db: Session, material_id: int, patch: Dict) -> Material:
    material = get_material(db, material_id)
    changes = {k: v for k, v in patch.items() if k in UPDATABLE_FIELDS and v is not None}

    if "title" in changes:
        changes["title"] = changes["title"].strip()
        if not changes["title"]:
            raise ValidationError("Title cannot be empty.")
    if "category" in changes:
        validate_category(changes["category"])
    if "price" in changes:
        changes["price"] = validate_price(changes["price"])
    if "topics" in changes:
        changes["topics"] = split_list(changes["topics"])
        if not changes["topics"]:
            raise ValidationError("Topics cannot be empty.")
    if "keywords" in changes:
        changes["keywords"] = split_list(changes["keywords"])

    for key, value in changes.items():
        setattr(material, key, value)
    db.commit()
    db.refresh(material)
    logger.info(f"[CATALOG] Updated material id={material.id} fields={sorted(changes)}")
    return material


def delete_material(db: Session, store: ContentStore, material_id: int) -> None:
    """Remove the record and its binary content together."""
    material = get_material(db, material_id)
    content_id = material.content_id
    title = material.title
    try:
        db.delete(material)
        db.flush()
        try:
            store.delete(content_id)
        except ContentNotFound:
            logger.warning(f"[CATALOG] Material id={material_id} referenced missing content {content_id}")
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"[CATALOG] Deleted material id={material_id} '{title}'")


# ==============================================================================
# COUNTERS
# ==============================================================================

def increment_download(db: Session, material_id: int) -> int:
    result = db.execute(
        update(Material)
        .where(Material.id == material_id)
        .values(downloads=Material.downloads + 1)
    )
    if result.rowcount == 0:
        db.rollback()
        raise MaterialNotFound(material_id)
    db.commit()
    return db.query(Material.downloads).filter(Material.id == material_id).scalar()


def increment_purchase(db: Session, material_id: int) -> Tuple[int, Decimal]:
    """+1 purchase and + price to revenue ("Free" or unparsable price adds 0)."""
    material = get_material(db, material_id)
    revenue_increment = parse_price(material.price) or Decimal("0")
    result = db.execute(
        update(Material)
        .where(Material.id == material_id)
        .values(
            purchases=Material.purchases + 1,
            revenue=Material.revenue + revenue_increment,
        )
    )
    if result.rowcount == 0:
        db.rollback()
        raise MaterialNotFound(material_id)
    db.commit()
    purchases, revenue = (
        db.query(Material.purchases, Material.revenue).filter(Material.id == material_id).one()
    )
    return purchases, Decimal(str(revenue))


# ==============================================================================
# ANALYTICS
# ==============================================================================

def current_month_range(now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    now = now or datetime.utcnow()
    start = datetime(now.year, now.month, 1)
    if now.month == 12:
        end = datetime(now.year + 1, 1, 1)
    else:
        end = datetime(now.year, now.month + 1, 1)
    return start, end


def analytics_summary(db: Session) -> Dict:
    total_materials = db.query(func.count(Material.id)).scalar() or 0
    total_downloads = db.query(func.sum(Material.downloads)).scalar() or 0
    total_purchases = db.query(func.sum(Material.purchases)).scalar() or 0
    total_revenue = db.query(func.sum(Material.revenue)).scalar() or Decimal("0")

    now = datetime.utcnow()
    start_of_today = datetime(now.year, now.month, now.day)
    purchases_today = db.query(func.count(DownloadRecord.id)).filter(
        DownloadRecord.downloaded_at >= start_of_today,
        func.lower(DownloadRecord.price) != "free",
    ).scalar() or 0

    one_week_ago = now - timedelta(days=7)
    new_this_week = db.query(func.count(Material.id)).filter(
        Material.created_at >= one_week_ago
    ).scalar() or 0

    avg_downloads = round(total_downloads / total_materials, 1) if total_materials else 0

    return {
        "totalMaterials": total_materials,
        "totalDownloads": int(total_downloads),
        "totalPurchases": int(total_purchases),
        "totalRevenue": float(total_revenue),
        "purchasesToday": purchases_today,
        "avgDownloadsPerMaterial": avg_downloads,
        "newThisWeek": new_this_week,
    }


def topic_trends(db: Session, start: datetime, end: datetime, limit: int = 10) -> List[Dict]:
    """Downloads and material counts per topic for materials created in [start, end)."""
    materials = db.query(Material).filter(
        Material.created_at >= start,
        Material.created_at < end,
    ).order_by(Material.id).all()

    downloads: Dict[str, int] = defaultdict(int)
    counts: Dict[str, int] = defaultdict(int)
    for m in materials:
        for topic in m.topics or []:
            downloads[topic] += m.downloads or 0
            counts[topic] += 1

    rows = [{"topic": t, "downloads": downloads[t], "count": counts[t]} for t in downloads]
    rows.sort(key=lambda r: r["downloads"], reverse=True)
    return rows[:limit]


def category_trends(db: Session, start: datetime, end: datetime) -> List[Dict]:
    results = db.query(
        Material.category,
        func.sum(Material.downloads).label("downloads"),
        func.count(Material.id).label("material_count"),
    ).filter(
        Material.created_at >= start,
        Material.created_at < end,
    ).group_by(Material.category).all()

    rows = [
        {"category": r.category, "downloads": int(r.downloads or 0), "count": r.material_count}
        for r in results
    ]
    rows.sort(key=lambda r: r["downloads"], reverse=True)
    return rows


def materials_with_stats(db: Session) -> List[Dict]:
    materials = db.query(Material).order_by(Material.created_at.desc(), Material.id.desc()).all()
    return [
        {
            "id": m.id,
            "title": m.title,
            "topics": m.topics or [],
            "category": m.category,
            "downloads": m.downloads or 0,
            "purchases": m.purchases or 0,
            "revenue": float(m.revenue or 0),
            "price": m.price or FREE,
            "currency": m.currency or "USD",
            "uploadDate": m.created_at.date().isoformat() if m.created_at else None,
            "uploadedBy": m.created_by or "system",
            "createdAt": m.created_at.isoformat() if m.created_at else None,
        }
        for m in materials
    ]


def unique_topics(db: Session) -> List[str]:
    topics = set()
    for (values,) in db.query(Material.topics).all():
        topics.update(values or [])
    return sorted(topics)
