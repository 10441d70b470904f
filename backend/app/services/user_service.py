"""
Study users: chat identities, their download history and the admin views
built from them.

A purchase is a history entry whose price is not "Free"; total spent is the
sum of those prices. A user is active when seen within the last 30 days.
"""
import csv
import io
import logging
import math
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.material import Material
from app.models.study_user import DownloadRecord, StudyUser
from app.services.catalog_service import parse_price

logger = logging.getLogger(__name__)

ACTIVE_WINDOW_DAYS = 30
CSV_HEADERS = [
    "Name", "Telegram ID", "Email", "Level", "Signup Date",
    "Last Active", "Purchases", "Total Spent", "Status",
]


def _naive(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.replace(tzinfo=None)
    return value


def _active_threshold() -> datetime:
    return datetime.utcnow() - timedelta(days=ACTIVE_WINDOW_DAYS)


def is_active(user: StudyUser) -> bool:
    last = _naive(user.last_active_at)
    return last is not None and last >= _active_threshold()


# ==============================================================================
# CHAT SIDE
# ==============================================================================

def ensure_user(db: Session, telegram_id, name: Optional[str] = None) -> StudyUser:
    """Fetch or create the user for a chat identity and mark them active now."""
    telegram_id = str(telegram_id)
    user = db.query(StudyUser).filter(StudyUser.telegram_id == telegram_id).first()
    now = datetime.utcnow()

    if user is None:
        user = StudyUser(telegram_id=telegram_id, name=name, level="unknown",
                         last_active_at=now, created_at=now)
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            # Another handler created the same identity first
            db.rollback()
            user = db.query(StudyUser).filter(StudyUser.telegram_id == telegram_id).one()
        else:
            logger.info(f"[USERS] New user telegram_id={telegram_id}")
            db.refresh(user)
            return user

    user.last_active_at = now
    if name and not user.name:
        user.name = name
    db.commit()
    db.refresh(user)
    return user


def record_download(db: Session, user: StudyUser, material: Material) -> DownloadRecord:
    entry = DownloadRecord(
        user_id=user.id,
        material_id=material.id,
        title=material.title,
        category=material.category,
        price=material.price or "Free",
        downloaded_at=datetime.utcnow(),
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


def set_level(db: Session, user: StudyUser, level: str) -> StudyUser:
    user.level = level
    db.commit()
    db.refresh(user)
    return user


# ==============================================================================
# ADMIN VIEWS
# ==============================================================================

def _purchase_stats(db: Session, user_ids: List[int]) -> Dict[int, Dict]:
    """{user_id: {"purchases": n, "spent": Decimal}} over non-Free history entries."""
    stats = {uid: {"purchases": 0, "spent": Decimal("0")} for uid in user_ids}
    if not user_ids:
        return stats
    rows = db.query(DownloadRecord.user_id, DownloadRecord.price).filter(
        DownloadRecord.user_id.in_(user_ids)
    ).all()
    for user_id, price in rows:
        if (price or "").strip().lower() == "free":
            continue
        stats[user_id]["purchases"] += 1
        stats[user_id]["spent"] += parse_price(price) or Decimal("0")
    return stats


def _money(value: Decimal) -> str:
    return f"${value.quantize(Decimal('0.01'))}"


def _display_date(value: Optional[datetime]) -> str:
    return value.strftime("%d/%m/%Y") if value else "N/A"


def _telegram_handle(telegram_id: str) -> str:
    return telegram_id if telegram_id.startswith("@") else f"@{telegram_id}"


def list_users(
    db: Session,
    page: int = 1,
    limit: int = 20,
    status: Optional[str] = None,
    search: Optional[str] = None,
) -> Dict:
    page = max(page or 1, 1)
    limit = max(limit or 20, 1)

    q = db.query(StudyUser)
    threshold = _active_threshold()
    if status == "active":
        q = q.filter(StudyUser.last_active_at >= threshold)
    elif status == "inactive":
        q = q.filter(or_(StudyUser.last_active_at < threshold, StudyUser.last_active_at.is_(None)))
    if search:
        pattern = f"%{search.strip()}%"
        q = q.filter(or_(StudyUser.name.ilike(pattern), StudyUser.telegram_id.ilike(pattern)))

    total_users = q.count()
    total_pages = math.ceil(total_users / limit) if total_users else 0
    users = (
        q.order_by(StudyUser.created_at.desc(), StudyUser.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    stats = _purchase_stats(db, [u.id for u in users])

    rows = []
    for u in users:
        s = stats[u.id]
        rows.append({
            "id": u.id,
            "name": u.name or "Unknown",
            "telegram": _telegram_handle(u.telegram_id),
            "signupDate": _display_date(u.created_at),
            "purchases": s["purchases"],
            "totalSpent": _money(s["spent"]),
            "status": "active" if is_active(u) else "inactive",
            "rawData": {
                "telegramId": u.telegram_id,
                "email": u.email or "",
                "level": u.level or "unknown",
                "lastActive": u.last_active_at.isoformat() if u.last_active_at else None,
                "createdAt": u.created_at.isoformat() if u.created_at else None,
            },
        })

    page_revenue = sum((stats[u.id]["spent"] for u in users), Decimal("0"))
    summary = {
        "totalUsers": total_users,
        "activeUsers": sum(1 for r in rows if r["status"] == "active"),
        "totalPurchases": sum(r["purchases"] for r in rows),
        "totalRevenue": float(page_revenue),
        "averageSpentPerUser": round(float(page_revenue) / total_users, 2) if total_users else 0,
    }

    return {
        "users": rows,
        "pagination": {
            "currentPage": page,
            "totalPages": total_pages,
            "totalUsers": total_users,
            "hasNextPage": page < total_pages,
            "hasPrevPage": page > 1,
        },
        "summary": summary,
        "filters": {"status": status or "all", "search": search or ""},
    }


def find_user(db: Session, key) -> Optional[StudyUser]:
    """Look up by numeric id first, then by telegram id."""
    key = str(key)
    if key.isdigit():
        user = db.query(StudyUser).filter(StudyUser.id == int(key)).first()
        if user:
            return user
    return db.query(StudyUser).filter(StudyUser.telegram_id == key).first()


def get_user(db: Session, key) -> Optional[Dict]:
    user = find_user(db, key)
    if user is None:
        return None

    s = _purchase_stats(db, [user.id])[user.id]
    now = datetime.utcnow()
    created = _naive(user.created_at)
    last = _naive(user.last_active_at)
    history = sorted(user.downloads, key=lambda d: d.id, reverse=True)

    return {
        "id": user.id,
        "name": user.name or "Unknown",
        "telegramId": user.telegram_id,
        "email": user.email or "Not provided",
        "level": user.level or "unknown",
        "status": "active" if is_active(user) else "inactive",
        "signupDate": _display_date(created),
        "lastActive": _display_date(last),
        "purchases": s["purchases"],
        "totalSpent": _money(s["spent"]),
        "statistics": {
            "daysSinceSignup": (now - created).days if created else 0,
            "lastActiveDaysAgo": (now - last).days if last else None,
            "averagePurchaseValue": (
                round(float(s["spent"]) / s["purchases"], 2) if s["purchases"] else 0
            ),
        },
        "downloadHistory": [
            {
                "materialId": d.material_id,
                "title": d.title,
                "category": d.category,
                "price": d.price,
                "downloadedAt": d.downloaded_at.isoformat() if d.downloaded_at else None,
            }
            for d in history
        ],
    }


def user_stats_summary(db: Session) -> Dict:
    total_users = db.query(func.count(StudyUser.id)).scalar() or 0
    active_users = db.query(func.count(StudyUser.id)).filter(
        StudyUser.last_active_at >= _active_threshold()
    ).scalar() or 0

    now = datetime.utcnow()
    start_of_month = datetime(now.year, now.month, 1)
    new_this_month = db.query(func.count(StudyUser.id)).filter(
        StudyUser.created_at >= start_of_month
    ).scalar() or 0

    purchases = 0
    revenue = Decimal("0")
    for (price,) in db.query(DownloadRecord.price).all():
        if (price or "").strip().lower() == "free":
            continue
        purchases += 1
        revenue += parse_price(price) or Decimal("0")

    levels = db.query(StudyUser.level, func.count(StudyUser.id).label("count")).group_by(
        StudyUser.level
    ).all()
    level_distribution = sorted(
        [{"level": level or "unknown", "count": count} for level, count in levels],
        key=lambda r: r["count"],
        reverse=True,
    )

    engagement = f"{active_users / total_users * 100:.1f}%" if total_users else "0%"
    return {
        "totalUsers": total_users,
        "activeUsers": active_users,
        "newUsersThisMonth": new_this_month,
        "totalPurchases": purchases,
        "totalRevenue": _money(revenue),
        "levelDistribution": level_distribution,
        "engagementRate": engagement,
    }


def export_users_csv(db: Session) -> str:
    """All users, newest first, as CSV text."""
    users = db.query(StudyUser).order_by(StudyUser.created_at.desc(), StudyUser.id.desc()).all()
    stats = _purchase_stats(db, [u.id for u in users])

    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_ALL)
    writer.writerow(CSV_HEADERS)
    for u in users:
        s = stats[u.id]
        writer.writerow([
            u.name or "Unknown",
            u.telegram_id,
            u.email or "",
            u.level or "unknown",
            u.created_at.strftime("%Y-%m-%d") if u.created_at else "N/A",
            u.last_active_at.strftime("%Y-%m-%d") if u.last_active_at else "N/A",
            s["purchases"],
            _money(s["spent"]),
            "active" if is_active(u) else "inactive",
        ])
    return output.getvalue()
