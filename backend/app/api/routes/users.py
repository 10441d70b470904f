"""Users: admin dashboard list, summary stats, CSV export and single-user detail."""
import io
import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.core.exceptions import BusinessError
from app.services import user_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    status: Optional[str] = Query(None, pattern="^(active|inactive)$"),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    """Paginated users, newest first. `status` keys off activity in the last 30 days."""
    return {"success": True, "data": user_service.list_users(db, page, limit, status, search)}


@router.get("/stats/summary")
def stats_summary(db: Session = Depends(get_db)):
    return {"success": True, "data": user_service.user_stats_summary(db)}


@router.get("/export/csv")
def export_csv(db: Session = Depends(get_db)):
    """Download all users as CSV."""
    content = user_service.export_users_csv(db)
    filename = f"users_{date.today().isoformat()}.csv"
    logger.info(f"[API] Exporting users CSV {filename}")
    return StreamingResponse(
        io.BytesIO(content.encode("utf-8")),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{user_key}")
def get_user(user_key: str, db: Session = Depends(get_db)):
    """Look up by numeric id, then by Telegram id."""
    user = user_service.get_user(db, user_key)
    if user is None:
        raise BusinessError.not_found("User", reason=f"key={user_key}")
    return {"success": True, "data": user}
