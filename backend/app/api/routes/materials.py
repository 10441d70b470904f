"""Materials: upload, catalog CRUD, file download, counters and dashboard analytics.

Static paths (/analytics/..., /categories/list, /topics/unique) are declared
before /{material_id} so they are never captured by the id route.
"""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_store
from app.core.categories import CATEGORY_NAMES
from app.core.config import settings
from app.core.exceptions import BusinessError, ContentNotFound
from app.models.material import Material
from app.schemas.material import MaterialOut, MaterialUpdate
from app.services import catalog_service
from app.services.catalog_service import MaterialUpload
from app.services.content_store import ContentStore

logger = logging.getLogger(__name__)

router = APIRouter()

PDF_MIME = "application/pdf"


def _out(material: Material) -> dict:
    return MaterialOut.model_validate(material).model_dump(mode="json")


def _period(start: Optional[datetime], end: Optional[datetime]):
    default_start, default_end = catalog_service.current_month_range()
    return start or default_start, end or default_end


# ==============================================================================
# UPLOAD
# ==============================================================================

@router.post("/upload", status_code=status.HTTP_201_CREATED)
def upload_material(
    pdf: Optional[UploadFile] = File(None),
    title: Optional[str] = Form(None),
    topics: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    keywords: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    created_by: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    store: ContentStore = Depends(get_store),
):
    """Store an uploaded PDF and its catalog record in one transaction."""
    if pdf is None:
        raise BusinessError.bad_request("No PDF file uploaded.")
    if pdf.content_type != PDF_MIME:
        raise BusinessError.bad_request("Only PDF files are allowed!")

    data = pdf.file.read(settings.MAX_UPLOAD_BYTES + 1)
    if len(data) > settings.MAX_UPLOAD_BYTES:
        raise BusinessError.bad_request(
            f"File too large. Maximum size is {settings.MAX_UPLOAD_BYTES // (1024 * 1024)} MB."
        )

    material = catalog_service.create_material(db, store, MaterialUpload(
        title=title,
        topics=topics,
        category=category,
        price=price,
        file_name=pdf.filename or "material.pdf",
        data=data,
        mime_type=PDF_MIME,
        description=description,
        keywords=keywords,
        created_by=created_by or "system",
    ))
    return {"success": True, "message": "PDF uploaded successfully.", "data": _out(material)}


# ==============================================================================
# ANALYTICS (dashboard)
# ==============================================================================

@router.get("/analytics/summary")
def analytics_summary(db: Session = Depends(get_db)):
    return {"success": True, "data": catalog_service.analytics_summary(db)}


@router.get("/analytics/topic-trends")
def topic_trends(
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """Downloads per topic for materials created in the period (default: this month)."""
    start, end = _period(start, end)
    rows = catalog_service.topic_trends(db, start, end, limit=limit)
    return {"success": True, "count": len(rows), "data": rows}


@router.get("/analytics/category-trends")
def category_trends(
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
):
    start, end = _period(start, end)
    rows = catalog_service.category_trends(db, start, end)
    return {"success": True, "count": len(rows), "data": rows}


@router.get("/analytics/all-with-stats")
def all_with_stats(db: Session = Depends(get_db)):
    rows = catalog_service.materials_with_stats(db)
    return {"success": True, "count": len(rows), "data": rows}


@router.get("/categories/list")
def categories_list():
    return {"success": True, "count": len(CATEGORY_NAMES), "data": CATEGORY_NAMES}


@router.get("/topics/unique")
def topics_unique(db: Session = Depends(get_db)):
    topics = catalog_service.unique_topics(db)
    return {"success": True, "count": len(topics), "data": topics}


# ==============================================================================
# CATALOG CRUD
# ==============================================================================

@router.get("")
def list_materials(
    topics: Optional[str] = Query(None, description="Comma-separated, matches any"),
    category: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    materials = catalog_service.list_materials(
        db,
        topics=catalog_service.split_list(topics),
        category=category,
        search=search,
    )
    return {"success": True, "count": len(materials), "data": [_out(m) for m in materials]}


@router.get("/{material_id}")
def get_material(material_id: int, db: Session = Depends(get_db)):
    return {"success": True, "data": _out(catalog_service.get_material(db, material_id))}


@router.put("/{material_id}")
def update_material(material_id: int, body: MaterialUpdate, db: Session = Depends(get_db)):
    material = catalog_service.update_material(db, material_id, body.model_dump(exclude_unset=True))
    logger.info(f"[API] Material {material_id} updated, price={material.price} {material.currency}")
    return {"success": True, "message": "Material updated successfully.", "data": _out(material)}


@router.delete("/{material_id}")
def delete_material(
    material_id: int,
    db: Session = Depends(get_db),
    store: ContentStore = Depends(get_store),
):
    catalog_service.delete_material(db, store, material_id)
    return {"success": True, "message": "Material and associated file deleted successfully."}


@router.get("/{material_id}/download")
def download_material(
    material_id: int,
    db: Session = Depends(get_db),
    store: ContentStore = Depends(get_store),
):
    """Return the stored file as an attachment."""
    material = catalog_service.get_material(db, material_id)
    try:
        # Read inside the request scope; the session closes once the handler returns
        chunks = list(store.open_read(material.content_id))
    except ContentNotFound:
        raise BusinessError.not_found("File", reason=f"material {material_id} has no stored content")

    filename = material.file_name or f"material-{material_id}.pdf"
    headers = {
        "Content-Disposition": f'attachment; filename="{filename}"',
        "Content-Length": str(sum(len(c) for c in chunks)),
    }
    return StreamingResponse(iter(chunks), media_type=material.mime_type or PDF_MIME, headers=headers)


# ==============================================================================
# COUNTERS
# ==============================================================================

@router.patch("/{material_id}/increment-download")
def increment_download(material_id: int, db: Session = Depends(get_db)):
    downloads = catalog_service.increment_download(db, material_id)
    return {"success": True, "message": "Download count incremented.", "data": {"downloads": downloads}}


@router.patch("/{material_id}/increment-purchase")
def increment_purchase(material_id: int, db: Session = Depends(get_db)):
    purchases, revenue = catalog_service.increment_purchase(db, material_id)
    return {
        "success": True,
        "message": "Purchase recorded.",
        "data": {"purchases": purchases, "revenue": float(revenue)},
    }
