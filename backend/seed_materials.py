"""Seed the catalog from a JSON manifest of local PDFs.

Manifest format (paths relative to the manifest file):

    [
      {
        "file": "pdfs/cardiac.pdf",
        "title": "Cardiac Disorders Review",
        "topics": ["cardiac disorders", "pharmacology"],
        "category": "Physiological Integrity",
        "description": "...",
        "keywords": ["heart failure", "digoxin"],
        "price": "9.99"
      }
    ]

Usage:
    python seed_materials.py materials.json
"""
import argparse
import json
import logging
from pathlib import Path

from app.core.exceptions import ValidationError
from app.db.init_db import init_db
from app.db.session import SessionLocal
from app.models.material import Material
from app.services.catalog_service import MaterialUpload, create_material
from app.services.content_store import ContentStore

logger = logging.getLogger("seed_materials")


def load_manifest(path: Path):
    with open(path, encoding="utf-8") as f:
        entries = json.load(f)
    if not isinstance(entries, list):
        raise ValueError("Manifest must be a JSON list of materials")
    return entries


def seed_materials(manifest_path: Path, skip_existing: bool = True) -> int:
    """Upload every manifest entry. Returns the number of materials created."""
    init_db()
    entries = load_manifest(manifest_path)
    base = manifest_path.parent

    db = SessionLocal()
    store = ContentStore(db)
    created = 0
    try:
        for entry in entries:
            title = entry.get("title", "")
            if skip_existing and db.query(Material).filter(Material.title == title).first():
                logger.info(f"Skipping existing material '{title}'")
                continue

            pdf_path = base / entry["file"]
            upload = MaterialUpload(
                title=title,
                topics=entry.get("topics", []),
                category=entry.get("category"),
                price=str(entry.get("price", "Free")),
                file_name=pdf_path.name,
                data=pdf_path.read_bytes(),
                description=entry.get("description"),
                keywords=entry.get("keywords", []),
                created_by=entry.get("created_by", "seed"),
            )
            try:
                material = create_material(db, store, upload)
            except ValidationError as e:
                logger.error(f"Invalid entry '{title}': {e}")
                continue
            created += 1
            logger.info(f"Added #{material.id} {material.title} [{material.category}] {material.price}")
    finally:
        db.close()

    logger.info(f"Seeded {created} of {len(entries)} materials")
    return created


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    parser = argparse.ArgumentParser(description="Seed StudyShelf materials from a JSON manifest")
    parser.add_argument("manifest", type=Path)
    parser.add_argument("--force", action="store_true", help="upload even if a material with the same title exists")
    args = parser.parse_args()
    seed_materials(args.manifest, skip_existing=not args.force)
