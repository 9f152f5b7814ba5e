"""
Import a legacy product list into the configured catalog store.

The legacy storefront kept its catalog in a flat productos.json file with
Spanish keys (nombre, precio, categoria, stock, imagen). English keys are
accepted as well. Ids from the file are not preserved; the store assigns
fresh ones.

Usage:
    python -m app.migrate productos.json
"""
import argparse
import json
import logging
import sys
from pathlib import Path

from app.database import Base, SessionLocal, engine
from app.dependencies import build_stores
from app.config import get_settings
from app.exceptions import StoreError
from app.stores.base import LEGACY_PRODUCT_KEYS, CatalogStore

logger = logging.getLogger(__name__)


def normalize(record: dict) -> dict:
    """Map a legacy product record onto catalog field names."""
    fields = {LEGACY_PRODUCT_KEYS.get(key, key): value for key, value in record.items()}
    fields.pop("id", None)
    if not fields.get("image_ref"):
        fields.pop("image_ref", None)
    return fields


def import_products(records: list, catalog: CatalogStore) -> tuple[int, int]:
    """
    Create a product for every record.

    Invalid records are logged and skipped.

    Returns:
        Tuple of (imported count, skipped count)
    """
    imported = skipped = 0
    for position, record in enumerate(records, start=1):
        try:
            catalog.create(normalize(record))
            imported += 1
        except StoreError as e:
            logger.warning(f"Skipping record {position}: {e}")
            skipped += 1
    return imported, skipped


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="app.migrate", description="Import products into the catalog")
    parser.add_argument("source", help="JSON file with a list of products")
    return parser


def main(argv=None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    args = create_parser().parse_args(argv)

    try:
        records = json.loads(Path(args.source).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Could not read {args.source}: {e}")
        return 1
    if not isinstance(records, list):
        logger.error(f"{args.source} must contain a JSON list")
        return 1

    if get_settings().STORE_BACKEND == "sql":
        Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        catalog, _ = build_stores(db)
        imported, skipped = import_products(records, catalog)
    finally:
        db.close()

    logger.info(f"Imported {imported} product(s), skipped {skipped}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
