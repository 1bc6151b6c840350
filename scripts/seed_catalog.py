#!/usr/bin/env python3
"""Seed catalog categories script.

Creates categories and subcategories from an embedded taxonomy so a fresh
store has parents for new products. Existing ids are skipped.

Taxonomy format:
    cat_id/sub_id - Category > Subcategory

Usage:
    python scripts/seed_catalog.py
    python scripts/seed_catalog.py --check
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from catalog_admin.application.catalog_service import (
    CatalogService,
    close_catalog_state,
    get_catalog_service,
)
from catalog_admin.infrastructure.config import settings
from catalog_admin.infrastructure.database import create_tables
from catalog_admin.infrastructure.document_store import DuplicateDocumentError
from catalog_admin.infrastructure.logging_config import configure_logging

EMBEDDED_TAXONOMY = """
cat_electronics/sub_phones - Electronics > Phones
cat_electronics/sub_laptops - Electronics > Laptops
cat_electronics/sub_audio - Electronics > Audio
cat_home/sub_lighting - Home & Garden > Lighting
cat_home/sub_kitchen - Home & Garden > Kitchen
cat_apparel/sub_shoes - Apparel & Accessories > Shoes
cat_apparel/sub_bags - Apparel & Accessories > Bags
"""


def parse_taxonomy(text: str) -> list[tuple[str, str, str, str]]:
    """Parse taxonomy lines.

    Returns:
        ``(category_id, category_name, subcategory_id, subcategory_name)``
        tuples in file order.
    """
    rows = []
    for line in text.strip().splitlines():
        ids, _, path = line.partition(" - ")
        category_id, _, subcategory_id = ids.strip().partition("/")
        category_name, _, subcategory_name = path.partition(">")
        rows.append(
            (category_id, category_name.strip(), subcategory_id, subcategory_name.strip())
        )
    return rows


async def seed(service: CatalogService) -> dict:
    """Create missing categories and subcategories.

    Returns:
        Counts of created and skipped records.
    """
    result = {"categories_created": 0, "subcategories_created": 0, "skipped": 0}
    for category_id, category_name, subcategory_id, subcategory_name in parse_taxonomy(
        EMBEDDED_TAXONOMY
    ):
        if await service.get_category(category_id) is None:
            await service.create_category(category_name, category_id=category_id)
            result["categories_created"] += 1
        try:
            await service.create_subcategory(
                category_id, subcategory_name, subcategory_id=subcategory_id
            )
            result["subcategories_created"] += 1
        except DuplicateDocumentError:
            result["skipped"] += 1
    return result


async def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Seed catalog categories and subcategories",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Run a consistency check after seeding",
    )
    args = parser.parse_args()

    configure_logging(settings.log_level)

    print("=" * 60)
    print("Catalog Seeder")
    print("=" * 60)
    print(f"Storage backend: {settings.storage_backend}")
    print()

    if settings.storage_backend == "sql":
        print("Creating database tables...")
        await create_tables()
        print("Tables ready.")
        print()

    service = get_catalog_service()
    try:
        result = await seed(service)
        print(f"  Categories created: {result['categories_created']}")
        print(f"  Subcategories created: {result['subcategories_created']}")
        print(f"  Skipped (already present): {result['skipped']}")
        print()

        if args.check:
            issues = await service.check_consistency()
            print(f"Consistency issues: {len(issues)}")
            for issue in issues:
                print(f"  {issue.kind.value}: {issue.record_id} {issue.detail}")
            print()
    finally:
        await close_catalog_state()

    print("=" * 60)
    print("Seeding complete!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
