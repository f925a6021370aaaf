#!/usr/bin/env python3
"""Database seeding script for DigestBot.

This script connects to the database, creates all tables, and mirrors the
source catalog from config/sources.yaml using the repository layer.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from digestbot.core.catalog import load_catalog
from digestbot.core.db import AsyncSessionLocal, create_all
from digestbot.core.errors import PersistenceError
from digestbot.core.repositories import list_sources, upsert_source
from digestbot.core.settings import get_settings

settings = get_settings()


async def seed_sources(session) -> int:
    """
    Seed catalog sources into the store.

    Returns count of sources processed.
    """
    config_path = project_root / settings.sources_config_path
    print(f"📺 Loading sources from {config_path}...")

    catalog = load_catalog(config_path)
    print(f"📄 Found {len(catalog)} sources in catalog")

    processed_count = 0
    for entry in catalog.entries():
        try:
            source = await upsert_source(session, entry)
            print(f"  ✅ {source.name} ({source.external_id})")
            processed_count += 1
        except PersistenceError as e:
            print(f"  ❌ Error processing source {entry.id}: {e}")

    return processed_count


async def print_source_summary(session) -> int:
    """Print summary of sources in database."""
    print("\n" + "="*60)
    print("📊 SOURCE SUMMARY")
    print("="*60)

    sources = await list_sources(session)
    if not sources:
        print("No sources found in database.")
        return 0

    print(f"Total sources: {len(sources)}")
    for i, source in enumerate(sources, 1):
        latest = f" (latest: {source.latest_item_title})" if source.latest_item_title else ""
        print(f"  {i:2d}. {source.name} [{source.id}]{latest}")

    return len(sources)


async def main():
    """Main seeding function."""
    print("🌱 Starting DigestBot database seeding...")
    print(f"📍 Project root: {project_root}")

    try:
        print("\n📊 Creating database tables...")
        await create_all()
        print("✅ Database tables ready")

        async with AsyncSessionLocal() as session:
            sources_processed = await seed_sources(session)
            total = await print_source_summary(session)

        print("\n" + "="*60)
        print("🎉 DATABASE SEEDING COMPLETE!")
        print("="*60)
        print(f"📺 Sources processed: {sources_processed}")
        print(f"📈 Total sources: {total}")
        print(f"🔗 Database URL: {settings.db_url.split('@')[1] if '@' in settings.db_url else 'configured'}")
        print("="*60)

        return 0 if total else 1

    except Exception as e:
        print(f"❌ Error during seeding: {e}")
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    exit_code = asyncio.run(main())
    sys.exit(exit_code)
