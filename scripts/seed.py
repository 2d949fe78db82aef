"""
Demo Data Seeder

Creates a demo restaurant with a small menu and a few tables so the chat
endpoint and the simulation script have something to work with.
Run from project root: python scripts/seed.py [--slug demo]

Existing tenants are left untouched.
"""

import argparse
import asyncio
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from sqlalchemy import select

from tabletalk.database import async_session_maker, engine, init_db
from tabletalk.models import MenuCategory, MenuItem, Table, Tenant

MENU = {
    "Momo": [("Veg Momo", 150), ("Chicken Momo", 220), ("Buff Momo", 200), ("Jhol Momo", 240)],
    "Noodles": [("Chowmein", 180), ("Thukpa", 210)],
    "Drinks": [("Masala Tea", 60), ("Lassi", 120), ("Coke", 90)],
}
TABLE_LABELS = ["T-01", "T-02", "T-03", "T-04", "T-05", "T-06"]


async def seed(slug: str, name: str) -> None:
    await init_db()

    async with async_session_maker() as session:
        result = await session.execute(select(Tenant).where(Tenant.slug == slug))
        if result.scalar_one_or_none() is not None:
            print(f"⚠️  Tenant '{slug}' already exists, nothing to do")
            return

        tenant = Tenant(
            slug=slug,
            name=name,
            currency_symbol="Rs.",
            service_charge_percent=10,
            tax_percent=13,
        )
        session.add(tenant)
        await session.flush()

        for position, (category_name, items) in enumerate(MENU.items(), start=1):
            category = MenuCategory(tenant_id=tenant.id, name=category_name, sort_order=position)
            session.add(category)
            await session.flush()
            for item_name, price in items:
                session.add(MenuItem(
                    tenant_id=tenant.id,
                    category_id=category.id,
                    name=item_name,
                    price=price,
                ))

        for label in TABLE_LABELS:
            session.add(Table(tenant_id=tenant.id, label=label, capacity=4))

        await session.commit()

    item_count = sum(len(items) for items in MENU.values())
    print("=" * 60)
    print(f"✅ Seeded '{name}' ({slug})")
    print(f"   Menu items: {item_count} in {len(MENU)} categories")
    print(f"   Tables: {', '.join(TABLE_LABELS)}")
    print("=" * 60)


async def main(slug: str, name: str) -> None:
    try:
        await seed(slug, name)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed a demo restaurant")
    parser.add_argument("--slug", default="demo", help="Tenant slug")
    parser.add_argument("--name", default="Demo Momo House", help="Restaurant name")
    args = parser.parse_args()

    asyncio.run(main(args.slug, args.name))
