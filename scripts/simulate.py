"""
Table Rush Simulation Script

Fires concurrent chat sessions at a running server to check that guests
ordering at the same table end up on one order, and that order numbers
stay unique while many tables order at once.
Run from project root after seeding: python scripts/simulate.py
"""

import argparse
import asyncio
import random
import sys
import time
import uuid
from collections import Counter
from datetime import datetime
from typing import Any, Optional

import httpx

# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Configuration
API_BASE_URL = "http://localhost:8001"
TENANT_SLUG = "demo"
GUESTS_PER_TABLE = 5

MENU_ITEMS = ["Veg Momo", "Chicken Momo", "Buff Momo", "Chowmein", "Thukpa", "Masala Tea", "Lassi"]


def generate_order_message() -> str:
    """Random guest wording, e.g. "2 chicken momo and 1 lassi"."""
    picks = random.sample(MENU_ITEMS, k=random.randint(1, 3))
    parts = [f"{random.randint(1, 3)} {name.lower()}" for name in picks]
    return " and ".join(parts) + random.choice(["", " please", " pls"])


# =============================================================================
# ONE GUEST
# =============================================================================

async def send_turn(client: httpx.AsyncClient, message: str, session_id: Optional[str],
                    table: str) -> dict[str, Any]:
    payload = {"message": message, "tenantSlug": TENANT_SLUG, "tableLabel": table}
    if session_id:
        payload["sessionId"] = session_id
    response = await client.post(f"{API_BASE_URL}/api/chat", json=payload, timeout=30.0)
    response.raise_for_status()
    return response.json()


async def run_guest(client: httpx.AsyncClient, guest_num: int, table: str) -> dict[str, Any]:
    """Add items, then place the order, in one session."""
    start_time = time.time()

    try:
        first = await send_turn(client, generate_order_message(), None, table)
        placed = await send_turn(client, "place order", first["sessionId"], table)
        elapsed = round(time.time() - start_time, 3)

        details = placed.get("orderDetails") or {}
        return {
            "guest_num": guest_num,
            "table": table,
            "success": bool(placed.get("orderPlaced")),
            "order_number": details.get("orderNumber"),
            "total": details.get("total"),
            "time": elapsed,
        }
    except httpx.HTTPError as e:
        elapsed = round(time.time() - start_time, 3)
        return {
            "guest_num": guest_num,
            "table": table,
            "success": False,
            "error": str(e)[:100],
            "time": elapsed,
        }


# =============================================================================
# MAIN SIMULATION RUNNER
# =============================================================================

async def fetch_open_orders(client: httpx.AsyncClient) -> list[dict]:
    response = await client.get(
        f"{API_BASE_URL}/api/orders",
        params={"limit": 100},
        headers={"X-Tenant-Slug": TENANT_SLUG},
    )
    response.raise_for_status()
    return response.json()["orders"]


async def run_simulation(tables: list[str], guests_per_table: int = GUESTS_PER_TABLE) -> dict[str, Any]:
    """
    Run the table rush.

    Args:
        tables: Table labels to order at
        guests_per_table: Concurrent chat sessions per table
    """
    total_guests = len(tables) * guests_per_table

    print("=" * 70)
    print("🔥 TABLE RUSH SIMULATION")
    print("=" * 70)
    print(f"📋 Guests: {total_guests} ({guests_per_table} per table)")
    print(f"🪑 Tables: {', '.join(tables)}")
    print(f"🎯 Target: {API_BASE_URL} ({TENANT_SLUG})")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    start_time = time.time()

    async with httpx.AsyncClient() as client:
        tasks = [
            run_guest(client, i + 1, table)
            for i, table in enumerate(t for t in tables for _ in range(guests_per_table))
        ]
        random.shuffle(tasks)
        results = await asyncio.gather(*tasks)
        open_orders = await fetch_open_orders(client)

    total_time = round(time.time() - start_time, 2)

    successful = [r for r in results if r["success"]]
    failed = [r for r in results if not r["success"]]

    print("\n" + "=" * 70)
    print("📊 SIMULATION RESULTS")
    print("=" * 70)
    print(f"\n✅ Placed: {len(successful)}/{total_guests}")
    print(f"❌ Failed: {len(failed)}/{total_guests}")
    print(f"⏱️  Total Time: {total_time}s")

    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        print(f"\n📈 Average guest round-trip: {avg_time}s")

    # One open order per table, one distinct number per order
    per_table = Counter(o["tableLabel"] for o in open_orders if o["tableLabel"] in tables)
    numbers = Counter(o["orderNumber"] for o in open_orders)
    duplicates = [n for n, count in numbers.items() if count > 1]

    print("\n🔍 Invariants:")
    ok = True
    for table in tables:
        count = per_table.get(table, 0)
        marker = "✅" if count == 1 else "❌"
        ok = ok and count == 1
        print(f"   {marker} {table}: {count} open order(s)")
    if duplicates:
        ok = False
        print(f"   ❌ Duplicate order numbers: {duplicates}")
    else:
        print(f"   ✅ {len(numbers)} distinct order numbers")

    if failed:
        print("\n⚠️  Failed guests (showing first 5):")
        for f in failed[:5]:
            print(f"   Guest #{f['guest_num']} at {f['table']}: {f.get('error', 'not placed')}")

    print("=" * 70)

    return {
        "guests": total_guests,
        "successful": len(successful),
        "failed": len(failed),
        "invariants_ok": ok,
        "total_time": total_time,
    }


async def test_single_flow() -> bool:
    """Pre-flight: health check and a takeaway order."""
    print("\n" + "=" * 70)
    print("🧪 PRE-FLIGHT")
    print("=" * 70)

    async with httpx.AsyncClient() as client:
        print("\n1️⃣ Health Check...")
        response = await client.get(f"{API_BASE_URL}/health")
        if response.status_code != 200:
            print(f"   ❌ Failed: {response.text}")
            return False
        data = response.json()
        print(f"   ✅ Status: {data.get('status')}")
        print(f"   Database: {data.get('database')}")
        print(f"   Oracle: {data.get('oracle')}")

        print("\n2️⃣ Single chat order...")
        client_id = uuid.uuid4().hex
        response = await client.post(
            f"{API_BASE_URL}/api/chat",
            json={"message": "1 masala tea, place order", "tenantSlug": TENANT_SLUG, "clientId": client_id},
        )
        if response.status_code != 200:
            print(f"   ❌ Failed: {response.text}")
            return False
        body = response.json()
        print(f"   🤖 {body.get('message')}")

    print("\n" + "=" * 70)
    return True


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Table Rush Simulation Script")
    parser.add_argument("--tables", default="T-01,T-02,T-03", help="Comma-separated table labels")
    parser.add_argument("--guests", type=int, default=GUESTS_PER_TABLE, help="Guests per table")
    parser.add_argument("--skip-tests", action="store_true", help="Skip pre-flight checks")
    args = parser.parse_args()

    if not args.skip_tests:
        if not asyncio.run(test_single_flow()):
            print("\n❌ Pre-flight failed. Is the server running and seeded?")
            sys.exit(1)

    table_labels = [t.strip() for t in args.tables.split(",") if t.strip()]
    summary = asyncio.run(run_simulation(table_labels, args.guests))
    sys.exit(0 if summary["invariants_ok"] else 1)
