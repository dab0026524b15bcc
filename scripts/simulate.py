"""
Storefront Traffic Simulation

Fires concurrent customer checkouts at a running development server to
test system resilience (database sessions, Celery queueing, mock gateways).
Run from project root: python scripts/simulate.py

Customers are registered through the unsigned development auth webhook and
sign in with HS256 tokens minted from AUTH_JWT_SECRET, so the server must
run with ENV_MODE=development and no AUTH_WEBHOOK_SECRET.

Version: 1.0.0
"""

import argparse
import asyncio
import json
import os
import random
import sys
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import httpx
import jwt

# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Configuration
API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8001")
JWT_SECRET = os.getenv("AUTH_JWT_SECRET", "dev-secret-change-me")
TOTAL_ORDERS = 50

# Sample data for random customers
FIRST_NAMES = ["Aarav", "Diya", "Kabir", "Meera", "Rohan", "Ananya", "Vikram", "Isha", "Arjun", "Priya"]
LAST_NAMES = ["Sharma", "Iyer", "Patel", "Reddy", "Nair", "Gupta", "Khan", "Das", "Menon", "Joshi"]
STREETS = ["MG Road", "Brigade Road", "Residency Road", "Church Street", "Indiranagar 100ft Road"]
CITIES = [("Bengaluru", "Karnataka", "560001"), ("Chennai", "Tamil Nadu", "600001"), ("Pune", "Maharashtra", "411001")]
NOTES = [None, "Extra napkins", "Ring doorbell", "Leave at door", "Less spicy please"]


def generate_random_customer() -> dict[str, Any]:
    """Generate an identity provider ``user.created`` payload."""
    first = random.choice(FIRST_NAMES)
    last = random.choice(LAST_NAMES)
    clerk_id = f"user_sim_{uuid.uuid4().hex[:16]}"
    return {
        "type": "user.created",
        "data": {
            "id": clerk_id,
            "first_name": first,
            "last_name": last,
            "email_addresses": [{"email_address": f"{first}.{last}.{clerk_id[-6:]}@example.com".lower()}],
            "phone_numbers": [{"phone_number": f"+9198{random.randint(10000000, 99999999)}"}],
        },
    }


def generate_random_address() -> dict[str, Any]:
    city, state, postal_code = random.choice(CITIES)
    return {
        "type": "home",
        "address_line_1": f"{random.randint(1, 400)}, {random.choice(STREETS)}",
        "city": city,
        "state": state,
        "postal_code": postal_code,
    }


def mint_token(clerk_id: str) -> str:
    """Development session token for ``clerk_id``."""
    claims = {"sub": clerk_id, "exp": datetime.now(timezone.utc) + timedelta(hours=1)}
    return jwt.encode(claims, JWT_SECRET, algorithm="HS256")


def generate_random_lines(menu: list[dict]) -> list[dict]:
    """Pick 1-4 distinct menu items with quantities."""
    picks = random.sample(menu, k=min(len(menu), random.randint(1, 4)))
    return [{"menu_item_id": item["id"], "quantity": random.randint(1, 3)} for item in picks]


# =============================================================================
# CUSTOMER SETUP
# =============================================================================

async def register_customer(client: httpx.AsyncClient) -> dict[str, str]:
    """Create a customer with a default address; returns auth headers."""
    event = generate_random_customer()
    response = await client.post(
        f"{API_BASE_URL}/api/webhooks/auth",
        content=json.dumps(event),
        headers={"Content-Type": "application/json"},
        timeout=30.0,
    )
    response.raise_for_status()

    headers = {"Authorization": f"Bearer {mint_token(event['data']['id'])}"}
    response = await client.post(
        f"{API_BASE_URL}/api/addresses",
        json=generate_random_address(),
        headers=headers,
        timeout=30.0,
    )
    response.raise_for_status()
    return headers


async def fetch_menu(client: httpx.AsyncClient) -> list[dict]:
    response = await client.get(
        f"{API_BASE_URL}/api/menu-items",
        params={"available": "true", "limit": 100},
        timeout=30.0,
    )
    response.raise_for_status()
    return response.json()["items"]


# =============================================================================
# ORDER FLOWS
# =============================================================================

def _result(order_num: int, mode: str, start: float, response: Optional[httpx.Response] = None,
            error: Optional[str] = None) -> dict[str, Any]:
    elapsed = round(time.time() - start, 3)
    if response is not None and response.status_code == 201:
        data = response.json()
        return {
            "order_num": order_num,
            "success": True,
            "order_number": data.get("order_number"),
            "total": float(data.get("total", 0)),
            "time": elapsed,
            "mode": mode,
        }
    if response is not None:
        error = response.json().get("error", response.text) if response.content else response.reason_phrase
    return {
        "order_num": order_num,
        "success": False,
        "error": str(error)[:100],
        "time": elapsed,
        "mode": mode,
    }


async def send_cart_order(client: httpx.AsyncClient, menu: list[dict], order_num: int) -> dict[str, Any]:
    """Register, fill the cart line by line and check it out."""
    start_time = time.time()
    try:
        headers = await register_customer(client)
        for line in generate_random_lines(menu):
            response = await client.post(
                f"{API_BASE_URL}/api/cart/items", json=line, headers=headers, timeout=30.0
            )
            response.raise_for_status()

        response = await client.post(
            f"{API_BASE_URL}/api/orders",
            json={"customer_notes": random.choice(NOTES)},
            headers=headers,
            timeout=30.0,
        )
        return _result(order_num, "cart", start_time, response)
    except httpx.HTTPError as e:
        return _result(order_num, "cart", start_time, error=e)


async def send_direct_order(client: httpx.AsyncClient, menu: list[dict], order_num: int) -> dict[str, Any]:
    """Register and order an explicit item list, skipping the cart."""
    start_time = time.time()
    try:
        headers = await register_customer(client)
        response = await client.post(
            f"{API_BASE_URL}/api/orders",
            json={"items": generate_random_lines(menu), "customer_notes": random.choice(NOTES)},
            headers=headers,
            timeout=30.0,
        )
        return _result(order_num, "direct", start_time, response)
    except httpx.HTTPError as e:
        return _result(order_num, "direct", start_time, error=e)


# =============================================================================
# MAIN SIMULATION RUNNER
# =============================================================================

async def run_simulation(mode: str = "both", num_orders: int = TOTAL_ORDERS) -> dict[str, Any]:
    """
    Run the traffic simulation.

    Args:
        mode: "cart", "direct", or "both"
        num_orders: Number of orders to simulate
    """
    print("=" * 70)
    print("🔥 STOREFRONT SIMULATION - HIGH CONCURRENCY TEST")
    print("=" * 70)
    print(f"📋 Total Orders: {num_orders}")
    print(f"🎯 Target: {API_BASE_URL}")
    print(f"🔧 Mode: {mode}")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    start_time = time.time()

    async with httpx.AsyncClient() as client:
        menu = await fetch_menu(client)
        if not menu:
            print("\n❌ No available menu items. Run: python scripts/seed_menu.py")
            return {"total": num_orders, "successful": 0, "failed": num_orders, "results": []}

        senders = {"cart": [send_cart_order], "direct": [send_direct_order]}
        flows = senders.get(mode, [send_cart_order, send_direct_order])
        print(f"\n🚀 Firing {mode} orders...\n")
        results = await asyncio.gather(
            *(flows[i % len(flows)](client, menu, i + 1) for i in range(num_orders))
        )

    total_time = round(time.time() - start_time, 2)

    successful = [r for r in results if r["success"]]
    failed = [r for r in results if not r["success"]]

    print("\n" + "=" * 70)
    print("📊 SIMULATION RESULTS")
    print("=" * 70)

    print(f"\n✅ Successful Orders: {len(successful)}/{num_orders}")
    print(f"❌ Failed Orders: {len(failed)}/{num_orders}")
    print(f"⏱️  Total Time: {total_time}s")

    for flow in ("cart", "direct"):
        flow_results = [r for r in results if r["mode"] == flow]
        if flow_results:
            ok = len([r for r in flow_results if r["success"]])
            print(f"   {flow:>6}: {ok}/{len(flow_results)} successful")

    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        total_revenue = sum(r["total"] for r in successful)

        print("\n📈 Performance Metrics:")
        print(f"   Average Response: {avg_time}s")
        print(f"   Fastest: {min(r['time'] for r in successful)}s")
        print(f"   Slowest: {max(r['time'] for r in successful)}s")
        print(f"   💰 Total Revenue: ₹{total_revenue:.2f}")

    if failed:
        print("\n⚠️  Failed Order Details (showing first 5):")
        for f in failed[:5]:
            print(f"   Order #{f['order_num']} [{f['mode']}]: {f.get('error', 'Unknown error')}")

    print("\n" + "=" * 70)
    print("🔍 VERIFICATION STEPS")
    print("=" * 70)
    print("1. Check the Celery terminal - alert and email tasks should complete")
    print(f"2. Open {API_BASE_URL}/admin to see the dashboard")
    print(f"3. Download {API_BASE_URL}/api/admin/exports/orders to verify data integrity")
    print("=" * 70)

    return {
        "total": num_orders,
        "successful": len(successful),
        "failed": len(failed),
        "total_time": total_time,
        "results": results,
    }


async def test_single_flows() -> bool:
    """Test individual flows before the simulation."""
    print("\n" + "=" * 70)
    print("🧪 TESTING INDIVIDUAL FLOWS")
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
        print(f"   Redis: {data.get('redis')}")

        print("\n2️⃣ Menu...")
        menu = await fetch_menu(client)
        if not menu:
            print("   ❌ No available menu items. Run: python scripts/seed_menu.py")
            return False
        print(f"   ✅ {len(menu)} available items")

        print("\n3️⃣ Single Cart Checkout...")
        result = await send_cart_order(client, menu, 1)
        if result["success"]:
            print(f"   ✅ Order {result['order_number']} created, total ₹{result['total']:.2f}")
        else:
            print(f"   ⚠️ Response: {result['error']}")

        print("\n4️⃣ Single Direct Order...")
        result = await send_direct_order(client, menu, 2)
        if result["success"]:
            print(f"   ✅ Order {result['order_number']} created, total ₹{result['total']:.2f}")
        else:
            print(f"   ⚠️ Response: {result['error']}")

    print("\n" + "=" * 70)
    return True


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Storefront Traffic Simulation")
    parser.add_argument("--cart", action="store_true", help="Cart checkout only")
    parser.add_argument("--direct", action="store_true", help="Explicit item list only")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of orders")
    parser.add_argument("--skip-tests", action="store_true", help="Skip individual tests")
    args = parser.parse_args()

    if args.cart:
        mode = "cart"
    elif args.direct:
        mode = "direct"
    else:
        mode = "both"

    if not args.skip_tests:
        if not asyncio.run(test_single_flows()):
            print("\n❌ Pre-flight tests failed. Fix issues before running simulation.")
            sys.exit(1)

        print("\n✅ Pre-flight tests passed!")
        input("\nPress Enter to start the simulation...")

    asyncio.run(run_simulation(mode=mode, num_orders=args.orders))
