"""
Lunch Rush Simulation Script

Simulates a canteen lunch rush against a running server to test the
service under concurrency:
    1. Signs up a pool of students (existing SRNs are logged in instead)
    2. Places orders for them concurrently
    3. Optionally races pairs of requests for the same order number
    4. Marks a share of the orders as received at the counter

Run from project root: python scripts/simulate.py --orders 50
"""

import argparse
import asyncio
import random
import sys
import time
import uuid
from datetime import datetime
from typing import Any

import httpx

# Configuration
API_BASE_URL = "http://localhost:5000"
TOTAL_ORDERS = 50
TOTAL_STUDENTS = 10

FIRST_NAMES = ["Asha", "Rahul", "Priya", "Karthik", "Divya", "Arjun", "Meera", "Nikhil", "Sneha", "Vikram"]
MENU_ITEMS = [
    {"name": "Masala Dosa", "price": 40},
    {"name": "Idli Vada", "price": 30},
    {"name": "Veg Biryani", "price": 70},
    {"name": "Paneer Roll", "price": 50},
    {"name": "Filter Coffee", "price": 10},
    {"name": "Masala Chai", "price": 10},
    {"name": "Fresh Lime Soda", "price": 25},
]


def generate_students(count: int) -> list[dict[str, str]]:
    """Generate a pool of students with unique SRNs."""
    run_id = uuid.uuid4().hex[:4].upper()
    return [
        {
            "name": f"{random.choice(FIRST_NAMES)} {chr(65 + i % 26)}.",
            "srn": f"SIM{run_id}{i:03d}",
            "password": f"pw-{i}",
        }
        for i in range(count)
    ]


def generate_items() -> tuple[list[dict[str, Any]], float]:
    """Generate random order items and their total."""
    items = []
    for entry in random.sample(MENU_ITEMS, random.randint(1, 3)):
        item = entry.copy()
        item["quantity"] = random.randint(1, 2)
        items.append(item)
    total = sum(item["price"] * item["quantity"] for item in items)
    return items, float(total)


def generate_order_number() -> str:
    return f"ORD-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"


# =============================================================================
# ACCOUNTS
# =============================================================================

async def register_student(client: httpx.AsyncClient, student: dict[str, str]) -> bool:
    """Sign up, or log in when the SRN is already taken."""
    check = await client.post(f"{API_BASE_URL}/api/check-srn", json={"srn": student["srn"]})
    check.raise_for_status()

    if not check.json()["exists"]:
        response = await client.post(f"{API_BASE_URL}/api/signup", json=student)
        if response.status_code != 201:
            print(f"   Signup failed for {student['srn']}: {response.text[:100]}")
            return False

    response = await client.post(
        f"{API_BASE_URL}/api/login",
        json={"srn": student["srn"], "password": student["password"]},
    )
    return response.status_code == 200


# =============================================================================
# ORDERS
# =============================================================================

async def send_order(
    client: httpx.AsyncClient,
    order_num: int,
    student: dict[str, str],
    order_number: str,
) -> dict[str, Any]:
    """Place one order and time it."""
    items, total = generate_items()
    payload = {
        "userName": student["name"],
        "srn": student["srn"],
        "orderNumber": order_number,
        "otp": f"{random.randint(0, 9999):04d}",
        "items": items,
        "totalAmount": total,
    }
    start_time = time.time()

    try:
        response = await client.post(f"{API_BASE_URL}/api/orders", json=payload, timeout=30.0)
        elapsed = round(time.time() - start_time, 3)

        if response.status_code == 201:
            return {
                "order_num": order_num,
                "success": True,
                "order_number": order_number,
                "total": total,
                "time": elapsed,
            }
        return {
            "order_num": order_num,
            "success": False,
            "order_number": order_number,
            "error": response.json().get("error", response.text[:100]),
            "time": elapsed,
        }
    except httpx.HTTPError as e:
        elapsed = round(time.time() - start_time, 3)
        return {
            "order_num": order_num,
            "success": False,
            "order_number": order_number,
            "error": str(e)[:100],
            "time": elapsed,
        }


async def mark_received(client: httpx.AsyncClient, order_number: str) -> bool:
    response = await client.patch(
        f"{API_BASE_URL}/api/orders/{order_number}/received",
        json={"received": True},
    )
    return response.status_code == 200


# =============================================================================
# MAIN SIMULATION RUNNER
# =============================================================================

async def run_simulation(
    num_orders: int = TOTAL_ORDERS,
    num_students: int = TOTAL_STUDENTS,
    duplicate_pairs: int = 0,
    pickup_share: float = 0.5,
) -> dict[str, Any]:
    """
    Run the lunch rush simulation.

    Args:
        num_orders: Number of orders to place
        num_students: Size of the student pool
        duplicate_pairs: Extra order numbers sent twice concurrently
        pickup_share: Fraction of successful orders marked received
    """
    print("=" * 70)
    print("LUNCH RUSH SIMULATION")
    print("=" * 70)
    print(f"Orders: {num_orders} | Students: {num_students} | Duplicate pairs: {duplicate_pairs}")
    print(f"Target: {API_BASE_URL}")
    print(f"Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    start_time = time.time()

    async with httpx.AsyncClient() as client:
        students = generate_students(num_students)
        registered = await asyncio.gather(*(register_student(client, s) for s in students))
        students = [s for s, ok in zip(students, registered) if ok]
        print(f"\nStudents ready: {len(students)}/{num_students}")
        if not students:
            print("No student could log in, aborting.")
            return {"total": num_orders, "successful": 0, "failed": num_orders}

        tasks = [
            send_order(client, i + 1, random.choice(students), generate_order_number())
            for i in range(num_orders)
        ]
        for pair in range(duplicate_pairs):
            number = generate_order_number()
            student = random.choice(students)
            tasks.append(send_order(client, num_orders + 2 * pair + 1, student, number))
            tasks.append(send_order(client, num_orders + 2 * pair + 2, student, number))

        print(f"\nFiring {len(tasks)} orders...\n")
        results = await asyncio.gather(*tasks)

        successful = [r for r in results if r["success"]]
        picked_up = random.sample(successful, int(len(successful) * pickup_share))
        pickups = await asyncio.gather(*(mark_received(client, r["order_number"]) for r in picked_up))

    total_time = round(time.time() - start_time, 2)
    failed = [r for r in results if not r["success"]]

    print("=" * 70)
    print("SIMULATION RESULTS")
    print("=" * 70)
    print(f"\nSuccessful Orders: {len(successful)}/{len(results)}")
    print(f"Failed Orders: {len(failed)}/{len(results)}")
    print(f"Marked Received: {sum(pickups)}/{len(picked_up)}")
    print(f"Total Time: {total_time}s")

    if duplicate_pairs:
        by_number: dict[str, int] = {}
        for r in successful:
            by_number[r["order_number"]] = by_number.get(r["order_number"], 0) + 1
        doubled = [n for n, count in by_number.items() if count > 1]
        print(f"\nDuplicate order numbers accepted twice: {len(doubled)} (expected 0)")

    if successful:
        times = [r["time"] for r in successful]
        print("\nPerformance Metrics:")
        print(f"   Average Response: {round(sum(times) / len(times), 3)}s")
        print(f"   Fastest: {min(times)}s")
        print(f"   Slowest: {max(times)}s")
        print(f"   Total Revenue: Rs {sum(r['total'] for r in successful):.2f}")

    if failed:
        print("\nFailed Order Details (showing first 5):")
        for f in failed[:5]:
            print(f"   Order #{f['order_num']} [{f['order_number']}]: {f.get('error', 'Unknown error')}")

    print("\n" + "=" * 70)
    print("If LEDGER_EXPORT_ENABLED is set, run: python scripts/verify.py")
    print("=" * 70)

    return {
        "total": len(results),
        "successful": len(successful),
        "failed": len(failed),
        "total_time": total_time,
        "results": results,
    }


async def check_health() -> bool:
    """Pre-flight health check."""
    async with httpx.AsyncClient() as client:
        try:
            response = await client.get(f"{API_BASE_URL}/health", timeout=5.0)
        except httpx.HTTPError as e:
            print(f"Server unreachable: {e}")
            return False

    data = response.json()
    print(f"Health: {data.get('status')} (storage: {data.get('storage')}, redis: {data.get('redis')})")
    return response.status_code == 200


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Lunch Rush Simulation Script")
    parser.add_argument("--url", default=API_BASE_URL, help="Server base URL")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of orders")
    parser.add_argument("--students", type=int, default=TOTAL_STUDENTS, help="Number of students")
    parser.add_argument("--duplicates", type=int, default=0, help="Order numbers to race twice")
    parser.add_argument("--pickup-share", type=float, default=0.5, help="Share of orders marked received")
    args = parser.parse_args()

    API_BASE_URL = args.url.rstrip("/")

    if not asyncio.run(check_health()):
        print("\nPre-flight check failed. Start the server first: canteen-server")
        sys.exit(1)

    asyncio.run(run_simulation(
        num_orders=args.orders,
        num_students=args.students,
        duplicate_pairs=args.duplicates,
        pickup_share=args.pickup_share,
    ))
