"""
Concurrency Simulation Script

Drives many customers through the storefront at once against a running
API: sign in with a one-time code, fill a cart, place an order. Then
checks that every placed order got its own order number.

Needs a development server (OTP codes are returned to the caller):
    uvicorn plattr.main:app --port 5000
    python scripts/simulate.py --customers 25 --dish dish-paneer --dish dish-naan

Version: 1.0.0
"""

import argparse
import asyncio
import random
import sys
import time
from typing import Any

import httpx

API_BASE_URL = "http://localhost:5000"
DEFAULT_DISHES = ["dish-paneer", "dish-naan", "dish-lassi"]
DELIVERY_SLOTS = ["12:00 PM - 1:00 PM", "1:00 PM - 2:00 PM", "7:00 PM - 8:00 PM"]


def customer_phone(n: int) -> str:
    return f"9{n:09d}"


async def run_customer(
    client: httpx.AsyncClient,
    n: int,
    dishes: list[str],
) -> dict[str, Any]:
    """One customer journey on its own device."""
    headers = {"X-Device-Id": f"sim-device-{n}"}
    phone = customer_phone(n)
    start_time = time.time()

    def failed(step: str, response: httpx.Response) -> dict[str, Any]:
        return {
            "customer": n,
            "success": False,
            "error": f"{step}: {response.status_code} {response.text[:100]}",
            "time": round(time.time() - start_time, 3),
        }

    try:
        sent = await client.post("/api/auth/send-otp", json={"phone": phone}, headers=headers)
        if sent.status_code != 200 or not sent.json().get("otp"):
            return failed("send-otp", sent)

        verified = await client.post(
            "/api/auth/verify-otp",
            json={"phone": phone, "otp": sent.json()["otp"], "username": f"sim{n}"},
            headers=headers,
        )
        if verified.status_code != 200:
            return failed("verify-otp", verified)

        for dish_id in random.sample(dishes, k=random.randint(1, len(dishes))):
            added = await client.post(
                "/api/cart",
                json={"dish_id": dish_id, "quantity": random.randint(1, 3)},
                headers=headers,
            )
            if added.status_code != 201:
                return failed("add-to-cart", added)

        placed = await client.post(
            "/api/orders",
            json={
                "address_id": f"sim-address-{n}",
                "delivery_date": time.strftime("%Y-%m-%d"),
                "delivery_time": random.choice(DELIVERY_SLOTS),
            },
            headers=headers,
        )
        if placed.status_code != 201:
            return failed("create-order", placed)

    except httpx.HTTPError as e:
        return {
            "customer": n,
            "success": False,
            "error": str(e)[:100],
            "time": round(time.time() - start_time, 3),
        }

    order = placed.json()
    return {
        "customer": n,
        "success": True,
        "order_number": order["order_number"],
        "total": order["total"],
        "time": round(time.time() - start_time, 3),
    }


async def run_simulation(customers: int, dishes: list[str]) -> bool:
    print("=" * 70)
    print(f"Simulating {customers} concurrent customers against {API_BASE_URL}")
    print("=" * 70)

    start = time.time()
    async with httpx.AsyncClient(base_url=API_BASE_URL, timeout=30.0) as client:
        health = await client.get("/health")
        if health.status_code != 200:
            print(f"Health check failed: {health.text}")
            return False
        print(f"Health: {health.json().get('status')}")

        results = await asyncio.gather(
            *(run_customer(client, n, dishes) for n in range(1, customers + 1))
        )

    successful = [r for r in results if r["success"]]
    failed = [r for r in results if not r["success"]]
    numbers = [r["order_number"] for r in successful]
    duplicates = sorted({x for x in numbers if numbers.count(x) > 1})

    print(f"\nTotal Time: {round(time.time() - start, 3)}s")
    print(f"Orders placed: {len(successful)}/{customers}")
    if successful:
        print(f"Order numbers: {min(numbers)} .. {max(numbers)}")
        print(f"Average journey: {round(sum(r['time'] for r in successful) / len(successful), 3)}s")
        print(f"Total revenue: {sum(r['total'] for r in successful):.2f}")

    if failed:
        print("\nFailures (showing first 5):")
        for f in failed[:5]:
            print(f"   Customer #{f['customer']}: {f['error']}")

    if duplicates:
        print(f"\nDUPLICATE ORDER NUMBERS: {duplicates}")
        return False

    print("\nEvery order number is unique.")
    return not failed


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Concurrency Simulation Script")
    parser.add_argument("--customers", type=int, default=25, help="Number of concurrent customers")
    parser.add_argument("--dish", action="append", dest="dishes", help="Dish id to order (repeatable)")
    parser.add_argument("--url", default=API_BASE_URL, help="API base URL")
    args = parser.parse_args()

    API_BASE_URL = args.url
    ok = asyncio.run(run_simulation(args.customers, args.dishes or DEFAULT_DISHES))
    sys.exit(0 if ok else 1)
