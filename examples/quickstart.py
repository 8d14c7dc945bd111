#!/usr/bin/env python3
"""
SmartSell Quickstart: a listing's full metrics lifecycle in one script.

Creates a listing, records views/shares/clicks, reads the metrics
snapshot and asks for a shipping quote.
Run with: python examples/quickstart.py

Requires: pip install httpx
Backend must be running: http://localhost:8000
"""

import sys

import httpx

BASE = "http://localhost:8000/api/v1"


def main():
    client = httpx.Client(base_url=BASE, timeout=10)

    # ── Health check ──────────────────────────────────────────────
    print("Checking backend health...")
    try:
        resp = client.get("/health")
    except httpx.ConnectError:
        print(f"Backend not reachable at {BASE}")
        print("Start it with:  uvicorn smartsell.main:app --reload --port 8000")
        sys.exit(1)
    health = resp.json()
    print(f"  Database: {'✓' if health['database'] == 'ok' else '✗'}")
    print(f"  Redis:    {'✓' if health['redis'] == 'ok' else '✗'}")

    # ── Create listing (metrics start at zero) ────────────────────
    print("\n1. Creating listing...")
    resp = client.post("/listings", json={
        "title": "Vintage film camera",
        "description": "35mm SLR, recently serviced",
        "price": "120.00",
        "imageUrl": "data:image/png;base64,iVBORw0KGgo=",
        "weight": "2",
        "width": "10",
        "height": "10",
        "length": "10",
        "shippingFromZip": "10001",
    })
    assert resp.status_code == 201, f"Failed: {resp.text}"
    listing = resp.json()
    print(f"   Listing #{listing['id']}: {listing['title']}")

    metrics = client.get(f"/listings/{listing['id']}/metrics").json()
    print(f"   Metrics: views={metrics['views']} shares={metrics['shares']} clicks={metrics['clicks']}")

    # ── Record activity ───────────────────────────────────────────
    print("\n2. Recording activity...")
    for event in ("view", "view", "view", "share", "click"):
        resp = client.post(f"/listings/{listing['id']}/{event}")
        assert resp.status_code == 200, f"Failed: {resp.text}"
        m = resp.json()
        print(f"   {event:<5} -> views={m['views']} shares={m['shares']} clicks={m['clicks']}")

    # ── Read snapshot ─────────────────────────────────────────────
    print("\n3. Reading metrics snapshot...")
    metrics = client.get(f"/listings/{listing['id']}/metrics").json()
    print(f"   {metrics}")

    # ── Shipping quote ────────────────────────────────────────────
    print("\n4. Quoting shipping to 94103...")
    resp = client.get(f"/listings/{listing['id']}/shipping", params={"toZip": "94103"})
    assert resp.status_code == 200, f"Failed: {resp.text}"
    for tier, option in resp.json().items():
        print(f"   {tier:<10} ${option['rate']:.2f}  {option['service']}")

    print("\nWatch it live with:  smartsell watch", listing["id"])


if __name__ == "__main__":
    main()
