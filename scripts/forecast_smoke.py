#!/usr/bin/env python3
"""Smoke test for a running CloudCast API.

Checks health, the range table, one forecast request and the validation path.
Needs real AWS credentials on the server for the forecast step.

Usage: forecast_smoke.py INSTANCE_ID [REGION] [METRIC]
"""

from __future__ import annotations

import json
import os
import sys

import httpx

BASE_URL = os.environ.get("CLOUDCAST_URL", "http://127.0.0.1:5000")
TIMEOUT = 60.0


def expect(condition: bool, message: str) -> None:
    if not condition:
        raise AssertionError(message)


def get(client: httpx.Client, path: str, expected: int = 200, **kwargs):
    resp = client.get(f"{BASE_URL}{path}", **kwargs)
    expect(resp.status_code == expected, f"GET {path} -> {resp.status_code} != {expected}; body={resp.text[:500]}")
    return resp


def post(client: httpx.Client, path: str, expected: int = 200, **kwargs):
    resp = client.post(f"{BASE_URL}{path}", **kwargs)
    expect(resp.status_code == expected, f"POST {path} -> {resp.status_code} != {expected}; body={resp.text[:500]}")
    return resp


def main(argv: list[str]) -> int:
    if not argv:
        print(__doc__)
        return 2
    instance_id = argv[0]
    region = argv[1] if len(argv) > 1 else "us-east-1"
    metric = argv[2] if len(argv) > 2 else "CPUUtilization"

    with httpx.Client(timeout=TIMEOUT) as client:
        health = get(client, "/api/health").json()
        expect(health.get("aws_credentials") is True, "server has no AWS credentials")

        ranges = get(client, "/api/metrics/ranges").json()
        expect(any(r["token"] == "1h" for r in ranges["ranges"]), "1h range missing")

        body = {"resource_id": instance_id, "scope": region, "metric_name": metric, "range_token": "1h"}
        result = post(client, "/api/metrics", json=body).json()
        series, forecast = result["series"], result["forecast"]
        expect(all(r["kind"] == "Actual" for r in series), "series contains non-actual records")
        if len(series) >= 3:
            expect(len(forecast) in (0, 5), f"unexpected forecast length {len(forecast)}")

        post(client, "/api/metrics", expected=400, json={**body, "range_token": "1y"})
        post(client, "/api/metrics", expected=400, json={k: v for k, v in body.items() if k != "scope"})

    print(json.dumps({"ok": True, "series": len(series), "forecast": len(forecast)}))
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main(sys.argv[1:]))
    except Exception as exc:  # noqa: BLE001
        print(json.dumps({"ok": False, "error": str(exc)}))
        sys.exit(1)
