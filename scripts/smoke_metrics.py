#!/usr/bin/env python3
"""Smoke check for a running pizza telemetry service.

Drives a few requests through the API and verifies they show up in /api/metrics.
"""

from __future__ import annotations

import json
import sys

import httpx

BASE_URL = "http://127.0.0.1:3000"
TIMEOUT = 10.0


def expect(condition: bool, message: str) -> None:
    if not condition:
        raise AssertionError(message)


def get(client: httpx.Client, path: str, expected: int = 200, **kwargs):
    resp = client.get(f"{BASE_URL}{path}", **kwargs)
    expect(resp.status_code == expected, f"GET {path} -> {resp.status_code} != {expected}; body={resp.text[:500]}")
    return resp


def main() -> int:
    with httpx.Client(timeout=TIMEOUT) as client:
        health = get(client, "/api/health").json()
        expect(health.get("status") == "healthy", "health status is not healthy")

        before = get(client, "/api/metrics").json()
        for _ in range(3):
            get(client, "/")
        after = get(client, "/api/metrics").json()

        for section in ("http", "users", "auth", "pizza", "endpoints", "system"):
            expect(section in after, f"metrics snapshot missing '{section}'")

        delta = after["http"]["totalRequests"] - before["http"]["totalRequests"]
        expect(delta >= 4, f"expected at least 4 new requests, saw {delta}")
        expect("GET /" in after["endpoints"], "root endpoint latency not recorded")

    print(json.dumps({"ok": True, "message": "pizza telemetry smoke passed"}))
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except Exception as exc:  # noqa: BLE001
        print(json.dumps({"ok": False, "error": str(exc)}))
        sys.exit(1)
