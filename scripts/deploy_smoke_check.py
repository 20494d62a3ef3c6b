"""Post-deploy smoke checks executed from the app container."""

from __future__ import annotations

import json
import os
import urllib.error
import urllib.request
from datetime import date, timedelta
from uuid import uuid4

BASE_URL = os.getenv("SMOKE_BASE_URL", "http://localhost:8000")
API_PREFIX = "/api/v1"


def request(
    path: str,
    *,
    method: str = "GET",
    body: dict[str, str] | None = None,
    headers: dict[str, str] | None = None,
    expected: int = 200,
) -> bytes:
    payload = None
    req_headers = {"Accept": "application/json"}
    if headers:
        req_headers.update(headers)
    if body is not None:
        payload = json.dumps(body).encode("utf-8")
        req_headers["Content-Type"] = "application/json"

    request_obj = urllib.request.Request(
        f"{BASE_URL}{path}",
        data=payload,
        method=method,
        headers=req_headers,
    )
    try:
        with urllib.request.urlopen(request_obj, timeout=30) as response:
            content = response.read()
            status = response.getcode()
    except urllib.error.HTTPError as exc:  # pragma: no cover - runtime smoke script
        if exc.code == expected:
            return exc.read()
        body_text = exc.read().decode("utf-8", errors="ignore")
        raise RuntimeError(f"{method} {path} -> {exc.code}: {body_text}") from exc

    if status != expected:
        raise RuntimeError(f"{method} {path} -> {status}, expected {expected}")
    return content


def main() -> None:
    for endpoint in ["/health", "/ready", "/docs", "/metrics"]:
        request(endpoint, expected=200)

    # unknown payment group is a 404, never a 500
    request(f"{API_PREFIX}/booking/cancel?id={uuid4()}", expected=404)

    ground_id = os.getenv("SMOKE_GROUND_ID")
    if ground_id:
        tomorrow = (date.today() + timedelta(days=1)).isoformat()
        calendar = json.loads(
            request(f"{API_PREFIX}/grounds/{ground_id}/slots?date={tomorrow}", expected=200).decode("utf-8"),
        )
        if not calendar["slots"]:
            raise RuntimeError(f"Ground {ground_id} has no slots on {tomorrow}")

    print("Smoke checks passed.")


if __name__ == "__main__":
    main()
