#!/usr/bin/env python3
"""Probe the services Character Studio depends on.

Checks:
    - the API itself (/health)
    - PostgreSQL (``SELECT count(*) FROM accounts``)
    - Redis (PING)
    - the Gemini model metadata endpoint (key and model name are valid)

Prints a JSON array of ``{service, status, latency_ms}`` objects and exits
non-zero if any check fails.
"""

from __future__ import annotations

import asyncio
import json
import os
import sys
import time
from collections.abc import Awaitable
from typing import Any

import asyncpg  # type: ignore[import-untyped]
import httpx
from redis.asyncio import Redis

APP_URL = os.environ.get("APP_URL", "http://localhost:8000")
DATABASE_URL = os.environ.get(
    "DATABASE_URL", "postgresql://app:devpassword@db:5432/studio"
)
REDIS_URL = os.environ.get("REDIS_URL", "redis://redis:6379/0")
GEMINI_API_URL = os.environ.get(
    "GEMINI_API_URL", "https://generativelanguage.googleapis.com/v1beta"
)
GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-3-pro-image-preview")
GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY", "")

CHECK_TIMEOUT = float(os.environ.get("HEALTHCHECK_TIMEOUT", "5"))


def _pg_dsn(url: str) -> str:
    """Normalise a SQLAlchemy-style URL to a plain ``postgresql://`` DSN."""
    if url.startswith("postgresql+asyncpg://"):
        url = "postgresql://" + url[len("postgresql+asyncpg://"):]
    return url


async def _timed(service: str, probe: Awaitable[bool]) -> dict[str, Any]:
    start = time.monotonic()
    entry: dict[str, Any] = {"service": service}
    try:
        healthy = await asyncio.wait_for(probe, timeout=CHECK_TIMEOUT)
        entry["status"] = "healthy" if healthy else "unhealthy"
    except Exception as exc:  # any failure marks the service unhealthy
        entry["status"] = "unhealthy"
        entry["error"] = str(exc)
    entry["latency_ms"] = round((time.monotonic() - start) * 1000, 2)
    return entry


# ---------------------------------------------------------------------------
# Probes
# ---------------------------------------------------------------------------

async def probe_app(client: httpx.AsyncClient) -> bool:
    resp = await client.get(f"{APP_URL}/health")
    return resp.status_code == 200


async def probe_postgres() -> bool:
    conn = await asyncpg.connect(_pg_dsn(DATABASE_URL))
    try:
        await conn.fetchval("SELECT count(*) FROM accounts")
    finally:
        await conn.close()
    return True


async def probe_redis() -> bool:
    redis = Redis.from_url(REDIS_URL, decode_responses=True)
    try:
        return bool(await redis.ping())
    finally:
        await redis.close()


async def probe_gemini(client: httpx.AsyncClient) -> bool:
    """Metadata lookup only; never a billable generation call."""
    if not GEMINI_API_KEY:
        raise RuntimeError("GEMINI_API_KEY is not set")
    resp = await client.get(
        f"{GEMINI_API_URL.rstrip('/')}/models/{GEMINI_MODEL}",
        headers={"x-goog-api-key": GEMINI_API_KEY},
    )
    return resp.status_code == 200


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------

async def run_checks() -> list[dict[str, Any]]:
    async with httpx.AsyncClient() as client:
        results = await asyncio.gather(
            _timed("app", probe_app(client)),
            _timed("postgres", probe_postgres()),
            _timed("redis", probe_redis()),
            _timed("gemini", probe_gemini(client)),
        )
    return list(results)


async def main() -> int:
    results = await run_checks()

    json.dump(results, sys.stdout, indent=2)
    sys.stdout.write("\n")

    return 0 if all(r["status"] == "healthy" for r in results) else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
