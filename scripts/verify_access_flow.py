#!/usr/bin/env python3
"""
Black Box Verification Script for a Deployed Content Access Gateway.

Sends requests through the authorization pipeline of a running gateway and
checks that each rejection path answers with the expected status and error
code, and that a creator-owned content update gets past authorization.

Usage:
    python scripts/verify_access_flow.py <BASE_URL> <CONTENT_ID>

Environment:
    VERIFY_USER_TOKEN: A valid user token whose user created CONTENT_ID
"""
import asyncio
import os
import sys
from datetime import datetime
from uuid import uuid4

import httpx
from dotenv import load_dotenv

load_dotenv()


def log(message: str):
    """Log with timestamp."""
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    print(f"[{timestamp}] {message}")


def check(response: httpx.Response, status: int, err: str | None) -> bool:
    body = response.json() if response.content else {}
    actual_err = body.get("params", {}).get("err")
    ok = response.status_code == status and (err is None or actual_err == err)
    outcome = "PASS" if ok else "FAIL"
    log(f"{outcome}: status={response.status_code} (expected {status}), err={actual_err} (expected {err})")
    log(f"  correlation id: {response.headers.get('x-correlation-id')}")
    return ok


async def main():
    if len(sys.argv) < 3:
        print("Usage: python scripts/verify_access_flow.py <BASE_URL> <CONTENT_ID>")
        sys.exit(1)

    base_url = sys.argv[1].rstrip("/")
    content_id = sys.argv[2]
    token = os.getenv("VERIFY_USER_TOKEN")

    log("=" * 60)
    log("BLACK BOX VERIFICATION - Content Access Gateway")
    log("=" * 60)
    log(f"Target URL: {base_url}")

    results = []
    update_url = f"{base_url}/v1/content/update/{content_id}"
    body = {"params": {"msgid": str(uuid4())}, "request": {"content": {}}}

    async with httpx.AsyncClient(timeout=30.0) as client:
        try:
            log("\n--- Step 1: Missing token ---")
            response = await client.patch(update_url, json=body)
            results.append(check(response, 401, "ERR_TOKEN_FIELDS_MISSING"))

            log("\n--- Step 2: Invalid token ---")
            response = await client.patch(
                update_url,
                json=body,
                headers={"x-authenticated-user-token": "not-a-token"},
            )
            results.append(check(response, 401, "ERR_TOKEN_INVALID"))

            log("\n--- Step 3: Hierarchy update without hierarchy ---")
            if token:
                response = await client.patch(
                    f"{base_url}/v1/content/hierarchy/update",
                    json={"request": {"data": {}}},
                    headers={"x-authenticated-user-token": token},
                )
                results.append(check(response, 400, "ERR_CONTENT_HIERARCHY_UPDATE_FIELDS_MISSING"))

                log("\n--- Step 4: Creator update ---")
                response = await client.patch(
                    update_url,
                    json=body,
                    headers={"x-authenticated-user-token": token},
                )
                # Authorization passed if the rejection is not a pipeline 401
                passed = response.status_code != 401
                log(f"{'PASS' if passed else 'FAIL'}: status={response.status_code}")
                results.append(passed)
            else:
                log("SKIP: VERIFY_USER_TOKEN not set")

        except httpx.RequestError as e:
            log(f"ERROR: Request failed - {e}")
            sys.exit(1)

    success = all(results)
    log("\n" + "=" * 60)
    log("VERIFICATION PASSED" if success else "VERIFICATION FAILED")
    log("=" * 60)

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    asyncio.run(main())
