#!/usr/bin/env python3
"""E2E demo script

Usage:
    # Terminal 1: Start the API against a scratch vault
    VAULT_ROOT=/tmp/demo-vault uvicorn api.main:app

    # Terminal 2: Run demo (after the API is up)
    python scripts/demo_e2e.py

Environment variables:
    API_URL - Base URL for the API (default: http://localhost:8000)
"""

from __future__ import annotations

import base64
import os
import sys
import time
from datetime import datetime, timezone

import httpx

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

API_URL = os.getenv("API_URL", "http://localhost:8000")
STARTUP_RETRY_SECONDS = 30
STARTUP_RETRY_INTERVAL = 2

# ---------------------------------------------------------------------------
# ANSI colors for terminal output
# ---------------------------------------------------------------------------

GREEN = "\033[92m"
RED = "\033[91m"
YELLOW = "\033[93m"
BOLD = "\033[1m"
RESET = "\033[0m"


def timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def log_info(msg: str) -> None:
    print(f"[{timestamp()}] {msg}")


def log_success(msg: str) -> None:
    print(f"[{timestamp()}] {GREEN}✓ {msg}{RESET}")


def log_fail(msg: str) -> None:
    print(f"[{timestamp()}] {RED}✗ {msg}{RESET}")


def log_warning(msg: str) -> None:
    print(f"[{timestamp()}] {YELLOW}⚠ {msg}{RESET}")


# ---------------------------------------------------------------------------
# Sample data for demo
# ---------------------------------------------------------------------------

# 1x1 transparent PNG
SAMPLE_PNG = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)
# 1x1 GIF
SAMPLE_GIF = base64.b64decode("R0lGODlhAQABAIAAAAAAAP///yH5BAEAAAAALAAAAAABAAEAAAIBRAA7")

DESTINATION = "notes/demo.md"


# ---------------------------------------------------------------------------
# Demo step implementations
# ---------------------------------------------------------------------------

class DemoRunner:
    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip("/")
        self.client = httpx.Client(timeout=30.0)
        self.ids: dict[str, str] = {}
        self.markers: dict[str, str] = {}
        self.failed = False

    def run(self) -> bool:
        log_info(f"{BOLD}Starting E2E demo...{RESET}")
        log_info(f"API URL: {self.base_url}")
        print()

        steps = [
            ("Health check", self.step_health_check),
            ("Upload images", self.step_upload_images),
            ("Dedup re-upload", self.step_dedup),
            ("Resolve images", self.step_resolve),
            ("Review orphans", self.step_review_orphans),
        ]

        for step_name, step_fn in steps:
            try:
                success = step_fn()
                if not success:
                    self.failed = True
                    log_fail(f"Step failed: {step_name}")
                    break
            except Exception as e:
                self.failed = True
                log_fail(f"Step failed: {step_name} — {e}")
                break

        print()
        if self.failed:
            log_fail(f"{BOLD}E2E demo failed!{RESET}")
            return False
        else:
            log_success(f"{BOLD}All checks passed!{RESET}")
            return True

    def step_health_check(self) -> bool:
        log_info("Checking API health...")

        start_time = time.time()
        while time.time() - start_time < STARTUP_RETRY_SECONDS:
            try:
                resp = self.client.get(f"{self.base_url}/health")
                if resp.status_code == 200:
                    log_success("Health check passed")
                    return True
            except httpx.ConnectError:
                pass
            except Exception as e:
                log_warning(f"Health check error: {e}")

            time.sleep(STARTUP_RETRY_INTERVAL)

        log_fail(f"API not healthy after {STARTUP_RETRY_SECONDS}s")
        return False

    def _upload(self, filename: str, data: bytes, content_type: str) -> httpx.Response:
        return self.client.post(
            f"{self.base_url}/images",
            files={"file": (filename, data, content_type)},
            data={"destination": DESTINATION, "multi": "true"},
        )

    def step_upload_images(self) -> bool:
        log_info("Uploading images...")

        for label, data, content_type in [("png", SAMPLE_PNG, "image/png"), ("gif", SAMPLE_GIF, "image/gif")]:
            resp = self._upload(f"demo.{label}", data, content_type)
            if resp.status_code != 201:
                log_fail(f"Expected 201, got {resp.status_code}: {resp.text[:200]}")
                return False
            body = resp.json()
            self.ids[label] = body["id"]
            self.markers[label] = body["marker"]
            log_success(f"Stored {label}: {body['id']}")

        return True

    def step_dedup(self) -> bool:
        log_info("Re-uploading the PNG...")

        resp = self._upload("again.png", SAMPLE_PNG, "image/png")
        if resp.status_code != 201:
            log_fail(f"Expected 201, got {resp.status_code}")
            return False
        if resp.json()["id"] != self.ids["png"]:
            log_fail("Same image stored under a second identifier")
            return False

        log_success("Duplicate resolved to the existing identifier")
        return True

    def step_resolve(self) -> bool:
        log_info("Resolving raw bytes...")

        for label, data in [("png", SAMPLE_PNG), ("gif", SAMPLE_GIF)]:
            resp = self.client.get(f"{self.base_url}/images/{self.ids[label]}/raw")
            if resp.status_code != 200 or resp.content != data:
                log_fail(f"Raw bytes for {label} did not round-trip")
                return False

        log_success("Both images round-trip")
        return True

    def step_review_orphans(self) -> bool:
        log_info("Reviewing orphans with a document that only references the PNG...")

        documents = {DESTINATION: "# Demo\n\n" + self.markers["png"]}
        resp = self.client.post(f"{self.base_url}/gc/reviews", json={"documents": documents})
        if resp.status_code != 201:
            log_fail(f"Expected 201, got {resp.status_code}: {resp.text[:200]}")
            return False

        status = resp.json()
        orphan_ids = []
        while status["state"] == "reviewing":
            current = status["current"]["id"]
            orphan_ids.append(current)
            resp = self.client.post(f"{self.base_url}/gc/reviews/{status['session_id']}/delete")
            status = resp.json()

        if self.ids["gif"] not in orphan_ids or self.ids["png"] in orphan_ids:
            log_fail(f"Unexpected orphans: {orphan_ids}")
            return False

        resp = self.client.get(f"{self.base_url}/images/{self.ids['gif']}")
        if resp.status_code != 404:
            log_fail("Deleted orphan still resolves")
            return False

        log_success(f"Deleted {len(orphan_ids)} orphan(s); referenced image kept")
        return True


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------

def main() -> int:
    runner = DemoRunner(API_URL)
    success = runner.run()
    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
