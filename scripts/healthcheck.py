#!/usr/bin/env python
"""Container healthcheck: the TuneBox API must be ready and its database reachable."""

import os
import sys

import requests


def main() -> int:
    host = os.getenv("HEALTHCHECK_HOST", "127.0.0.1")
    port = os.getenv("PORT", "5000")
    base = f"http://{host}:{port}"
    try:
        ready = requests.get(f"{base}/readyz", timeout=5)
        if ready.status_code != 200:
            return 1
        health = requests.get(f"{base}/healthz", timeout=5)
    except requests.RequestException:
        return 1
    # Missing Spotify credentials still count as healthy (fallback catalogue)
    return 0 if health.status_code == 200 and health.json().get("status") == "ok" else 1


if __name__ == "__main__":
    sys.exit(main())
