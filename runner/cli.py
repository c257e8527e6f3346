from __future__ import annotations

import argparse
import os


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse CLI arguments for the smoke runner."""
    parser = argparse.ArgumentParser(description="Roblox relay smoke runner")
    parser.add_argument("--base-url", default=os.getenv("BASE_URL", "http://127.0.0.1:10000"))
    parser.add_argument("--scene", default=None, help="JSON scene file; defaults to a built-in sample")
    parser.add_argument("--name", default="SmokeModel")
    parser.add_argument("--timeout", type=float, default=20.0)
    return parser.parse_args(argv)
