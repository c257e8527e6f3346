#!/usr/bin/env python3
"""End-to-end smoke run against a live relay.

Steps:
- wait for /api/status to report online
- generate an API key
- export a scene (built-in sample or --scene file)
- import the exported bytes back with source=file and compare
- delete the key
- emit a compact summary and exit code
"""
from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import httpx

from relay.logging_conf import get_logger, setup_logging
from runner.cli import parse_args
from runner.client import delete_key, export_scene, generate_key, reimport_file, wait_for_status
from runner.utils import load_scene, summarize

setup_logging()
logger = get_logger("runner")


async def run_smoke(
    *, base_url: str, scene_path: str | None = None, name: str = "SmokeModel", timeout_s: float = 20.0
) -> int:
    await wait_for_status(base_url, timeout_s=timeout_s)
    scene = load_scene(scene_path)
    async with httpx.AsyncClient(base_url=base_url, timeout=timeout_s) as client:
        key = await generate_key(client, username="smoke-runner")
        exported = await export_scene(client, key, scene, name=name)
        reimported = await reimport_file(client, key, exported.file_data)
        deleted = await delete_key(client, key)
    summary, exit_code = summarize(
        exported=exported, reimported=reimported, deleted=deleted, check_tags=scene_path is None
    )
    logger.info("runner.summary", extra=summary)
    return exit_code


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    code = asyncio.run(
        run_smoke(
            base_url=args.base_url,
            scene_path=str(Path(args.scene)) if args.scene else None,
            name=args.name,
            timeout_s=args.timeout,
        )
    )
    raise SystemExit(code)


if __name__ == "__main__":
    main()
