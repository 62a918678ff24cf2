#!/usr/bin/env python3
"""
Upload transformed chapter records to the edge gateway.

Batch producers write one JSON document per chapter (``chapter_{n}.json`` or
``{n}.json``) into a directory. This helper posts them to the gateway's
``/kv/populate`` route in batches and prints the aggregated outcome, so record
producers never need direct access to the backing store.
"""

import argparse
import asyncio
import json
import os
import re
import sys
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Tuple

import httpx


FILE_PATTERN = re.compile(r"^(?:chapter_)?(\d+)\.json$")


def discover_records(directory: Path) -> Tuple[Dict[str, Any], Dict[str, str]]:
    """Load chapter documents keyed by chapter id.

    ``chapter_{n}.json`` wins over ``{n}.json`` when both exist. Files that do
    not parse are returned separately as failures.
    """
    records: Dict[str, Any] = {}
    unreadable: Dict[str, str] = {}

    candidates = []
    for path in directory.iterdir():
        match = FILE_PATTERN.match(path.name)
        if match and path.is_file():
            candidates.append((int(match.group(1)), path.name.startswith("chapter_"), path))

    for chapter, _, path in sorted(candidates):
        try:
            records[str(chapter)] = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            records.pop(str(chapter), None)
            unreadable[str(chapter)] = f"Unreadable file {path.name}: {exc}"
        else:
            unreadable.pop(str(chapter), None)

    return records, unreadable


def batched(records: Dict[str, Any], batch_size: int) -> Iterator[Dict[str, Any]]:
    items = list(records.items())
    batch_size = max(batch_size, 1)
    for start in range(0, len(items), batch_size):
        yield dict(items[start:start + batch_size])


async def populate(
    base_url: str,
    records: Dict[str, Any],
    *,
    batch_size: int = 10,
    timeout: float = 30.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> dict:
    """Post records in batches and aggregate the per-chapter results."""
    summary: Dict[str, Any] = {"success": 0, "failed": 0, "chapters": {}}

    async with httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport) as client:
        for batch in batched(records, batch_size):
            try:
                response = await client.post("/kv/populate", json={"chapters": batch})
                response.raise_for_status()
                results = response.json().get("results", {})
            except (httpx.HTTPError, ValueError) as exc:
                summary["failed"] += len(batch)
                for chapter in batch:
                    summary["chapters"][chapter] = f"Request failed: {exc}"
                continue

            summary["success"] += int(results.get("success", 0))
            summary["failed"] += int(results.get("failed", 0))
            summary["chapters"].update(results.get("chapters", {}))

    return summary


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Upload chapter records to the edge gateway.")
    parser.add_argument("directory", type=Path, help="Directory holding chapter_{n}.json files")
    parser.add_argument("--url", default=os.getenv("GATEWAY_URL", "http://localhost:8787"), help="Gateway base URL")
    parser.add_argument("--batch-size", type=int, default=10, help="Chapters per /kv/populate request")
    parser.add_argument("--timeout", type=float, default=30.0, help="Per-request timeout in seconds")
    parser.add_argument("--dry-run", action="store_true", help="List the chapters that would be uploaded")
    parser.add_argument("--output", type=Path, default=None, help="Optional path to write JSON summary")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = _parse_args(argv)
    if not args.directory.is_dir():
        print(f"[populate] not a directory: {args.directory}", file=sys.stderr)
        return 2

    records, unreadable = discover_records(args.directory)

    if args.dry_run:
        print("[populate] DRY RUN - no uploads executed")
        print(json.dumps({"chapters": sorted(records, key=int), "unreadable": unreadable}, indent=2))
        return 0

    try:
        summary = asyncio.run(populate(args.url, records, batch_size=args.batch_size, timeout=args.timeout))
    except KeyboardInterrupt:
        return 130

    summary["failed"] += len(unreadable)
    summary["chapters"].update(unreadable)

    print(json.dumps(summary, indent=2))

    if args.output:
        args.output.write_text(json.dumps(summary, indent=2))

    return 0 if summary["failed"] == 0 else 1


if __name__ == "__main__":
    raise SystemExit(main())
