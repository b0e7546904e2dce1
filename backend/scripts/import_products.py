#!/usr/bin/env python3
"""Replace the product catalog from an .xlsx workbook.

Reads the first worksheet: header row, then category in column A and product
name in column B.

Usage:
  python backend/scripts/import_products.py products.xlsx
  python backend/scripts/import_products.py products.xlsx --dry-run --pretty
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from typing import Any

# Add backend/ to import path when run as a script.
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.config import get_settings
from core.logging import configure_logging
from db.session import AsyncSessionLocal
from receiving.catalog_import import read_product_rows, replace_catalog


async def _import(args: argparse.Namespace) -> dict[str, Any]:
    rows = read_product_rows(args.path)
    summary: dict[str, Any] = {
        "path": args.path,
        "rows_read": len(rows),
        "dry_run": bool(args.dry_run),
    }
    if args.dry_run:
        summary["status"] = "dry_run"
        return summary

    async with AsyncSessionLocal() as db:
        summary["products_imported"] = await replace_catalog(db, rows)
    summary["status"] = "success"
    return summary


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Replace the product catalog from a spreadsheet")
    parser.add_argument("path", help="Path to the .xlsx workbook")
    parser.add_argument("--dry-run", action="store_true", help="Parse the workbook without touching the database")
    parser.add_argument("--pretty", action="store_true", help="Pretty-print JSON output")
    return parser


def main() -> int:
    args = _build_parser().parse_args()
    configure_logging(get_settings())
    if not os.path.isfile(args.path):
        print(json.dumps({"status": "failed", "error": f"File not found: {args.path}"}))
        return 1

    result = asyncio.run(_import(args))
    if args.pretty:
        print(json.dumps(result, indent=2, sort_keys=True))
    else:
        print(json.dumps(result))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
