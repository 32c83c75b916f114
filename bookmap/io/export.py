from __future__ import annotations

import csv
import json
import logging
from typing import Any, Iterable

from bookmap.core.models import BOOK_TEXT_FIELDS, BookRecord
from bookmap.io.utils import atomic_write_csv, atomic_write_text

logger = logging.getLogger(__name__)

CATALOG_CSV_FIELDS = ["id", *BOOK_TEXT_FIELDS]


def write_json(payload: Any, out_path: str) -> None:
    def _write(path: str) -> None:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)
            f.write("\n")

    atomic_write_text(_write, out_path)
    logger.debug("Wrote JSON: %s", out_path)


def write_catalog_json(records: Iterable[BookRecord], out_path: str) -> int:
    rows = [r.to_dict() for r in records]
    write_json(rows, out_path)
    logger.info("Wrote catalog JSON: %s rows=%s", out_path, len(rows))
    return len(rows)


def write_catalog_csv(records: Iterable[BookRecord], out_path: str) -> int:
    """Flat CSV of the canonical fields; pass-through extras are left out."""
    records = list(records)

    def _write(path: str) -> None:
        with open(path, "w", newline="", encoding="utf-8") as f:
            w = csv.DictWriter(f, fieldnames=CATALOG_CSV_FIELDS, extrasaction="ignore")
            w.writeheader()
            for r in records:
                row = r.to_dict()
                row["id"] = row.get("id") or ""
                w.writerow(row)

    atomic_write_csv(_write, out_path)
    logger.info("Wrote catalog CSV: %s rows=%s", out_path, len(records))
    return len(records)

