"""
Batch CSV input.

The header must name at least ``account_uuid``, ``kw`` and ``task_count``
(plus ``task_clickup_ids`` when tracker ids are mandatory). Values may be
quoted to carry embedded commas, e.g. ``kw`` is usually written as
``"[seo local,tiendas online]"``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Union

from geo_writer.exceptions import CsvFormatError
from geo_writer.models import CsvRow
from geo_writer.run_log import get_logger

logger = get_logger("csv_loader")

REQUIRED_COLUMNS = ("account_uuid", "kw", "task_count")
TRACKER_COLUMN = "task_clickup_ids"
SECONDARY_COLUMN = "task_prodline_ids"
MAX_KEYWORDS = 5


def parse_csv_line(line: str) -> List[str]:
    """Split one line on commas outside double quotes. Quotes are dropped."""
    values: List[str] = []
    current: List[str] = []
    in_quotes = False
    for char in line:
        if char == '"':
            in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            values.append("".join(current).strip())
            current = []
        else:
            current.append(char)
    values.append("".join(current).strip())
    return values


def _task_count(value: str) -> int:
    try:
        count = int(value)
    except (TypeError, ValueError):
        return 1
    return count if count > 0 else 1


def load_csv_text(text: str, require_tracker: bool = False) -> List[CsvRow]:
    """Parse CSV text into task descriptors.

    Raises CsvFormatError before reading any row when the header lacks a
    required column; rows without an account or keywords are dropped.
    """
    lines = [line for line in text.splitlines() if line.strip()]
    if len(lines) < 2:
        raise CsvFormatError("CSV must contain a header row and at least one data row")

    headers = [h.strip().strip('"').lower() for h in parse_csv_line(lines[0])]
    required = list(REQUIRED_COLUMNS) + ([TRACKER_COLUMN] if require_tracker else [])
    missing = [column for column in required if column not in headers]
    if missing:
        raise CsvFormatError(
            f"CSV is missing columns: {', '.join(missing)}",
            missing_columns=missing,
            found_columns=headers,
        )

    rows: List[CsvRow] = []
    for number, line in enumerate(lines[1:], start=2):
        values = parse_csv_line(line)
        record: Dict[str, str] = {
            header: (values[i] if i < len(values) else "") for i, header in enumerate(headers)
        }
        account_uuid = record.get("account_uuid", "")
        kw = record.get("kw", "")
        if not account_uuid or not kw:
            logger.warning("CSV line %d dropped: missing account_uuid or kw", number)
            continue
        rows.append(
            CsvRow(
                account_uuid=account_uuid,
                kw=kw,
                task_count=_task_count(record.get("task_count", "")),
                tracker_task_ids=record.get(TRACKER_COLUMN, ""),
                secondary_task_ids=record.get(SECONDARY_COLUMN, ""),
            )
        )

    if not rows:
        raise CsvFormatError("CSV has no valid rows")
    total = sum(row.task_count for row in rows)
    logger.info("CSV loaded: %d accounts, %d articles", len(rows), total)
    return rows


def load_csv(path: Union[str, Path], require_tracker: bool = False) -> List[CsvRow]:
    """Read and parse a CSV file (UTF-8, BOM tolerated)."""
    text = Path(path).read_text(encoding="utf-8-sig")
    return load_csv_text(text, require_tracker=require_tracker)


def parse_keywords(kw: str, limit: int = MAX_KEYWORDS) -> List[str]:
    """Turn a ``kw`` cell such as ``[a, b, c]`` into at most ``limit`` keywords."""
    value = (kw or "").strip()
    if value.startswith("[") and value.endswith("]"):
        value = value[1:-1]
    keywords = [k.strip() for k in value.split(",") if k.strip()][:limit]
    if not keywords:
        raise CsvFormatError("no valid keywords")
    return keywords
