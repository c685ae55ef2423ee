"""
Reader for raw attendance batch files.

Supports the tab-separated text export of biometric terminals, comma
separated files and Excel workbooks.

Expected columns (case-insensitive, any of the aliases):
  EnNo / employee no / identifier / card id / badge
  DateTime / timestamp / date/time / time
  Name            (optional)
  Mode            (optional, verify mode or event type)
  In/Out          (optional, explicit direction)
  Device / TMNo   (optional)

The reader only splits the file into ``RawPunchRecord`` rows; validation of
identifiers, timestamps and directions is the normalizer's job.
"""

from __future__ import annotations

import io
import logging
from typing import IO

import pandas as pd

from attendance_engine.core.config import settings
from attendance_engine.core.exceptions import BatchStructureError
from attendance_engine.schemas.attendance import RawPunchRecord

logger = logging.getLogger(__name__)

COLUMN_ALIASES: dict[str, list[str]] = {
    "identifier": [
        "enno", "en no", "employee no", "employee_no", "emp no", "empno",
        "identifier", "biometric id", "card id", "card_id", "badge", "badge_id",
    ],
    "timestamp": [
        "datetime", "date_time", "date/time", "date time", "timestamp", "time",
    ],
    "name": ["name", "full_name", "employee name"],
    "mode": ["mode", "verify mode", "event_type", "eventtype", "event type"],
    "direction": ["in/out", "inout", "in_out", "direction"],
    "device_id": ["device", "device_id", "deviceid", "tmno", "machine", "terminal"],
}

REQUIRED_COLUMNS: tuple[str, ...] = ("identifier", "timestamp")

# Flat set of all known aliases, used for header row detection
_ALL_ALIASES: frozenset[str] = frozenset(
    alias for aliases in COLUMN_ALIASES.values() for alias in aliases
)

_EXCEL_EXTENSIONS = {".xlsx", ".xls"}


def file_extension(filename: str | None) -> str:
    if not filename:
        return ""
    idx = filename.rfind(".")
    return filename[idx:].lower() if idx != -1 else ""


def _find_header_row(rows: list[list[object]]) -> int:
    """
    Return the 0-based index of the row among the first 20 that contains the
    most column-alias matches.  Exports sometimes carry a title block above
    the real header.
    """
    best_row, best_score = 0, 0
    for row_idx, row in enumerate(rows[:20]):
        score = sum(
            1 for cell in row
            if isinstance(cell, str) and cell.lower().strip() in _ALL_ALIASES
        )
        if score > best_score:
            best_score = score
            best_row = row_idx

    return best_row if best_score >= 2 else 0


def _skip_bad_line(fields: list[str]) -> None:
    logger.warning("Malformed line skipped: %s", fields)
    return None


def _read_frame(file: IO[bytes], ext: str, delimiter: str) -> tuple[pd.DataFrame, int]:
    if ext in _EXCEL_EXTENSIONS:
        head = pd.read_excel(file, engine="openpyxl", dtype=str, nrows=20, header=None)
        file.seek(0)
        header_row = _find_header_row(head.values.tolist())
        return pd.read_excel(file, engine="openpyxl", dtype=str, header=header_row), header_row

    text = file.read().decode("utf-8-sig")
    header_row = _find_header_row([line.split(delimiter) for line in text.splitlines()[:20]])
    df = pd.read_csv(
        io.StringIO(text), sep=delimiter, dtype=str, skiprows=header_row, header=0,
        engine="python", on_bad_lines=_skip_bad_line, skip_blank_lines=True,
    )
    return df, header_row


def _normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Rename DataFrame columns to canonical names using COLUMN_ALIASES."""
    lower_cols = {str(c).lower().strip(): c for c in df.columns}
    rename_map: dict[str, str] = {}
    for canonical, aliases in COLUMN_ALIASES.items():
        for alias in aliases:
            if alias in lower_cols:
                rename_map[lower_cols[alias]] = canonical
                break
    return df.rename(columns=rename_map)


def _clean_cell(value: object) -> str:
    """Normalize pandas NaN placeholders to empty string."""
    text = str(value if value is not None else "").strip()
    return "" if text.lower() in ("nan", "none", "nat") else text


def _is_repeated_header(value: str) -> bool:
    return value.lower().strip() in _ALL_ALIASES


def read_punch_file(
    file: IO[bytes],
    filename: str = "",
    *,
    delimiter: str | None = None,
) -> list[RawPunchRecord]:
    """
    Split an uploaded batch file into raw records.

    Raises BatchStructureError when the file cannot be opened or lacks the
    identifier/timestamp columns: without them no row can be used.
    """
    ext = file_extension(filename)
    if delimiter is None:
        delimiter = "," if ext == ".csv" else settings.DEFAULT_DELIMITER

    try:
        df, header_row = _read_frame(file, ext, delimiter)
    except Exception as exc:
        raise BatchStructureError(f"Could not read attendance file '{filename}': {exc}") from exc

    df = _normalize_columns(df)

    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise BatchStructureError(f"Missing required columns: {', '.join(missing)}")

    # header_row is 0-based; first data line is header_row + 2 in 1-based numbering
    records: list[RawPunchRecord] = []
    skipped_empty = 0
    skipped_header = 0

    for i, row in enumerate(df.to_dict(orient="records"), start=header_row + 2):
        cells = {key: _clean_cell(row.get(key)) for key in COLUMN_ALIASES}

        if not any(cells.values()):
            skipped_empty += 1
            continue

        if _is_repeated_header(cells["timestamp"]):
            skipped_header += 1
            logger.debug("Row %d: repeated header, skipped (timestamp='%s')", i, cells["timestamp"])
            continue

        records.append(
            RawPunchRecord(
                identifier=cells["identifier"],
                name=cells["name"],
                mode=cells["mode"],
                direction=cells["direction"],
                timestamp=cells["timestamp"] or None,
                device_id=cells["device_id"],
                row=i,
            )
        )

    logger.info(
        "Read '%s': records=%d (empty=%d, headers=%d)",
        filename or "<text>", len(records), skipped_empty, skipped_header,
    )
    return records


def read_punch_text(content: str, *, delimiter: str | None = None) -> list[RawPunchRecord]:
    """Same as read_punch_file for file content already held as text."""
    return read_punch_file(io.BytesIO(content.encode("utf-8")), "batch.txt", delimiter=delimiter)
