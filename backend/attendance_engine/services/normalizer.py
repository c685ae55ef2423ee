"""
Event normalizer: raw punch records → canonical PunchEvent objects.

Each record is checked in order (identifier, timestamp, direction, directory
lookup).  The first failed check produces a NormalizationError and the record
is skipped; the rest of the batch is processed normally.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import pandas as pd

from attendance_engine.core.config import settings
from attendance_engine.core.exceptions import BatchStructureError
from attendance_engine.schemas.attendance import NormalizationError, NormalizationReason, PunchEvent, RawPunchRecord
from attendance_engine.schemas.settings import IdentifierDirectory
from attendance_engine.services.directions import DirectionVocabulary, default_vocabulary
from attendance_engine.services.identifier import IdentifierResolver

logger = logging.getLogger(__name__)


def load_zone(name: str | None = None) -> ZoneInfo:
    """ZoneInfo for ``name`` (or ORG_TIMEZONE); an unknown zone is a batch-level error."""
    zone_name = name or settings.ORG_TIMEZONE
    try:
        return ZoneInfo(zone_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise BatchStructureError(f"Unknown timezone '{zone_name}'") from exc


def parse_timestamp(value: datetime | str, tz: ZoneInfo, *, dayfirst: bool = False) -> datetime | None:
    """
    Parse a device timestamp.  Naive values are local to ``tz``; aware values
    keep their offset.  Returns None when the value cannot be parsed.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            stamp = pd.to_datetime(value, dayfirst=dayfirst)
        except (ValueError, TypeError, OverflowError):
            return None
        if pd.isna(stamp):
            return None
        parsed = stamp.to_pydatetime()

    if parsed.tzinfo is None or parsed.tzinfo.utcoffset(parsed) is None:
        return parsed.replace(tzinfo=tz)
    return parsed


def _error(reason: NormalizationReason, message: str, record: RawPunchRecord) -> NormalizationError:
    where = f"Row {record.row}: " if record.row is not None else ""
    logger.warning("Skipped: %s%s (identifier='%s')", where, message, record.identifier or "")
    return NormalizationError(reason=reason, message=f"{where}{message}", raw_record=record)


def normalize(
    raw_records: Iterable[RawPunchRecord],
    directory: IdentifierDirectory,
    *,
    tz: ZoneInfo | None = None,
    vocabulary: DirectionVocabulary | None = None,
    direction_overrides: Mapping[str, str] | None = None,
    dayfirst: bool | None = None,
    fuzzy_enabled: bool | None = None,
    fuzzy_threshold: int | None = None,
) -> tuple[list[PunchEvent], list[NormalizationError]]:
    """
    Turn raw records into punch events.

    Args:
        raw_records: Rows read from a device file or structured event objects.
        directory: Biometric/card id → employee id lookup for the branch.
        tz: Zone applied to naive timestamps (default: ORG_TIMEZONE).
        vocabulary: Direction vocabulary; built from settings when omitted.
        direction_overrides: Extra label → direction entries for this call.
        dayfirst: Read ambiguous dates as day-first (default: DAYFIRST).

    Returns:
        (events, errors) in input order.
    """
    tz = tz or load_zone()
    if vocabulary is None:
        vocabulary = default_vocabulary(direction_overrides)
    elif direction_overrides:
        vocabulary = vocabulary.with_overrides(direction_overrides)
    dayfirst = settings.DAYFIRST if dayfirst is None else dayfirst
    resolver = IdentifierResolver(directory, fuzzy_enabled=fuzzy_enabled, threshold=fuzzy_threshold)

    events: list[PunchEvent] = []
    errors: list[NormalizationError] = []
    total = 0

    for record in raw_records:
        total += 1

        if not record.identifier:
            errors.append(_error("MissingIdentifier", "no employee identifier", record))
            continue

        if record.timestamp is None or record.timestamp == "":
            errors.append(_error("MissingTimestamp", "no timestamp", record))
            continue

        timestamp = parse_timestamp(record.timestamp, tz, dayfirst=dayfirst)
        if timestamp is None:
            errors.append(_error("MalformedTimestamp", f"unparseable timestamp '{record.timestamp}'", record))
            continue

        direction = vocabulary.resolve(record.direction, record.mode)
        if direction is None:
            errors.append(_error("UnknownDirection", f"unknown direction '{record.direction}'", record))
            continue

        employee_id = resolver.resolve(record.identifier, record.name)
        if employee_id is None:
            errors.append(_error("UnresolvedIdentifier", f"identifier '{record.identifier}' not in directory", record))
            continue

        events.append(
            PunchEvent(
                employee_id=employee_id,
                timestamp=timestamp,
                direction=direction,
                mode=record.mode or "",
                device_id=record.device_id or "",
                source_identifier=record.identifier,
            )
        )

    logger.info("Normalized: records=%d, events=%d, skipped=%d", total, len(events), len(errors))
    return events, errors
