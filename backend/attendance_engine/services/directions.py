"""
Punch direction vocabulary.

Devices label punches inconsistently: ZKTeco-style exports carry an explicit
``In/Out`` column (``DutyOn``/``DutyOff``, ``BreakIn``...), other sources only
a free-text mode or event type.  All of that is funnelled through one mapping
so the heuristic lives in a single place and can be overridden per
organization.

Rules:
  - an explicit direction value must be in the vocabulary, otherwise the
    record is rejected (``None`` is returned);
  - without an explicit value the mode decides: known exit words map to
    ``out``, anything else falls back to the default (``in``).
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from attendance_engine.core.config import settings
from attendance_engine.schemas.attendance import Direction

_sep_re = re.compile(r"[\s_\-]+")

EXPLICIT_DIRECTIONS: dict[str, Direction] = {
    "in": "in",
    "out": "out",
    "i": "in",
    "o": "out",
    "entry": "in",
    "exit": "out",
    "dutyon": "in",
    "dutyoff": "out",
    "checkin": "in",
    "checkout": "out",
    "clockin": "in",
    "clockout": "out",
    "breakin": "in",
    "breakout": "out",
    "overtimein": "in",
    "overtimeout": "out",
    "overtimeon": "in",
    "overtimeoff": "out",
}

MODE_DIRECTIONS: dict[str, Direction] = {
    "exit": "out",
    "out": "out",
    "clockout": "out",
    "checkout": "out",
    "dutyoff": "out",
    "breakout": "out",
    "overtimeout": "out",
    "overtimeoff": "out",
}

DEFAULT_DIRECTION: Direction = "in"


def direction_key(raw: str) -> str:
    """Case/separator-insensitive lookup key: ``"Clock-Out"`` → ``"clockout"``."""
    return _sep_re.sub("", raw.strip().lower())


def _parse_override_value(raw: str) -> Direction:
    value = EXPLICIT_DIRECTIONS.get(direction_key(raw))
    if value is None:
        raise ValueError(f"Direction override must map to 'in' or 'out', got '{raw}'")
    return value


@dataclass(frozen=True)
class DirectionVocabulary:
    explicit: Mapping[str, Direction] = field(default_factory=lambda: MappingProxyType(dict(EXPLICIT_DIRECTIONS)))
    modes: Mapping[str, Direction] = field(default_factory=lambda: MappingProxyType(dict(MODE_DIRECTIONS)))
    default: Direction = DEFAULT_DIRECTION

    def from_explicit(self, raw: str) -> Direction | None:
        return self.explicit.get(direction_key(raw))

    def from_mode(self, raw: str | None) -> Direction:
        if not raw:
            return self.default
        return self.modes.get(direction_key(raw), self.default)

    def resolve(self, direction: str | None, mode: str | None) -> Direction | None:
        if direction:
            return self.from_explicit(direction)
        return self.from_mode(mode)

    def with_overrides(self, overrides: Mapping[str, str]) -> DirectionVocabulary:
        """Return a copy where each override label maps to the given direction.

        Overrides apply to both the explicit field and the mode column.
        """
        if not overrides:
            return self
        extra = {direction_key(label): _parse_override_value(value) for label, value in overrides.items()}
        return DirectionVocabulary(
            explicit=MappingProxyType({**self.explicit, **extra}),
            modes=MappingProxyType({**self.modes, **extra}),
            default=self.default,
        )


def default_vocabulary(overrides: Mapping[str, str] | None = None) -> DirectionVocabulary:
    """Built-in vocabulary + ``DIRECTION_OVERRIDES`` from settings + per-call overrides."""
    vocabulary = DirectionVocabulary().with_overrides(settings.DIRECTION_OVERRIDES)
    return vocabulary.with_overrides(overrides or {})
