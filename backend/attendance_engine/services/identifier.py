"""
Identifier resolution service.

Maps biometric/card identifiers from device exports to internal employee ids
using the per-branch directory supplied with the batch.  Device exports pad
enrolment numbers (``00017``), so a lookup falls back to the id with leading
zeros stripped.

When enabled, a record whose identifier is unknown can still be linked by the
person's name using thefuzz.token_sort_ratio against the directory names.
"""

import logging
import re

from thefuzz import fuzz

from attendance_engine.core.config import settings
from attendance_engine.schemas.settings import IdentifierDirectory

logger = logging.getLogger(__name__)

_ws_re = re.compile(r"\s+")


def _clean_name(raw: str) -> str:
    """Strip and collapse whitespace."""
    return _ws_re.sub(" ", raw.strip())


def strip_leading_zeros(identifier: str) -> str:
    stripped = identifier.strip().lstrip("0")
    return stripped or "0"


class IdentifierResolver:
    """Resolve identifiers for one batch, caching every answer it gives."""

    def __init__(
        self,
        directory: IdentifierDirectory,
        *,
        fuzzy_enabled: bool | None = None,
        threshold: int | None = None,
    ) -> None:
        self._exact = {k.strip(): v for k, v in directory.identifiers.items()}
        self._stripped: dict[str, str] = {}
        for key in sorted(self._exact):
            short = strip_leading_zeros(key)
            if short in self._stripped and self._stripped[short] != self._exact[key]:
                logger.warning(
                    "Identifier '%s' collides with another entry after zero-stripping; keeping employee %s",
                    key, self._stripped[short],
                )
                continue
            self._stripped.setdefault(short, self._exact[key])

        self._names = {emp_id: name for emp_id, name in sorted(directory.names.items()) if name}
        self._fuzzy_enabled = settings.FUZZY_NAME_MATCH_ENABLED if fuzzy_enabled is None else fuzzy_enabled
        self._threshold = settings.FUZZY_MATCH_THRESHOLD if threshold is None else threshold
        self._cache: dict[tuple[str, str], str | None] = {}

    def resolve(self, identifier: str, name: str | None = None) -> str | None:
        """
        Return the employee id for ``identifier``, or None when unresolved.

        Args:
            identifier: Biometric or card id exactly as exported by the device.
            name: Person name from the same row; only consulted by the fuzzy
                  fallback.
        """
        key = (identifier.strip(), _clean_name(name) if name else "")
        if key in self._cache:
            return self._cache[key]

        employee_id = self._exact.get(key[0]) or self._stripped.get(strip_leading_zeros(key[0]))
        if employee_id is None and self._fuzzy_enabled and key[1]:
            employee_id = self._match_name(key[1])

        self._cache[key] = employee_id
        return employee_id

    def _match_name(self, cleaned: str) -> str | None:
        best_score = 0
        best_id: str | None = None

        for emp_id, emp_name in self._names.items():
            score = fuzz.token_sort_ratio(cleaned, emp_name)
            if score > best_score:
                best_score = score
                best_id = emp_id

        if best_score >= self._threshold and best_id is not None:
            logger.debug(
                "Name match: '%s' → employee %s (score=%d, threshold=%d)",
                cleaned, best_id, best_score, self._threshold,
            )
            return best_id

        logger.info(
            "No employee for name '%s': best score=%d < threshold=%d",
            cleaned, best_score, self._threshold,
        )
        return None
