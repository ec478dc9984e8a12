"""
Parser for the Hotmart external reference.

The checkout link carries "storeId|planId|userId" as the purchase's
external reference and Hotmart echoes it back in every webhook. This is
the only place that splits it.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

REFERENCE_SEPARATOR = "|"
REFERENCE_SEGMENTS = 3


class ReferenceParseFailure(str, Enum):
    """Why a reference could not be used."""
    MISSING = "missing"              # no reference in the payload
    MISSING_STORE = "missing_store"  # store segment empty


@dataclass(frozen=True)
class ExternalReference:
    store_id: Optional[str] = None
    plan_id: Optional[str] = None
    user_id: Optional[str] = None


@dataclass(frozen=True)
class ReferenceParseResult:
    """
    Tagged parse result.

    reference always holds the best-effort fields so failed deliveries
    can still be attributed in the event log.
    """
    reference: ExternalReference
    failure: Optional[ReferenceParseFailure] = None
    # Segments after userId, ignored
    extra_segments: Tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.failure is None


def _segment(value: str) -> Optional[str]:
    value = value.strip()
    return value or None


def parse_external_reference(raw: Optional[str]) -> ReferenceParseResult:
    """
    Parse "storeId|planId|userId".

    Missing trailing segments become None (the plan falls back and the
    user is optional). Segments after the third are ignored and
    returned in extra_segments.
    """
    if raw is None or not str(raw).strip():
        return ReferenceParseResult(ExternalReference(), ReferenceParseFailure.MISSING)

    parts = str(raw).split(REFERENCE_SEPARATOR)
    padded = (parts + [""] * REFERENCE_SEGMENTS)[:REFERENCE_SEGMENTS]
    reference = ExternalReference(*(_segment(p) for p in padded))
    extra = tuple(parts[REFERENCE_SEGMENTS:])

    if reference.store_id is None:
        return ReferenceParseResult(reference, ReferenceParseFailure.MISSING_STORE, extra)

    return ReferenceParseResult(reference, extra_segments=extra)
