# app/chain/decoding.py
"""
Decoding of FoalForge.getPendingHorse() output.

Depending on the provider and on web3's decode_tuples setting a struct
arrives as a plain tuple, a named tuple, a dict or an AttributeDict, and
numeric leaves as int, str, Decimal or None. Every level is first turned into
a canonical list in ABI field order (name lookup first, index second) and the
records are then built from fixed offsets. Nothing in here raises: an
unreadable leaf becomes 0.
"""
from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from typing import Any, List, Optional, Sequence

from .models import (
    HORSESHOE_SLOTS,
    STAT_FIELDS,
    Horseshoe,
    Number,
    PendingFoal,
    PerformanceStats,
)

logger = logging.getLogger(__name__)

FOAL_FIELDS = ("imgCategory", "imgNumber", "stats", "totalPoints", "extraPackagesBought", "horseshoes")
HORSESHOE_FIELDS = ("imgCategory", "imgNumber", "bonusStats")

_MISSING = object()


def _parse_numeric(text: str) -> Number:
    text = text.strip()
    if not text:
        return 0
    for base in (10, 0):
        try:
            return int(text, base)
        except ValueError:
            pass
    parsed = float(text)
    if not math.isfinite(parsed):
        return 0
    return int(parsed) if parsed.is_integer() else parsed


def to_number(value: Any) -> Number:
    """
    Coerce a numeric leaf to int/float.

    Order: integer -> float -> numeric string -> str(value) -> 0.
    Never raises.
    """
    try:
        if value is None:
            return 0
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            return value if math.isfinite(value) else 0
        if isinstance(value, str):
            return _parse_numeric(value)
        return _parse_numeric(str(value))
    except Exception:
        return 0


def _field(raw: Any, name: Optional[str], index: int) -> Any:
    if raw is None:
        return None
    try:
        if isinstance(raw, Mapping):
            value = raw.get(name) if name is not None else None
            return value if value is not None else raw.get(index)
        if name is not None:
            value = getattr(raw, name, _MISSING)
            if value is not _MISSING and value is not None:
                return value
        if isinstance(raw, (str, bytes)):
            return None
        return raw[index]
    except (IndexError, KeyError, TypeError, AttributeError):
        return None


def canonical(raw: Any, names: Sequence[Optional[str]]) -> List[Any]:
    """Raw values of `raw` in the order of `names`, missing ones as None."""
    return [_field(raw, name, index) for index, name in enumerate(names)]


def decode_stats(raw: Any) -> PerformanceStats:
    values = canonical(raw, STAT_FIELDS)
    return PerformanceStats(**{name: to_number(v) for name, v in zip(STAT_FIELDS, values)})


def decode_horseshoe(raw: Any) -> Horseshoe:
    category, number, bonus = canonical(raw, HORSESHOE_FIELDS)
    return Horseshoe(
        imgCategory=to_number(category),
        imgNumber=to_number(number),
        bonusStats=decode_stats(bonus),
    )


def decode_pending_foal(raw: Any) -> Optional[PendingFoal]:
    """Decoded foal, or None when the account holds none (totalPoints == 0)."""
    category, number, stats, total, extra, shoes = canonical(raw, FOAL_FIELDS)
    total_points = to_number(total)
    if not total_points:
        return None

    slots = canonical(shoes, [None] * HORSESHOE_SLOTS)
    foal = PendingFoal(
        imgCategory=to_number(category),
        imgNumber=to_number(number),
        stats=decode_stats(stats),
        totalPoints=total_points,
        extraPackagesBought=to_number(extra),
        horseshoes=[decode_horseshoe(shoe) for shoe in slots],
    )
    logger.debug("decoded pending foal: %s", foal)
    return foal
