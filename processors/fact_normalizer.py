"""Normalization of raw fact records at the ingestion boundary.

Models name the fact text differently from run to run ("content", "text",
"fact", "description"). Everything downstream sees a single ``Fact`` shape
with a non-empty ``content``.
"""

import logging
from typing import Any, Iterable, Optional

from schemas.fact import Fact, FactType

logger = logging.getLogger(__name__)

CONTENT_FIELDS = ("content", "text", "fact", "description")

_TYPE_ALIASES = {
    "promo": FactType.PROMO_CODE,
    "coupon": FactType.PROMO_CODE,
    "returns": FactType.RETURN_POLICY,
    "return": FactType.RETURN_POLICY,
    "price_adjustment": FactType.PRICE_MATCH,
    "financing": FactType.PAYMENT,
    "sale": FactType.SALES_CALENDAR,
    "sales": FactType.SALES_CALENDAR,
}


def normalize_type(value: Any) -> FactType:
    """Map a model-supplied type label onto FactType, defaulting to OTHER."""
    if isinstance(value, FactType):
        return value
    if not isinstance(value, str):
        return FactType.OTHER
    key = value.strip().lower().replace(" ", "_").replace("-", "_")
    try:
        return FactType(key)
    except ValueError:
        return _TYPE_ALIASES.get(key, FactType.OTHER)


def normalize_fact(raw: Any) -> Optional[Fact]:
    """Coerce one raw record into a Fact. Returns None if it carries no text."""
    if isinstance(raw, Fact):
        return raw if raw.content.strip() else None

    if isinstance(raw, str):
        content = raw.strip()
        return Fact(content=content) if content else None

    if not isinstance(raw, dict):
        return None

    content = ""
    for field_name in CONTENT_FIELDS:
        value = raw.get(field_name)
        if isinstance(value, str) and value.strip():
            content = value.strip()
            break
    if not content:
        return None

    source = raw.get("source")
    return Fact(
        type=normalize_type(raw.get("type")),
        content=content,
        source=source if isinstance(source, str) else None,
    )


def normalize_facts(raw_items: Iterable[Any]) -> list[Fact]:
    """Normalize a sequence of raw records, dropping ones without text."""
    facts = []
    dropped = 0
    for raw in raw_items:
        fact = normalize_fact(raw)
        if fact is None:
            dropped += 1
            continue
        facts.append(fact)
    if dropped:
        logger.debug("Dropped %d fact records with no usable text", dropped)
    return facts
