"""Heuristic repair-relevance rules over raw OSM tags.

Rules are evaluated in the order of ``RULES``; the first one that matches
accepts the record.
"""

from typing import Callable, List, NamedTuple, Optional, Sequence

import structlog

from repairfinder.models.dto import RawTagRecord

logger = structlog.get_logger(__name__)

ALLOWED_SHOPS = frozenset(
    {"mobile_phone", "computer", "appliance", "bicycle", "bicycle_repair_station", "watchmaker", "hardware"}
)

REPAIR_KEYWORDS = (
    "repair",
    "service",
    "clinic",
    "fix",
    "workshop",
    "station",
    "center",
    "servicecenter",
    "service center",
)


class Rule(NamedTuple):
    name: str
    predicate: Callable[[RawTagRecord], bool]


def _tag_contains(key: str, needle: str) -> Callable[[RawTagRecord], bool]:
    def predicate(record: RawTagRecord) -> bool:
        return needle in record.tags.get(key, "").lower()
    return predicate


def _has_keyword(text: str) -> bool:
    text = text.lower()
    return any(kw in text for kw in REPAIR_KEYWORDS)


def _allowed_shop(record: RawTagRecord) -> bool:
    return record.primary_type.lower() in ALLOWED_SHOPS


def _name_keyword(record: RawTagRecord) -> bool:
    return _has_keyword(record.name or "")


def _tag_keyword(record: RawTagRecord) -> bool:
    return any(_has_keyword(value) for value in record.tags.values())


RULES: List[Rule] = [
    Rule("craft_repair", _tag_contains("craft", "repair")),
    Rule("amenity_repair", _tag_contains("amenity", "repair")),
    Rule("service_repair", _tag_contains("service", "repair")),
    Rule("allowed_shop", _allowed_shop),
    Rule("name_keyword", _name_keyword),
    Rule("tag_keyword", _tag_keyword),
]


def matching_rule(record: RawTagRecord, rules: Sequence[Rule] = RULES) -> Optional[str]:
    """Name of the first rule accepting ``record``, or None when all reject it."""
    for rule in rules:
        if rule.predicate(record):
            return rule.name
    return None


def is_repair_candidate(record: RawTagRecord) -> bool:
    return matching_rule(record) is not None


def filter_repair_candidates(records: Sequence[RawTagRecord]) -> List[RawTagRecord]:
    """Keep records that look repair-capable.

    When no record passes, the whole input is returned unfiltered: sparse
    areas get loosely related shops rather than an empty list. This trades
    precision for availability on purpose.
    """
    accepted = [r for r in records if is_repair_candidate(r)]
    if records and not accepted:
        logger.info("classifier_fallback", raw_count=len(records))
        return list(records)
    return accepted
