"""
Rule Parser — turns operator-entered text into structured rules.

Behavioral Contract:
- Never raises on malformed input. Bad lines are dropped, good lines kept.
- Output order follows input order.
- A rendered page must never fail because of a typo in the settings.
"""

import re
from typing import Iterable, List, Optional

from country_blocker.models.rules import ResourceRule, normalize_country

_LINE_BREAK = re.compile(r"\r\n|\n|\r")


def _parse_line(line: str) -> Optional[ResourceRule]:
    """Parse one `identifier|country` line, or None if it is malformed."""
    line = line.strip()
    if not line:
        return None
    identifier, sep, country = line.partition("|")
    if not sep:
        return None
    identifier = identifier.strip()
    country = normalize_country(country)
    if not identifier or not country:
        return None
    return ResourceRule(identifier=identifier, country=country)


def parse_country_specific_rules(raw: Optional[str]) -> List[ResourceRule]:
    """Parse a multi-line rule block. Any line-ending convention is accepted."""
    if not raw:
        return []
    rules = []
    for line in _LINE_BREAK.split(raw):
        rule = _parse_line(line)
        if rule is not None:
            rules.append(rule)
    return rules


def count_rejected_lines(raw: Optional[str]) -> int:
    """Number of non-blank lines the parser would drop."""
    if not raw:
        return 0
    return sum(
        1 for line in _LINE_BREAK.split(raw)
        if line.strip() and _parse_line(line) is None
    )


def parse_blocked_items(raw: Optional[str]) -> List[str]:
    """Split the comma-separated blocked ids/slugs, dropping empty tokens."""
    if not raw:
        return []
    return [token.strip() for token in raw.split(",") if token.strip()]


def serialize_rules(rules: Iterable[ResourceRule]) -> str:
    """Render rules back into the textual form accepted by the parser."""
    return "\n".join(f"{r.identifier}|{r.country}" for r in rules)
