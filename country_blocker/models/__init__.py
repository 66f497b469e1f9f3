"""Country Blocker data models."""

from country_blocker.models.config import BlockerSettings, Configuration
from country_blocker.models.content import Page, Term
from country_blocker.models.countries import COUNTRIES, is_known_country
from country_blocker.models.decision import (
    BlockContext,
    Decision,
    DecisionAction,
    MatchSource,
)
from country_blocker.models.rules import (
    UNKNOWN_COUNTRY,
    ResourceIdentity,
    ResourceRule,
    normalize_country,
)

__all__ = [
    "BlockContext",
    "BlockerSettings",
    "COUNTRIES",
    "Configuration",
    "Decision",
    "DecisionAction",
    "MatchSource",
    "Page",
    "ResourceIdentity",
    "ResourceRule",
    "Term",
    "UNKNOWN_COUNTRY",
    "is_known_country",
    "normalize_country",
]
