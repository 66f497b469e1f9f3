"""
Rule Store — builds the per-request Configuration from persisted settings.

Read by: Access Gate (once per request)
Fed by: the host's settings persistence
"""

from typing import Protocol

from country_blocker.models.config import BlockerSettings, Configuration
from country_blocker.rules.parser import parse_blocked_items, parse_country_specific_rules


class SettingsSource(Protocol):
    """Anything that can hand out the current settings record."""

    def load(self) -> BlockerSettings: ...


def build_configuration(settings: BlockerSettings) -> Configuration:
    """Parse a settings record into an immutable Configuration."""
    return Configuration(
        blocked_countries=frozenset(settings.blocked_countries),
        blocked_items=frozenset(parse_blocked_items(settings.blocked_items)),
        resource_rules=tuple(
            parse_country_specific_rules(settings.country_specific_rules)
        ),
        redirect_page=settings.redirect_page if settings.redirect_page > 0 else None,
    )


class RuleStore:
    """
    Hands out a freshly parsed Configuration on every call.
    Nothing is cached, so saved settings apply to the very next request.
    """

    def __init__(self, source: SettingsSource):
        self.source = source

    def snapshot(self) -> Configuration:
        return build_configuration(self.source.load())
