"""
Decision Engine — turns (configuration, visitor country, resource) into a Decision.

Behavioral Contract:
- Pure and deterministic: no I/O beyond the injected page resolver
- Total: any input, including an empty configuration, yields a Decision
- Evaluation order: kill switch, resource rules, blocked countries,
  blocked items, allow. The first step that fires wins.
- Every firing step produces the same action (redirect if resolvable,
  otherwise block), so rule order only affects which match is reported.
"""

import logging
from typing import Callable, Optional

from country_blocker.models.config import Configuration
from country_blocker.models.decision import BlockContext, Decision, MatchSource
from country_blocker.models.rules import (
    UNKNOWN_COUNTRY,
    ResourceIdentity,
    ResourceRule,
    normalize_country,
)

logger = logging.getLogger(__name__)

PageResolver = Callable[[int], Optional[str]]


def _is_matchable_country(country: str) -> bool:
    """Unresolved visitors can never match a country condition."""
    return bool(country) and country != UNKNOWN_COUNTRY


def _first_matching_rule(
    config: Configuration,
    country: str,
    resource: ResourceIdentity,
) -> Optional[ResourceRule]:
    """Return the first resource rule that applies to this resource and country."""
    if not resource.has_identity or not config.resource_rules:
        return None
    if not _is_matchable_country(country):
        return None
    for rule in config.resource_rules:
        if rule.applies_to(resource) and rule.country == country:
            return rule
    return None


def _is_blocked_country(config: Configuration, country: str) -> bool:
    return _is_matchable_country(country) and country in config.blocked_countries


def _is_blocked_item(config: Configuration, resource: ResourceIdentity) -> bool:
    return any(key in config.blocked_items for key in resource.item_keys())


def _make_context(visitor_ip: Optional[str], country: str) -> BlockContext:
    return BlockContext(
        ip=visitor_ip or None,
        country=country if _is_matchable_country(country) else None,
    )


class DecisionEngine:
    """
    Evaluates blocking rules for a single request.

    Stateless: one engine may serve any number of concurrent requests.
    """

    def __init__(self, page_resolver: Optional[PageResolver] = None):
        self.page_resolver = page_resolver

    def decide(
        self,
        config: Configuration,
        visitor_country: Optional[str],
        resource: Optional[ResourceIdentity] = None,
        visitor_ip: Optional[str] = None,
    ) -> Decision:
        """
        Evaluate the configuration for one visitor and resource.

        Returns ALLOW, REDIRECT (with URL) or BLOCK (with context).
        """
        # 1. Kill switch: no global country list means the gate is off
        if not config.enabled:
            return Decision.allow()

        country = normalize_country(visitor_country)
        resource = resource or ResourceIdentity()

        # 2. Per-resource country rules
        rule = _first_matching_rule(config, country, resource)
        if rule is not None:
            return self._trigger(
                config, visitor_ip, country, MatchSource.RESOURCE_RULE, rule
            )

        # 3. Globally blocked countries
        if _is_blocked_country(config, country):
            return self._trigger(
                config, visitor_ip, country, MatchSource.BLOCKED_COUNTRY
            )

        # 4. Globally blocked ids/slugs
        if _is_blocked_item(config, resource):
            return self._trigger(
                config, visitor_ip, country, MatchSource.BLOCKED_ITEM
            )

        # 5. Nothing matched
        return Decision.allow()

    def resolve_redirect(self, config: Configuration) -> Optional[str]:
        """URL of the configured redirect page, or None if it cannot be reached."""
        if config.redirect_page is None or self.page_resolver is None:
            return None
        url = self.page_resolver(config.redirect_page)
        return url or None

    def _trigger(
        self,
        config: Configuration,
        visitor_ip: Optional[str],
        country: str,
        matched_by: MatchSource,
        rule: Optional[ResourceRule] = None,
    ) -> Decision:
        """Build the redirect-or-block decision for a firing step."""
        logger.debug(
            "Match on %s (rule=%s, country=%s)",
            matched_by.value,
            f"{rule.identifier}|{rule.country}" if rule else None,
            country or None,
        )
        url = self.resolve_redirect(config)
        if url:
            return Decision.redirect(url, matched_by=matched_by, matched_rule=rule)
        return Decision.block(
            _make_context(visitor_ip, country),
            matched_by=matched_by,
            matched_rule=rule,
        )


def decide(
    config: Configuration,
    visitor_country: Optional[str],
    resource: Optional[ResourceIdentity] = None,
    visitor_ip: Optional[str] = None,
) -> Decision:
    """Evaluate with no page resolver; redirect targets fall back to a block."""
    return DecisionEngine().decide(config, visitor_country, resource, visitor_ip)
