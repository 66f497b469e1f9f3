"""Decision — output of the Decision Engine for one request."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel

from country_blocker.models.rules import ResourceRule


class DecisionAction(str, Enum):
    ALLOW = "allow"
    REDIRECT = "redirect"
    BLOCK = "block"


class MatchSource(str, Enum):
    """Which evaluation step fired first."""
    RESOURCE_RULE = "resource_rule"
    BLOCKED_COUNTRY = "blocked_country"
    BLOCKED_ITEM = "blocked_item"


class BlockContext(BaseModel):
    """Details shown to a blocked visitor. Absent when resolution failed."""
    ip: Optional[str] = None
    country: Optional[str] = None


class Decision(BaseModel):
    """The engine's ruling: allow, redirect to a URL, or block with context."""

    action: DecisionAction
    redirect_url: Optional[str] = None
    context: Optional[BlockContext] = None
    matched_by: Optional[MatchSource] = None
    matched_rule: Optional[ResourceRule] = None   # set for resource rule matches

    @classmethod
    def allow(cls) -> "Decision":
        return cls(action=DecisionAction.ALLOW)

    @classmethod
    def redirect(
        cls,
        url: str,
        matched_by: Optional[MatchSource] = None,
        matched_rule: Optional[ResourceRule] = None,
    ) -> "Decision":
        return cls(
            action=DecisionAction.REDIRECT,
            redirect_url=url,
            matched_by=matched_by,
            matched_rule=matched_rule,
        )

    @classmethod
    def block(
        cls,
        context: BlockContext,
        matched_by: Optional[MatchSource] = None,
        matched_rule: Optional[ResourceRule] = None,
    ) -> "Decision":
        return cls(
            action=DecisionAction.BLOCK,
            context=context,
            matched_by=matched_by,
            matched_rule=matched_rule,
        )

    @property
    def is_allowed(self) -> bool:
        return self.action == DecisionAction.ALLOW
