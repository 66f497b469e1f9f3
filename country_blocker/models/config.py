"""Persisted blocker settings and the per-request configuration snapshot."""

from typing import FrozenSet, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, field_validator

from country_blocker.models.rules import UNKNOWN_COUNTRY, ResourceRule, normalize_country


class BlockerSettings(BaseModel):
    """
    The raw settings record owned by the host.

    Sanitized on construction so that anything an operator saves is safe
    to evaluate: country codes are normalized and deduplicated, the geo
    failure sentinel can never be configured, and the redirect page is a
    non-negative page id (0 means show the block message).
    """

    blocked_countries: List[str] = []
    blocked_items: str = ""                 # comma-separated ids/slugs
    redirect_page: int = 0
    country_specific_rules: str = ""        # one "identifier|country" per line

    @field_validator("blocked_countries", mode="before")
    @classmethod
    def _sanitize_countries(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            v = v.split(",")
        elif not isinstance(v, (list, tuple)):
            raise ValueError("blocked_countries must be a list")
        seen = []
        for raw in v:
            code = normalize_country(str(raw))
            if code and code != UNKNOWN_COUNTRY and code not in seen:
                seen.append(code)
        return seen

    @field_validator("blocked_items", "country_specific_rules", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return "" if v is None else v

    @field_validator("redirect_page", mode="before")
    @classmethod
    def _sanitize_redirect_page(cls, v):
        if v in (None, ""):
            return 0
        try:
            page = int(v)
        except (TypeError, ValueError):
            return 0
        return max(page, 0)

    @classmethod
    def default(cls) -> "BlockerSettings":
        """Settings of a fresh install: nothing blocked."""
        return cls(
            blocked_countries=[],
            blocked_items="",
            redirect_page=0,
            country_specific_rules="",
        )


def _as_collection(v, field: str):
    """A single string counts as one entry; other scalars are rejected."""
    if isinstance(v, str):
        return [v]
    if not isinstance(v, (list, tuple, set, frozenset)):
        raise ValueError(f"{field} must be a collection")
    return v


class Configuration(BaseModel):
    """Immutable, parsed view of the settings used for a single decision."""

    model_config = ConfigDict(frozen=True)

    blocked_countries: FrozenSet[str] = frozenset()
    blocked_items: FrozenSet[str] = frozenset()
    resource_rules: Tuple[ResourceRule, ...] = ()
    redirect_page: Optional[int] = None

    @field_validator("blocked_countries", mode="before")
    @classmethod
    def _normalize_countries(cls, v):
        if v is None:
            return frozenset()
        v = _as_collection(v, "blocked_countries")
        codes = (normalize_country(str(raw)) for raw in v)
        return frozenset(code for code in codes if code)

    @field_validator("blocked_items", mode="before")
    @classmethod
    def _strip_items(cls, v):
        if v is None:
            return frozenset()
        v = _as_collection(v, "blocked_items")
        items = (str(raw).strip() for raw in v)
        return frozenset(item for item in items if item)

    @property
    def enabled(self) -> bool:
        """Without a global country list the whole gate is off."""
        return bool(self.blocked_countries)
