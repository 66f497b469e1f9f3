"""Blocking rules and the identity of the resource being requested."""

from typing import List, Optional

from pydantic import BaseModel, field_validator

UNKNOWN_COUNTRY = "UNKNOWN"


def normalize_country(raw: Optional[str]) -> str:
    """Trim and uppercase a country code. None becomes an empty string."""
    if raw is None:
        return ""
    return raw.strip().upper()


class ResourceIdentity(BaseModel):
    """
    Identifies the content being requested.

    Singular content and taxonomy terms carry both facets; the home page
    and archives carry neither.
    """

    numeric_id: Optional[int] = None
    slug: Optional[str] = None

    @property
    def has_identity(self) -> bool:
        return self.numeric_id is not None or bool(self.slug)

    def item_keys(self) -> List[str]:
        """Keys matched against the blocked items list."""
        keys = []
        if self.numeric_id is not None:
            keys.append(str(self.numeric_id))
        if self.slug:
            keys.append(self.slug)
        return keys


class ResourceRule(BaseModel):
    """A (resource identifier, country) pair. Both must match to fire."""

    identifier: str                         # numeric id or slug
    country: str                            # normalized ISO code

    @field_validator("identifier")
    @classmethod
    def _strip_identifier(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("identifier must not be empty")
        return v

    @field_validator("country")
    @classmethod
    def _normalize_country(cls, v: str) -> str:
        v = normalize_country(v)
        if not v:
            raise ValueError("country must not be empty")
        return v

    @property
    def is_numeric(self) -> bool:
        """ASCII digits only; signs, decimals and exponents are slugs."""
        return self.identifier.isascii() and self.identifier.isdigit()

    def applies_to(self, resource: ResourceIdentity) -> bool:
        """Numeric identifiers match the id, everything else matches the slug."""
        if self.is_numeric:
            return (
                resource.numeric_id is not None
                and int(self.identifier) == resource.numeric_id
            )
        return resource.slug is not None and self.identifier == resource.slug
