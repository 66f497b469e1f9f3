"""Host content records — pages and taxonomy terms."""

from pydantic import BaseModel, Field


class Page(BaseModel):
    """Singular content addressable at /{slug}."""

    id: int = Field(gt=0)
    slug: str
    title: str = ""


class Term(BaseModel):
    """A taxonomy term addressable at /{taxonomy}/{slug}."""

    id: int = Field(gt=0)
    slug: str
    taxonomy: str = "category"              # "category" | "tag"
    name: str = ""
