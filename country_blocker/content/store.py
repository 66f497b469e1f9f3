"""
Content Store — the host's pages and taxonomy terms.

Queried by: Access Gate (resource identity of a path) and the Decision
Engine's page resolver (permalink of the redirect page).
"""

from typing import Dict, List, Optional, Tuple

from country_blocker.models.content import Page, Term
from country_blocker.models.rules import ResourceIdentity

TAXONOMIES = ("category", "tag")


class ContentStore:
    """
    In-memory content registry.
    """

    def __init__(self):
        self._pages: Dict[int, Page] = {}
        self._terms: Dict[int, Term] = {}

    def add_page(self, page: Page) -> Page:
        self._pages[page.id] = page
        return page

    def add_term(self, term: Term) -> Term:
        if term.taxonomy not in TAXONOMIES:
            raise ValueError(f"Unsupported taxonomy: {term.taxonomy}")
        self._terms[term.id] = term
        return term

    def remove_page(self, page_id: int) -> bool:
        """Delete a page. Returns False if it did not exist."""
        return self._pages.pop(page_id, None) is not None

    def get_page(self, page_id: int) -> Optional[Page]:
        return self._pages.get(page_id)

    def list_pages(self) -> List[Page]:
        return sorted(self._pages.values(), key=lambda p: p.id)

    def get_page_by_slug(self, slug: str) -> Optional[Page]:
        return next((p for p in self._pages.values() if p.slug == slug), None)

    def get_term_by_slug(self, taxonomy: str, slug: str) -> Optional[Term]:
        return next(
            (t for t in self._terms.values() if t.taxonomy == taxonomy and t.slug == slug),
            None,
        )

    def permalink(self, page_id: int) -> Optional[str]:
        """Public path of a page, or None if the page no longer exists."""
        page = self._pages.get(page_id)
        return f"/{page.slug}" if page else None

    def resolve_identity(self, path: str) -> ResourceIdentity:
        """
        Map a request path to the content it addresses.

        /{slug} is a page, /{taxonomy}/{slug} is a term. Anything else,
        including the home page, has no identity.
        """
        page, term = self._lookup(path)
        if page:
            return ResourceIdentity(numeric_id=page.id, slug=page.slug)
        if term:
            return ResourceIdentity(numeric_id=term.id, slug=term.slug)
        return ResourceIdentity()

    def _lookup(self, path: str) -> Tuple[Optional[Page], Optional[Term]]:
        parts = [p for p in path.split("/") if p]
        if len(parts) == 1:
            return self.get_page_by_slug(parts[0]), None
        if len(parts) == 2 and parts[0] in TAXONOMIES:
            return None, self.get_term_by_slug(parts[0], parts[1])
        return None, None
