"""
Country Blocker API — FastAPI host application.

A minimal content site with the Access Gate in front of it:
- Public content (home, pages, category and tag archives), gated
- Settings administration, exempt from the gate
- Manual decision evaluation over REST, exempt from the gate
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from country_blocker.content.store import ContentStore
from country_blocker.engine.decision import DecisionEngine
from country_blocker.gate.access import AccessGate, AccessGateMiddleware, GateConfig
from country_blocker.geo.resolver import GeoResolver, IpInfoGeoResolver
from country_blocker.models.config import BlockerSettings
from country_blocker.models.countries import COUNTRIES
from country_blocker.models.rules import ResourceIdentity
from country_blocker.rules.parser import (
    count_rejected_lines,
    parse_country_specific_rules,
    serialize_rules,
)
from country_blocker.rules.store import RuleStore
from country_blocker.settings.store import SettingsStore


# --- Request/Response Models ---

class RulePreviewRequest(BaseModel):
    raw: str = ""


class DecideRequest(BaseModel):
    ip: Optional[str] = None
    country: Optional[str] = None           # skips the geo lookup when given
    numeric_id: Optional[int] = None
    slug: Optional[str] = None


# --- Application Factory ---

def create_app(
    settings_store: Optional[SettingsStore] = None,
    content_store: Optional[ContentStore] = None,
    geo_resolver: Optional[GeoResolver] = None,
    gate_config: Optional[GateConfig] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    # Initialize components
    ss = settings_store or SettingsStore()
    cs = content_store or ContentStore()
    owns_geo = geo_resolver is None
    geo = geo_resolver or IpInfoGeoResolver()
    rule_store = RuleStore(ss)
    engine = DecisionEngine(page_resolver=cs.permalink)
    gate = AccessGate(
        rule_store=rule_store,
        geo_resolver=geo,
        engine=engine,
        identity_resolver=cs.resolve_identity,
        config=gate_config,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        # Only close the HTTP client this factory created
        if owns_geo:
            geo.close()

    app = FastAPI(
        title="Country Blocker",
        description="Country-based access control for site content",
        version="1.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(AccessGateMiddleware, gate=gate)

    # Store components on app state for access in endpoints
    app.state.settings_store = ss
    app.state.content_store = cs
    app.state.geo_resolver = geo
    app.state.rule_store = rule_store
    app.state.engine = engine
    app.state.gate = gate

    # === ADMIN ===

    @app.get("/admin/settings")
    def get_settings():
        """Current blocker settings."""
        return ss.load().model_dump()

    @app.put("/admin/settings")
    def update_settings(settings: BlockerSettings):
        """Replace the blocker settings. Input is sanitized by the model."""
        return ss.save(settings).model_dump()

    @app.delete("/admin/settings")
    def reset_settings():
        """Restore defaults, which disables the gate."""
        ss.reset()
        return ss.load().model_dump()

    @app.get("/admin/countries")
    def list_countries():
        """Country catalog for the blocked countries picker."""
        return [{"code": code, "name": name} for code, name in COUNTRIES.items()]

    @app.get("/admin/pages")
    def list_pages():
        """Pages available as a redirect target."""
        return [p.model_dump() for p in cs.list_pages()]

    @app.post("/admin/rules/preview")
    def preview_rules(req: RulePreviewRequest):
        """Show how a rule block will be parsed, without saving it."""
        rules = parse_country_specific_rules(req.raw)
        return {
            "rules": [r.model_dump() for r in rules],
            "rejected_lines": count_rejected_lines(req.raw),
            "normalized": serialize_rules(rules),
        }

    # === REST ===

    @app.get("/api/health")
    def health():
        config = rule_store.snapshot()
        return {"status": "ok", "gate_enabled": config.enabled}

    @app.post("/api/decide")
    def decide(req: DecideRequest):
        """Manual decision evaluation against the current settings (for testing)."""
        country = req.country
        if country is None:
            country = geo.resolve(req.ip or "")
        resource = ResourceIdentity(numeric_id=req.numeric_id, slug=req.slug)
        decision = engine.decide(rule_store.snapshot(), country, resource, req.ip)
        return decision.model_dump(mode="json")

    # === PUBLIC CONTENT ===

    @app.get("/")
    def home():
        return {"page": "home"}

    @app.get("/category/{slug}")
    def category_archive(slug: str):
        term = cs.get_term_by_slug("category", slug)
        if not term:
            raise HTTPException(404, "Category not found")
        return {"term": term.model_dump()}

    @app.get("/tag/{slug}")
    def tag_archive(slug: str):
        term = cs.get_term_by_slug("tag", slug)
        if not term:
            raise HTTPException(404, "Tag not found")
        return {"term": term.model_dump()}

    @app.get("/{slug}")
    def page(slug: str):
        found = cs.get_page_by_slug(slug)
        if not found:
            raise HTTPException(404, "Page not found")
        return {"page": found.model_dump()}

    return app


# Default application instance
app = create_app()
