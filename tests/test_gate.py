"""Tests for the Access Gate."""

from typing import List

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from country_blocker.content.store import ContentStore
from country_blocker.engine.decision import DecisionEngine
from country_blocker.gate.access import (
    AccessGate,
    AccessGateMiddleware,
    GateConfig,
    GateRequest,
    client_ip_from,
    render_block_message,
)
from country_blocker.geo.resolver import StaticGeoResolver
from country_blocker.models.config import BlockerSettings
from country_blocker.models.content import Page
from country_blocker.models.decision import BlockContext, Decision, DecisionAction
from country_blocker.rules.store import RuleStore


class _FixedSource:
    def __init__(self, settings: BlockerSettings):
        self.settings = settings

    def load(self) -> BlockerSettings:
        return self.settings


class _CountingResolver(StaticGeoResolver):
    def __init__(self, mapping):
        super().__init__(mapping)
        self.calls: List[str] = []

    def resolve(self, address: str) -> str:
        self.calls.append(address)
        return super().resolve(address)


def _make_gate(settings: BlockerSettings, mapping=None, config: GateConfig = None):
    content = ContentStore()
    content.add_page(Page(id=5, slug="contact"))
    content.add_page(Page(id=10, slug="about"))
    resolver = _CountingResolver(mapping or {"81.2.69.142": "DE", "8.8.8.8": "US"})
    gate = AccessGate(
        rule_store=RuleStore(_FixedSource(settings)),
        geo_resolver=resolver,
        engine=DecisionEngine(page_resolver=content.permalink),
        identity_resolver=content.resolve_identity,
        config=config,
    )
    return gate, resolver


class TestExemptions:
    @pytest.mark.parametrize("path", [
        "/admin", "/admin/settings", "/ajax", "/ajax/poll", "/api", "/api/decide",
    ])
    def test_exempt_paths(self, path):
        gate, resolver = _make_gate(BlockerSettings(blocked_countries=["DE"]))
        assert gate.is_exempt(path)
        assert gate.evaluate(GateRequest(path=path, client_ip="81.2.69.142")).is_allowed
        assert resolver.calls == []

    @pytest.mark.parametrize("path", ["/", "/about", "/administrator", "/apiary", "/category/admin"])
    def test_gated_paths(self, path):
        gate, _ = _make_gate(BlockerSettings())
        assert not gate.is_exempt(path)

    def test_custom_prefixes(self):
        gate, _ = _make_gate(
            BlockerSettings(),
            config=GateConfig(admin_prefixes=["/wp-admin/"], ajax_prefixes=[], rest_prefixes=["/wp-json"]),
        )
        assert gate.is_exempt("/wp-admin/options")
        assert gate.is_exempt("/wp-json/v2/posts")
        assert not gate.is_exempt("/admin")


class TestEvaluate:
    def test_disabled_gate_skips_lookup(self):
        gate, resolver = _make_gate(BlockerSettings(blocked_items="about"))
        assert gate.evaluate(GateRequest(path="/about", client_ip="81.2.69.142")).is_allowed
        assert resolver.calls == []

    def test_blocked_country(self):
        gate, resolver = _make_gate(BlockerSettings(blocked_countries=["DE"]))
        decision = gate.evaluate(GateRequest(path="/", client_ip="81.2.69.142"))
        assert decision.action == DecisionAction.BLOCK
        assert decision.context == BlockContext(ip="81.2.69.142", country="DE")
        assert resolver.calls == ["81.2.69.142"]

    def test_redirect_to_page(self):
        gate, _ = _make_gate(BlockerSettings(blocked_countries=["DE"], redirect_page=5))
        decision = gate.evaluate(GateRequest(path="/about", client_ip="81.2.69.142"))
        assert decision.action == DecisionAction.REDIRECT
        assert decision.redirect_url == "/contact"

    def test_resource_rule_uses_path_identity(self):
        gate, _ = _make_gate(BlockerSettings(blocked_countries=["FR"], country_specific_rules="10|US"))
        assert not gate.evaluate(GateRequest(path="/about", client_ip="8.8.8.8")).is_allowed
        assert gate.evaluate(GateRequest(path="/contact", client_ip="8.8.8.8")).is_allowed

    def test_unresolved_visitor_allowed(self):
        gate, _ = _make_gate(BlockerSettings(blocked_countries=["DE"]))
        assert gate.evaluate(GateRequest(path="/about", client_ip="203.0.113.9")).is_allowed

    def test_without_identity_resolver(self):
        gate = AccessGate(
            rule_store=RuleStore(_FixedSource(BlockerSettings(
                blocked_countries=["FR"], country_specific_rules="about|US",
            ))),
            geo_resolver=StaticGeoResolver({"8.8.8.8": "US"}),
        )
        assert gate.evaluate(GateRequest(path="/about", client_ip="8.8.8.8")).is_allowed


class TestResponses:
    def test_allow_continues(self):
        gate, _ = _make_gate(BlockerSettings())
        assert gate.to_response(Decision.allow()) is None

    def test_redirect_response(self):
        gate, _ = _make_gate(BlockerSettings())
        response = gate.to_response(Decision.redirect("/contact"))
        assert response.status_code == 302
        assert response.headers["location"] == "/contact"

    def test_block_response(self):
        gate, _ = _make_gate(BlockerSettings(), config=GateConfig(block_status_code=451))
        response = gate.to_response(Decision.block(BlockContext(ip="81.2.69.142", country="DE")))
        assert response.status_code == 451
        body = response.body.decode()
        assert "Your IP: 81.2.69.142" in body
        assert "Your country: DE" in body


class TestBlockMessage:
    def test_with_context(self):
        message = render_block_message(BlockContext(ip="81.2.69.142", country="DE"))
        assert message == (
            "Access to this content is restricted.<br><br>"
            "Your IP: 81.2.69.142<br>"
            "Your country: DE<br><br>"
            "Sorry, access from your region is blocked."
        )

    def test_without_context(self):
        for context in (None, BlockContext()):
            assert render_block_message(context) == (
                "Access to this content is restricted.<br><br>"
                "Sorry, access from your region is blocked."
            )

    def test_values_escaped(self):
        message = render_block_message(BlockContext(ip="<script>", country="D&E"))
        assert "<script>" not in message
        assert "&lt;script&gt;" in message
        assert "D&amp;E" in message


class TestClientIp:
    def test_peer_address_by_default(self):
        assert client_ip_from("10.0.0.1", {"x-forwarded-for": "8.8.8.8"}) == "10.0.0.1"

    def test_forwarded_for_when_trusted(self):
        headers = {"x-forwarded-for": " 8.8.8.8 , 10.0.0.2"}
        assert client_ip_from("10.0.0.1", headers, trust_forwarded_for=True) == "8.8.8.8"

    def test_trusted_without_header(self):
        assert client_ip_from("10.0.0.1", {}, trust_forwarded_for=True) == "10.0.0.1"


class TestMiddleware:
    def _make_client(self, settings: BlockerSettings) -> TestClient:
        gate, _ = _make_gate(
            settings,
            mapping={"testclient": "DE"},
        )
        app = FastAPI()
        app.add_middleware(AccessGateMiddleware, gate=gate)

        @app.get("/about")
        def about():
            return {"page": "about"}

        @app.get("/admin/panel")
        def panel():
            return {"page": "panel"}

        return TestClient(app)

    def test_allowed_request_reaches_route(self):
        client = self._make_client(BlockerSettings(blocked_countries=["FR"]))
        response = client.get("/about")
        assert response.status_code == 200
        assert response.json() == {"page": "about"}

    def test_blocked_request_short_circuits(self):
        client = self._make_client(BlockerSettings(blocked_countries=["DE"]))
        response = client.get("/about")
        assert response.status_code == 403
        assert "Your country: DE" in response.text

    def test_redirect(self):
        client = self._make_client(BlockerSettings(blocked_countries=["DE"], redirect_page=5))
        response = client.get("/about", follow_redirects=False)
        assert response.status_code == 302
        assert response.headers["location"] == "/contact"

    def test_admin_never_blocked(self):
        client = self._make_client(BlockerSettings(blocked_countries=["DE"]))
        assert client.get("/admin/panel").status_code == 200
