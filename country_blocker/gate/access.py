"""
Access Gate — per-request integration between the host and the Decision Engine.

Behavioral Contract:
- Admin panel, background (ajax) and REST requests are never evaluated
- With the gate disabled (no blocked countries) no geo lookup is made
- Otherwise: resolve country, resolve resource identity, decide
- ALLOW continues rendering; REDIRECT and BLOCK terminate the request
- The only component that performs I/O (geo lookup, HTTP response)
"""

import html
import logging
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel, Field
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import HTMLResponse, RedirectResponse, Response

from country_blocker.engine.decision import DecisionEngine
from country_blocker.geo.resolver import GeoResolver
from country_blocker.models.decision import BlockContext, Decision, DecisionAction
from country_blocker.models.rules import ResourceIdentity
from country_blocker.rules.store import RuleStore

logger = logging.getLogger(__name__)

IdentityResolver = Callable[[str], ResourceIdentity]


class GateConfig(BaseModel):
    """Configuration for the Access Gate."""

    admin_prefixes: List[str] = ["/admin"]
    ajax_prefixes: List[str] = ["/ajax"]
    rest_prefixes: List[str] = ["/api"]
    trust_forwarded_for: bool = False
    redirect_status_code: int = Field(ge=300, le=399, default=302)
    block_status_code: int = Field(ge=400, le=599, default=403)


class GateRequest(BaseModel):
    """The parts of an inbound request the gate looks at."""

    path: str
    client_ip: Optional[str] = None


def _matches_prefix(path: str, prefix: str) -> bool:
    """Segment-aware prefix match: /admin matches /admin/x, not /administrator."""
    prefix = prefix.rstrip("/")
    return path == prefix or path.startswith(prefix + "/")


def client_ip_from(
    remote_addr: Optional[str],
    headers: Dict[str, str],
    trust_forwarded_for: bool = False,
) -> Optional[str]:
    """Visitor address: first X-Forwarded-For hop when trusted, else the peer."""
    if trust_forwarded_for:
        forwarded = headers.get("x-forwarded-for") or headers.get("X-Forwarded-For")
        if forwarded:
            first = forwarded.split(",")[0].strip()
            if first:
                return first
    return remote_addr


def render_block_message(context: Optional[BlockContext]) -> str:
    """HTML fragment shown to a blocked visitor."""
    message = "Access to this content is restricted.<br><br>"
    if context and (context.ip or context.country):
        message += f"Your IP: {html.escape(context.ip or '')}<br>"
        message += f"Your country: {html.escape(context.country or '')}<br><br>"
    message += "Sorry, access from your region is blocked."
    return message


class AccessGate:
    """
    Evaluates one request at a time. Holds no per-request state, so a
    single gate can serve concurrent requests.
    """

    def __init__(
        self,
        rule_store: RuleStore,
        geo_resolver: GeoResolver,
        engine: Optional[DecisionEngine] = None,
        identity_resolver: Optional[IdentityResolver] = None,
        config: Optional[GateConfig] = None,
    ):
        self.rule_store = rule_store
        self.geo_resolver = geo_resolver
        self.engine = engine or DecisionEngine()
        self.identity_resolver = identity_resolver
        self.config = config or GateConfig()

    def is_exempt(self, path: str) -> bool:
        """Admin, background and REST requests are never geo-blocked."""
        prefixes = (
            self.config.admin_prefixes
            + self.config.ajax_prefixes
            + self.config.rest_prefixes
        )
        return any(_matches_prefix(path, p) for p in prefixes)

    def evaluate(self, request: GateRequest) -> Decision:
        """Decide what to do with a request. Performs the geo lookup."""
        if self.is_exempt(request.path):
            return Decision.allow()

        config = self.rule_store.snapshot()
        if not config.enabled:
            return Decision.allow()

        country = self.geo_resolver.resolve(request.client_ip or "")
        resource = (
            self.identity_resolver(request.path)
            if self.identity_resolver
            else ResourceIdentity()
        )
        decision = self.engine.decide(config, country, resource, request.client_ip)

        if not decision.is_allowed:
            logger.info(
                "%s %s for %s (%s) via %s",
                decision.action.value.upper(),
                request.path,
                request.client_ip,
                country,
                decision.matched_by.value if decision.matched_by else "unknown",
            )
        return decision

    def to_response(self, decision: Decision) -> Optional[Response]:
        """HTTP response that terminates the request, or None to continue."""
        if decision.action == DecisionAction.REDIRECT:
            return RedirectResponse(
                decision.redirect_url, status_code=self.config.redirect_status_code
            )
        if decision.action == DecisionAction.BLOCK:
            return HTMLResponse(
                render_block_message(decision.context),
                status_code=self.config.block_status_code,
            )
        return None


class AccessGateMiddleware(BaseHTTPMiddleware):
    """Runs the Access Gate in front of every route of an ASGI app."""

    def __init__(self, app, gate: AccessGate):
        super().__init__(app)
        self.gate = gate

    async def dispatch(self, request: Request, call_next):
        gate_request = GateRequest(
            path=request.url.path,
            client_ip=client_ip_from(
                request.client.host if request.client else None,
                dict(request.headers),
                self.gate.config.trust_forwarded_for,
            ),
        )
        # The geo lookup is a blocking HTTP call
        decision = await run_in_threadpool(self.gate.evaluate, gate_request)
        response = self.gate.to_response(decision)
        if response is not None:
            return response
        return await call_next(request)
