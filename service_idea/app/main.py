"""
Idea service: the rate-checked front door to the generation API.
"""

import json
from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from shared.base_service import BaseService, INTERNAL_ERROR_BODY
from shared.config import ServiceConfig
from shared.errors import DownstreamFailure
from .adapters.counter_store import CounterStore, build_counter_store
from .adapters.idea_client import EMPTY_REPLY, GeminiIdeaClient
from .prompts import build_idea_prompt, build_translation_prompt, pick_first
from .ratelimit.fixed_window import FixedWindowRateLimiter
from .ratelimit.gate import Decision, RequestGate
from .ratelimit.identity import IdentityClassifier, Tier

EXTRACT_FAILED_BODY = {"error": "Failed to extract idea."}
GENERATE_FAILED_BODY = {"error": "Failed to generate idea."}


class IdeaService(BaseService):
    """Idea service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        store: Optional[CounterStore] = None,
        idea_client: Optional[GeminiIdeaClient] = None,
    ):
        super().__init__("idea", 8000, config=config)

        self.store = store or build_counter_store(self.config)
        self.idea_client = idea_client or GeminiIdeaClient(
            self.config.gemini_api_key,
            model=self.config.gemini_model,
            base_url=self.config.gemini_base_url,
            timeout=self.config.downstream_timeout_seconds,
        )
        self.classifier = IdentityClassifier(
            limits={
                Tier.COMBINED: self.config.combined_limit,
                Tier.COOKIE: self.config.cookie_limit,
                Tier.IP: self.config.ip_limit,
            },
            ttl_seconds=self.config.window_seconds,
            cookie_name=self.config.cookie_name,
            cookie_max_age=self.config.cookie_max_age_seconds,
        )
        self.rate_limiter = FixedWindowRateLimiter(self.store)
        self.gate = RequestGate(self.classifier, self.rate_limiter, metrics=self.metrics)

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.store.close()
            await self.idea_client.close()

        self._setup_idea_routes()
        self.app.state.idea_service = self

    async def _check_dependencies(self) -> Dict[str, str]:
        return {"counter_store": "ok" if await self.store.ping() else "unavailable"}

    async def _parse_body(self, request: Request) -> Dict[str, Any]:
        """Best-effort JSON body; anything unparseable counts as empty."""
        raw = await request.body()
        if not raw:
            return {}
        try:
            body = json.loads(raw)
        except (ValueError, UnicodeDecodeError) as exc:
            self.logger.warning("Failed to parse request body", error=str(exc))
            return {}
        return body if isinstance(body, dict) else {}

    def _setup_idea_routes(self):
        """Set up the idea endpoint."""

        @self.app.api_route("/api/idea", methods=["GET", "POST"])
        async def generate_idea(request: Request):
            """Generate (or translate) one idea once the gate allows it."""
            body = await self._parse_body(request)
            params = request.query_params

            def field(name: str) -> Any:
                return pick_first(body[name]) if name in body else params.get(name)

            decision = await self.gate.evaluate(request, field("deviceId"))

            if decision.decision is Decision.ERROR:
                response = JSONResponse(status_code=500, content=INTERNAL_ERROR_BODY)
            elif decision.decision is Decision.DENY:
                response = JSONResponse(
                    status_code=429,
                    content={"error": "rate_limit", "remaining": decision.retry_after_minutes}
                )
            else:
                response = await self._generate(field)

            if decision.set_cookie:
                response.headers.append("set-cookie", decision.set_cookie)
            return response

    async def _generate(self, field) -> JSONResponse:
        text = field("text")
        source = field("translateFrom")
        lang = field("lang")

        if text is not None and source is not None:
            prompt = build_translation_prompt(text, source, lang)
            if prompt is None:
                return JSONResponse(status_code=200, content={"idea": str(text).strip()})
        else:
            prompt = build_idea_prompt(field("category"), lang)

        try:
            with self.metrics.time_operation("downstream_duration_seconds"):
                idea = await self.idea_client.generate(prompt)
        except DownstreamFailure as exc:
            self.metrics.increment_counter("downstream_requests_total", status="error")
            self.logger.error("Idea generation failed", error=exc.message, details=exc.details)
            body = EXTRACT_FAILED_BODY if exc.details.get("reason") == EMPTY_REPLY else GENERATE_FAILED_BODY
            return JSONResponse(status_code=500, content=body)

        self.metrics.increment_counter("downstream_requests_total", status="ok")
        self.logger.info("Extracted idea", length=len(idea))
        return JSONResponse(status_code=200, content={"idea": idea})


def create_app(
    config: Optional[ServiceConfig] = None,
    store: Optional[CounterStore] = None,
    idea_client: Optional[GeminiIdeaClient] = None,
):
    """Create FastAPI application."""
    service = IdeaService(config=config, store=store, idea_client=idea_client)
    return service.app


if __name__ == "__main__":
    service = IdeaService()
    service.run()
