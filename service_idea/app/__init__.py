"""
Idea Service package for the IdeaSpark Access Layer.

The service fronts the generation API, enforcing:
- Identity classification: device id, session cookie or client IP
- Fixed-window rate limiting against an external counter store
- Fail-closed gating: store errors never reach the generation API

Structure:
- app.main: FastAPI app, routes, and wiring.
- app.adapters: counter store and generation API clients.
- app.ratelimit: classifier, fixed-window limiter and request gate.
- app.prompts: prompt construction for ideas and translations.
"""
