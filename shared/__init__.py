"""
Shared utilities for the IdeaSpark Access Layer.

This package aggregates common building blocks consumed by the service and
the client SDK:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- circuit_breaker: Resilient external call protection
- base_service: FastAPI service skeleton

Do not import from service_* or client packages into shared/.
"""
