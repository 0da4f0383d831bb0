"""
Shared utilities for the Catalog Explorer.

This package aggregates common building blocks consumed by the explorer
service and its session components:

- config: Service configuration via pydantic-settings
- logging: Structured logging with session correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and payloads
- retry: Retry hook for catalog fetches
- base_service: FastAPI service scaffolding

Any cross-service logic should live here to avoid import cycles across
service packages. Do not import from service_* packages into shared/.
"""
