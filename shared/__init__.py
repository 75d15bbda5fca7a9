"""
Shared utilities for the Loop access control services.

This package aggregates common building blocks consumed by all services:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- base_service: FastAPI service skeleton with health and metrics routes
- test_helpers: Tree assertions shared by service and integration tests

Any cross-service logic should live here to avoid import cycles across
service packages. Nothing in this package imports from a service package.
"""
