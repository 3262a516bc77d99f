"""Cross-cutting pieces shared by the relay's API, jobs and integrations.

- configuration: pydantic-settings sections aggregated into ``Settings``
- logging: structlog pipeline and notification-scoped log context
- operations: ``OperationResult`` and provider error classifiers
- services: cached providers and FastAPI dependency aliases
"""
