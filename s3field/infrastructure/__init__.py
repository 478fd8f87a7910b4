"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- storage: Object storage (S3)
- snowflake: Owner record persistence

These wrappers translate between external formats and the core's protocols.
"""
