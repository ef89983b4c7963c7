"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- storage: Object storage (S3 and S3-compatible services)

These wrappers translate between external formats and our domain models.
"""
