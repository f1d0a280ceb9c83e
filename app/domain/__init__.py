"""
Domain layer - Business logic and domain models.

This layer contains:
- Value objects (immutable, self-validating)
- The Order aggregate (with invariant checks)
- Domain exceptions
- Unit of Work (transaction boundary)
"""
