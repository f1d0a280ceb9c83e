"""
Application layer - Use cases and business logic orchestration.

This layer contains:
- The order lifecycle service (orchestrates domain + storage)
- Result codes for expected business outcomes

No direct dependencies on frameworks (FastAPI, etc.)
"""
