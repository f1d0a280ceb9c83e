"""
Tests for the Orders Service

Tests are organized by layer:
- test_order_entities.py: Order aggregate construction, validation and transforms
- test_order_service.py: Lifecycle service over the in-memory store, concurrency
- test_order_repository.py: SQLAlchemy repository and service against SQLite
- api/test_orders_api.py: HTTP status mapping and request validation
"""
