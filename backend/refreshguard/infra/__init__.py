"""Concrete adapters for the service-layer ports (SQLAlchemy, Redis)."""
