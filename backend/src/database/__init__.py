"""
Database package initialization.

Submodules:
- base: declarative base and column mixins
- connection: async engine, sessions and the unit-of-work helper
- models: ORM models for users, catalog items, baskets and orders
"""

__all__ = []
