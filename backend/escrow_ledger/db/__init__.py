"""Database Layer — the SQLAlchemy declarative Base shared by every ORM model.

Invariants:
    - Engines and sessions live in infrastructure/database.py, never here

Design Decisions:
    - asyncpg driver for PostgreSQL (ADR: native async, row locks via SELECT ... FOR UPDATE)
"""
