"""Database Infrastructure - SQLAlchemy Base shared by all ORM models.

Invariants:
    - All sessions are async (AsyncSession)
    - asyncpg driver for PostgreSQL, aiosqlite for tests
"""
