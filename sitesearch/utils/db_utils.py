"""Utility helpers for database connection strings.

Tortoise ORM selects its PostgreSQL driver from the ``asyncpg://`` scheme,
while operators usually hand out ``postgresql://`` or SQLAlchemy-style
``postgresql+psycopg2://`` URLs. SQLite URLs are passed through untouched.
"""

from __future__ import annotations


def to_postgres_dsn(url: str) -> str:
    """Normalize a driver-qualified URL into a plain PostgreSQL DSN."""

    if url.startswith("postgresql+"):
        return "postgresql://" + url.split("://", 1)[1]
    if url.startswith("asyncpg://"):
        return "postgresql://" + url[len("asyncpg://") :]
    return url


def to_tortoise_url(url: str) -> str:
    """Convert a database URL to the scheme Tortoise expects."""

    url = to_postgres_dsn(url)
    if url.startswith("postgresql://"):
        return "asyncpg://" + url[len("postgresql://") :]
    if url.startswith("postgres://"):
        return "asyncpg://" + url[len("postgres://") :]
    return url
