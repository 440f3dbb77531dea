"""
Dialect-aware INSERT .. ON CONFLICT builder.
PostgreSQL in production, SQLite in tests; both support ON CONFLICT DO NOTHING / DO UPDATE.
"""
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session


def insert_for(db: Session, model):
    """Return a dialect-specific insert() for model that supports on_conflict_* clauses."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"upsert is not supported for dialect {dialect!r}")
