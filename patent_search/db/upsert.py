"""
Dialect-aware INSERT ... ON CONFLICT DO NOTHING.

Postgres in production, SQLite in development and tests. Both support the
same conflict clause, so row creation never needs a read-then-insert pair.
"""
from typing import Sequence

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from patent_search.core.errors import ConfigurationError


def insert_ignore(db: Session, model, values: dict, index_elements: Sequence[str]) -> int:
    """Insert a row unless one already exists for ``index_elements``. Returns rows inserted."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = postgresql.insert(model).values(**values)
    elif dialect == "sqlite":
        stmt = sqlite.insert(model).values(**values)
    else:
        raise ConfigurationError(f"Unsupported database dialect: {dialect}")
    stmt = stmt.on_conflict_do_nothing(index_elements=list(index_elements))
    result = db.execute(stmt)
    return result.rowcount or 0
