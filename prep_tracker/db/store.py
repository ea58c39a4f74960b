"""
Store primitives the services need beyond plain select / add / commit.

``insert_if_absent`` gives insert-only upsert semantics on a unique key,
``increment`` is the atomic ``field = field + n`` update and ``update_where``
is a compare-and-set on one row. None of them commits; the caller owns the
transaction.
"""
from typing import Any, Dict, Sequence, Type

from sqlalchemy import insert, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, SQLModel

from prep_tracker.utils.dates import utcnow


def insert_if_absent(
    session: Session,
    model: Type[SQLModel],
    values: Dict[str, Any],
    conflict_columns: Sequence[str],
) -> bool:
    """
    Insert ``values`` unless a row with the same ``conflict_columns`` exists.

    Returns True when this call inserted the row, False when another writer
    got there first. Existing rows are never modified.
    """
    dialect = session.get_bind().dialect.name

    if dialect in ("sqlite", "postgresql"):
        dialect_insert = sqlite.insert if dialect == "sqlite" else postgresql.insert
        statement = dialect_insert(model).values(**values).on_conflict_do_nothing(
            index_elements=list(conflict_columns)
        )
        result = session.connection().execute(statement)
        return bool(result.rowcount)

    # Other dialects: let the unique index reject the duplicate
    try:
        with session.begin_nested():
            session.connection().execute(insert(model).values(**values))
        return True
    except IntegrityError:
        return False


def increment(session: Session, model: Type[SQLModel], row_id: int, **deltas: int) -> int:
    """
    Atomically add each delta to its column on the row with primary key ``row_id``.

    Returns the number of rows matched (0 when the row is gone).
    """
    changes = {name: getattr(model, name) + delta for name, delta in deltas.items() if delta}
    if not changes:
        return 0

    if hasattr(model, "updated_at"):
        changes["updated_at"] = utcnow()

    statement = update(model).where(model.id == row_id).values(**changes)
    result = session.connection().execute(statement)
    return result.rowcount


def update_where(
    session: Session,
    model: Type[SQLModel],
    row_id: int,
    criteria: Sequence[Any],
    **values: Any,
) -> bool:
    """
    Write ``values`` to row ``row_id`` only while every clause in ``criteria`` holds.

    The guard is evaluated by the database at write time, so of two writers
    racing on the same transition exactly one sees True.
    """
    statement = update(model).where(model.id == row_id, *criteria).values(**values)
    result = session.connection().execute(statement)
    return result.rowcount == 1
