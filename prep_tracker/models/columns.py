"""Column helpers shared by the table models."""
from sqlalchemy import Column, DateTime


def utc_column(nullable: bool = True, index: bool = False) -> Column:
    """
    Timestamp column holding naive UTC.

    Declared explicitly so the stored type does not depend on how the ORM
    maps a bare ``datetime`` annotation.
    """
    return Column(DateTime(timezone=False), nullable=nullable, index=index)
