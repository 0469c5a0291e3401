"""Atomic per-organization counters backed by org_counters."""

from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.db.models import OrgCounter

TICKET_NUMBER_COUNTER = "ticket_number"
ROTATION_COUNTER = "round_robin"


def dialect_insert(db: Session):
    """`insert()` with ON CONFLICT support for the bound dialect."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise RuntimeError(f"Atomic counters not supported on dialect '{dialect}'")
    return insert


def increment(db: Session, org_id: UUID, counter_type: str) -> int:
    """
    Increment a counter and return the new value (first call returns 1).

    A single INSERT .. ON CONFLICT DO UPDATE .. RETURNING statement, so
    concurrent callers never observe the same value.
    """
    insert = dialect_insert(db)
    stmt = insert(OrgCounter).values(
        organization_id=org_id,
        counter_type=counter_type,
        current_value=1,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[OrgCounter.organization_id, OrgCounter.counter_type],
        set_={
            "current_value": OrgCounter.current_value + 1,
            "updated_at": func.now(),
        },
    ).returning(OrgCounter.current_value)
    result = db.execute(stmt).scalar_one_or_none()
    if result is None:
        raise RuntimeError(f"Failed to increment counter '{counter_type}'")
    return int(result)


def generate_ticket_number(db: Session, org_id: UUID) -> str:
    """Next organization-scoped human-readable ticket code."""
    value = increment(db, org_id, TICKET_NUMBER_COUNTER)
    return f"TKT-{value:05d}"
