"""Customer directory service (org-scoped)."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import HTTPException
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.db.enums import AuditEventType
from app.db.models import Customer
from app.services import audit_service, counter_service

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def list_customers(
    db: Session,
    org_id: UUID,
    *,
    q: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Customer], int]:
    """List customers with optional name/email search. Returns (rows, total)."""
    query = select(Customer).where(Customer.organization_id == org_id)
    if q and q.strip():
        search = f"%{q.strip()}%"
        query = query.where(or_(Customer.email.ilike(search), Customer.name.ilike(search)))

    total = db.execute(select(func.count()).select_from(query.subquery())).scalar_one()
    rows = db.execute(
        query.order_by(Customer.created_at.desc(), Customer.id.desc()).limit(limit).offset(offset)
    ).scalars()
    return list(rows), total


def get_customer(db: Session, org_id: UUID, customer_id: UUID) -> Customer:
    customer = db.execute(
        select(Customer).where(
            Customer.id == customer_id,
            Customer.organization_id == org_id,
        )
    ).scalar_one_or_none()
    if not customer:
        raise HTTPException(status_code=404, detail="Customer not found")
    return customer


def find_by_email(db: Session, org_id: UUID, email: str) -> Customer | None:
    return db.execute(
        select(Customer).where(
            Customer.organization_id == org_id,
            Customer.email == normalize_email(email),
        )
    ).scalar_one_or_none()


def create_customer(
    db: Session,
    org_id: UUID,
    *,
    email: str,
    name: str | None = None,
    phone: str | None = None,
    company: str | None = None,
    actor_user_id: UUID | None = None,
) -> Customer:
    """Create a customer; 409 when the email already exists in the org."""
    normalized = normalize_email(email)
    if not normalized:
        raise HTTPException(status_code=422, detail="Customer email is required")
    if find_by_email(db, org_id, normalized):
        raise HTTPException(status_code=409, detail="A customer with this email already exists")

    customer = Customer(
        organization_id=org_id,
        email=normalized,
        name=(name or "").strip() or None,
        phone=phone,
        company=company,
    )
    db.add(customer)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=409, detail="A customer with this email already exists"
        ) from exc

    audit_service.log_event(
        db=db,
        org_id=org_id,
        event_type=AuditEventType.CUSTOMER_CREATED,
        actor_user_id=actor_user_id,
        target_type="customer",
        target_id=customer.id,
        details={"email": audit_service.hash_email(normalized)},
    )
    db.commit()
    db.refresh(customer)
    return customer


def get_or_create_customer(
    db: Session,
    org_id: UUID,
    *,
    email: str,
    name: str | None = None,
) -> Customer:
    """
    Find a customer by email or create one. Does not commit.

    Two inbound messages from a new address can race; the insert is
    ON CONFLICT DO NOTHING on (organization_id, email) and the row is then
    re-read, so both requests end up with the same customer.
    """
    existing = find_by_email(db, org_id, email)
    if existing:
        if name and not existing.name:
            existing.name = name.strip()
        return existing

    normalized = normalize_email(email)
    if not normalized:
        raise HTTPException(status_code=422, detail="Customer email is required")

    insert = counter_service.dialect_insert(db)
    db.execute(
        insert(Customer)
        .values(
            organization_id=org_id,
            email=normalized,
            name=(name or "").strip() or None,
        )
        .on_conflict_do_nothing(index_elements=[Customer.organization_id, Customer.email])
    )
    customer = find_by_email(db, org_id, normalized)
    if customer is None:
        raise RuntimeError("Customer upsert returned no row")
    return customer
