"""Customer directory endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.deps import get_current_session, get_db, require_csrf_header
from app.schemas.auth import UserSession
from app.schemas.common import DataResponse, PageResponse, Pagination
from app.schemas.customer import CustomerCreateRequest, CustomerRead
from app.services import customer_service

router = APIRouter(prefix="/customers", tags=["customers"])


@router.get("", response_model=PageResponse[CustomerRead])
def list_customers(
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
    q: str | None = None,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    rows, total = customer_service.list_customers(
        db, session.org_id, q=q, limit=limit, offset=offset
    )
    return PageResponse(
        data=[CustomerRead.model_validate(row) for row in rows],
        pagination=Pagination(limit=limit, offset=offset, total=total),
    )


@router.post(
    "",
    response_model=DataResponse[CustomerRead],
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_customer(
    body: CustomerCreateRequest,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """Create a customer; 409 when the email already exists in the organization."""
    customer = customer_service.create_customer(
        db,
        session.org_id,
        email=body.email,
        name=body.name,
        phone=body.phone,
        company=body.company,
        actor_user_id=session.user_id,
    )
    return DataResponse(data=CustomerRead.model_validate(customer))


@router.get("/{customer_id}", response_model=DataResponse[CustomerRead])
def get_customer(
    customer_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    customer = customer_service.get_customer(db, session.org_id, customer_id)
    return DataResponse(data=CustomerRead.model_validate(customer))
