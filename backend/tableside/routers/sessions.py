"""
Sessions router.

Staff open, close and clear table sessions and rotate their join codes.
Customers join with the code and get a token for their later calls.
"""

from fastapi import APIRouter, Depends, Query, Request, status

from shared.config.constants import STAFF_ROLES, Roles
from shared.config.settings import settings
from shared.security.auth import sign_jwt
from shared.security.rate_limit import join_rate_limit, limiter
from tableside.core.dependencies import Services, get_actor, get_client_ip, get_services
from tableside.models import TableSession
from tableside.schemas import (
    CustomerOutput,
    JoinSessionRequest,
    JoinSessionResponse,
    OpenSessionRequest,
    OrderBrief,
    PublicSessionOutput,
    SessionDetailOutput,
    SessionOutput,
    SessionSummaryOutput,
)
from tableside.services.permissions import Actor


router = APIRouter(prefix="/api/sessions", tags=["sessions"])


def _session_view(session: TableSession, actor: Actor) -> SessionOutput | PublicSessionOutput:
    """Only staff see the join code."""
    if actor.role in STAFF_ROLES:
        return SessionOutput.model_validate(session)
    return PublicSessionOutput.model_validate(session)


@router.post("", response_model=SessionOutput, status_code=status.HTTP_201_CREATED)
def open_session(
    body: OpenSessionRequest,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
) -> SessionOutput:
    """Open a session on a table. Staff only; 409 if the table already has one."""
    session = services.sessions.open(body.table_id, body.restaurant_id, actor)
    return SessionOutput.model_validate(session)


@router.post("/join", response_model=JoinSessionResponse)
@limiter.limit(join_rate_limit)
def join_session(
    request: Request,
    body: JoinSessionRequest,
    services: Services = Depends(get_services),
) -> JoinSessionResponse:
    """
    Join the active session on a table with its code. No token needed.

    Wrong code and no session both answer 404; an expired code answers 410.
    Joining again with the same phone number returns the same customer.
    """
    customer = services.joins.join(
        body.otp,
        body.table_id,
        body.display_name,
        body.contact,
        ip_address=get_client_ip(request),
    )
    session = services.store.get("sessions", customer.session_id)

    ttl_seconds = settings.otp_ttl_hours * 3600
    token = sign_jwt(
        {
            "sub": str(customer.id),
            "tenant_id": customer.tenant_id,
            "role": Roles.CUSTOMER,
            "session_id": customer.session_id,
        },
        ttl_seconds=ttl_seconds,
    )
    return JoinSessionResponse(
        customer=CustomerOutput.model_validate(customer),
        session=PublicSessionOutput.model_validate(session),
        access_token=token,
        expires_in=ttl_seconds,
    )


@router.get("/active", response_model=SessionOutput | PublicSessionOutput)
def get_active_session(
    table_id: int = Query(gt=0),
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
):
    session = services.sessions.get_active_session(table_id, actor)
    return _session_view(session, actor)


@router.get("/{session_id}", response_model=SessionOutput | PublicSessionOutput)
def get_session(
    session_id: int,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
):
    session = services.sessions.get_session(session_id, actor)
    return _session_view(session, actor)


@router.get("/{session_id}/customers", response_model=list[CustomerOutput])
def list_customers(
    session_id: int,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
) -> list[CustomerOutput]:
    return [
        CustomerOutput.model_validate(c)
        for c in services.sessions.list_customers(session_id, actor)
    ]


@router.get("/{session_id}/summary", response_model=SessionSummaryOutput)
def get_session_summary(
    session_id: int,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
) -> SessionSummaryOutput:
    """Totals per customer; orders without a customer are under "unassigned"."""
    summary = services.ledger.summarize(session_id, actor)
    return SessionSummaryOutput(
        session_id=summary.session_id,
        per_customer_totals={
            "unassigned" if customer_id is None else str(customer_id): total
            for customer_id, total in summary.per_customer_totals.items()
        },
        order_count=summary.order_count,
        grand_total_cents=summary.grand_total_cents,
    )


@router.get("/{session_id}/details", response_model=SessionDetailOutput)
def get_session_details(
    session_id: int,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
) -> SessionDetailOutput:
    details = services.sessions.get_session_details(session_id, actor)
    return SessionDetailOutput(
        session=SessionOutput.model_validate(details.session),
        customers=[CustomerOutput.model_validate(c) for c in details.customers],
        orders=[OrderBrief.model_validate(o) for o in details.orders],
        order_count=details.order_count,
        average_order_cents=details.average_order_cents,
        duration_seconds=details.duration_seconds,
    )


@router.post("/{session_id}/regenerate-otp", response_model=SessionOutput)
def regenerate_otp(
    session_id: int,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
) -> SessionOutput:
    """Issue a new join code. The previous code stops working immediately."""
    session = services.sessions.regenerate_otp(session_id, actor)
    return SessionOutput.model_validate(session)


@router.put("/{session_id}/close", response_model=SessionOutput)
def close_session(
    session_id: int,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
) -> SessionOutput:
    session = services.sessions.close(session_id, actor)
    return SessionOutput.model_validate(session)


@router.put("/{session_id}/clear", response_model=SessionOutput)
def clear_session(
    session_id: int,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
) -> SessionOutput:
    session = services.sessions.clear(session_id, actor)
    return SessionOutput.model_validate(session)
