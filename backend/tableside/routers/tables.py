"""
Tables router.

Resolves a scanned QR code to its table, the restaurant it belongs to and
whether the table has a session to join. No token needed.
"""

from fastapi import APIRouter, Depends, Request

from shared.security.rate_limit import join_rate_limit, limiter
from tableside.core.dependencies import Services, get_services
from tableside.schemas import TableScanOutput


router = APIRouter(prefix="/api/tables", tags=["tables"])


@router.get("/{qr_code}", response_model=TableScanOutput)
@limiter.limit(join_rate_limit)
def scan_table(
    request: Request,
    qr_code: str,
    services: Services = Depends(get_services),
) -> TableScanOutput:
    """
    Look up a table by its QR code.

    Unknown and deleted tables both answer 404; a table out of service
    answers 409.
    """
    table, session = services.sessions.resolve_table_scan(qr_code)
    return TableScanOutput(
        table_id=table.id,
        table_number=table.table_number,
        restaurant_id=table.tenant_id,
        restaurant_name=table.restaurant.name,
        status=table.status,
        has_active_session=session is not None,
    )
