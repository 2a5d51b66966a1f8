"""
Domain Services.

Services contain business logic and orchestrate operations. They go
through SoftDeleteStore for reads and authorization and emit change
events after commit.

Usage:
    from tableside.services.domain import SessionManager, JoinHandler

    sessions = SessionManager(db, store, OtpIssuer(), events=sink)
    JoinHandler(sessions, events=sink).join(otp, table_id, name, contact)
"""

from .session_service import SessionManager, SessionDetails
from .join_service import JoinHandler
from .attribution_service import OrderAttributionLedger, SessionSummary
from .order_service import OrderService, OrderLine

__all__ = [
    "SessionManager",
    "SessionDetails",
    "JoinHandler",
    "OrderAttributionLedger",
    "SessionSummary",
    "OrderService",
    "OrderLine",
]
