"""
Session Manager.

Owns the table session state machine: active -> billed -> cleared.
Every status change is a single conditional UPDATE keyed on the expected
current status, so concurrent callers serialize on the row and exactly
one of them wins.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shared.config.constants import Actions, EventType, OrderStatus, SessionStatus, TableStatus
from shared.config.logging import get_logger, mask_otp
from shared.config.settings import settings
from shared.infrastructure.db import safe_commit, translate_timeouts
from shared.infrastructure.events import Event, EventSink
from shared.utils.exceptions import (
    ConflictError,
    InvalidStateError,
    IssuanceExhausted,
    NotAccessibleError,
    SessionNotFoundError,
    ValidationError,
)
from tableside.models import (
    Order,
    RestaurantTable,
    SessionCustomer,
    TableSession,
    as_utc,
)
from tableside.services.base_service import BaseDomainService
from tableside.services.crud.soft_delete import SoftDeleteStore
from tableside.services.otp import OtpIssuer
from tableside.services.permissions import Actor, Resource

logger = get_logger(__name__)


@dataclass
class SessionDetails:
    """Staff view of one session."""

    session: TableSession
    customers: list[SessionCustomer] = field(default_factory=list)
    orders: list[Order] = field(default_factory=list)
    order_count: int = 0
    average_order_cents: int = 0
    duration_seconds: int = 0


def billable_orders_total(session_id: int):
    """Scalar subquery: sum of live, non-cancelled orders attributed to a session."""
    return (
        select(func.coalesce(func.sum(Order.total_cents), 0))
        .where(
            Order.session_id == session_id,
            Order.deleted_at.is_(None),
            Order.status != OrderStatus.CANCELLED,
        )
        .scalar_subquery()
    )


class SessionManager(BaseDomainService):
    """
    Usage:
        manager = SessionManager(db, store, OtpIssuer(), events=sink)
        session = manager.open(table_id=3, restaurant_id=1, actor=waiter)
        manager.close(session.id, waiter)
        manager.clear(session.id, waiter)
    """

    def __init__(
        self,
        db: Session,
        store: SoftDeleteStore,
        otp: OtpIssuer,
        events: EventSink | None = None,
        max_issue_attempts: int | None = None,
    ):
        super().__init__(db, store, events)
        self.otp = otp
        self.max_issue_attempts = max_issue_attempts or settings.otp_max_issue_attempts

    # =========================================================================
    # Lookups
    # =========================================================================

    def _load_session(self, session_id: int) -> TableSession:
        session = self.store.get("sessions", session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def find_active_for_table(self, table_id: int) -> TableSession | None:
        return self.db.scalar(
            select(TableSession).where(
                TableSession.table_id == table_id,
                TableSession.status == SessionStatus.ACTIVE,
                TableSession.deleted_at.is_(None),
            )
        )

    def _otp_in_use(self, tenant_id: int, code: str) -> bool:
        stmt = select(TableSession.id).where(
            TableSession.tenant_id == tenant_id,
            TableSession.otp == code,
            TableSession.status == SessionStatus.ACTIVE,
            TableSession.deleted_at.is_(None),
        )
        return self.db.scalar(stmt.limit(1)) is not None

    def _issue_unique_code(self, tenant_id: int) -> tuple[str, datetime]:
        """
        Draw codes until one is free among the tenant's active sessions.
        A session's own current code counts as taken, so a regenerated
        code always differs from the one it replaces. The partial unique
        index still backs this up at write time.
        """
        for attempt in range(1, self.max_issue_attempts + 1):
            code, expires_at = self.otp.issue()
            if not self._otp_in_use(tenant_id, code):
                return code, expires_at
            logger.warning("OTP collision, retrying", tenant_id=tenant_id, attempt=attempt)
        raise IssuanceExhausted(self.max_issue_attempts, tenant_id=tenant_id)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def open(self, table_id: int, restaurant_id: int, actor: Actor) -> TableSession:
        """
        Open a new active session on a table.

        Raises:
            NotAccessibleError: table missing, tombstoned, or in another restaurant
            AuthorizationError: actor may not open sessions here
            ConflictError: the table already has an active session
            IssuanceExhausted: no free OTP within the retry budget
        """
        self.gate(actor, Actions.OPEN_SESSION)
        table = self.store.get("tables", table_id)
        if table is None or table.tenant_id != restaurant_id:
            raise NotAccessibleError("tables", table_id)
        self.store.authorize_entity(actor, Actions.OPEN_SESSION, "tables", table)

        for attempt in range(1, self.max_issue_attempts + 1):
            # Retries re-check first so a second open never duplicates
            existing = self.find_active_for_table(table_id)
            if existing is not None:
                raise ConflictError(
                    "Table already has an active session",
                    table_id=table_id,
                    active_session_id=existing.id,
                )

            code, expires_at = self._issue_unique_code(restaurant_id)
            session = TableSession(
                tenant_id=restaurant_id,
                table_id=table_id,
                otp=code,
                otp_expires_at=expires_at,
                status=SessionStatus.ACTIVE,
                total_cents=0,
                opened_by_id=actor.identity_id,
            )
            session.set_created_by(actor.identity_id)

            with translate_timeouts(self.db, "open session"):
                try:
                    self.db.add(session)
                    self.db.flush()
                except IntegrityError:
                    self.db.rollback()
                    # Either the table or the code was taken concurrently
                    logger.warning("Open session raced", table_id=table_id, attempt=attempt)
                    continue

                table.status = TableStatus.OCCUPIED
                safe_commit(self.db)
            break
        else:
            if self.find_active_for_table(table_id) is not None:
                raise ConflictError("Table already has an active session", table_id=table_id)
            raise IssuanceExhausted(self.max_issue_attempts, tenant_id=restaurant_id)

        self.db.refresh(session)
        logger.info(
            "Session opened",
            session_id=session.id,
            table_id=table_id,
            tenant_id=restaurant_id,
            otp=mask_otp(session.otp),
        )
        self.publish(Event(
            type=EventType.SESSION_OPENED,
            tenant_id=session.tenant_id,
            table_id=session.table_id,
            session_id=session.id,
            entity={"status": session.status},
            actor=actor.to_dict(),
        ))
        return session

    def regenerate_otp(self, session_id: int, actor: Actor) -> TableSession:
        """
        Replace code and expiry together, only while the session is active.
        The old code stops working the moment this commits.
        """
        self.gate(actor, Actions.REGENERATE_OTP)
        session = self._load_session(session_id)
        self.store.authorize_entity(actor, Actions.REGENERATE_OTP, "sessions", session)

        for attempt in range(1, self.max_issue_attempts + 1):
            code, expires_at = self._issue_unique_code(session.tenant_id)
            with translate_timeouts(self.db, "regenerate otp"):
                try:
                    result = self.db.execute(
                        update(TableSession)
                        .where(
                            TableSession.id == session_id,
                            TableSession.status == SessionStatus.ACTIVE,
                            TableSession.deleted_at.is_(None),
                        )
                        .values(
                            otp=code,
                            otp_expires_at=expires_at,
                            updated_by_id=actor.identity_id,
                        )
                    )
                except IntegrityError:
                    self.db.rollback()
                    logger.warning("OTP collision on regenerate", session_id=session_id, attempt=attempt)
                    continue

                if result.rowcount == 0:
                    self.db.rollback()
                    raise InvalidStateError(
                        "Session",
                        current_state=self._current_status(session_id),
                        expected_states=[SessionStatus.ACTIVE],
                        session_id=session_id,
                    )
                safe_commit(self.db)
            break
        else:
            raise IssuanceExhausted(self.max_issue_attempts, session_id=session_id)

        self.db.refresh(session)
        logger.info("Session OTP regenerated", session_id=session_id, otp=mask_otp(session.otp))
        self.publish(Event(
            type=EventType.SESSION_OTP_REGENERATED,
            tenant_id=session.tenant_id,
            table_id=session.table_id,
            session_id=session.id,
            actor=actor.to_dict(),
        ))
        return session

    def close(self, session_id: int, actor: Actor) -> TableSession:
        """active -> billed. The session stays readable for reconciliation."""
        self.gate(actor, Actions.CLOSE_SESSION)
        session = self._load_session(session_id)
        self.store.authorize_entity(actor, Actions.CLOSE_SESSION, "sessions", session)

        self._transition(
            session_id,
            SessionStatus.ACTIVE,
            SessionStatus.BILLED,
            actor,
            closed_at=self.otp.now(),
        )

        self.db.refresh(session)
        logger.info("Session closed", session_id=session_id, total_cents=session.total_cents)
        self.publish(Event(
            type=EventType.SESSION_CLOSED,
            tenant_id=session.tenant_id,
            table_id=session.table_id,
            session_id=session.id,
            entity={"status": session.status, "total_cents": session.total_cents},
            actor=actor.to_dict(),
        ))
        return session

    def clear(self, session_id: int, actor: Actor) -> TableSession:
        """billed -> cleared, after settlement. Frees the table."""
        self.gate(actor, Actions.CLEAR_SESSION)
        session = self._load_session(session_id)
        self.store.authorize_entity(actor, Actions.CLEAR_SESSION, "sessions", session)

        self._transition(
            session_id,
            SessionStatus.BILLED,
            SessionStatus.CLEARED,
            actor,
            cleared_at=self.otp.now(),
            after=lambda: self.db.execute(
                update(RestaurantTable)
                .where(RestaurantTable.id == session.table_id)
                .values(status=TableStatus.AVAILABLE)
            ),
        )

        self.db.refresh(session)
        logger.info("Session cleared", session_id=session_id)
        self.publish(Event(
            type=EventType.SESSION_CLEARED,
            tenant_id=session.tenant_id,
            table_id=session.table_id,
            session_id=session.id,
            entity={"status": session.status},
            actor=actor.to_dict(),
        ))
        return session

    def _transition(self, session_id: int, expected: str, target: str, actor: Actor, after=None, **values) -> None:
        """Compare-and-set on status; zero rows matched means someone else moved it."""
        with translate_timeouts(self.db, f"{expected} -> {target}"):
            result = self.db.execute(
                update(TableSession)
                .where(
                    TableSession.id == session_id,
                    TableSession.status == expected,
                    TableSession.deleted_at.is_(None),
                )
                .values(status=target, updated_by_id=actor.identity_id, **values)
            )
            if result.rowcount == 0:
                self.db.rollback()
                raise InvalidStateError(
                    "Session",
                    current_state=self._current_status(session_id),
                    expected_states=[expected],
                    session_id=session_id,
                )
            if after is not None:
                after()
            safe_commit(self.db)

    def _current_status(self, session_id: int) -> str | None:
        return self.db.scalar(select(TableSession.status).where(TableSession.id == session_id))

    # =========================================================================
    # Totals
    # =========================================================================

    def recompute_total(self, session_id: int, commit: bool = True) -> int:
        """
        Set total_cents to the sum of live, non-cancelled attributed orders.

        One UPDATE with a subquery: the result depends only on current order
        rows, so concurrent recomputes converge.
        """
        with translate_timeouts(self.db, "recompute session total"):
            self.db.execute(
                update(TableSession)
                .where(TableSession.id == session_id)
                .values(total_cents=billable_orders_total(session_id))
                .execution_options(synchronize_session="fetch")
            )
            if commit:
                safe_commit(self.db)
        total = self.db.scalar(select(TableSession.total_cents).where(TableSession.id == session_id))
        logger.debug("Session total recomputed", session_id=session_id, total_cents=total)
        return total or 0

    # =========================================================================
    # Queries
    # =========================================================================

    def resolve_table_scan(self, qr_code: str) -> tuple[RestaurantTable, TableSession | None]:
        """
        Turn a scanned QR code into its live table and the table's active
        session, if any. Unknown and tombstoned tables answer not-accessible;
        a table taken out of service answers invalid-state.
        """
        code = (qr_code or "").strip()
        if not code:
            raise ValidationError("QR code is required", field="qr_code")

        table = self.db.scalar(
            select(RestaurantTable)
            .where(RestaurantTable.qr_code == code, RestaurantTable.deleted_at.is_(None))
            .order_by(RestaurantTable.id)
            .limit(1)
        )
        if table is None:
            raise NotAccessibleError("tables", code)
        self.store.authorize_entity(Actor.public(table.tenant_id), Actions.READ_TABLE, "tables", table)

        if table.status == TableStatus.OUT_OF_SERVICE:
            raise InvalidStateError(
                "Table",
                current_state=table.status,
                expected_states=[TableStatus.AVAILABLE, TableStatus.OCCUPIED],
                table_id=table.id,
            )
        return table, self.find_active_for_table(table.id)

    def get_session(self, session_id: int, actor: Actor) -> TableSession:
        session = self._load_session(session_id)
        self.store.authorize_entity(actor, Actions.READ_SESSION, "sessions", session)
        return session

    def get_active_session(self, table_id: int, actor: Actor) -> TableSession:
        """The active session on a table; not-accessible when there is none."""
        session = self.find_active_for_table(table_id)
        if session is None:
            raise SessionNotFoundError(table_id=table_id)
        self.store.authorize_entity(actor, Actions.READ_SESSION, "sessions", session)
        return session

    def list_active_sessions(self, restaurant_id: int, actor: Actor) -> list[TableSession]:
        self.store.authorize(actor, Actions.LIST_SESSIONS, Resource.tenant(restaurant_id))
        return self.store.list("sessions", restaurant_id, status=SessionStatus.ACTIVE)

    def list_customers(self, session_id: int, actor: Actor) -> list[SessionCustomer]:
        session = self._load_session(session_id)
        self.store.authorize_entity(actor, Actions.READ_SESSION, "sessions", session)
        return list(self.db.scalars(
            select(SessionCustomer)
            .where(
                SessionCustomer.session_id == session_id,
                SessionCustomer.deleted_at.is_(None),
            )
            .order_by(SessionCustomer.joined_at, SessionCustomer.id)
        ).all())

    def get_session_details(self, session_id: int, actor: Actor) -> SessionDetails:
        """Customers, live orders, order count, average order value and duration."""
        session = self._load_session(session_id)
        self.store.authorize_entity(actor, Actions.READ_SESSION_DETAILS, "sessions", session)

        customers = self.list_customers(session_id, actor)
        orders = list(self.db.scalars(
            select(Order)
            .where(Order.session_id == session_id, Order.deleted_at.is_(None))
            .order_by(Order.created_at, Order.id)
        ).all())
        billable = [o for o in orders if o.status != OrderStatus.CANCELLED]
        average = sum(o.total_cents for o in billable) // len(billable) if billable else 0

        started = as_utc(session.opened_at)
        ended = as_utc(session.closed_at) or self.otp.now()
        duration = max(int((ended - started).total_seconds()), 0) if started else 0

        return SessionDetails(
            session=session,
            customers=customers,
            orders=orders,
            order_count=len(billable),
            average_order_cents=average,
            duration_seconds=duration,
        )
