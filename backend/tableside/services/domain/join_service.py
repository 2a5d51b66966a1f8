"""
Join Handler.

Admits a customer into a table's active session by OTP. The session row
(code and expiry together) is read in one statement, and the customer row
is written by an INSERT ... SELECT that re-checks status, code and expiry,
so a code regenerated or expired between the read and the write never
admits anyone.
"""

from __future__ import annotations

from sqlalchemy import String, insert, literal, select
from sqlalchemy.exc import IntegrityError

from shared.config.constants import Actions, EventType, SessionStatus
from shared.config.logging import audit_join_event, get_logger
from shared.infrastructure.db import safe_commit, translate_timeouts
from shared.infrastructure.events import Event, EventSink
from shared.utils.exceptions import ExpiredError, SessionNotFoundError, ValidationError
from shared.utils.validators import normalize_contact, validate_display_name, validate_otp
from tableside.models import SessionCustomer, TableSession
from tableside.services.base_service import BaseDomainService
from tableside.services.domain.session_service import SessionManager
from tableside.services.permissions import Actor

logger = get_logger(__name__)


class JoinHandler(BaseDomainService):
    """
    Usage:
        handler = JoinHandler(sessions, events=sink)
        customer = handler.join("482913", table_id=3, display_name="Asha", contact="98765 43210")
    """

    def __init__(self, sessions: SessionManager, events: EventSink | None = None):
        super().__init__(sessions.db, sessions.store, events)
        self.sessions = sessions

    def join(
        self,
        otp: str,
        table_id: int,
        display_name: str,
        contact: str,
        ip_address: str | None = None,
    ) -> SessionCustomer:
        """
        Attach a customer to the table's active session.

        Joining twice with the same contact returns the existing customer.

        Raises:
            ValidationError: malformed code, name or contact
            SessionNotFoundError: no active session on the table, or wrong code
            ExpiredError: right code, past its expiry
            AuthorizationError: policy denied the join
        """
        otp, display_name, contact = self._validate(otp, display_name, contact)

        session = self.sessions.find_active_for_table(table_id)
        if session is None:
            audit_join_event("NO_ACTIVE_SESSION", contact=contact, success=False,
                             reason="no active session", ip_address=ip_address, table_id=table_id)
            raise SessionNotFoundError(table_id=table_id)

        if not self.sessions.otp.matches(otp, session.otp):
            audit_join_event("OTP_MISMATCH", session_id=session.id, contact=contact,
                             success=False, reason="code mismatch", ip_address=ip_address)
            raise SessionNotFoundError(table_id=table_id)

        if self.sessions.otp.is_expired(session.otp_expires_at):
            audit_join_event("OTP_EXPIRED", session_id=session.id, contact=contact,
                             success=False, reason="code expired", ip_address=ip_address)
            raise ExpiredError(session_id=session.id)

        self.store.authorize_entity(
            Actor.public(session.tenant_id), Actions.JOIN_SESSION, "sessions", session
        )

        existing = self._find_customer(session.id, contact)
        if existing is not None:
            audit_join_event("REJOINED", session_id=session.id, contact=contact, ip_address=ip_address)
            return existing

        expires_at = session.otp_expires_at
        customer = self._insert_guarded(session, otp, display_name, contact)
        if customer is None:
            if self.sessions.otp.is_expired(expires_at):
                audit_join_event("OTP_EXPIRED", session_id=session.id, contact=contact,
                                 success=False, reason="expired before write", ip_address=ip_address)
                raise ExpiredError(session_id=session.id)
            # Code regenerated or session closed after our read
            audit_join_event("SESSION_CHANGED", session_id=session.id, contact=contact,
                             success=False, reason="superseded before write", ip_address=ip_address)
            raise SessionNotFoundError(table_id=table_id)

        audit_join_event("JOINED", session_id=session.id, contact=contact,
                         ip_address=ip_address, customer_id=customer.id)
        self.publish(Event(
            type=EventType.CUSTOMER_JOINED,
            tenant_id=session.tenant_id,
            table_id=session.table_id,
            session_id=session.id,
            entity={"customer_id": customer.id, "display_name": customer.display_name},
            actor=Actor.public(session.tenant_id).to_dict(),
        ))
        return customer

    @staticmethod
    def _validate(otp: str, display_name: str, contact: str) -> tuple[str, str, str]:
        try:
            otp = validate_otp(otp)
        except ValueError as e:
            raise ValidationError(str(e), field="otp") from e
        try:
            display_name = validate_display_name(display_name)
        except ValueError as e:
            raise ValidationError(str(e), field="display_name") from e
        try:
            contact = normalize_contact(contact)
        except ValueError as e:
            raise ValidationError(str(e), field="contact") from e
        return otp, display_name, contact

    def _find_customer(self, session_id: int, contact: str) -> SessionCustomer | None:
        return self.db.scalar(
            select(SessionCustomer).where(
                SessionCustomer.session_id == session_id,
                SessionCustomer.contact == contact,
                SessionCustomer.deleted_at.is_(None),
            )
        )

    def _insert_guarded(
        self,
        session: TableSession,
        otp: str,
        display_name: str,
        contact: str,
    ) -> SessionCustomer | None:
        """
        INSERT ... SELECT from the session row, matching only while it is
        still active, live and holding the same unexpired code. Returns None
        when the guard matched nothing.
        """
        now = self.sessions.otp.now()
        guarded = select(
            TableSession.tenant_id,
            TableSession.id,
            literal(display_name, String),
            literal(contact, String),
            literal(True),
        ).where(
            TableSession.id == session.id,
            TableSession.status == SessionStatus.ACTIVE,
            TableSession.otp == otp,
            TableSession.otp_expires_at > now,
            TableSession.deleted_at.is_(None),
        )
        stmt = insert(SessionCustomer).from_select(
            ["tenant_id", "session_id", "display_name", "contact", "is_active"],
            guarded,
        )

        with translate_timeouts(self.db, "join session"):
            try:
                result = self.db.execute(stmt)
                safe_commit(self.db)
            except IntegrityError:
                # Same contact joined concurrently; that row is the answer
                self.db.rollback()
                return self._find_customer(session.id, contact)

        if result.rowcount == 0:
            return None
        return self._find_customer(session.id, contact)
