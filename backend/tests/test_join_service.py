"""
Tests for JoinHandler: code checks, expiry, idempotency and input rules.
"""

import pytest
from sqlalchemy import update

from shared.config.constants import EventType
from shared.utils.exceptions import (
    ExpiredError,
    SessionNotFoundError,
    ValidationError,
)
from tableside.models import SessionCustomer, TableSession


class TestJoin:
    def test_join_creates_customer(self, services, active_session, sink):
        customer = services.joins.join(active_session.otp, active_session.table_id, "  Asha  ", "98765-43210")

        assert customer.session_id == active_session.id
        assert customer.tenant_id == active_session.tenant_id
        assert customer.display_name == "Asha"
        assert customer.contact == "9876543210"
        assert sink.types[-1] == EventType.CUSTOMER_JOINED

    def test_join_is_idempotent_on_normalized_contact(self, services, active_session, db_session, sink):
        first = services.joins.join(active_session.otp, active_session.table_id, "Asha", "+91 98765 43210")
        second = services.joins.join(active_session.otp, active_session.table_id, "Asha K", "919876543210")

        assert first.id == second.id
        assert db_session.query(SessionCustomer).count() == 1
        assert sink.types.count(EventType.CUSTOMER_JOINED) == 1

    def test_several_customers_share_a_session(self, services, active_session):
        a = services.joins.join(active_session.otp, active_session.table_id, "Asha", "9876543210")
        b = services.joins.join(active_session.otp, active_session.table_id, "Ravi", "9123456780")
        assert a.id != b.id
        assert a.session_id == b.session_id


class TestJoinRejections:
    def test_no_active_session(self, services, seed_table):
        with pytest.raises(SessionNotFoundError):
            services.joins.join("123456", seed_table.id, "Asha", "9876543210")

    def test_wrong_code_is_not_found(self, services, active_session):
        wrong = "000000" if active_session.otp != "000000" else "111111"
        with pytest.raises(SessionNotFoundError) as exc_info:
            services.joins.join(wrong, active_session.table_id, "Asha", "9876543210")
        assert exc_info.value.kind == "not_accessible"

    def test_expired_code(self, services, active_session, clock):
        clock.advance(hours=24)
        with pytest.raises(ExpiredError) as exc_info:
            services.joins.join(active_session.otp, active_session.table_id, "Asha", "9876543210")
        assert exc_info.value.status_code == 410

    def test_wrong_and_expired_is_not_found(self, services, active_session, clock):
        clock.advance(hours=25)
        wrong = "000000" if active_session.otp != "000000" else "111111"
        with pytest.raises(SessionNotFoundError):
            services.joins.join(wrong, active_session.table_id, "Asha", "9876543210")

    def test_closed_session_rejects_join(self, services, active_session, waiter):
        code = active_session.otp
        services.sessions.close(active_session.id, waiter)
        with pytest.raises(SessionNotFoundError):
            services.joins.join(code, active_session.table_id, "Asha", "9876543210")

    def test_regenerated_code_invalidates_old(self, services, active_session, waiter):
        old_code = active_session.otp
        session = services.sessions.regenerate_otp(active_session.id, waiter)

        with pytest.raises(SessionNotFoundError):
            services.joins.join(old_code, active_session.table_id, "Asha", "9876543210")
        customer = services.joins.join(session.otp, active_session.table_id, "Asha", "9876543210")
        assert customer.session_id == active_session.id

    def test_code_superseded_between_read_and_write(self, services, active_session, db_session):
        """The guarded insert refuses when the code changed after the read."""
        code = active_session.otp
        session = services.sessions.find_active_for_table(active_session.table_id)

        db_session.execute(
            update(TableSession).where(TableSession.id == session.id).values(otp="999999" if code != "999999" else "888888")
        )
        db_session.commit()

        assert services.joins._insert_guarded(session, code, "Asha", "9876543210") is None
        assert db_session.query(SessionCustomer).count() == 0

    def test_code_expiring_between_read_and_write(self, services, active_session, db_session, clock, monkeypatch):
        """The guarded insert re-checks expiry, so a code that lapses mid-join admits nobody."""
        authorize = services.store.authorize_entity

        def authorize_then_lapse(*args, **kwargs):
            decision = authorize(*args, **kwargs)
            clock.advance(hours=24)
            return decision

        monkeypatch.setattr(services.store, "authorize_entity", authorize_then_lapse)

        with pytest.raises(ExpiredError):
            services.joins.join(active_session.otp, active_session.table_id, "Asha", "9876543210")
        assert db_session.query(SessionCustomer).count() == 0

    def test_guarded_insert_refuses_expired_code(self, services, active_session, db_session, clock):
        session = services.sessions.find_active_for_table(active_session.table_id)
        clock.advance(hours=24)

        assert services.joins._insert_guarded(session, session.otp, "Asha", "9876543210") is None
        assert db_session.query(SessionCustomer).count() == 0


class TestJoinValidation:
    @pytest.mark.parametrize("otp", ["12345", "1234567", "12a456", "", None, "١٢٣٤٥٦"])
    def test_malformed_code(self, services, active_session, otp):
        with pytest.raises(ValidationError):
            services.joins.join(otp, active_session.table_id, "Asha", "9876543210")

    @pytest.mark.parametrize("name", ["", "   ", "x" * 101])
    def test_bad_display_name(self, services, active_session, name):
        with pytest.raises(ValidationError):
            services.joins.join(active_session.otp, active_session.table_id, name, "9876543210")

    @pytest.mark.parametrize("contact", ["12345", "123-456-789", "1" * 16, "phone"])
    def test_bad_contact(self, services, active_session, contact):
        with pytest.raises(ValidationError):
            services.joins.join(active_session.otp, active_session.table_id, "Asha", contact)

    def test_name_at_limit_accepted(self, services, active_session):
        customer = services.joins.join(active_session.otp, active_session.table_id, "x" * 100, "9876543210")
        assert len(customer.display_name) == 100
