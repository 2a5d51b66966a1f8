"""
HTTP tests for the session core API.
"""

from shared.config.constants import Roles
from shared.utils.exceptions import NOT_ACCESSIBLE_DETAIL
from tableside.services.permissions import Actor


def join_body(session, **overrides):
    body = {
        "otp": session.otp,
        "table_id": session.table_id,
        "display_name": "Asha",
        "contact": "9876543210",
    }
    body.update(overrides)
    return body


class TestSessionRoutes:
    def test_open_session(self, client, seed_table, waiter, auth_headers):
        response = client.post(
            "/api/sessions",
            json={"table_id": seed_table.id, "restaurant_id": 1},
            headers=auth_headers(waiter),
        )
        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "active"
        assert len(data["otp"]) == 6

    def test_open_twice_conflicts(self, client, active_session, waiter, auth_headers):
        response = client.post(
            "/api/sessions",
            json={"table_id": active_session.table_id, "restaurant_id": 1},
            headers=auth_headers(waiter),
        )
        assert response.status_code == 409
        assert response.json()["kind"] == "conflict"

    def test_anonymous_open_denied(self, client, seed_table):
        response = client.post("/api/sessions", json={"table_id": seed_table.id, "restaurant_id": 1})
        assert response.status_code == 404
        assert response.json() == {"detail": NOT_ACCESSIBLE_DETAIL, "kind": "not_accessible"}

    def test_denied_and_missing_look_the_same(self, client, active_session, other_waiter, waiter, auth_headers):
        denied = client.get(f"/api/sessions/{active_session.id}", headers=auth_headers(other_waiter))
        missing = client.get("/api/sessions/9999", headers=auth_headers(waiter))

        assert denied.status_code == missing.status_code == 404
        assert denied.json() == missing.json() == {"detail": NOT_ACCESSIBLE_DETAIL, "kind": "not_accessible"}

    def test_close_and_clear(self, client, active_session, waiter, auth_headers):
        headers = auth_headers(waiter)
        closed = client.put(f"/api/sessions/{active_session.id}/close", headers=headers)
        assert closed.status_code == 200
        assert closed.json()["status"] == "billed"

        again = client.put(f"/api/sessions/{active_session.id}/close", headers=headers)
        assert again.status_code == 409
        assert again.json()["kind"] == "invalid_state"

        cleared = client.put(f"/api/sessions/{active_session.id}/clear", headers=headers)
        assert cleared.json()["status"] == "cleared"

    def test_regenerate_otp(self, client, active_session, waiter, auth_headers):
        old = active_session.otp
        response = client.post(f"/api/sessions/{active_session.id}/regenerate-otp", headers=auth_headers(waiter))
        assert response.status_code == 200
        assert response.json()["otp"] != old

    def test_active_session_lookup(self, client, active_session, waiter, auth_headers):
        response = client.get(
            "/api/sessions/active", params={"table_id": active_session.table_id}, headers=auth_headers(waiter)
        )
        assert response.json()["id"] == active_session.id


class TestJoinRoute:
    def test_join_returns_customer_token(self, client, active_session):
        response = client.post("/api/sessions/join", json=join_body(active_session))

        assert response.status_code == 200
        data = response.json()
        assert data["customer"]["display_name"] == "Asha"
        assert data["session"]["id"] == active_session.id
        assert "otp" not in data["session"]
        assert data["token_type"] == "Bearer"
        assert data["expires_in"] == 24 * 3600

    def test_customer_token_reads_session_without_code(self, client, active_session):
        token = client.post("/api/sessions/join", json=join_body(active_session)).json()["access_token"]
        headers = {"Authorization": f"Bearer {token}"}

        session = client.get(f"/api/sessions/{active_session.id}", headers=headers)
        assert session.status_code == 200
        assert "otp" not in session.json()

        summary = client.get(f"/api/sessions/{active_session.id}/summary", headers=headers)
        assert summary.status_code == 200
        assert summary.json()["grand_total_cents"] == 0

    def test_customer_token_cannot_close(self, client, active_session):
        token = client.post("/api/sessions/join", json=join_body(active_session)).json()["access_token"]
        response = client.put(
            f"/api/sessions/{active_session.id}/close", headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 404

    def test_wrong_code_is_404(self, client, active_session):
        wrong = "000000" if active_session.otp != "000000" else "111111"
        response = client.post("/api/sessions/join", json=join_body(active_session, otp=wrong))
        assert response.status_code == 404
        assert response.json()["kind"] == "not_accessible"

    def test_expired_code_is_410(self, client, active_session, clock):
        clock.advance(hours=25)
        response = client.post("/api/sessions/join", json=join_body(active_session))
        assert response.status_code == 410
        assert response.json()["kind"] == "expired"

    def test_bad_contact_is_400(self, client, active_session):
        response = client.post("/api/sessions/join", json=join_body(active_session, contact="123"))
        assert response.status_code == 400
        assert response.json()["kind"] == "validation"

    def test_rate_limited(self, client, active_session):
        wrong = "000000" if active_session.otp != "000000" else "111111"
        codes = [
            client.post("/api/sessions/join", json=join_body(active_session, otp=wrong)).status_code
            for _ in range(11)
        ]
        assert codes[:10] == [404] * 10
        assert codes[10] == 429


class TestOrderRoutes:
    def test_customer_orders_and_summary(self, client, active_session, waiter, auth_headers):
        joined = client.post("/api/sessions/join", json=join_body(active_session)).json()
        headers = {"Authorization": f"Bearer {joined['access_token']}"}

        response = client.post(
            "/api/orders",
            json={
                "restaurant_id": 1,
                "session_id": active_session.id,
                "items": [{"menu_item_id": 7, "quantity": 2, "price_cents": 12500}],
            },
            headers=headers,
        )
        assert response.status_code == 201
        order = response.json()
        assert order["total_cents"] == 25000
        assert order["customer_id"] == joined["customer"]["id"]

        summary = client.get(f"/api/sessions/{active_session.id}/summary", headers=auth_headers(waiter)).json()
        assert summary["per_customer_totals"] == {str(joined["customer"]["id"]): 25000}
        assert summary["grand_total_cents"] == 25000

    def test_attribute_and_status(self, client, active_session, place_order, waiter, auth_headers):
        headers = auth_headers(waiter)
        order = place_order([(1, 4000)])

        attributed = client.post(
            f"/api/orders/{order.id}/attribution", json={"session_id": active_session.id}, headers=headers
        )
        assert attributed.json()["session_id"] == active_session.id

        moved = client.put(f"/api/orders/{order.id}/status", json={"status": "preparing"}, headers=headers)
        assert moved.json()["status"] == "preparing"

        skipped = client.put(f"/api/orders/{order.id}/status", json={"status": "served"}, headers=headers)
        assert skipped.status_code == 409

        summary = client.get(f"/api/sessions/{active_session.id}/summary", headers=headers).json()
        assert summary["per_customer_totals"] == {"unassigned": 4000}

    def test_removed_item_disappears(self, client, place_order, waiter, auth_headers):
        order = place_order([(1, 1000), (1, 250)])
        item = next(i for i in order.items if i.price_at_time_cents == 250)

        response = client.delete(f"/api/orders/{order.id}/items/{item.id}", headers=auth_headers(waiter))
        data = response.json()
        assert data["total_cents"] == 1000
        assert [i["price_at_time_cents"] for i in data["items"]] == [1000]

    def test_customer_edits_and_reads_own_order(self, client, active_session, db_session):
        joined = client.post("/api/sessions/join", json=join_body(active_session)).json()
        headers = {"Authorization": f"Bearer {joined['access_token']}"}

        placed = client.post(
            "/api/orders",
            json={"restaurant_id": 1, "items": [{"menu_item_id": 7, "quantity": 1, "price_cents": 1000}]},
            headers=headers,
        ).json()
        assert placed["session_id"] == active_session.id

        added = client.post(
            f"/api/orders/{placed['id']}/items",
            json={"menu_item_id": 8, "quantity": 1, "price_cents": 500},
            headers=headers,
        )
        assert added.status_code == 201
        assert added.json()["total_cents"] == 1500

        fetched = client.get(f"/api/orders/{placed['id']}", headers=headers)
        assert fetched.status_code == 200
        assert len(fetched.json()["items"]) == 2

    def test_customer_cannot_touch_staff_order(self, client, active_session, place_order, owner, auth_headers):
        staff_order = place_order([(1, 1000)], session_id=active_session.id, actor=owner)
        joined = client.post("/api/sessions/join", json=join_body(active_session)).json()
        assert joined["customer"]["id"] == owner.identity_id
        headers = {"Authorization": f"Bearer {joined['access_token']}"}

        response = client.post(
            f"/api/orders/{staff_order.id}/items",
            json={"menu_item_id": 9, "quantity": 5, "price_cents": 99900},
            headers=headers,
        )
        assert response.status_code == 404
        total = client.get(f"/api/orders/{staff_order.id}", headers=auth_headers(owner)).json()["total_cents"]
        assert total == 1000

    def test_customer_cannot_read_other_table(self, client, active_session, second_table, waiter, auth_headers):
        other = client.post(
            "/api/sessions",
            json={"table_id": second_table.id, "restaurant_id": 1},
            headers=auth_headers(waiter),
        ).json()
        joined = client.post("/api/sessions/join", json=join_body(active_session)).json()
        headers = {"Authorization": f"Bearer {joined['access_token']}"}

        for path in ("", "/summary", "/customers"):
            response = client.get(f"/api/sessions/{other['id']}{path}", headers=headers)
            assert response.status_code == 404
            assert response.json()["detail"] == NOT_ACCESSIBLE_DETAIL


class TestTableScanRoute:
    def test_scan_resolves_table(self, client, seed_table):
        response = client.get(f"/api/tables/{seed_table.qr_code}")

        assert response.status_code == 200
        data = response.json()
        assert data["table_id"] == seed_table.id
        assert data["restaurant_id"] == 1
        assert data["restaurant_name"] == "Test Restaurant"
        assert data["has_active_session"] is False

    def test_scan_reports_active_session(self, client, active_session, seed_table):
        data = client.get(f"/api/tables/{seed_table.qr_code}").json()
        assert data["has_active_session"] is True
        assert data["status"] == "occupied"

    def test_unknown_code_is_404(self, client, seed_table):
        response = client.get("/api/tables/QR-9-9")
        assert response.status_code == 404
        assert response.json()["detail"] == NOT_ACCESSIBLE_DETAIL

    def test_tombstoned_table_is_404(self, client, seed_table, admin, auth_headers):
        client.delete(f"/api/admin/tables/{seed_table.id}", headers=auth_headers(admin))
        assert client.get(f"/api/tables/{seed_table.qr_code}").status_code == 404

    def test_out_of_service_is_409(self, client, seed_table, db_session):
        seed_table.status = "out_of_service"
        db_session.commit()
        response = client.get(f"/api/tables/{seed_table.qr_code}")
        assert response.status_code == 409
        assert response.json()["kind"] == "invalid_state"


class TestAdminRoutes:
    def test_delete_restore_purge(self, client, active_session, admin, owner, auth_headers):
        entity = f"/api/admin/sessions/{active_session.id}"

        deleted = client.delete(entity, headers=auth_headers(admin))
        assert deleted.status_code == 200
        assert deleted.json()["is_active"] is False

        listed = client.get("/api/admin/sessions/deleted", headers=auth_headers(admin)).json()
        assert [row["entity_id"] for row in listed] == [active_session.id]

        assert client.delete(f"{entity}/purge", headers=auth_headers(admin)).status_code == 404

        restored = client.post(f"{entity}/restore", headers=auth_headers(admin))
        assert restored.json()["is_active"] is True

        client.delete(entity, headers=auth_headers(admin))
        purged = client.delete(f"{entity}/purge", headers=auth_headers(owner))
        assert purged.json()["success"] is True

    def test_unknown_entity_is_400(self, client, admin, auth_headers):
        response = client.delete("/api/admin/menus/1", headers=auth_headers(admin))
        assert response.status_code == 400
        assert response.json()["kind"] == "validation"

    def test_list_active_sessions(self, client, active_session, waiter, auth_headers):
        response = client.get("/api/admin/sessions", headers=auth_headers(waiter))
        assert [s["id"] for s in response.json()] == [active_session.id]

    def test_customer_token_rejected_by_admin_routes(self, client, active_session):
        token = client.post("/api/sessions/join", json=join_body(active_session)).json()["access_token"]
        response = client.get("/api/admin/sessions", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 404


class TestAuthAndInfrastructure:
    def test_malformed_header_is_401(self, client, seed_restaurant):
        response = client.get("/api/admin/sessions", headers={"Authorization": "Token abc"})
        assert response.status_code == 401

    def test_invalid_token_is_401(self, client, seed_restaurant):
        response = client.get("/api/admin/sessions", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_request_id_echoed(self, client):
        response = client.get("/api/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

    def test_request_id_generated(self, client):
        response = client.get("/api/health")
        assert response.headers["X-Request-ID"]

    def test_security_headers(self, client):
        response = client.get("/api/health")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"

    def test_staff_token_claims_map_to_actor(self):
        actor = Actor.from_claims({"sub": "7", "tenant_id": 1, "role": Roles.WAITER})
        assert actor.identity_id == 7
        assert actor.tenant_id == 1
