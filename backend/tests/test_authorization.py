"""
Authorization tests.

Verifies:
- Unauthenticated requests return 401
- Sales staff are denied admin-only operations (403)
- Admin role can perform privileged operations
- Sales staff are scoped to their assigned distributors and own invoices
"""

import pytest

from conftest import auth_headers, create_invoice


# =============================================================================
# UNAUTHENTICATED ACCESS (401)
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/auth/me"),
            ("POST", "/api/auth/logout"),
            ("GET", "/api/users"),
            ("POST", "/api/users"),
            ("GET", "/api/distributors"),
            ("POST", "/api/distributors"),
            ("GET", "/api/categories"),
            ("GET", "/api/products"),
            ("GET", "/api/invoices"),
            ("POST", "/api/invoices"),
            ("GET", "/api/payments"),
            ("POST", "/api/payments"),
            ("GET", "/api/dashboard/stats"),
            ("GET", "/api/dashboard/performance"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"
        assert resp.json["success"] is False
        assert resp.json["message"] == "Access token is required"

    def test_garbage_token_rejected(self, client, db_session):
        resp = client.get("/api/invoices", headers=auth_headers("not-a-jwt"))
        assert resp.status_code == 401
        assert resp.json["message"] == "Invalid or expired token"

    def test_deactivated_user_token_rejected(self, client, db_session, staff_user, staff_headers):
        staff_user.is_active = False
        db_session.commit()

        resp = client.get("/api/auth/me", headers=staff_headers)
        assert resp.status_code == 401
        assert resp.json["message"] == "Invalid token or user inactive"


# =============================================================================
# SALES STAFF DENIED ADMIN OPERATIONS (403)
# =============================================================================


class TestStaffDeniedAdminOperations:
    """Sales staff cannot perform admin-only writes."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/users"),
            ("POST", "/api/users"),
            ("GET", "/api/users/sales-staff/list"),
            ("POST", "/api/distributors"),
            ("POST", "/api/categories"),
            ("PUT", "/api/categories/reorder"),
            ("POST", "/api/products"),
            ("POST", "/api/products/bulk-import"),
        ],
    )
    def test_admin_only(self, client, staff_headers, method, path):
        resp = getattr(client, method.lower())(path, json={}, headers=staff_headers)
        assert resp.status_code == 403
        assert resp.json["message"] == "Access denied. admin role required."

    def test_cannot_edit_distributor(self, client, staff_headers, distributor):
        resp = client.put(
            f"/api/distributors/{distributor.distributor_id}",
            json={"city": "Multan"},
            headers=staff_headers,
        )
        assert resp.status_code == 403

    def test_cannot_read_other_user(self, client, staff_headers, admin_user):
        resp = client.get(f"/api/users/{admin_user.user_id}", headers=staff_headers)
        assert resp.status_code == 403

    def test_can_read_own_profile(self, client, staff_headers, staff_user):
        resp = client.get(f"/api/users/{staff_user.user_id}", headers=staff_headers)
        assert resp.status_code == 200
        assert resp.json["data"]["username"] == "staff_one"


# =============================================================================
# ADMIN ALLOWED
# =============================================================================


class TestAdminAllowed:
    def test_can_list_users(self, client, admin_headers, staff_user):
        resp = client.get("/api/users", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["data"]["pagination"]["total"] == 2

    def test_sees_every_distributor(self, client, admin_headers, distributor, other_distributor):
        resp = client.get("/api/distributors", headers=admin_headers)
        assert resp.status_code == 200
        names = {d["distributor_name"] for d in resp.json["data"]["distributors"]}
        assert names == {"Alpha Traders", "Beta Supplies"}


# =============================================================================
# STAFF SCOPING
# =============================================================================


class TestStaffScoping:
    def test_distributor_list_scoped(self, client, staff_headers, distributor, other_distributor):
        resp = client.get("/api/distributors", headers=staff_headers)
        names = [d["distributor_name"] for d in resp.json["data"]["distributors"]]
        assert names == ["Alpha Traders"]

    def test_unassigned_distributor_detail_denied(self, client, staff_headers, other_distributor):
        resp = client.get(f"/api/distributors/{other_distributor.distributor_id}", headers=staff_headers)
        assert resp.status_code == 403
        assert resp.json["message"] == "Access denied: Distributor not assigned to you"

    def test_cannot_invoice_unassigned_distributor(self, client, staff_headers, other_distributor, product):
        resp = create_invoice(client, staff_headers, other_distributor.distributor_id, [
            {"product_id": product.product_id, "quantity": 1},
        ])
        assert resp.status_code == 403

    def test_other_staff_cannot_see_invoice(self, client, other_staff_headers, sent_invoice):
        resp = client.get(f"/api/invoices/{sent_invoice}", headers=other_staff_headers)
        assert resp.status_code == 404
        assert resp.json["message"] == "Invoice not found or access denied"

        listing = client.get("/api/invoices", headers=other_staff_headers)
        assert listing.json["data"]["invoices"] == []
