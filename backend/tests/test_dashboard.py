"""
Dashboard figures.

Admins see team-wide numbers; sales staff see only invoices they issued and
payments they collected.
"""

import pytest

from app.time_utils import today
from conftest import create_invoice


@pytest.fixture
def activity(client, admin_headers, staff_headers, sent_invoice, other_distributor, product):
    """
    staff_one: sent invoice of 220 with 100 collected.
    admin: draft invoice of 110 for Beta Supplies.
    """
    client.post("/api/payments", json={
        "invoice_id": sent_invoice, "amount": 100, "payment_method": "cash",
    }, headers=staff_headers)
    create_invoice(client, admin_headers, other_distributor.distributor_id, [
        {"product_id": product.product_id, "quantity": 1},
    ])
    return sent_invoice


class TestStats:
    def test_admin_sees_everything(self, client, admin_headers, activity):
        resp = client.get("/api/dashboard/stats", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["data"]["user_role"] == "admin"
        stats = resp.json["data"]["stats"]

        assert stats["total_users"] == 3
        assert stats["total_sales_staff"] == 2
        assert stats["total_distributors"] == 2
        assert stats["total_products"] == 1
        assert stats["total_categories"] == 1

        assert stats["total_invoices"] == 2
        assert stats["pending_invoices"] == 1
        assert stats["paid_invoices"] == 0
        assert stats["today_invoices"] == 2
        assert stats["total_revenue"] == 330.0
        assert stats["total_paid"] == 100.0
        assert stats["total_pending"] == 230.0
        assert stats["today_payments"] == 1
        assert stats["today_collections"] == 100.0

    def test_staff_sees_own_work(self, client, staff_headers, activity):
        data = client.get("/api/dashboard/stats", headers=staff_headers).json["data"]
        assert data["user_role"] == "sales_staff"
        stats = data["stats"]
        assert "total_users" not in stats
        assert stats["assigned_distributors"] == 1
        assert stats["total_invoices"] == 1
        assert stats["total_revenue"] == 220.0
        assert stats["total_pending"] == 120.0
        assert stats["month_collections"] == 100.0

    def test_idle_staff(self, client, other_staff_headers, activity):
        stats = client.get("/api/dashboard/stats", headers=other_staff_headers).json["data"]["stats"]
        assert stats["assigned_distributors"] == 1
        assert stats["total_invoices"] == 0
        assert stats["total_revenue"] == 0.0
        assert stats["today_collections"] == 0.0


class TestRecentActivities:
    def test_staff_feed_is_their_own(self, client, staff_headers, activity):
        feed = client.get("/api/dashboard/recent-activities", headers=staff_headers).json["data"]
        assert sorted(a["activity_type"] for a in feed) == ["invoice_created", "payment_received"]
        assert {a["performed_by"] for a in feed} == {"You"}

    def test_admin_feed_includes_distributors(self, client, admin_headers, activity):
        feed = client.get("/api/dashboard/recent-activities", headers=admin_headers).json["data"]
        kinds = [a["activity_type"] for a in feed]
        assert kinds.count("invoice_created") == 2
        assert kinds.count("payment_received") == 1
        assert kinds.count("distributor_added") == 2

        payment = next(a for a in feed if a["activity_type"] == "payment_received")
        assert payment["performed_by"] == "Staff One"
        assert payment["amount"] == 100.0
        assert payment["activity_date"].endswith("Z")

    def test_limit(self, client, admin_headers, activity):
        feed = client.get("/api/dashboard/recent-activities?limit=2", headers=admin_headers).json["data"]
        assert len(feed) == 2


class TestCharts:
    def test_revenue_by_day(self, client, staff_headers, activity):
        rows = client.get("/api/dashboard/charts/revenue?period=day", headers=staff_headers).json["data"]
        assert rows == [{
            "period_label": today().isoformat(),
            "period_date": today().isoformat(),
            "invoice_count": 1,
            "total_revenue": 220.0,
            "total_collected": 100.0,
        }]

    def test_revenue_year_buckets_by_month(self, client, admin_headers, activity):
        rows = client.get("/api/dashboard/charts/revenue?period=year", headers=admin_headers).json["data"]
        assert len(rows) == 1
        assert rows[0]["period_date"] == today().replace(day=1).isoformat()
        assert rows[0]["invoice_count"] == 2

    def test_revenue_invalid_period(self, client, staff_headers):
        resp = client.get("/api/dashboard/charts/revenue?period=decade", headers=staff_headers)
        assert resp.status_code == 400
        assert resp.json["success"] is False

    def test_top_distributors(self, client, admin_headers, activity):
        rows = client.get("/api/dashboard/charts/top-distributors", headers=admin_headers).json["data"]
        assert [r["distributor_name"] for r in rows] == ["Alpha Traders", "Beta Supplies"]
        assert rows[0]["outstanding_amount"] == 120.0
        assert rows[0]["collection_rate"] == 45.45
        assert rows[1]["collection_rate"] == 0.0

    def test_top_distributors_scoped(self, client, other_staff_headers, activity):
        rows = client.get("/api/dashboard/charts/top-distributors", headers=other_staff_headers).json["data"]
        assert rows == []


class TestPerformance:
    def test_individual(self, client, staff_headers, activity):
        data = client.get("/api/dashboard/performance", headers=staff_headers).json["data"]
        current = data["current_period"]
        assert current["scope"] == "individual"
        assert current["total_invoices"] == 1
        assert current["total_revenue"] == 220.0
        assert current["collection_rate"] == 45.45
        assert current["payments_collected"] == 1
        assert current["amount_collected"] == 100.0
        assert data["previous_period"] == {"prev_total_invoices": 0, "prev_total_revenue": 0.0}
        assert data["growth"] == {"invoice_growth": 0.0, "revenue_growth": 0.0}
        assert data["period"] == "month"

    def test_team(self, client, admin_headers, activity):
        current = client.get("/api/dashboard/performance?period=week", headers=admin_headers).json["data"]["current_period"]
        assert current["scope"] == "team"
        assert current["active_staff"] == 2
        assert current["total_invoices"] == 2
        assert current["avg_invoices_per_staff"] == 1.0
        assert current["avg_revenue_per_staff"] == 165.0
        assert "payments_collected" not in current

    def test_invalid_period(self, client, admin_headers):
        resp = client.get("/api/dashboard/performance?period=day", headers=admin_headers)
        assert resp.status_code == 400
