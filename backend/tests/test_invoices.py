"""Invoice lifecycle, numbering, scoping and overdue handling."""

from datetime import timedelta

import pytest

from app.models import Invoice
from app.services.invoice_service import mark_overdue_invoices
from app.time_utils import today
from conftest import create_invoice


def _number_prefix():
    return f"INV-{today():%Y%m}-"


def _pay(client, headers, invoice_id, amount, method="cash"):
    return client.post("/api/payments", json={
        "invoice_id": invoice_id, "amount": amount, "payment_method": method,
    }, headers=headers)


class TestCreateInvoice:
    def test_totals_and_defaults(self, client, staff_headers, staff_user, distributor, product, plain_product):
        resp = create_invoice(client, staff_headers, distributor.distributor_id, [
            {"product_id": product.product_id, "quantity": 2, "discount_percentage": 10},
            {"product_id": plain_product.product_id, "quantity": 1},
        ], discount_amount=8, notes="  first order  ")

        assert resp.status_code == 201
        assert resp.json["message"] == "Invoice created successfully"
        data = resp.json["data"]
        assert data["invoice_number"] == f"{_number_prefix()}0001"
        assert data["status"] == "draft"
        assert data["sales_staff_id"] == staff_user.user_id
        assert data["subtotal"] == 230.0
        assert data["tax_amount"] == 18.0
        assert data["discount_amount"] == 8.0
        assert data["total_amount"] == 240.0
        assert data["paid_amount"] == 0.0
        assert data["balance_amount"] == 240.0
        assert data["notes"] == "first order"
        assert data["invoice_date"] == today().isoformat()
        assert data["due_date"] == (today() + timedelta(days=30)).isoformat()
        assert data["distributor_name"] == "Alpha Traders"

        items = data["items"]
        assert [i["line_total"] for i in items] == [198.0, 50.0]
        assert items[0]["unit_price"] == 100.0
        assert items[0]["tax_rate"] == 10.0
        assert items[0]["product_name"] == "Widget"

    def test_numbers_are_sequential(self, client, staff_headers, distributor, product):
        items = [{"product_id": product.product_id, "quantity": 1}]
        first = create_invoice(client, staff_headers, distributor.distributor_id, items).json["data"]
        second = create_invoice(client, staff_headers, distributor.distributor_id, items).json["data"]
        assert first["invoice_number"].endswith("-0001")
        assert second["invoice_number"].endswith("-0002")

        resp = client.get("/api/invoices/number/next", headers=staff_headers)
        assert resp.json["data"]["next_invoice_number"] == f"{_number_prefix()}0003"

    def test_line_overrides_product_price_and_tax(self, client, staff_headers, distributor, product):
        resp = create_invoice(client, staff_headers, distributor.distributor_id, [
            {"product_id": product.product_id, "quantity": 1, "unit_price": 80, "tax_rate": 0},
        ])
        data = resp.json["data"]
        assert data["total_amount"] == 80.0
        assert data["items"][0]["tax_rate"] == 0.0

    def test_explicit_due_date(self, client, staff_headers, distributor, product):
        resp = create_invoice(client, staff_headers, distributor.distributor_id, [
            {"product_id": product.product_id, "quantity": 1},
        ], due_date="2030-01-31")
        assert resp.json["data"]["due_date"] == "2030-01-31"

    def test_inactive_distributor(self, client, admin_headers, db_session, distributor, product):
        distributor.is_active = False
        db_session.commit()
        resp = create_invoice(client, admin_headers, distributor.distributor_id, [
            {"product_id": product.product_id, "quantity": 1},
        ])
        assert resp.status_code == 400
        assert resp.json["message"] == "Distributor is inactive"

    def test_unknown_distributor_for_admin(self, client, admin_headers, product):
        resp = create_invoice(client, admin_headers, 999999, [{"product_id": product.product_id, "quantity": 1}])
        assert resp.status_code == 404

    def test_inactive_product(self, client, staff_headers, db_session, distributor, product):
        product.is_active = False
        db_session.commit()
        resp = create_invoice(client, staff_headers, distributor.distributor_id, [
            {"product_id": product.product_id, "quantity": 1},
        ])
        assert resp.status_code == 400
        assert resp.json["message"] == f"Product ID {product.product_id} not found or inactive"

    @pytest.mark.parametrize(
        "items,extra,message",
        [
            ([], {}, "At least one item is required"),
            ([{"quantity": 1}], {}, "Item 1: product_id is required"),
            (None, {}, "At least one item is required"),
            ("PRODUCT", {}, "At least one item is required"),
        ],
    )
    def test_item_validation(self, client, staff_headers, distributor, items, extra, message):
        resp = create_invoice(client, staff_headers, distributor.distributor_id, items, **extra)
        assert resp.status_code == 400
        assert resp.json["message"] == message

    @pytest.mark.parametrize(
        "line,extra,message",
        [
            ({"quantity": 0}, {}, "Quantity must be greater than 0"),
            ({"quantity": -2}, {}, "Quantity must be greater than 0"),
            ({"quantity": 1, "discount_percentage": 150}, {}, "discount_percentage must be at most 100"),
            ({"quantity": 1, "unit_price": -5}, {}, "unit_price must be at least 0"),
            ({"quantity": 1}, {"discount_amount": -5}, "Discount amount must be a positive number"),
            ({"quantity": 1}, {"discount_amount": 500}, "Discount amount cannot exceed invoice total"),
            ({"quantity": 1}, {"due_date": "31/01/2030"}, "due_date must be a valid date (YYYY-MM-DD)"),
            ({"quantity": "NaN"}, {}, "quantity must be a number"),
            ({"quantity": "Infinity"}, {}, "quantity must be a number"),
            ({"quantity": "1e30"}, {}, "quantity is out of range"),
            ({"quantity": 100000000}, {}, "quantity is out of range"),
            ({"quantity": 1, "unit_price": "NaN"}, {}, "unit_price must be a number"),
            ({"quantity": 1, "unit_price": "-Infinity"}, {}, "unit_price must be a number"),
            ({"quantity": 1, "unit_price": "1e30"}, {}, "unit_price is out of range"),
            ({"quantity": 2, "unit_price": 9999999999}, {}, "Invoice total is out of range"),
            ({"quantity": 1}, {"discount_amount": "NaN"}, "discount_amount must be a number"),
            ({"quantity": 1}, {"discount_amount": "Infinity"}, "discount_amount must be a number"),
            ({"quantity": 1}, {"discount_amount": "1e30"}, "discount_amount is out of range"),
        ],
    )
    def test_line_validation(self, client, staff_headers, distributor, product, line, extra, message):
        resp = create_invoice(
            client, staff_headers, distributor.distributor_id,
            [{"product_id": product.product_id, **line}], **extra,
        )
        assert resp.status_code == 400
        assert resp.json["message"] == message

    def test_missing_distributor(self, client, staff_headers, product):
        resp = client.post("/api/invoices", json={
            "items": [{"product_id": product.product_id, "quantity": 1}],
        }, headers=staff_headers)
        assert resp.status_code == 400
        assert resp.json["message"] == "Valid distributor ID is required"


class TestUpdateInvoice:
    def test_replace_items_keeps_discount(self, client, staff_headers, distributor, product, plain_product):
        invoice_id = create_invoice(client, staff_headers, distributor.distributor_id, [
            {"product_id": product.product_id, "quantity": 1},
        ], discount_amount=10).json["data"]["invoice_id"]

        resp = client.put(f"/api/invoices/{invoice_id}", json={
            "items": [{"product_id": plain_product.product_id, "quantity": 4}],
        }, headers=staff_headers)
        assert resp.status_code == 200
        data = resp.json["data"]
        assert data["subtotal"] == 200.0
        assert data["tax_amount"] == 0.0
        assert data["discount_amount"] == 10.0
        assert data["total_amount"] == 190.0

        detail = client.get(f"/api/invoices/{invoice_id}", headers=staff_headers).json["data"]
        assert [i["product_id"] for i in detail["items"]] == [plain_product.product_id]

    def test_discount_only_change(self, client, staff_headers, distributor, product):
        invoice_id = create_invoice(client, staff_headers, distributor.distributor_id, [
            {"product_id": product.product_id, "quantity": 1},
        ]).json["data"]["invoice_id"]

        resp = client.put(f"/api/invoices/{invoice_id}", json={"discount_amount": 10}, headers=staff_headers)
        assert resp.json["data"]["total_amount"] == 100.0

        resp = client.put(f"/api/invoices/{invoice_id}", json={"discount_amount": 111}, headers=staff_headers)
        assert resp.status_code == 400

    def test_notes_and_due_date(self, client, staff_headers, distributor, product):
        invoice_id = create_invoice(client, staff_headers, distributor.distributor_id, [
            {"product_id": product.product_id, "quantity": 1},
        ]).json["data"]["invoice_id"]
        resp = client.put(f"/api/invoices/{invoice_id}", json={
            "notes": "deliver friday", "due_date": "2031-05-01",
        }, headers=staff_headers)
        assert resp.json["data"]["notes"] == "deliver friday"
        assert resp.json["data"]["due_date"] == "2031-05-01"

    def test_sent_invoice_not_editable(self, client, staff_headers, sent_invoice):
        resp = client.put(f"/api/invoices/{sent_invoice}", json={"notes": "late edit"}, headers=staff_headers)
        assert resp.status_code == 404
        assert resp.json["message"] == "Invoice not found, not editable, or access denied"


class TestLifecycle:
    def test_send_once(self, client, staff_headers, distributor, product):
        invoice_id = create_invoice(client, staff_headers, distributor.distributor_id, [
            {"product_id": product.product_id, "quantity": 1},
        ]).json["data"]["invoice_id"]

        resp = client.post(f"/api/invoices/{invoice_id}/send", headers=staff_headers)
        assert resp.status_code == 200
        assert resp.json["data"]["status"] == "sent"

        again = client.post(f"/api/invoices/{invoice_id}/send", headers=staff_headers)
        assert again.status_code == 404
        assert again.json["message"] == "Invoice not found, already sent, or access denied"

    def test_cancel_unpaid_sent_invoice(self, client, staff_headers, sent_invoice):
        resp = client.delete(f"/api/invoices/{sent_invoice}", headers=staff_headers)
        assert resp.status_code == 200
        assert resp.json["data"]["status"] == "cancelled"

        again = client.delete(f"/api/invoices/{sent_invoice}", headers=staff_headers)
        assert again.status_code == 404

    def test_cannot_cancel_after_payment(self, client, staff_headers, sent_invoice):
        assert _pay(client, staff_headers, sent_invoice, 20).status_code == 201
        resp = client.delete(f"/api/invoices/{sent_invoice}", headers=staff_headers)
        assert resp.status_code == 404
        assert resp.json["message"] == "Invoice not found, cannot be cancelled, or access denied"

    def test_admin_can_act_on_any_invoice(self, client, admin_headers, sent_invoice):
        resp = client.get(f"/api/invoices/{sent_invoice}", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["data"]["sales_staff_name"] == "Staff One"

    def test_pdf_placeholder(self, client, staff_headers, sent_invoice):
        resp = client.get(f"/api/invoices/{sent_invoice}/pdf", headers=staff_headers)
        assert resp.status_code == 200
        assert resp.json["message"] == "PDF generation is under development"


class TestDuplicate:
    def test_duplicate_creates_new_draft(self, client, db_session, staff_headers, distributor, product):
        source = create_invoice(client, staff_headers, distributor.distributor_id, [
            {"product_id": product.product_id, "quantity": 2, "discount_percentage": 10},
        ], discount_amount=5, notes="repeat order").json["data"]

        # a 15-day payment term
        invoice = db_session.get(Invoice, source["invoice_id"])
        invoice.invoice_date = today() - timedelta(days=40)
        invoice.due_date = today() - timedelta(days=25)
        invoice.status = "paid"
        db_session.commit()

        resp = client.post(f"/api/invoices/{source['invoice_id']}/duplicate", headers=staff_headers)
        assert resp.status_code == 201
        copy = resp.json["data"]
        assert copy["invoice_id"] != source["invoice_id"]
        assert copy["invoice_number"].endswith("-0002")
        assert copy["status"] == "draft"
        assert copy["total_amount"] == source["total_amount"]
        assert copy["discount_amount"] == 5.0
        assert copy["notes"] == "repeat order"
        assert copy["invoice_date"] == today().isoformat()
        assert copy["due_date"] == (today() + timedelta(days=15)).isoformat()

    def test_other_staff_cannot_duplicate(self, client, other_staff_headers, sent_invoice):
        resp = client.post(f"/api/invoices/{sent_invoice}/duplicate", headers=other_staff_headers)
        assert resp.status_code == 404
        assert resp.json["message"] == "Source invoice not found or access denied"


class TestListing:
    def test_filters(self, client, staff_headers, distributor, product, sent_invoice):
        create_invoice(client, staff_headers, distributor.distributor_id, [
            {"product_id": product.product_id, "quantity": 1},
        ])

        all_rows = client.get("/api/invoices", headers=staff_headers).json["data"]
        assert all_rows["pagination"] == {"page": 1, "limit": 20, "total": 2, "pages": 1}
        assert all_rows["invoices"][0]["item_count"] == 1

        sent = client.get("/api/invoices?status=sent", headers=staff_headers).json["data"]["invoices"]
        assert [i["invoice_id"] for i in sent] == [sent_invoice]

        by_number = client.get("/api/invoices?search=-0001", headers=staff_headers).json["data"]["invoices"]
        assert [i["invoice_id"] for i in by_number] == [sent_invoice]

        future = (today() + timedelta(days=1)).isoformat()
        empty = client.get(f"/api/invoices?start_date={future}", headers=staff_headers).json["data"]
        assert empty["pagination"]["total"] == 0

    def test_paging(self, client, staff_headers, distributor, product):
        for _ in range(3):
            create_invoice(client, staff_headers, distributor.distributor_id, [
                {"product_id": product.product_id, "quantity": 1},
            ])
        page = client.get("/api/invoices?page=2&limit=2", headers=staff_headers).json["data"]
        assert len(page["invoices"]) == 1
        assert page["pagination"]["pages"] == 2

    @pytest.mark.parametrize("query", ["status=unpaid", "start_date=yesterday"])
    def test_bad_filters(self, client, staff_headers, query):
        resp = client.get(f"/api/invoices?{query}", headers=staff_headers)
        assert resp.status_code == 400


class TestOverdue:
    def _make_past_due(self, session, invoice_id, days=5):
        invoice = session.get(Invoice, invoice_id)
        invoice.due_date = today() - timedelta(days=days)
        session.commit()

    def test_overdue_list_and_sweep(self, app, client, db_session, staff_headers, sent_invoice):
        self._make_past_due(db_session, sent_invoice, days=5)

        rows = client.get("/api/invoices/overdue/list", headers=staff_headers).json["data"]
        assert [r["invoice_id"] for r in rows] == [sent_invoice]
        assert rows[0]["days_overdue"] == 5
        assert rows[0]["status"] == "sent"

        assert mark_overdue_invoices() == 1
        assert db_session.get(Invoice, sent_invoice).status == "overdue"
        assert mark_overdue_invoices() == 0

    def test_sweep_command(self, app, db_session, sent_invoice):
        self._make_past_due(db_session, sent_invoice)
        result = app.test_cli_runner().invoke(args=["invoices", "mark-overdue"])
        assert result.exit_code == 0
        assert "Marked 1 invoice(s) as overdue." in result.output

    def test_drafts_are_never_overdue(self, client, db_session, staff_headers, distributor, product):
        invoice_id = create_invoice(client, staff_headers, distributor.distributor_id, [
            {"product_id": product.product_id, "quantity": 1},
        ]).json["data"]["invoice_id"]
        self._make_past_due(db_session, invoice_id)

        assert mark_overdue_invoices() == 0
        detail = client.get(f"/api/invoices/{invoice_id}", headers=staff_headers).json["data"]
        assert detail["days_overdue"] == 0

    def test_partial_payment_keeps_overdue(self, client, db_session, staff_headers, sent_invoice):
        self._make_past_due(db_session, sent_invoice)
        mark_overdue_invoices()

        resp = _pay(client, staff_headers, sent_invoice, 50)
        assert resp.json["data"]["invoice"]["status"] == "overdue"


class TestSummary:
    def test_summary_counts(self, client, staff_headers, distributor, product, sent_invoice):
        draft = create_invoice(client, staff_headers, distributor.distributor_id, [
            {"product_id": product.product_id, "quantity": 1},
        ]).json["data"]
        client.delete(f"/api/invoices/{draft['invoice_id']}", headers=staff_headers)
        _pay(client, staff_headers, sent_invoice, 20)

        data = client.get("/api/invoices/stats/summary", headers=staff_headers).json["data"]
        assert data["total_invoices"] == 2
        assert data["cancelled_invoices"] == 1
        assert data["partial_paid_invoices"] == 1
        assert data["total_amount"] == 220.0
        assert data["total_paid"] == 20.0
        assert data["total_outstanding"] == 200.0
        assert data["today_invoices"] == 1

    def test_summary_scoped_to_staff(self, client, other_staff_headers, sent_invoice):
        data = client.get("/api/invoices/stats/summary", headers=other_staff_headers).json["data"]
        assert data["total_invoices"] == 0
        assert data["average_invoice_amount"] == 0.0
