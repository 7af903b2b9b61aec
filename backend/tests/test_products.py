"""Product catalog routes and sales analytics."""

import pytest

from conftest import create_invoice


class TestProductCrud:
    def test_create_defaults(self, client, admin_headers):
        resp = client.post("/api/products", json={"product_name": "Bolt", "unit_price": "12.345"}, headers=admin_headers)
        assert resp.status_code == 201
        data = resp.json["data"]
        assert data["unit_price"] == 12.35
        assert data["unit_of_measure"] == "piece"
        assert data["tax_rate"] == 0.0

    def test_duplicate_code(self, client, admin_headers, product):
        resp = client.post("/api/products", json={
            "product_name": "Other", "product_code": "WID-001", "unit_price": 1,
        }, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json["message"] == "Product code already exists"

    @pytest.mark.parametrize(
        "payload,message",
        [
            ({"product_name": "X", "unit_price": -1}, "unit_price must be at least 0"),
            ({"product_name": "X", "unit_price": 1, "tax_rate": 101}, "tax_rate must be at most 100"),
            ({"product_name": "X", "unit_price": "abc"}, "unit_price must be a number"),
            ({"product_name": "X", "unit_price": "Infinity"}, "unit_price must be a number"),
            ({"product_name": "X", "unit_price": "1e30"}, "unit_price is out of range"),
            ({"product_name": "X", "unit_price": 1, "tax_rate": "NaN"}, "tax_rate must be a number"),
            ({"unit_price": 1}, "Missing required fields: product_name"),
        ],
    )
    def test_validation(self, client, admin_headers, payload, message):
        resp = client.post("/api/products", json=payload, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json["message"] == message

    def test_update_and_deactivate(self, client, admin_headers, product):
        resp = client.put(f"/api/products/{product.product_id}", json={"unit_price": 120}, headers=admin_headers)
        assert resp.json["data"]["unit_price"] == 120.0

        resp = client.patch(f"/api/products/{product.product_id}/deactivate", headers=admin_headers)
        assert resp.json["data"]["is_active"] is False

        resp = client.get("/api/products?is_active=true", headers=admin_headers)
        assert resp.json["data"]["products"] == []

    def test_delete_refused_when_invoiced(self, client, admin_headers, staff_headers, distributor, product):
        create_invoice(client, staff_headers, distributor.distributor_id, [
            {"product_id": product.product_id, "quantity": 1},
        ])
        resp = client.delete(f"/api/products/{product.product_id}", headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json["data"] == {"invoiceCount": 1}

    def test_delete_unused(self, client, admin_headers, plain_product):
        resp = client.delete(f"/api/products/{plain_product.product_id}", headers=admin_headers)
        assert resp.status_code == 200
        assert client.get(f"/api/products/{plain_product.product_id}", headers=admin_headers).status_code == 404


class TestBulkImport:
    def test_partial_success(self, client, admin_headers, product):
        resp = client.post("/api/products/bulk-import", json={"products": [
            {"product_name": "A", "unit_price": 1},
            {"product_name": "B", "unit_price": 2, "product_code": "WID-001"},
            {"unit_price": 3},
        ]}, headers=admin_headers)
        assert resp.status_code == 200
        data = resp.json["data"]
        assert data["successful"] == 1
        assert data["failed"] == 2
        assert data["errors"][0] == {"row": 2, "error": "Product code 'WID-001' already exists"}
        assert data["errors"][1]["row"] == 3
        assert resp.json["message"] == "Bulk import completed. 1 successful, 2 failed."

    def test_requires_array(self, client, admin_headers, db_session):
        resp = client.post("/api/products/bulk-import", json={"products": []}, headers=admin_headers)
        assert resp.status_code == 400


class TestProductQueries:
    def test_search_suggestions(self, client, staff_headers, product, plain_product):
        resp = client.get("/api/products/search/suggestions?q=wid", headers=staff_headers)
        assert [p["product_code"] for p in resp.json["data"]] == ["WID-001"]

    def test_categories_list(self, client, staff_headers, product, plain_product):
        resp = client.get("/api/products/categories/list", headers=staff_headers)
        assert resp.json["data"] == [{"category": "Hardware", "product_count": 1}]

    def test_sales_figures(self, client, staff_headers, distributor, product, plain_product):
        create_invoice(client, staff_headers, distributor.distributor_id, [
            {"product_id": product.product_id, "quantity": 3},
            {"product_id": plain_product.product_id, "quantity": 1.5},
        ])

        detail = client.get(f"/api/products/{product.product_id}", headers=staff_headers).json["data"]
        assert detail["times_sold"] == 1
        assert detail["total_quantity_sold"] == 3.0
        assert detail["total_revenue"] == 330.0
        assert detail["recent_sales"][0]["distributor_name"] == "Alpha Traders"

        top = client.get("/api/products/analytics/top-selling?period=month", headers=staff_headers).json["data"]
        assert [p["product_name"] for p in top] == ["Widget", "Gadget"]
        assert top[1]["total_quantity_sold"] == 1.5

        summary = client.get("/api/products/analytics/summary", headers=staff_headers).json["data"]
        assert summary["total_products"] == 2
        assert summary["products_with_sales"] == 2
        assert summary["top_selling_product"] == "Widget"

    def test_top_selling_invalid_period(self, client, staff_headers, db_session):
        resp = client.get("/api/products/analytics/top-selling?period=decade", headers=staff_headers)
        assert resp.status_code == 400
