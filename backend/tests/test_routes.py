"""
API tests.

Verifies:
- Requests without a known X-User-Id return 401
- DepartmentEmployees only see their own requests and their category's products
- Service errors map to 400 / 403 / 404 / 409
"""

import io

import pytest

from warehouse_edge.services import material_request_service


def _h(user_id: str) -> dict:
    return {"X-User-Id": user_id}


def _submit(client, user_id="user3", product_id="prod1", quantity=2):
    return client.post(
        "/api/material-requests",
        json={
            "items": [{"product_id": product_id, "quantity": quantity}],
            "reason_for_request": "Bench spares",
            "requested_date": "2024-08-05",
        },
        headers=_h(user_id),
    )


# =============================================================================
# IDENTITY (401)
# =============================================================================


class TestIdentity:
    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/material-requests"),
            ("POST", "/api/material-requests"),
            ("GET", "/api/products"),
            ("GET", "/api/reports/dashboard"),
            ("GET", "/api/inventory/transactions"),
            ("POST", "/api/imports/products"),
        ],
    )
    def test_requires_user(self, client, seed, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_unknown_user(self, client, seed):
        assert client.get("/api/products", headers=_h("ghost")).status_code == 401

    def test_health_is_open(self, client, seed):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json["checks"]["database"]["details"]["products"] == 3


# =============================================================================
# MATERIAL REQUESTS
# =============================================================================


class TestMaterialRequestApi:
    def test_submit_and_approve(self, client, seed):
        resp = _submit(client)
        assert resp.status_code == 201
        request_id = resp.json["request"]["id"]
        assert resp.json["request"]["status"] == "Pending"

        resp = client.post(
            f"/api/material-requests/{request_id}/approve",
            json={"notes": "Go ahead"},
            headers=_h("user2"),
        )
        assert resp.status_code == 200
        assert resp.json["request"]["status"] == "Approved"
        assert resp.json["request"]["approver_name"] == "Bob Manager"

        resp = client.post(f"/api/material-requests/{request_id}/complete", headers=_h("user1"))
        assert resp.status_code == 200
        assert resp.json["request"]["status"] == "Completed"

    def test_employee_sees_only_own_requests(self, client, seed):
        _submit(client, user_id="user3")
        _submit(client, user_id="user4", product_id="prod3")

        charlie = client.get("/api/material-requests", headers=_h("user3")).json
        assert {r["requester_id"] for r in charlie["requests"]} == {"user3"}

        # requester_id in the query cannot widen an employee's view
        sneaky = client.get("/api/material-requests?requester_id=user4", headers=_h("user3")).json
        assert {r["requester_id"] for r in sneaky["requests"]} == {"user3"}

        manager = client.get("/api/material-requests", headers=_h("user2")).json
        assert manager["count"] == 2

    def test_employee_cannot_open_others_request(self, client, seed):
        request_id = _submit(client, user_id="user4", product_id="prod3").json["request"]["id"]
        assert client.get(f"/api/material-requests/{request_id}", headers=_h("user3")).status_code == 403
        assert client.get(f"/api/material-requests/{request_id}", headers=_h("user4")).status_code == 200

    def test_status_filter(self, client, seed):
        first = _submit(client).json["request"]["id"]
        _submit(client)
        client.post(f"/api/material-requests/{first}/cancel", headers=_h("user3"))

        resp = client.get("/api/material-requests?status=Cancelled", headers=_h("user3"))
        assert [r["id"] for r in resp.json["requests"]] == [first]
        assert client.get("/api/material-requests?status=Lost", headers=_h("user3")).status_code == 400

    def test_error_mapping(self, client, seed):
        request_id = _submit(client).json["request"]["id"]

        assert _submit(client, quantity=0).status_code == 400
        assert _submit(client, user_id="user2").status_code == 403
        assert _submit(client, product_id="prod3").status_code == 403
        assert _submit(client, product_id="missing").status_code == 404

        assert client.post(f"/api/material-requests/{request_id}/approve", headers=_h("user3")).status_code == 403
        assert client.post(f"/api/material-requests/{request_id}/cancel", headers=_h("user4")).status_code == 403
        assert client.post("/api/material-requests/mr-nope/approve", headers=_h("user2")).status_code == 404
        assert client.get("/api/material-requests/mr-nope", headers=_h("user2")).status_code == 404

        assert client.post(f"/api/material-requests/{request_id}/reject", headers=_h("user2")).status_code == 200
        assert client.post(f"/api/material-requests/{request_id}/approve", headers=_h("user2")).status_code == 409

    def test_window_ending_today_includes_today(self, client, seed):
        submitted = _submit(client).json["request"]
        request_id = submitted["id"]
        today = submitted["submission_date"][:10]
        resp = client.get(f"/api/material-requests?start={today}&end={today}", headers=_h("user3"))
        assert resp.status_code == 200
        assert [r["id"] for r in resp.json["requests"]] == [request_id]

    def test_unexpected_failure_on_detail_is_500(self, client, seed, monkeypatch):
        def _boom(request_id):
            raise RuntimeError("database went away")

        monkeypatch.setattr(material_request_service, "get_request", _boom)
        resp = client.get("/api/material-requests/mr-any", headers=_h("user2"))
        assert resp.status_code == 500
        assert resp.json == {"error": "Internal server error"}

    def test_edit(self, client, seed):
        request_id = _submit(client).json["request"]["id"]
        resp = client.put(
            f"/api/material-requests/{request_id}",
            json={
                "items": [{"product_id": "prod2", "quantity": 4}],
                "reason_for_request": "Revised",
                "requested_date": "2024-09-01",
            },
            headers=_h("user3"),
        )
        assert resp.status_code == 200
        assert resp.json["request"]["items"] == [
            {"product_id": "prod2", "product_name": "Beta-Series RAM Module", "quantity": 4}
        ]


# =============================================================================
# CATALOG / LEDGER / REPORTS / IMPORTS
# =============================================================================


class TestInventoryApi:
    def test_employee_sees_only_their_category(self, client, seed):
        resp = client.get("/api/products", headers=_h("user4"))
        assert [p["id"] for p in resp.json["products"]] == ["prod3"]
        assert client.get("/api/products/prod1", headers=_h("user4")).status_code == 404

    def test_product_create_and_patch(self, client, seed):
        resp = client.post(
            "/api/products",
            json={"sku": "OFF-PEN-01", "name": "Pens", "category": "Office Supplies",
                  "warehouse_id": "wh1", "quantity": 60, "reorder_level": 20},
            headers=_h("user2"),
        )
        assert resp.status_code == 201
        product_id = resp.json["product"]["id"]

        resp = client.patch(f"/api/products/{product_id}", json={"quantity": 1}, headers=_h("user2"))
        assert resp.status_code == 400
        resp = client.patch(f"/api/products/{product_id}", json={"status": "Damaged"}, headers=_h("user2"))
        assert resp.status_code == 200
        assert resp.json["product"]["status"] == "Damaged"

        dup = client.post(
            "/api/products",
            json={"sku": "OFF-PEN-01", "name": "Pens", "category": "Office Supplies", "warehouse_id": "wh1"},
            headers=_h("user1"),
        )
        assert dup.status_code == 409

    def test_employee_cannot_manage(self, client, seed):
        resp = client.post("/api/products", json={"sku": "X"}, headers=_h("user3"))
        assert resp.status_code == 403
        resp = client.post(
            "/api/inventory/transactions",
            json={"product_id": "prod1", "type": "Inflow", "quantity_change": 5},
            headers=_h("user3"),
        )
        assert resp.status_code == 403

    def test_record_and_list_transactions(self, client, seed):
        resp = client.post(
            "/api/inventory/transactions",
            json={"product_id": "prod1", "type": "Outflow", "quantity_change": -20, "reason": "Line A"},
            headers=_h("user2"),
        )
        assert resp.status_code == 201
        assert resp.json["transaction"]["user"] == "Bob Manager"

        resp = client.post(
            "/api/inventory/transactions",
            json={"product_id": "prod1", "type": "Outflow", "quantity_change": -999},
            headers=_h("user2"),
        )
        assert resp.status_code == 400

        listing = client.get("/api/inventory/transactions", headers=_h("user2")).json
        assert listing["count"] == 1
        hidden = client.get("/api/inventory/transactions", headers=_h("user4")).json
        assert hidden["count"] == 0

    def test_reports(self, client, seed):
        client.post(
            "/api/inventory/transactions",
            json={"product_id": "prod1", "type": "Inflow", "quantity_change": 10,
                  "occurred_at": "2024-07-18T09:00:00Z"},
            headers=_h("user2"),
        )
        resp = client.get("/api/reports/movements?start=2024-07-18&end=2024-07-18", headers=_h("user2"))
        assert resp.status_code == 200
        assert resp.json["stats"]["inflow"]["total_quantity"] == 10

        assert client.get("/api/reports/movements?start=soon", headers=_h("user2")).status_code == 400
        assert client.get("/api/reports/movements", headers=_h("user3")).status_code == 403

        low = client.get("/api/reports/low-stock", headers=_h("user3")).json
        assert [r["id"] for r in low["rows"]] == ["prod2"]

        dashboard = client.get("/api/reports/dashboard", headers=_h("user1")).json
        assert dashboard["total_products"] == 3

    def test_import_upload_and_rejection(self, client, seed):
        csv_body = "product_id,type,quantity_change\nprod1,Outflow,-10\n"
        resp = client.post(
            "/api/imports/transactions",
            data={"file": (io.BytesIO(csv_body.encode()), "ledger.csv")},
            content_type="multipart/form-data",
            headers=_h("user2"),
        )
        assert resp.status_code == 201
        assert resp.json["recorded"] == 1

        resp = client.post(
            "/api/imports/transactions",
            json={"rows": [{"product_id": "prod1", "type": "Outflow", "quantity_change": 10}]},
            headers=_h("user2"),
        )
        assert resp.status_code == 422
        assert resp.json["errors"][0]["row"] == 1

        resp = client.post("/api/imports/products", json={"rows": []}, headers=_h("user3"))
        assert resp.status_code == 403


# =============================================================================
# SETTINGS
# =============================================================================


class TestSettingsApi:
    def test_reference_lists_open_to_everyone(self, client, seed):
        warehouses = client.get("/api/settings/warehouses", headers=_h("user3")).json
        assert [w["id"] for w in warehouses["warehouses"]] == ["wh1", "wh2"]
        categories = client.get("/api/settings/categories", headers=_h("user4")).json
        assert categories["count"] == 3

    def test_employee_cannot_change_settings(self, client, seed):
        assert client.post("/api/settings/categories", json={"name": "Tools"}, headers=_h("user3")).status_code == 403
        assert client.get("/api/settings/users", headers=_h("user3")).status_code == 403
        assert client.get("/api/settings/notifications", headers=_h("user4")).status_code == 403

    def test_create_category_then_product(self, client, seed):
        resp = client.post("/api/settings/categories", json={"name": "Tools"}, headers=_h("user2"))
        assert resp.status_code == 201
        assert client.post("/api/settings/categories", json={"name": "tools"}, headers=_h("user2")).status_code == 409

        product = {"sku": "TL-HAM-01", "name": "Hammer", "category": "Tools", "warehouse_id": "wh1"}
        assert client.post("/api/products", json=product, headers=_h("user2")).status_code == 201

        typo = dict(product, sku="TL-HAM-02", category="Tols")
        assert client.post("/api/products", json=typo, headers=_h("user2")).status_code == 404

    def test_warehouse_create_and_patch(self, client, seed):
        resp = client.post("/api/settings/warehouses", json={"name": "Cold Storage"}, headers=_h("user1"))
        assert resp.status_code == 201
        warehouse_id = resp.json["warehouse"]["id"]

        resp = client.patch(
            f"/api/settings/warehouses/{warehouse_id}", json={"location": "Building D"}, headers=_h("user1")
        )
        assert resp.json["warehouse"]["location"] == "Building D"
        assert client.post("/api/settings/warehouses", json={}, headers=_h("user1")).status_code == 400
        assert client.get("/api/settings/warehouses/wh99", headers=_h("user1")).status_code == 404

    def test_user_management(self, client, seed):
        employee = {"name": "Hank", "email": "hank@example.com", "role": "DepartmentEmployee",
                    "category_access": "Raw Materials"}
        resp = client.post("/api/settings/users", json=employee, headers=_h("user2"))
        assert resp.status_code == 201
        new_id = resp.json["user"]["id"]

        # the new account can act straight away
        assert client.get("/api/products", headers=_h(new_id)).json["count"] == 1

        manager = {"name": "Gina", "email": "gina@example.com", "role": "WarehouseManager"}
        assert client.post("/api/settings/users", json=manager, headers=_h("user2")).status_code == 403
        assert client.post("/api/settings/users", json=manager, headers=_h("user1")).status_code == 201

        missing_category = dict(employee, email="ivy@example.com", category_access=None)
        assert client.post("/api/settings/users", json=missing_category, headers=_h("user1")).status_code == 400
        assert client.post("/api/settings/users", json=employee, headers=_h("user1")).status_code == 409

        resp = client.patch(f"/api/settings/users/{new_id}", json={"category_access": "Electronics"},
                            headers=_h("user2"))
        assert resp.status_code == 200
        assert resp.json["user"]["category_access"] == "Electronics"
        assert client.get("/api/settings/users/ghost", headers=_h("user1")).status_code == 404

    def test_notification_rules(self, client, seed):
        resp = client.post(
            "/api/settings/notifications",
            json={"product_id": "prod2", "threshold": 40, "recipient": "admin@example.com", "channel": "in-app"},
            headers=_h("user1"),
        )
        assert resp.status_code == 201
        rule_id = resp.json["notification"]["id"]

        triggered = client.get("/api/settings/notifications/triggered", headers=_h("user2")).json
        assert [t["setting_id"] for t in triggered["triggered"]] == [rule_id]

        resp = client.patch(f"/api/settings/notifications/{rule_id}", json={"is_enabled": False}, headers=_h("user2"))
        assert resp.status_code == 200
        assert resp.json["notification"]["is_enabled"] is False
        assert client.get("/api/settings/notifications/triggered", headers=_h("user2")).json["count"] == 0

        bad = {"product_id": "prod2", "threshold": "2.5", "recipient": "x@example.com"}
        assert client.post("/api/settings/notifications", json=bad, headers=_h("user1")).status_code == 400
        assert client.post("/api/settings/notifications", json=[1], headers=_h("user1")).status_code == 400
