"""
tests/test_loaner_inventory_routes.py -- Integration tests for the loaner
pool and manual inventory routes.

The store is shared by every test in this module, so each test creates the
rows it needs under its own asset tag and compares summary counts before and
after rather than asserting absolute totals.

Fixtures used (from conftest.py):
  - api_client: (client, token, store)
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient


@pytest.fixture(scope="module")
def authed(api_client) -> tuple[TestClient, dict[str, str]]:
    client, token, _store = api_client
    return client, {"Authorization": f"Bearer {token}"}


def _create_loaner(client: TestClient, headers: dict[str, str], asset_tag: str, **fields) -> dict:
    body = {"asset_tag": asset_tag, "name": f"Loaner {asset_tag}", **fields}
    resp = client.post("/api/v1/loaners", json=body, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


def _create_item(client: TestClient, headers: dict[str, str], name: str, **fields) -> dict:
    body = {"name": name, "category": "monitor", **fields}
    resp = client.post("/api/v1/inventory", json=body, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.mark.parametrize(
    "method,path",
    [
        ("get", "/api/v1/loaners"),
        ("get", "/api/v1/loaners/summary"),
        ("get", "/api/v1/loaners/1"),
        ("get", "/api/v1/loaners/1/history"),
        ("delete", "/api/v1/loaners/1"),
        ("get", "/api/v1/inventory"),
        ("get", "/api/v1/inventory/summary"),
        ("get", "/api/v1/inventory/1"),
        ("delete", "/api/v1/inventory/1"),
    ],
)
def test_requires_auth(authed, method: str, path: str) -> None:
    client, _headers = authed
    resp = getattr(client, method)(path)
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "unauthorized"


class TestLoanerRoutes:
    def test_create_and_get(self, authed) -> None:
        client, headers = authed
        created = _create_loaner(client, headers, "LN-100", model="MacBook Air", serial_number="C02LN100")
        assert created["status"] == "available"
        assert created["status_label"] == "Available"
        assert created["is_overdue"] is False

        resp = client.get(f"/api/v1/loaners/{created['id']}", headers=headers)
        assert resp.status_code == 200
        assert resp.json()["serial_number"] == "C02LN100"

    def test_duplicate_asset_tag_conflicts(self, authed) -> None:
        client, headers = authed
        _create_loaner(client, headers, "LN-101")
        resp = client.post("/api/v1/loaners", json={"asset_tag": "LN-101", "name": "Again"}, headers=headers)
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "duplicate_asset_tag"

    def test_unknown_loaner_404(self, authed) -> None:
        client, headers = authed
        for resp in (
            client.get("/api/v1/loaners/99999", headers=headers),
            client.get("/api/v1/loaners/99999/history", headers=headers),
            client.post("/api/v1/loaners/99999/checkout", json={"borrower_name": "Ada"}, headers=headers),
        ):
            assert resp.status_code == 404
            assert resp.json()["error"]["code"] == "not_found"

    def test_checkout_return_and_history(self, authed) -> None:
        client, headers = authed
        loaner_id = _create_loaner(client, headers, "LN-102")["id"]

        resp = client.post(
            f"/api/v1/loaners/{loaner_id}/checkout",
            json={"borrower_name": "Ada Lovelace", "borrower_email": "ada@example.edu"},
            headers=headers,
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "checked-out"
        assert body["borrower_name"] == "Ada Lovelace"
        assert body["checkout_date"] is not None

        again = client.post(f"/api/v1/loaners/{loaner_id}/checkout", json={"borrower_name": "Grace"}, headers=headers)
        assert again.status_code == 409
        assert again.json()["error"]["code"] == "invalid_transition"

        resp = client.post(f"/api/v1/loaners/{loaner_id}/return", json={"condition": "Good"}, headers=headers)
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "available"
        assert body["borrower_name"] is None
        assert body["condition"] == "Good"

        history = client.get(f"/api/v1/loaners/{loaner_id}/history", headers=headers).json()
        assert len(history) == 1
        assert history[0]["borrower_name"] == "Ada Lovelace"
        assert history[0]["returned"] is True
        assert history[0]["actual_return_date"] is not None

    def test_return_of_available_loaner_conflicts(self, authed) -> None:
        client, headers = authed
        loaner_id = _create_loaner(client, headers, "LN-103")["id"]
        resp = client.post(f"/api/v1/loaners/{loaner_id}/return", json={}, headers=headers)
        assert resp.status_code == 409

    def test_return_date_before_checkout_rejected(self, authed) -> None:
        client, headers = authed
        loaner_id = _create_loaner(client, headers, "LN-104")["id"]
        resp = client.post(
            f"/api/v1/loaners/{loaner_id}/checkout",
            json={"borrower_name": "Ada", "checkout_date": "2026-03-10", "expected_return_date": "2026-03-01"},
            headers=headers,
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "invalid_request"

    def test_past_due_loan_counts_as_overdue(self, authed) -> None:
        client, headers = authed
        before = client.get("/api/v1/loaners/summary", headers=headers).json()
        loaner_id = _create_loaner(client, headers, "LN-105")["id"]
        resp = client.post(
            f"/api/v1/loaners/{loaner_id}/checkout",
            json={"borrower_name": "Grace Hopper", "checkout_date": "2020-01-01", "expected_return_date": "2020-01-08"},
            headers=headers,
        )
        assert resp.json()["is_overdue"] is True

        after = client.get("/api/v1/loaners/summary", headers=headers).json()
        assert after["total_loaners"] == before["total_loaners"] + 1
        assert after["checked_out"] == before["checked_out"] + 1
        assert after["overdue_count"] == before["overdue_count"] + 1

        history = client.get(f"/api/v1/loaners/{loaner_id}/history", headers=headers).json()
        assert history[0]["returned"] is False
        assert history[0]["returned_late"] is True

    def test_checked_out_loaner_cannot_be_restatused_or_deleted(self, authed) -> None:
        client, headers = authed
        loaner_id = _create_loaner(client, headers, "LN-106")["id"]
        client.post(f"/api/v1/loaners/{loaner_id}/checkout", json={"borrower_name": "Ada"}, headers=headers)

        resp = client.patch(f"/api/v1/loaners/{loaner_id}", json={"status": "retired"}, headers=headers)
        assert resp.status_code == 409
        assert client.delete(f"/api/v1/loaners/{loaner_id}", headers=headers).status_code == 409

    def test_patch_fields_and_status(self, authed) -> None:
        client, headers = authed
        loaner_id = _create_loaner(client, headers, "LN-107", notes="spare charger")["id"]
        resp = client.patch(
            f"/api/v1/loaners/{loaner_id}",
            json={"status": "maintenance", "name": None, "notes": None, "condition": "Battery swollen"},
            headers=headers,
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "maintenance"
        assert body["name"] == "Loaner LN-107"
        assert body["notes"] is None
        assert body["condition"] == "Battery swollen"

    def test_patch_cannot_set_checked_out(self, authed) -> None:
        client, headers = authed
        loaner_id = _create_loaner(client, headers, "LN-108")["id"]
        resp = client.patch(f"/api/v1/loaners/{loaner_id}", json={"status": "checked-out"}, headers=headers)
        assert resp.status_code == 422

    def test_list_filters(self, authed) -> None:
        client, headers = authed
        _create_loaner(client, headers, "LN-109", model="ThinkPad X1 Findme")
        rows = client.get("/api/v1/loaners", params={"search": "findme"}, headers=headers).json()
        assert [row["asset_tag"] for row in rows] == ["LN-109"]

        resp = client.get("/api/v1/loaners", params={"status": "lost"}, headers=headers)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "invalid_status"

    def test_delete(self, authed) -> None:
        client, headers = authed
        loaner_id = _create_loaner(client, headers, "LN-110")["id"]
        assert client.delete(f"/api/v1/loaners/{loaner_id}", headers=headers).status_code == 204
        assert client.get(f"/api/v1/loaners/{loaner_id}", headers=headers).status_code == 404


class TestInventoryRoutes:
    def test_create_and_get(self, authed) -> None:
        client, headers = authed
        created = _create_item(
            client,
            headers,
            "Epson Projector",
            category="audio-visual",
            purchase_price=899.5,
            purchase_date="2025-09-01",
        )
        assert created["category_label"] == "Audio/Visual"
        assert created["status"] == "active"
        assert created["status_label"] == "Active"

        resp = client.get(f"/api/v1/inventory/{created['id']}", headers=headers)
        assert resp.status_code == 200
        assert resp.json()["purchase_date"] == "2025-09-01"
        assert resp.json()["purchase_price"] == 899.5

    @pytest.mark.parametrize(
        "body",
        [
            {"name": "Desk", "category": "vehicles"},
            {"name": "Desk", "category": "furniture", "purchase_price": -1},
            {"name": "  ", "category": "furniture"},
        ],
    )
    def test_invalid_create_rejected(self, authed, body: dict) -> None:
        client, headers = authed
        assert client.post("/api/v1/inventory", json=body, headers=headers).status_code == 422

    def test_list_filters(self, authed) -> None:
        client, headers = authed
        _create_item(client, headers, "Zebra Label Printer", category="printer", status="needs-repair")
        rows = client.get("/api/v1/inventory", params={"category": "printer"}, headers=headers).json()
        assert "Zebra Label Printer" in [row["name"] for row in rows]
        assert all(row["category"] == "printer" for row in rows)

        rows = client.get("/api/v1/inventory", params={"search": "zebra"}, headers=headers).json()
        assert [row["name"] for row in rows] == ["Zebra Label Printer"]

        resp = client.get("/api/v1/inventory", params={"category": "vehicles"}, headers=headers)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "invalid_filter"

    def test_summary_counts_new_items(self, authed) -> None:
        client, headers = authed
        before = client.get("/api/v1/inventory/summary", headers=headers).json()
        _create_item(client, headers, "Office chair", category="furniture", purchase_price=120.25)

        after = client.get("/api/v1/inventory/summary", headers=headers).json()
        assert after["total_items"] == before["total_items"] + 1
        assert after["by_category"]["furniture"] == before["by_category"]["furniture"] + 1
        assert after["total_value"] == pytest.approx(before["total_value"] + 120.25)
        assert after["recently_added"] == before["recently_added"] + 1

    def test_patch_and_delete(self, authed) -> None:
        client, headers = authed
        item_id = _create_item(client, headers, "Dock", category="peripheral", location="Room 101")["id"]

        resp = client.patch(
            f"/api/v1/inventory/{item_id}",
            json={"status": "in-storage", "location": None, "category": None},
            headers=headers,
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "in-storage"
        assert body["location"] is None
        assert body["category"] == "peripheral"

        assert client.delete(f"/api/v1/inventory/{item_id}", headers=headers).status_code == 204
        assert client.get(f"/api/v1/inventory/{item_id}", headers=headers).status_code == 404
        assert client.patch(f"/api/v1/inventory/{item_id}", json={}, headers=headers).status_code == 404
