# Overview: API-level tests for the ledger blueprints (status codes and JSON shape).

from decimal import Decimal

from wipledger.models import WipLaunch, WipReceipt
from wipledger.services import balance_service
from wipledger.services.balance_service import BalanceKey


def _receipt_payload(route, **overrides):
    payload = {
        "part_id": route.part_id,
        "op_number": "015",
        "section_id": route.turning.id,
        "receipt_date": "2024-03-01T08:00:00Z",
        "quantity": "100",
    }
    payload.update(overrides)
    return payload


class TestReceiptRoutes:

    def test_add_receipt(self, client, db_session, route):
        response = client.post(
            "/api/wip/receipts",
            json=_receipt_payload(route, comment="casting"),
            headers={"X-User-Id": "42"},
        )

        assert response.status_code == 201
        data = response.get_json()
        assert data["op_number"] == "015"
        assert data["quantity"] == "100"
        assert data["balance_after"] == "100"
        assert data["action"] == "Created"
        assert db_session.get(WipReceipt, data["receipt_id"]).user_id == 42

    def test_missing_field(self, client, db_session, route):
        payload = _receipt_payload(route)
        del payload["quantity"]

        response = client.post("/api/wip/receipts", json=payload)

        assert response.status_code == 400
        assert response.get_json()["code"] == "validation_error"

    def test_scientific_notation_rejected(self, client, db_session, route):
        response = client.post("/api/wip/receipts", json=_receipt_payload(route, quantity="1e3"))

        assert response.status_code == 400

    def test_zero_quantity(self, client, db_session, route):
        response = client.post("/api/wip/receipts", json=_receipt_payload(route, quantity=0))

        assert response.status_code == 400
        assert response.get_json()["code"] == "invalid_quantity"

    def test_delete_and_history(self, client, db_session, route):
        created = client.post("/api/wip/receipts", json=_receipt_payload(route)).get_json()

        response = client.delete(f"/api/wip/receipts/{created['receipt_id']}")
        assert response.status_code == 200
        assert response.get_json()["balance_after"] == "0"

        history = client.get(f"/api/wip/receipts/{created['receipt_id']}/history").get_json()
        assert [v["action"] for v in history["versions"]] == ["Created", "Deleted"]
        assert history["receipt"]["is_deleted"] is True

        response = client.post(
            f"/api/wip/receipts/{created['receipt_id']}/revert",
            json={"version_id": created["version_id"]},
        )
        assert response.status_code == 200
        assert response.get_json()["balance_after"] == "100"

    def test_unknown_receipt(self, client, db_session):
        response = client.delete("/api/wip/receipts/424242")

        assert response.status_code == 404
        assert response.get_json()["code"] == "not_found"


class TestTransferRoutes:

    def test_transfer_and_revert(self, client, db_session, route, stock):
        stock(15, 100)
        stock(30, 15)

        response = client.post("/api/wip/transfers", json={
            "part_id": route.part_id,
            "from_op_number": "015",
            "to_op_number": 30,
            "transfer_date": "2024-03-02",
            "quantity": 40,
        })
        assert response.status_code == 201
        data = response.get_json()
        assert data["from_balance_after"] == "60"
        assert data["to_balance_after"] == "55"

        response = client.post(f"/api/wip/transfers/{data['transfer_id']}/revert")
        assert response.status_code == 200
        assert response.get_json()["transfer"]["is_reverted"] is True

        response = client.post(f"/api/wip/transfers/{data['transfer_id']}/revert")
        assert response.status_code == 409
        assert response.get_json()["code"] == "already_reverted"

    def test_insufficient_balance_rolls_back(self, client, db_session, route, stock):
        stock(15, 100)

        response = client.post("/api/wip/transfers", json={
            "part_id": route.part_id,
            "from_op_number": "015",
            "to_op_number": "030",
            "transfer_date": "2024-03-02",
            "quantity": "90",
            "scrap": {"quantity": "20", "scrap_type": "Technological"},
        })

        assert response.status_code == 409
        assert response.get_json()["code"] == "insufficient_balance"
        key = BalanceKey(route.part_id, route.turning.id, 15)
        assert balance_service.current_quantity(key) == Decimal("100")

    def test_scrap_must_be_object(self, client, db_session, route, stock):
        stock(15, 10)

        response = client.post("/api/wip/transfers", json={
            "part_id": route.part_id,
            "from_op_number": "015",
            "to_op_number": "030",
            "transfer_date": "2024-03-02",
            "quantity": "1",
            "scrap": "2",
        })

        assert response.status_code == 400


class TestLaunchRoutes:

    def test_launch_and_delete(self, client, db_session, route, stock):
        stock(15, 100)

        response = client.post("/api/wip/launches", json={
            "part_id": route.part_id,
            "from_op_number": "015",
            "launch_date": "2024-03-03",
            "quantity": "40",
        })
        assert response.status_code == 201
        data = response.get_json()
        assert data["sum_hours_to_finish"] == "12.4"
        assert len(data["operations"]) == 4

        response = client.delete(f"/api/wip/launches/{data['launch_id']}")
        assert response.status_code == 200
        assert client.get(f"/api/wip/launches/{data['launch_id']}").status_code == 404

    def test_batch_launch(self, client, db_session, route, stock):
        stock(15, 100)
        stock(45, 10)

        response = client.post("/api/wip/launches/batch", json={"items": [
            {"part_id": route.part_id, "from_op_number": "015", "launch_date": "2024-03-03", "quantity": "40"},
            {"part_id": route.part_id, "from_op_number": "045", "launch_date": "2024-03-03", "quantity": "10"},
        ]})

        assert response.status_code == 201
        launches = response.get_json()["launches"]
        assert [launch["sum_hours_to_finish"] for launch in launches] == ["12.4", "0.71"]
        key = BalanceKey(route.part_id, route.turning.id, 15)
        assert balance_service.current_quantity(key) == Decimal("60")

    def test_batch_launch_failure_applies_nothing(self, client, db_session, route, stock):
        stock(15, 100)

        response = client.post("/api/wip/launches/batch", json={"items": [
            {"part_id": route.part_id, "from_op_number": "015", "launch_date": "2024-03-03", "quantity": "40"},
            {"part_id": route.part_id, "from_op_number": "015", "launch_date": "2024-03-03", "quantity": "70"},
        ]})

        assert response.status_code == 409
        assert response.get_json()["code"] == "insufficient_balance"
        key = BalanceKey(route.part_id, route.turning.id, 15)
        assert balance_service.current_quantity(key) == Decimal("100")
        assert db_session.query(WipLaunch).count() == 0

    def test_batch_launch_requires_items(self, client, db_session, route):
        response = client.post("/api/wip/launches/batch", json={"items": []})

        assert response.status_code == 400

    def test_sub_scale_quantity_rejected(self, client, db_session, route, stock):
        stock(15, 10)

        response = client.post("/api/wip/launches", json={
            "part_id": route.part_id,
            "from_op_number": "015",
            "launch_date": "2024-03-03",
            "quantity": "0.0004",
        })

        assert response.status_code == 400
        assert response.get_json()["code"] == "invalid_quantity"


class TestBalanceAndAdminRoutes:

    def test_list_and_history(self, client, db_session, route, stock):
        stock(15, 10)
        stock(30, 5)

        balances = client.get(f"/api/wip/balances?part_id={route.part_id}&op_number=015").get_json()["balances"]
        assert [b["quantity"] for b in balances] == ["10"]

        history = client.get(f"/api/wip/balances/{balances[0]['id']}/history").get_json()
        assert history["reconstructed_quantity"] == "10"
        assert history["is_consistent"] is True

    def test_adjust(self, client, db_session, route, stock):
        stock(15, "15.5")
        balance = balance_service.get_balance(BalanceKey(route.part_id, route.turning.id, 15))

        response = client.post(
            f"/api/wip/admin/balances/{balance.id}/adjust",
            json={"new_quantity": "20", "comment": "recount"},
        )

        assert response.status_code == 200
        assert response.get_json()["delta"] == "4.5"

    def test_cleanup_flow(self, client, db_session, route, stock):
        stock(15, 10)

        response = client.post("/api/wip/admin/cleanup/preview", json={"part_id": route.part_id})
        assert response.status_code == 201
        job = response.get_json()["job"]
        assert len(job["stage_items"]) == 1

        response = client.post(f"/api/wip/admin/cleanup/{job['id']}/execute", json={})
        assert response.status_code == 400
        assert response.get_json()["code"] == "not_confirmed"

        response = client.post(f"/api/wip/admin/cleanup/{job['id']}/execute", json={"confirmed": True})
        assert response.status_code == 200
        assert response.get_json()["applied_count"] == 1

        response = client.post(f"/api/wip/admin/cleanup/{job['id']}/execute", json={"confirmed": True})
        assert response.status_code == 409
        assert response.get_json()["result"]["affected_quantity"] == "10"
