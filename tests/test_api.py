from datetime import datetime, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from cafeteria.database import get_unit_of_work
from cafeteria.infrastructure.memory import InMemoryUnitOfWork
from cafeteria.main import create_app
from cafeteria.presentation.api import get_notification_sink


@pytest.fixture
def client(store, sink):
    app = create_app()
    app.dependency_overrides[get_unit_of_work] = lambda: InMemoryUnitOfWork(store)
    app.dependency_overrides[get_notification_sink] = lambda: sink
    return TestClient(app)


@pytest.fixture
def order_id(client):
    client.post("/api/students/S1/loyalty")
    response = client.post("/api/orders", json={"student_id": "S1"})
    assert response.status_code == 201
    return response.json()["order_id"]


def add(client, order_id, item_id, quantity=1):
    return client.post(f"/api/orders/{order_id}/items", json={"item_id": item_id, "quantity": quantity})


class TestLoyaltyRoutes:
    def test_open_and_read_account(self, client):
        response = client.post("/api/students/S7/loyalty")
        assert response.status_code == 201
        assert response.json() == {"student_id": "S7", "points_balance": 0, "transactions": []}
        assert client.get("/api/students/S7/loyalty").json()["points_balance"] == 0

    def test_duplicate_account(self, client):
        client.post("/api/students/S7/loyalty")
        assert client.post("/api/students/S7/loyalty").status_code == 400

    def test_unknown_student(self, client):
        response = client.get("/api/students/NOBODY/loyalty")
        assert response.status_code == 404
        assert "NOBODY" in response.json()["detail"]

    def test_redemption_options(self, client, store):
        client.post("/api/students/S7/loyalty")
        store.accounts["S7"].credit(120, "Opening balance")
        options = client.get("/api/students/S7/loyalty/redemptions").json()
        assert [o["points_required"] for o in options] == [50, 100]
        assert options[1]["free_item"] is True


class TestOrderRoutes:
    def test_health(self, client):
        assert client.get("/health").json()["status"] == "healthy"

    def test_menu(self, client):
        items = client.get("/api/menu").json()
        assert "DES_CAKE" not in [i["item_id"] for i in items]
        assert len(items) == 5

    def test_create_for_unknown_student(self, client):
        assert client.post("/api/orders", json={"student_id": "NOBODY"}).status_code == 404

    def test_get_missing_order(self, client):
        assert client.get("/api/orders/ORD-MISSING").status_code == 404

    def test_item_errors(self, client, order_id):
        assert add(client, order_id, "DES_CAKE").status_code == 400
        assert add(client, order_id, "NOPE").status_code == 404
        assert add(client, order_id, "MAI_KOSHARI", 0).status_code == 400
        assert add(client, order_id, "MAI_KOSHARI", 51).status_code == 409

    def test_edit_items(self, client, order_id):
        add(client, order_id, "MAI_KOSHARI", 2)
        add(client, order_id, "DRI_TEA")
        response = client.put(f"/api/orders/{order_id}/items/DRI_TEA", json={"quantity": 3})
        assert Decimal(response.json()["total_amount"]) == Decimal("135.00")
        response = client.delete(f"/api/orders/{order_id}/items/MAI_KOSHARI")
        assert [line["item_id"] for line in response.json()["lines"]] == ["DRI_TEA"]
        assert client.delete(f"/api/orders/{order_id}/items/MAI_KOSHARI").status_code == 404

    def test_redeem_and_confirm(self, client, store, sink, order_id):
        store.accounts["S1"].credit(60, "Opening balance")
        add(client, order_id, "MAI_BURGER", 2)

        assert client.post(f"/api/orders/{order_id}/redemption", json={"points": 5}).status_code == 400
        response = client.post(f"/api/orders/{order_id}/redemption", json={"points": 50})
        assert response.status_code == 200
        assert Decimal(response.json()["discount_amount"]) == Decimal("10.00")

        response = client.post(f"/api/orders/{order_id}/confirm")
        body = response.json()
        assert body["status"] == "CONFIRMED"
        assert Decimal(body["total_amount"]) == Decimal("90.00")
        assert body["loyalty_points_earned"] == 10
        assert client.get("/api/students/S1/loyalty").json()["points_balance"] == 20
        assert "order.confirmed" in sink.names()

        assert client.post(f"/api/orders/{order_id}/confirm").status_code == 409
        assert client.put(f"/api/orders/{order_id}/notes", json={"notes": "late"}).status_code == 409

    def test_redeem_without_points(self, client, order_id):
        add(client, order_id, "MAI_BURGER")
        assert client.post(f"/api/orders/{order_id}/redemption", json={"points": 50}).status_code == 409

    def test_status_updates(self, client, order_id):
        add(client, order_id, "MAI_KOSHARI")
        assert client.patch(f"/api/orders/{order_id}/status", json={"status": "SHIPPED"}).status_code == 400
        assert client.patch(f"/api/orders/{order_id}/status", json={"status": "READY"}).status_code == 409
        for status in ("CONFIRMED", "PREPARING", "READY"):
            response = client.patch(f"/api/orders/{order_id}/status", json={"status": status})
            assert response.status_code == 200
        assert client.post(f"/api/orders/{order_id}/cancel").status_code == 409

        queue = client.get("/api/orders", params={"status": "READY"}).json()
        assert [o["order_id"] for o in queue] == [order_id]
        assert client.get("/api/orders").status_code == 422
        assert client.get("/api/orders", params={"status": "LOST"}).status_code == 400

    def test_cancel(self, client, order_id):
        response = client.post(f"/api/orders/{order_id}/cancel")
        assert response.json()["status"] == "CANCELLED"

    def test_student_orders_and_preparation_time(self, client, order_id):
        add(client, order_id, "MAI_KOSHARI", 3)
        response = client.get(f"/api/orders/{order_id}/preparation-time")
        assert response.json() == {"order_id": order_id, "minutes": 21}
        orders = client.get("/api/students/S1/orders", params={"limit": 5}).json()
        assert [o["order_id"] for o in orders] == [order_id]

    def test_orders_by_date(self, client, store, order_id):
        store.orders[order_id].order_time = datetime(2024, 5, 14, 9, 30, tzinfo=timezone.utc)
        orders = client.get("/api/orders/by-date", params={"start": "2024-05-14"}).json()
        assert [o["order_id"] for o in orders] == [order_id]
        response = client.get("/api/orders/by-date", params={"start": "2024-05-10", "end": "2024-05-13"})
        assert response.json() == []
        response = client.get("/api/orders/by-date", params={"start": "2024-05-14", "end": "2024-05-10"})
        assert response.status_code == 400
        assert client.get("/api/orders/by-date", params={"start": "yesterday"}).status_code == 422

    def test_statistics(self, client, order_id):
        add(client, order_id, "MAI_KOSHARI")
        client.post(f"/api/orders/{order_id}/confirm")
        client.post("/api/orders", json={"student_id": "S1"})

        body = client.get("/api/orders/statistics").json()
        assert body["total"] == 2
        assert body["by_status"]["CONFIRMED"] == 1
        assert body["by_status"]["PENDING"] == 1
        assert body["by_status"]["CANCELLED"] == 0
        assert len(body["by_status"]) == 6

    def test_cancel_confirmed_reverses_points(self, client, store, order_id):
        add(client, order_id, "MAI_BURGER", 10)
        client.post(f"/api/orders/{order_id}/confirm")
        assert client.get("/api/students/S1/loyalty").json()["points_balance"] == 50

        assert client.post(f"/api/orders/{order_id}/cancel").status_code == 200
        account = client.get("/api/students/S1/loyalty").json()
        assert account["points_balance"] == 0
        assert account["transactions"][0]["description"].startswith("Reversal of points earned")
