"""Tests for Order API endpoints."""
from unittest.mock import patch

import pytest
from kombu.exceptions import OperationalError

from app.database import get_db
from app.main import app


def create_product(client, name="Test Product", price=10.00, stock=5):
    response = client.post(
        "/api/v1/products/",
        json={"name": name, "price": price, "stock": stock}
    )
    return response.json()["id"]


def submit(client, lines, customer="alice", **extra):
    # Mock the Celery task to avoid actual task execution
    with patch("app.api.orders.generate_receipt.delay") as delay:
        response = client.post(
            "/api/v1/orders/",
            json={"customer": customer, "lines": lines, **extra}
        )
    return response, delay


def test_create_order_success(client):
    """Test submitting an order successfully."""
    product_id = create_product(client, price=10.00, stock=5)

    response, delay = submit(client, [{"id": product_id, "quantity": 3}])

    assert response.status_code == 201
    data = response.json()
    assert data["customer"] == "alice"
    assert data["total"] == 30.00
    assert data["lines"] == [{
        "product_id": product_id,
        "product_name": "Test Product",
        "quantity": 3,
        "unit_price": 10.00,
        "subtotal": 30.00,
    }]
    delay.assert_called_once_with(data["id"])

    product = client.get(f"/api/v1/products/{product_id}").json()
    assert product["stock"] == 2


def test_create_order_clamps_quantity(client):
    """Test ordering more than the stock fulfills what is available."""
    product_id = create_product(client, price=10.00, stock=5)

    response, _ = submit(client, [{"id": product_id, "quantity": 10}])

    assert response.status_code == 201
    data = response.json()
    assert data["lines"][0]["quantity"] == 5
    assert data["total"] == 50.00
    assert client.get(f"/api/v1/products/{product_id}").json()["stock"] == 0


def test_create_order_product_not_found(client):
    """Test order fails when no requested product exists."""
    response, delay = submit(client, [{"id": 9999, "quantity": 1}])

    assert response.status_code == 400
    assert "Nothing to fulfill" in response.json()["detail"]
    delay.assert_not_called()
    assert client.get("/api/v1/orders/").json()["total"] == 0


def test_create_order_empty_lines(client):
    response, _ = submit(client, [])

    assert response.status_code == 400


@pytest.mark.parametrize("lines", ["not-a-list", {"id": 1, "quantity": 1}, None])
def test_create_order_malformed_lines(client, lines):
    response, _ = submit(client, lines)

    assert response.status_code == 422


def test_create_order_guest_customer(client):
    product_id = create_product(client)

    with patch("app.api.orders.generate_receipt.delay"):
        response = client.post(
            "/api/v1/orders/",
            json={"lines": [{"product_id": product_id, "quantity": 1}]}
        )

    assert response.status_code == 201
    assert response.json()["customer"] == "guest"


def test_same_product_twice_in_cart(client):
    product_id = create_product(client, stock=3)

    response, _ = submit(client, [
        {"id": product_id, "quantity": 2},
        {"id": product_id, "quantity": 2},
    ])

    assert response.status_code == 201
    assert [line["quantity"] for line in response.json()["lines"]] == [2, 1]


def test_multiple_orders_deplete_stock(client):
    """Test multiple orders correctly deplete stock."""
    product_id = create_product(client, name="Depleting Product", stock=5)

    response1, _ = submit(client, [{"id": product_id, "quantity": 3}])
    assert response1.status_code == 201

    response2, _ = submit(client, [{"id": product_id, "quantity": 2}])
    assert response2.status_code == 201

    # Third order should fail (no stock)
    response3, _ = submit(client, [{"id": product_id, "quantity": 1}])
    assert response3.status_code == 400


def test_get_order(client):
    """Test getting an order by ID."""
    product_id = create_product(client)
    order_id = submit(client, [{"id": product_id, "quantity": 1}])[0].json()["id"]

    response = client.get(f"/api/v1/orders/{order_id}")

    assert response.status_code == 200
    assert response.json()["id"] == order_id


def test_get_order_not_found(client):
    response = client.get("/api/v1/orders/9999")

    assert response.status_code == 404


def test_list_orders(client):
    """Test listing orders with pagination, newest first."""
    product_id = create_product(client, name="Multi Order", stock=100)

    for _ in range(15):
        submit(client, [{"id": product_id, "quantity": 1}])

    response = client.get("/api/v1/orders/?page=1&page_size=10")

    assert response.status_code == 200
    data = response.json()
    assert len(data["items"]) == 10
    assert data["total"] == 15
    ids = [item["id"] for item in data["items"]]
    assert ids == sorted(ids, reverse=True)


def test_list_orders_by_customer(client):
    product_id = create_product(client, stock=10)
    submit(client, [{"id": product_id, "quantity": 1}], customer="alice")
    submit(client, [{"id": product_id, "quantity": 1}], customer="bob")
    submit(client, [{"id": product_id, "quantity": 1}], customer="carol", account_id="alice")

    data = client.get("/api/v1/orders/?customer=alice").json()

    assert data["total"] == 2
    assert {item["customer"] for item in data["items"]} == {"alice", "carol"}


def test_cancel_order_restores_stock(client):
    product_id = create_product(client, stock=5)
    order_id = submit(client, [{"id": product_id, "quantity": 4}])[0].json()["id"]

    response = client.delete(f"/api/v1/orders/{order_id}")

    assert response.status_code == 204
    assert client.get(f"/api/v1/orders/{order_id}").status_code == 404
    assert client.get(f"/api/v1/products/{product_id}").json()["stock"] == 5


def test_cancel_order_not_found(client):
    response = client.delete("/api/v1/orders/9999")

    assert response.status_code == 404


def test_get_order_receipt(client):
    product_id = create_product(client, name="Empanada", price=2.50, stock=12)
    order_id = submit(client, [{"id": product_id, "quantity": 6}])[0].json()["id"]

    response = client.get(f"/api/v1/orders/{order_id}/receipt")

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.headers["content-disposition"] == f'inline; filename="alice-{order_id}.pdf"'
    assert response.content.startswith(b"%PDF")


def test_get_order_receipt_not_found(client):
    response = client.get("/api/v1/orders/9999/receipt")

    assert response.status_code == 404


def test_create_order_when_broker_is_down(client):
    """The order stands when its receipt task cannot be queued."""
    product_id = create_product(client, stock=5)

    with patch("app.api.orders.generate_receipt.delay", side_effect=OperationalError("broker down")):
        response = client.post(
            "/api/v1/orders/",
            json={"customer": "alice", "lines": [{"id": product_id, "quantity": 3}]}
        )

    assert response.status_code == 201
    assert client.get("/api/v1/orders/").json()["total"] == 1
    assert client.get(f"/api/v1/products/{product_id}").json()["stock"] == 2
    assert client.get(f"/api/v1/orders/{response.json()['id']}/receipt").status_code == 200


def test_create_order_with_contact(client):
    product_id = create_product(client)
    contact = {"first_name": "Ana", "last_name": "Paz", "phone": "555-0101", "email": "ana@example.com"}

    response, _ = submit(client, [{"id": product_id, "quantity": 1}], contact=contact)

    assert response.status_code == 201
    assert response.json()["contact"] == contact
    assert client.get(f"/api/v1/orders/{response.json()['id']}").json()["contact"] == contact


def test_create_order_without_contact(client):
    product_id = create_product(client)

    response, _ = submit(client, [{"id": product_id, "quantity": 1}], contact={"phone": None})

    assert response.status_code == 201
    assert response.json()["contact"] is None


def test_order_routes_share_one_session(client):
    """Catalog and order stores of a request are built on the same get_db session."""
    product_id = create_product(client)
    original = app.dependency_overrides[get_db]
    opened = []

    def tracking_get_db():
        opened.append(True)
        yield from original()

    app.dependency_overrides[get_db] = tracking_get_db
    try:
        response, _ = submit(client, [{"id": product_id, "quantity": 1}])
    finally:
        app.dependency_overrides[get_db] = original

    assert response.status_code == 201
    assert opened == [True]
