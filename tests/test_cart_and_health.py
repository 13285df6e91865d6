def test_health_check(client):
    response = client.get("/health/check")

    assert response.status_code == 200
    assert response.json()["database"] == "ok"
    assert response.json()["payments"] == "configured"


def test_cart_round_trip(client):
    client.post("/cart/c-9/items", json={"product_id": "sku-1", "name": "Notebook", "unit_price": "120.00"})
    client.post("/cart/c-9/items", json={"product_id": "sku-1", "name": "Notebook", "unit_price": "120.00", "quantity": 2})

    cart = client.get("/cart/c-9").json()
    assert cart["total_quantity"] == 3
    assert cart["items"][0]["quantity"] == 3

    client.delete("/cart/c-9")
    assert client.get("/cart/c-9").json()["items"] == []
