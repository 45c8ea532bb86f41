"""Products and orders."""
import pytest
from bson import ObjectId

from database import PRODUCTS

PNG = ("chew.png", b"\x89PNG\r\n\x1a\nfake", "image/png")


@pytest.fixture
def product(client):
    resp = client.post("/products", json={
        "name": "Chew Toy",
        "description": "Durable rubber chew toy",
        "price": 300,
        "sale_price": 250,
        "category": "Toys",
        "stock": 5,
        "tags": ["dog", "rubber"],
        "specifications": [{"key": "Material", "value": "Rubber"}, {"key": " ", "value": ""}],
    })
    assert resp.status_code == 201
    return resp.json()


class TestProducts:
    def test_blank_specifications_dropped(self, product):
        assert product["specifications"] == [{"key": "Material", "value": "Rubber"}]

    def test_search_and_category(self, client, product):
        assert len(client.get("/products", params={"q": "rubber"}).json()) == 1
        assert client.get("/products", params={"category": "Food"}).json() == []

    def test_update(self, client, product):
        resp = client.patch(f"/products/{product['id']}", json={"featured": True, "stock": 10})
        assert resp.json()["featured"] is True
        assert resp.json()["stock"] == 10

    def test_empty_update_rejected(self, client, product):
        assert client.patch(f"/products/{product['id']}", json={}).status_code == 400

    def test_image_upload_appends_url(self, client, s3, product):
        resp = client.post(f"/products/{product['id']}/images", files={"file": PNG})

        assert resp.status_code == 200
        [url] = resp.json()["images"]
        key = url.replace("https://cdn.petzify.test/", "")
        assert key.startswith("products/") and key.endswith("_chew.png")
        assert key in s3.objects

    def test_non_image_rejected(self, client, product):
        resp = client.post(f"/products/{product['id']}/images", files={"file": ("a.txt", b"hi", "text/plain")})
        assert resp.status_code == 400

    def test_delete_attempts_every_image(self, client, db, s3, product):
        client.post(f"/products/{product['id']}/images", files={"file": PNG})
        client.post(f"/products/{product['id']}/images", files={"file": ("other.png", b"\x89PNG2", "image/png")})
        keys = [u.replace("https://cdn.petzify.test/", "") for u in client.get(f"/products/{product['id']}").json()["images"]]
        s3.fail_keys.add(keys[0])

        resp = client.delete(f"/products/{product['id']}")

        assert resp.status_code == 200
        assert s3.deleted == keys
        assert resp.json()["images_not_removed"] == [f"https://cdn.petzify.test/{keys[0]}"]
        assert db[PRODUCTS].count_documents({}) == 0


class TestOrders:
    def _order(self, product, quantity=2):
        return {
            "user_email": "ravi@example.com",
            "user_name": "Ravi Kumar",
            "shipping_address": "12 MG Road, Pune",
            "items": [{"product_id": product["id"], "quantity": quantity}],
        }

    def test_order_uses_sale_price_and_reserves_stock(self, client, db, mailer, product):
        resp = client.post("/orders", json=self._order(product))

        assert resp.status_code == 201
        order = resp.json()
        assert order["total_amount"] == 500
        assert order["status"] == "pending"
        assert db[PRODUCTS].find_one({"_id": ObjectId(product["id"])})["stock"] == 3
        assert {m["to"] for m in mailer.sent} == {"ravi@example.com", "business@petzify.com"}

    def test_insufficient_stock(self, client, product):
        resp = client.post("/orders", json=self._order(product, quantity=6))
        assert resp.status_code == 400

    def test_empty_order_rejected(self, client):
        resp = client.post("/orders", json={"user_email": "ravi@example.com", "items": []})
        assert resp.status_code == 422

    def test_order_lifecycle(self, client, mailer, product):
        order = client.post("/orders", json=self._order(product)).json()
        mailer.sent.clear()

        for status in ("confirmed", "dispatched", "delivered"):
            resp = client.post(f"/orders/{order['id']}/status", json={"status": status})
            assert resp.json()["status"] == status
        assert len(mailer.to("ravi@example.com")) == 3

        assert client.post(f"/orders/{order['id']}/status", json={"status": "cancelled"}).status_code == 409

    def test_list_by_customer(self, client, product):
        client.post("/orders", json=self._order(product, quantity=1))
        assert len(client.get("/orders", params={"user_email": "ravi@example.com"}).json()) == 1
        assert client.get("/orders", params={"user_email": "x@example.com"}).json() == []

    def test_repeated_product_lines_share_stock(self, client, db, product):
        order = self._order(product, quantity=3)
        order["items"].append({"product_id": product["id"], "quantity": 3})

        resp = client.post("/orders", json=order)

        assert resp.status_code == 400
        assert db[PRODUCTS].find_one({"_id": ObjectId(product["id"])})["stock"] == 5

    def test_repeated_product_lines_merged(self, client, db, product):
        order = self._order(product, quantity=2)
        order["items"].append({"product_id": product["id"], "quantity": 1})

        resp = client.post("/orders", json=order)

        assert resp.status_code == 201
        assert [(i["quantity"], i["price"]) for i in resp.json()["items"]] == [(3, 250)]
        assert resp.json()["total_amount"] == 750
        assert db[PRODUCTS].find_one({"_id": ObjectId(product["id"])})["stock"] == 2


    def test_short_line_leaves_all_stock_untouched(self, client, db, product):
        leash = client.post("/products", json={
            "name": "Leash", "description": "Nylon leash", "price": 100, "category": "Accessories", "stock": 1,
        }).json()
        order = self._order(product, quantity=2)
        order["items"].append({"product_id": leash["id"], "quantity": 2})

        assert client.post("/orders", json=order).status_code == 400
        assert db[PRODUCTS].find_one({"_id": ObjectId(product["id"])})["stock"] == 5
        assert db[PRODUCTS].find_one({"_id": ObjectId(leash["id"])})["stock"] == 1


def test_product_search_is_literal(client, product):
    assert client.get("/products", params={"q": ".*"}).json() == []
    assert client.get("/products", params={"q": "[chew"}).status_code == 200
    assert len(client.get("/products", params={"q": "chew toy"}).json()) == 1
