import json
from datetime import date, timedelta

import pytest

from tests.conftest import add_menu_item, add_tables, signup

TOMORROW = (date.today() + timedelta(days=1)).isoformat()


@pytest.mark.parametrize("path", ["/profile", "/reservation", "/order", "/dashboard"])
def test_protected_routes_redirect_to_login(client, path):
    res = client.get(path, follow_redirects=False)
    assert res.status_code == 303
    assert res.headers["location"] == f"/login?next={path}"


def test_public_routes_work_anonymously(client, db):
    add_menu_item("Garden Bowl", 8.0, "Vegetarian", ["Vegan"])
    assert client.get("/").json()["user"] is None
    menu = client.get("/menu", params={"category": "Vegetarian", "q": "bowl"}).json()
    assert [it["name"] for it in menu["items"]] == ["Garden Bowl"]
    assert client.get("/me").json() == {"user": None, "role": None, "is_authenticated": False}


def test_signup_sets_session_and_rejects_duplicates(client):
    body = signup(client)
    assert body["user"]["email"] == "ada@example.com"
    assert body["user"]["role"] == "customer"
    assert client.get("/me").json()["is_authenticated"] is True

    res = client.post("/signup", json={"email": "ada@example.com", "password": "otherpass1", "name": "Ada"})
    assert res.status_code == 409
    assert res.json() == {"detail": "This email is already registered", "code": "already_registered"}


def test_signup_missing_fields_is_a_form_error(client, db):
    res = client.post("/signup", json={"email": "ada@example.com", "password": "", "name": "Ada"})
    assert res.status_code == 400
    assert res.json()["detail"] == "Please fill in all required fields"
    assert db.accounts.count_documents({}) == 0


def test_login_logout_cycle(client):
    signup(client)
    client.post("/logout")
    assert client.get("/me").json()["is_authenticated"] is False

    bad = client.post("/login", json={"email": "ada@example.com", "password": "nope-nope"})
    assert bad.status_code == 401
    assert bad.json()["code"] == "invalid_credentials"

    ok = client.post("/login", json={"email": "ADA@example.com", "password": "s3cretpass"})
    assert ok.status_code == 200
    assert ok.json()["role"] == "customer"
    assert client.get("/profile").status_code == 200


def test_bearer_token_is_accepted(client):
    token = signup(client)["token"]
    client.cookies.clear()
    res = client.get("/me", headers={"Authorization": f"Bearer {token}"})
    assert res.json()["is_authenticated"] is True


def test_reservation_flow(client, db):
    signup(client)
    add_tables(db, 2, 4)
    res = client.post("/reservation", json={"date": TOMORROW, "time": "19:00", "guest_count": 3})
    assert res.status_code == 201
    assert res.json()["reservation"]["status"] == "pending"

    full = client.post("/reservation", json={"date": TOMORROW, "time": "19:00", "guest_count": 6})
    assert full.status_code == 409
    assert full.json()["code"] == "no_availability"

    listing = client.get("/reservation").json()
    assert len(listing["reservations"]) == 1
    assert listing["max_guests"] == 10


def test_reservation_requires_date_and_time(client, db):
    signup(client)
    res = client.post("/reservation", json={"guest_count": 2})
    assert res.status_code == 400
    assert res.json()["detail"] == "Please select a date and time"


def test_cart_and_checkout(client, db):
    signup(client)
    pasta = add_menu_item("Truffle Pasta", 24.99)
    salmon = add_menu_item("Seared Salmon", 29.99, "Seafood")

    client.post("/order/items", json={"item_id": pasta["id"]})
    client.post("/order/items", json={"item_id": salmon["id"]})
    client.post("/order/items", json={"item_id": salmon["id"]})
    cart = client.post(f"/order/items/{pasta['id']}/decrement").json()["cart"]
    assert [it["quantity"] for it in cart["items"]] == [1, 2]
    assert cart["total"] == "91.77"

    res = client.post("/order/checkout")
    assert res.status_code == 201
    order = res.json()["order"]
    # tax is shown in the summary but the order stores the line subtotal
    assert order["total_price"] == 84.97
    stored_lines = json.loads(order["items"])
    assert order["total_price"] == pytest.approx(sum(line["price"] * line["quantity"] for line in stored_lines))
    assert order["status"] == "pending"

    view = client.get("/order").json()
    assert view["cart"]["items"] == []
    assert [o["id"] for o in view["orders"]] == [order["id"]]

    empty = client.post("/order/checkout")
    assert empty.status_code == 400
    assert empty.json()["detail"] == "Your cart is empty"


def test_cart_quantity_updates_and_removal(client, db):
    signup(client)
    soup = add_menu_item("Soup", 6.5, "Appetizers")
    client.post("/order/items", json={"item_id": soup["id"]})
    cart = client.patch(f"/order/items/{soup['id']}", json={"quantity": 0}).json()["cart"]
    assert cart["items"][0]["quantity"] == 1
    cart = client.delete(f"/order/items/{soup['id']}").json()["cart"]
    assert cart["items"] == []
    assert client.delete(f"/order/items/{soup['id']}").status_code == 400


def test_unavailable_item_cannot_be_added(client, db):
    signup(client)
    item = add_menu_item("Lobster", 55.0, "Seafood", available=False)
    res = client.post("/order/items", json={"item_id": item["id"]})
    assert res.status_code == 400


def test_profile_update(client, db):
    signup(client)
    res = client.put("/profile", json={"name": "Ada L.", "phone": "555-0100", "preferences": ["Keto"]})
    assert res.status_code == 200
    assert res.json()["context"]["preferences"] == ["Keto"]
    profile = client.get("/profile").json()
    assert profile["user"]["name"] == "Ada L."
    assert profile["user"]["phone"] == "555-0100"


def test_profile_update_rejects_unknown_fields(client):
    signup(client)
    res = client.put("/profile", json={"role": "admin"})
    assert res.status_code == 422


def test_feedback(client, db):
    signup(client)
    res = client.post("/feedback", json={"order_id": "abc", "rating": 4, "comment": "Great"})
    assert res.status_code == 201
    assert client.post("/feedback", json={"order_id": "abc", "rating": 9}).status_code == 400


def test_dashboard_is_admin_only(client, db):
    body = signup(client)
    assert client.get("/dashboard").status_code == 403

    db.users.update_one({"user_id": body["user"]["id"]}, {"$set": {"role": "admin"}})
    res = client.get("/dashboard")
    assert res.status_code == 200
    assert res.json()["total_customers"] == 0


def test_tables_listing(client, db):
    add_tables(db, 2, 4)
    assert [t["capacity"] for t in client.get("/tables").json()["tables"]] == [2, 4]
