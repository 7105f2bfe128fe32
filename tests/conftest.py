import mongomock
import pytest
from fastapi.testclient import TestClient

import database
import main


@pytest.fixture
def db():
    store = mongomock.MongoClient()["restaurant_test"]
    database.use_database(store)
    yield store
    database.use_database(None)


@pytest.fixture
def client(db):
    main.carts.clear()
    with TestClient(main.app) as c:
        yield c


def add_tables(db, *capacities, status="available"):
    for number, capacity in enumerate(capacities, start=1):
        database.create_document("tables", {"table_number": number, "capacity": capacity, "status": status})


def add_menu_item(name, price, category="Main Courses", tags=None, description="", available=True):
    return database.create_document("menu_items", {
        "name": name,
        "description": description,
        "price": price,
        "category": category,
        "image": None,
        "available": available,
        "tags": tags or [],
    })


def signup(client, email="ada@example.com", password="s3cretpass", name="Ada"):
    res = client.post("/signup", json={"email": email, "password": password, "name": name})
    assert res.status_code == 200, res.text
    return res.json()
