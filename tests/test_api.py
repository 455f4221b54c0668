import pytest
from fastapi.testclient import TestClient

from marketplace_intel.api.main import app, get_coordinator


class StubCoordinator:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    async def run_rankings(self, product_ids=None, now=None):
        self.calls.append(("rankings", product_ids))
        if self.fail:
            raise RuntimeError("database unavailable")
        return {"ranked": len(product_ids or []) or 7, "notifications": 1}

    async def run_inventory(self, product_ids=None, now=None):
        self.calls.append(("inventory", product_ids))
        if self.fail:
            raise RuntimeError("database unavailable")
        return {"calculated": 3, "auto_hidden": 1, "penalties": 0}

    async def run_financing(self, store_id=None, now=None):
        self.calls.append(("financing", store_id))
        if self.fail:
            raise RuntimeError("database unavailable")
        return {"calculated": 2, "offers_generated": 1}


@pytest.fixture
def stub():
    return StubCoordinator()


@pytest.fixture
def client(stub):
    app.dependency_overrides[get_coordinator] = lambda: stub
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_calculate_rankings_with_subset(client, stub):
    response = client.post("/calculate-rankings", json={"product_ids": ["p1", "p2"]})

    assert response.status_code == 200
    assert response.json() == {"ranked": 2, "notifications": 1}
    assert stub.calls == [("rankings", ["p1", "p2"])]


def test_calculate_inventory_without_body(client, stub):
    response = client.post("/calculate-inventory")

    assert response.status_code == 200
    assert response.json() == {"calculated": 3, "auto_hidden": 1, "penalties": 0}
    assert stub.calls == [("inventory", None)]


def test_calculate_financing_for_one_store(client, stub):
    response = client.post("/calculate-financing", json={"store_id": "s1"})

    assert response.status_code == 200
    assert response.json() == {"calculated": 2, "offers_generated": 1}
    assert stub.calls == [("financing", "s1")]


def test_malformed_body_falls_back_to_defaults(client, stub):
    response = client.post(
        "/calculate-rankings",
        content="{not json",
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 200
    assert stub.calls == [("rankings", None)]


def test_non_list_product_ids_are_ignored(client, stub):
    response = client.post("/calculate-inventory", json={"product_ids": "p1"})

    assert response.status_code == 200
    assert stub.calls == [("inventory", None)]


@pytest.mark.parametrize("path", ["/calculate-rankings", "/calculate-inventory", "/calculate-financing"])
def test_failures_return_generic_500(path):
    app.dependency_overrides[get_coordinator] = lambda: StubCoordinator(fail=True)
    try:
        response = TestClient(app).post(path, json={})
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}


def test_repeated_product_ids_are_forwarded_once(client, stub):
    response = client.post("/calculate-rankings", json={"product_ids": ["p1", "p2", "p1", "", "p2"]})

    assert response.status_code == 200
    assert stub.calls == [("rankings", ["p1", "p2"])]
