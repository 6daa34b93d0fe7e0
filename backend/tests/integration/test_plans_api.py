"""Integration tests for the plan catalogue endpoints."""

from mikrobill.services.plan_store import InMemoryPlanRepository

PLANS_URL = "/api/v1/dhcp-billing-plans"


def _use_repository(client, basic_plan=None) -> InMemoryPlanRepository:
    repository = InMemoryPlanRepository(default_currency="PHP")
    if basic_plan is not None:
        repository.plans[basic_plan.id] = basic_plan
    client.app.state.plan_repository = repository
    return repository


class TestPlanEndpoints:
    def test_create_then_list(self, authed_client):
        _use_repository(authed_client)

        created = authed_client.post(
            PLANS_URL,
            json={"router_id": "router-1", "name": "Basic 10M", "price": 1000, "cycle_days": 30, "speed_limit": "10"},
        )
        listed = authed_client.get(PLANS_URL, params={"routerId": "router-1"})

        assert created.status_code == 201
        assert created.json()["currency"] == "PHP"
        assert [plan["name"] for plan in listed.json()] == ["Basic 10M"]

    def test_create_rejects_zero_cycle(self, authed_client):
        _use_repository(authed_client)

        response = authed_client.post(
            PLANS_URL, json={"router_id": "router-1", "name": "Broken", "price": 100, "cycle_days": 0}
        )

        assert response.status_code == 422

    def test_update_plan(self, authed_client, basic_plan):
        _use_repository(authed_client, basic_plan)

        response = authed_client.patch(f"{PLANS_URL}/{basic_plan.id}", json={"price": 1200})

        assert response.status_code == 200
        assert response.json()["price"] == 1200
        assert response.json()["name"] == "Basic 10M"

    def test_update_with_nulls_keeps_plan_usable(self, authed_client, basic_plan):
        _use_repository(authed_client, basic_plan)

        response = authed_client.patch(
            f"{PLANS_URL}/{basic_plan.id}", json={"price": None, "currency": None, "speed_limit": None}
        )
        fetched = authed_client.get(PLANS_URL, params={"routerId": "router-1"}).json()[0]

        assert response.status_code == 200
        assert response.json()["price"] == 1000
        assert response.json()["currency"] == "PHP"
        assert response.json()["speed_limit"] is None
        assert fetched["price"] == 1000

    def test_update_missing_plan_is_404(self, authed_client):
        _use_repository(authed_client)

        response = authed_client.patch(f"{PLANS_URL}/nope", json={"price": 1})

        assert response.status_code == 404

    def test_delete_plan(self, authed_client, basic_plan):
        repository = _use_repository(authed_client, basic_plan)

        first = authed_client.delete(f"{PLANS_URL}/{basic_plan.id}")
        second = authed_client.delete(f"{PLANS_URL}/{basic_plan.id}")

        assert first.status_code == 204
        assert second.status_code == 404
        assert repository.plans == {}

    def test_store_unavailable_is_503(self, authed_client):
        authed_client.app.state.plan_repository = None

        response = authed_client.get(PLANS_URL, params={"routerId": "router-1"})

        assert response.status_code == 503
