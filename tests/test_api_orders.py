"""Tests for the HTTP endpoints."""

import pytest
from fastapi.testclient import TestClient

from orderhub.main import create_app
from orderhub.services.normalizer import decode, normalize
from orderhub.services.order_service import OrderService
from orderhub.utils.cache import OrderCache


@pytest.fixture
def api_client(service):
    app = create_app(order_service=service, listener_enabled=False)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def failing_client(failing_store):
    app = create_app(order_service=OrderService(failing_store, OrderCache()), listener_enabled=False)
    with TestClient(app) as client:
        yield client


class TestGetOrder:
    def test_found(self, api_client, service, sample_payload):
        service.process_incoming(sample_payload)

        response = api_client.get("/orders/b563feb7b2b84b6test")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/json")
        assert response.content == normalize(sample_payload)

    def test_found_in_database_only(self, api_client, service, store, sample_payload):
        store.save_order(decode(sample_payload)[0], sample_payload)

        response = api_client.get("/orders/b563feb7b2b84b6test")

        assert response.status_code == 200
        assert response.json()["order_uid"] == "b563feb7b2b84b6test"
        assert "b563feb7b2b84b6test" in service.cache

    def test_not_found(self, api_client):
        response = api_client.get("/orders/unknown-order")
        assert response.status_code == 404

    @pytest.mark.parametrize("path", ["/orders/", "/orders"])
    def test_empty_id(self, api_client, path):
        response = api_client.get(path)
        assert response.status_code == 400
        assert response.json()["detail"] == "missing order id"

    def test_storage_failure(self, failing_client):
        response = failing_client.get("/orders/b563feb7b2b84b6test")
        assert response.status_code == 500
        assert response.json()["detail"] == "internal error"


class TestHealth:
    def test_health(self, api_client):
        response = api_client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_status_reports_cache_and_counters(self, api_client, service, sample_payload):
        service.process_incoming(sample_payload)

        data = api_client.get("/status").json()

        assert data["cache"]["orders"] == 1
        assert data["orders"]["processed"] == 1
        assert data["listener"]["running"] is False
