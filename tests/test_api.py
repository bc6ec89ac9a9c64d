"""Tests for the REST snapshot endpoints, health and app lifecycle"""

import time

from fastapi.testclient import TestClient

from app.core.config import Settings
from app.main import create_app


class TestStocks:
    def test_list_stocks(self, client):
        response = client.get("/stocks")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert [q["symbol"] for q in body["data"]] == ["AAPL", "GOOGL", "MSFT", "TSLA", "NVDA"]
        assert body["data"][0] == {
            "symbol": "AAPL",
            "name": "Apple Inc.",
            "currentPrice": 185.5,
            "change": 2.3,
            "changePercent": 1.26,
            "volume": 45_230_000,
        }

    def test_reads_do_not_advance_prices(self, client):
        first = client.get("/stocks").json()["data"]
        second = client.get("/stocks").json()["data"]

        assert first == second

    def test_get_stock_is_case_insensitive(self, client, app):
        app.state.mutator.tick()

        response = client.get("/stocks/msft")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["symbol"] == "MSFT"
        assert data["currentPrice"] == app.state.market.get("MSFT").price
        assert len(data["history"]) == 1
        bar = data["history"][0]
        assert bar["high"] >= bar["close"] >= bar["low"]

    def test_unknown_stock_returns_404(self, client):
        response = client.get("/stocks/ZZZZ")

        assert response.status_code == 404
        assert response.json() == {"detail": "Stock not found"}


class TestHealth:
    def test_root(self, client):
        assert client.get("/").json() == {"status": "ok", "service": "StockDash Feed"}

    def test_health_without_ticker(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["tracked_symbols"] == 5
        assert body["listeners"] == 0
        assert body["ticker_running"] is False
        assert body["ticker_interval_sec"] == 5.0
        assert body["history_window"] == 30

    def test_ticker_disabled_on_startup(self, app):
        with TestClient(app) as client:
            assert client.get("/health").json()["ticker_running"] is False
        assert app.state.ticker_task is None


class TestTickerLifecycle:
    def test_ticker_starts_and_stops_with_app(self):
        settings = Settings(_env_file=None, PRICE_UPDATE_INTERVAL_SEC=0.02, PRICE_RANDOM_SEED=1)
        app = create_app(settings)

        with TestClient(app) as client:
            assert client.get("/health").json()["ticker_running"] is True

            deadline = time.monotonic() + 2.0
            history = []
            while time.monotonic() < deadline:
                history = client.get("/stocks/AAPL").json()["data"]["history"]
                if len(history) >= 2:
                    break
                time.sleep(0.02)

            assert len(history) >= 2

        # shutdown cancels the task
        assert app.state.ticker_task is None
