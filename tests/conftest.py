"""Pytest fixtures for the StockDash feed tests"""

import random

import pytest
from fastapi.testclient import TestClient

from app.core.config import Settings
from app.main import create_app
from app.services.broadcaster import ListenerRegistry
from app.services.market_data import MarketState, SeedSymbol
from app.services.market_simulator import PriceMutator


class FixedRandom(random.Random):
    """Random source with a constant price shock and the minimum volume."""

    def __init__(self, delta: float) -> None:
        super().__init__(0)
        self.delta = delta

    def uniform(self, a, b):
        return self.delta

    def randint(self, a, b):
        return a


class Collector:
    """Send capability that records every message it receives."""

    def __init__(self) -> None:
        self.messages = []

    def __call__(self, message: dict) -> None:
        self.messages.append(message)


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from .env, ticker off, reproducible random walk"""
    return Settings(
        _env_file=None,
        PRICE_TICKER_ENABLED=False,
        PRICE_RANDOM_SEED=42,
        HISTORY_WINDOW=30,
    )


@pytest.fixture
def market_state() -> MarketState:
    """Default five-symbol universe"""
    return MarketState.from_seed(history_window=30)


@pytest.fixture
def single_symbol_state() -> MarketState:
    """One symbol, window of three bars"""
    return MarketState.from_seed(
        [SeedSymbol("AAPL", "Apple Inc.", 100.00, 0.0, 0.0, 1_000)],
        history_window=3,
    )


@pytest.fixture
def mutator(market_state) -> PriceMutator:
    return PriceMutator(market_state, rng=random.Random(7))


@pytest.fixture
def registry() -> ListenerRegistry:
    return ListenerRegistry()


@pytest.fixture
def collector_factory():
    return Collector


@pytest.fixture
def fixed_random():
    return FixedRandom


@pytest.fixture
def app(test_settings):
    return create_app(test_settings)


@pytest.fixture
def client(app):
    """TestClient without lifespan: the price ticker never starts"""
    return TestClient(app)
