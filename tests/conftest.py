import asyncio
from datetime import date, timedelta
from decimal import Decimal
from typing import List

import pytest
from typer.testing import CliRunner

from pointsquote.core.services.points_calculator import PointsCalculator
from pointsquote.domain.interfaces.promotion_source import PromotionLookup
from pointsquote.domain.interfaces.rate_source import ExchangeRateLookup
from pointsquote.domain.models.common import CurrencyCode, PromoCode
from pointsquote.domain.models.loyalty import ExchangeRate, Promotion, QuoteRequest
from pointsquote.infrastructure.config.settings import clear_test_config
from pointsquote.infrastructure.gateways.exchange_rate_gateway import FX_SERVICE_NAME, ExchangeRateGateway
from pointsquote.infrastructure.gateways.promotion_gateway import PromotionGateway
from pointsquote.infrastructure.monitoring.metrics import PrometheusMetricsSink
from pointsquote.infrastructure.resilience.circuit_breaker import CircuitBreaker
from pointsquote.infrastructure.resilience.resilient_invoker import ResilientInvoker

TODAY = date(2024, 6, 1)

class RecordingSleep:
    """Stands in for asyncio.sleep: records requested delays and returns at once."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)

class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

def make_request(fare="1000.00", currency="USD", cabin="ECONOMY", tier="NONE", promo=None) -> QuoteRequest:
    return QuoteRequest(
        fare_amount=Decimal(fare) if fare is not None else None,
        currency=currency,
        cabin_class=cabin,
        customer_tier=tier,
        promo_code=promo,
    )

def make_rate(source="EUR", target="USD", rate=1.1) -> ExchangeRate:
    return ExchangeRate(source=CurrencyCode(source), target=CurrencyCode(target), rate=rate)

def make_promotion(code="SUMMER25", multiplier=0.25, expires_in_days=10, active=True) -> Promotion:
    expiry = TODAY + timedelta(days=expires_in_days) if expires_in_days is not None else None
    return Promotion(code=PromoCode(code), bonus_multiplier=multiplier, expiry_date=expiry, active=active)

@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()

@pytest.fixture(autouse=True)
def reset_config():
    """Every test starts from an empty configuration store."""
    clear_test_config()
    yield
    clear_test_config()

@pytest.fixture
def recording_sleep():
    return RecordingSleep()

@pytest.fixture
def fake_clock():
    return FakeClock()

@pytest.fixture
def metrics():
    return PrometheusMetricsSink()

@pytest.fixture
def rate_lookup(mocker):
    """Mock ExchangeRateLookup returning EUR->USD 1.1 unless reconfigured."""
    lookup = mocker.MagicMock(spec=ExchangeRateLookup)
    lookup.fetch_rate.return_value = make_rate()
    return lookup

@pytest.fixture
def promo_lookup(mocker):
    """Mock PromotionLookup that knows no codes unless reconfigured."""
    lookup = mocker.MagicMock(spec=PromotionLookup)
    lookup.fetch_promotion.return_value = None
    return lookup

@pytest.fixture
def fx_breaker(fake_clock):
    return CircuitBreaker(FX_SERVICE_NAME, failure_threshold=5, reset_timeout=10.0, clock=fake_clock)

@pytest.fixture
def fx_gateway(rate_lookup, fx_breaker, metrics, recording_sleep):
    invoker = ResilientInvoker(
        name=FX_SERVICE_NAME,
        max_retries=3,
        initial_backoff_s=0.1,
        per_call_timeout_s=1.0,
        circuit_breaker=fx_breaker,
        metrics=metrics,
        sleep=recording_sleep,
    )
    return ExchangeRateGateway(rate_lookup, invoker)

@pytest.fixture
def promo_gateway(promo_lookup, metrics):
    return PromotionGateway.fail_open(promo_lookup, per_call_timeout_s=1.0, metrics=metrics)

@pytest.fixture
def calculator(fx_gateway, promo_gateway):
    """PointsCalculator with default business rules and a fixed current date."""
    return PointsCalculator(
        exchange_rate_gateway=fx_gateway,
        promotion_gateway=promo_gateway,
        today=lambda: TODAY,
    )

async def never_returns(*args, **kwargs):
    await asyncio.sleep(3600)
