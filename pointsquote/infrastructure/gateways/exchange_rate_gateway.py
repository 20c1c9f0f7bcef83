"""Gateway to the FX (exchange rate) service.

A fare cannot be priced without a rate, so failures propagate: the
invoker is configured with retries, a circuit breaker and
FailurePolicy.PROPAGATE.
"""

import logging

from pointsquote.domain.interfaces.rate_source import ExchangeRateLookup
from pointsquote.domain.models.common import CurrencyCode
from pointsquote.infrastructure.resilience.resilient_invoker import FailurePolicy, ResilientInvoker

logger = logging.getLogger(__name__)

FX_SERVICE_NAME = "fx-service"
IDENTITY_RATE = 1.0

class ExchangeRateGateway:
    """Fetches conversion rates through a fail-closed ResilientInvoker."""

    def __init__(self, lookup: ExchangeRateLookup, invoker: ResilientInvoker):
        if invoker.failure_policy is not FailurePolicy.PROPAGATE:
            raise ValueError("ExchangeRateGateway requires an invoker with FailurePolicy.PROPAGATE")
        self.lookup = lookup
        self.invoker = invoker

    async def get_rate(self, from_currency: CurrencyCode, to_currency: CurrencyCode) -> float:
        """Returns the rate converting from_currency into to_currency.

        Raises:
            ExternalServiceError: If retries are exhausted or the circuit is open.
        """
        if from_currency == to_currency:
            logger.debug(f"Same currency {from_currency}, using identity rate")
            return IDENTITY_RATE

        exchange_rate = await self.invoker.execute(
            lambda: self.lookup.fetch_rate(from_currency, to_currency)
        )
        logger.info(f"FX rate retrieved: {from_currency} -> {to_currency} = {exchange_rate.rate}")
        return exchange_rate.rate
