"""Interface for exchange-rate lookups.

Defines the contract for asking a remote FX service for the rate between
two currencies. Implementations perform exactly one remote call per
invocation; retries and circuit breaking are layered on top by the gateway.
"""

import abc

from ..models.common import CurrencyCode
from ..models.loyalty import ExchangeRate


class ExchangeRateLookup(abc.ABC):
    """Abstract Base Class for a single remote rate lookup."""

    @abc.abstractmethod
    async def fetch_rate(self, from_currency: CurrencyCode, to_currency: CurrencyCode) -> ExchangeRate:
        """Fetches the conversion rate from one currency to another.

        Args:
            from_currency: Currency the amount is expressed in.
            to_currency: Currency to convert into.

        Returns:
            The quoted ExchangeRate.

        Raises:
            ExternalServiceError: If the service answers with an error.
            Exception: Transport failures are raised as-is.
        """
        pass
