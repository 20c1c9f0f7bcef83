"""Concrete implementation of the ExchangeRateLookup interface over HTTP.

Issues ``GET {base_url}{path}?from=XXX&to=YYY`` and translates the JSON body
``{"fromCurrency", "toCurrency", "rate", "timestamp"}`` into an ExchangeRate.
One request per call; retries belong to the gateway.
"""

import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from pointsquote.domain.interfaces.rate_source import ExchangeRateLookup
from pointsquote.domain.models.common import CurrencyCode
from pointsquote.domain.models.errors import ExternalServiceError
from pointsquote.domain.models.loyalty import ExchangeRate
from pointsquote.infrastructure.http.base_client import AsyncHttpResource

logger = logging.getLogger(__name__)

class HttpExchangeRateLookup(AsyncHttpResource, ExchangeRateLookup):
    """httpx implementation of the ExchangeRateLookup interface."""

    def __init__(self, base_url: str, path: str, timeout_s: float, client: Optional[httpx.AsyncClient] = None):
        """Initializes the lookup.

        Args:
            base_url: Scheme and authority of the FX service, e.g. 'https://fx.internal'.
            path: Path of the rate endpoint, e.g. '/v1/fx/rate'.
            timeout_s: Transport-level timeout for connect/read.
            client: Optional pre-built client (tests inject one with a MockTransport).
        """
        super().__init__(base_url, timeout_s, client)
        self.path = path
        logger.info(f"HttpExchangeRateLookup initialized: {base_url}{path} (timeout={timeout_s}s)")

    async def fetch_rate(self, from_currency: CurrencyCode, to_currency: CurrencyCode) -> ExchangeRate:
        response = await self.client.get(self.path, params={"from": from_currency, "to": to_currency})
        if response.status_code != 200:
            raise ExternalServiceError(f"FX service returned status {response.status_code}")

        payload = response.json()
        rate = _parse_rate(payload)
        return ExchangeRate(
            source=CurrencyCode(payload.get("fromCurrency") or from_currency),
            target=CurrencyCode(payload.get("toCurrency") or to_currency),
            rate=rate,
            quoted_at=_parse_timestamp(payload.get("timestamp")),
        )


def _parse_rate(payload: Dict[str, Any]) -> float:
    raw = payload.get("rate")
    try:
        rate = float(raw)
    except (TypeError, ValueError):
        raise ExternalServiceError(f"FX service returned an invalid rate: {raw!r}")
    if not math.isfinite(rate) or rate <= 0:
        raise ExternalServiceError(f"FX service returned an invalid rate: {rate}")
    return rate


def _parse_timestamp(raw: Optional[str]) -> datetime:
    if raw:
        try:
            return datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            logger.debug(f"Unparsable FX timestamp {raw!r}, using current time")
    return datetime.now(timezone.utc)
