"""Gateway to the promotion service.

Promotions are best-effort: a single attempt, no circuit breaker, and any
failure resolves to "no promotion" exactly like a code the service does not
know. Callers cannot tell the two apart.
"""

import logging
from typing import Optional

from pointsquote.domain.interfaces.metrics import MetricsSink
from pointsquote.domain.interfaces.promotion_source import PromotionLookup
from pointsquote.domain.models.common import PromoCode
from pointsquote.domain.models.loyalty import Promotion
from pointsquote.infrastructure.resilience.resilient_invoker import FailurePolicy, ResilientInvoker

logger = logging.getLogger(__name__)

PROMO_SERVICE_NAME = "promo-service"

class PromotionGateway:
    """Fetches promotion terms through a fail-open ResilientInvoker."""

    def __init__(self, lookup: PromotionLookup, invoker: ResilientInvoker):
        self.lookup = lookup
        self.invoker = invoker

    @classmethod
    def fail_open(cls, lookup: PromotionLookup, per_call_timeout_s: Optional[float], metrics: Optional[MetricsSink] = None) -> "PromotionGateway":
        """Builds the gateway with its standard best-effort policy."""
        invoker = ResilientInvoker(
            name=PROMO_SERVICE_NAME,
            max_retries=0,
            per_call_timeout_s=per_call_timeout_s,
            circuit_breaker=None,
            failure_policy=FailurePolicy.USE_DEFAULT,
            default_value=None,
            metrics=metrics,
        )
        return cls(lookup, invoker)

    async def get_promotion(self, code: Optional[str]) -> Optional[Promotion]:
        """Returns the promotion for code, or None if none applies."""
        if code is None or not code.strip():
            return None

        logger.debug(f"Fetching promo details for code: {code}")
        promotion = await self.invoker.execute(lambda: self.lookup.fetch_promotion(PromoCode(code)))
        if promotion is None:
            logger.info(f"No promotion applies for code: {code}")
        return promotion
