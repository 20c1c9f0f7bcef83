"""Core service for pricing a fare in loyalty points.

Orchestrates the quote pipeline: validate the request, convert the fare into
the base currency, derive base points, add the tier bonus and the promotion
bonus (subject to activity and expiry rules), then cap the total and attach
warnings. The FX and promotion lookups are independent, so both are issued
before either is awaited; the arithmetic starts once both have settled.
"""

import asyncio
import logging
import math
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Dict, List, Optional, Tuple

from pointsquote.domain.models.common import (
    CurrencyCode, WarningCode,
    POINTS_CAPPED_AT_MAX, PROMO_EXPIRED, PROMO_EXPIRES_SOON, PROMO_INACTIVE,
)
from pointsquote.domain.models.errors import QuoteTimeoutError, ValidationError
from pointsquote.domain.models.loyalty import (
    CabinClass, CustomerTier, DEFAULT_TIER_MULTIPLIERS, PointsQuote, Promotion, QuoteRequest
)
from pointsquote.infrastructure.config.settings import LoyaltySettings
from pointsquote.infrastructure.gateways.exchange_rate_gateway import ExchangeRateGateway
from pointsquote.infrastructure.gateways.promotion_gateway import PromotionGateway

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")

class PointsCalculator:
    """Computes PointsQuotes from QuoteRequests. Holds no per-request state."""

    def __init__(
        self,
        exchange_rate_gateway: ExchangeRateGateway,
        promotion_gateway: PromotionGateway,
        base_currency: str = "USD",
        max_points: int = 50000,
        expiry_warning_days: int = 7,
        request_timeout_s: Optional[float] = 10.0,
        tier_multipliers: Optional[Dict[CustomerTier, float]] = None,
        today: Callable[[], date] = date.today,
    ):
        """Initializes the PointsCalculator.

        Args:
            exchange_rate_gateway: Source of conversion rates (fail-closed).
            promotion_gateway: Source of promotion terms (fail-open).
            base_currency: Currency every fare is converted into before arithmetic.
            max_points: Ceiling applied to the total.
            expiry_warning_days: Promotions expiring within this many days get a warning.
            request_timeout_s: Overall deadline of one calculation, None for no deadline.
            tier_multipliers: Per-tier bonus rates; defaults to DEFAULT_TIER_MULTIPLIERS.
            today: Provider of the current date. Injectable for tests.
        """
        self.exchange_rate_gateway = exchange_rate_gateway
        self.promotion_gateway = promotion_gateway
        self.base_currency = CurrencyCode(base_currency)
        self.max_points = max_points
        self.expiry_warning_days = expiry_warning_days
        self.request_timeout_s = request_timeout_s
        self.tier_multipliers = dict(DEFAULT_TIER_MULTIPLIERS)
        if tier_multipliers:
            self.tier_multipliers.update(tier_multipliers)
        self._today = today

    @classmethod
    def from_settings(
        cls,
        settings: LoyaltySettings,
        exchange_rate_gateway: ExchangeRateGateway,
        promotion_gateway: PromotionGateway,
        today: Callable[[], date] = date.today,
    ) -> "PointsCalculator":
        """Builds a calculator from loaded LoyaltySettings."""
        return cls(
            exchange_rate_gateway=exchange_rate_gateway,
            promotion_gateway=promotion_gateway,
            base_currency=settings.base_currency,
            max_points=settings.max_points,
            expiry_warning_days=settings.expiry_warning_days,
            request_timeout_s=settings.request_timeout_s,
            tier_multipliers=settings.tier_multipliers,
            today=today,
        )

    async def calculate(self, request: QuoteRequest) -> PointsQuote:
        """Prices a fare in loyalty points.

        Args:
            request: The raw quote request.

        Returns:
            The assembled PointsQuote.

        Raises:
            ValidationError: If the request is invalid (no remote call is made).
            ExternalServiceError: If no conversion rate could be obtained.
            QuoteTimeoutError: If the overall deadline elapsed.
        """
        _, tier = self.validate(request)

        if self.request_timeout_s is None:
            return await self._price(request, tier)
        try:
            return await asyncio.wait_for(self._price(request, tier), timeout=self.request_timeout_s)
        except asyncio.TimeoutError:
            logger.warning(f"Quote for {request.fare_amount} {request.currency} timed out after {self.request_timeout_s}s")
            raise QuoteTimeoutError(self.request_timeout_s)

    def validate(self, request: QuoteRequest) -> Tuple[CabinClass, CustomerTier]:
        """Checks the request field by field; the first violation wins.

        Returns:
            The parsed cabin class and customer tier.

        Raises:
            ValidationError: Describing the first invalid field.
        """
        fare = request.fare_amount
        if fare is None or not fare.is_finite() or fare <= 0:
            raise ValidationError("Fare amount must be greater than zero")

        if request.currency is None or len(request.currency) != 3:
            raise ValidationError("Invalid currency code")

        cabin = CabinClass.parse(request.cabin_class)
        if cabin is None:
            raise ValidationError(f"Invalid cabin class: {request.cabin_class}")

        tier = CustomerTier.parse(request.customer_tier)
        if tier is None:
            raise ValidationError(f"Invalid customer tier: {request.customer_tier}")

        return cabin, tier

    async def _price(self, request: QuoteRequest, tier: CustomerTier) -> PointsQuote:
        promo_task = asyncio.create_task(self.promotion_gateway.get_promotion(request.promo_code))
        try:
            rate = await self.exchange_rate_gateway.get_rate(CurrencyCode(request.currency), self.base_currency)
        except BaseException:
            promo_task.cancel()
            await asyncio.gather(promo_task, return_exceptions=True)
            raise
        promotion = await promo_task

        fare = request.fare_amount
        converted = fare * Decimal(str(rate))
        effective_fx_rate = float((converted / fare).quantize(CENTS, rounding=ROUND_HALF_UP))

        base_points = math.floor(converted)
        tier_bonus = self.tier_bonus(base_points, tier)
        promo_bonus, warnings = self.promotion_bonus(base_points, promotion)

        total_before_cap = base_points + tier_bonus + promo_bonus
        total_points = min(total_before_cap, self.max_points)
        if total_points < total_before_cap:
            warnings.append(POINTS_CAPPED_AT_MAX)
            logger.info(f"Points capped: {total_before_cap} -> {total_points}")

        return PointsQuote(
            base_points=base_points,
            tier_bonus=tier_bonus,
            promo_bonus=promo_bonus,
            total_points=total_points,
            effective_fx_rate=effective_fx_rate,
            warnings=tuple(warnings),
        )

    def tier_bonus(self, base_points: int, tier: CustomerTier) -> int:
        """floor(base_points * tier multiplier)."""
        multiplier = self.tier_multipliers[tier]
        bonus = math.floor(Decimal(base_points) * Decimal(str(multiplier)))
        logger.debug(f"Tier bonus calculated: {base_points} * {multiplier} = {bonus}")
        return bonus

    def promotion_bonus(self, base_points: int, promotion: Optional[Promotion]) -> Tuple[int, List[WarningCode]]:
        """Applies activity and expiry rules to a promotion.

        Returns:
            The bonus and the promotion warnings, in the order produced.
        """
        if promotion is None:
            return 0, []

        if not promotion.active:
            logger.info(f"Promo {promotion.code} is inactive")
            return 0, [PROMO_INACTIVE]

        warnings: List[WarningCode] = []
        days_until_expiry = promotion.days_until_expiry(self._today())
        if days_until_expiry is not None:
            if days_until_expiry <= 0:
                logger.info(f"Promo {promotion.code} has expired")
                return 0, [PROMO_EXPIRED]
            if days_until_expiry <= self.expiry_warning_days:
                logger.info(f"Promo {promotion.code} expires in {days_until_expiry} days")
                warnings.append(PROMO_EXPIRES_SOON)

        bonus = math.floor(Decimal(base_points) * Decimal(str(promotion.bonus_multiplier)))
        logger.debug(f"Promo bonus calculated: {base_points} * {promotion.bonus_multiplier} = {bonus}")
        return bonus, warnings
