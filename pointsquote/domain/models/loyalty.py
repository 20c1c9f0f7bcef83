"""Domain models for loyalty points quoting.

Includes the request/response structures of a quote and the terms fetched
from the exchange-rate and promotion services.
"""

import enum
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from .common import CurrencyCode, PromoCode, WarningCode


class CabinClass(enum.Enum):
    """Cabin of the fare. Informational only, never used in arithmetic."""
    ECONOMY = "ECONOMY"
    BUSINESS = "BUSINESS"
    FIRST = "FIRST"

    @classmethod
    def parse(cls, name: Optional[str]) -> Optional["CabinClass"]:
        """Returns the member with exactly this name, or None."""
        if name is None:
            return None
        return _CABIN_BY_NAME.get(name)


class CustomerTier(enum.Enum):
    """Loyalty tier of the customer, each carrying a default bonus multiplier."""
    NONE = "NONE"
    SILVER = "SILVER"
    GOLD = "GOLD"
    PLATINUM = "PLATINUM"

    @classmethod
    def parse(cls, name: Optional[str]) -> Optional["CustomerTier"]:
        """Returns the member with exactly this name, or None."""
        if name is None:
            return None
        return _TIER_BY_NAME.get(name)


_CABIN_BY_NAME: Dict[str, CabinClass] = {member.name: member for member in CabinClass}
_TIER_BY_NAME: Dict[str, CustomerTier] = {member.name: member for member in CustomerTier}

DEFAULT_TIER_MULTIPLIERS: Dict[CustomerTier, float] = {
    CustomerTier.NONE: 0.0,
    CustomerTier.SILVER: 0.15,
    CustomerTier.GOLD: 0.30,
    CustomerTier.PLATINUM: 0.50,
}

# --- Request / Response ---

@dataclass(frozen=True)
class QuoteRequest:
    """A quote request as received at the boundary, before validation."""
    fare_amount: Optional[Decimal]
    currency: Optional[str]
    cabin_class: Optional[str]
    customer_tier: Optional[str]
    promo_code: Optional[str] = None


@dataclass(frozen=True)
class PointsQuote:
    """The priced result of a quote request."""
    base_points: int
    tier_bonus: int
    promo_bonus: int
    total_points: int
    effective_fx_rate: float
    warnings: Tuple[WarningCode, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        """Renders the quote in its camelCase wire shape."""
        return {
            "basePoints": self.base_points,
            "tierBonus": self.tier_bonus,
            "promoBonus": self.promo_bonus,
            "totalPoints": self.total_points,
            "effectiveFxRate": self.effective_fx_rate,
            "warnings": list(self.warnings),
        }

# --- Terms fetched from downstream services ---

@dataclass(frozen=True)
class ExchangeRate:
    """Conversion rate quoted by the FX service."""
    source: CurrencyCode
    target: CurrencyCode
    rate: float
    quoted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class Promotion:
    """Terms of a promotion code."""
    code: PromoCode
    bonus_multiplier: float
    expiry_date: Optional[date] = None
    active: bool = True

    def days_until_expiry(self, today: date) -> Optional[int]:
        """Whole days from today until expiry, or None if it never expires."""
        if self.expiry_date is None:
            return None
        return (self.expiry_date - today).days
