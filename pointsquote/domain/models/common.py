"""Defines common Value Objects used across different domain contexts.

These objects represent simple values or concepts like currency codes,
promotion codes and warning codes, ensuring consistency and type safety.
"""

from typing import NewType

# === Core Value Objects ===

# Using NewType for semantic clarity, although they are strings at runtime.
CurrencyCode = NewType("CurrencyCode", str)    # ISO-4217 style, e.g. 'USD'
PromoCode = NewType("PromoCode", str)          # Marketing code, e.g. 'SUMMER25'
WarningCode = NewType("WarningCode", str)      # Attached to a quote, e.g. 'PROMO_EXPIRED'
DependencyName = NewType("DependencyName", str)  # Downstream service, e.g. 'fx-service'

# === Quote Warnings ===
PROMO_INACTIVE = WarningCode("PROMO_INACTIVE")
PROMO_EXPIRED = WarningCode("PROMO_EXPIRED")
PROMO_EXPIRES_SOON = WarningCode("PROMO_EXPIRES_SOON")
POINTS_CAPPED_AT_MAX = WarningCode("POINTS_CAPPED_AT_MAX")

