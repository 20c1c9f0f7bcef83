"""Concrete implementation of the PromotionLookup interface over HTTP.

Issues ``GET {base_url}{path}/{code}``. A 200 body
``{"promoCode", "bonusMultiplier", "expiryDate", "active"}`` becomes a
Promotion, a 404 means the code is unknown, anything else raises.
"""

import logging
import math
from datetime import date
from typing import Optional

import httpx

from pointsquote.domain.interfaces.promotion_source import PromotionLookup
from pointsquote.domain.models.common import PromoCode
from pointsquote.domain.models.errors import ExternalServiceError
from pointsquote.domain.models.loyalty import Promotion
from pointsquote.infrastructure.http.base_client import AsyncHttpResource

logger = logging.getLogger(__name__)

class HttpPromotionLookup(AsyncHttpResource, PromotionLookup):
    """httpx implementation of the PromotionLookup interface."""

    def __init__(self, base_url: str, path: str, timeout_s: float, client: Optional[httpx.AsyncClient] = None):
        super().__init__(base_url, timeout_s, client)
        self.path = path.rstrip("/")
        logger.info(f"HttpPromotionLookup initialized: {base_url}{path} (timeout={timeout_s}s)")

    async def fetch_promotion(self, code: PromoCode) -> Optional[Promotion]:
        response = await self.client.get(f"{self.path}/{code}")
        if response.status_code == 404:
            logger.info(f"Promo code not found: {code}")
            return None
        if response.status_code != 200:
            raise ExternalServiceError(f"Promo service returned unexpected status {response.status_code}")

        payload = response.json()
        expiry = payload.get("expiryDate")
        promotion = Promotion(
            code=PromoCode(payload.get("promoCode") or code),
            bonus_multiplier=float(payload.get("bonusMultiplier") or 0.0),
            expiry_date=date.fromisoformat(expiry) if expiry else None,
            active=payload.get("active") is True,
        )
        if not math.isfinite(promotion.bonus_multiplier) or promotion.bonus_multiplier < 0:
            raise ExternalServiceError(
                f"Promo service returned an invalid multiplier for {code}: {promotion.bonus_multiplier}"
            )
        logger.info(f"Promo details retrieved: {code}")
        return promotion
