"""Interface for promotion lookups."""

import abc
from typing import Optional

from ..models.common import PromoCode
from ..models.loyalty import Promotion


class PromotionLookup(abc.ABC):
    """Abstract Base Class for a single remote promotion lookup."""

    @abc.abstractmethod
    async def fetch_promotion(self, code: PromoCode) -> Optional[Promotion]:
        """Fetches the terms of a promotion code.

        Args:
            code: The promotion code to look up.

        Returns:
            The Promotion, or None if the service does not know the code.

        Raises:
            Exception: On any other failure (status, transport, decoding).
        """
        pass
