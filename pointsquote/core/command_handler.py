"""Command Handler: Orchestrates CLI command execution.

Receives commands from the main entry point (main.py), turns raw arguments
into a QuoteRequest, delegates to the PointsCalculator and maps the outcome
to output and an exit code. Request-level metrics are recorded here.
"""

import logging
import time
from dataclasses import asdict
from decimal import Decimal, InvalidOperation
from typing import Optional

# Core Services Imports
from pointsquote.core.services.points_calculator import PointsCalculator

# Domain Layer Imports
from pointsquote.domain.interfaces.metrics import MetricsSink
from pointsquote.domain.interfaces.user_interface import UserInterface
from pointsquote.domain.models.errors import (
    ExternalServiceError, QuoteTimeoutError, ValidationError
)
from pointsquote.domain.models.loyalty import QuoteRequest

# Infrastructure Layer Imports
from pointsquote.infrastructure.config.settings import LoyaltySettings
from pointsquote.infrastructure.monitoring.metrics import PrometheusMetricsSink

logger = logging.getLogger(__name__)

# Exit codes, mirroring the HTTP statuses the quote errors map to.
EXIT_OK = 0
EXIT_INTERNAL_ERROR = 1       # 500
EXIT_VALIDATION_ERROR = 2     # 400
EXIT_SERVICE_UNAVAILABLE = 3  # 503
EXIT_TIMEOUT = 4              # 504

def parse_fare(raw: Optional[str]) -> Optional[Decimal]:
    """Parses a fare argument, returning None when it is missing or not a number."""
    if raw is None:
        return None
    try:
        return Decimal(raw.strip())
    except InvalidOperation:
        return None

class CommandHandler:
    """Handles incoming commands and delegates to the points calculator."""

    def __init__(
        self,
        calculator: PointsCalculator,
        metrics: MetricsSink,
        settings: LoyaltySettings,
        ui: UserInterface,
    ):
        """Initializes the CommandHandler with required services."""
        self.calculator = calculator
        self.metrics = metrics
        self.settings = settings
        self.ui = ui

    async def handle_quote(
        self,
        fare: Optional[str],
        currency: Optional[str],
        cabin_class: Optional[str],
        customer_tier: Optional[str],
        promo_code: Optional[str] = None,
        as_json: bool = False,
    ) -> int:
        """Handles the 'quote' command.

        Returns:
            The process exit code.
        """
        self.metrics.increment_requests()
        start_time = time.perf_counter()
        request = QuoteRequest(
            fare_amount=parse_fare(fare),
            currency=currency,
            cabin_class=cabin_class,
            customer_tier=customer_tier,
            promo_code=promo_code,
        )
        logger.info(f"Processing points quote request for {fare} {currency} in {cabin_class}")

        try:
            quote = await self.calculator.calculate(request)
        except ValidationError as e:
            logger.warning(f"Validation error: {e}")
            return self._fail("VALIDATION_ERROR", str(e), EXIT_VALIDATION_ERROR, as_json)
        except QuoteTimeoutError as e:
            logger.warning(f"Timeout error: {e}")
            return self._fail("TIMEOUT_ERROR", "External service timeout occurred", EXIT_TIMEOUT, as_json)
        except ExternalServiceError as e:
            logger.error(f"External service error: {e}")
            return self._fail("SERVICE_UNAVAILABLE", str(e), EXIT_SERVICE_UNAVAILABLE, as_json)
        except Exception as e:
            logger.error(f"Unexpected error processing points quote: {e}", exc_info=True)
            return self._fail("INTERNAL_ERROR", "An error occurred processing your request", EXIT_INTERNAL_ERROR, as_json)
        finally:
            self.metrics.observe_duration(time.perf_counter() - start_time)

        self.ui.display_quote(quote, as_json=as_json)
        logger.info(f"Points quote successful: {quote.total_points} total points")
        return EXIT_OK

    def handle_show_config(self) -> int:
        """Handles the 'show-config' command."""
        settings = asdict(self.settings)
        settings["tier_multipliers"] = {
            tier.name: multiplier for tier, multiplier in self.settings.tier_multipliers.items()
        }
        self.ui.display_settings(settings)
        return EXIT_OK

    def handle_metrics(self) -> int:
        """Handles the 'metrics' command."""
        if not isinstance(self.metrics, PrometheusMetricsSink):
            self.ui.display_error("Metrics are disabled.")
            return EXIT_INTERNAL_ERROR
        self.ui.display_output(self.metrics.render())
        return EXIT_OK

    def _fail(self, code: str, message: str, exit_code: int, as_json: bool) -> int:
        self.metrics.increment_errors()
        self.ui.display_error(message, code=code, as_json=as_json)
        return exit_code
