import pytest
from decimal import Decimal
from unittest.mock import MagicMock

from pointsquote.core.command_handler import (
    CommandHandler, EXIT_INTERNAL_ERROR, EXIT_OK, EXIT_SERVICE_UNAVAILABLE,
    EXIT_TIMEOUT, EXIT_VALIDATION_ERROR, parse_fare,
)
from pointsquote.core.services.points_calculator import PointsCalculator
from pointsquote.domain.interfaces.metrics import NullMetricsSink
from pointsquote.domain.interfaces.user_interface import UserInterface
from pointsquote.domain.models.errors import (
    CircuitOpenError, ExternalServiceError, QuoteTimeoutError, ValidationError
)
from pointsquote.domain.models.loyalty import PointsQuote, QuoteRequest
from pointsquote.infrastructure.config.settings import LoyaltySettings

QUOTE = PointsQuote(base_points=1100, tier_bonus=330, promo_bonus=0, total_points=1430, effective_fx_rate=1.1)

@pytest.fixture
def mock_calculator(mocker):
    calculator = mocker.MagicMock(spec=PointsCalculator)
    calculator.calculate.return_value = QUOTE
    return calculator

@pytest.fixture
def mock_ui():
    return MagicMock(spec=UserInterface)

@pytest.fixture
def command_handler(mock_calculator, mock_ui, metrics):
    """Fixture to create CommandHandler with a mocked calculator and UI."""
    return CommandHandler(
        calculator=mock_calculator,
        metrics=metrics,
        settings=LoyaltySettings(),
        ui=mock_ui,
    )

async def test_handle_quote_success(command_handler, mock_calculator, mock_ui, metrics):
    exit_code = await command_handler.handle_quote("1000.00", "EUR", "ECONOMY", "GOLD", None)

    assert exit_code == EXIT_OK
    mock_calculator.calculate.assert_awaited_once_with(QuoteRequest(
        fare_amount=Decimal("1000.00"), currency="EUR", cabin_class="ECONOMY",
        customer_tier="GOLD", promo_code=None,
    ))
    mock_ui.display_quote.assert_called_once_with(QUOTE, as_json=False)
    mock_ui.display_error.assert_not_called()
    assert metrics.value("points_quote_requests_total") == 1
    assert metrics.value("points_quote_errors_total") == 0
    assert metrics.value("points_quote_duration_seconds_count") == 1

async def test_handle_quote_passes_json_flag(command_handler, mock_ui):
    await command_handler.handle_quote("10", "USD", "FIRST", "NONE", "SUMMER25", as_json=True)

    mock_ui.display_quote.assert_called_once_with(QUOTE, as_json=True)

@pytest.mark.parametrize("error, code, exit_code", [
    (ValidationError("Invalid currency code"), "VALIDATION_ERROR", EXIT_VALIDATION_ERROR),
    (QuoteTimeoutError(10.0), "TIMEOUT_ERROR", EXIT_TIMEOUT),
    (ExternalServiceError("fx-service call failed after 4 attempt(s)", attempts=4), "SERVICE_UNAVAILABLE", EXIT_SERVICE_UNAVAILABLE),
    (CircuitOpenError("fx-service"), "SERVICE_UNAVAILABLE", EXIT_SERVICE_UNAVAILABLE),
    (RuntimeError("unexpected"), "INTERNAL_ERROR", EXIT_INTERNAL_ERROR),
])
async def test_handle_quote_maps_errors(command_handler, mock_calculator, mock_ui, metrics, error, code, exit_code):
    mock_calculator.calculate.side_effect = error

    result = await command_handler.handle_quote("1000.00", "EUR", "ECONOMY", "GOLD")

    assert result == exit_code
    mock_ui.display_quote.assert_not_called()
    mock_ui.display_error.assert_called_once()
    assert mock_ui.display_error.call_args.kwargs["code"] == code
    assert metrics.value("points_quote_requests_total") == 1
    assert metrics.value("points_quote_errors_total") == 1
    assert metrics.value("points_quote_duration_seconds_count") == 1

async def test_internal_error_hides_details(command_handler, mock_calculator, mock_ui):
    mock_calculator.calculate.side_effect = KeyError("secret")

    await command_handler.handle_quote("1000.00", "EUR", "ECONOMY", "GOLD")

    message = mock_ui.display_error.call_args.args[0]
    assert "secret" not in message

async def test_unparsable_fare_reaches_validation_as_missing(command_handler, mock_calculator):
    mock_calculator.calculate.side_effect = ValidationError("Fare amount must be greater than zero")

    result = await command_handler.handle_quote("twelve", "USD", "ECONOMY", "NONE")

    assert result == EXIT_VALIDATION_ERROR
    sent_request = mock_calculator.calculate.call_args.args[0]
    assert sent_request.fare_amount is None

@pytest.mark.parametrize("raw, expected", [
    ("1234.50", Decimal("1234.50")),
    (" 10 ", Decimal("10")),
    ("abc", None),
    ("", None),
    (None, None),
])
def test_parse_fare(raw, expected):
    assert parse_fare(raw) == expected

def test_handle_show_config(command_handler, mock_ui):
    assert command_handler.handle_show_config() == EXIT_OK

    settings = mock_ui.display_settings.call_args.args[0]
    assert settings["base_currency"] == "USD"
    assert settings["max_points"] == 50000
    assert settings["tier_multipliers"]["GOLD"] == 0.30
    assert settings["fx_service"]["retries"] == 3

async def test_handle_metrics_renders_exposition(command_handler, mock_ui):
    await command_handler.handle_quote("1000.00", "EUR", "ECONOMY", "GOLD")

    assert command_handler.handle_metrics() == EXIT_OK
    output = mock_ui.display_output.call_args.args[0]
    assert "points_quote_requests_total 1.0" in output

def test_handle_metrics_when_disabled(mock_calculator, mock_ui):
    handler = CommandHandler(mock_calculator, NullMetricsSink(), LoyaltySettings(), mock_ui)

    assert handler.handle_metrics() == EXIT_INTERNAL_ERROR
    mock_ui.display_error.assert_called_once_with("Metrics are disabled.")
