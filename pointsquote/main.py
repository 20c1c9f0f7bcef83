"""Main entry point for the pointsquote application.

Sets up the Typer CLI application, performs dependency injection (Composition Root),
defines CLI commands, and delegates execution to the CommandHandler.
"""

import asyncio
import logging
import sys
from typing import Any, Coroutine, Dict, Optional

import typer
from typing_extensions import Annotated

logger = logging.getLogger(__name__)

# --- Core Layer ---
from pointsquote.core.command_handler import CommandHandler
from pointsquote.core.services.points_calculator import PointsCalculator

# --- Infrastructure Layer ---
# Config
from pointsquote.infrastructure.config.settings import get_config, load_configuration, load_settings
# UI
from pointsquote.infrastructure.cli.display import ConsoleDisplay
# Gateways
from pointsquote.infrastructure.gateways.exchange_rate_gateway import FX_SERVICE_NAME, ExchangeRateGateway
from pointsquote.infrastructure.gateways.promotion_gateway import PromotionGateway
# HTTP adapters
from pointsquote.infrastructure.http.fx_client import HttpExchangeRateLookup
from pointsquote.infrastructure.http.promo_client import HttpPromotionLookup
# Resilience
from pointsquote.infrastructure.resilience.circuit_breaker import CircuitBreaker
from pointsquote.infrastructure.resilience.resilient_invoker import FailurePolicy, ResilientInvoker
# Monitoring
from pointsquote.infrastructure.monitoring.logger_setup import DEFAULT_LOG_FORMAT, setup_logging
from pointsquote.infrastructure.monitoring.metrics import PrometheusMetricsSink

# --- Dependency Injection Container (Manual) ---

def create_dependencies() -> Dict[str, Any]:
    """Creates and wires up all dependencies for the application.

    This acts as the Composition Root.
    """
    dependencies: Dict[str, Any] = {}
    try:
        # 1. Load Configuration First, then configure logging from it
        load_configuration()
        setup_logging(
            log_level=get_config('logging.level', 'INFO'),
            log_format=get_config('logging.format', DEFAULT_LOG_FORMAT),
            log_file=get_config('logging.file'),
        )
        logger.info("Initializing application dependencies...")
        settings = load_settings()
        dependencies['settings'] = settings

        # 2. Instantiate Infrastructure Adapters & Services
        dependencies['ui'] = ConsoleDisplay()
        dependencies['metrics'] = PrometheusMetricsSink()
        fx = settings.fx_service
        promo = settings.promo_service
        dependencies['fx_lookup'] = HttpExchangeRateLookup(fx.base_url, fx.path, fx.timeout_s)
        dependencies['promo_lookup'] = HttpPromotionLookup(promo.base_url, promo.path, promo.timeout_s)

        # 3. Instantiate Resilience Services
        dependencies['fx_breaker'] = CircuitBreaker(
            name=FX_SERVICE_NAME,
            failure_threshold=fx.failure_threshold,
            reset_timeout=fx.reset_timeout_s,
        )
        fx_invoker = ResilientInvoker(
            name=FX_SERVICE_NAME,
            max_retries=fx.retries,
            initial_backoff_s=fx.initial_backoff_s,
            per_call_timeout_s=fx.timeout_s,
            circuit_breaker=dependencies['fx_breaker'],
            failure_policy=FailurePolicy.PROPAGATE,
            metrics=dependencies['metrics'],
        )

        # 4. Instantiate Gateways and Core Services (injecting dependencies)
        exchange_rate_gateway = ExchangeRateGateway(dependencies['fx_lookup'], fx_invoker)
        promotion_gateway = PromotionGateway.fail_open(
            dependencies['promo_lookup'], per_call_timeout_s=promo.timeout_s, metrics=dependencies['metrics']
        )
        dependencies['calculator'] = PointsCalculator.from_settings(settings, exchange_rate_gateway, promotion_gateway)
        logger.info("Core services initialized.")

        # 5. Instantiate Command Handler
        dependencies['command_handler'] = CommandHandler(
            calculator=dependencies['calculator'],
            metrics=dependencies['metrics'],
            settings=settings,
            ui=dependencies['ui'],
        )
        logger.info("All dependencies initialized successfully.")
        return dependencies

    except Exception as e:
        logger.error(f"Fatal Error during application initialization: {e}", exc_info=True)
        if dependencies.get('ui'):
            dependencies['ui'].display_error(f"Application Initialization Failed: {e}")
        else:
            print(f"FATAL ERROR during initialization: {e}", file=sys.stderr)
        sys.exit(1)

# --- Get Wired-up Dependencies ---
# Built on first use so that --help never touches configuration.
_dependencies: Optional[Dict[str, Any]] = None

def get_dependencies() -> Dict[str, Any]:
    global _dependencies
    if _dependencies is None:
        _dependencies = create_dependencies()
    return _dependencies

async def close_http_clients(dependencies: Dict[str, Any]) -> None:
    """Closes the HTTP clients opened during a command."""
    for name in ('fx_lookup', 'promo_lookup'):
        lookup = dependencies.get(name)
        if lookup is not None:
            await lookup.aclose()

# --- Typer App Definition ---
app = typer.Typer(
    name="pointsquote",
    help="pointsquote: price airline fares in loyalty points with tier and promotion bonuses.",
    add_completion=False,
)

# --- Helper for Running Async Commands ---
def run_async(coro: Coroutine[Any, Any, int]) -> int:
    """Runs an async command from a sync Typer command and returns its exit code."""
    try:
        return asyncio.run(coro)
    except Exception as e:
        logger.error(f"Error executing async command: {e}", exc_info=True)
        get_dependencies()['ui'].display_error(f"Command execution failed: {e}")
        return 1

# --- CLI Commands ---

@app.command()
def quote(
    fare: Annotated[Optional[str], typer.Option("--fare", "-f", help="Fare amount, e.g. 1234.50.")] = None,
    currency: Annotated[Optional[str], typer.Option("--currency", "-c", help="ISO 4217 currency of the fare, e.g. EUR.")] = None,
    cabin: Annotated[Optional[str], typer.Option("--cabin", help="ECONOMY, BUSINESS or FIRST.")] = None,
    tier: Annotated[Optional[str], typer.Option("--tier", "-t", help="NONE, SILVER, GOLD or PLATINUM.")] = None,
    promo: Annotated[Optional[str], typer.Option("--promo", "-p", help="Optional promotion code.")] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print the quote as JSON.")] = False,
):
    """Quote the loyalty points earned for a fare."""
    dependencies = get_dependencies()
    handler: CommandHandler = dependencies['command_handler']

    async def _quote() -> int:
        try:
            return await handler.handle_quote(fare, currency, cabin, tier, promo, as_json=as_json)
        finally:
            await close_http_clients(dependencies)

    exit_code = run_async(_quote())
    if exit_code:
        raise typer.Exit(code=exit_code)

@app.command(name="show-config")
def show_config_command():
    """Show the effective configuration."""
    handler: CommandHandler = get_dependencies()['command_handler']
    handler.handle_show_config()

@app.command(name="metrics")
def metrics_command():
    """Print the Prometheus metrics recorded by this process."""
    handler: CommandHandler = get_dependencies()['command_handler']
    exit_code = handler.handle_metrics()
    if exit_code:
        raise typer.Exit(code=exit_code)

# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()

if __name__ == "__main__":
    cli_entry_point()
