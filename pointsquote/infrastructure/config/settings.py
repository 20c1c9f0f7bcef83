"""Provides functions for loading and accessing configuration settings.

Supports loading from a YAML configuration file (e.g. ~/.pointsquote/config.yaml),
.env files and environment variables, and builds the typed LoyaltySettings
used by the composition root.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import load_dotenv

from pointsquote.domain.interfaces.config import ConfigurationProvider
from pointsquote.domain.models.loyalty import CustomerTier, DEFAULT_TIER_MULTIPLIERS

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".pointsquote"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
CONFIG_FILE_ENV_VAR = "POINTSQUOTE_CONFIG"
ENV_PREFIX = "POINTSQUOTE_"
ENV_FILE_NAME = ".env"

# --- Global Configuration Store ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}
_loaded = False

def load_configuration(config_file: Optional[Path] = None, env_file: Optional[Path] = None) -> None:
    """Loads configuration from environment, .env file, and YAML file.

    Priority order (highest to lowest):
    1. Test overrides (set_config_for_testing)
    2. Environment Variables (POINTSQUOTE_<KEY>)
    3. .env file
    4. YAML configuration file
    5. Default values in load_settings

    Args:
        config_file: Path to the YAML configuration file. Defaults to
            $POINTSQUOTE_CONFIG or ~/.pointsquote/config.yaml.
        env_file: Path to the .env file (searches upwards from cwd if None).
    """
    global _config, _loaded
    if _loaded:
        logger.debug("Configuration already loaded.")
        return

    _config = {}
    config_file = config_file or Path(os.environ.get(CONFIG_FILE_ENV_VAR, DEFAULT_CONFIG_FILE))

    # 1. Load from YAML file (Lowest priority)
    if config_file.exists():
        try:
            with open(config_file, 'r') as f:
                yaml_config = yaml.safe_load(f)
            if isinstance(yaml_config, dict):
                _config.update(flatten_config(yaml_config))
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a mapping.")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    # 2. Load from .env file (Medium priority)
    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        # override=False: real environment variables take precedence
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug("No .env file found at or above the current directory.")

    # 3. Environment Variables (Highest priority) are handled by get_config

    _loaded = True
    logger.debug("Configuration loading process completed.")

def flatten_config(tree: Mapping[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Flattens nested YAML mappings into dotted keys ({'a': {'b': 1}} -> {'a.b': 1})."""
    flat: Dict[str, Any] = {}
    for key, value in tree.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, Mapping):
            flat.update(flatten_config(value, prefix=f"{dotted}."))
        else:
            flat[dotted] = value
    return flat

def env_var_name(key: str) -> str:
    """Environment variable consulted for a dotted key ('fx_service.retries' -> 'POINTSQUOTE_FX_SERVICE_RETRIES')."""
    return ENV_PREFIX + key.upper().replace('.', '_')

def get_config(key: str, default: Any = None) -> Any:
    """
    Get a configuration value by dotted key.

    Priority:
    1. Test configuration (if in testing mode)
    2. Environment variable
    3. YAML config
    4. Default value

    Args:
        key: The configuration key
        default: Default value if the key is not found

    Returns:
        The configuration value
    """
    if key in _test_config:
        return _test_config[key]

    env_key = env_var_name(key)
    if env_key in os.environ:
        return _coerce(os.environ[env_key])

    if key in _config:
        return _config[key]

    return default

def set_config(key: str, value: Any) -> None:
    """Sets a configuration value in memory for the rest of the process."""
    _config[key] = value
    logger.debug(f"Config set: {key}={value}")

def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None

def _coerce(value: str) -> Any:
    """Converts common string forms from the environment to bool/int/float."""
    if value.lower() == 'true':
        return True
    if value.lower() == 'false':
        return False
    try:
        return float(value) if '.' in value else int(value)
    except ValueError:
        return value

def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """
    Set configuration values for testing purposes.
    These values will override any existing configuration.

    Args:
        config_dict: Dictionary of configuration values to set
    """
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {config_dict}")

def clear_test_config() -> None:
    """Clear all testing configuration values and forget loaded files."""
    global _loaded
    _test_config.clear()
    _config.clear()
    _loaded = False
    logger.debug("Cleared testing configuration")


class EnvConfigurationProvider(ConfigurationProvider):
    """ConfigurationProvider backed by the module-level layered store above."""

    def __init__(self, config_file: Optional[Path] = None, env_file: Optional[Path] = None):
        self.config_file = config_file
        self.env_file = env_file

    def get(self, key: str, default: Optional[Any] = None) -> Optional[Any]:
        return get_config(key, default)

    def load_config(self) -> None:
        load_configuration(config_file=self.config_file, env_file=self.env_file)


# --- Typed Settings ---

@dataclass(frozen=True)
class FxServiceSettings:
    """Endpoint and resilience policy of the FX service."""
    base_url: str = "http://localhost:8081"
    path: str = "/v1/fx/rate"
    timeout_s: float = 3.0
    retries: int = 3
    initial_backoff_s: float = 0.1
    failure_threshold: int = 5
    reset_timeout_s: float = 10.0

@dataclass(frozen=True)
class PromoServiceSettings:
    """Endpoint of the promotion service (no retries, no breaker)."""
    base_url: str = "http://localhost:8082"
    path: str = "/v1/promos"
    timeout_s: float = 2.0

@dataclass(frozen=True)
class LoyaltySettings:
    """Business rules and service endpoints for points quoting."""
    base_currency: str = "USD"
    max_points: int = 50000
    expiry_warning_days: int = 7
    request_timeout_s: float = 10.0
    tier_multipliers: Dict[CustomerTier, float] = field(default_factory=lambda: dict(DEFAULT_TIER_MULTIPLIERS))
    fx_service: FxServiceSettings = field(default_factory=FxServiceSettings)
    promo_service: PromoServiceSettings = field(default_factory=PromoServiceSettings)

    def __post_init__(self):
        if len(self.base_currency) != 3:
            raise ValueError(f"currency.base must be a 3-letter code, got {self.base_currency!r}")
        if self.max_points <= 0:
            raise ValueError("business.max_points must be > 0")
        if self.expiry_warning_days < 0:
            raise ValueError("business.expiry_warning_days must be >= 0")
        if self.request_timeout_s <= 0:
            raise ValueError("business.request_timeout_ms must be > 0")
        if self.tier_multipliers.get(CustomerTier.NONE, 0.0) != 0.0:
            raise ValueError("The NONE tier multiplier is fixed at 0")
        for tier, multiplier in self.tier_multipliers.items():
            if multiplier < 0:
                raise ValueError(f"tiers.{tier.name.lower()} must be >= 0")
        if self.fx_service.retries < 0:
            raise ValueError("fx_service.retries must be >= 0")
        if self.fx_service.failure_threshold < 1:
            raise ValueError("fx_service.failure_threshold must be >= 1")


def _millis(provider: ConfigurationProvider, key: str, default_s: float) -> float:
    return provider.get_float(key, default_s * 1000) / 1000.0

def load_settings(provider: Optional[ConfigurationProvider] = None) -> LoyaltySettings:
    """Builds LoyaltySettings from configuration, applying defaults.

    Raises:
        ValueError: If a configured value is out of range.
    """
    provider = provider or EnvConfigurationProvider()
    provider.load_config()

    fx_defaults = FxServiceSettings()
    promo_defaults = PromoServiceSettings()
    defaults = LoyaltySettings()

    tier_multipliers = {CustomerTier.NONE: 0.0}
    for tier in (CustomerTier.SILVER, CustomerTier.GOLD, CustomerTier.PLATINUM):
        tier_multipliers[tier] = provider.get_float(f"tiers.{tier.name.lower()}", DEFAULT_TIER_MULTIPLIERS[tier])

    settings = LoyaltySettings(
        base_currency=provider.get_str("currency.base", defaults.base_currency),
        max_points=provider.get_int("business.max_points", defaults.max_points),
        expiry_warning_days=provider.get_int("business.expiry_warning_days", defaults.expiry_warning_days),
        request_timeout_s=_millis(provider, "business.request_timeout_ms", defaults.request_timeout_s),
        tier_multipliers=tier_multipliers,
        fx_service=FxServiceSettings(
            base_url=provider.get_str("fx_service.base_url", fx_defaults.base_url),
            path=provider.get_str("fx_service.path", fx_defaults.path),
            timeout_s=_millis(provider, "fx_service.timeout_ms", fx_defaults.timeout_s),
            retries=provider.get_int("fx_service.retries", fx_defaults.retries),
            initial_backoff_s=_millis(provider, "fx_service.initial_backoff_ms", fx_defaults.initial_backoff_s),
            failure_threshold=provider.get_int("fx_service.failure_threshold", fx_defaults.failure_threshold),
            reset_timeout_s=_millis(provider, "fx_service.reset_timeout_ms", fx_defaults.reset_timeout_s),
        ),
        promo_service=PromoServiceSettings(
            base_url=provider.get_str("promo_service.base_url", promo_defaults.base_url),
            path=provider.get_str("promo_service.path", promo_defaults.path),
            timeout_s=_millis(provider, "promo_service.timeout_ms", promo_defaults.timeout_s),
        ),
    )
    logger.debug(f"Loaded settings: {settings}")
    return settings
