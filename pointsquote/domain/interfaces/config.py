"""Interface for configuration providers.

Defines the contract for retrieving configuration settings
(e.g., service endpoints, business caps, retry policy) from various sources.
Typed accessors convert raw values and report the offending key on failure.
"""

import abc
from typing import Any, Optional


class ConfigurationProvider(abc.ABC):
    """Abstract Base Class for retrieving configuration values."""

    @abc.abstractmethod
    def get(self, key: str, default: Optional[Any] = None) -> Optional[Any]:
        """Gets a configuration value by key.

        Args:
            key: The dotted configuration key (e.g., 'fx_service.retries').
            default: The default value to return if the key is not found.

        Returns:
            The configuration value, or the default if not found.
        """
        pass

    @abc.abstractmethod
    def load_config(self) -> None:
        """Loads or reloads the configuration from its source(s)."""
        pass

    def get_str(self, key: str, default: str) -> str:
        return str(self.get(key, default))

    def get_int(self, key: str, default: int) -> int:
        """Gets an integer value.

        Raises:
            ValueError: If the configured value is not an integer.
        """
        value = self.get(key, default)
        if isinstance(value, bool):
            raise ValueError(f"{key} must be an integer, got {value!r}")
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValueError(f"{key} must be an integer, got {value!r}")

    def get_float(self, key: str, default: float) -> float:
        """Gets a numeric value as float.

        Raises:
            ValueError: If the configured value is not a number.
        """
        value = self.get(key, default)
        if isinstance(value, bool):
            raise ValueError(f"{key} must be a number, got {value!r}")
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ValueError(f"{key} must be a number, got {value!r}")
