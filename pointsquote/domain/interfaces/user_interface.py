"""Interface for interacting with the user (output only).

Defines the contract for displaying quotes, information, warnings and
errors, allowing different UI implementations (e.g., console, JSON).
"""

import abc
from typing import Any, Dict

# Import relevant domain models
from pointsquote.domain.models.loyalty import PointsQuote

class UserInterface(abc.ABC):
    """Abstract Base Class for user interaction."""

    @abc.abstractmethod
    def display_quote(self, quote: PointsQuote, **kwargs: Any) -> None:
        """Displays a priced quote to the user.

        Args:
            quote: The PointsQuote to render.
            **kwargs: Additional arguments for formatting (e.g., as_json=True).
        """
        pass

    @abc.abstractmethod
    def display_output(self, output: str, **kwargs: Any) -> None:
        """Displays plain output to the user.

        Args:
            output: The text to display.
            **kwargs: Additional arguments for formatting.
        """
        pass

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message to the user.

        Args:
            error_message: The error message string.
            **kwargs: Additional arguments for formatting (e.g., code='VALIDATION_ERROR').
        """
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message to the user.

        Args:
            warning_message: The warning message string.
            **kwargs: Additional arguments for formatting.
        """
        pass

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message to the user.

        Args:
            info_message: The informational message string.
            **kwargs: Additional arguments for formatting.
        """
        pass

    @abc.abstractmethod
    def display_settings(self, settings: Dict[str, Any]) -> None:
        """Displays the effective configuration as key/value pairs."""
        pass
