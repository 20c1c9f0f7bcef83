"""Interface for the metrics sink.

Counters and timings recorded here are for observability only; nothing in
the quote pipeline reads them back.
"""

import abc


class MetricsSink(abc.ABC):
    """Abstract Base Class for recording quote and dependency metrics."""

    @abc.abstractmethod
    def increment_requests(self) -> None:
        """Counts one quote request received at the boundary."""
        pass

    @abc.abstractmethod
    def increment_errors(self) -> None:
        """Counts one quote request that ended in an error."""
        pass

    @abc.abstractmethod
    def increment_retries(self, dependency: str) -> None:
        """Counts one retry scheduled against a dependency."""
        pass

    @abc.abstractmethod
    def increment_failures(self, dependency: str) -> None:
        """Counts one logical call that ultimately failed (or was short-circuited)."""
        pass

    @abc.abstractmethod
    def observe_duration(self, seconds: float) -> None:
        """Records the wall-clock duration of one quote request."""
        pass


class NullMetricsSink(MetricsSink):
    """Sink that discards everything. Used when metrics are disabled."""

    def increment_requests(self) -> None:
        pass

    def increment_errors(self) -> None:
        pass

    def increment_retries(self, dependency: str) -> None:
        pass

    def increment_failures(self, dependency: str) -> None:
        pass

    def observe_duration(self, seconds: float) -> None:
        pass
