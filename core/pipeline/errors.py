"""
Exceptions raised by the thesis research pipeline.
"""


class PipelineError(Exception):
    """Base class for pipeline failures."""
    pass


class DiscoveryError(PipelineError):
    """Raised when the discovery agent call fails. Fatal to the run."""
    pass


class ResearchError(PipelineError):
    """Raised when no research provider produced a report."""
    pass


class ResearchTimeoutError(ResearchError):
    """Raised when the primary research provider exceeds its wait limit."""

    def __init__(self, interaction_id: str, waited_seconds: float):
        self.interaction_id = interaction_id
        self.waited_seconds = waited_seconds
        super().__init__(
            f"Research {interaction_id} still running after {waited_seconds:.0f}s"
        )


class AgentUnavailableError(PipelineError):
    """Raised when an agent cannot be built (missing key or provider)."""

    def __init__(self, role: str, reason: str):
        self.role = role
        self.reason = reason
        super().__init__(f"{role} unavailable: {reason}")


class PersistenceError(PipelineError):
    """Raised when the session store rejects a write. Fatal to the run."""
    pass


class MarketDataError(PipelineError):
    """Raised by market data providers when a lookup fails for a ticker."""

    def __init__(self, ticker: str, reason: str):
        self.ticker = ticker
        self.reason = reason
        super().__init__(f"{ticker} lookup failed: {reason}")
