"""
Centralized constants for the thesis research pipeline.
All parsing limits and excerpt lengths live here.
Override via environment variables for testing.

Usage:
    from core.config.constants import CONSTANTS

    text = bull_case[:CONSTANTS.debate.BULL_EXCERPT_CHARS]

For tests: set env vars BEFORE importing, or mock this module.
"""
import os
from dataclasses import dataclass, field


def _env_float(key: str, default: float) -> float:
    """Read float from environment, fall back to default."""
    val = os.environ.get(key)
    if val is None:
        return default
    try:
        return float(val)
    except ValueError:
        return default


def _env_int(key: str, default: int) -> int:
    """Read int from environment, fall back to default."""
    val = os.environ.get(key)
    if val is None:
        return default
    try:
        return int(val)
    except ValueError:
        return default


@dataclass(frozen=True)
class ExtractionConstants:
    """Discovery text extraction limits."""
    # Maximum drafts pulled out of one discovery response
    MAX_DRAFTS: int = _env_int("EXTRACT_MAX_DRAFTS", 5)
    # Score assigned when the alignment field is missing or malformed
    DEFAULT_SCORE: int = _env_int("EXTRACT_DEFAULT_SCORE", 50)
    # Characters scanned after a header when no --- separator follows
    SECTION_WINDOW_CHARS: int = _env_int("EXTRACT_SECTION_WINDOW", 500)


@dataclass(frozen=True)
class DiscoveryConstants:
    """Discovery stage defaults."""
    MAX_OPPORTUNITIES: int = _env_int("DISCOVERY_MAX_OPPORTUNITIES", 3)


@dataclass(frozen=True)
class VerdictConstants:
    """Verdict parser defaults."""
    DEFAULT_CONFIDENCE: int = _env_int("VERDICT_DEFAULT_CONFIDENCE", 50)
    # Rationale falls back to this many leading characters
    RATIONALE_FALLBACK_CHARS: int = _env_int("VERDICT_RATIONALE_CHARS", 500)
    # Number of INVEST names listed in the run summary
    TOP_OPPORTUNITIES: int = _env_int("VERDICT_TOP_OPPORTUNITIES", 3)


@dataclass(frozen=True)
class DebateConstants:
    """Debate round excerpt lengths (characters)."""
    BULL_EXCERPT_CHARS: int = _env_int("DEBATE_BULL_EXCERPT", 2000)
    ROUND2_EXCERPT_CHARS: int = _env_int("DEBATE_ROUND2_EXCERPT", 1500)
    SYNTHESIS_EXCERPT_CHARS: int = _env_int("DEBATE_SYNTHESIS_EXCERPT", 1000)
    RESEARCH_EXCERPT_CHARS: int = _env_int("DEBATE_RESEARCH_EXCERPT", 1000)
    # A debate needs at least this many of bull / skeptic / risk officer
    MIN_PARTICIPANTS: int = _env_int("DEBATE_MIN_PARTICIPANTS", 2)


@dataclass(frozen=True)
class ResearchConstants:
    """Deep research polling."""
    POLL_INTERVAL_SECONDS: float = _env_float("RESEARCH_POLL_INTERVAL", 10.0)
    MAX_WAIT_SECONDS: float = _env_float("RESEARCH_MAX_WAIT", 600.0)
    REQUEST_TIMEOUT_SECONDS: float = _env_float("RESEARCH_REQUEST_TIMEOUT", 30.0)


@dataclass(frozen=True)
class PipelineConstants:
    """Runner scheduling."""
    # Opportunities analyzed concurrently per batch
    BATCH_SIZE: int = _env_int("PIPELINE_BATCH_SIZE", 3)


@dataclass(frozen=True)
class Constants:
    """All pipeline constants."""
    extraction: ExtractionConstants = field(default_factory=ExtractionConstants)
    discovery: DiscoveryConstants = field(default_factory=DiscoveryConstants)
    verdict: VerdictConstants = field(default_factory=VerdictConstants)
    debate: DebateConstants = field(default_factory=DebateConstants)
    research: ResearchConstants = field(default_factory=ResearchConstants)
    pipeline: PipelineConstants = field(default_factory=PipelineConstants)


CONSTANTS = Constants()
