"""
Data model for thesis research runs.

A run starts from an immutable Thesis, discovers Opportunities, analyzes each
one into an AnalyzedOpportunity (research, strategy analysis, critiques,
debate, verdict) and is finalized into an immutable PipelineRun.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, Tuple, TypeVar

from core.pipeline.events import PhaseEvent, utc_now

T = TypeVar("T")

NOT_AVAILABLE = "Not available"


class Strategy(str, Enum):
    """Investing philosophy tag selecting which analyst applies."""
    VALUE = "value"
    SPECIAL_SITUATIONS = "special-situations"
    DISTRESSED = "distressed"
    GENERAL = "general"

    @classmethod
    def parse(cls, raw: Any) -> "Strategy":
        """Normalise loose strategy input ("special_sits", "Value") to a tag."""
        if isinstance(raw, cls):
            return raw
        key = str(raw or "").strip().lower().replace("_", "-").replace(" ", "-")
        if "value" in key:
            return cls.VALUE
        if "special" in key or "sits" in key:
            return cls.SPECIAL_SITUATIONS
        if "distress" in key:
            return cls.DISTRESSED
        return cls.GENERAL


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Decision(str, Enum):
    INVEST = "invest"
    PASS = "pass"
    WATCH = "watch"


class CritiqueRole(str, Enum):
    SKEPTIC = "skeptic"
    RISK_OFFICER = "risk_officer"


class StageStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class Thesis:
    """The user's hypothesis plus a strategy tag. Never mutated."""
    text: str
    strategy: Strategy = Strategy.GENERAL
    title: Optional[str] = None

    def __post_init__(self):
        if not self.text or not self.text.strip():
            raise ValueError("Thesis text must not be empty")
        object.__setattr__(self, "strategy", Strategy.parse(self.strategy))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "strategy": self.strategy.value,
            "title": self.title,
        }


@dataclass(frozen=True)
class Opportunity:
    """
    A discovered candidate.

    Only ``metrics`` and ``score`` may change after discovery, and only by
    building a new value through ``with_metrics`` / ``with_score``.
    """
    ticker: str
    company_name: str
    thesis: str
    score: int = 50
    risk_level: RiskLevel = RiskLevel.MEDIUM
    strategy: Strategy = Strategy.GENERAL
    metrics: Dict[str, float] = field(default_factory=dict)

    def with_metrics(self, updates: Dict[str, float]) -> "Opportunity":
        """Return a copy with ``updates`` merged over the existing metrics."""
        merged = dict(self.metrics)
        merged.update({k: v for k, v in updates.items() if v is not None})
        return replace(self, metrics=merged)

    def with_score(self, score: int) -> "Opportunity":
        return replace(self, score=max(0, min(100, int(score))))

    @property
    def label(self) -> str:
        return f"{self.ticker} ({self.company_name})"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ticker": self.ticker,
            "company_name": self.company_name,
            "thesis": self.thesis,
            "score": self.score,
            "risk_level": self.risk_level.value,
            "strategy": self.strategy.value,
            "metrics": dict(self.metrics),
        }


@dataclass(frozen=True)
class ResearchStep:
    """One progress step reported while deep research runs."""
    kind: str  # "thinking", "progress", "analyzing", "complete"
    content: str
    interaction_id: Optional[str] = None
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class ResearchReport:
    """Long-form research text. Written once, read by every later stage."""
    content: str
    provider: str
    interaction_id: Optional[str] = None
    steps: Tuple[ResearchStep, ...] = ()
    generated_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content": self.content,
            "provider": self.provider,
            "interaction_id": self.interaction_id,
            "steps": [s.to_dict() for s in self.steps],
            "generated_at": self.generated_at.isoformat(),
        }


@dataclass(frozen=True)
class StrategyAnalysis:
    strategy: Strategy
    analyst: str
    content: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategy": self.strategy.value,
            "analyst": self.analyst,
            "content": self.content,
        }


@dataclass(frozen=True)
class Critique:
    role: CritiqueRole
    content: str
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class DebateEntry:
    agent: str
    content: str


@dataclass(frozen=True)
class DebateRound:
    round_number: int
    entries: Tuple[DebateEntry, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "round": self.round_number,
            "messages": [
                {"agent": e.agent, "content": e.content} for e in self.entries
            ],
        }


@dataclass(frozen=True)
class Verdict:
    decision: Decision
    confidence: int
    rationale: str

    @property
    def score(self) -> int:
        """Signed score: +confidence for invest, -confidence for pass."""
        if self.decision == Decision.INVEST:
            return self.confidence
        if self.decision == Decision.PASS:
            return -self.confidence
        return 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "decision": self.decision.value,
            "confidence": self.confidence,
            "rationale": self.rationale,
        }


@dataclass(frozen=True)
class StageResult(Generic[T]):
    """
    Outcome of one pipeline stage.

    Keeps "missing because it failed" apart from "missing because it
    does not apply".
    """
    status: StageStatus
    value: Optional[T] = None
    reason: Optional[str] = None

    @classmethod
    def succeeded(cls, value: T) -> "StageResult[T]":
        return cls(StageStatus.SUCCEEDED, value=value)

    @classmethod
    def failed(cls, reason: str) -> "StageResult[T]":
        return cls(StageStatus.FAILED, reason=reason)

    @classmethod
    def skipped(cls, reason: str) -> "StageResult[T]":
        return cls(StageStatus.SKIPPED, reason=reason)

    @property
    def ok(self) -> bool:
        return self.status == StageStatus.SUCCEEDED

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"status": self.status.value}
        if self.reason:
            d["reason"] = self.reason
        return d


@dataclass
class AnalyzedOpportunity:
    """
    An Opportunity and everything the analysis stages produced for it.

    Fields are filled in stage order and never cleared; a later failure
    only appends to ``errors``.
    """
    opportunity: Opportunity
    research: Optional[ResearchReport] = None
    strategy_analysis: Optional[StrategyAnalysis] = None
    bull_case: Optional[str] = None
    critiques: List[Critique] = field(default_factory=list)
    debate_rounds: List[DebateRound] = field(default_factory=list)
    verdict: Optional[Verdict] = None
    stages: Dict[str, StageResult] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)

    @property
    def ticker(self) -> str:
        return self.opportunity.ticker

    @property
    def score(self) -> Optional[int]:
        return self.verdict.score if self.verdict is not None else None

    def record(self, stage: str, result: StageResult) -> StageResult:
        """Store a stage outcome, appending its reason to errors on failure."""
        self.stages[stage] = result
        if result.status == StageStatus.FAILED:
            self.errors.append(f"{stage}: {result.reason}")
        return result

    def add_error(self, stage: str, reason: str) -> None:
        self.errors.append(f"{stage}: {reason}")

    def set_verdict(self, verdict: Verdict) -> None:
        if self.research is None:
            raise ValueError(f"{self.ticker}: verdict requires a research report")
        self.verdict = verdict

    def critique(self, role: CritiqueRole) -> Optional[Critique]:
        for c in self.critiques:
            if c.role == role:
                return c
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "opportunity": self.opportunity.to_dict(),
            "research": self.research.to_dict() if self.research else None,
            "strategy_analysis": (
                self.strategy_analysis.to_dict() if self.strategy_analysis else None
            ),
            "bull_case": self.bull_case,
            "critiques": [c.to_dict() for c in self.critiques],
            "debate_rounds": [r.to_dict() for r in self.debate_rounds],
            "verdict": self.verdict.to_dict() if self.verdict else None,
            "score": self.score,
            "stages": {name: r.to_dict() for name, r in self.stages.items()},
            "errors": list(self.errors),
        }


@dataclass(frozen=True)
class RunSummary:
    total_discovered: int
    total_analyzed: int
    invest_count: int
    pass_count: int
    watch_count: int
    top_pick: Optional[str]
    top_opportunities: Tuple[str, ...]
    duration_seconds: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_discovered": self.total_discovered,
            "total_analyzed": self.total_analyzed,
            "invest_count": self.invest_count,
            "pass_count": self.pass_count,
            "watch_count": self.watch_count,
            "top_pick": self.top_pick,
            "top_opportunities": list(self.top_opportunities),
            "duration_seconds": round(self.duration_seconds, 3),
        }


@dataclass(frozen=True)
class PipelineRun:
    """A finished run. Built once from the runner's buffers."""
    session_id: str
    thesis: Thesis
    opportunities: Tuple[Opportunity, ...]
    analyzed: Tuple[AnalyzedOpportunity, ...]  # ranked
    final_verdict: Verdict
    summary: RunSummary
    events: Tuple[PhaseEvent, ...]
    started_at: datetime
    completed_at: datetime

    @property
    def top_pick(self) -> Optional[AnalyzedOpportunity]:
        if self.analyzed and self.analyzed[0].score is not None:
            return self.analyzed[0]
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "thesis": self.thesis.to_dict(),
            "opportunities": [o.to_dict() for o in self.opportunities],
            "analyzed": [a.to_dict() for a in self.analyzed],
            "final_verdict": self.final_verdict.to_dict(),
            "summary": self.summary.to_dict(),
            "events": [e.to_dict() for e in self.events],
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat(),
        }
