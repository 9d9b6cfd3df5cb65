"""
Verdict parsing, ranking and run-level aggregation.

The verdict agent is asked to open its answer with::

    ## Decision
    🎯 **INVEST** with **72%** conviction

Anything that does not match falls back to WATCH at the default
confidence. Parsing never raises.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from core.config.constants import CONSTANTS
from core.pipeline.models import AnalyzedOpportunity, Decision, RunSummary, Verdict

logger = logging.getLogger(__name__)

DECISION_PATTERN = re.compile(r"## Decision\s*\n\s*🎯\s*\*\*([A-Z]+)\*\*")
CONFIDENCE_PATTERN = re.compile(r"with\s*\*\*(\d+)%\*\*\s*conviction")
RATIONALE_PATTERN = re.compile(r"\*\*Verdict Rationale\*\*:?\s*(.+?)(?:\n\s*\n|\Z)", re.DOTALL)


class VerdictParser:
    """Extracts decision, confidence and rationale from verdict text."""

    def __init__(
        self,
        default_confidence: Optional[int] = None,
        rationale_chars: Optional[int] = None,
    ):
        self.default_confidence = (
            default_confidence
            if default_confidence is not None
            else CONSTANTS.verdict.DEFAULT_CONFIDENCE
        )
        self.rationale_chars = rationale_chars or CONSTANTS.verdict.RATIONALE_FALLBACK_CHARS

    def parse_decision(self, text: str) -> Decision:
        match = DECISION_PATTERN.search(text or "")
        if match:
            token = match.group(1).lower()
            if token in (d.value for d in Decision):
                return Decision(token)
        return Decision.WATCH

    def parse_confidence(self, text: str) -> int:
        match = CONFIDENCE_PATTERN.search(text or "")
        if not match:
            return self.default_confidence
        return max(0, min(100, int(match.group(1))))

    def parse_rationale(self, text: str) -> str:
        match = RATIONALE_PATTERN.search(text or "")
        if match:
            return match.group(1).strip()
        return (text or "").strip()[:self.rationale_chars]

    def parse(self, text: str) -> Verdict:
        verdict = Verdict(
            decision=self.parse_decision(text),
            confidence=self.parse_confidence(text),
            rationale=self.parse_rationale(text),
        )
        logger.debug(f"[VERDICT] Parsed {verdict.decision.value} @ {verdict.confidence}%")
        return verdict


def rank_opportunities(
    analyzed: Sequence[AnalyzedOpportunity],
) -> List[AnalyzedOpportunity]:
    """
    Scored opportunities by score descending, then unscored ones.

    ``sorted`` is stable, so ties and the unscored tail keep discovery order.
    """
    scored = [a for a in analyzed if a.score is not None]
    unscored = [a for a in analyzed if a.score is None]
    return sorted(scored, key=lambda a: a.score, reverse=True) + unscored


@dataclass(frozen=True)
class DecisionCounts:
    invest: int
    pass_: int
    watch: int


def count_decisions(analyzed: Sequence[AnalyzedOpportunity]) -> DecisionCounts:
    """Tally decisions; an opportunity without a verdict counts as WATCH."""
    invest = pass_ = watch = 0
    for a in analyzed:
        decision = a.verdict.decision if a.verdict else Decision.WATCH
        if decision == Decision.INVEST:
            invest += 1
        elif decision == Decision.PASS:
            pass_ += 1
        else:
            watch += 1
    return DecisionCounts(invest=invest, pass_=pass_, watch=watch)


def aggregate_verdict(
    ranked: Sequence[AnalyzedOpportunity],
    total_discovered: int,
    duration_seconds: float,
) -> Tuple[Verdict, RunSummary]:
    """
    Compute the run's final verdict and summary from a ranked list.

    The final decision and confidence are copied from the top pick. With
    nothing scored, the run is a WATCH at zero confidence.
    """
    counts = count_decisions(ranked)
    top = ranked[0] if ranked and ranked[0].score is not None else None
    tally = f"{counts.invest} INVEST, {counts.pass_} PASS, {counts.watch} WATCH"

    if top is None:
        verdict = Verdict(
            decision=Decision.WATCH,
            confidence=0,
            rationale=(
                f"Analyzed {len(ranked)} opportunities. "
                f"No opportunity produced a verdict. Overall: {tally}."
            ),
        )
        top_pick = None
    else:
        verdict = Verdict(
            decision=top.verdict.decision,
            confidence=top.verdict.confidence,
            rationale=(
                f"Analyzed {len(ranked)} opportunities. "
                f"Best opportunity is {top.ticker} with {top.verdict.confidence}% conviction. "
                f"Overall: {tally}."
            ),
        )
        top_pick = top.opportunity.label

    top_opportunities = tuple(
        a.opportunity.company_name
        for a in ranked
        if a.verdict and a.verdict.decision == Decision.INVEST
    )[:CONSTANTS.verdict.TOP_OPPORTUNITIES]

    summary = RunSummary(
        total_discovered=total_discovered,
        total_analyzed=len(ranked),
        invest_count=counts.invest,
        pass_count=counts.pass_,
        watch_count=counts.watch,
        top_pick=top_pick,
        top_opportunities=top_opportunities,
        duration_seconds=duration_seconds,
    )
    return verdict, summary
