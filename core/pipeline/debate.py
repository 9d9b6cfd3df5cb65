"""
Debate Facilitator.

Up to three sequential rounds over one opportunity's bull case, skeptic
critique and risk assessment:

1. Skeptic rebuts the bull case
2. Risk officer weighs the bull case against the rebuttal
3. Synthesizer summarizes everything and suggests a stance

Prompts only carry bounded excerpts of earlier text. A round whose inputs
or agent are missing is skipped without an error.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from core.config.constants import CONSTANTS
from core.langchain.agents import TextGenerator
from core.pipeline import prompts
from core.pipeline.analyzer import PhaseCallback, generate_stage, ignore_phase
from core.pipeline.events import Phase
from core.pipeline.models import (
    NOT_AVAILABLE,
    AnalyzedOpportunity,
    CritiqueRole,
    DebateEntry,
    DebateRound,
)

logger = logging.getLogger(__name__)

BULL_PRESENTED = "Bull case presented (see analysis above)"


def excerpt(text: Optional[str], limit: int) -> str:
    return (text or "")[:limit]


@dataclass
class DebateOutcome:
    """Rounds produced and round failures, for the runner to record."""
    rounds: List[DebateRound] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


class DebateFacilitator:
    """Runs the debate rounds for one analyzed opportunity."""

    def __init__(
        self,
        skeptic: Optional[TextGenerator] = None,
        risk_officer: Optional[TextGenerator] = None,
        synthesizer: Optional[TextGenerator] = None,
    ):
        self.skeptic = skeptic
        self.risk_officer = risk_officer
        self.synthesizer = synthesizer

    @classmethod
    def from_roster(cls, roster) -> "DebateFacilitator":
        return cls(
            skeptic=roster.skeptic,
            risk_officer=roster.risk_officer,
            synthesizer=roster.synthesizer,
        )

    async def facilitate(
        self,
        analyzed: AnalyzedOpportunity,
        on_phase: Optional[PhaseCallback] = None,
    ) -> DebateOutcome:
        on_phase = on_phase or ignore_phase
        outcome = DebateOutcome()
        if analyzed.research is None:
            return outcome

        limits = CONSTANTS.debate
        opportunity = analyzed.opportunity
        skeptic_critique = analyzed.critique(CritiqueRole.SKEPTIC)
        risk_critique = analyzed.critique(CritiqueRole.RISK_OFFICER)
        bull = analyzed.bull_case
        skeptic_text = skeptic_critique.content if skeptic_critique else None
        risk_text = risk_critique.content if risk_critique else None

        participants = sum(1 for t in (bull, skeptic_text, risk_text) if t)
        if participants < limits.MIN_PARTICIPANTS:
            logger.info(
                f"[DEBATE] {opportunity.ticker}: {participants} participant(s), no debate"
            )
            return outcome

        research_excerpt = excerpt(analyzed.research.content, limits.RESEARCH_EXCERPT_CHARS)
        round1_text: Optional[str] = None
        round2_text: Optional[str] = None

        # Round 1: skeptic answers the bull case
        if bull and skeptic_text and self.skeptic is not None:
            on_phase(Phase.CRITIQUE, "debate", f"{opportunity.ticker}: round 1 (skeptic rebuttal)")
            stage = await generate_stage(
                self.skeptic,
                prompts.rebuttal_prompt(
                    opportunity,
                    research_excerpt,
                    excerpt(bull, limits.BULL_EXCERPT_CHARS),
                ),
                f"{opportunity.ticker} debate round 1",
            )
            if stage.ok:
                round1_text = stage.value
                outcome.rounds.append(DebateRound(1, (
                    DebateEntry("bull-advocate", BULL_PRESENTED),
                    DebateEntry("skeptic", round1_text),
                )))
            else:
                outcome.errors.append(f"debate round 1: {stage.reason}")

        # Round 2: risk officer weighs both sides
        if risk_text and self.risk_officer is not None:
            on_phase(Phase.CRITIQUE, "debate", f"{opportunity.ticker}: round 2 (risk assessment)")
            stage = await generate_stage(
                self.risk_officer,
                prompts.risk_weighing_prompt(
                    opportunity,
                    research_excerpt,
                    excerpt(bull, limits.ROUND2_EXCERPT_CHARS) or NOT_AVAILABLE,
                    excerpt(round1_text, limits.ROUND2_EXCERPT_CHARS),
                ),
                f"{opportunity.ticker} debate round 2",
            )
            if stage.ok:
                round2_text = stage.value
                outcome.rounds.append(DebateRound(2, (DebateEntry("risk-officer", round2_text),)))
            else:
                outcome.errors.append(f"debate round 2: {stage.reason}")

        # Round 3: synthesis
        if self.synthesizer is not None:
            on_phase(Phase.CRITIQUE, "debate", f"{opportunity.ticker}: round 3 (synthesis)")
            n = limits.SYNTHESIS_EXCERPT_CHARS
            stage = await generate_stage(
                self.synthesizer,
                prompts.synthesis_prompt(
                    opportunity,
                    research_excerpt,
                    excerpt(bull, n),
                    excerpt(skeptic_text, n),
                    excerpt(risk_text, n),
                    excerpt(round1_text, n),
                    excerpt(round2_text, n),
                ),
                f"{opportunity.ticker} debate round 3",
            )
            if stage.ok:
                outcome.rounds.append(DebateRound(3, (DebateEntry("synthesizer", stage.value),)))
            else:
                outcome.errors.append(f"debate round 3: {stage.reason}")

        logger.info(f"[DEBATE] {opportunity.ticker}: {len(outcome.rounds)} round(s) completed")
        return outcome
