"""
Per-opportunity analysis: research, strategy analysis, critique, verdict.

Stages run in that order. Research is the only stage whose failure stops
the opportunity; every other failure is recorded in the opportunity's
error list and later prompts show "Not available" in its place.
"""

import asyncio
import logging
from typing import Any, Callable, Optional

from core.langchain.agents import TextGenerator
from core.pipeline import prompts
from core.pipeline.events import Phase
from core.pipeline.models import (
    AnalyzedOpportunity,
    Critique,
    CritiqueRole,
    Opportunity,
    ResearchReport,
    ResearchStep,
    StageResult,
    StrategyAnalysis,
    Thesis,
)
from core.pipeline.roster import CouncilRoster
from core.pipeline.verdict import VerdictParser
from core.research.deep_research import ResearchService

logger = logging.getLogger(__name__)

PhaseCallback = Callable[[Phase, Optional[str], Optional[str]], Any]

# Stage names used in AnalyzedOpportunity.stages and error entries
RESEARCH = "research"
STRATEGY = "strategy"
SKEPTIC = "skeptic"
RISK_OFFICER = "risk_officer"
BULL_CASE = "bull_case"
VERDICT = "verdict"


def ignore_phase(phase: Phase, agent: Optional[str] = None, content: Optional[str] = None) -> None:
    pass


async def generate_stage(agent: TextGenerator, prompt: str, label: str) -> StageResult[str]:
    """Run one agent call and turn any exception into a failed StageResult."""
    try:
        return StageResult.succeeded(await agent.generate(prompt))
    except Exception as e:
        logger.error(f"[ANALYSIS] {label} failed: {e}")
        return StageResult.failed(f"{agent.name} failed: {e}")


class OpportunityAnalyzer:
    """
    Runs the four analysis stages for one opportunity.

    Args:
        roster: Council agents
        research: Research service; None fails every research stage
        parser: Verdict parser
        produce_bull_case: Also ask the bull advocate, alongside the critics
    """

    def __init__(
        self,
        roster: CouncilRoster,
        research: Optional[ResearchService],
        parser: Optional[VerdictParser] = None,
        produce_bull_case: bool = False,
    ):
        self.roster = roster
        self.research = research
        self.parser = parser or VerdictParser()
        self.produce_bull_case = produce_bull_case

    # =========================================================================
    # Stages
    # =========================================================================

    async def _research(
        self,
        opportunity: Opportunity,
        on_phase: PhaseCallback,
    ) -> StageResult[ResearchReport]:
        if self.research is None:
            return StageResult.failed("no research provider configured")

        def forward(step: ResearchStep) -> None:
            on_phase(Phase.RESEARCHING, "deep-research", f"{opportunity.ticker}: {step.content}")

        try:
            report = await self.research.research(opportunity, on_step=forward)
        except Exception as e:
            logger.error(f"[RESEARCH] {opportunity.ticker} failed: {e}")
            return StageResult.failed(str(e))
        return StageResult.succeeded(report)

    async def _strategy(
        self,
        thesis: Thesis,
        result: AnalyzedOpportunity,
        on_phase: PhaseCallback,
    ) -> None:
        analyst = self.roster.analyst_for(thesis.strategy)
        if analyst is None:
            result.record(
                STRATEGY,
                StageResult.skipped(f"no analyst for {thesis.strategy.value} strategy"),
            )
            return

        opportunity = result.opportunity
        on_phase(Phase.STRATEGY_ANALYSIS, analyst.name, f"Analyzing {opportunity.ticker}")
        stage = await generate_stage(
            analyst,
            prompts.strategy_prompt(thesis, opportunity, result.research.content, analyst.name),
            f"{opportunity.ticker} strategy analysis",
        )
        result.record(STRATEGY, stage)
        if stage.ok:
            result.strategy_analysis = StrategyAnalysis(
                strategy=thesis.strategy,
                analyst=analyst.name,
                content=stage.value,
            )

    async def _optional_call(
        self,
        agent: Optional[TextGenerator],
        prompt: str,
        label: str,
    ) -> StageResult[str]:
        if agent is None:
            return StageResult.skipped(f"{label} not configured")
        return await generate_stage(agent, prompt, label)

    async def _critique(self, result: AnalyzedOpportunity, on_phase: PhaseCallback) -> None:
        opportunity = result.opportunity
        research = result.research.content
        analysis = result.strategy_analysis.content if result.strategy_analysis else None
        on_phase(Phase.CRITIQUE, "council", f"Running critiques for {opportunity.ticker}")

        calls = [
            self._optional_call(
                self.roster.skeptic,
                prompts.skeptic_prompt(opportunity, research, analysis),
                f"{opportunity.ticker} skeptic",
            ),
            self._optional_call(
                self.roster.risk_officer,
                prompts.risk_officer_prompt(opportunity, research),
                f"{opportunity.ticker} risk officer",
            ),
        ]
        if self.produce_bull_case:
            calls.append(self._optional_call(
                self.roster.bull_advocate,
                prompts.bull_prompt(opportunity, research, analysis),
                f"{opportunity.ticker} bull advocate",
            ))

        # Each call returns a StageResult, so both critics always settle
        outcomes = await asyncio.gather(*calls)

        for stage_name, role, outcome in (
            (SKEPTIC, CritiqueRole.SKEPTIC, outcomes[0]),
            (RISK_OFFICER, CritiqueRole.RISK_OFFICER, outcomes[1]),
        ):
            result.record(stage_name, outcome)
            if outcome.ok:
                result.critiques.append(Critique(role=role, content=outcome.value))

        if self.produce_bull_case:
            result.record(BULL_CASE, outcomes[2])
            if outcomes[2].ok:
                result.bull_case = outcomes[2].value

    async def _verdict(
        self,
        thesis: Thesis,
        result: AnalyzedOpportunity,
        on_phase: PhaseCallback,
    ) -> None:
        opportunity = result.opportunity
        agent = self.roster.verdict
        if agent is None:
            result.record(VERDICT, StageResult.failed("verdict agent not configured"))
            return

        on_phase(Phase.VERDICT, agent.name, f"Generating verdict for {opportunity.ticker}")
        skeptic = result.critique(CritiqueRole.SKEPTIC)
        risk = result.critique(CritiqueRole.RISK_OFFICER)
        prompt = prompts.verdict_prompt(
            thesis,
            opportunity,
            result.research.content,
            result.strategy_analysis.content if result.strategy_analysis else None,
            skeptic.content if skeptic else None,
            risk.content if risk else None,
        )
        stage = await generate_stage(agent, prompt, f"{opportunity.ticker} verdict")
        result.record(VERDICT, stage)
        if not stage.ok:
            return

        verdict = self.parser.parse(stage.value)
        result.set_verdict(verdict)
        on_phase(
            Phase.VERDICT,
            agent.name,
            f"{opportunity.ticker}: {verdict.decision.value.upper()} ({verdict.confidence}%)",
        )

    # =========================================================================
    # Entry point
    # =========================================================================

    async def analyze(
        self,
        thesis: Thesis,
        opportunity: Opportunity,
        on_phase: Optional[PhaseCallback] = None,
    ) -> AnalyzedOpportunity:
        """Run every stage for one opportunity. Never raises for stage failures."""
        on_phase = on_phase or ignore_phase
        result = AnalyzedOpportunity(opportunity=opportunity)

        on_phase(Phase.RESEARCHING, "deep-research", f"Researching {opportunity.ticker}...")
        research = result.record(RESEARCH, await self._research(opportunity, on_phase))
        if not research.ok:
            return result
        result.research = research.value

        await self._strategy(thesis, result, on_phase)
        await self._critique(result, on_phase)
        await self._verdict(thesis, result, on_phase)

        logger.info(
            f"[ANALYSIS] {opportunity.ticker} done: score={result.score} "
            f"errors={len(result.errors)}",
            extra={"ticker": opportunity.ticker},
        )
        return result
