"""
Tests for the per-opportunity analyzer.
"""

import asyncio

import pytest

from core.pipeline.analyzer import OpportunityAnalyzer
from core.pipeline.events import Phase
from core.pipeline.models import CritiqueRole, Decision, NOT_AVAILABLE, StageStatus, Strategy, Thesis
from core.pipeline.roster import CouncilRoster

from fakes import FakeAgent, FakeResearch, verdict_text


def make_roster(**overrides) -> CouncilRoster:
    roster = CouncilRoster(
        discovery=FakeAgent("thesis-discovery"),
        verdict=FakeAgent("investment-verdict", verdict_text("INVEST", 72)),
        skeptic=FakeAgent("skeptic", "The skeptic's critique."),
        risk_officer=FakeAgent("risk-officer", "The risk officer's assessment."),
        analysts={Strategy.VALUE: FakeAgent("value-analyst", "Value analysis.")},
        bull_advocate=FakeAgent("bull-advocate", "The bull case."),
    )
    for name, value in overrides.items():
        setattr(roster, name, value)
    return roster


class PhaseRecorder:
    def __init__(self):
        self.events = []

    def __call__(self, phase, agent=None, content=None):
        self.events.append((phase, agent, content))

    @property
    def phases(self):
        return [p for p, _, _ in self.events]


# =============================================================================
# Happy path
# =============================================================================

@pytest.mark.asyncio
async def test_all_stages_in_order(value_thesis, shipping_opportunity):
    roster = make_roster()
    recorder = PhaseRecorder()
    analyzer = OpportunityAnalyzer(roster, FakeResearch())

    result = await analyzer.analyze(value_thesis, shipping_opportunity, recorder)

    assert result.research is not None
    assert result.strategy_analysis.content == "Value analysis."
    assert [c.role for c in result.critiques] == [CritiqueRole.SKEPTIC, CritiqueRole.RISK_OFFICER]
    assert result.verdict.decision == Decision.INVEST
    assert result.score == 72
    assert result.errors == []
    assert result.bull_case is None

    phases = recorder.phases
    assert phases.index(Phase.RESEARCHING) < phases.index(Phase.STRATEGY_ANALYSIS)
    assert phases.index(Phase.STRATEGY_ANALYSIS) < phases.index(Phase.CRITIQUE)
    assert phases.index(Phase.CRITIQUE) < phases.index(Phase.VERDICT)

    verdict_prompt = roster.verdict.prompts[0]
    assert "Value analysis." in verdict_prompt
    assert "The skeptic's critique." in verdict_prompt
    assert NOT_AVAILABLE not in verdict_prompt


@pytest.mark.asyncio
async def test_research_steps_forwarded(value_thesis, shipping_opportunity):
    recorder = PhaseRecorder()
    await OpportunityAnalyzer(make_roster(), FakeResearch()).analyze(
        value_thesis, shipping_opportunity, recorder
    )
    research_events = [c for p, _, c in recorder.events if p == Phase.RESEARCHING]
    assert "ZIM: reading filings" in research_events


# =============================================================================
# Failure isolation
# =============================================================================

@pytest.mark.asyncio
async def test_research_failure_stops_opportunity(value_thesis, shipping_opportunity):
    roster = make_roster()
    result = await OpportunityAnalyzer(roster, FakeResearch(failing=["ZIM"])).analyze(
        value_thesis, shipping_opportunity
    )

    assert result.research is None
    assert result.verdict is None
    assert result.score is None
    assert result.stages["research"].status == StageStatus.FAILED
    assert result.errors[0].startswith("research:")
    assert roster.skeptic.prompts == []
    assert roster.verdict.prompts == []


@pytest.mark.asyncio
async def test_no_research_provider(value_thesis, shipping_opportunity):
    result = await OpportunityAnalyzer(make_roster(), None).analyze(
        value_thesis, shipping_opportunity
    )
    assert result.errors == ["research: no research provider configured"]


@pytest.mark.asyncio
async def test_skeptic_failure_keeps_risk_officer(value_thesis, shipping_opportunity):
    roster = make_roster(skeptic=FakeAgent("skeptic", RuntimeError("overloaded")))
    result = await OpportunityAnalyzer(roster, FakeResearch()).analyze(
        value_thesis, shipping_opportunity
    )

    assert [c.role for c in result.critiques] == [CritiqueRole.RISK_OFFICER]
    assert result.stages["skeptic"].status == StageStatus.FAILED
    assert any(e.startswith("skeptic:") for e in result.errors)

    verdict_prompt = roster.verdict.prompts[0]
    skeptic_section = verdict_prompt.split("## Skeptic's Critique\n")[1]
    assert skeptic_section.startswith(NOT_AVAILABLE)
    assert "The risk officer's assessment." in verdict_prompt
    assert result.verdict is not None


@pytest.mark.asyncio
async def test_strategy_failure_degrades(value_thesis, shipping_opportunity):
    roster = make_roster(analysts={Strategy.VALUE: FakeAgent("value-analyst", RuntimeError("boom"))})
    result = await OpportunityAnalyzer(roster, FakeResearch()).analyze(
        value_thesis, shipping_opportunity
    )

    assert result.strategy_analysis is None
    assert result.stages["strategy"].status == StageStatus.FAILED
    assert len(result.critiques) == 2
    assert result.score == 72
    assert NOT_AVAILABLE in roster.verdict.prompts[0]


@pytest.mark.asyncio
async def test_general_strategy_skips_analyst(shipping_opportunity):
    roster = make_roster()
    result = await OpportunityAnalyzer(roster, FakeResearch()).analyze(
        Thesis("anything goes", strategy="general"), shipping_opportunity
    )

    assert result.stages["strategy"].status == StageStatus.SKIPPED
    assert result.errors == []
    assert roster.analysts[Strategy.VALUE].prompts == []


@pytest.mark.asyncio
async def test_verdict_failure_leaves_score_undefined(value_thesis, shipping_opportunity):
    roster = make_roster(verdict=FakeAgent("investment-verdict", RuntimeError("timeout")))
    result = await OpportunityAnalyzer(roster, FakeResearch()).analyze(
        value_thesis, shipping_opportunity
    )

    assert result.research is not None
    assert len(result.critiques) == 2
    assert result.verdict is None
    assert result.score is None
    assert any(e.startswith("verdict:") for e in result.errors)


# =============================================================================
# Concurrency
# =============================================================================

@pytest.mark.asyncio
async def test_critics_run_concurrently(value_thesis, shipping_opportunity):
    both_started = asyncio.Event()
    started = []

    class Gate(FakeAgent):
        async def generate(self, prompt):
            started.append(self.name)
            if len(started) == 2:
                both_started.set()
            await asyncio.wait_for(both_started.wait(), timeout=1)
            return f"{self.name} done"

    roster = make_roster(skeptic=Gate("skeptic"), risk_officer=Gate("risk-officer"))
    result = await OpportunityAnalyzer(roster, FakeResearch()).analyze(
        value_thesis, shipping_opportunity
    )
    assert len(result.critiques) == 2


@pytest.mark.asyncio
async def test_bull_case_produced_alongside_critics(value_thesis, shipping_opportunity):
    result = await OpportunityAnalyzer(
        make_roster(), FakeResearch(), produce_bull_case=True
    ).analyze(value_thesis, shipping_opportunity)

    assert result.bull_case == "The bull case."
    assert result.stages["bull_case"].status == StageStatus.SUCCEEDED
    assert len(result.critiques) == 2
