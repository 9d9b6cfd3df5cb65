"""
Tests for the debate facilitator.
"""

import pytest

from core.config.constants import CONSTANTS
from core.pipeline.debate import BULL_PRESENTED, DebateFacilitator, excerpt
from core.pipeline.models import (
    AnalyzedOpportunity,
    Critique,
    CritiqueRole,
    Opportunity,
    ResearchReport,
)

from fakes import FakeAgent


def debated(bull="Bull text", skeptic="Skeptic text", risk="Risk text", research="R" * 5000):
    analyzed = AnalyzedOpportunity(
        opportunity=Opportunity(ticker="ZIM", company_name="ZIM Integrated", thesis="t")
    )
    analyzed.research = ResearchReport(content=research, provider="fake")
    analyzed.bull_case = bull
    if skeptic:
        analyzed.critiques.append(Critique(CritiqueRole.SKEPTIC, skeptic))
    if risk:
        analyzed.critiques.append(Critique(CritiqueRole.RISK_OFFICER, risk))
    return analyzed


def facilitator(**agents):
    defaults = dict(
        skeptic=FakeAgent("skeptic", "Rebuttal."),
        risk_officer=FakeAgent("risk-officer", "Weighing."),
        synthesizer=FakeAgent("synthesizer", "Synthesis."),
    )
    defaults.update(agents)
    return DebateFacilitator(**defaults)


def test_excerpt_bounds():
    assert excerpt("abcdef", 3) == "abc"
    assert excerpt("ab", 10) == "ab"
    assert excerpt(None, 10) == ""


@pytest.mark.asyncio
async def test_three_rounds():
    outcome = await facilitator().facilitate(debated())

    assert [r.round_number for r in outcome.rounds] == [1, 2, 3]
    assert outcome.errors == []

    round1 = outcome.rounds[0]
    assert [e.agent for e in round1.entries] == ["bull-advocate", "skeptic"]
    assert round1.entries[0].content == BULL_PRESENTED
    assert round1.entries[1].content == "Rebuttal."
    assert outcome.rounds[2].entries[0].content == "Synthesis."


@pytest.mark.asyncio
async def test_prompts_carry_bounded_excerpts():
    skeptic = FakeAgent("skeptic", "Rebuttal.")
    long_bull = "B" * 5000
    await facilitator(skeptic=skeptic).facilitate(debated(bull=long_bull))

    prompt = skeptic.prompts[0]
    assert "B" * CONSTANTS.debate.BULL_EXCERPT_CHARS in prompt
    assert "B" * (CONSTANTS.debate.BULL_EXCERPT_CHARS + 1) not in prompt
    assert "R" * (CONSTANTS.debate.RESEARCH_EXCERPT_CHARS + 1) not in prompt


@pytest.mark.asyncio
async def test_no_bull_case_skips_round_one():
    skeptic = FakeAgent("skeptic", "Rebuttal.")
    outcome = await facilitator(skeptic=skeptic).facilitate(debated(bull=None))

    assert [r.round_number for r in outcome.rounds] == [2, 3]
    assert skeptic.prompts == []
    assert outcome.errors == []


@pytest.mark.asyncio
async def test_single_participant_means_no_debate():
    synthesizer = FakeAgent("synthesizer", "Synthesis.")
    outcome = await facilitator(synthesizer=synthesizer).facilitate(
        debated(bull=None, skeptic=None)
    )
    assert outcome.rounds == []
    assert synthesizer.prompts == []


@pytest.mark.asyncio
async def test_no_research_means_no_debate():
    analyzed = debated()
    analyzed.research = None
    outcome = await facilitator().facilitate(analyzed)
    assert outcome.rounds == []


@pytest.mark.asyncio
async def test_failed_round_recorded_and_later_rounds_continue():
    outcome = await facilitator(
        risk_officer=FakeAgent("risk-officer", RuntimeError("overloaded"))
    ).facilitate(debated())

    assert [r.round_number for r in outcome.rounds] == [1, 3]
    assert len(outcome.errors) == 1
    assert outcome.errors[0].startswith("debate round 2:")


@pytest.mark.asyncio
async def test_missing_synthesizer_skips_round_three():
    outcome = await facilitator(synthesizer=None).facilitate(debated())
    assert [r.round_number for r in outcome.rounds] == [1, 2]
