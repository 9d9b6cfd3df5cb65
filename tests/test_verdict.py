"""
Tests for verdict parsing, ranking and aggregation.
"""

import pytest

from core.pipeline.models import (
    AnalyzedOpportunity,
    Decision,
    Opportunity,
    ResearchReport,
    Verdict,
)
from core.pipeline.verdict import (
    VerdictParser,
    aggregate_verdict,
    count_decisions,
    rank_opportunities,
)

from fakes import verdict_text


def make_analyzed(ticker: str, decision: str = None, confidence: int = 50) -> AnalyzedOpportunity:
    analyzed = AnalyzedOpportunity(
        opportunity=Opportunity(ticker=ticker, company_name=f"{ticker} Corp", thesis="t")
    )
    if decision is not None:
        analyzed.research = ResearchReport(content="report", provider="fake")
        analyzed.set_verdict(Verdict(Decision(decision), confidence, "because"))
    return analyzed


# =============================================================================
# Parser
# =============================================================================

class TestVerdictParser:

    @pytest.fixture
    def parser(self):
        return VerdictParser()

    def test_parses_invest(self, parser):
        verdict = parser.parse(verdict_text("INVEST", 72))
        assert verdict.decision == Decision.INVEST
        assert verdict.confidence == 72
        assert verdict.score == 72
        assert verdict.rationale == "Cheap assets with a clear catalyst."

    def test_pass_scores_negative(self, parser):
        verdict = parser.parse(verdict_text("PASS", 65))
        assert verdict.decision == Decision.PASS
        assert verdict.score == -65

    def test_watch_scores_zero(self, parser):
        assert parser.parse(verdict_text("WATCH", 90)).score == 0

    def test_no_template_defaults_to_watch(self, parser):
        verdict = parser.parse("I think this is probably a buy, maybe.")
        assert verdict.decision == Decision.WATCH
        assert verdict.confidence == 50
        assert verdict.rationale == "I think this is probably a buy, maybe."

    def test_unknown_token_defaults_to_watch(self, parser):
        text = verdict_text("INVEST", 80).replace("**INVEST**", "**HOLD**")
        verdict = parser.parse(text)
        assert verdict.decision == Decision.WATCH
        assert verdict.confidence == 80

    def test_confidence_clamped(self, parser):
        assert parser.parse(verdict_text("INVEST", 250)).confidence == 100

    def test_idempotent(self, parser):
        text = verdict_text("PASS", 41)
        first = parser.parse(text)
        second = parser.parse(text)
        assert (first.decision, first.confidence) == (second.decision, second.confidence)
        assert first == second


# =============================================================================
# Ranking
# =============================================================================

def test_rank_is_stable_sort_by_score():
    analyzed = [
        make_analyzed("AAA", "invest", 80),
        make_analyzed("BBB", "invest", 40),
        make_analyzed("CCC", "invest", 65),
    ]
    ranked = rank_opportunities(analyzed)
    assert [a.score for a in ranked] == [80, 65, 40]


def test_rank_ties_keep_discovery_order():
    analyzed = [make_analyzed("FIRST", "invest", 70), make_analyzed("SECOND", "invest", 70)]
    assert [a.ticker for a in rank_opportunities(analyzed)] == ["FIRST", "SECOND"]


def test_unscored_ranked_last_in_discovery_order():
    analyzed = [
        make_analyzed("NOV1"),
        make_analyzed("PASS", "pass", 60),
        make_analyzed("NOV2"),
        make_analyzed("WATCH", "watch", 70),
    ]
    ranked = rank_opportunities(analyzed)
    assert [a.ticker for a in ranked] == ["WATCH", "PASS", "NOV1", "NOV2"]


# =============================================================================
# Aggregation
# =============================================================================

def test_unverdicted_counted_as_watch():
    counts = count_decisions([
        make_analyzed("A", "invest", 72),
        make_analyzed("B"),
        make_analyzed("C", "pass", 30),
    ])
    assert (counts.invest, counts.pass_, counts.watch) == (1, 1, 1)


def test_aggregate_copies_top_pick():
    ranked = rank_opportunities([
        make_analyzed("LOW", "watch", 90),
        make_analyzed("TOP", "invest", 72),
        make_analyzed("NONE"),
    ])
    verdict, summary = aggregate_verdict(ranked, total_discovered=3, duration_seconds=12.5)

    assert verdict.decision == Decision.INVEST
    assert verdict.confidence == 72
    assert verdict.rationale == (
        "Analyzed 3 opportunities. Best opportunity is TOP with 72% conviction. "
        "Overall: 1 INVEST, 0 PASS, 2 WATCH."
    )
    assert summary.top_pick == "TOP (TOP Corp)"
    assert summary.top_opportunities == ("TOP Corp",)
    assert (summary.invest_count, summary.pass_count, summary.watch_count) == (1, 0, 2)
    assert summary.total_discovered == 3
    assert summary.total_analyzed == 3


def test_aggregate_with_nothing_scored_is_watch():
    verdict, summary = aggregate_verdict([], total_discovered=0, duration_seconds=0.1)

    assert verdict.decision == Decision.WATCH
    assert verdict.confidence == 0
    assert summary.top_pick is None
    assert summary.total_analyzed == 0


def test_verdict_requires_research():
    analyzed = make_analyzed("ABC")
    with pytest.raises(ValueError):
        analyzed.set_verdict(Verdict(Decision.INVEST, 50, "x"))
    assert analyzed.score is None
