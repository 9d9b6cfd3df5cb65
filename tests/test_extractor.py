"""
Tests for discovery text extraction.
"""

import pytest

from core.pipeline.extractor import extract_opportunities
from core.pipeline.models import RiskLevel, Strategy

from fakes import opportunity_block


# =============================================================================
# Primary template
# =============================================================================

class TestPrimaryTemplate:

    def test_parses_all_fields(self):
        text = opportunity_block(
            "ZIM", "ZIM Integrated Shipping", alignment=85,
            thesis="Net cash exceeds market cap", risk="HIGH",
        )
        [opp] = extract_opportunities(text, Strategy.VALUE)

        assert opp.ticker == "ZIM"
        assert opp.company_name == "ZIM Integrated Shipping"
        assert opp.score == 85
        assert opp.thesis == "Net cash exceeds market cap"
        assert opp.risk_level == RiskLevel.HIGH
        assert opp.strategy == Strategy.VALUE
        assert opp.metrics == {"pe": 8.5, "pb": 0.7, "market_cap": 2400.0}

    def test_market_cap_in_millions(self):
        text = opportunity_block("ABC", "Abc Corp", metrics="Market Cap: $850M")
        [opp] = extract_opportunities(text)
        assert opp.metrics == {"market_cap": 850.0}

    def test_alignment_in_parentheses(self):
        text = opportunity_block("ABC", "Abc Corp").replace(
            "Thesis Alignment: 80", "Thesis Alignment: (92)"
        )
        [opp] = extract_opportunities(text)
        assert opp.score == 92

    def test_missing_fields_use_defaults(self):
        text = "**Opportunity: [ABC] - [Abc Corp]**\nNothing else here.\n---\n"
        [opp] = extract_opportunities(text, "distressed")

        assert opp.score == 50
        assert opp.risk_level == RiskLevel.MEDIUM
        assert opp.thesis == "Discovered via distressed thesis analysis"
        assert opp.metrics == {}

    def test_malformed_metrics_omitted(self):
        text = opportunity_block("ABC", "Abc Corp", metrics="P/E: N/A, P/B: ., Market Cap: unknown")
        [opp] = extract_opportunities(text)
        assert opp.metrics == {}

    def test_sorted_by_score_and_capped(self):
        text = "".join(
            opportunity_block(t, f"{t} Inc", alignment=s)
            for t, s in [("AAA", 40), ("BBB", 90), ("CCC", 70), ("DDD", 20),
                         ("EEE", 60), ("FFF", 80)]
        )
        drafts = extract_opportunities(text)

        assert [d.ticker for d in drafts] == ["BBB", "FFF", "CCC", "EEE", "AAA"]

    def test_duplicate_tickers_collapsed(self):
        text = (
            opportunity_block("ZIM", "ZIM Integrated", alignment=60)
            + opportunity_block("ZIM", "ZIM again", alignment=75)
        )
        drafts = extract_opportunities(text)

        assert len(drafts) == 1
        assert drafts[0].company_name == "ZIM Integrated"
        assert drafts[0].score == 75


# =============================================================================
# Fallback template
# =============================================================================

class TestFallbackTemplate:

    def test_loose_lines_get_default_score(self):
        text = "Top ideas:\n[DAC] Danaos Corporation\n[GSL] Global Ship Lease\n"
        drafts = extract_opportunities(text, Strategy.VALUE)

        assert [d.ticker for d in drafts] == ["DAC", "GSL"]
        assert drafts[0].company_name == "Danaos Corporation"
        assert all(d.score == 50 for d in drafts)
        assert all(d.risk_level == RiskLevel.MEDIUM for d in drafts)

    def test_fallback_not_used_when_primary_matches(self):
        text = opportunity_block("ZIM", "ZIM Integrated") + "\n[DAC] Danaos Corporation\n"
        drafts = extract_opportunities(text)
        assert [d.ticker for d in drafts] == ["ZIM"]

    def test_fallback_capped(self):
        text = "\n".join(f"[T{chr(65 + i)}] Company {i}" for i in range(8))
        assert len(extract_opportunities(text)) == 5

    def test_no_tickers(self):
        assert extract_opportunities("I could not find anything useful.") == []
        assert extract_opportunities("") == []


@pytest.mark.parametrize("raw,expected", [
    ("Value investing", Strategy.VALUE),
    ("deep_value", Strategy.VALUE),
    ("VALUE", Strategy.VALUE),
    ("special_sits", Strategy.SPECIAL_SITUATIONS),
    ("Special situations", Strategy.SPECIAL_SITUATIONS),
    ("distressed debt", Strategy.DISTRESSED),
    ("momentum", Strategy.GENERAL),
    (None, Strategy.GENERAL),
])
def test_strategy_parse(raw, expected):
    assert Strategy.parse(raw) == expected
